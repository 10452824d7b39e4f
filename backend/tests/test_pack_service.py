"""
Pack lifecycle tests.

Verifies:
- RECEIVED -> ACTIVE -> DEPLETED only, no skips or reversals
- One ACTIVE pack per bin; activation auto-depletes the occupant
- Starting-serial overrides and pre-sold packs require an approver
- Batch receive and batch activation report per item
"""

import pytest
from sqlalchemy.orm.exc import StaleDataError

from lotto.errors import NotFoundError, PackStateError, SerialRangeError, ShiftError, ValidationError
from lotto.models import LedgerEvent, Pack, ShiftClosing, ShiftOpening
from lotto.services import bin_service, game_service, pack_service, shift_service

from conftest import T0, barcode_for, make_pack


def _active_in_bin(db_session, bin_id):
    return db_session.query(Pack).filter_by(current_bin_id=bin_id, status="ACTIVE").all()


# =============================================================================
# RECEPTION
# =============================================================================


class TestReceive:

    def test_received_pack_has_no_bin(self, db_session, pack):
        assert pack.status == pack_service.PACK_STATUS_RECEIVED
        assert pack.current_bin_id is None
        assert pack.received_at == T0

    def test_duplicate_pack_number_rejected(self, db_session, store, game, pack):
        with pytest.raises(ValidationError):
            make_pack(store, game, "0012345")

    @pytest.mark.parametrize(
        "start,end",
        [("abc", "149"), ("000", "14"), ("149", "000"), ("", "149")],
    )
    def test_bad_serial_range_rejected(self, db_session, store, game, start, end):
        with pytest.raises(ValidationError):
            make_pack(store, game, "0099999", start, end)

    def test_unknown_game(self, db_session, store):
        with pytest.raises(NotFoundError):
            pack_service.receive_pack(store.id, 999, "0012345", "000", "149")

    def test_receive_writes_ledger_event(self, db_session, pack):
        event = db_session.query(LedgerEvent).filter_by(entity_type="pack", entity_id=pack.id).one()
        assert event.event_type == "pack.received"


class TestBatchReceive:

    def test_creates_packs_from_codes(self, db_session, store, game):
        codes = [
            barcode_for("1234", "0000001", "000"),
            barcode_for("1234", "0000002", "000"),
        ]
        result = pack_service.receive_packs_from_barcodes(store.id, codes, now=T0)
        assert [p.pack_number for p in result.created] == ["0000001", "0000002"]
        assert result.created[0].serial_start == "000"
        assert result.created[0].serial_end == "149"
        assert result.duplicates == []
        assert result.errors == []

    def test_collects_duplicates_and_errors(self, db_session, store, game, pack):
        codes = [
            barcode_for("1234", "0012345", "000"),   # already received
            barcode_for("1234", "0000003", "000"),
            barcode_for("1234", "0000003", "000"),   # repeated in batch
            "12345",                                 # malformed
            barcode_for("9999", "0000004", "000"),   # unknown game
        ]
        result = pack_service.receive_packs_from_barcodes(store.id, codes, now=T0)
        assert [p.pack_number for p in result.created] == ["0000003"]
        assert len(result.duplicates) == 2
        assert len(result.errors) == 2

    def test_inactive_game_not_received(self, db_session, store):
        game_service.create_game("4321", "Retired", 100, status=game_service.GAME_STATUS_DISCONTINUED)
        result = pack_service.receive_packs_from_barcodes(store.id, [barcode_for("4321", "0000005", "000")])
        assert result.created == []
        assert "discontinued" in result.errors[0]["error"]


# =============================================================================
# ACTIVATION
# =============================================================================


class TestActivate:

    def test_activate_into_empty_bin(self, db_session, pack, bins):
        result = pack_service.activate_pack(pack.id, bins[0].id, actor_user_id=7, now=T0)
        assert result.replaced_pack is None
        assert pack.status == pack_service.PACK_STATUS_ACTIVE
        assert pack.current_bin_id == bins[0].id
        assert pack.activation_serial == "000"
        assert pack.activated_by == 7

    def test_activating_active_pack_rejected(self, db_session, active_pack, bins):
        with pytest.raises(PackStateError):
            pack_service.activate_pack(active_pack.id, bins[1].id)
        assert active_pack.current_bin_id == bins[0].id

    def test_occupied_bin_auto_depletes_previous(self, db_session, store, game, active_pack, bins):
        newcomer = make_pack(store, game, "0054321")
        result = pack_service.activate_pack(newcomer.id, bins[0].id, now=T0)

        assert result.replaced_pack.id == active_pack.id
        assert active_pack.status == pack_service.PACK_STATUS_DEPLETED
        assert active_pack.depletion_reason == pack_service.DEPLETION_AUTO_REPLACED
        assert active_pack.current_bin_id is None
        assert [p.id for p in _active_in_bin(db_session, bins[0].id)] == [newcomer.id]

    def test_inactive_bin_rejected(self, db_session, pack, bins):
        bin_service.deactivate_bin(bins[2].id)
        with pytest.raises(ValidationError):
            pack_service.activate_pack(pack.id, bins[2].id)

    def test_bin_of_other_store_rejected(self, db_session, pack):
        from lotto.services import store_service
        other = store_service.create_store("Other", code="OTHER")
        foreign_bin = bin_service.create_bin(other.id, "Foreign")
        with pytest.raises(ValidationError):
            pack_service.activate_pack(pack.id, foreign_bin.id)

    def test_override_requires_approver(self, db_session, pack, bins):
        with pytest.raises(ValidationError):
            pack_service.activate_pack(pack.id, bins[0].id, starting_serial="010")
        assert pack.status == pack_service.PACK_STATUS_RECEIVED

    def test_override_with_approver(self, db_session, pack, bins):
        pack_service.activate_pack(
            pack.id, bins[0].id,
            starting_serial="010",
            serial_override_approved_by=4,
            serial_override_reason="Partial pack from other store",
        )
        assert pack.activation_serial == "010"
        assert pack.starting_serial == "010"
        assert pack.serial_override_approved_by == 4

    def test_override_outside_pack(self, db_session, pack, bins):
        with pytest.raises(SerialRangeError) as exc:
            pack_service.activate_pack(
                pack.id, bins[0].id, starting_serial="150", serial_override_approved_by=4,
            )
        assert "exceeds pack maximum" in str(exc.value)

    def test_activation_records_shift_opening(self, db_session, store, pack, bins):
        shift = shift_service.open_shift(store.id, cashier_id=3, now=T0)
        pack_service.activate_pack(pack.id, bins[0].id, shift_id=shift.id, now=T0)
        opening = db_session.query(ShiftOpening).filter_by(shift_id=shift.id, pack_id=pack.id).one()
        assert opening.opening_serial == "000"

    def test_replaced_pack_closed_in_activating_shift(self, db_session, store, game, active_pack, bins):
        shift = shift_service.open_shift(store.id, now=T0)
        shift_service.record_opening(shift.id, active_pack.id, "000", now=T0)
        newcomer = make_pack(store, game, "0054321")
        pack_service.activate_pack(newcomer.id, bins[0].id, shift_id=shift.id, now=T0)

        closing = db_session.query(ShiftClosing).filter_by(shift_id=shift.id, pack_id=active_pack.id).one()
        assert closing.closing_serial == "149"
        assert closing.entry_method == pack_service.CLOSING_ENTRY_DEPLETION
        assert active_pack.tickets_sold_count == 150

    def test_replaced_pack_keeps_scanned_closing(self, db_session, store, game, active_pack, bins):
        shift = shift_service.open_shift(store.id, now=T0)
        shift_service.record_closing(shift.id, active_pack.id, closing_serial="080", now=T0)
        newcomer = make_pack(store, game, "0054321")
        pack_service.activate_pack(newcomer.id, bins[0].id, shift_id=shift.id, now=T0)

        closings = db_session.query(ShiftClosing).filter_by(pack_id=active_pack.id).all()
        assert [c.closing_serial for c in closings] == ["080"]

    def test_activation_in_closed_shift_rejected(self, db_session, store, pack, bins):
        shift = shift_service.open_shift(store.id, now=T0)
        shift_service.close_shift(shift.id, now=T0)
        with pytest.raises(ShiftError):
            pack_service.activate_pack(pack.id, bins[0].id, shift_id=shift.id)


class TestPreSold:

    def test_requires_approver_and_reason(self, db_session, pack, bins):
        with pytest.raises(ValidationError):
            pack_service.activate_pack(pack.id, bins[0].id, mark_sold=True, mark_sold_reason="Sold whole")
        with pytest.raises(ValidationError):
            pack_service.activate_pack(pack.id, bins[0].id, mark_sold=True, mark_sold_approved_by=2)

    def test_pack_depleted_as_unit_and_occupant_kept(self, db_session, store, game, active_pack, bins):
        presold = make_pack(store, game, "0077777")
        result = pack_service.activate_pack(
            presold.id, bins[0].id,
            mark_sold=True, mark_sold_approved_by=2, mark_sold_reason="Bulk sale",
            now=T0,
        )
        assert result.replaced_pack is None
        assert presold.status == pack_service.PACK_STATUS_DEPLETED
        assert presold.depletion_reason == pack_service.DEPLETION_SOLD_AS_UNIT
        assert presold.sold_as_unit is True
        assert presold.current_bin_id is None
        assert presold.tickets_sold_count == 150
        assert active_pack.status == pack_service.PACK_STATUS_ACTIVE
        assert active_pack.current_bin_id == bins[0].id


class TestBatchActivate:

    def test_partial_failure_keeps_successes(self, db_session, store, game, bins):
        good = make_pack(store, game, "0000010")
        bad = make_pack(store, game, "0000011")
        results = pack_service.activate_packs([
            {"pack_id": good.id, "bin_id": bins[0].id},
            {"pack_id": bad.id, "bin_id": bins[1].id, "starting_serial": "010"},  # no approver
            {"pack_id": 9999, "bin_id": bins[2].id},
        ], now=T0)

        assert [r["success"] for r in results] == [True, False, False]
        assert results[0]["result"] == "ACTIVATED"
        assert good.status == pack_service.PACK_STATUS_ACTIVE
        assert bad.status == pack_service.PACK_STATUS_RECEIVED

    def test_resubmission_reports_already_applied(self, db_session, store, game, bins):
        first = make_pack(store, game, "0000020")
        presold = make_pack(store, game, "0000021")
        items = [
            {"pack_id": first.id, "bin_id": bins[0].id},
            {"pack_id": presold.id, "bin_id": bins[1].id, "mark_sold": True,
             "mark_sold_approved_by": 2, "mark_sold_reason": "Bulk sale"},
        ]
        pack_service.activate_packs(items, now=T0)
        again = pack_service.activate_packs(items, now=T0)

        assert [r["result"] for r in again] == ["ALREADY_APPLIED", "ALREADY_APPLIED"]
        assert len(_active_in_bin(db_session, bins[0].id)) == 1

    def test_concurrent_update_fails_only_its_item(self, db_session, store, game, bins, monkeypatch):
        good = make_pack(store, game, "0000030")
        contended = make_pack(store, game, "0000031")
        db_session.commit()
        real_activate = pack_service._activate

        def conflicting(pack_id, bin_id, **kwargs):
            if pack_id == contended.id:
                raise StaleDataError("pack row changed underneath")
            return real_activate(pack_id, bin_id, **kwargs)

        monkeypatch.setattr(pack_service, "_activate", conflicting)
        results = pack_service.activate_packs([
            {"pack_id": good.id, "bin_id": bins[0].id},
            {"pack_id": contended.id, "bin_id": bins[1].id},
        ], now=T0)

        assert [r["success"] for r in results] == [True, False]
        db_session.expire_all()
        assert db_session.get(Pack, good.id).status == pack_service.PACK_STATUS_ACTIVE
        assert db_session.get(Pack, contended.id).status == pack_service.PACK_STATUS_RECEIVED


# =============================================================================
# DEPLETION / MOVES / BINS
# =============================================================================


class TestDepleteAndMove:

    def test_deplete_frees_bin(self, db_session, active_pack, bins):
        pack_service.deplete_pack(active_pack.id, reason=pack_service.DEPLETION_SOLD_OUT, now=T0)
        assert active_pack.status == pack_service.PACK_STATUS_DEPLETED
        assert active_pack.current_bin_id is None
        assert bin_service.get_bin_occupant(bins[0].id) is None

    def test_deplete_in_shift_closes_at_serial_end(self, db_session, store, active_pack):
        shift = shift_service.open_shift(store.id, now=T0)
        pack_service.deplete_pack(active_pack.id, shift_id=shift.id, now=T0)
        closing = db_session.query(ShiftClosing).filter_by(shift_id=shift.id, pack_id=active_pack.id).one()
        assert closing.closing_serial == "149"
        assert active_pack.tickets_sold_count == 150

    def test_deplete_in_shift_with_custom_closing(self, db_session, store, active_pack):
        shift = shift_service.open_shift(store.id, now=T0)
        pack_service.deplete_pack(active_pack.id, shift_id=shift.id, closing_serial="059", now=T0)
        closing = db_session.query(ShiftClosing).filter_by(shift_id=shift.id, pack_id=active_pack.id).one()
        assert closing.closing_serial == "059"
        assert active_pack.tickets_sold_count == 60

    def test_custom_closing_below_shift_start_rejected(self, db_session, store, active_pack):
        shift = shift_service.open_shift(store.id, now=T0)
        shift_service.record_opening(shift.id, active_pack.id, "050", now=T0)
        with pytest.raises(SerialRangeError) as exc:
            pack_service.deplete_pack(active_pack.id, shift_id=shift.id, closing_serial="040")
        assert "below starting serial" in str(exc.value)
        assert active_pack.status == pack_service.PACK_STATUS_ACTIVE

    def test_custom_closing_past_pack_max_rejected(self, db_session, store, active_pack):
        shift = shift_service.open_shift(store.id, now=T0)
        with pytest.raises(SerialRangeError):
            pack_service.deplete_pack(active_pack.id, shift_id=shift.id, closing_serial="150")

    def test_closing_serial_requires_shift(self, db_session, active_pack):
        with pytest.raises(ValidationError):
            pack_service.deplete_pack(active_pack.id, closing_serial="059")

    def test_deplete_in_closed_shift_rejected(self, db_session, store, active_pack):
        shift = shift_service.open_shift(store.id, now=T0)
        shift_service.close_shift(shift.id, now=T0)
        with pytest.raises(ShiftError):
            pack_service.deplete_pack(active_pack.id, shift_id=shift.id)
        assert active_pack.status == pack_service.PACK_STATUS_ACTIVE

    def test_cannot_deplete_received(self, db_session, pack):
        with pytest.raises(PackStateError):
            pack_service.deplete_pack(pack.id)

    def test_depleted_is_terminal(self, db_session, active_pack, bins):
        pack_service.deplete_pack(active_pack.id)
        with pytest.raises(PackStateError):
            pack_service.deplete_pack(active_pack.id)
        with pytest.raises(PackStateError):
            pack_service.activate_pack(active_pack.id, bins[1].id)

    def test_invalid_depletion_reason(self, db_session, active_pack):
        with pytest.raises(ValidationError):
            pack_service.deplete_pack(active_pack.id, reason="LOST")

    def test_move_to_empty_bin(self, db_session, active_pack, bins):
        pack_service.move_pack(active_pack.id, bins[1].id, reason="Reorganised display")
        assert active_pack.current_bin_id == bins[1].id

    def test_move_to_occupied_bin_rejected(self, db_session, store, game, active_pack, bins):
        other = make_pack(store, game, "0054321")
        pack_service.activate_pack(other.id, bins[1].id)
        with pytest.raises(PackStateError):
            pack_service.move_pack(active_pack.id, bins[1].id)

    def test_deactivate_occupied_bin_rejected(self, db_session, active_pack, bins):
        with pytest.raises(PackStateError):
            bin_service.deactivate_bin(bins[0].id)

    def test_can_transition(self):
        assert pack_service.can_transition("RECEIVED", "ACTIVE")
        assert pack_service.can_transition("ACTIVE", "DEPLETED")
        assert not pack_service.can_transition("RECEIVED", "DEPLETED")
        assert not pack_service.can_transition("ACTIVE", "ACTIVE")
        assert not pack_service.can_transition("DEPLETED", "ACTIVE")
