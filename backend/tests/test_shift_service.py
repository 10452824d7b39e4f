"""
Shift serial capture tests.

Verifies:
- Openings default to the previous closing, else the pack start
- Closings accept a bare serial or a 24-digit scan
- Wrong pack, range and manual-entry rules
- Closed shifts are frozen
"""

from datetime import timedelta

import pytest

from lotto.errors import ManualEntryError, SerialRangeError, ShiftError, ValidationError, WrongPackError
from lotto.models import LedgerEvent
from lotto.services import pack_service, shift_service

from conftest import T0, barcode_for, make_pack


@pytest.fixture
def pack_001_150(db_session, store, game, bins):
    """ACTIVE pack with serials 001-150."""
    pack = make_pack(store, game, "0012345", "001", "150")
    pack_service.activate_pack(pack.id, bins[0].id, now=T0)
    db_session.commit()
    return pack


@pytest.fixture
def shift(db_session, store):
    shift = shift_service.open_shift(store.id, cashier_id=3, now=T0)
    db_session.commit()
    return shift


class TestOpenings:

    def test_opening_defaults_to_pack_start(self, db_session, shift, pack_001_150):
        opening = shift_service.record_opening(shift.id, pack_001_150.id, now=T0)
        assert opening.opening_serial == "001"

    def test_opening_defaults_to_previous_closing(self, db_session, store, shift, pack_001_150):
        shift_service.record_closing(shift.id, pack_001_150.id, closing_serial="030", now=T0)
        shift_service.close_shift(shift.id, now=T0 + timedelta(hours=8))

        next_shift = shift_service.open_shift(store.id, now=T0 + timedelta(hours=8))
        opening = shift_service.record_opening(next_shift.id, pack_001_150.id)
        assert opening.opening_serial == "030"

    def test_opening_outside_pack_rejected(self, db_session, shift, pack_001_150):
        with pytest.raises(ValidationError):
            shift_service.record_opening(shift.id, pack_001_150.id, "151")

    def test_duplicate_opening_rejected(self, db_session, shift, pack_001_150):
        shift_service.record_opening(shift.id, pack_001_150.id, "045")
        with pytest.raises(ShiftError):
            shift_service.record_opening(shift.id, pack_001_150.id, "046")


class TestClosings:

    def test_opens_045_closes_067_sells_23(self, db_session, shift, pack_001_150):
        shift_service.record_opening(shift.id, pack_001_150.id, "045")
        preview = shift_service.preview_closing(
            shift.id, pack_001_150.id, scanned_code=barcode_for("1234", "0012345", "067"),
        )
        assert preview["tickets_sold"] == 23
        assert preview["sales_amount_cents"] == 23 * 500

    def test_scanned_wrong_pack(self, db_session, shift, pack_001_150):
        shift_service.record_opening(shift.id, pack_001_150.id, "045")
        with pytest.raises(WrongPackError):
            shift_service.record_closing(
                shift.id, pack_001_150.id, scanned_code=barcode_for("1234", "9999999", "067"),
            )

    def test_closing_at_pack_max_valid(self, db_session, shift, pack_001_150):
        closing = shift_service.record_closing(shift.id, pack_001_150.id, closing_serial="150")
        assert closing.closing_serial == "150"

    def test_closing_past_pack_max(self, db_session, shift, pack_001_150):
        with pytest.raises(SerialRangeError) as exc:
            shift_service.record_closing(shift.id, pack_001_150.id, closing_serial="151")
        assert "exceeds pack maximum" in str(exc.value)

    def test_closing_below_opening(self, db_session, shift, pack_001_150):
        shift_service.record_opening(shift.id, pack_001_150.id, "045")
        with pytest.raises(SerialRangeError) as exc:
            shift_service.record_closing(shift.id, pack_001_150.id, closing_serial="044")
        assert "below starting serial" in str(exc.value)

    def test_closing_needs_exactly_one_input(self, db_session, shift, pack_001_150):
        with pytest.raises(ValidationError):
            shift_service.record_closing(shift.id, pack_001_150.id)
        with pytest.raises(ValidationError):
            shift_service.record_closing(
                shift.id, pack_001_150.id,
                closing_serial="050", scanned_code=barcode_for("1234", "0012345", "050"),
            )

    def test_closing_width_must_match_pack(self, db_session, shift, pack_001_150):
        with pytest.raises(ValidationError):
            shift_service.record_closing(shift.id, pack_001_150.id, closing_serial="50")

    def test_closing_refreshes_tickets_sold_cache(self, db_session, shift, pack_001_150):
        shift_service.record_closing(shift.id, pack_001_150.id, closing_serial="067")
        assert pack_001_150.tickets_sold_count == 67

    def test_duplicate_closing_rejected(self, db_session, shift, pack_001_150):
        shift_service.record_closing(shift.id, pack_001_150.id, closing_serial="050")
        with pytest.raises(ShiftError):
            shift_service.record_closing(shift.id, pack_001_150.id, closing_serial="060")


class TestManualEntry:

    def test_manual_requires_authorizer(self, db_session, shift, pack_001_150):
        with pytest.raises(ManualEntryError):
            shift_service.record_closing(
                shift.id, pack_001_150.id, closing_serial="050",
                entry_method=shift_service.ENTRY_METHOD_MANUAL,
            )

    def test_manual_with_authorizer_is_audited(self, db_session, shift, pack_001_150):
        closing = shift_service.record_closing(
            shift.id, pack_001_150.id, closing_serial="050",
            entry_method=shift_service.ENTRY_METHOD_MANUAL,
            manual_entry_authorized_by=9,
        )
        assert closing.manual_entry_authorized_by == 9
        event = db_session.query(LedgerEvent).filter_by(event_type="shift.manual_closing").one()
        assert event.actor_user_id == 9

    def test_unknown_entry_method(self, db_session, shift, pack_001_150):
        with pytest.raises(ValidationError):
            shift_service.record_closing(
                shift.id, pack_001_150.id, closing_serial="050", entry_method="VOICE",
            )


class TestCloseShift:

    def test_closed_shift_is_frozen(self, db_session, shift, pack_001_150):
        shift_service.close_shift(shift.id, now=T0 + timedelta(hours=8))
        assert shift.status == shift_service.SHIFT_STATUS_CLOSED
        with pytest.raises(ShiftError):
            shift_service.record_closing(shift.id, pack_001_150.id, closing_serial="050")
        with pytest.raises(ShiftError):
            shift_service.close_shift(shift.id)

    def test_open_shifts_listed(self, db_session, store, shift):
        assert [s.id for s in shift_service.get_open_shifts(store.id)] == [shift.id]
