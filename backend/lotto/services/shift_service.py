"""
Shift serial capture.

WHY: Sales are never rung up ticket by ticket. A shift's sales for a pack are
inferred from the serial it opened at and the serial on the last ticket
scanned when it closed, so these rows are the whole evidence trail.

DESIGN PRINCIPLES:
- One ShiftOpening and at most one ShiftClosing per (shift, pack)
- Rows are append-only and frozen once the shift is CLOSED
- Closing serials come from a scanner; MANUAL entry needs an authorizer
- Identity (wrong pack) is checked before range
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from lotto.extensions import db
from lotto.models import Pack, Shift, ShiftClosing, ShiftOpening
from lotto.errors import ManualEntryError, NotFoundError, PackStateError, ShiftError, ValidationError
from lotto.services import barcode, serial_math
from lotto.services.concurrency import lock_for_update, run_with_retry
from lotto.services.ledger_service import append_event
from lotto.services.pack_service import PACK_STATUS_ACTIVE, get_pack, refresh_tickets_sold
from lotto.time_utils import utcnow


SHIFT_STATUS_OPEN = "OPEN"
SHIFT_STATUS_CLOSED = "CLOSED"

ENTRY_METHOD_SCAN = "SCAN"
ENTRY_METHOD_MANUAL = "MANUAL"
VALID_ENTRY_METHODS = {ENTRY_METHOD_SCAN, ENTRY_METHOD_MANUAL}


def open_shift(store_id: int, cashier_id: int | None = None, *, now: datetime | None = None) -> Shift:
    now = now or utcnow()
    shift = Shift(
        store_id=store_id,
        cashier_id=cashier_id,
        status=SHIFT_STATUS_OPEN,
        opened_at=now,
    )
    db.session.add(shift)
    db.session.flush()

    append_event(
        store_id=store_id,
        event_type="shift.opened",
        entity_type="shift",
        entity_id=shift.id,
        actor_user_id=cashier_id,
        occurred_at=now,
    )
    return shift


def get_shift(shift_id: int) -> Shift:
    shift = db.session.query(Shift).filter_by(id=shift_id).first()
    if not shift:
        raise NotFoundError(f"Shift {shift_id} not found")
    return shift


def _get_open_shift(shift_id: int) -> Shift:
    shift = lock_for_update(db.session.query(Shift).filter_by(id=shift_id)).first()
    if not shift:
        raise NotFoundError(f"Shift {shift_id} not found")
    if shift.status != SHIFT_STATUS_OPEN:
        raise ShiftError(f"Shift {shift_id} is closed; its serial records are frozen")
    return shift


def _require_store_pack(shift: Shift, pack: Pack) -> None:
    if pack.store_id != shift.store_id:
        raise ValidationError("Pack and shift must belong to the same store")


def get_opening(shift_id: int, pack_id: int) -> ShiftOpening | None:
    return db.session.query(ShiftOpening).filter_by(shift_id=shift_id, pack_id=pack_id).first()


def get_closing(shift_id: int, pack_id: int) -> ShiftClosing | None:
    return db.session.query(ShiftClosing).filter_by(shift_id=shift_id, pack_id=pack_id).first()


def latest_closing_before(pack_id: int, shift: Shift) -> ShiftClosing | None:
    """Most recent closing of the pack in a shift opened before ``shift``."""
    return (
        db.session.query(ShiftClosing)
        .join(Shift, ShiftClosing.shift_id == Shift.id)
        .filter(ShiftClosing.pack_id == pack_id)
        .filter(Shift.opened_at < shift.opened_at)
        .order_by(Shift.opened_at.desc(), Shift.id.desc())
        .first()
    )


def shift_starting_serial(shift: Shift, pack: Pack) -> str:
    """
    Serial this shift started selling the pack at: its own opening,
    else the previous shift's closing, else the pack's starting serial.
    """
    opening = get_opening(shift.id, pack.id)
    if opening:
        return opening.opening_serial
    previous = latest_closing_before(pack.id, shift)
    if previous:
        return previous.closing_serial
    return pack.starting_serial


def record_opening(
    shift_id: int,
    pack_id: int,
    opening_serial: str | None = None,
    *,
    now: datetime | None = None,
) -> ShiftOpening:
    """
    Record where the shift starts on a pack.

    Without an explicit serial the continuity rule is used (previous
    closing, else pack start).
    """
    now = now or utcnow()

    def _op():
        shift = _get_open_shift(shift_id)
        pack = get_pack(pack_id)
        _require_store_pack(shift, pack)
        if pack.status != PACK_STATUS_ACTIVE:
            raise PackStateError(f"Cannot open pack {pack.pack_number} in {pack.status} status")
        if get_opening(shift.id, pack.id):
            raise ShiftError(f"Opening already recorded for pack {pack.pack_number} in shift {shift.id}")

        serial = opening_serial.strip() if opening_serial is not None else shift_starting_serial(shift, pack)
        if not serial_math.is_within_pack(serial, pack.serial_start, pack.serial_end):
            raise ValidationError(
                f"Opening serial {serial} is outside pack range {pack.serial_start}-{pack.serial_end}"
            )

        opening = ShiftOpening(
            shift_id=shift.id,
            pack_id=pack.id,
            opening_serial=serial,
            recorded_at=now,
        )
        db.session.add(opening)
        db.session.flush()
        return opening

    return run_with_retry(_op)


def resolve_closing_serial(
    shift: Shift,
    pack: Pack,
    *,
    closing_serial: str | None = None,
    scanned_code: str | None = None,
) -> str:
    """
    Validate a candidate closing serial for a pack within a shift.

    A 24-digit scanned code is checked for pack identity first, then its
    ticket number for range. A bare serial is range-checked only.

    Raises:
        ValidationError: neither/both inputs, malformed code or serial
        WrongPackError: scanned pack number belongs to another pack
        SerialRangeError: below the shift's starting serial or above serial_end
    """
    if (closing_serial is None) == (scanned_code is None):
        raise ValidationError("Provide exactly one of closing_serial or scanned_code")

    starting = shift_starting_serial(shift, pack)
    if scanned_code is not None:
        ticket = barcode.parse_barcode(scanned_code)
        return barcode.validate_scan_for_pack(
            ticket,
            pack_number=pack.pack_number,
            starting_serial=starting,
            serial_end=pack.serial_end,
        )

    serial = closing_serial.strip()
    if len(serial) != len(pack.serial_end):
        raise ValidationError(f"Closing serial must be {len(pack.serial_end)} digits (got '{closing_serial}')")
    return barcode.validate_ending_serial(
        serial,
        starting_serial=starting,
        serial_end=pack.serial_end,
        pack_number=pack.pack_number,
    )


def record_closing(
    shift_id: int,
    pack_id: int,
    *,
    closing_serial: str | None = None,
    scanned_code: str | None = None,
    entry_method: str = ENTRY_METHOD_SCAN,
    manual_entry_authorized_by: int | None = None,
    now: datetime | None = None,
) -> ShiftClosing:
    """
    Record the last-ticket serial of a pack at the end of a shift.

    SCAN entries are expected to have passed the scan classifier at the
    input surface. MANUAL entries are the supervised override path and must
    name who authorized them.

    Raises:
        ManualEntryError: MANUAL entry without an authorizer
        ShiftError: shift closed, or closing already recorded
        WrongPackError / SerialRangeError: see resolve_closing_serial
    """
    if entry_method not in VALID_ENTRY_METHODS:
        raise ValidationError(f"entry_method must be one of: {', '.join(sorted(VALID_ENTRY_METHODS))}")
    if entry_method == ENTRY_METHOD_MANUAL and manual_entry_authorized_by is None:
        raise ManualEntryError("Manual serial entry requires an authorizing manager")
    now = now or utcnow()

    def _op():
        shift = _get_open_shift(shift_id)
        pack = get_pack(pack_id)
        _require_store_pack(shift, pack)
        if pack.status != PACK_STATUS_ACTIVE:
            raise PackStateError(f"Cannot close pack {pack.pack_number} in {pack.status} status")
        if get_closing(shift.id, pack.id):
            raise ShiftError(f"Closing already recorded for pack {pack.pack_number} in shift {shift.id}")

        serial = resolve_closing_serial(shift, pack, closing_serial=closing_serial, scanned_code=scanned_code)

        closing = ShiftClosing(
            shift_id=shift.id,
            pack_id=pack.id,
            closing_serial=serial,
            entry_method=entry_method,
            manual_entry_authorized_by=manual_entry_authorized_by if entry_method == ENTRY_METHOD_MANUAL else None,
            recorded_at=now,
        )
        db.session.add(closing)
        refresh_tickets_sold(pack, serial)
        db.session.flush()

        if entry_method == ENTRY_METHOD_MANUAL:
            current_app.logger.info(
                "Manual closing serial %s for pack %s authorized by %s",
                serial, pack.pack_number, manual_entry_authorized_by,
            )
            append_event(
                store_id=shift.store_id,
                event_type="shift.manual_closing",
                entity_type="shift_closing",
                entity_id=closing.id,
                actor_user_id=manual_entry_authorized_by,
                occurred_at=now,
                payload={"pack_id": pack.id, "closing_serial": serial},
            )
        return closing

    return run_with_retry(_op)


def preview_closing(
    shift_id: int,
    pack_id: int,
    *,
    closing_serial: str | None = None,
    scanned_code: str | None = None,
) -> dict:
    """
    Tickets and sales a closing would produce, without writing anything.
    """
    shift = get_shift(shift_id)
    pack = get_pack(pack_id)
    _require_store_pack(shift, pack)

    serial = resolve_closing_serial(shift, pack, closing_serial=closing_serial, scanned_code=scanned_code)
    starting = shift_starting_serial(shift, pack)
    sold = serial_math.tickets_sold(starting, serial)
    return {
        "shift_id": shift.id,
        "pack_id": pack.id,
        "pack_number": pack.pack_number,
        "starting_serial": starting,
        "closing_serial": serial,
        "tickets_sold": sold,
        "sales_amount_cents": serial_math.sales_amount_cents(sold, pack.game.price_cents),
    }


def close_shift(shift_id: int, *, actor_user_id: int | None = None, now: datetime | None = None) -> Shift:
    """
    Close a shift (OPEN -> CLOSED). Its openings/closings freeze.
    """
    now = now or utcnow()

    def _op():
        shift = _get_open_shift(shift_id)
        shift.status = SHIFT_STATUS_CLOSED
        shift.closed_at = now
        db.session.flush()

        append_event(
            store_id=shift.store_id,
            event_type="shift.closed",
            entity_type="shift",
            entity_id=shift.id,
            actor_user_id=actor_user_id,
            occurred_at=now,
            payload={"closings": len(shift.closings)},
        )
        return shift

    return run_with_retry(_op)


def get_open_shifts(store_id: int) -> list[Shift]:
    return db.session.query(Shift).filter_by(
        store_id=store_id,
        status=SHIFT_STATUS_OPEN,
    ).order_by(Shift.opened_at).all()
