# Overview: Service-layer operations for the pack lifecycle; receive, activate, move and deplete packs.

"""
Pack Lifecycle Service

================================================================================
PURPOSE: Enforce RECEIVED -> ACTIVE -> DEPLETED for lottery packs and keep
bin occupancy consistent
================================================================================

STATE MACHINE:
    RECEIVED -> ACTIVE -> DEPLETED

    RECEIVED: on the shelf, no bin, not for sale
    ACTIVE:   bound to exactly one bin, being sold down
    DEPLETED: terminal, no bin

RULES (NON-NEGOTIABLE):
1. Cannot skip states (RECEIVED -> DEPLETED is forbidden)
2. Cannot reverse states (DEPLETED is terminal)
3. Only one ACTIVE pack per bin. Activation enforces it: a different ACTIVE
   occupant is depleted (AUTO_REPLACED) before the new pack is bound.
4. Pack.current_bin_id is the only occupancy record; it is NULL unless ACTIVE.
5. Starting-serial overrides and pre-sold marks record who approved them.
   Whether that person was allowed to approve is decided by the caller.

Writes are flushed, not committed. The caller owns the transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from lotto.extensions import db
from lotto.models import Pack, Shift, ShiftClosing, ShiftOpening
from lotto.errors import NotFoundError, PackStateError, SerialRangeError, ShiftError, ValidationError
from lotto.services import barcode, serial_math
from lotto.services.bin_service import get_bin, get_bin_occupant
from lotto.services.concurrency import lock_for_update, lock_store, run_with_retry
from lotto.services.game_service import get_game, lookup_game_by_code
from lotto.services.ledger_service import append_event
from lotto.time_utils import utcnow


# Valid lifecycle states (must match models/inventory.py)
PACK_STATUS_RECEIVED = "RECEIVED"
PACK_STATUS_ACTIVE = "ACTIVE"
PACK_STATUS_DEPLETED = "DEPLETED"
VALID_STATUSES = {PACK_STATUS_RECEIVED, PACK_STATUS_ACTIVE, PACK_STATUS_DEPLETED}

DEPLETION_SOLD_OUT = "SOLD_OUT"
DEPLETION_MANUAL = "MANUAL"
DEPLETION_AUTO_REPLACED = "AUTO_REPLACED"
DEPLETION_SOLD_AS_UNIT = "SOLD_AS_UNIT"
VALID_DEPLETION_REASONS = {
    DEPLETION_SOLD_OUT,
    DEPLETION_MANUAL,
    DEPLETION_AUTO_REPLACED,
    DEPLETION_SOLD_AS_UNIT,
}

MAX_MOVE_REASON_LENGTH = 500

# entry_method of a ShiftClosing written by depletion rather than by a scan
CLOSING_ENTRY_DEPLETION = "DEPLETION"


def validate_status(status: str) -> None:
    """
    Raises:
        PackStateError: If status is not in VALID_STATUSES
    """
    if status not in VALID_STATUSES:
        raise PackStateError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}"
        )


def can_transition(from_status: str, to_status: str) -> bool:
    """
    Check if a pack state transition is allowed.

    Valid transitions:
    - RECEIVED -> ACTIVE
    - ACTIVE -> DEPLETED

    Same-state "transitions" are NOT allowed: re-activating an ACTIVE pack
    must be rejected, never silently repeated.
    """
    validate_status(from_status)
    validate_status(to_status)

    valid_transitions = {
        (PACK_STATUS_RECEIVED, PACK_STATUS_ACTIVE),
        (PACK_STATUS_ACTIVE, PACK_STATUS_DEPLETED),
    }
    return (from_status, to_status) in valid_transitions


def _require_transition(pack: Pack, to_status: str, verb: str) -> None:
    if not can_transition(pack.status, to_status):
        raise PackStateError(
            f"Cannot {verb} pack {pack.pack_number} in {pack.status} status"
        )


# =============================================================================
# LOOKUPS
# =============================================================================

def get_pack(pack_id: int) -> Pack:
    pack = db.session.query(Pack).filter_by(id=pack_id).first()
    if not pack:
        raise NotFoundError(f"Pack {pack_id} not found")
    return pack


def find_pack_by_number(store_id: int, pack_number: str) -> Pack | None:
    return db.session.query(Pack).filter_by(store_id=store_id, pack_number=pack_number).first()


def list_packs(store_id: int, status: str | None = None) -> list[Pack]:
    query = db.session.query(Pack).filter_by(store_id=store_id)
    if status is not None:
        validate_status(status)
        query = query.filter_by(status=status)
    return query.order_by(Pack.pack_number).all()


def _lock_pack(pack_id: int) -> Pack:
    pack = lock_for_update(db.session.query(Pack).filter_by(id=pack_id)).first()
    if not pack:
        raise NotFoundError(f"Pack {pack_id} not found")
    return pack


# =============================================================================
# RECEPTION
# =============================================================================

def _validate_serial_range(serial_start: str, serial_end: str) -> tuple[str, str]:
    start = (serial_start or "").strip()
    end = (serial_end or "").strip()
    if serial_math.parse_serial(start) is None:
        raise ValidationError("serial_start must contain only numeric characters")
    if serial_math.parse_serial(end) is None:
        raise ValidationError("serial_end must contain only numeric characters")
    if len(start) != len(end):
        raise ValidationError("serial_start and serial_end must have the same number of digits")
    if serial_math.parse_serial(end) < serial_math.parse_serial(start):
        raise ValidationError("serial_end must not be less than serial_start")
    return start, end


def receive_pack(
    store_id: int,
    game_id: int,
    pack_number: str,
    serial_start: str,
    serial_end: str,
    *,
    actor_user_id: int | None = None,
    now: datetime | None = None,
) -> Pack:
    """
    Intake a pack (status RECEIVED, no bin).

    Raises:
        ValidationError: bad serials or pack_number already used in the store
        NotFoundError: unknown game
    """
    now = now or utcnow()
    normalized_number = (pack_number or "").strip()
    if not normalized_number:
        raise ValidationError("pack_number is required")
    start, end = _validate_serial_range(serial_start, serial_end)

    def _op():
        lock_store(store_id)
        game = get_game(game_id)

        if find_pack_by_number(store_id, normalized_number):
            raise ValidationError(f"Pack {normalized_number} already exists in this store")

        pack = Pack(
            store_id=store_id,
            game_id=game.id,
            pack_number=normalized_number,
            serial_start=start,
            serial_end=end,
            status=PACK_STATUS_RECEIVED,
            received_at=now,
        )
        db.session.add(pack)
        db.session.flush()

        append_event(
            store_id=store_id,
            event_type="pack.received",
            entity_type="pack",
            entity_id=pack.id,
            actor_user_id=actor_user_id,
            occurred_at=now,
            note=f"Pack {pack.pack_number} received",
            payload={"serial_start": start, "serial_end": end, "game_id": game.id},
        )
        return pack

    return run_with_retry(_op)


@dataclass
class BatchReceiveResult:
    created: list[Pack] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "created": [p.to_dict() for p in self.created],
            "duplicates": list(self.duplicates),
            "errors": list(self.errors),
        }


def receive_packs_from_barcodes(
    store_id: int,
    barcodes: Iterable[str],
    *,
    actor_user_id: int | None = None,
    now: datetime | None = None,
) -> BatchReceiveResult:
    """
    Batch intake from scanned 24-digit codes.

    Each code yields game (first 4 digits), pack number and the first
    ticket serial; the range spans the game's tickets_per_pack. Bad codes and
    duplicates are collected per code instead of failing the batch.
    """
    now = now or utcnow()
    result = BatchReceiveResult()
    seen: set[str] = set()
    default_count = current_app.config.get("DEFAULT_TICKETS_PER_PACK", 150)

    def _op():
        lock_store(store_id)
        for code in barcodes:
            try:
                ticket = barcode.parse_barcode(code)
            except ValidationError as e:
                result.errors.append({"barcode": code, "error": str(e)})
                continue

            if ticket.pack_number in seen or find_pack_by_number(store_id, ticket.pack_number):
                result.duplicates.append(code)
                continue
            seen.add(ticket.pack_number)

            try:
                game = lookup_game_by_code(ticket.game_code)
            except NotFoundError as e:
                result.errors.append({"barcode": code, "error": str(e)})
                continue

            count = game.tickets_per_pack or default_count
            width = len(ticket.ticket_number)
            serial_end = serial_math.format_serial(int(ticket.ticket_number) + count - 1, width)
            if len(serial_end) > width:
                result.errors.append({
                    "barcode": code,
                    "error": f"Pack of {count} tickets starting at {ticket.ticket_number} overflows the serial format",
                })
                continue

            pack = Pack(
                store_id=store_id,
                game_id=game.id,
                pack_number=ticket.pack_number,
                serial_start=ticket.ticket_number,
                serial_end=serial_end,
                status=PACK_STATUS_RECEIVED,
                received_at=now,
            )
            db.session.add(pack)
            db.session.flush()
            result.created.append(pack)

            append_event(
                store_id=store_id,
                event_type="pack.received",
                entity_type="pack",
                entity_id=pack.id,
                actor_user_id=actor_user_id,
                occurred_at=now,
                note=f"Pack {pack.pack_number} received via batch",
                payload={"barcode": code},
            )
        return result

    return run_with_retry(_op)


# =============================================================================
# ACTIVATION
# =============================================================================

@dataclass
class ActivationResult:
    pack: Pack
    replaced_pack: Pack | None = None

    def to_dict(self) -> dict:
        return {
            "pack": self.pack.to_dict(),
            "replaced_pack": self.replaced_pack.to_dict() if self.replaced_pack else None,
        }


def _resolve_starting_serial(
    pack: Pack,
    starting_serial: str | None,
    approved_by: int | None,
) -> tuple[str, bool]:
    """
    Returns (serial, is_override).

    Raises:
        ValidationError: override without approver or bad format
        SerialRangeError: override outside the pack
    """
    if starting_serial is None or starting_serial.strip() == pack.serial_start:
        return pack.serial_start, False

    serial = starting_serial.strip()
    if serial_math.parse_serial(serial) is None or len(serial) != len(pack.serial_start):
        raise ValidationError(
            f"Starting serial must be {len(pack.serial_start)} digits (got '{starting_serial}')"
        )
    if approved_by is None:
        raise ValidationError(
            f"Starting serial override ({serial} instead of {pack.serial_start}) requires an approver"
        )
    value = serial_math.parse_serial(serial)
    if value < serial_math.parse_serial(pack.serial_start):
        raise SerialRangeError(serial, SerialRangeError.BELOW_START, pack.serial_start, pack.pack_number)
    if value > serial_math.parse_serial(pack.serial_end):
        raise SerialRangeError(serial, SerialRangeError.ABOVE_MAX, pack.serial_end, pack.pack_number)
    return serial, True


def _get_open_store_shift(shift_id: int, store_id: int) -> Shift:
    shift = db.session.query(Shift).filter_by(id=shift_id).first()
    if not shift or shift.store_id != store_id:
        raise NotFoundError(f"Shift {shift_id} not found")
    if shift.status != "OPEN":
        raise ShiftError(f"Shift {shift_id} is closed")
    return shift


def _record_depletion_closing(
    pack: Pack,
    shift: Shift,
    closing_serial: str | None,
    now: datetime,
) -> ShiftClosing:
    """
    Record the last serial sold from a pack that leaves sale mid-shift.

    Defaults to serial_end. A closing already scanned in this shift is kept
    as long as no different serial is supplied.

    Raises:
        ShiftError: a different closing is already recorded in the shift
        ValidationError: serial of the wrong width
        SerialRangeError: below the shift's starting serial or above serial_end
    """
    # shift_service imports this module
    from lotto.services.shift_service import get_closing, shift_starting_serial

    existing = get_closing(shift.id, pack.id)
    if existing is not None:
        if closing_serial is not None and closing_serial.strip() != existing.closing_serial:
            raise ShiftError(
                f"Closing {existing.closing_serial} already recorded for pack {pack.pack_number} in shift {shift.id}"
            )
        return existing

    serial = (closing_serial if closing_serial is not None else pack.serial_end).strip()
    if len(serial) != len(pack.serial_end):
        raise ValidationError(f"Closing serial must be {len(pack.serial_end)} digits (got '{closing_serial}')")
    barcode.validate_ending_serial(
        serial,
        starting_serial=shift_starting_serial(shift, pack),
        serial_end=pack.serial_end,
        pack_number=pack.pack_number,
    )

    closing = ShiftClosing(
        shift_id=shift.id,
        pack_id=pack.id,
        closing_serial=serial,
        entry_method=CLOSING_ENTRY_DEPLETION,
        recorded_at=now,
    )
    db.session.add(closing)
    refresh_tickets_sold(pack, serial)
    db.session.flush()
    return closing


def _deplete(
    pack: Pack,
    *,
    reason: str,
    actor_user_id: int | None,
    now: datetime,
    shift: Shift | None = None,
    closing_serial: str | None = None,
) -> Pack:
    closing = None
    if shift is not None:
        closing = _record_depletion_closing(pack, shift, closing_serial, now)

    previous_bin_id = pack.current_bin_id
    pack.status = PACK_STATUS_DEPLETED
    pack.depleted_at = now
    pack.depleted_by = actor_user_id
    pack.depletion_reason = reason
    pack.current_bin_id = None
    db.session.flush()

    append_event(
        store_id=pack.store_id,
        event_type="pack.depleted",
        entity_type="pack",
        entity_id=pack.id,
        actor_user_id=actor_user_id,
        occurred_at=now,
        note=f"Pack {pack.pack_number} depleted ({reason})",
        payload={
            "reason": reason,
            "bin_id": previous_bin_id,
            "shift_id": shift.id if shift is not None else None,
            "closing_serial": closing.closing_serial if closing is not None else None,
        },
    )
    return pack


def activate_pack(
    pack_id: int,
    bin_id: int,
    *,
    actor_user_id: int | None = None,
    starting_serial: str | None = None,
    serial_override_approved_by: int | None = None,
    serial_override_reason: str | None = None,
    shift_id: int | None = None,
    mark_sold: bool = False,
    mark_sold_approved_by: int | None = None,
    mark_sold_reason: str | None = None,
    now: datetime | None = None,
) -> ActivationResult:
    """
    Activate a RECEIVED pack into a bin (RECEIVED -> ACTIVE).

    If the bin already holds a different ACTIVE pack, that pack is depleted
    (AUTO_REPLACED) and unbound first, inside the same store lock.

    Pre-sold (mark_sold=True): the pack is activated and immediately depleted
    as SOLD_AS_UNIT. It never takes the bin, so the current occupant stays.

    Args:
        pack_id: Pack to activate
        bin_id: Target bin (same store, active)
        actor_user_id: Who performed the activation
        starting_serial: Override of serial_start; needs serial_override_approved_by
        shift_id: Open shift to record the activation serial as a ShiftOpening
        mark_sold: Sell the whole pack as one unit; needs approver and reason

    Raises:
        PackStateError: pack not RECEIVED
        ValidationError: bin unusable, missing approver, bad override format
        SerialRangeError: override outside the pack
    """
    now = now or utcnow()
    return run_with_retry(lambda: _activate(
        pack_id,
        bin_id,
        actor_user_id=actor_user_id,
        starting_serial=starting_serial,
        serial_override_approved_by=serial_override_approved_by,
        serial_override_reason=serial_override_reason,
        shift_id=shift_id,
        mark_sold=mark_sold,
        mark_sold_approved_by=mark_sold_approved_by,
        mark_sold_reason=mark_sold_reason,
        now=now,
    ))


def _activate(
    pack_id: int,
    bin_id: int,
    *,
    actor_user_id: int | None,
    starting_serial: str | None,
    serial_override_approved_by: int | None,
    serial_override_reason: str | None,
    shift_id: int | None,
    mark_sold: bool,
    mark_sold_approved_by: int | None,
    mark_sold_reason: str | None,
    now: datetime,
) -> ActivationResult:
    """One activation attempt under the store lock, without retry."""
    lock_store(get_pack(pack_id).store_id)
    pack = _lock_pack(pack_id)
    _require_transition(pack, PACK_STATUS_ACTIVE, "activate")

    bin_ = get_bin(bin_id)
    if bin_.store_id != pack.store_id:
        raise ValidationError("Pack and bin must belong to the same store")
    if not bin_.is_active:
        raise ValidationError(f"Bin {bin_.name} is not active")

    serial, is_override = _resolve_starting_serial(pack, starting_serial, serial_override_approved_by)

    if mark_sold:
        if mark_sold_approved_by is None:
            raise ValidationError("Marking a pack as pre-sold requires an approver")
        if not (mark_sold_reason or "").strip():
            raise ValidationError("Marking a pack as pre-sold requires a reason")

    shift = _get_open_store_shift(shift_id, pack.store_id) if shift_id is not None else None

    replaced = None
    if not mark_sold:
        occupant = get_bin_occupant(bin_.id)
        if occupant is not None and occupant.id != pack.id:
            # the outgoing pack is closed at serial_end in the activating shift
            replaced = _deplete(
                occupant,
                reason=DEPLETION_AUTO_REPLACED,
                actor_user_id=actor_user_id,
                now=now,
                shift=shift,
            )
            current_app.logger.info(
                "Pack %s auto-depleted from bin %s by activation of pack %s",
                occupant.pack_number, bin_.id, pack.pack_number,
            )

    pack.status = PACK_STATUS_ACTIVE
    pack.current_bin_id = None if mark_sold else bin_.id
    pack.activated_at = now
    pack.activated_by = actor_user_id
    pack.activation_serial = serial
    if is_override:
        pack.serial_override_approved_by = serial_override_approved_by
        pack.serial_override_reason = serial_override_reason
    db.session.flush()

    if shift is not None:
        db.session.add(ShiftOpening(
            shift_id=shift.id,
            pack_id=pack.id,
            opening_serial=serial,
            recorded_at=now,
        ))
        db.session.flush()

    append_event(
        store_id=pack.store_id,
        event_type="pack.activated",
        entity_type="pack",
        entity_id=pack.id,
        actor_user_id=actor_user_id,
        occurred_at=now,
        note=f"Pack {pack.pack_number} activated in bin {bin_.name}",
        payload={
            "bin_id": bin_.id,
            "starting_serial": serial,
            "serial_override_approved_by": serial_override_approved_by if is_override else None,
            "replaced_pack_id": replaced.id if replaced else None,
        },
    )

    if mark_sold:
        pack.sold_as_unit = True
        pack.mark_sold_approved_by = mark_sold_approved_by
        pack.mark_sold_reason = mark_sold_reason.strip()
        pack.tickets_sold_count = serial_math.tickets_sold(serial, pack.serial_end)
        _deplete(pack, reason=DEPLETION_SOLD_AS_UNIT, actor_user_id=actor_user_id, now=now)

    return ActivationResult(pack=pack, replaced_pack=replaced)


def activate_packs(
    items: Iterable[dict],
    *,
    actor_user_id: int | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """
    Activate several packs sequentially, each in its own savepoint.

    One failing item does not undo the others. Items are not retried: a
    concurrency conflict fails only its own item. An item whose pack is
    already ACTIVE in the requested bin (or already sold as a unit when
    mark_sold is requested) is reported as "ALREADY_APPLIED" so a client can
    resubmit the whole batch after a partial failure.

    Each item: {"pack_id", "bin_id", optional activate_pack keyword args}.
    """
    now = now or utcnow()
    results = []
    for item in items:
        pack_id = item.get("pack_id")
        bin_id = item.get("bin_id")
        try:
            pack = get_pack(pack_id)
            if _already_applied(pack, item):
                results.append({"pack_id": pack_id, "success": True, "result": "ALREADY_APPLIED"})
                continue

            with db.session.begin_nested():
                activation = _activate(
                    pack_id,
                    bin_id,
                    actor_user_id=actor_user_id,
                    starting_serial=item.get("starting_serial"),
                    serial_override_approved_by=item.get("serial_override_approved_by"),
                    serial_override_reason=item.get("serial_override_reason"),
                    shift_id=item.get("shift_id"),
                    mark_sold=bool(item.get("mark_sold")),
                    mark_sold_approved_by=item.get("mark_sold_approved_by"),
                    mark_sold_reason=item.get("mark_sold_reason"),
                    now=now,
                )
            results.append({
                "pack_id": pack_id,
                "success": True,
                "result": "ACTIVATED",
                "replaced_pack_id": activation.replaced_pack.id if activation.replaced_pack else None,
            })
        except ValueError as e:
            results.append({"pack_id": pack_id, "success": False, "error": str(e)})
        except (OperationalError, StaleDataError) as e:
            current_app.logger.warning("Batch activation of pack %s hit a concurrent update: %s", pack_id, e)
            results.append({"pack_id": pack_id, "success": False, "error": "Concurrent update, resubmit this item"})
    return results


def _already_applied(pack: Pack, item: dict) -> bool:
    if item.get("mark_sold"):
        return pack.status == PACK_STATUS_DEPLETED and pack.sold_as_unit
    return pack.status == PACK_STATUS_ACTIVE and pack.current_bin_id == item.get("bin_id")


# =============================================================================
# DEPLETION / MOVES
# =============================================================================

def deplete_pack(
    pack_id: int,
    *,
    actor_user_id: int | None = None,
    reason: str = DEPLETION_MANUAL,
    shift_id: int | None = None,
    closing_serial: str | None = None,
    now: datetime | None = None,
) -> Pack:
    """
    Deplete an ACTIVE pack (ACTIVE -> DEPLETED) and free its bin.

    With shift_id, the pack's last sold serial is recorded as a closing in
    that open shift: closing_serial when given (range-checked), else
    serial_end. Without a shift nothing is recorded, so the day only counts
    closings scanned earlier.

    Raises:
        PackStateError: pack not ACTIVE (e.g. still RECEIVED, already DEPLETED)
        ValidationError: closing_serial without shift_id, bad serial format
        ShiftError: shift closed, or a different closing already recorded
        SerialRangeError: closing_serial outside the pack's remaining range
    """
    if reason not in VALID_DEPLETION_REASONS:
        raise ValidationError(
            f"Invalid depletion reason '{reason}'. Must be one of: {', '.join(sorted(VALID_DEPLETION_REASONS))}"
        )
    if closing_serial is not None and shift_id is None:
        raise ValidationError("closing_serial requires a shift_id")
    now = now or utcnow()
    store_id = get_pack(pack_id).store_id

    def _op():
        lock_store(store_id)
        pack = _lock_pack(pack_id)
        _require_transition(pack, PACK_STATUS_DEPLETED, "deplete")
        shift = _get_open_store_shift(shift_id, pack.store_id) if shift_id is not None else None
        return _deplete(
            pack,
            reason=reason,
            actor_user_id=actor_user_id,
            now=now,
            shift=shift,
            closing_serial=closing_serial,
        )

    return run_with_retry(_op)


def move_pack(
    pack_id: int,
    bin_id: int,
    *,
    actor_user_id: int | None = None,
    reason: str | None = None,
    now: datetime | None = None,
) -> Pack:
    """
    Move an ACTIVE pack to another empty bin of the same store.

    Day totals are keyed by pack, so a move mid-day keeps the pack's serial
    history intact; only the display bin changes.
    """
    if reason is not None and len(reason) > MAX_MOVE_REASON_LENGTH:
        raise ValidationError(f"Reason must be {MAX_MOVE_REASON_LENGTH} characters or fewer")
    now = now or utcnow()
    store_id = get_pack(pack_id).store_id

    def _op():
        lock_store(store_id)
        pack = _lock_pack(pack_id)
        if pack.status != PACK_STATUS_ACTIVE:
            raise PackStateError(f"Cannot move pack {pack.pack_number} in {pack.status} status")

        target = get_bin(bin_id)
        if target.store_id != pack.store_id:
            raise ValidationError("Pack and bin must belong to the same store")
        if not target.is_active:
            raise ValidationError(f"Bin {target.name} is not active")
        if pack.current_bin_id == target.id:
            return pack

        occupant = get_bin_occupant(target.id)
        if occupant is not None:
            raise PackStateError(f"Bin {target.name} is occupied by pack {occupant.pack_number}")

        from_bin_id = pack.current_bin_id
        pack.current_bin_id = target.id
        db.session.flush()

        append_event(
            store_id=pack.store_id,
            event_type="pack.moved",
            entity_type="pack",
            entity_id=pack.id,
            actor_user_id=actor_user_id,
            occurred_at=now,
            note=reason,
            payload={"from_bin_id": from_bin_id, "to_bin_id": target.id},
        )
        return pack

    return run_with_retry(_op)


def refresh_tickets_sold(pack: Pack, closing_serial: str) -> int:
    """Recompute the tickets_sold_count cache from the latest closing serial."""
    pack.tickets_sold_count = serial_math.tickets_sold(pack.starting_serial, closing_serial)
    return pack.tickets_sold_count
