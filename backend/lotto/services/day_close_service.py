# Overview: Day-close aggregation, variance creation and the two-phase lottery day close.

"""
Lottery Day Close Service

================================================================================
PURPOSE: Reconcile a store's business day from shift serial records
================================================================================

AGGREGATION (read-only, idempotent):
    compute_day_summary() loads the store's shift/opening/closing history,
    runs the business-day resolver and joins each active bin to the pack it
    currently holds. Output: per-bin starting/ending serial, tickets sold,
    sales, the store total and the bins still waiting for a closing scan.

VARIANCES:
    close_day() compares externally counted ticket figures against the
    serial-derived ones and writes one unresolved Variance per mismatch.
    Running it twice for the same day does not duplicate rows.

TWO-PHASE CLOSE:
    1. prepare_close(): validate the closing scans of the last open shift
       and park them on the BusinessDay as PENDING_CLOSE (with expiry)
    2. commit_close(): record the closings, close the shift, aggregate,
       write DayPack rows and variances, deplete sold-out packs, mark CLOSED
    cancel_close() / cleanup_expired_pending_closes() revert to OPEN

Everything that writes runs under the store lock (concurrency.lock_store).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from flask import current_app
from sqlalchemy import or_

from lotto.extensions import db
from lotto.models import Bin, BusinessDay, DayPack, Game, Pack, Shift, ShiftClosing, ShiftOpening, Store, Variance
from lotto.errors import DayCloseError, ManualEntryError, NotFoundError, ValidationError
from lotto.services import serial_math
from lotto.services.bin_service import get_active_bins
from lotto.services.business_day import (
    BusinessDayView,
    PackDayRecord,
    PackRecord,
    START_FROM_OPENING,
    SerialRecord,
    ShiftRecord,
    resolve_business_day,
)
from lotto.services.concurrency import lock_store, run_with_retry
from lotto.services.ledger_service import append_event
from lotto.services import pack_service, shift_service
from lotto.time_utils import store_day_bounds_utc, store_local_date, utcnow


DAY_STATUS_OPEN = "OPEN"
DAY_STATUS_PENDING_CLOSE = "PENDING_CLOSE"
DAY_STATUS_CLOSED = "CLOSED"

DAY_CLOSE_ERROR_CODES = {
    "STORE_NOT_FOUND": "STORE_NOT_FOUND",
    "DAY_NOT_FOUND": "DAY_NOT_FOUND",
    "DAY_ALREADY_CLOSED": "DAY_ALREADY_CLOSED",
    "DAY_NOT_PENDING": "DAY_NOT_PENDING",
    "PENDING_EXPIRED": "PENDING_EXPIRED",
    "SHIFTS_STILL_OPEN": "SHIFTS_STILL_OPEN",
    "INVALID_CLOSINGS": "INVALID_CLOSINGS",
    "PACK_NOT_FOUND": "PACK_NOT_FOUND",
}

VARIANCE_FILTER_UNRESOLVED = "unresolved"
VARIANCE_FILTER_RESOLVED = "resolved"


# =============================================================================
# HISTORY LOADING
# =============================================================================

def _get_store(store_id: int) -> Store:
    store = db.session.query(Store).filter_by(id=store_id).first()
    if not store:
        raise DayCloseError(DAY_CLOSE_ERROR_CODES["STORE_NOT_FOUND"], "Store not found")
    return store


def _pack_record(pack: Pack) -> PackRecord:
    return PackRecord(
        pack_id=pack.id,
        serial_start=pack.serial_start,
        serial_end=pack.serial_end,
        starting_serial=pack.activation_serial,
        price_cents=pack.game.price_cents if pack.game else 0,
        pack_number=pack.pack_number,
    )


def load_day_history(store_id: int, business_date: date) -> tuple[BusinessDayView, dict[int, Pack]]:
    """
    Fetch the event log relevant to one business day and resolve it.

    Shifts opened after the day are ignored; everything earlier is kept so
    the prior-closing continuity rule can reach back across days.

    Returns:
        (view, packs by id) where packs covers bin occupants and every pack
        with activity in the day's shifts.
    """
    store = _get_store(store_id)
    _, day_end = store_day_bounds_utc(business_date, store.timezone)

    shifts = db.session.query(Shift).filter(
        Shift.store_id == store_id,
        Shift.opened_at < day_end,
    ).all()
    shift_ids = [s.id for s in shifts]

    openings = []
    closings = []
    if shift_ids:
        openings = db.session.query(ShiftOpening).filter(ShiftOpening.shift_id.in_(shift_ids)).all()
        closings = db.session.query(ShiftClosing).filter(ShiftClosing.shift_id.in_(shift_ids)).all()

    active_packs = db.session.query(Pack).filter_by(store_id=store_id, status=pack_service.PACK_STATUS_ACTIVE).all()
    packs = {p.id: p for p in active_packs}
    event_pack_ids = {ev.pack_id for ev in openings} | {ev.pack_id for ev in closings}
    missing = event_pack_ids - set(packs)
    if missing:
        for p in db.session.query(Pack).filter(Pack.id.in_(missing)).all():
            packs[p.id] = p

    view = resolve_business_day(
        store.timezone,
        business_date,
        shifts=[ShiftRecord(s.id, s.opened_at, s.closed_at) for s in shifts],
        openings=[SerialRecord(ev.shift_id, ev.pack_id, ev.opening_serial) for ev in openings],
        closings=[SerialRecord(ev.shift_id, ev.pack_id, ev.closing_serial) for ev in closings],
        packs=[_pack_record(p) for p in packs.values()],
    )
    return view, packs


# =============================================================================
# AGGREGATION
# =============================================================================

@dataclass
class DayLine:
    """One row of the day view: a bin (possibly empty) or an off-bin pack."""
    bin_id: int | None
    bin_name: str | None
    bin_number: int | None
    pack_id: int | None = None
    pack_number: str | None = None
    game_name: str | None = None
    price_cents: int = 0
    starting_serial: str | None = None
    ending_serial: str | None = None
    ending_shift_id: int | None = None
    tickets_sold: int | None = 0
    sales_amount_cents: int | None = 0

    @property
    def has_pack(self) -> bool:
        return self.pack_id is not None

    @property
    def closeable(self) -> bool:
        return self.ending_serial is not None

    def to_dict(self) -> dict:
        return {
            "bin_id": self.bin_id,
            "bin_name": self.bin_name,
            "bin_number": self.bin_number,
            "pack_id": self.pack_id,
            "pack_number": self.pack_number,
            "game_name": self.game_name,
            "price_cents": self.price_cents,
            "starting_serial": self.starting_serial,
            "ending_serial": self.ending_serial,
            "tickets_sold": self.tickets_sold,
            "sales_amount_cents": self.sales_amount_cents,
        }


@dataclass
class DaySummary:
    store_id: int
    business_date: date
    window: dict
    bins: list[DayLine] = field(default_factory=list)
    depleted_packs: list[DayLine] = field(default_factory=list)
    sold_as_unit: list[DayLine] = field(default_factory=list)

    @property
    def unscanned_bins(self) -> list[DayLine]:
        return [line for line in self.bins if line.has_pack and not line.closeable]

    @property
    def total_tickets(self) -> int:
        return sum(line.tickets_sold or 0 for line in self._counted_lines())

    @property
    def total_sales_cents(self) -> int:
        return sum(line.sales_amount_cents or 0 for line in self._counted_lines())

    @property
    def is_complete(self) -> bool:
        return not self.unscanned_bins

    def _counted_lines(self):
        yield from self.bins
        yield from self.depleted_packs
        yield from self.sold_as_unit

    def line_for_bin(self, bin_id: int) -> DayLine | None:
        for line in self.bins:
            if line.bin_id == bin_id:
                return line
        return None

    def to_dict(self) -> dict:
        return {
            "store_id": self.store_id,
            "business_date": self.business_date.isoformat(),
            "window": self.window,
            "bins": [line.to_dict() for line in self.bins],
            "depleted_packs": [line.to_dict() for line in self.depleted_packs],
            "sold_as_unit": [line.to_dict() for line in self.sold_as_unit],
            "unscanned_bins": [line.to_dict() for line in self.unscanned_bins],
            "total_tickets": self.total_tickets,
            "total_sales_cents": self.total_sales_cents,
            "is_complete": self.is_complete,
        }


def _line(bin_: Bin | None, pack: Pack, record: PackDayRecord | None) -> DayLine:
    game: Game | None = pack.game
    line = DayLine(
        bin_id=bin_.id if bin_ else None,
        bin_name=bin_.name if bin_ else None,
        bin_number=bin_.bin_number if bin_ else None,
        pack_id=pack.id,
        pack_number=pack.pack_number,
        game_name=game.name if game else None,
        price_cents=game.price_cents if game else 0,
    )
    if record is None:
        line.starting_serial = pack.starting_serial
        line.tickets_sold = None
        line.sales_amount_cents = None
        return line

    line.starting_serial = record.starting_serial
    line.ending_serial = record.ending_serial
    line.ending_shift_id = record.ending_shift_id
    line.tickets_sold = record.tickets_sold
    line.sales_amount_cents = record.sales_amount_cents
    return line


def compute_day_summary(store_id: int, business_date: date) -> DaySummary:
    """
    Aggregate a business day without writing anything.

    - Each active bin yields one line; an empty bin yields null serials and
      zero tickets.
    - A bin whose pack has no closing today has null ending/tickets and is
      listed in unscanned_bins.
    - Packs with activity today that no longer sit in a bin (depleted during
      the day) are reported in depleted_packs and counted in the totals.
    - Pre-sold packs depleted today are flat sold_as_unit lines.
    """
    store = _get_store(store_id)
    view, packs = load_day_history(store_id, business_date)

    summary = DaySummary(
        store_id=store_id,
        business_date=business_date,
        window=view.window.to_dict(),
    )

    bins = get_active_bins(store_id)
    occupant_by_bin = {
        p.current_bin_id: p
        for p in packs.values()
        if p.status == pack_service.PACK_STATUS_ACTIVE and p.current_bin_id is not None
    }

    in_bins: set[int] = set()
    for bin_ in bins:
        pack = occupant_by_bin.get(bin_.id)
        if pack is None:
            summary.bins.append(DayLine(bin_id=bin_.id, bin_name=bin_.name, bin_number=bin_.bin_number))
            continue
        in_bins.add(pack.id)
        summary.bins.append(_line(bin_, pack, view.for_pack(pack.id)))

    for pack_id, record in view.packs.items():
        if pack_id in in_bins:
            continue
        pack = packs.get(pack_id)
        if pack is None or pack.status == pack_service.PACK_STATUS_ACTIVE:
            continue
        # reported once, as a flat sold_as_unit line below
        if pack.sold_as_unit:
            continue
        if record.ending_serial is None and record.starting_source != START_FROM_OPENING:
            continue
        summary.depleted_packs.append(_line(None, pack, record))

    day_start, day_end = store_day_bounds_utc(business_date, store.timezone)
    presold = db.session.query(Pack).filter(
        Pack.store_id == store_id,
        Pack.sold_as_unit.is_(True),
        Pack.depleted_at >= day_start,
        Pack.depleted_at < day_end,
    ).order_by(Pack.depleted_at, Pack.id).all()
    for pack in presold:
        line = _line(None, pack, None)
        line.starting_serial = pack.starting_serial
        line.ending_serial = pack.serial_end
        line.tickets_sold = pack.tickets_sold_count
        line.sales_amount_cents = serial_math.sales_amount_cents(pack.tickets_sold_count, line.price_cents)
        summary.sold_as_unit.append(line)

    return summary


# =============================================================================
# VARIANCES
# =============================================================================

@dataclass
class DayCloseResult:
    summary: DaySummary
    variances: list[Variance] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            **self.summary.to_dict(),
            "variances": [v.to_dict() for v in self.variances],
        }


def close_day(
    store_id: int,
    business_date: date,
    counted: dict[int, int] | None = None,
    *,
    actor_user_id: int | None = None,
    now: datetime | None = None,
) -> DayCloseResult:
    """
    Aggregate the day and persist a Variance for each counted mismatch.

    Args:
        counted: bin_id -> ticket count reported by the store

    Raises:
        ValidationError: a counted bin is unknown, empty or not yet closed
    """
    now = now or utcnow()
    counted = counted or {}

    def _op():
        lock_store(store_id)
        summary = compute_day_summary(store_id, business_date)
        result = DayCloseResult(summary=summary)

        for bin_id, actual in counted.items():
            line = summary.line_for_bin(int(bin_id))
            if line is None:
                raise ValidationError(f"Bin {bin_id} is not an active bin of this store")
            if not line.has_pack:
                raise ValidationError(f"Bin {line.bin_name} has no active pack to count")
            if not line.closeable:
                raise ValidationError(f"Bin {line.bin_name} has no closing serial yet")
            if isinstance(actual, bool) or not isinstance(actual, int) or actual < 0:
                raise ValidationError(f"Counted value for bin {line.bin_name} must be a non-negative integer")

            if actual == line.tickets_sold:
                continue

            existing = db.session.query(Variance).filter_by(
                shift_id=line.ending_shift_id,
                pack_id=line.pack_id,
            ).first()
            if existing:
                result.variances.append(existing)
                continue

            variance = Variance(
                store_id=store_id,
                shift_id=line.ending_shift_id,
                pack_id=line.pack_id,
                bin_id=line.bin_id,
                business_date=business_date,
                expected=line.tickets_sold,
                actual=actual,
                difference=actual - line.tickets_sold,
            )
            db.session.add(variance)
            db.session.flush()
            result.variances.append(variance)

            current_app.logger.info(
                "Variance on pack %s (bin %s): expected %s, counted %s",
                line.pack_number, line.bin_name, line.tickets_sold, actual,
            )
            append_event(
                store_id=store_id,
                event_type="variance.created",
                entity_type="variance",
                entity_id=variance.id,
                actor_user_id=actor_user_id,
                occurred_at=now,
                payload={"expected": variance.expected, "actual": variance.actual},
            )

        return result

    return run_with_retry(_op)


def approve_variance(
    variance_id: int,
    approver_id: int | None,
    *,
    reason: str | None = None,
    now: datetime | None = None,
) -> Variance:
    """
    Record a manager sign-off on a variance.

    Only presence of the approver is checked here; whether they may
    approve is the caller's decision.
    """
    if approver_id is None:
        raise ValidationError("Variance approval requires an approver")
    now = now or utcnow()

    variance = db.session.query(Variance).filter_by(id=variance_id).first()
    if not variance:
        raise NotFoundError(f"Variance {variance_id} not found")
    if variance.approved_by is not None:
        raise ValidationError(f"Variance {variance_id} is already approved")

    variance.approved_by = approver_id
    variance.approved_at = now
    if reason:
        variance.reason = reason
    db.session.flush()

    append_event(
        store_id=variance.store_id,
        event_type="variance.approved",
        entity_type="variance",
        entity_id=variance.id,
        actor_user_id=approver_id,
        occurred_at=now,
        note=reason,
    )
    return variance


def list_variances(
    store_id: int,
    *,
    status: str | None = None,
    business_date: date | None = None,
) -> list[Variance]:
    query = db.session.query(Variance).filter_by(store_id=store_id)
    if status == VARIANCE_FILTER_UNRESOLVED:
        query = query.filter(Variance.approved_by.is_(None))
    elif status == VARIANCE_FILTER_RESOLVED:
        query = query.filter(Variance.approved_by.isnot(None))
    elif status is not None:
        raise ValidationError("status must be 'unresolved' or 'resolved'")
    if business_date is not None:
        query = query.filter_by(business_date=business_date)
    return query.order_by(Variance.created_at, Variance.id).all()


# =============================================================================
# TWO-PHASE DAY CLOSE
# =============================================================================

def _get_or_create_day(store_id: int, business_date: date, now: datetime) -> BusinessDay:
    day = db.session.query(BusinessDay).filter_by(store_id=store_id, business_date=business_date).first()
    if day is None:
        day = BusinessDay(store_id=store_id, business_date=business_date, status=DAY_STATUS_OPEN, opened_at=now)
        db.session.add(day)
        db.session.flush()
    return day


def _is_expired(day: BusinessDay, now: datetime) -> bool:
    return day.pending_close_expires_at is not None and day.pending_close_expires_at < now


def _validate_closings(closings: list[dict]) -> None:
    if not isinstance(closings, list) or not closings:
        raise DayCloseError(DAY_CLOSE_ERROR_CODES["INVALID_CLOSINGS"], "closings array cannot be empty")
    seen: set[int] = set()
    for i, closing in enumerate(closings):
        pack_id = closing.get("pack_id")
        if not isinstance(pack_id, int) or isinstance(pack_id, bool):
            raise DayCloseError(DAY_CLOSE_ERROR_CODES["INVALID_CLOSINGS"], f"closings[{i}].pack_id is required")
        if (closing.get("closing_serial") is None) == (closing.get("scanned_code") is None):
            raise DayCloseError(
                DAY_CLOSE_ERROR_CODES["INVALID_CLOSINGS"],
                f"closings[{i}] needs exactly one of closing_serial or scanned_code",
            )
        if pack_id in seen:
            raise DayCloseError(DAY_CLOSE_ERROR_CODES["INVALID_CLOSINGS"], f"Duplicate pack_id found: {pack_id}")
        seen.add(pack_id)


def prepare_close(
    store_id: int,
    shift_id: int,
    closings: list[dict],
    *,
    entry_method: str = shift_service.ENTRY_METHOD_SCAN,
    actor_user_id: int | None = None,
    authorized_by: int | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Phase 1: validate closing scans and park them as PENDING_CLOSE.

    Nothing is recorded against the shift yet. The business date is the
    store-local date the closing shift was opened on.

    Args:
        shift_id: the last open shift of the day; every other shift must be closed
        closings: [{"pack_id": int, "closing_serial": "045"} or
                   {"pack_id": int, "scanned_code": "<24 digits>"}]

    Raises:
        DayCloseError: day closed, other shifts open, packs missing/inactive
        ManualEntryError: MANUAL without authorized_by
        WrongPackError / SerialRangeError: a closing fails validation
    """
    if entry_method not in shift_service.VALID_ENTRY_METHODS:
        raise DayCloseError(DAY_CLOSE_ERROR_CODES["INVALID_CLOSINGS"], "entry_method must be 'SCAN' or 'MANUAL'")
    if entry_method == shift_service.ENTRY_METHOD_MANUAL and authorized_by is None:
        raise ManualEntryError("Manual day close entry requires an authorizing manager")
    _validate_closings(closings)
    now = now or utcnow()

    def _op():
        store = lock_store(store_id)
        shift = shift_service.get_shift(shift_id)
        if shift.store_id != store_id:
            raise NotFoundError(f"Shift {shift_id} not found")
        if shift.status != shift_service.SHIFT_STATUS_OPEN:
            raise DayCloseError(DAY_CLOSE_ERROR_CODES["INVALID_CLOSINGS"], f"Shift {shift_id} is already closed")

        business_date = store_local_date(shift.opened_at, store.timezone)
        day = _get_or_create_day(store_id, business_date, now)
        if day.status == DAY_STATUS_CLOSED:
            raise DayCloseError(DAY_CLOSE_ERROR_CODES["DAY_ALREADY_CLOSED"], "Lottery day is already closed")

        other_open = [s for s in shift_service.get_open_shifts(store_id) if s.id != shift_id]
        if other_open:
            raise DayCloseError(
                DAY_CLOSE_ERROR_CODES["SHIFTS_STILL_OPEN"],
                f"{len(other_open)} shift(s) are still open",
                {"open_shift_count": len(other_open)},
            )

        pack_ids = [c["pack_id"] for c in closings]
        packs = {
            p.id: p
            for p in db.session.query(Pack).filter(
                Pack.id.in_(pack_ids),
                Pack.store_id == store_id,
                Pack.status == pack_service.PACK_STATUS_ACTIVE,
            ).all()
        }
        missing = [pid for pid in pack_ids if pid not in packs]
        if missing:
            raise DayCloseError(
                DAY_CLOSE_ERROR_CODES["PACK_NOT_FOUND"],
                f"Some packs were not found or are not active: {', '.join(str(m) for m in missing)}",
                {"missing_pack_ids": missing},
            )

        view, _ = load_day_history(store_id, business_date)

        validated = []
        preview = []
        estimated_total = 0
        for closing in closings:
            pack = packs[closing["pack_id"]]
            serial = shift_service.resolve_closing_serial(
                shift,
                pack,
                closing_serial=closing.get("closing_serial"),
                scanned_code=closing.get("scanned_code"),
            )
            record = view.for_pack(pack.id)
            starting = record.starting_serial if record and record.starting_serial else pack.starting_serial
            sold = serial_math.tickets_sold(starting, serial)
            amount = serial_math.sales_amount_cents(sold, pack.game.price_cents)
            estimated_total += amount

            validated.append({"pack_id": pack.id, "closing_serial": serial})
            preview.append({
                "bin_number": pack.current_bin.bin_number if pack.current_bin else None,
                "pack_number": pack.pack_number,
                "game_name": pack.game.name,
                "starting_serial": starting,
                "closing_serial": serial,
                "game_price_cents": pack.game.price_cents,
                "tickets_sold": sold,
                "sales_amount_cents": amount,
            })

        expiry_minutes = current_app.config.get("PENDING_CLOSE_EXPIRY_MINUTES", 60)
        day.status = DAY_STATUS_PENDING_CLOSE
        day.pending_close_data = {
            "shift_id": shift_id,
            "entry_method": entry_method,
            "authorized_by": authorized_by,
            "closings": validated,
        }
        day.pending_close_by = actor_user_id
        day.pending_close_at = now
        day.pending_close_expires_at = now + timedelta(minutes=expiry_minutes)
        db.session.flush()

        current_app.logger.info(
            "Day close prepared for store %s on %s (%d closings)",
            store_id, business_date.isoformat(), len(validated),
        )

        return {
            "day_id": day.id,
            "business_date": business_date.isoformat(),
            "status": DAY_STATUS_PENDING_CLOSE,
            "pending_close_at": day.pending_close_at.isoformat(),
            "pending_close_expires_at": day.pending_close_expires_at.isoformat(),
            "closings_count": len(validated),
            "estimated_lottery_total_cents": estimated_total,
            "bins_preview": sorted(preview, key=lambda b: (b["bin_number"] is None, b["bin_number"] or 0)),
        }

    return run_with_retry(_op)


def commit_close(
    store_id: int,
    *,
    actor_user_id: int | None = None,
    counted: dict[int, int] | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Phase 2: atomically turn the pending close into a CLOSED day.

    Raises:
        DayCloseError: nothing pending, day already closed, pending expired
    """
    now = now or utcnow()

    def _op():
        store = lock_store(store_id)
        day = db.session.query(BusinessDay).filter_by(
            store_id=store_id,
            status=DAY_STATUS_PENDING_CLOSE,
        ).order_by(BusinessDay.business_date.desc()).first()

        if day is None:
            today = store_local_date(now, store.timezone)
            closed = db.session.query(BusinessDay).filter_by(
                store_id=store_id, business_date=today, status=DAY_STATUS_CLOSED,
            ).first()
            if closed:
                raise DayCloseError(DAY_CLOSE_ERROR_CODES["DAY_ALREADY_CLOSED"], "Lottery day is already closed")
            raise DayCloseError(
                DAY_CLOSE_ERROR_CODES["DAY_NOT_PENDING"],
                "Lottery day is not in PENDING_CLOSE status. Please complete lottery scanning first.",
            )

        if _is_expired(day, now):
            raise DayCloseError(
                DAY_CLOSE_ERROR_CODES["PENDING_EXPIRED"],
                "Pending close has expired. Please re-scan lottery to continue.",
            )

        pending = day.pending_close_data or {}
        closings = pending.get("closings")
        if not isinstance(closings, list):
            raise DayCloseError(DAY_CLOSE_ERROR_CODES["DAY_NOT_PENDING"], "Invalid pending close data")
        _validate_closings(closings)

        shift_id = pending["shift_id"]
        entry_method = pending.get("entry_method", shift_service.ENTRY_METHOD_SCAN)
        for closing in closings:
            shift_service.record_closing(
                shift_id,
                closing["pack_id"],
                closing_serial=closing["closing_serial"],
                entry_method=entry_method,
                manual_entry_authorized_by=pending.get("authorized_by"),
                now=now,
            )
        shift_service.close_shift(shift_id, actor_user_id=actor_user_id, now=now)

        result = close_day(store_id, day.business_date, counted, actor_user_id=actor_user_id, now=now)
        summary = result.summary

        closed_pack_ids = {c["pack_id"] for c in closings}
        bins_closed = []
        for line in list(summary.bins) + list(summary.depleted_packs):
            if not line.has_pack or not line.closeable:
                continue
            day_pack = db.session.query(DayPack).filter_by(day_id=day.id, pack_id=line.pack_id).first()
            if day_pack is None:
                day_pack = DayPack(day_id=day.id, pack_id=line.pack_id)
                db.session.add(day_pack)
            day_pack.bin_id = line.bin_id
            day_pack.starting_serial = line.starting_serial
            day_pack.ending_serial = line.ending_serial
            day_pack.tickets_sold = line.tickets_sold or 0
            day_pack.sales_amount_cents = line.sales_amount_cents or 0
            day_pack.entry_method = entry_method if line.pack_id in closed_pack_ids else None
            if line.bin_id is not None:
                bins_closed.append(line.to_dict())

        sold_out = []
        for line in summary.bins:
            if not line.has_pack or not line.closeable:
                continue
            pack = pack_service.get_pack(line.pack_id)
            if pack.status == pack_service.PACK_STATUS_ACTIVE and line.ending_serial == pack.serial_end:
                pack_service.deplete_pack(
                    pack.id,
                    actor_user_id=actor_user_id,
                    reason=pack_service.DEPLETION_SOLD_OUT,
                    now=now,
                )
                sold_out.append(pack.id)

        day.status = DAY_STATUS_CLOSED
        day.closed_at = now
        day.closed_by = actor_user_id
        day.clear_pending()
        db.session.flush()

        append_event(
            store_id=store_id,
            event_type="day.closed",
            entity_type="business_day",
            entity_id=day.id,
            actor_user_id=actor_user_id,
            occurred_at=now,
            payload={
                "business_date": day.business_date.isoformat(),
                "total_sales_cents": summary.total_sales_cents,
                "variances": len(result.variances),
            },
        )
        current_app.logger.info(
            "Lottery day %s closed for store %s: %d tickets, %d cents",
            day.business_date.isoformat(), store_id, summary.total_tickets, summary.total_sales_cents,
        )

        return {
            "day_id": day.id,
            "business_date": day.business_date.isoformat(),
            "closed_at": day.closed_at.isoformat(),
            "closings_created": len(closings),
            "lottery_total_cents": summary.total_sales_cents,
            "total_tickets": summary.total_tickets,
            "bins_closed": bins_closed,
            "sold_out_pack_ids": sold_out,
            "variances": [v.to_dict() for v in result.variances],
        }

    return run_with_retry(_op)


def cancel_close(store_id: int) -> bool:
    """
    Revert a PENDING_CLOSE day back to OPEN.

    Returns:
        True if a pending close was cancelled, False if none was pending
    """
    lock_store(store_id)
    days = db.session.query(BusinessDay).filter_by(
        store_id=store_id,
        status=DAY_STATUS_PENDING_CLOSE,
    ).all()
    for day in days:
        day.status = DAY_STATUS_OPEN
        day.clear_pending()
    db.session.flush()
    return bool(days)


def get_day_status(store_id: int, business_date: date | None = None, *, now: datetime | None = None) -> dict | None:
    """
    Status of a business day (default: today in store time).

    An expired pending close is reported as OPEN with pending_expired=True.
    """
    now = now or utcnow()
    store = _get_store(store_id)
    business_date = business_date or store_local_date(now, store.timezone)
    day = db.session.query(BusinessDay).filter_by(store_id=store_id, business_date=business_date).first()
    if day is None:
        return None

    data = day.to_dict()
    if day.status == DAY_STATUS_PENDING_CLOSE and _is_expired(day, now):
        data["status"] = DAY_STATUS_OPEN
        data["pending_expired"] = True
    else:
        data["pending_expired"] = False
    return data


def cleanup_expired_pending_closes(*, now: datetime | None = None) -> int:
    """
    Revert every expired PENDING_CLOSE day to OPEN.

    Returns:
        Number of days reverted
    """
    now = now or utcnow()
    days = db.session.query(BusinessDay).filter(
        BusinessDay.status == DAY_STATUS_PENDING_CLOSE,
        or_(BusinessDay.pending_close_expires_at.is_(None), BusinessDay.pending_close_expires_at < now),
    ).all()
    for day in days:
        current_app.logger.warning(
            "Pending day close for store %s on %s expired; reverting to OPEN",
            day.store_id, day.business_date.isoformat(),
        )
        day.status = DAY_STATUS_OPEN
        day.clear_pending()
    db.session.flush()
    return len(days)
