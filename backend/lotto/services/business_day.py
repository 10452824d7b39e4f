# Overview: Pure business-day resolver stitching shift opening/closing serials into day figures.

"""
Business Day Resolver

================================================================================
PURPOSE: Turn the shift-level serial event log into one store-local day view
================================================================================

A business day is every shift whose opened_at, converted to the store's
timezone, falls on the target calendar date.

    window.start = earliest opened_at of those shifts
    window.end   = latest closed_at among the CLOSED ones (open shifts add no end)

Per pack:

    starting serial = (a) opening_serial in the earliest shift of the day that
                          recorded one for the pack
                      (b) else closing_serial of the most recent earlier-day shift
                      (c) else the pack's own starting serial

    ending serial   = closing_serial of the most recent CLOSED shift of the day,
                      or None while no closing exists ("not yet closeable")

Rule (b) is what carries a half-sold pack across midnight: today resumes
from where yesterday ended, not from the pack's first ticket.

Everything here is a pure function of its arguments. No database, no clock:
recomputing the same day from the same events always yields the same view.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Mapping

from lotto.services import serial_math
from lotto.time_utils import store_local_date


START_FROM_OPENING = "OPENING"
START_FROM_PRIOR_CLOSING = "PRIOR_CLOSING"
START_FROM_PACK = "PACK_START"


@dataclass(frozen=True)
class ShiftRecord:
    shift_id: int
    opened_at: datetime
    closed_at: datetime | None = None

    @property
    def is_closed(self) -> bool:
        return self.closed_at is not None


@dataclass(frozen=True)
class SerialRecord:
    """One ShiftOpening or ShiftClosing row."""
    shift_id: int
    pack_id: int
    serial: str


@dataclass(frozen=True)
class PackRecord:
    pack_id: int
    serial_start: str
    serial_end: str | None = None
    starting_serial: str | None = None  # activation serial when overridden
    price_cents: int = 0
    pack_number: str | None = None


@dataclass(frozen=True)
class DayWindow:
    business_date: date
    start: datetime | None
    end: datetime | None
    shift_ids: tuple[int, ...] = ()
    open_shift_ids: tuple[int, ...] = ()

    @property
    def has_activity(self) -> bool:
        return bool(self.shift_ids)

    @property
    def all_shifts_closed(self) -> bool:
        return self.has_activity and not self.open_shift_ids

    def to_dict(self) -> dict:
        return {
            "business_date": self.business_date.isoformat(),
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
            "shift_ids": list(self.shift_ids),
            "open_shift_ids": list(self.open_shift_ids),
        }


@dataclass(frozen=True)
class PackDayRecord:
    pack_id: int
    starting_serial: str | None
    starting_source: str | None
    ending_serial: str | None
    ending_shift_id: int | None
    tickets_sold: int | None
    sales_amount_cents: int | None

    @property
    def closeable(self) -> bool:
        return self.ending_serial is not None

    def to_dict(self) -> dict:
        return {
            "pack_id": self.pack_id,
            "starting_serial": self.starting_serial,
            "starting_source": self.starting_source,
            "ending_serial": self.ending_serial,
            "ending_shift_id": self.ending_shift_id,
            "tickets_sold": self.tickets_sold,
            "sales_amount_cents": self.sales_amount_cents,
        }


@dataclass(frozen=True)
class BusinessDayView:
    window: DayWindow
    packs: Mapping[int, PackDayRecord] = field(default_factory=dict)

    def for_pack(self, pack_id: int) -> PackDayRecord | None:
        return self.packs.get(pack_id)


def _shift_order(shift: ShiftRecord) -> tuple:
    return (shift.opened_at, shift.shift_id)


def _close_order(shift: ShiftRecord) -> tuple:
    # Open shifts (no closed_at) sort by their open time
    return (shift.closed_at or shift.opened_at, shift.opened_at, shift.shift_id)


def resolve_day_window(
    timezone: str | None,
    business_date: date,
    shifts: Iterable[ShiftRecord],
) -> DayWindow:
    """Compute the day's shift set and start/end boundary."""
    day_shifts = sorted(
        (s for s in shifts if store_local_date(s.opened_at, timezone) == business_date),
        key=_shift_order,
    )
    if not day_shifts:
        return DayWindow(business_date=business_date, start=None, end=None)

    closed = [s.closed_at for s in day_shifts if s.is_closed]
    return DayWindow(
        business_date=business_date,
        start=day_shifts[0].opened_at,
        end=max(closed) if closed else None,
        shift_ids=tuple(s.shift_id for s in day_shifts),
        open_shift_ids=tuple(s.shift_id for s in day_shifts if not s.is_closed),
    )


def resolve_business_day(
    timezone: str | None,
    business_date: date,
    shifts: Iterable[ShiftRecord],
    openings: Iterable[SerialRecord],
    closings: Iterable[SerialRecord],
    packs: Iterable[PackRecord] = (),
) -> BusinessDayView:
    """
    Resolve the day window and per-pack starting/ending serials.

    Args:
        timezone: store IANA timezone
        business_date: store-local calendar date
        shifts: every shift of the store that may matter (prior days included)
        openings: ShiftOpening events for those shifts
        closings: ShiftClosing events for those shifts
        packs: packs to report even without activity today (e.g. bin occupants)

    Returns:
        BusinessDayView keyed by pack_id. Packs seen only in events but not
        passed in ``packs`` are still resolved (without a pack-start fallback).
    """
    shifts = list(shifts)
    openings = list(openings)
    closings = list(closings)
    pack_index = {p.pack_id: p for p in packs}

    window = resolve_day_window(timezone, business_date, shifts)
    shift_index = {s.shift_id: s for s in shifts}
    day_ids = set(window.shift_ids)
    prior_ids = {
        s.shift_id
        for s in shifts
        if store_local_date(s.opened_at, timezone) < business_date
    }

    pack_ids = set(pack_index)
    for ev in openings:
        if ev.shift_id in day_ids:
            pack_ids.add(ev.pack_id)
    for ev in closings:
        if ev.shift_id in day_ids:
            pack_ids.add(ev.pack_id)

    records: dict[int, PackDayRecord] = {}
    for pack_id in sorted(pack_ids):
        pack = pack_index.get(pack_id)

        starting_serial, source = _resolve_start(
            pack_id, pack, openings, closings, shift_index, day_ids, prior_ids,
        )
        ending_serial, ending_shift_id = _resolve_end(pack_id, closings, shift_index, day_ids)

        if ending_serial is None:
            sold = None
            amount = None
        else:
            sold = serial_math.tickets_sold(starting_serial, ending_serial)
            amount = serial_math.sales_amount_cents(sold, pack.price_cents if pack else 0)

        records[pack_id] = PackDayRecord(
            pack_id=pack_id,
            starting_serial=starting_serial,
            starting_source=source,
            ending_serial=ending_serial,
            ending_shift_id=ending_shift_id,
            tickets_sold=sold,
            sales_amount_cents=amount,
        )

    return BusinessDayView(window=window, packs=records)


def _resolve_start(pack_id, pack, openings, closings, shift_index, day_ids, prior_ids):
    todays = [
        ev for ev in openings
        if ev.pack_id == pack_id and ev.shift_id in day_ids
    ]
    if todays:
        first = min(todays, key=lambda ev: _shift_order(shift_index[ev.shift_id]))
        return first.serial, START_FROM_OPENING

    earlier = [
        ev for ev in closings
        if ev.pack_id == pack_id and ev.shift_id in prior_ids
    ]
    if earlier:
        last = max(earlier, key=lambda ev: _close_order(shift_index[ev.shift_id]))
        return last.serial, START_FROM_PRIOR_CLOSING

    if pack is not None:
        return pack.starting_serial or pack.serial_start, START_FROM_PACK
    return None, None


def _resolve_end(pack_id, closings, shift_index, day_ids):
    todays = [
        ev for ev in closings
        if ev.pack_id == pack_id
        and ev.shift_id in day_ids
        and shift_index[ev.shift_id].is_closed
    ]
    if not todays:
        return None, None
    last = max(todays, key=lambda ev: _close_order(shift_index[ev.shift_id]))
    return last.serial, last.shift_id
