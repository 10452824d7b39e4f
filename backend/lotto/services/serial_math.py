# Overview: Pure ticket-count and sales arithmetic over pack serial strings.

"""
Serial arithmetic for lottery packs.

================================================================================
INCLUSIVE RANGE RULE
================================================================================

A pack whose serials run 000 -> 014 within a period sold 15 tickets, not 14:

    tickets_sold = (end + 1) - start, clamped at 0

Every figure in the system (closing preview, day aggregate, sales totals)
goes through tickets_sold() so the convention cannot drift.

FAILURE MODE:
    Non-numeric or empty serials never raise here. They mean "cannot
    determine" and count as 0, so one bad closing cannot corrupt a day total.
"""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any


def parse_serial(value: Any) -> int | None:
    """
    Parse a serial string as a base-10 integer.

    Only plain digit strings are accepted ("045" -> 45). Signs, decimals,
    whitespace inside the value and non-strings return None.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if not isinstance(value, str):
        return None
    s = value.strip()
    if not s or not s.isascii() or not s.isdigit():
        return None
    return int(s)


def format_serial(number: int, width: int) -> str:
    """Zero-pad a serial to the pack's serial width (45, 3 -> "045")."""
    return str(number).zfill(width)


def tickets_sold(start_serial: Any, end_serial: Any) -> int:
    """
    Tickets sold between two serials, both ends inclusive.

    >>> tickets_sold("000", "014")
    15
    >>> tickets_sold("025", "024")
    0
    """
    start = parse_serial(start_serial)
    end = parse_serial(end_serial)
    if start is None or end is None:
        return 0
    return max(0, (end + 1) - start)


def _coerce_price_cents(price_cents: Any) -> int:
    if price_cents is None or isinstance(price_cents, bool):
        return 0
    if isinstance(price_cents, int):
        return price_cents
    if isinstance(price_cents, float):
        if math.isnan(price_cents) or math.isinf(price_cents):
            return 0
        return int(round(price_cents))
    try:
        d = Decimal(str(price_cents).strip())
    except (InvalidOperation, ValueError):
        return 0
    if not d.is_finite():
        return 0
    return int(d.to_integral_value())


def sales_amount_cents(ticket_count: Any, price_cents: Any) -> int:
    """
    Sales amount for ``ticket_count`` tickets at ``price_cents`` each.

    An invalid, NaN or infinite price is treated as 0.
    """
    if ticket_count is None or isinstance(ticket_count, bool):
        return 0
    try:
        count = int(ticket_count)
    except (TypeError, ValueError):
        return 0
    return count * _coerce_price_cents(price_cents)


def pack_ticket_count(serial_start: Any, serial_end: Any) -> int:
    """Total tickets in a pack (inclusive range)."""
    return tickets_sold(serial_start, serial_end)


def is_within_pack(serial: Any, serial_start: Any, serial_end: Any) -> bool:
    """True when ``serial`` lies in [serial_start, serial_end]."""
    value = parse_serial(serial)
    low = parse_serial(serial_start)
    high = parse_serial(serial_end)
    if value is None or low is None or high is None:
        return False
    return low <= value <= high


def serial_width(serial: Any) -> int:
    """Digit count defining a pack's serial format; 0 if not a serial."""
    if not isinstance(serial, str) or parse_serial(serial) is None:
        return 0
    return len(serial.strip())
