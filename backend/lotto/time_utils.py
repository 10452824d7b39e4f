from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def store_zone(tz_name: Optional[str]) -> ZoneInfo:
    """
    Resolve a store's IANA timezone name.

    Unknown or empty names fall back to UTC so a misconfigured store still
    produces a (UTC) business day instead of failing the whole close.
    """
    if not tz_name:
        return ZoneInfo("UTC")
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def to_store_local(dt: datetime, tz_name: Optional[str]) -> datetime:
    """Convert a UTC datetime (naive = UTC) into store-local time."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(store_zone(tz_name))


def store_local_date(dt: datetime, tz_name: Optional[str]) -> date:
    """Calendar date of ``dt`` as seen by the store."""
    return to_store_local(dt, tz_name).date()


def store_day_bounds_utc(business_date: date, tz_name: Optional[str]) -> tuple[datetime, datetime]:
    """
    UTC-naive [start, end) bounds of a store-local calendar date.

    Handles DST days (23/25 hours) because both midnights are localized
    independently.
    """
    zone = store_zone(tz_name)
    start_local = datetime.combine(business_date, time.min, tzinfo=zone)
    end_local = datetime.combine(business_date + timedelta(days=1), time.min, tzinfo=zone)
    return (
        start_local.astimezone(timezone.utc).replace(tzinfo=None),
        end_local.astimezone(timezone.utc).replace(tzinfo=None),
    )


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse "YYYY-MM-DD"; None / "" -> None."""
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    return date.fromisoformat(s)
