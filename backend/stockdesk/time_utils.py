from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" and "YYYY-MM-DDTHH:MM" (naive) are interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


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


def month_bounds(as_of: datetime) -> tuple[datetime, datetime]:
    """
    Calendar month containing as_of, as a half-open [start, end) range.

    The reference time is always passed in; nothing here reads the clock.
    """
    start = as_of.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def days_before(as_of: datetime, days: int) -> datetime:
    return as_of - timedelta(days=days)


def trailing_month_starts(as_of: datetime, months: int) -> list[datetime]:
    """First instant of the last `months` calendar months up to and including as_of's month, oldest first."""
    start, _ = month_bounds(as_of)
    starts = [start]
    for _ in range(months - 1):
        previous = starts[0]
        if previous.month == 1:
            starts.insert(0, previous.replace(year=previous.year - 1, month=12))
        else:
            starts.insert(0, previous.replace(month=previous.month - 1))
    return starts
