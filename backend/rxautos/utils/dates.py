"""Date helpers. All timestamps in the database are naive UTC."""

import calendar
import math
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (matches the DB columns)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length.

    Jan 31 + 1 month is Feb 28 (or 29), not Mar 3.
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def days_until(end: datetime, now: datetime) -> int:
    """Whole days from ``now`` until ``end``, rounded up. Negative when past."""
    return math.ceil((end - now).total_seconds() / 86400)


def window_covers(start: datetime | None, end: datetime | None, now: datetime) -> bool:
    """True when ``now`` falls inside [start, end). A missing start is open."""
    if end is None:
        return False
    if start is not None and now < start:
        return False
    return now < end
