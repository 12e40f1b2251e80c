from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Union

DateLike = Union[date, datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_between(first: DateLike, second: DateLike) -> int:
    """Whole days between two moments, rounded half up."""
    if isinstance(first, datetime) or isinstance(second, datetime):
        if not isinstance(first, datetime):
            first = datetime.combine(first, time.min, tzinfo=timezone.utc)
        if not isinstance(second, datetime):
            second = datetime.combine(second, time.min, tzinfo=timezone.utc)
        seconds = abs((as_utc(first) - as_utc(second)).total_seconds())
        return int(seconds / 86400 + 0.5)
    return abs((first - second).days)
