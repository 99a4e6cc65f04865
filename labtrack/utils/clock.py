import math
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from start to end, rounded up. Negative when end is earlier."""
    seconds = (as_utc(end) - as_utc(start)).total_seconds()
    return math.ceil(seconds / 86400)


def isoformat(value: datetime | None) -> str | None:
    return as_utc(value).isoformat() if value else None
