"""Time utilities (IST)."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

IST = ZoneInfo("Asia/Kolkata")


def now_ist_naive() -> datetime:
    """
    Current time in IST, returned as naive datetime for DB storage.
    """
    return datetime.now(IST).replace(tzinfo=None)


def to_ist_naive(dt: datetime) -> datetime:
    """
    Normalize to naive IST.

    Naive values are assumed to already be IST (the storage convention).
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(IST).replace(tzinfo=None)


def week_start(now: datetime) -> datetime:
    """
    Start of the current savings week: Sunday 00:00, naive IST.
    """
    local = to_ist_naive(now)
    # Monday=0 .. Sunday=6 -> days since the last Sunday
    days_since_sunday = (local.weekday() + 1) % 7
    start = local - timedelta(days=days_since_sunday)
    return start.replace(hour=0, minute=0, second=0, microsecond=0)
