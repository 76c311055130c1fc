# app/utils/timeutils.py
"""
Local-time helpers.

The business runs in one fixed zone (settings.TIMEZONE, UTC+7). Users type
local wall-clock values; the database stores naive UTC datetimes. Anything
that talks about "today" works on local calendar days.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from app.config import settings


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_to_utc(day: date, at: time) -> datetime:
    """Combine a local date + wall-clock time and convert to naive UTC."""
    local = datetime.combine(day, at).replace(tzinfo=settings.LOCAL_TZ)
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def utc_to_local(dt: datetime) -> datetime:
    """Naive UTC datetime -> aware local datetime."""
    return dt.replace(tzinfo=timezone.utc).astimezone(settings.LOCAL_TZ)


def local_day_bounds(day: Optional[date] = None, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """
    [start, end) of a local calendar day, as naive UTC.
    Defaults to the local day containing `now` (itself defaulting to utcnow()).
    """
    if day is None:
        day = utc_to_local(now or utcnow()).date()
    start = local_to_utc(day, time.min)
    return start, start + timedelta(days=1)


def local_range_bounds(range_name: str, now: Optional[datetime] = None) -> Optional[tuple[datetime, datetime]]:
    """[start, end) for today | week | month | year around `now`, as naive UTC."""
    today = utc_to_local(now or utcnow()).date()

    if range_name == "today":
        first, last = today, today + timedelta(days=1)
    elif range_name == "week":
        first = today - timedelta(days=today.weekday())   # weeks start on Monday
        last = first + timedelta(days=7)
    elif range_name == "month":
        first = today.replace(day=1)
        last = (first + timedelta(days=32)).replace(day=1)
    elif range_name == "year":
        first = today.replace(month=1, day=1)
        last = first.replace(year=first.year + 1)
    else:
        return None

    return local_to_utc(first, time.min), local_to_utc(last, time.min)


def format_local(dt: Optional[datetime], fmt: str = "%Y-%m-%d %H:%M:%S", empty: str = "-") -> str:
    if dt is None:
        return empty
    return utc_to_local(dt).strftime(fmt)
