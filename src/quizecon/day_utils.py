"""Calendar-day helpers for the daily allowance, streaks and the daily goal.

Every "today" in the engine is the calendar date in the configured timezone,
never the duration since some earlier event.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from quizecon.config import get_settings


@lru_cache(maxsize=8)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def local_today(now: datetime | None = None, tz_name: str | None = None) -> date:
    """Calendar date of ``now`` in the configured timezone."""
    if now is None:
        now = utcnow()
    tz = _zone(tz_name or get_settings().timezone)
    return ensure_utc(now).astimezone(tz).date()


def start_of_day(day: date, tz_name: str | None = None) -> datetime:
    """Midnight at the start of ``day`` in the configured timezone, as an aware datetime."""
    tz = _zone(tz_name or get_settings().timezone)
    return datetime.combine(day, time.min, tzinfo=tz)


def hours_since_day_start(day: date, now: datetime, tz_name: str | None = None) -> float:
    """Hours elapsed between the start of ``day`` and ``now``."""
    return (ensure_utc(now) - start_of_day(day, tz_name)) / timedelta(hours=1)
