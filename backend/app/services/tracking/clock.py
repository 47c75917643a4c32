"""
Time helpers for the tracking services.

Everything is stored as timezone-aware UTC. Calendar dates (daily stats,
streaks) are taken in the configured tracking timezone, so a session that
ends at 23:30 local time counts for that local day.
"""

from datetime import date, datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_date(value: datetime, tz_name: str) -> date:
    """Calendar date of a timestamp in the given IANA timezone."""
    return ensure_utc(value).astimezone(ZoneInfo(tz_name)).date()
