"""
Timezone utilities for the scheduling backend.

Appointments are stored as UTC instants. Business hours, closed dates and
the dates students pick are expressed in the business timezone.
"""

from datetime import date, datetime, time, timezone
from typing import Optional

import pytz

from app.core.config import settings


def get_business_timezone(name: Optional[str] = None) -> pytz.BaseTzInfo:
    """Return the configured business timezone."""
    return pytz.timezone(name or settings.scheduling_timezone)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC datetime.

    Naive datetimes are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def localize_business_time(
    local_date: date, local_time: time, tz: Optional[pytz.BaseTzInfo] = None
) -> datetime:
    """
    Convert a wall-clock date/time in the business timezone to UTC.

    Ambiguous and non-existent wall times (DST transitions) resolve with
    ``is_dst=False``.
    """
    tz = tz or get_business_timezone()
    naive = datetime.combine(local_date, local_time)
    return tz.localize(naive, is_dst=False).astimezone(timezone.utc)


def to_business_time(dt: datetime, tz: Optional[pytz.BaseTzInfo] = None) -> datetime:
    """Convert a UTC (or aware) datetime to the business timezone."""
    tz = tz or get_business_timezone()
    return ensure_utc(dt).astimezone(tz)


def format_business_datetime(dt: datetime, tz: Optional[pytz.BaseTzInfo] = None) -> dict:
    """
    Format a datetime for notification payloads.

    Returns:
        Dictionary with the UTC ISO value and the local date/time strings
    """
    tz = tz or get_business_timezone()
    local = to_business_time(dt, tz)
    return {
        "utc": ensure_utc(dt).isoformat(),
        "local_date": local.strftime("%Y-%m-%d"),
        "local_time": local.strftime("%H:%M"),
        "timezone": tz.zone,
    }
