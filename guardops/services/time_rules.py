"""
Time rules for attendance.
Shift windows are local wall-clock times in TZ_DEFAULT; stored instants are naive UTC.
"""
from datetime import date, datetime, time, timedelta
from typing import Optional

import pytz

from ..config import settings


def to_utc_naive(dt: datetime) -> datetime:
    """
    Normalise an instant to naive UTC for storage.

    Naive inputs are taken to be UTC already.
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(pytz.UTC).replace(tzinfo=None)


def local_to_utc(local_datetime: datetime, timezone_str: Optional[str] = None) -> datetime:
    """
    Convert a naive local datetime to naive UTC.

    Args:
        local_datetime: Local wall-clock datetime (naive)
        timezone_str: Timezone string (defaults to TZ_DEFAULT)

    Returns:
        UTC datetime (naive)
    """
    tz = pytz.timezone(timezone_str or settings.tz_default)
    local_dt = tz.localize(local_datetime) if local_datetime.tzinfo is None else local_datetime
    return local_dt.astimezone(pytz.UTC).replace(tzinfo=None)


def utc_to_local(utc_datetime: datetime, timezone_str: Optional[str] = None) -> datetime:
    tz = pytz.timezone(timezone_str or settings.tz_default)
    if utc_datetime.tzinfo is None:
        utc_datetime = utc_datetime.replace(tzinfo=pytz.UTC)
    return utc_datetime.astimezone(tz)


def window_start_utc(date_val: date, start_time: time, timezone_str: Optional[str] = None) -> datetime:
    return local_to_utc(datetime.combine(date_val, start_time), timezone_str)


def is_on_time(
    actual_time: datetime,
    expected_time: datetime,
    tolerance_minutes: Optional[int] = None,
) -> bool:
    """
    Check whether a check-in happened no later than the expected start plus tolerance.

    Early arrivals are on time.

    Args:
        actual_time: Check-in instant (UTC)
        expected_time: Window start (UTC)
        tolerance_minutes: Grace period in minutes (default from settings)

    Returns:
        True if on time
    """
    if tolerance_minutes is None:
        tolerance_minutes = settings.tolerance_window_min
    return to_utc_naive(actual_time) <= to_utc_naive(expected_time) + timedelta(minutes=tolerance_minutes)

