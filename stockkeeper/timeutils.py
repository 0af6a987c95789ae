# stockkeeper/timeutils.py

from datetime import date, datetime, time, timezone

import pytz


def utcnow():
    """Current time as a naive UTC datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def expiry_instant(value):
    """Return the moment a lot stops being usable.

    A calendar date expires at the start (00:00) of that day; a datetime is
    taken as-is. ``None`` stays ``None``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def start_of_day(value):
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date()
    return datetime.combine(value, time.min)


def end_of_day(value):
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date()
    return datetime.combine(value, time.max)


def format_timestamp(timestamp, tz_name='Asia/Jakarta'):
    """Convert a naive UTC timestamp to the configured local timezone.

    Args:
        timestamp: UTC datetime object
        tz_name: pytz timezone name

    Returns:
        datetime: Localized datetime
    """
    local_tz = pytz.timezone(tz_name)
    return pytz.utc.localize(timestamp).astimezone(local_tz)


def isoformat(value):
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)
