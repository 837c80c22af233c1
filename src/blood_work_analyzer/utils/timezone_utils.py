"""
Timezone and datetime utilities.

Lab reports and imported JSON carry dates in many shapes ("01/15/2024",
"2024-01-15", full ISO-8601). Everything is normalized to timezone-aware
datetimes before it reaches the domain models.
"""

from datetime import date, datetime

import pytz
from dateutil import parser

from blood_work_analyzer.utils.exceptions import ValidationError


def make_timezone_aware(
    dt: datetime, timezone_str: str = "UTC", assume_local: bool = False
) -> datetime:
    """
    Make a datetime object timezone-aware.

    Args:
        dt: Datetime object (may be naive or aware).
        timezone_str: Timezone string (e.g., "America/New_York").
        assume_local: If True and dt is naive, assume it's in timezone_str.

    Returns:
        Timezone-aware datetime object.
    """
    tz = pytz.timezone(timezone_str)

    if dt.tzinfo is None:
        if assume_local:
            return tz.localize(dt)
        else:
            return pytz.utc.localize(dt).astimezone(tz)
    else:
        return dt.astimezone(tz)


def parse_datetime(
    date_str: str, time_str: str | None = None, timezone_str: str = "UTC"
) -> datetime:
    """
    Parse date and optional time strings into a timezone-aware datetime.

    Month-first ordering is assumed for ambiguous dates, matching US lab
    reports ("01/02/2024" is January 2nd).

    Args:
        date_str: Date string (various formats supported).
        time_str: Optional time string.
        timezone_str: Timezone to assign when the string carries none.

    Returns:
        Timezone-aware datetime object.

    Raises:
        ValidationError: If the string is not a recognizable date.
    """
    combined = f"{date_str} {time_str}" if time_str else date_str

    try:
        dt = parser.parse(combined)
    except (ValueError, OverflowError) as e:
        raise ValidationError(f"Unrecognized date: {combined!r}") from e

    return make_timezone_aware(dt, timezone_str, assume_local=True)


def days_between(start: datetime | date, end: datetime | date) -> int:
    """
    Whole days from start to end (negative when end precedes start).

    Args:
        start: Earlier moment.
        end: Later moment.

    Returns:
        Number of elapsed calendar days.
    """
    start_day = start.date() if isinstance(start, datetime) else start
    end_day = end.date() if isinstance(end, datetime) else end
    return (end_day - start_day).days
