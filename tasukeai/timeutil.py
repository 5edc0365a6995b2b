"""
Clock-time and calendar-date arithmetic over the string formats stored on
shift records ("HH:MM" times, "YYYY-MM-DD" dates).
"""

import re
from datetime import date, timedelta

_TIME_RE = re.compile(r"(\d+):(\d+)", re.ASCII)


class FormatError(ValueError):
    """A stored time or date string is malformed."""


def parse_time_to_decimal_hours(value: str) -> float:
    """
    Convert a 24-hour "HH:MM" to decimal hours, e.g. "09:30" -> 9.5.
    """
    match = _TIME_RE.fullmatch(value) if isinstance(value, str) else None
    if match is None:
        raise FormatError(f"Expected HH:MM, got {value!r}")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours >= 24:
        raise FormatError(f"Hours out of range in {value!r}")
    if minutes >= 60:
        raise FormatError(f"Minutes out of range in {value!r}")
    return hours + minutes / 60


def shift_duration_hours(start_time: str, end_time: str) -> float:
    """
    Worked hours between two clock times, crossing midnight when the end is
    earlier than the start.
    """
    start = parse_time_to_decimal_hours(start_time)
    end = parse_time_to_decimal_hours(end_time)

    if end < start:
        end += 24
    elif end_time == "00:00" and start > 12:
        # Explicit midnight end recorded as 00:00 instead of 24:00
        end += 24

    return end - start


def parse_iso_date(value: str) -> date:
    """
    Parse a zero-padded "YYYY-MM-DD" date. Other ISO spellings such as
    "20250701" are rejected, since range filters compare dates as strings.
    """
    try:
        parsed = date.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise FormatError(f"Expected YYYY-MM-DD, got {value!r}") from e
    if parsed.isoformat() != value:
        raise FormatError(f"Expected YYYY-MM-DD, got {value!r}")
    return parsed


def add_days(date_str: str, days: int) -> str:
    """Calendar-day rollover on an ISO date string."""
    return (parse_iso_date(date_str) + timedelta(days=days)).isoformat()
