"""
Duration Codec - reads the "HH:MM:SS per day, grouped by month" attendance map.

Attendance data is best-effort telemetry, so nothing in this module raises
on malformed input: unparsable values count as zero and unparsable dates
are left out of calendar bucketing while still counting toward totals.

Map layout handled here:
    {"2024-03": {"days": {"01": "02:30:00", "02": "00:00:00"}}}
Older syncs store a month total instead of days:
    {"2024-03": {"totalDuration": "41:10:00"}}
"""

import math
from datetime import date, datetime

DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

# Campus days are attributed from 09:00, one bucket per full logged hour
WORKDAY_START_HOUR = 9
MAX_ATTRIBUTED_HOURS = 9


def _parse_segment(segment: str) -> int:
    """Parse one clock segment; anything unusable counts as zero."""
    try:
        value = float(segment)
    except (TypeError, ValueError):
        return 0
    if math.isnan(value) or math.isinf(value) or value < 0:
        return 0
    return int(value)


def parse_duration(value) -> int:
    """
    Convert an "HH:MM:SS" string into seconds.

    Hours may exceed 24 and seconds may carry a fraction
    ("03:12:45.123456"), which is truncated. Each segment that does not
    parse counts as zero.

    Examples:
        "02:30:00" → 9000
        "02:xx:10" → 7210
        "bad" → 0, "" → 0, None → 0
    """
    if not isinstance(value, str) or not value.strip():
        return 0
    parts = value.strip().split(":")
    if len(parts) > 3:
        return 0
    # "MM:SS" and "SS" forms are read right-aligned
    parts = ["0"] * (3 - len(parts)) + parts
    hours, minutes, seconds = (_parse_segment(p) for p in parts)
    return hours * 3600 + minutes * 60 + seconds


def format_duration(seconds: int) -> str:
    """Render seconds as "HH:MM:SS" (hours grow past two digits when needed)."""
    seconds = max(int(seconds), 0)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def parse_month_key(month_key):
    """Parse a "YYYY-MM" key into (year, month), or None."""
    if not isinstance(month_key, str):
        return None
    try:
        parsed = datetime.strptime(month_key.strip(), "%Y-%m")
    except ValueError:
        return None
    return parsed.year, parsed.month


def _month_in_window(month_key, since, until) -> bool:
    if since is None and until is None:
        return True
    parsed = parse_month_key(month_key)
    if parsed is None:
        # Cannot place an unreadable month inside a bounded window
        return False
    if since is not None and parsed < parse_month_key(since):
        return False
    if until is not None and parsed > parse_month_key(until):
        return False
    return True


def _month_days(month_data) -> dict:
    if not isinstance(month_data, dict):
        return {}
    days = month_data.get("days")
    return days if isinstance(days, dict) else {}


def total_seconds(months, since: str = None, until: str = None) -> int:
    """
    Sum every day of every month of an attendance map into seconds.

    Args:
        months: Month map as described in the module docstring
        since: Optional inclusive lower bound as "YYYY-MM"
        until: Optional inclusive upper bound as "YYYY-MM"

    Returns:
        Total seconds; 0 for empty or malformed maps
    """
    if not isinstance(months, dict):
        return 0

    total = 0
    for month_key, month_data in months.items():
        if not _month_in_window(month_key, since, until):
            continue
        days = _month_days(month_data)
        if days:
            total += sum(parse_duration(d) for d in days.values())
        elif isinstance(month_data, dict):
            total += parse_duration(month_data.get("totalDuration"))
    return total


def iter_days(months):
    """
    Yield (date_key, seconds) for every non-zero day of an attendance map.

    date_key is "YYYY-MM-DD" built from the month key and the zero-padded
    day key; it is not validated here (see bucket_for).
    """
    if not isinstance(months, dict):
        return
    for month_key, month_data in months.items():
        for day_key, duration in _month_days(month_data).items():
            seconds = parse_duration(duration)
            if seconds <= 0:
                continue
            yield "{}-{}".format(month_key, str(day_key).zfill(2)), seconds


def bucket_for(date_key, seconds) -> dict:
    """
    Attribute a dated duration to a weekday and an approximate hour range.

    Returns:
        {"day_of_week": "Mon".."Sun" or None when the date does not parse,
         "hour_range": (start_hour, end_hour) or None under one full hour}
    """
    day_of_week = None
    if isinstance(date_key, str):
        try:
            day_of_week = DAY_NAMES[date.fromisoformat(date_key).weekday()]
        except ValueError:
            day_of_week = None

    hours = _parse_segment(seconds) // 3600
    active_hours = min(hours, MAX_ATTRIBUTED_HOURS)
    hour_range = None
    if active_hours > 0:
        hour_range = (WORKDAY_START_HOUR, WORKDAY_START_HOUR + active_hours)

    return {"day_of_week": day_of_week, "hour_range": hour_range}


def interval_seconds(begin_at, end_at) -> int:
    """Length of a session in seconds; open or inverted sessions count as zero."""
    if begin_at is None or end_at is None:
        return 0
    try:
        elapsed = (end_at - begin_at).total_seconds()
    except TypeError:
        # Mixed naive/aware timestamps from different sync revisions
        elapsed = (end_at.replace(tzinfo=None) - begin_at.replace(tzinfo=None)).total_seconds()
    return int(elapsed) if elapsed > 0 else 0
