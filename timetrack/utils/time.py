"""
Duration formatting and parsing helpers.

All durations are whole seconds. Parsing accepts free-text input such as
"2h 30m", "90m", "1.5h" or a bare number (minutes).
"""

import math
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple


_HOURS_RE = re.compile(r"(\d+(?:\.\d+)?)h")
_MINUTES_RE = re.compile(r"(\d+(?:\.\d+)?)m")
_SECONDS_RE = re.compile(r"(\d+(?:\.\d+)?)s")
_TIME_INPUT_RE = re.compile(r"^(\d+(?:\.\d+)?[hms]\s*)*\d+(?:\.\d+)?[hms]?$")
_LEADING_NUMBER_RE = re.compile(r"^\s*[-+]?(\d+(?:\.\d*)?|\.\d+)")


def _split(seconds: int) -> Tuple[int, int, int]:
    seconds = int(seconds)
    return seconds // 3600, (seconds % 3600) // 60, seconds % 60


def format_duration(seconds: int) -> str:
    """Format seconds as e.g. ``"1h 5m 3s"``, ``"5m 3s"`` or ``"3s"``."""
    if seconds < 0:
        return "0s"

    hours, minutes, remaining = _split(seconds)
    if hours > 0:
        return f"{hours}h {minutes}m {remaining}s"
    elif minutes > 0:
        return f"{minutes}m {remaining}s"
    return f"{remaining}s"


def format_duration_compact(seconds: int) -> str:
    """Format seconds as e.g. ``"2h 30m"``, ``"2h"``, ``"45m"`` or ``"< 1m"``."""
    if seconds < 0:
        return "0m"

    hours, minutes, _ = _split(seconds)
    if hours > 0:
        return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"
    elif minutes > 0:
        return f"{minutes}m"
    return "< 1m"


def format_timer_display(seconds: int) -> str:
    """Format seconds for a running stopwatch (``HH:MM:SS``)."""
    hours, minutes, remaining = _split(max(0, seconds))
    return f"{hours:02d}:{minutes:02d}:{remaining:02d}"


def format_time_for_context(seconds: int, context: str = "medium") -> str:
    """Pick a duration format: short (timer), long (full) or medium (compact)."""
    if context == "short":
        return format_timer_display(seconds)
    if context == "long":
        return format_duration(seconds)
    return format_duration_compact(seconds)


def parse_time_input(text: str) -> int:
    """
    Parse free-text duration input into seconds.

    Examples:
        "2h 30m" -> 9000
        "90m"    -> 5400
        "1.5h"   -> 5400
        "45"     -> 2700  (bare numbers are minutes)

    Unparseable input yields 0.
    """
    cleaned = text.lower().strip()
    total = 0.0

    hours = _HOURS_RE.search(cleaned)
    minutes = _MINUTES_RE.search(cleaned)
    seconds = _SECONDS_RE.search(cleaned)

    if hours:
        total += float(hours.group(1)) * 3600
    if minutes:
        total += float(minutes.group(1)) * 60
    if seconds:
        total += float(seconds.group(1))

    if not (hours or minutes or seconds):
        number = _LEADING_NUMBER_RE.match(cleaned)
        if number:
            total = float(number.group(0)) * 60

    return int(math.floor(total + 0.5))


def is_valid_time_input(text: str) -> bool:
    """Check whether ``text`` is something :func:`parse_time_input` understands."""
    if not text.strip():
        return False
    cleaned = text.lower().strip()
    return bool(_TIME_INPUT_RE.match(cleaned)) or bool(_LEADING_NUMBER_RE.match(cleaned))


def elapsed_seconds(start: datetime, end: Optional[datetime] = None) -> int:
    """Whole seconds between ``start`` and ``end`` (defaults to now)."""
    if end is None:
        end = datetime.now(start.tzinfo) if start.tzinfo else datetime.now()
    return int((end - start).total_seconds())


def align_timezones(start: Optional[datetime],
                    end: Optional[datetime]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Make a pair of datetimes comparable.

    When exactly one of them is naive it is read in the zone of the other.
    """
    if start is None or end is None:
        return start, end
    if start.tzinfo is None and end.tzinfo is not None:
        return start.replace(tzinfo=end.tzinfo), end
    if end.tzinfo is None and start.tzinfo is not None:
        return start, end.replace(tzinfo=start.tzinfo)
    return start, end


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=23, minute=59, second=59, microsecond=999999)


def get_date_ranges(now: Optional[datetime] = None) -> Dict[str, Tuple[datetime, datetime]]:
    """
    Common reporting periods relative to ``now``.

    Weeks start on Sunday. "This" periods end at the end of today.

    Returns:
        Mapping of period name to (start, end) tuples for today, yesterday,
        this_week, last_week, this_month and last_month
    """
    if now is None:
        now = datetime.now(timezone.utc)

    today = start_of_day(now)
    yesterday = today - timedelta(days=1)

    # Python weekday(): Monday == 0, so Sunday-based offset is (weekday + 1) % 7
    this_week_start = today - timedelta(days=(today.weekday() + 1) % 7)
    last_week_start = this_week_start - timedelta(days=7)
    last_week_end = this_week_start - timedelta(days=1)

    this_month_start = today.replace(day=1)
    last_month_end = this_month_start - timedelta(days=1)
    last_month_start = last_month_end.replace(day=1)

    return {
        "today": (today, end_of_day(now)),
        "yesterday": (yesterday, end_of_day(yesterday)),
        "this_week": (this_week_start, end_of_day(now)),
        "last_week": (last_week_start, end_of_day(last_week_end)),
        "this_month": (this_month_start, end_of_day(now)),
        "last_month": (last_month_start, end_of_day(last_month_end)),
    }


def get_time_ago(moment: datetime, now: Optional[datetime] = None) -> str:
    """Human "time ago" string, e.g. ``"3 minutes ago"`` or ``"yesterday"``."""
    if now is None:
        now = datetime.now(moment.tzinfo) if moment.tzinfo else datetime.now()

    diff_seconds = int((now - moment).total_seconds())
    diff_minutes = diff_seconds // 60
    diff_hours = diff_minutes // 60
    diff_days = diff_hours // 24

    if diff_seconds < 60:
        return "just now"
    if diff_minutes < 60:
        return f"{diff_minutes} minute{'' if diff_minutes == 1 else 's'} ago"
    if diff_hours < 24:
        return f"{diff_hours} hour{'' if diff_hours == 1 else 's'} ago"
    if diff_days == 1:
        return "yesterday"
    if diff_days < 7:
        return f"{diff_days} days ago"
    return moment.strftime("%Y-%m-%d")
