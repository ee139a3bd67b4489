"""Time and calendar helpers shared by the evaluators.

Conventions:
- Day of week is 0=Sunday .. 6=Saturday.
- Intervals are half-open [start, end).
- All datetimes are naive facility-local wall clock once inside a context.
"""

import re
from datetime import date, datetime, time, timedelta, tzinfo

DAY_CODES = {"SU": 0, "MO": 1, "TU": 2, "WE": 3, "TH": 4, "FR": 5, "SA": 6}

CALENDAR_WEEK = "calendar_week"
ROLLING_7_DAYS = "rolling_7_days"

_BYDAY = re.compile(r"BYDAY=([A-Z,]+)")


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------

def to_time(value: time | str) -> time:
    """Accept a ``time`` or an ``HH:MM[:SS]`` string."""
    if isinstance(value, time):
        return value
    parts = [int(p) for p in value.strip().split(":")]
    while len(parts) < 3:
        parts.append(0)
    return time(parts[0], parts[1], parts[2])


def time_to_minutes(value: time | str) -> int:
    t = to_time(value)
    return t.hour * 60 + t.minute


def minutes_to_time(minutes: int) -> time:
    minutes = max(0, min(minutes, 24 * 60 - 1))
    return time(minutes // 60, minutes % 60)


def format_hhmm(value: time | str) -> str:
    return to_time(value).strftime("%H:%M")


def combine(day: date, value: time | str) -> datetime:
    return datetime.combine(day, to_time(value))


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from ``start`` to ``end``, floored."""
    return int((end - start).total_seconds() // 60)


def to_local(value: datetime, tz: tzinfo) -> datetime:
    """Convert an aware datetime to naive local time in ``tz``.

    Naive values are assumed to already be local and returned unchanged.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(tz).replace(tzinfo=None)


# ---------------------------------------------------------------------------
# Intervals
# ---------------------------------------------------------------------------

def time_ranges_overlap(
    start1: time | str,
    end1: time | str,
    start2: time | str,
    end2: time | str,
    grace_minutes: int = 0,
) -> bool:
    """Half-open overlap test on minute-of-day values.

    ``grace_minutes`` shrinks the second interval on both ends, so an
    existing booking may be brushed against by that many minutes.
    """
    s1, e1 = time_to_minutes(start1), time_to_minutes(end1)
    s2 = time_to_minutes(start2) + grace_minutes
    e2 = time_to_minutes(end2) - grace_minutes
    return s1 < e2 and e1 > s2


def datetime_ranges_overlap(
    start1: datetime, end1: datetime, start2: datetime, end2: datetime
) -> bool:
    return start1 < end2 and end1 > start2


# ---------------------------------------------------------------------------
# Calendar windows
# ---------------------------------------------------------------------------

def day_of_week(day: date) -> int:
    return (day.weekday() + 1) % 7


def calendar_week(reference: date) -> tuple[date, date]:
    """Sunday..Saturday week containing ``reference`` (inclusive)."""
    start = reference - timedelta(days=day_of_week(reference))
    return start, start + timedelta(days=6)


def rolling_week(reference: date) -> tuple[date, date]:
    """The seven days ending on ``reference`` (inclusive)."""
    return reference - timedelta(days=6), reference


def week_window(window_type: str, reference: date) -> tuple[date, date]:
    if window_type == ROLLING_7_DAYS:
        return rolling_week(reference)
    return calendar_week(reference)


def in_window(day: date, window: tuple[date, date]) -> bool:
    return window[0] <= day <= window[1]


# ---------------------------------------------------------------------------
# Slot grid
# ---------------------------------------------------------------------------

def is_aligned_to_slot(value: time | str, slot_minutes: int) -> bool:
    if slot_minutes <= 0:
        return True
    return time_to_minutes(value) % slot_minutes == 0


def next_aligned_slot(value: time | str, slot_minutes: int) -> time:
    minutes = time_to_minutes(value)
    aligned = -(-minutes // slot_minutes) * slot_minutes
    return minutes_to_time(aligned)


# ---------------------------------------------------------------------------
# Weekly recurrence
# ---------------------------------------------------------------------------

def parse_weekly_days(rule: str) -> list[int] | None:
    """Weekdays named by ``BYDAY``, or None when the rule has no BYDAY."""
    match = _BYDAY.search(rule.upper())
    if not match:
        return None
    return [DAY_CODES[code] for code in match.group(1).split(",") if code in DAY_CODES]


def matches_weekly_recurrence(rule: str, series_start: date, target: date) -> bool:
    """Match ``FREQ=WEEKLY[;BYDAY=..]`` against ``target``.

    Without BYDAY the series repeats on ``series_start``'s weekday. Dates
    before the series starts never match. Other frequencies are not
    supported and never match.
    """
    if "FREQ=WEEKLY" not in rule.upper():
        return False
    if target < series_start:
        return False
    days = parse_weekly_days(rule)
    if days is None:
        return day_of_week(series_start) == day_of_week(target)
    return day_of_week(target) in days
