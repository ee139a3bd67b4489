"""Prime-time helpers: window lookup, overlap, counting, eligibility."""

from datetime import date, time

from verticals.courts.time_utils import (
    day_of_week,
    in_window,
    time_ranges_overlap,
    time_to_minutes,
    to_time,
    week_window,
)
from verticals.courts.types import Booking, Court, CourtDayConfig


def _prime_config(court: Court, booking_date: date) -> CourtDayConfig | None:
    config = court.day_config(day_of_week(booking_date))
    if config is None or config.prime_time_start is None or config.prime_time_end is None:
        return None
    return config


def is_prime_time(court: Court, booking_date: date, start: time, end: time) -> bool:
    """True when [start, end) overlaps the court's prime window for that weekday."""
    config = _prime_config(court, booking_date)
    if config is None:
        return False
    return time_ranges_overlap(start, end, config.prime_time_start, config.prime_time_end)


def prime_time_windows(court: Court, booking_date: date) -> list[tuple[time, time]]:
    config = _prime_config(court, booking_date)
    if config is None:
        return []
    return [(config.prime_time_start, config.prime_time_end)]


def prime_time_max_duration(court: Court, booking_date: date) -> int | None:
    config = _prime_config(court, booking_date)
    if config is None:
        return None
    return config.prime_time_max_duration or None


def prime_time_overlap_percentage(court: Court, booking_date: date, start: time, end: time) -> float:
    config = _prime_config(court, booking_date)
    if config is None:
        return 0.0

    booking_start, booking_end = time_to_minutes(start), time_to_minutes(end)
    overlap_start = max(booking_start, time_to_minutes(config.prime_time_start))
    overlap_end = min(booking_end, time_to_minutes(config.prime_time_end))
    if overlap_start >= overlap_end or booking_end <= booking_start:
        return 0.0
    return (overlap_end - overlap_start) / (booking_end - booking_start) * 100


def count_prime_time_bookings(
    bookings: list[Booking], window_type: str, reference: date
) -> int:
    """Non-cancelled prime-time bookings inside the week window around ``reference``."""
    window = week_window(window_type, reference)
    return sum(
        1
        for b in bookings
        if b.is_prime_time and not b.is_cancelled and in_window(b.booking_date, window)
    )


def is_tier_eligible_for_prime_time(
    tier_name: str | None,
    allowed_tiers: list[str],
    allow_admin_override: bool = True,
    is_facility_admin: bool = False,
) -> bool:
    if allow_admin_override and is_facility_admin:
        return True
    if not allowed_tiers:
        return True
    if not tier_name:
        return False
    return any(allowed.lower() == tier_name.lower() for allowed in allowed_tiers)


def remaining_prime_time_bookings(current: int, maximum: int) -> int:
    return max(0, maximum - current)


def format_prime_time_window(start: time | str, end: time | str) -> str:
    """Display form, e.g. ``6PM - 9:30PM``."""

    def _fmt(value: time | str) -> str:
        t = to_time(value)
        period = "PM" if t.hour >= 12 else "AM"
        hours = t.hour % 12 or 12
        if t.minute == 0:
            return f"{hours}{period}"
        return f"{hours}:{t.minute:02d}{period}"

    return f"{_fmt(start)} - {_fmt(end)}"
