"""Test time and calendar helpers."""
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from verticals.courts.time_utils import (
    calendar_week,
    day_of_week,
    format_hhmm,
    is_aligned_to_slot,
    matches_weekly_recurrence,
    minutes_between,
    next_aligned_slot,
    parse_weekly_days,
    rolling_week,
    time_ranges_overlap,
    to_local,
    to_time,
    week_window,
)


def test_to_time_accepts_strings():
    assert to_time("7:05") == time(7, 5)
    assert to_time("18:30:15") == time(18, 30, 15)
    assert to_time(time(9, 0)) == time(9, 0)


def test_day_of_week_is_sunday_first():
    assert day_of_week(date(2025, 6, 8)) == 0  # Sunday
    assert day_of_week(date(2025, 6, 10)) == 2  # Tuesday
    assert day_of_week(date(2025, 6, 14)) == 6  # Saturday


def test_calendar_week_runs_sunday_to_saturday():
    assert calendar_week(date(2025, 6, 11)) == (date(2025, 6, 8), date(2025, 6, 14))
    assert calendar_week(date(2025, 6, 8)) == (date(2025, 6, 8), date(2025, 6, 14))


def test_rolling_week_ends_on_reference():
    assert rolling_week(date(2025, 6, 11)) == (date(2025, 6, 5), date(2025, 6, 11))
    assert week_window("rolling_7_days", date(2025, 6, 11))[0] == date(2025, 6, 5)
    assert week_window("calendar_week", date(2025, 6, 11))[0] == date(2025, 6, 8)


def test_overlap_is_half_open():
    assert time_ranges_overlap(time(10), time(11), time(10, 30), time(11, 30))
    assert not time_ranges_overlap(time(10), time(11), time(11), time(12))
    assert not time_ranges_overlap(time(11), time(12), time(10), time(11))


def test_overlap_grace_shrinks_existing_interval():
    # Existing 10:00-11:00 with 10 minutes of grace behaves like 10:10-10:50
    assert not time_ranges_overlap(time(10, 50), time(12), time(10), time(11), grace_minutes=10)
    assert time_ranges_overlap(time(10, 45), time(12), time(10), time(11), grace_minutes=10)


def test_minutes_between_floors():
    start = datetime(2025, 6, 10, 9, 0, 0)
    assert minutes_between(start, datetime(2025, 6, 10, 9, 14, 59)) == 14
    assert minutes_between(start, datetime(2025, 6, 10, 8, 59, 30)) == -1


def test_to_local_converts_aware_and_keeps_naive():
    aware = datetime(2025, 6, 10, 13, 0, tzinfo=timezone.utc)
    assert to_local(aware, ZoneInfo("America/New_York")) == datetime(2025, 6, 10, 9, 0)
    naive = datetime(2025, 6, 10, 9, 0)
    assert to_local(naive, ZoneInfo("America/New_York")) is naive


def test_slot_alignment():
    assert is_aligned_to_slot(time(10, 30), 30)
    assert not is_aligned_to_slot(time(10, 15), 30)
    assert next_aligned_slot(time(10, 15), 30) == time(10, 30)
    assert next_aligned_slot(time(10, 0), 30) == time(10, 0)
    assert format_hhmm(time(7, 5)) == "07:05"


def test_parse_weekly_days():
    assert parse_weekly_days("FREQ=WEEKLY;BYDAY=MO,WE") == [1, 3]
    assert parse_weekly_days("FREQ=WEEKLY") is None


def test_weekly_recurrence_with_byday():
    rule = "FREQ=WEEKLY;BYDAY=TU,TH"
    series_start = date(2025, 6, 3)
    assert matches_weekly_recurrence(rule, series_start, date(2025, 6, 10))
    assert not matches_weekly_recurrence(rule, series_start, date(2025, 6, 11))


def test_weekly_recurrence_defaults_to_series_weekday():
    assert matches_weekly_recurrence("FREQ=WEEKLY", date(2025, 6, 3), date(2025, 6, 17))
    assert not matches_weekly_recurrence("FREQ=WEEKLY", date(2025, 6, 3), date(2025, 6, 18))


def test_recurrence_never_matches_before_series_start():
    assert not matches_weekly_recurrence("FREQ=WEEKLY;BYDAY=TU", date(2025, 6, 10), date(2025, 6, 3))


def test_unsupported_frequency_never_matches():
    assert not matches_weekly_recurrence("FREQ=DAILY", date(2025, 6, 3), date(2025, 6, 4))
