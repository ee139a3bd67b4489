"""Test household helpers."""
from datetime import timedelta

from fakes import TODAY, make_booking, make_household
from verticals.courts.households import (
    addresses_match,
    count_active_bookings,
    household_booking_summary,
    is_household_full,
    normalize_address,
    user_household_role,
)
from verticals.courts.types import BookingStatus


def test_normalize_address():
    assert normalize_address("  12 Oak Street, Apt. #4 ") == "12 oak st apt 4"
    assert normalize_address("500 North   Main Avenue") == "500 n main ave"
    assert normalize_address(None) == ""


def test_addresses_match_across_spellings():
    assert addresses_match("12 Oak Street", "12 oak st.")
    assert not addresses_match("12 Oak Street", "14 Oak Street")


def test_household_full_uses_household_cap_first():
    household = make_household("u1", "u2", max_members=2)
    assert is_household_full(household, default_max=6)
    assert not is_household_full(make_household("u1", "u2"), default_max=6)


def test_user_household_role():
    household = make_household("u1", "u2")
    assert user_household_role("u1", household) == "primary"
    assert user_household_role("u2", household) == "member"
    assert user_household_role("u3", household) == "none"


def test_count_active_bookings_only_future_confirmed_or_pending():
    bookings = [
        make_booking(booking_date=TODAY),
        make_booking(booking_date=TODAY + timedelta(days=2), status=BookingStatus.PENDING),
        make_booking(booking_date=TODAY - timedelta(days=1)),
        make_booking(booking_date=TODAY, status=BookingStatus.CANCELLED),
        make_booking(booking_date=TODAY, status=BookingStatus.COMPLETED),
    ]
    assert count_active_bookings(bookings, TODAY) == 2


def test_household_booking_summary():
    household = make_household("u1", "u2", max_active_reservations=3)
    bookings = [
        make_booking(user_id="u1", booking_date=TODAY, is_prime_time=True),
        make_booking(user_id="u2", booking_date=TODAY + timedelta(days=1)),
    ]
    summary = household_booking_summary(household, bookings, TODAY)
    assert summary["total_members"] == 2
    assert summary["active_bookings"] == 2
    assert summary["remaining_active_bookings"] == 1
    assert summary["prime_time_this_week"] == 1
    assert summary["bookings_this_week"] == 2
