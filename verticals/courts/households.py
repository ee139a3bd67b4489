"""Household helpers: address normalization, membership, and counting."""

import re
from datetime import date
from typing import Any

from verticals.courts.prime_time import count_prime_time_bookings
from verticals.courts.time_utils import CALENDAR_WEEK, in_window, week_window
from verticals.courts.types import Booking, BookingStatus, HouseholdGroup

ACTIVE_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.PENDING)

_ABBREVIATIONS = {
    "street": "st",
    "avenue": "ave",
    "boulevard": "blvd",
    "drive": "dr",
    "road": "rd",
    "lane": "ln",
    "court": "ct",
    "circle": "cir",
    "place": "pl",
    "terrace": "ter",
    "highway": "hwy",
    "apartment": "apt",
    "suite": "ste",
    "building": "bldg",
    "floor": "fl",
    "north": "n",
    "south": "s",
    "east": "e",
    "west": "w",
    "northeast": "ne",
    "northwest": "nw",
    "southeast": "se",
    "southwest": "sw",
}
_ABBREVIATION_RE = re.compile(r"\b(" + "|".join(_ABBREVIATIONS) + r")\b")


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------

def normalize_address(address: str | None) -> str:
    """Lowercase, abbreviate street words, drop ``.,#``, collapse spaces."""
    if not address:
        return ""
    normalized = address.lower().strip()
    normalized = _ABBREVIATION_RE.sub(lambda m: _ABBREVIATIONS[m.group(1)], normalized)
    normalized = re.sub(r"[.,#]", "", normalized)
    normalized = re.sub(r"\s+", " ", normalized)
    return normalized.strip()


def addresses_match(first: str | None, second: str | None) -> bool:
    return normalize_address(first) == normalize_address(second)


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------

def is_household_full(household: HouseholdGroup, default_max: int) -> bool:
    return len(household.members) >= (household.max_members or default_max)


def user_household_role(user_id: str, household: HouseholdGroup) -> str:
    """``primary``, ``member``, or ``none``."""
    for member in household.members:
        if member.user_id == user_id:
            return "primary" if member.is_primary else "member"
    return "none"


# ---------------------------------------------------------------------------
# Counting
# ---------------------------------------------------------------------------

def count_active_bookings(bookings: list[Booking], today: date) -> int:
    """Confirmed or pending bookings dated today or later."""
    return sum(1 for b in bookings if b.status in ACTIVE_STATUSES and b.booking_date >= today)


def count_bookings_in_window(bookings: list[Booking], window_type: str, reference: date) -> int:
    window = week_window(window_type, reference)
    return sum(1 for b in bookings if not b.is_cancelled and in_window(b.booking_date, window))


def remaining_slots(current: int, maximum: int) -> int:
    return max(0, maximum - current)


def household_booking_summary(
    household: HouseholdGroup, bookings: list[Booking], today: date
) -> dict[str, Any]:
    """Counts and caps for a household, for display in admin tooling."""
    active = count_active_bookings(bookings, today)
    return {
        "household_id": household.id,
        "total_members": len(household.members),
        "max_members": household.max_members,
        "active_bookings": active,
        "max_active_bookings": household.max_active_reservations,
        "remaining_active_bookings": (
            remaining_slots(active, household.max_active_reservations)
            if household.max_active_reservations is not None
            else None
        ),
        "bookings_this_week": count_bookings_in_window(bookings, CALENDAR_WEEK, today),
        "prime_time_this_week": count_prime_time_bookings(bookings, CALENDAR_WEEK, today),
        "max_prime_time_per_week": household.prime_time_max_per_week,
    }
