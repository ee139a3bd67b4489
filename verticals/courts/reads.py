"""Read interface the rules engine depends on.

The engine never talks to a database directly. Anything that implements
``ContextReads`` (the SQLAlchemy adapter in ``repository.py``, or an
in-memory fake in tests) can feed it.

Contract: lookups of a single entity return ``None`` when missing; list
reads return an empty list when there are no rows. Implementations raise
``TransientIOError`` for connectivity failures.
"""

from datetime import date, datetime, time
from typing import Protocol

from verticals.courts.types import (
    AccountStrike,
    Booking,
    BookingCancellation,
    Court,
    CourtBlackout,
    Facility,
    HouseholdGroup,
    MembershipTier,
    UserProfile,
)


class ContextReads(Protocol):
    # -- Entities --

    async def get_user(self, user_id: str) -> UserProfile | None: ...

    async def get_user_tier(
        self, user_id: str, facility_id: str, as_of: datetime
    ) -> MembershipTier | None:
        """Explicit, non-expired tier assignment only (no default fallback)."""
        ...

    async def is_facility_admin(self, user_id: str, facility_id: str) -> bool: ...

    async def get_court(self, court_id: str) -> Court | None: ...

    async def get_facility(self, facility_id: str) -> Facility | None: ...

    async def get_household(self, user_id: str, facility_id: str) -> HouseholdGroup | None: ...

    async def get_booking(self, booking_id: str) -> Booking | None: ...

    # -- Lists --

    async def list_user_bookings(
        self, user_id: str, facility_id: str, since: date
    ) -> list[Booking]: ...

    async def list_household_bookings(
        self, member_ids: list[str], facility_id: str, since: date
    ) -> list[Booking]: ...

    async def list_court_bookings(self, court_id: str, booking_date: date) -> list[Booking]: ...

    async def list_active_strikes(
        self, user_id: str, facility_id: str, as_of: datetime
    ) -> list[AccountStrike]:
        """Non-revoked strikes that have not expired as of ``as_of``."""
        ...

    async def list_recent_cancellations(
        self, user_id: str, facility_id: str, since: datetime
    ) -> list[BookingCancellation]: ...

    async def list_blackouts(
        self, facility_id: str, court_id: str, booking_date: date
    ) -> list[CourtBlackout]:
        """Active blackouts touching ``booking_date`` or carrying a recurrence rule."""
        ...

    # -- Live counts (used by CRT-009 and ACC-011) --

    async def count_concurrent_activity(
        self,
        facility_id: str,
        booking_date: date,
        activity_type: str,
        start_time: time,
        end_time: time,
        court_id: str | None = None,
    ) -> int: ...

    async def count_recent_actions(
        self,
        user_id: str,
        facility_id: str,
        action_types: list[str],
        window_seconds: int,
    ) -> int:
        """Actions logged in the last ``window_seconds`` by the store's own clock."""
        ...
