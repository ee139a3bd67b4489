"""In-memory ContextReads and record builders for the courts tests."""

import asyncio
import dataclasses
from datetime import date, datetime, time, timedelta

from verticals.courts.errors import TransientIOError
from verticals.courts.households import ACTIVE_STATUSES
from verticals.courts.time_utils import time_ranges_overlap
from verticals.courts.types import (
    AccountStrike,
    Booking,
    BookingCancellation,
    BookingRequest,
    BookingStatus,
    Court,
    CourtBlackout,
    CourtDayConfig,
    Facility,
    FacilityRuleConfig,
    HouseholdGroup,
    HouseholdMember,
    MembershipTier,
    StrikeType,
    UserProfile,
)

# Tuesday morning, facility-local
NOW = datetime(2025, 6, 10, 9, 0)
TODAY = NOW.date()
TOMORROW = TODAY + timedelta(days=1)


def make_court(**overrides) -> Court:
    days = tuple(
        CourtDayConfig(
            day_of_week=dow,
            open_time=time(6, 0),
            close_time=time(22, 0),
            prime_time_start=time(17, 0),
            prime_time_end=time(20, 0),
        )
        for dow in range(7)
    )
    values = {"id": "court-1", "facility_id": "fac-1", "name": "Court 1", "operating_config": days}
    values.update(overrides)
    return Court(**values)


def make_tier(**overrides) -> MembershipTier:
    values = {"id": "tier-std", "name": "Standard", "is_default": True}
    values.update(overrides)
    return MembershipTier(**values)


def make_facility(*rule_configs: FacilityRuleConfig, **overrides) -> Facility:
    values = {
        "id": "fac-1",
        "name": "Riverside Club",
        "timezone": "America/New_York",
        "rule_configs": tuple(rule_configs),
        "default_tier": make_tier(),
    }
    values.update(overrides)
    return Facility(**values)


def rule_row(code: str, config: dict | None = None, **overrides) -> FacilityRuleConfig:
    return FacilityRuleConfig(rule_code=code, rule_config=config or {}, **overrides)


def make_request(**overrides) -> BookingRequest:
    values = {
        "user_id": "user-1",
        "court_id": "court-1",
        "facility_id": "fac-1",
        "booking_date": TOMORROW,
        "start_time": time(10, 0),
        "end_time": time(11, 0),
    }
    values.update(overrides)
    return BookingRequest(**values)


_booking_ids = iter(range(1, 10_000))


def make_booking(**overrides) -> Booking:
    values = {
        "id": f"bk-{next(_booking_ids)}",
        "user_id": "user-1",
        "court_id": "court-1",
        "facility_id": "fac-1",
        "booking_date": TOMORROW,
        "start_time": time(14, 0),
        "end_time": time(15, 0),
        "court_name": "Court 1",
    }
    values.update(overrides)
    return Booking(**values)


def make_strike(issued_at: datetime, **overrides) -> AccountStrike:
    values = {
        "id": f"st-{issued_at.isoformat()}",
        "user_id": "user-1",
        "facility_id": "fac-1",
        "strike_type": StrikeType.NO_SHOW,
        "issued_at": issued_at,
    }
    values.update(overrides)
    return AccountStrike(**values)


def make_cancellation(cancelled_at: datetime, minutes_before_start: int = 60, **overrides):
    values = {
        "booking_id": "bk-old",
        "user_id": "user-1",
        "facility_id": "fac-1",
        "cancelled_at": cancelled_at,
        "booking_start": cancelled_at + timedelta(minutes=minutes_before_start),
        "minutes_before_start": minutes_before_start,
    }
    values.update(overrides)
    return BookingCancellation(**values)


def make_blackout(start: datetime, end: datetime, **overrides) -> CourtBlackout:
    values = {
        "id": "bo-1",
        "facility_id": "fac-1",
        "start_datetime": start,
        "end_datetime": end,
        "title": "Resurfacing",
    }
    values.update(overrides)
    return CourtBlackout(**values)


def make_household(*member_ids: str, **overrides) -> HouseholdGroup:
    values = {
        "id": "hh-1",
        "facility_id": "fac-1",
        "street_address": "12 Oak Street",
        "members": tuple(
            HouseholdMember(user_id=uid, is_primary=(i == 0)) for i, uid in enumerate(member_ids)
        ),
    }
    values.update(overrides)
    return HouseholdGroup(**values)


class FakeReads:
    """ContextReads over plain lists, filtering the way the SQL adapter does."""

    def __init__(
        self,
        *,
        users=None,
        courts=None,
        facilities=None,
        tiers=None,
        admins=None,
        households=None,
        bookings=None,
        strikes=None,
        cancellations=None,
        blackouts=None,
        recent_actions: int = 0,
        delay: float = 0.0,
        fail_on: str | None = None,
    ):
        self.users = {u.id: u for u in (users if users is not None else [UserProfile(id="user-1")])}
        self.courts = {c.id: c for c in (courts if courts is not None else [make_court()])}
        self.facilities = {
            f.id: f for f in (facilities if facilities is not None else [make_facility()])
        }
        self.tiers = dict(tiers or {})
        self.admins = set(admins or ())
        self.households = list(households or [])
        self.bookings = list(bookings or [])
        self.strikes = list(strikes or [])
        self.cancellations = list(cancellations or [])
        self.blackouts = list(blackouts or [])
        self.recent_actions = recent_actions
        self.delay = delay
        self.fail_on = fail_on
        self.calls: list[str] = []

    async def _touch(self, name: str) -> None:
        self.calls.append(name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_on == name:
            raise TransientIOError(f"{name} failed")

    def set_facility(self, facility: Facility) -> None:
        self.facilities[facility.id] = facility

    def add_booking(self, booking: Booking) -> None:
        self.bookings.append(booking)

    def cancel_booking(self, booking_id: str) -> None:
        self.bookings = [
            dataclasses.replace(b, status=BookingStatus.CANCELLED) if b.id == booking_id else b
            for b in self.bookings
        ]

    # -- Entities --

    async def get_user(self, user_id):
        await self._touch("get_user")
        return self.users.get(user_id)

    async def get_user_tier(self, user_id, facility_id, as_of):
        await self._touch("get_user_tier")
        return self.tiers.get(user_id)

    async def is_facility_admin(self, user_id, facility_id):
        await self._touch("is_facility_admin")
        return (user_id, facility_id) in self.admins

    async def get_court(self, court_id):
        await self._touch("get_court")
        return self.courts.get(court_id)

    async def get_facility(self, facility_id):
        await self._touch("get_facility")
        return self.facilities.get(facility_id)

    async def get_household(self, user_id, facility_id):
        await self._touch("get_household")
        for household in self.households:
            if household.facility_id == facility_id and user_id in household.member_ids:
                return household
        return None

    async def get_booking(self, booking_id):
        await self._touch("get_booking")
        for booking in self.bookings:
            if booking.id == booking_id:
                return booking
        return None

    # -- Lists --

    async def list_user_bookings(self, user_id, facility_id, since: date):
        await self._touch("list_user_bookings")
        return [
            b for b in self.bookings
            if b.user_id == user_id and b.facility_id == facility_id and b.booking_date >= since
        ]

    async def list_household_bookings(self, member_ids, facility_id, since: date):
        await self._touch("list_household_bookings")
        return [
            b for b in self.bookings
            if b.user_id in member_ids and b.facility_id == facility_id and b.booking_date >= since
        ]

    async def list_court_bookings(self, court_id, booking_date):
        await self._touch("list_court_bookings")
        return [b for b in self.bookings if b.court_id == court_id and b.booking_date == booking_date]

    async def list_active_strikes(self, user_id, facility_id, as_of):
        await self._touch("list_active_strikes")
        return [
            s for s in self.strikes
            if s.user_id == user_id
            and s.facility_id == facility_id
            and not s.revoked
            and (s.expires_at is None or s.expires_at > as_of)
        ]

    async def list_recent_cancellations(self, user_id, facility_id, since):
        await self._touch("list_recent_cancellations")
        return [
            c for c in self.cancellations
            if c.user_id == user_id and c.facility_id == facility_id and c.cancelled_at >= since
        ]

    async def list_blackouts(self, facility_id, court_id, booking_date):
        await self._touch("list_blackouts")
        return [
            b for b in self.blackouts
            if b.facility_id == facility_id and (b.court_id is None or b.court_id == court_id)
        ]

    # -- Live counts --

    async def count_concurrent_activity(
        self, facility_id, booking_date, activity_type, start_time, end_time, court_id=None
    ):
        await self._touch("count_concurrent_activity")
        return sum(
            1
            for b in self.bookings
            if b.facility_id == facility_id
            and b.booking_date == booking_date
            and b.status in ACTIVE_STATUSES
            and (b.activity_type or b.booking_type) == activity_type
            and (court_id is None or b.court_id == court_id)
            and time_ranges_overlap(start_time, end_time, b.start_time, b.end_time)
        )

    async def count_recent_actions(self, user_id, facility_id, action_types, window_seconds):
        await self._touch("count_recent_actions")
        return self.recent_actions


class FakeWriter:
    """BookingWriter that applies writes to a FakeReads store."""

    def __init__(self, reads: FakeReads):
        self.reads = reads
        self.actions: list[tuple[str, str, str]] = []
        self.cancellations: list = []
        self.strikes: list[dict] = []
        self.links: list[tuple[str, str]] = []
        self.inserted: list[dict] = []

    async def find_slot_conflicts(self, court_id, booking_date, start_time, end_time):
        return [
            b.id for b in self.reads.bookings
            if b.court_id == court_id
            and b.booking_date == booking_date
            and b.status in ACTIVE_STATUSES
            and time_ranges_overlap(start_time, end_time, b.start_time, b.end_time)
        ]

    async def insert_booking(self, request, *, is_prime_time, override=None):
        booking = make_booking(
            user_id=request.user_id,
            court_id=request.court_id,
            facility_id=request.facility_id,
            booking_date=request.booking_date,
            start_time=request.start_time,
            end_time=request.end_time,
            is_prime_time=is_prime_time,
        )
        self.reads.add_booking(booking)
        row = {
            "id": booking.id,
            "user_id": booking.user_id,
            "court_id": booking.court_id,
            "booking_date": booking.booking_date.isoformat(),
            "status": booking.status.value,
            "is_prime_time": is_prime_time,
            "rule_overrides": override.to_dict() if override else None,
        }
        self.inserted.append(row)
        return row

    async def mark_cancelled(self, booking_id):
        self.reads.cancel_booking(booking_id)

    async def mark_no_show(self, booking_id, facility_id):
        for booking in self.reads.bookings:
            if booking.id == booking_id and booking.facility_id == facility_id:
                return {"id": booking.id, "user_id": booking.user_id, "status": "no_show"}
        return None

    async def record_cancellation(self, record):
        self.cancellations.append(record)
        return f"cx-{len(self.cancellations)}"

    async def issue_strike(self, strike, *, expires_at=None, issued_by=None):
        self.strikes.append({"strike": strike, "expires_at": expires_at, "issued_by": issued_by})
        return f"st-{len(self.strikes)}"

    async def link_strike(self, cancellation_id, strike_id):
        self.links.append((cancellation_id, strike_id))

    async def record_action(self, user_id, facility_id, action_type):
        self.actions.append((user_id, facility_id, action_type))
