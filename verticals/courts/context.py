"""Context builder: one immutable read-snapshot per evaluation.

Independent reads fan out concurrently and are awaited together under a
single timeout. Booking history is read in a second phase: its window starts
from the facility-local date and household bookings need the household lookup.
Every datetime in a built context is naive facility-local wall clock.
"""

import asyncio
import dataclasses
import logging
import time as _time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Awaitable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from patterns.domain_config import RulesEngineConfig
from verticals.courts.errors import NotFoundError, TransientIOError
from verticals.courts.prime_time import is_prime_time
from verticals.courts.reads import ContextReads
from verticals.courts.time_utils import combine, day_of_week, to_local
from verticals.courts.types import (
    AccountStrike,
    Booking,
    BookingCancellation,
    BookingRequest,
    CancellationRequest,
    Court,
    CourtBlackout,
    CourtDayConfig,
    Facility,
    HouseholdGroup,
    MembershipTier,
    UserProfile,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Context types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RuleContext:
    """Everything an evaluator may look at for one booking request."""

    request: BookingRequest
    user: UserProfile
    tier: MembershipTier | None
    court: Court
    facility: Facility
    household: HouseholdGroup | None
    user_bookings: tuple[Booking, ...]
    household_bookings: tuple[Booking, ...]
    court_bookings: tuple[Booking, ...]
    strikes: tuple[AccountStrike, ...]
    recent_cancellations: tuple[BookingCancellation, ...]
    blackouts: tuple[CourtBlackout, ...]
    now: datetime
    is_prime_time: bool
    is_admin: bool = False
    reads: ContextReads | None = field(default=None, compare=False, repr=False)
    settings: RulesEngineConfig = field(
        default_factory=RulesEngineConfig.default, compare=False, repr=False
    )

    @property
    def today(self) -> date:
        return self.now.date()

    @property
    def day_of_week(self) -> int:
        return day_of_week(self.request.booking_date)

    @property
    def day_config(self) -> CourtDayConfig | None:
        return self.court.day_config(self.day_of_week)

    @property
    def request_start(self) -> datetime:
        return combine(self.request.booking_date, self.request.start_time)

    @property
    def request_end(self) -> datetime:
        return combine(self.request.booking_date, self.request.end_time)


@dataclass(frozen=True)
class CancellationContext:
    request: CancellationRequest
    booking: Booking
    court: Court
    facility: Facility
    tier: MembershipTier | None
    now: datetime

    @property
    def booking_start(self) -> datetime:
        return combine(self.booking.booking_date, self.booking.start_time)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def facility_timezone(facility: Facility, settings: RulesEngineConfig) -> ZoneInfo:
    name = facility.timezone or settings.default_timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {name!r} for facility {facility.id}, using default")
        return ZoneInfo(settings.default_timezone)


async def bounded_read(settings: RulesEngineConfig, read: Awaitable[Any]) -> Any:
    """Await one read under the request-scoped timeout."""
    try:
        return await asyncio.wait_for(read, timeout=settings.reads.timeout_seconds)
    except asyncio.TimeoutError as exc:
        raise TransientIOError(
            f"Read timed out after {settings.reads.timeout_seconds}s"
        ) from exc


async def gather_reads(settings: RulesEngineConfig, *reads: Awaitable[Any]) -> list[Any]:
    return await bounded_read(settings, asyncio.gather(*reads))


def localize_strike(strike: AccountStrike, tz: ZoneInfo) -> AccountStrike:
    return dataclasses.replace(
        strike,
        issued_at=to_local(strike.issued_at, tz),
        expires_at=to_local(strike.expires_at, tz) if strike.expires_at else None,
    )


def _localize_cancellation(cancellation: BookingCancellation, tz: ZoneInfo) -> BookingCancellation:
    return dataclasses.replace(
        cancellation,
        cancelled_at=to_local(cancellation.cancelled_at, tz),
        booking_start=to_local(cancellation.booking_start, tz),
    )


def _localize_blackout(blackout: CourtBlackout, tz: ZoneInfo) -> CourtBlackout:
    return dataclasses.replace(
        blackout,
        start_datetime=to_local(blackout.start_datetime, tz),
        end_datetime=to_local(blackout.end_datetime, tz),
    )


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

async def build_rule_context(
    request: BookingRequest,
    reads: ContextReads,
    *,
    now: datetime,
    settings: RulesEngineConfig | None = None,
    is_admin: bool = False,
) -> RuleContext:
    """Assemble the read-snapshot for one booking request.

    Raises NotFoundError when the user, court, or facility is missing and
    TransientIOError when the reads fail or exceed the timeout.
    """
    settings = settings or RulesEngineConfig.default()
    started = _time.perf_counter()

    cancel_since = now - timedelta(hours=settings.reads.recent_cancellation_hours)

    (
        user,
        explicit_tier,
        facility_admin,
        court,
        facility,
        household,
        court_bookings,
        strikes,
        cancellations,
        blackouts,
    ) = await gather_reads(
        settings,
        reads.get_user(request.user_id),
        reads.get_user_tier(request.user_id, request.facility_id, now),
        reads.is_facility_admin(request.user_id, request.facility_id),
        reads.get_court(request.court_id),
        reads.get_facility(request.facility_id),
        reads.get_household(request.user_id, request.facility_id),
        reads.list_court_bookings(request.court_id, request.booking_date),
        reads.list_active_strikes(request.user_id, request.facility_id, now),
        reads.list_recent_cancellations(request.user_id, request.facility_id, cancel_since),
        reads.list_blackouts(request.facility_id, request.court_id, request.booking_date),
    )

    if user is None:
        raise NotFoundError("User", request.user_id)
    if court is None:
        raise NotFoundError("Court", request.court_id)
    if facility is None:
        raise NotFoundError("Facility", request.facility_id)

    tz = facility_timezone(facility, settings)
    local_now = to_local(now, tz)
    since = local_now.date() - timedelta(days=settings.reads.booking_history_days)

    history = [reads.list_user_bookings(request.user_id, request.facility_id, since)]
    if household is not None:
        history.append(
            reads.list_household_bookings(household.member_ids, request.facility_id, since)
        )
    user_bookings, *rest = await gather_reads(settings, *history)
    household_bookings: list[Booking] = rest[0] if rest else []

    tier = explicit_tier or facility.default_tier

    context = RuleContext(
        request=request,
        user=user,
        tier=tier,
        court=court,
        facility=facility,
        household=household,
        user_bookings=tuple(user_bookings),
        household_bookings=tuple(household_bookings),
        court_bookings=tuple(court_bookings),
        strikes=tuple(localize_strike(s, tz) for s in strikes),
        recent_cancellations=tuple(_localize_cancellation(c, tz) for c in cancellations),
        blackouts=tuple(
            _localize_blackout(b, tz)
            for b in blackouts
            if b.is_active and (b.court_id is None or b.court_id == court.id)
        ),
        now=local_now,
        is_prime_time=is_prime_time(
            court, request.booking_date, request.start_time, request.end_time
        ),
        is_admin=is_admin or bool(facility_admin),
        reads=reads,
        settings=settings,
    )

    logger.debug(
        f"Built rule context for user={request.user_id} court={request.court_id} "
        f"in {(_time.perf_counter() - started) * 1000:.1f}ms "
        f"(prime_time={context.is_prime_time}, household={household is not None})"
    )
    return context


async def build_cancellation_context(
    request: CancellationRequest,
    reads: ContextReads,
    *,
    now: datetime,
    settings: RulesEngineConfig | None = None,
) -> CancellationContext:
    """Assemble what the cancellation evaluator needs for one booking."""
    settings = settings or RulesEngineConfig.default()

    booking, facility = await gather_reads(
        settings,
        reads.get_booking(request.booking_id),
        reads.get_facility(request.facility_id),
    )
    # Only the owner may cancel; anyone else sees no such booking
    if (
        booking is None
        or booking.facility_id != request.facility_id
        or booking.user_id != request.user_id
    ):
        raise NotFoundError("Booking", request.booking_id)
    if facility is None:
        raise NotFoundError("Facility", request.facility_id)

    court, explicit_tier = await gather_reads(
        settings,
        reads.get_court(booking.court_id),
        reads.get_user_tier(booking.user_id, request.facility_id, now),
    )
    if court is None:
        raise NotFoundError("Court", booking.court_id)

    tz = facility_timezone(facility, settings)
    local_now = to_local(now, tz)
    return CancellationContext(
        request=request,
        booking=booking,
        court=court,
        facility=facility,
        tier=explicit_tier or facility.default_tier,
        now=local_now,
    )
