"""Courts repository: SQLAlchemy adapters for the rules engine and service.

- SqlContextReads implements the engine's read interface. Each read opens
  its own short session so the context builder can fan reads out
  concurrently.
- SqlBookingWriter applies the service's writes on the request session.
- RuleConfigRepository manages facility rule config rows for admin screens.
"""

from contextlib import asynccontextmanager
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, AsyncIterator
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Depends
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.database import async_session_factory, get_session
from patterns.repository import BaseRepository
from verticals.courts.catalog import DEFINITIONS_BY_CODE
from verticals.courts.config import config as courts_config
from verticals.courts.engine import RulesEngine
from verticals.courts.errors import NotFoundError, TransientIOError
from verticals.courts.models import db_models as db
from verticals.courts.rule_config import validate_config
from verticals.courts.service import BookingService
from verticals.courts.time_utils import to_time
from verticals.courts.types import (
    AccountStrike,
    AllowedActivity,
    Booking,
    BookingCancellation,
    BookingRequest,
    BookingStatus,
    BlackoutVisibility,
    Court,
    CourtBlackout,
    CourtDayConfig,
    DayHours,
    Facility,
    FacilityRuleConfig,
    HouseholdGroup,
    HouseholdMember,
    IssueStrike,
    MembershipTier,
    OverrideAudit,
    RecordCancellation,
    StrikeType,
    UserProfile,
)

ACTIVE_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.PENDING.value)


# ---------------------------------------------------------------------------
# Row -> domain mapping
# ---------------------------------------------------------------------------

def _tier(row: db.MembershipTier) -> MembershipTier:
    return MembershipTier(
        id=row.id,
        name=row.name,
        advance_booking_days=row.advance_booking_days,
        prime_time_eligible=row.prime_time_eligible,
        prime_time_max_per_week=row.prime_time_max_per_week,
        max_active_reservations=row.max_active_reservations,
        max_reservations_per_week=row.max_reservations_per_week,
        max_minutes_per_week=row.max_minutes_per_week,
        is_default=row.is_default,
    )


def _day_config(row: db.CourtOperatingConfig) -> CourtDayConfig:
    return CourtDayConfig(
        day_of_week=row.day_of_week,
        is_open=row.is_open,
        open_time=row.open_time,
        close_time=row.close_time,
        prime_time_start=row.prime_time_start,
        prime_time_end=row.prime_time_end,
        prime_time_max_duration=row.prime_time_max_duration,
        slot_duration=row.slot_duration,
        min_duration=row.min_duration,
        max_duration=row.max_duration,
        buffer_before=row.buffer_before,
        buffer_after=row.buffer_after,
        release_time=row.release_time,
    )


def _court(row: db.Court) -> Court:
    return Court(
        id=row.id,
        facility_id=row.facility_id,
        name=row.name,
        status=row.status,
        operating_config=tuple(
            _day_config(c) for c in sorted(row.operating_config, key=lambda c: c.day_of_week)
        ),
        allowed_activities=tuple(
            AllowedActivity(
                activity_type=a.activity_type,
                is_allowed=a.is_allowed,
                max_concurrent=a.max_concurrent,
            )
            for a in row.allowed_activities
        ),
    )


def _day_hours(hours: dict[str, Any] | None) -> dict[int, DayHours]:
    parsed = {}
    for key, value in (hours or {}).items():
        parsed[int(key)] = DayHours(
            open_time=to_time(value["open"]) if value.get("open") else None,
            close_time=to_time(value["close"]) if value.get("close") else None,
            is_closed=bool(value.get("closed", False)),
        )
    return parsed


def _rule_row(row: db.FacilityRuleConfig) -> FacilityRuleConfig:
    return FacilityRuleConfig(
        id=row.id,
        rule_code=row.rule_code,
        rule_config=dict(row.rule_config or {}),
        is_enabled=row.is_enabled,
        applies_to_court_ids=tuple(row.applies_to_court_ids) if row.applies_to_court_ids else None,
        applies_to_tier_ids=tuple(row.applies_to_tier_ids) if row.applies_to_tier_ids else None,
        priority=row.priority,
    )


def _booking(row: db.Booking, court_name: str | None = None) -> Booking:
    return Booking(
        id=row.id,
        user_id=row.user_id,
        court_id=row.court_id,
        facility_id=row.facility_id,
        booking_date=row.booking_date,
        start_time=row.start_time,
        end_time=row.end_time,
        status=BookingStatus(row.status),
        duration_minutes=row.duration_minutes,
        booking_type=row.booking_type,
        activity_type=row.activity_type,
        is_prime_time=row.is_prime_time,
        court_name=court_name or "",
    )


def _strike(row: db.AccountStrike) -> AccountStrike:
    return AccountStrike(
        id=row.id,
        user_id=row.user_id,
        facility_id=row.facility_id,
        strike_type=StrikeType(row.strike_type),
        issued_at=row.issued_at,
        expires_at=row.expires_at,
        revoked=row.revoked,
        reason=row.reason,
        related_booking_id=row.related_booking_id,
    )


def _cancellation(row: db.BookingCancellation) -> BookingCancellation:
    return BookingCancellation(
        booking_id=row.booking_id,
        user_id=row.user_id,
        facility_id=row.facility_id,
        cancelled_at=row.cancelled_at,
        booking_start=row.booking_start,
        minutes_before_start=row.minutes_before_start,
        is_late_cancel=row.is_late_cancel,
        strike_issued=row.strike_issued,
        reason=row.reason,
    )


def _blackout(row: db.CourtBlackout) -> CourtBlackout:
    return CourtBlackout(
        id=row.id,
        facility_id=row.facility_id,
        court_id=row.court_id,
        start_datetime=row.start_datetime,
        end_datetime=row.end_datetime,
        title=row.title,
        blackout_type=row.blackout_type,
        recurrence_rule=row.recurrence_rule,
        visibility=BlackoutVisibility(row.visibility),
        is_active=row.is_active,
    )


# ---------------------------------------------------------------------------
# Engine reads
# ---------------------------------------------------------------------------

class SqlContextReads:
    """ContextReads backed by the courts tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                yield session
        except (OperationalError, InterfaceError) as exc:
            raise TransientIOError(f"Database read failed: {exc}") from exc

    async def _scalar_one(self, stmt) -> Any:
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def _scalars(self, stmt) -> list[Any]:
        async with self._session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # -- Entities --

    async def get_user(self, user_id: str) -> UserProfile | None:
        row = await self._scalar_one(select(db.User).where(db.User.id == user_id))
        if row is None:
            return None
        return UserProfile(id=row.id, full_name=row.full_name, email=row.email, address=row.address)

    async def get_user_tier(
        self, user_id: str, facility_id: str, as_of: datetime
    ) -> MembershipTier | None:
        stmt = (
            select(db.UserTier)
            .where(
                db.UserTier.user_id == user_id,
                db.UserTier.facility_id == facility_id,
                or_(db.UserTier.expires_at.is_(None), db.UserTier.expires_at > as_of),
            )
            .order_by(db.UserTier.created_at.desc())
            .limit(1)
        )
        row = await self._scalar_one(stmt)
        return _tier(row.tier) if row else None

    async def is_facility_admin(self, user_id: str, facility_id: str) -> bool:
        stmt = select(db.FacilityMembership.is_facility_admin).where(
            db.FacilityMembership.user_id == user_id,
            db.FacilityMembership.facility_id == facility_id,
        )
        return bool(await self._scalar_one(stmt))

    async def get_court(self, court_id: str) -> Court | None:
        row = await self._scalar_one(select(db.Court).where(db.Court.id == court_id))
        return _court(row) if row else None

    async def get_facility(self, facility_id: str) -> Facility | None:
        async with self._session() as session:
            row = (
                await session.execute(select(db.Facility).where(db.Facility.id == facility_id))
            ).scalars().first()
            if row is None:
                return None

            rule_rows = (
                await session.execute(
                    select(db.FacilityRuleConfig)
                    .where(db.FacilityRuleConfig.facility_id == facility_id)
                    .order_by(db.FacilityRuleConfig.rule_code, db.FacilityRuleConfig.priority)
                )
            ).scalars().all()

            default_tier = (
                await session.execute(
                    select(db.MembershipTier)
                    .where(
                        db.MembershipTier.facility_id == facility_id,
                        db.MembershipTier.is_default.is_(True),
                    )
                    .limit(1)
                )
            ).scalars().first()

        return Facility(
            id=row.id,
            name=row.name,
            timezone=row.timezone,
            operating_hours=_day_hours(row.operating_hours),
            rule_configs=tuple(_rule_row(r) for r in rule_rows),
            default_tier=_tier(default_tier) if default_tier else None,
        )

    async def get_household(self, user_id: str, facility_id: str) -> HouseholdGroup | None:
        stmt = (
            select(db.HouseholdGroup)
            .join(db.HouseholdMember)
            .where(
                db.HouseholdMember.user_id == user_id,
                db.HouseholdGroup.facility_id == facility_id,
            )
            .limit(1)
        )
        row = await self._scalar_one(stmt)
        if row is None:
            return None
        return HouseholdGroup(
            id=row.id,
            facility_id=row.facility_id,
            street_address=row.street_address,
            max_members=row.max_members,
            max_active_reservations=row.max_active_reservations,
            prime_time_max_per_week=row.prime_time_max_per_week,
            members=tuple(
                HouseholdMember(
                    user_id=m.user_id,
                    is_primary=m.is_primary,
                    verification_status=m.verification_status,
                )
                for m in row.members
            ),
        )

    async def get_booking(self, booking_id: str) -> Booking | None:
        row = await self._scalar_one(select(db.Booking).where(db.Booking.id == booking_id))
        return _booking(row) if row else None

    # -- Lists --

    async def _bookings_with_court(self, *criteria) -> list[Booking]:
        stmt = (
            select(db.Booking, db.Court.name)
            .join(db.Court, db.Court.id == db.Booking.court_id)
            .where(*criteria)
            .order_by(db.Booking.booking_date, db.Booking.start_time)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return [_booking(row, court_name) for row, court_name in result.all()]

    async def list_user_bookings(
        self, user_id: str, facility_id: str, since: date
    ) -> list[Booking]:
        return await self._bookings_with_court(
            db.Booking.user_id == user_id,
            db.Booking.facility_id == facility_id,
            db.Booking.booking_date >= since,
        )

    async def list_household_bookings(
        self, member_ids: list[str], facility_id: str, since: date
    ) -> list[Booking]:
        if not member_ids:
            return []
        return await self._bookings_with_court(
            db.Booking.user_id.in_(member_ids),
            db.Booking.facility_id == facility_id,
            db.Booking.booking_date >= since,
        )

    async def list_court_bookings(self, court_id: str, booking_date: date) -> list[Booking]:
        return await self._bookings_with_court(
            db.Booking.court_id == court_id,
            db.Booking.booking_date == booking_date,
        )

    async def list_active_strikes(
        self, user_id: str, facility_id: str, as_of: datetime
    ) -> list[AccountStrike]:
        stmt = (
            select(db.AccountStrike)
            .where(
                db.AccountStrike.user_id == user_id,
                db.AccountStrike.facility_id == facility_id,
                db.AccountStrike.revoked.is_(False),
                or_(db.AccountStrike.expires_at.is_(None), db.AccountStrike.expires_at > as_of),
            )
            .order_by(db.AccountStrike.issued_at)
        )
        return [_strike(r) for r in await self._scalars(stmt)]

    async def list_recent_cancellations(
        self, user_id: str, facility_id: str, since: datetime
    ) -> list[BookingCancellation]:
        stmt = (
            select(db.BookingCancellation)
            .where(
                db.BookingCancellation.user_id == user_id,
                db.BookingCancellation.facility_id == facility_id,
                db.BookingCancellation.cancelled_at >= since,
            )
            .order_by(db.BookingCancellation.cancelled_at.desc())
        )
        return [_cancellation(r) for r in await self._scalars(stmt)]

    async def list_blackouts(
        self, facility_id: str, court_id: str, booking_date: date
    ) -> list[CourtBlackout]:
        # Widened by a day each side; exact overlap is checked in local time.
        window_start = datetime.combine(booking_date - timedelta(days=1), time.min, timezone.utc)
        window_end = datetime.combine(booking_date + timedelta(days=2), time.min, timezone.utc)
        stmt = select(db.CourtBlackout).where(
            db.CourtBlackout.facility_id == facility_id,
            db.CourtBlackout.is_active.is_(True),
            or_(db.CourtBlackout.court_id.is_(None), db.CourtBlackout.court_id == court_id),
            or_(
                db.CourtBlackout.recurrence_rule.is_not(None),
                and_(
                    db.CourtBlackout.start_datetime < window_end,
                    db.CourtBlackout.end_datetime > window_start,
                ),
            ),
        )
        return [_blackout(r) for r in await self._scalars(stmt)]

    # -- Live counts --

    async def count_concurrent_activity(
        self,
        facility_id: str,
        booking_date: date,
        activity_type: str,
        start_time: time,
        end_time: time,
        court_id: str | None = None,
    ) -> int:
        stmt = select(func.count()).select_from(db.Booking).where(
            db.Booking.facility_id == facility_id,
            db.Booking.booking_date == booking_date,
            db.Booking.status.in_(ACTIVE_STATUSES),
            db.Booking.start_time < end_time,
            db.Booking.end_time > start_time,
            or_(
                db.Booking.activity_type == activity_type,
                and_(db.Booking.activity_type.is_(None), db.Booking.booking_type == activity_type),
            ),
        )
        if court_id is not None:
            stmt = stmt.where(db.Booking.court_id == court_id)
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.scalar() or 0

    async def count_recent_actions(
        self,
        user_id: str,
        facility_id: str,
        action_types: list[str],
        window_seconds: int,
    ) -> int:
        stmt = select(func.count()).select_from(db.BookingRateLimit).where(
            db.BookingRateLimit.user_id == user_id,
            db.BookingRateLimit.facility_id == facility_id,
            db.BookingRateLimit.action_type.in_(action_types),
            db.BookingRateLimit.created_at >= func.now() - timedelta(seconds=window_seconds),
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.scalar() or 0


# ---------------------------------------------------------------------------
# Service writes
# ---------------------------------------------------------------------------

class SqlBookingWriter:
    """BookingWriter on the request session. Commit happens in get_session."""

    def __init__(self, session: AsyncSession, default_timezone: str = "UTC"):
        self.session = session
        self.default_timezone = default_timezone

    async def _facility_zone(self, facility_id: str) -> ZoneInfo:
        result = await self.session.execute(
            select(db.Facility.timezone).where(db.Facility.id == facility_id)
        )
        name = result.scalar() or self.default_timezone
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            return ZoneInfo(self.default_timezone)

    async def find_slot_conflicts(
        self, court_id: str, booking_date: date, start_time: time, end_time: time
    ) -> list[str]:
        stmt = select(db.Booking.id).where(
            db.Booking.court_id == court_id,
            db.Booking.booking_date == booking_date,
            db.Booking.status.in_(ACTIVE_STATUSES),
            db.Booking.start_time < end_time,
            db.Booking.end_time > start_time,
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def insert_booking(
        self,
        request: BookingRequest,
        *,
        is_prime_time: bool,
        override: OverrideAudit | None = None,
    ) -> dict[str, Any]:
        booking = db.Booking(
            facility_id=request.facility_id,
            user_id=request.user_id,
            court_id=request.court_id,
            booking_date=request.booking_date,
            start_time=request.start_time,
            end_time=request.end_time,
            duration_minutes=request.duration_minutes,
            status=BookingStatus.CONFIRMED.value,
            booking_type=request.booking_type,
            activity_type=request.activity_type,
            is_prime_time=is_prime_time,
            notes=request.notes,
            rule_overrides=override.to_dict() if override else None,
            override_reason=override.reason if override else None,
            overridden_by=override.admin_id if override else None,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking.to_dict()

    async def mark_cancelled(self, booking_id: str) -> None:
        await self.session.execute(
            update(db.Booking)
            .where(db.Booking.id == booking_id)
            .values(status=BookingStatus.CANCELLED.value, cancelled_at=func.now())
        )

    async def mark_no_show(self, booking_id: str, facility_id: str) -> dict[str, Any] | None:
        result = await self.session.execute(
            select(db.Booking).where(
                db.Booking.id == booking_id,
                db.Booking.facility_id == facility_id,
            )
        )
        booking = result.scalar_one_or_none()
        if booking is None:
            return None
        booking.status = BookingStatus.NO_SHOW.value
        await self.session.flush()
        return booking.to_dict()

    async def record_cancellation(self, record: RecordCancellation) -> str:
        tz = await self._facility_zone(record.facility_id)
        row = db.BookingCancellation(
            facility_id=record.facility_id,
            booking_id=record.booking_id,
            user_id=record.user_id,
            cancelled_at=record.cancelled_at.replace(tzinfo=tz),
            booking_start=record.booking_start.replace(tzinfo=tz),
            minutes_before_start=record.minutes_before_start,
            is_late_cancel=record.is_late_cancel,
            strike_issued=record.strike_issued,
            reason=record.reason,
        )
        self.session.add(row)
        await self.session.flush()
        return row.id

    async def issue_strike(
        self, strike: IssueStrike, *, expires_at: datetime | None = None, issued_by: str | None = None
    ) -> str:
        row = db.AccountStrike(
            facility_id=strike.facility_id,
            user_id=strike.user_id,
            strike_type=strike.strike_type.value,
            reason=strike.reason,
            related_booking_id=strike.related_booking_id,
            issued_at=datetime.now(timezone.utc),
            expires_at=expires_at,
            issued_by=issued_by,
        )
        self.session.add(row)
        await self.session.flush()
        return row.id

    async def link_strike(self, cancellation_id: str, strike_id: str) -> None:
        await self.session.execute(
            update(db.BookingCancellation)
            .where(db.BookingCancellation.id == cancellation_id)
            .values(strike_id=strike_id)
        )

    async def record_action(self, user_id: str, facility_id: str, action_type: str) -> None:
        self.session.add(
            db.BookingRateLimit(facility_id=facility_id, user_id=user_id, action_type=action_type)
        )
        await self.session.flush()


# ---------------------------------------------------------------------------
# Rule config admin repository
# ---------------------------------------------------------------------------

class RuleConfigRepository(BaseRepository[db.FacilityRuleConfig]):
    """Facility rule config rows, validated against each rule's schema."""

    model = db.FacilityRuleConfig

    async def list_for_facility(
        self, facility_id: str, rule_code: str | None = None
    ) -> list[dict]:
        stmt = self.scoped(facility_id).where(*self._criteria({"rule_code": rule_code}))
        stmt = stmt.order_by(self.model.rule_code, self.model.priority)
        result = await self.session.execute(stmt)
        return [row.to_dict() for row in result.scalars().all()]

    async def upsert(self, facility_id: str, rule_code: str, data: dict[str, Any]) -> dict:
        """Create or replace the row for (facility, rule code, priority).

        Raises NotFoundError for an unknown rule code and ConfigError when
        ``rule_config`` does not match the rule's schema.
        """
        if rule_code not in DEFINITIONS_BY_CODE:
            raise NotFoundError("Rule", rule_code)
        validate_config(rule_code, data.get("rule_config") or {})

        existing = await self.session.scalar(
            self.scoped(facility_id).where(
                self.model.rule_code == rule_code,
                self.model.priority == data.get("priority", 0),
            )
        )
        if existing is not None:
            return await self.update(existing.id, facility_id, data)
        return await self.create(facility_id, {"rule_code": rule_code, **data})

    async def delete_for_rule(self, facility_id: str, rule_code: str) -> int:
        """Delete every row for a rule code, reverting it to defaults."""
        return await self.delete_where(facility_id, rule_code=rule_code)


# ---------------------------------------------------------------------------
# FastAPI dependency factories
# ---------------------------------------------------------------------------

def get_context_reads() -> SqlContextReads:
    """FastAPI dependency for the engine's read adapter."""
    return SqlContextReads(async_session_factory)


def get_rules_engine(
    reads: SqlContextReads = Depends(get_context_reads),
) -> RulesEngine:
    """FastAPI dependency for RulesEngine."""
    return RulesEngine(reads, config=courts_config)


def get_booking_service(
    engine: RulesEngine = Depends(get_rules_engine),
    session: AsyncSession = Depends(get_session),
) -> BookingService:
    """FastAPI dependency for BookingService."""
    return BookingService(
        engine, SqlBookingWriter(session, default_timezone=courts_config.default_timezone)
    )


def get_rule_config_repository(
    session: AsyncSession = Depends(get_session),
) -> RuleConfigRepository:
    """FastAPI dependency for RuleConfigRepository."""
    return RuleConfigRepository(session)
