"""SQLAlchemy models for the courts vertical.

Facility-owned tables use FacilityMixin; users and facilities are global.
Times of day are stored as wall-clock ``TIME`` columns in the facility's
local zone. Event timestamps (strikes, cancellations, blackouts) are
stored timezone-aware.

The to_dict() method provides the serialisation interface used by the
repositories and routers.
"""

from datetime import date, datetime, time
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.models.base import Base, FacilityMixin, RecordMixin


def _iso(value: date | time | datetime | None) -> str | None:
    return value.isoformat() if value else None


# ---------------------------------------------------------------------------
# Users, facilities & tiers
# ---------------------------------------------------------------------------

class User(RecordMixin, Base):
    __tablename__ = "users"

    full_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, index=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)


class Facility(RecordMixin, Base):
    """A club. ``operating_hours`` maps "0".."6" (Sunday first) to open/close."""

    __tablename__ = "facilities"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    operating_hours: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)


class MembershipTier(FacilityMixin, Base):
    __tablename__ = "membership_tiers"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    advance_booking_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    prime_time_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    prime_time_max_per_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_active_reservations: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_reservations_per_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_minutes_per_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class UserTier(FacilityMixin, Base):
    """A user's tier assignment at one facility. Expired rows are ignored."""

    __tablename__ = "user_tiers"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    tier_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("membership_tiers.id"), nullable=False
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    tier: Mapped["MembershipTier"] = relationship(lazy="joined")


class FacilityMembership(FacilityMixin, Base):
    __tablename__ = "facility_memberships"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    is_facility_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


# ---------------------------------------------------------------------------
# Courts
# ---------------------------------------------------------------------------

class Court(FacilityMixin, Base):
    __tablename__ = "courts"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="available")

    operating_config: Mapped[list["CourtOperatingConfig"]] = relationship(
        back_populates="court", cascade="all, delete-orphan", lazy="selectin"
    )
    allowed_activities: Mapped[list["CourtAllowedActivity"]] = relationship(
        back_populates="court", cascade="all, delete-orphan", lazy="selectin"
    )


class CourtOperatingConfig(RecordMixin, Base):
    """Per-court, per-weekday hours, prime window, and slot settings."""

    __tablename__ = "court_operating_config"

    court_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("courts.id"), nullable=False, index=True
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    is_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    open_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    close_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    prime_time_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    prime_time_end: Mapped[time | None] = mapped_column(Time, nullable=True)
    prime_time_max_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    slot_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    buffer_before: Mapped[int | None] = mapped_column(Integer, nullable=True)
    buffer_after: Mapped[int | None] = mapped_column(Integer, nullable=True)
    release_time: Mapped[time | None] = mapped_column(Time, nullable=True)

    court: Mapped["Court"] = relationship(back_populates="operating_config")


class CourtAllowedActivity(RecordMixin, Base):
    __tablename__ = "court_allowed_activities"

    court_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("courts.id"), nullable=False, index=True
    )
    activity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    is_allowed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    max_concurrent: Mapped[int | None] = mapped_column(Integer, nullable=True)

    court: Mapped["Court"] = relationship(back_populates="allowed_activities")


class CourtBlackout(FacilityMixin, Base):
    """Maintenance/event window. A null court_id blocks every court."""

    __tablename__ = "court_blackouts"

    court_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("courts.id"), nullable=True, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    blackout_type: Mapped[str] = mapped_column(String(32), nullable=False, default="maintenance")
    start_datetime: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_datetime: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    recurrence_rule: Mapped[str | None] = mapped_column(String(200), nullable=True)
    visibility: Mapped[str] = mapped_column(String(16), nullable=False, default="visible")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


# ---------------------------------------------------------------------------
# Rule configuration
# ---------------------------------------------------------------------------

class FacilityRuleConfig(FacilityMixin, Base):
    """A facility's settings for one rule code.

    Null ``applies_to_*`` lists mean "every court" / "every tier". When
    several rows apply, the lowest ``priority`` wins.
    """

    __tablename__ = "facility_rule_configs"

    rule_code: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    rule_config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    applies_to_court_ids: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    applies_to_tier_ids: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "facility_id": self.facility_id,
            "rule_code": self.rule_code,
            "rule_config": self.rule_config or {},
            "is_enabled": self.is_enabled,
            "applies_to_court_ids": self.applies_to_court_ids,
            "applies_to_tier_ids": self.applies_to_tier_ids,
            "priority": self.priority,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# ---------------------------------------------------------------------------
# Households
# ---------------------------------------------------------------------------

class HouseholdGroup(FacilityMixin, Base):
    __tablename__ = "household_groups"

    street_address: Mapped[str] = mapped_column(Text, nullable=False)
    max_members: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_active_reservations: Mapped[int | None] = mapped_column(Integer, nullable=True)
    prime_time_max_per_week: Mapped[int | None] = mapped_column(Integer, nullable=True)

    members: Mapped[list["HouseholdMember"]] = relationship(
        back_populates="household", cascade="all, delete-orphan", lazy="selectin"
    )


class HouseholdMember(RecordMixin, Base):
    __tablename__ = "household_members"

    household_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("household_groups.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verification_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")

    household: Mapped["HouseholdGroup"] = relationship(back_populates="members")


# ---------------------------------------------------------------------------
# Bookings & their consequences
# ---------------------------------------------------------------------------

class Booking(FacilityMixin, Base):
    __tablename__ = "bookings"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    court_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("courts.id"), nullable=False, index=True
    )
    booking_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="confirmed")
    booking_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    activity_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_prime_time: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rule_overrides: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    override_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    overridden_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "facility_id": self.facility_id,
            "user_id": self.user_id,
            "court_id": self.court_id,
            "booking_date": _iso(self.booking_date),
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "duration_minutes": self.duration_minutes,
            "status": self.status,
            "booking_type": self.booking_type,
            "activity_type": self.activity_type,
            "is_prime_time": self.is_prime_time,
            "notes": self.notes,
            "rule_overrides": self.rule_overrides,
            "override_reason": self.override_reason,
            "overridden_by": self.overridden_by,
            "cancelled_at": _iso(self.cancelled_at),
            "created_at": _iso(self.created_at),
        }


class AccountStrike(FacilityMixin, Base):
    __tablename__ = "account_strikes"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    strike_type: Mapped[str] = mapped_column(String(16), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    related_booking_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("bookings.id"), nullable=True
    )
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    issued_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "facility_id": self.facility_id,
            "user_id": self.user_id,
            "strike_type": self.strike_type,
            "reason": self.reason,
            "related_booking_id": self.related_booking_id,
            "issued_at": _iso(self.issued_at),
            "expires_at": _iso(self.expires_at),
            "revoked": self.revoked,
        }


class BookingCancellation(FacilityMixin, Base):
    __tablename__ = "booking_cancellations"

    booking_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("bookings.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    cancelled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    booking_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    minutes_before_start: Mapped[int] = mapped_column(Integer, nullable=False)
    is_late_cancel: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    strike_issued: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    strike_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("account_strikes.id"), nullable=True
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)


class BookingRateLimit(FacilityMixin, Base):
    """One row per booking action; ``created_at`` is the action time."""

    __tablename__ = "booking_rate_limits"

    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    action_type: Mapped[str] = mapped_column(String(16), nullable=False)
