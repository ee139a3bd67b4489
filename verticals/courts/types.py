"""Domain records consumed and produced by the rules engine.

All records are frozen dataclasses: the engine reads them, never mutates
them. Dates and times are plain ``datetime.date`` / ``datetime.time``
values in the facility's local wall clock.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class StrikeType(str, Enum):
    NO_SHOW = "no_show"
    LATE_CANCEL = "late_cancel"
    VIOLATION = "violation"
    MANUAL = "manual"


class PenaltyType(str, Enum):
    NONE = "none"
    STRIKE = "strike"
    BLOCK_CANCEL = "block_cancel"


class BlackoutVisibility(str, Enum):
    VISIBLE = "visible"
    HIDDEN = "hidden"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BookingRequest:
    """A proposed reservation. ``duration_minutes`` is derived when omitted."""

    user_id: str
    court_id: str
    facility_id: str
    booking_date: date
    start_time: time
    end_time: time
    duration_minutes: int = 0
    booking_type: str | None = None
    activity_type: str | None = None
    notes: str | None = None

    def __post_init__(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        if not self.duration_minutes:
            start = self.start_time.hour * 60 + self.start_time.minute
            end = self.end_time.hour * 60 + self.end_time.minute
            object.__setattr__(self, "duration_minutes", end - start)

    @property
    def activity(self) -> str | None:
        return self.activity_type or self.booking_type


@dataclass(frozen=True)
class CancellationRequest:
    booking_id: str
    user_id: str
    facility_id: str
    reason: str | None = None


@dataclass(frozen=True)
class AdminOverride:
    """Privileged re-evaluation input. ``timestamp`` defaults to now."""

    admin_id: str
    reason: str
    timestamp: datetime | None = None
    override_rule_codes: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Accounts & tiers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MembershipTier:
    """Per-facility privilege bundle. ``None`` caps mean "no tier override"."""

    id: str
    name: str
    advance_booking_days: int | None = None
    prime_time_eligible: bool = True
    prime_time_max_per_week: int | None = None
    max_active_reservations: int | None = None
    max_reservations_per_week: int | None = None
    max_minutes_per_week: int | None = None
    is_default: bool = False


@dataclass(frozen=True)
class UserProfile:
    id: str
    full_name: str = ""
    email: str | None = None
    address: str | None = None
    tier: MembershipTier | None = None


# ---------------------------------------------------------------------------
# Courts & facilities
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CourtDayConfig:
    """Operating config for one court on one day (0=Sunday .. 6=Saturday)."""

    day_of_week: int
    is_open: bool = True
    open_time: time | None = None
    close_time: time | None = None
    prime_time_start: time | None = None
    prime_time_end: time | None = None
    prime_time_max_duration: int | None = None
    slot_duration: int | None = None
    min_duration: int | None = None
    max_duration: int | None = None
    buffer_before: int | None = None
    buffer_after: int | None = None
    release_time: time | None = None


@dataclass(frozen=True)
class AllowedActivity:
    activity_type: str
    is_allowed: bool = True
    max_concurrent: int | None = None


@dataclass(frozen=True)
class Court:
    id: str
    facility_id: str
    name: str
    status: str = "available"
    operating_config: tuple[CourtDayConfig, ...] = ()
    allowed_activities: tuple[AllowedActivity, ...] = ()

    def day_config(self, day_of_week: int) -> CourtDayConfig | None:
        for config in self.operating_config:
            if config.day_of_week == day_of_week:
                return config
        return None


@dataclass(frozen=True)
class DayHours:
    """Facility-wide hours for one weekday."""

    open_time: time | None = None
    close_time: time | None = None
    is_closed: bool = False


@dataclass(frozen=True)
class FacilityRuleConfig:
    """A facility's row for one rule. No row means "system default"."""

    rule_code: str
    rule_config: dict[str, Any] = field(default_factory=dict)
    is_enabled: bool = True
    applies_to_court_ids: tuple[str, ...] | None = None
    applies_to_tier_ids: tuple[str, ...] | None = None
    priority: int = 0
    id: str | None = None

    def applies_to(self, court_id: str, tier_id: str | None) -> bool:
        if self.applies_to_court_ids and court_id not in self.applies_to_court_ids:
            return False
        if self.applies_to_tier_ids and tier_id not in self.applies_to_tier_ids:
            return False
        return True


@dataclass(frozen=True)
class Facility:
    id: str
    name: str
    timezone: str | None = None
    operating_hours: dict[int, DayHours] = field(default_factory=dict)
    rule_configs: tuple[FacilityRuleConfig, ...] = ()
    default_tier: MembershipTier | None = None


# ---------------------------------------------------------------------------
# Households
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HouseholdMember:
    user_id: str
    is_primary: bool = False
    verification_status: str = "verified"


@dataclass(frozen=True)
class HouseholdGroup:
    id: str
    facility_id: str
    street_address: str
    max_members: int | None = None
    max_active_reservations: int | None = None
    prime_time_max_per_week: int | None = None
    members: tuple[HouseholdMember, ...] = ()

    @property
    def member_ids(self) -> list[str]:
        return [m.user_id for m in self.members]


# ---------------------------------------------------------------------------
# Bookings, strikes, cancellations, blackouts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Booking:
    id: str
    user_id: str
    court_id: str
    facility_id: str
    booking_date: date
    start_time: time
    end_time: time
    status: BookingStatus = BookingStatus.CONFIRMED
    duration_minutes: int = 0
    booking_type: str | None = None
    activity_type: str | None = None
    is_prime_time: bool = False
    court_name: str = ""

    def __post_init__(self):
        if not self.duration_minutes:
            start = self.start_time.hour * 60 + self.start_time.minute
            end = self.end_time.hour * 60 + self.end_time.minute
            object.__setattr__(self, "duration_minutes", end - start)

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED


@dataclass(frozen=True)
class AccountStrike:
    id: str
    user_id: str
    facility_id: str
    strike_type: StrikeType
    issued_at: datetime
    expires_at: datetime | None = None
    revoked: bool = False
    reason: str | None = None
    related_booking_id: str | None = None


@dataclass(frozen=True)
class BookingCancellation:
    booking_id: str
    user_id: str
    facility_id: str
    cancelled_at: datetime
    booking_start: datetime
    minutes_before_start: int
    is_late_cancel: bool = False
    strike_issued: bool = False
    reason: str | None = None


@dataclass(frozen=True)
class CourtBlackout:
    """Unavailable window. ``court_id=None`` applies to every court."""

    id: str
    facility_id: str
    start_datetime: datetime
    end_datetime: datetime
    court_id: str | None = None
    title: str = ""
    blackout_type: str = "maintenance"
    recurrence_rule: str | None = None
    visibility: BlackoutVisibility = BlackoutVisibility.VISIBLE
    is_active: bool = True


# ---------------------------------------------------------------------------
# Outbound signals & results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IssueStrike:
    """Signal: the caller should persist exactly one strike."""

    user_id: str
    facility_id: str
    strike_type: StrikeType
    reason: str
    related_booking_id: str | None = None


@dataclass(frozen=True)
class RecordCancellation:
    """Signal: the caller should persist the cancellation record."""

    booking_id: str
    user_id: str
    facility_id: str
    cancelled_at: datetime
    booking_start: datetime
    minutes_before_start: int
    is_late_cancel: bool
    strike_issued: bool
    reason: str | None = None


@dataclass(frozen=True)
class OverrideAudit:
    """Signal: the caller attaches this audit trail to the booking."""

    overridden_rule_codes: tuple[str, ...]
    requested_rule_codes: tuple[str, ...]
    admin_id: str
    reason: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "overridden_rule_codes": list(self.overridden_rule_codes),
            "requested_rule_codes": list(self.requested_rule_codes),
            "admin_id": self.admin_id,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class CancellationEvaluation:
    allowed: bool
    is_late_cancel: bool
    strike_will_be_issued: bool
    minutes_before_start: int
    message: str
    cutoff_minutes: int
    penalty_type: PenaltyType
    strike: IssueStrike | None = None
    cancellation: RecordCancellation | None = None


@dataclass(frozen=True)
class LockoutStatus:
    is_locked_out: bool
    strike_count: int
    threshold: int
    lockout_ends_at: datetime | None = None
