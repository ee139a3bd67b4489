"""Rule catalog: stable codes, names, order, and config schemas.

Rule codes are a public contract (persisted overrides, audit trails, and
admin UIs reference them). Each config model's defaults ARE the system
defaults for that rule.
"""

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from patterns.rules_engine import RuleDefinition, RuleRegistry

WindowType = Literal["calendar_week", "rolling_7_days"]
PenaltyTypeName = Literal["none", "strike", "block_cancel"]

ACCOUNT = "account"
COURT = "court"
HOUSEHOLD = "household"


class RuleConfig(BaseModel):
    """Base for rule config schemas. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore", frozen=True)


# ---------------------------------------------------------------------------
# Account rule configs
# ---------------------------------------------------------------------------

class MaxActiveReservationsConfig(RuleConfig):
    max_active_reservations: int = Field(1, ge=0)
    count_states: list[str] = Field(default_factory=lambda: ["confirmed", "pending"])


class MaxReservationsPerWeekConfig(RuleConfig):
    max_per_week: int = Field(3, ge=0)
    window_type: WindowType = "calendar_week"
    include_canceled: bool = False


class MaxMinutesPerWeekConfig(RuleConfig):
    max_minutes_per_week: int = Field(180, ge=0)
    window_type: WindowType = "calendar_week"


class NoOverlapConfig(RuleConfig):
    allow_overlap: bool = False
    overlap_grace_minutes: int = Field(0, ge=0)


class AdvanceWindowConfig(RuleConfig):
    max_days_ahead: int = Field(3, ge=0)
    open_time_local: str | None = Field(None, pattern=r"^\d{1,2}:\d{2}(:\d{2})?$")


class MinimumLeadTimeConfig(RuleConfig):
    min_minutes_before_start: int = Field(15, ge=0)


class CancellationCooldownConfig(RuleConfig):
    cooldown_minutes: int = Field(30, ge=0)
    only_if_within_minutes_of_start: int | None = Field(240, ge=0)


class LateCancellationConfig(RuleConfig):
    late_cancel_cutoff_minutes: int = Field(240, ge=0)
    penalty_type: PenaltyTypeName = "strike"
    penalty_value: int = Field(1, ge=0)


class StrikeSystemConfig(RuleConfig):
    strike_threshold: int = Field(3, ge=1)
    strike_window_days: int = Field(30, ge=1)
    lockout_days: int = Field(7, ge=0)


class PrimeTimePerWeekConfig(RuleConfig):
    max_prime_per_week: int = Field(2, ge=0)
    window_type: WindowType = "calendar_week"


class RateLimitConfig(RuleConfig):
    max_actions: int = Field(10, ge=1)
    window_seconds: int = Field(60, ge=1)
    action_types: list[str] = Field(default_factory=lambda: ["create", "cancel"])


# ---------------------------------------------------------------------------
# Court rule configs
# ---------------------------------------------------------------------------

class PrimeWindow(BaseModel):
    days: list[int] = Field(default_factory=list)
    start: str
    end: str


class PrimeTimeScheduleConfig(RuleConfig):
    prime_windows: list[PrimeWindow] = Field(default_factory=list)


class PrimeTimeMaxDurationConfig(RuleConfig):
    max_minutes_prime: int = Field(60, ge=1)


class PrimeTimeEligibilityConfig(RuleConfig):
    allowed_tiers: list[str] = Field(default_factory=list)
    allow_admin_override: bool = True
    tier_eligible: bool = True


class OperatingHoursConfig(RuleConfig):
    open_hours: dict[str, Any] = Field(default_factory=dict)
    closed_dates: list[date] = Field(default_factory=list)


class SlotGridConfig(RuleConfig):
    slot_minutes: int = Field(30, ge=1)
    min_duration_minutes: int = Field(30, ge=1)
    max_duration_minutes: int = Field(120, ge=1)


class BlackoutConfig(RuleConfig):
    blocks: list[dict[str, Any]] = Field(default_factory=list)
    visibility: str = "visible_reason"


class BufferTimeConfig(RuleConfig):
    buffer_before_minutes: int = Field(0, ge=0)
    buffer_after_minutes: int = Field(5, ge=0)


class AllowedActivitiesConfig(RuleConfig):
    allowed_activity_types: list[str] = Field(
        default_factory=lambda: ["match", "practice", "lesson"]
    )
    activity_required: bool = False


class SubAmenityConfig(RuleConfig):
    sub_amenity_type: str = "ball_machine"
    max_concurrent: int = Field(2, ge=1)
    scope: Literal["club_wide", "court_only"] = "club_wide"


class CourtWeeklyCapConfig(RuleConfig):
    max_per_week_per_account: int = Field(2, ge=0)
    window_type: WindowType = "calendar_week"


class ReleaseTimeConfig(RuleConfig):
    release_time_local: str = Field("07:00", pattern=r"^\d{1,2}:\d{2}(:\d{2})?$")
    days_ahead: int = Field(3, ge=0)


class CourtCancellationConfig(RuleConfig):
    cancel_cutoff_minutes: int = Field(120, ge=0)
    penalty_type: PenaltyTypeName = "strike"
    penalty_value: int = Field(1, ge=0)


# ---------------------------------------------------------------------------
# Household rule configs
# ---------------------------------------------------------------------------

class MaxMembersConfig(RuleConfig):
    max_members: int = Field(6, ge=1)
    verification_method: str = "admin_approval"


class HouseholdActiveConfig(RuleConfig):
    max_active_household: int = Field(2, ge=0)


class HouseholdPrimeTimeConfig(RuleConfig):
    max_prime_per_week_household: int = Field(3, ge=0)
    window_type: WindowType = "calendar_week"


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------

RULE_DEFINITIONS: list[RuleDefinition] = [
    RuleDefinition("ACC-001", "Max Active Reservations", ACCOUNT, 100,
                   "Limit upcoming confirmed or pending reservations per account.",
                   MaxActiveReservationsConfig),
    RuleDefinition("ACC-002", "Max Reservations Per Week", ACCOUNT, 101,
                   "Limit reservations per account in a weekly window.",
                   MaxReservationsPerWeekConfig),
    RuleDefinition("ACC-003", "Max Hours Per Week", ACCOUNT, 102,
                   "Limit total booked minutes per account in a weekly window.",
                   MaxMinutesPerWeekConfig),
    RuleDefinition("ACC-004", "No Overlapping Reservations", ACCOUNT, 103,
                   "Prevent an account from holding overlapping reservations.",
                   NoOverlapConfig),
    RuleDefinition("ACC-005", "Advance Booking Window", ACCOUNT, 104,
                   "Limit how many days ahead a reservation can be made.",
                   AdvanceWindowConfig),
    RuleDefinition("ACC-006", "Minimum Lead Time", ACCOUNT, 105,
                   "Require reservations to be made some minutes before start.",
                   MinimumLeadTimeConfig),
    RuleDefinition("ACC-007", "Cancellation Cooldown", ACCOUNT, 106,
                   "Delay rebooking after a recent cancellation.",
                   CancellationCooldownConfig),
    RuleDefinition("ACC-008", "Late Cancellation Policy", ACCOUNT, 107,
                   "Penalize cancellations inside the cutoff. Applied at cancellation.",
                   LateCancellationConfig),
    RuleDefinition("ACC-009", "No-Show / Strike System", ACCOUNT, 108,
                   "Lock out accounts that accumulate strikes.",
                   StrikeSystemConfig),
    RuleDefinition("ACC-010", "Prime-Time Reservations Per Week", ACCOUNT, 109,
                   "Limit prime-time reservations per account per week.",
                   PrimeTimePerWeekConfig),
    RuleDefinition("ACC-011", "Rate Limit Reservation Actions", ACCOUNT, 110,
                   "Throttle booking actions per account.",
                   RateLimitConfig),
    RuleDefinition("CRT-001", "Prime-Time Schedule", COURT, 200,
                   "Flag reservations that fall in a court's prime-time window.",
                   PrimeTimeScheduleConfig),
    RuleDefinition("CRT-002", "Prime-Time Max Duration", COURT, 201,
                   "Cap reservation length during prime time.",
                   PrimeTimeMaxDurationConfig),
    RuleDefinition("CRT-003", "Prime-Time Eligibility by Tier", COURT, 202,
                   "Restrict prime time to eligible membership tiers.",
                   PrimeTimeEligibilityConfig),
    RuleDefinition("CRT-004", "Court Operating Hours", COURT, 203,
                   "Only allow reservations while the court is open.",
                   OperatingHoursConfig),
    RuleDefinition("CRT-005", "Reservation Slot Grid", COURT, 204,
                   "Align start times to the slot grid and bound durations.",
                   SlotGridConfig),
    RuleDefinition("CRT-006", "Blackout Blocks", COURT, 205,
                   "Block reservations during blackout windows.",
                   BlackoutConfig),
    RuleDefinition("CRT-007", "Buffer Time Between Reservations", COURT, 206,
                   "Keep a buffer between consecutive reservations on a court.",
                   BufferTimeConfig),
    RuleDefinition("CRT-008", "Allowed Activities", COURT, 207,
                   "Restrict which activity types a court accepts.",
                   AllowedActivitiesConfig),
    RuleDefinition("CRT-009", "Sub-Amenity Inventory Limit", COURT, 208,
                   "Limit concurrent use of shared equipment.",
                   SubAmenityConfig),
    RuleDefinition("CRT-010", "Court-Specific Weekly Cap", COURT, 209,
                   "Limit weekly reservations per account on one court.",
                   CourtWeeklyCapConfig),
    RuleDefinition("CRT-011", "Court Release Time", COURT, 210,
                   "Open a date for booking at a set local time.",
                   ReleaseTimeConfig),
    RuleDefinition("CRT-012", "Court-Specific Cancellation Deadline", COURT, 211,
                   "Court-level late cancellation cutoff. Applied at cancellation.",
                   CourtCancellationConfig),
    RuleDefinition("HH-001", "Max Members Per Address", HOUSEHOLD, 300,
                   "Advise when a household is at its member limit.",
                   MaxMembersConfig),
    RuleDefinition("HH-002", "Household Max Active Reservations", HOUSEHOLD, 301,
                   "Limit upcoming reservations across a household.",
                   HouseholdActiveConfig),
    RuleDefinition("HH-003", "Household Prime-Time Cap", HOUSEHOLD, 302,
                   "Limit weekly prime-time reservations across a household.",
                   HouseholdPrimeTimeConfig),
]

DEFINITIONS_BY_CODE: dict[str, RuleDefinition] = {d.code: d for d in RULE_DEFINITIONS}


def list_definitions(category: str | None = None) -> list[dict[str, Any]]:
    """Serializable catalog for admin tooling, ordered by evaluation order."""
    items = []
    for definition in sorted(RULE_DEFINITIONS, key=lambda d: d.evaluation_order):
        if category and definition.category != category:
            continue
        items.append({
            "rule_code": definition.code,
            "rule_name": definition.name,
            "category": definition.category,
            "evaluation_order": definition.evaluation_order,
            "description": definition.description,
            "default_config": definition.config_model().model_dump(mode="json"),
        })
    return items


registry = RuleRegistry(RULE_DEFINITIONS)
