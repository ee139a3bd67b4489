"""Pydantic schemas for API request/response validation."""

from datetime import date, datetime, time
from typing import Any, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class BookingCreate(BaseModel):
    user_id: str = Field(..., min_length=1)
    court_id: str = Field(..., min_length=1)
    booking_date: date
    start_time: time
    end_time: time
    booking_type: Optional[str] = None
    activity_type: Optional[str] = None
    notes: Optional[str] = None


class OverrideCreate(BookingCreate):
    admin_id: str = Field(..., min_length=1)
    reason: str = Field(..., min_length=1)
    override_rule_codes: list[str] = Field(default_factory=list)


class CancellationCreate(BaseModel):
    user_id: str = Field(..., min_length=1)
    reason: Optional[str] = None


class CancellationCheck(CancellationCreate):
    booking_id: str = Field(..., min_length=1)


class NoShowCreate(BaseModel):
    marked_by: Optional[str] = None


class RuleConfigUpsert(BaseModel):
    rule_config: dict[str, Any] = Field(default_factory=dict)
    is_enabled: bool = True
    applies_to_court_ids: Optional[list[str]] = None
    applies_to_tier_ids: Optional[list[str]] = None
    priority: int = Field(0, ge=0)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class RuleResultResponse(BaseModel):
    rule_code: str
    rule_name: str
    passed: bool
    severity: str
    message: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)


class EvaluationResponse(BaseModel):
    allowed: bool
    is_prime_time: bool = False
    results: list[RuleResultResponse]
    blockers: list[RuleResultResponse]
    warnings: list[RuleResultResponse]


class OverrideAuditResponse(BaseModel):
    overridden_rule_codes: list[str]
    requested_rule_codes: list[str]
    admin_id: str
    reason: str
    timestamp: datetime


class OverrideEvaluationResponse(EvaluationResponse):
    override: OverrideAuditResponse


class CancellationResponse(BaseModel):
    allowed: bool
    is_late_cancel: bool
    strike_will_be_issued: bool
    minutes_before_start: int
    message: str
    cutoff_minutes: int
    penalty_type: str


class LockoutResponse(BaseModel):
    user_id: str
    facility_id: str
    is_locked_out: bool
    strike_count: int
    threshold: int
    lockout_ends_at: Optional[datetime] = None
