"""Booking service: the caller that applies the engine's decisions.

The engine decides; this service writes. It owns the parts the engine
deliberately leaves out:
- The slot-conflict check right before insert (never overridable)
- Persisting override audits on the booking
- Recording cancellations and issuing the signalled strike
- Logging booking actions for the rate-limit rule
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Protocol

from patterns.rules_engine import EvaluationResult, RuleResult
from verticals.courts.engine import RulesEngine
from verticals.courts.types import (
    AdminOverride,
    BookingRequest,
    CancellationEvaluation,
    CancellationRequest,
    IssueStrike,
    OverrideAudit,
    RecordCancellation,
    StrikeType,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Write interface
# ---------------------------------------------------------------------------

class BookingWriter(Protocol):
    async def find_slot_conflicts(
        self, court_id: str, booking_date: date, start_time: time, end_time: time
    ) -> list[str]: ...

    async def insert_booking(
        self,
        request: BookingRequest,
        *,
        is_prime_time: bool,
        override: OverrideAudit | None = None,
    ) -> dict[str, Any]: ...

    async def mark_cancelled(self, booking_id: str) -> None: ...

    async def mark_no_show(self, booking_id: str, facility_id: str) -> dict[str, Any] | None: ...

    async def record_cancellation(self, record: RecordCancellation) -> str: ...

    async def issue_strike(
        self, strike: IssueStrike, *, expires_at: datetime | None = None, issued_by: str | None = None
    ) -> str: ...

    async def link_strike(self, cancellation_id: str, strike_id: str) -> None: ...

    async def record_action(self, user_id: str, facility_id: str, action_type: str) -> None: ...


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

@dataclass
class BookingOutcome:
    success: bool
    booking: dict[str, Any] | None = None
    error: str | None = None
    evaluation: EvaluationResult | None = None
    override: OverrideAudit | None = None

    @property
    def warnings(self) -> list[RuleResult]:
        return self.evaluation.warnings if self.evaluation else []


@dataclass
class CancellationOutcome:
    success: bool
    evaluation: CancellationEvaluation
    cancellation_id: str | None = None
    strike_id: str | None = None
    error: str | None = None


@dataclass
class NoShowOutcome:
    success: bool
    strike_id: str | None = None
    error: str | None = None
    booking: dict[str, Any] | None = field(default=None, repr=False)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

SLOT_TAKEN = "Time slot is already booked"


class BookingService:
    def __init__(self, engine: RulesEngine, writer: BookingWriter):
        self.engine = engine
        self.writer = writer
        self.settings = engine.config.service

    async def _record_action(self, user_id: str, facility_id: str, action_type: str) -> None:
        if self.settings.record_actions:
            await self.writer.record_action(user_id, facility_id, action_type)

    def _strike_expiry(self) -> datetime | None:
        days = self.settings.strike_expiry_days
        if not days:
            return None
        return self.engine.clock() + timedelta(days=days)

    async def validate(self, request: BookingRequest) -> EvaluationResult:
        """Pre-flight check. Writes nothing."""
        return await self.engine.evaluate(request)

    async def create_booking(self, request: BookingRequest) -> BookingOutcome:
        await self._record_action(request.user_id, request.facility_id, "create")

        evaluation = await self.engine.evaluate(request)
        if not evaluation.allowed:
            first = evaluation.blockers[0].message if evaluation.blockers else None
            return BookingOutcome(
                success=False,
                error=first or "Booking not allowed due to rule violations",
                evaluation=evaluation,
            )

        conflicts = await self.writer.find_slot_conflicts(
            request.court_id, request.booking_date, request.start_time, request.end_time
        )
        if conflicts:
            return BookingOutcome(success=False, error=SLOT_TAKEN, evaluation=evaluation)

        booking = await self.writer.insert_booking(
            request, is_prime_time=evaluation.is_prime_time
        )
        return BookingOutcome(success=True, booking=booking, evaluation=evaluation)

    async def create_booking_with_override(
        self, request: BookingRequest, override: AdminOverride
    ) -> BookingOutcome:
        """Create despite rule blockers. A taken slot still fails."""
        result = await self.engine.evaluate_with_override(request, override)

        conflicts = await self.writer.find_slot_conflicts(
            request.court_id, request.booking_date, request.start_time, request.end_time
        )
        if conflicts:
            return BookingOutcome(success=False, error=SLOT_TAKEN, evaluation=result.result)

        booking = await self.writer.insert_booking(
            request,
            is_prime_time=result.result.is_prime_time,
            override=result.audit,
        )
        return BookingOutcome(
            success=True,
            booking=booking,
            evaluation=result.result,
            override=result.audit,
        )

    async def cancel_booking(self, request: CancellationRequest) -> CancellationOutcome:
        evaluation = await self.engine.evaluate_cancellation(request)
        await self._record_action(request.user_id, request.facility_id, "cancel")

        if not evaluation.allowed or evaluation.cancellation is None:
            return CancellationOutcome(
                success=False, evaluation=evaluation, error=evaluation.message
            )

        await self.writer.mark_cancelled(request.booking_id)
        cancellation_id = await self.writer.record_cancellation(evaluation.cancellation)

        strike_id = None
        if evaluation.strike_will_be_issued and evaluation.strike is not None:
            strike_id = await self.writer.issue_strike(
                evaluation.strike, expires_at=self._strike_expiry()
            )
            await self.writer.link_strike(cancellation_id, strike_id)

        return CancellationOutcome(
            success=True,
            evaluation=evaluation,
            cancellation_id=cancellation_id,
            strike_id=strike_id,
        )

    async def mark_no_show(
        self, booking_id: str, facility_id: str, marked_by: str | None = None
    ) -> NoShowOutcome:
        """Mark a booking as a no-show and issue one no_show strike."""
        booking = await self.writer.mark_no_show(booking_id, facility_id)
        if booking is None:
            return NoShowOutcome(success=False, error="Booking not found")

        strike_id = await self.writer.issue_strike(
            IssueStrike(
                user_id=booking["user_id"],
                facility_id=facility_id,
                strike_type=StrikeType.NO_SHOW,
                reason="Did not show up for reservation",
                related_booking_id=booking_id,
            ),
            expires_at=self._strike_expiry(),
            issued_by=marked_by,
        )
        logger.info(f"No-show strike {strike_id} issued for booking {booking_id}")
        return NoShowOutcome(success=True, strike_id=strike_id, booking=booking)
