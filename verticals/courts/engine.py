"""Booking rules engine: context build + ordered evaluation pipeline.

Usage::

    engine = RulesEngine(reads)
    result = await engine.evaluate(request)
    if not result.allowed:
        return result.blockers

The engine never writes. Strikes, cancellation records, and override
audits come back as signals for the caller to persist.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from opentelemetry import trace

from patterns.domain_config import RulesEngineConfig
from patterns.rules_engine import EvaluationResult, RuleRegistry
from verticals.courts.cancellation import evaluate_cancellation_policy
from verticals.courts.context import (
    RuleContext,
    build_cancellation_context,
    build_rule_context,
    facility_timezone,
    gather_reads,
    localize_strike,
)
from verticals.courts.errors import NotFoundError
from verticals.courts.evaluators import registry as default_registry
from verticals.courts.reads import ContextReads
from verticals.courts.rule_config import resolve_rule
from verticals.courts.strikes import lockout_status
from verticals.courts.time_utils import to_local
from verticals.courts.types import (
    AdminOverride,
    BookingRequest,
    CancellationEvaluation,
    CancellationRequest,
    LockoutStatus,
    OverrideAudit,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class OverrideEvaluation:
    """Pipeline result with ``allowed`` forced on, plus the audit to persist."""

    result: EvaluationResult
    audit: OverrideAudit

    def to_dict(self) -> dict[str, Any]:
        return {**self.result.to_dict(), "override": self.audit.to_dict()}


class RulesEngine:
    """Evaluates booking and cancellation requests against a facility's rules."""

    def __init__(
        self,
        reads: ContextReads,
        config: RulesEngineConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        registry: RuleRegistry | None = None,
    ):
        self.reads = reads
        self.config = config or RulesEngineConfig.default()
        self.clock = clock or utc_now
        self.registry = registry or default_registry

    # -- Pipeline --

    async def run_pipeline(self, context: RuleContext) -> EvaluationResult:
        """Run every enabled rule in evaluation order. No short-circuit."""
        results = []
        for evaluator in self.registry.ordered():
            resolved = resolve_rule(
                evaluator.code,
                context.facility.rule_configs,
                context.court.id,
                context.tier,
            )
            if not resolved.enabled:
                logger.debug(f"{evaluator.code} disabled for facility {context.facility.id}")
                continue

            result = await evaluator.evaluate(context, resolved.config)
            logger.debug(
                f"{result.rule_code} passed={result.passed} "
                f"severity={result.severity.value} config_source={resolved.source}"
            )
            results.append(result)

        return EvaluationResult(results=results, is_prime_time=context.is_prime_time)

    async def evaluate(
        self,
        request: BookingRequest,
        *,
        now: datetime | None = None,
        is_admin: bool = False,
    ) -> EvaluationResult:
        """Build the context for ``request`` and run the pipeline over it."""
        with tracer.start_as_current_span(
            "rules.evaluate",
            attributes={
                "facility.id": request.facility_id,
                "court.id": request.court_id,
                "user.id": request.user_id,
            },
        ) as span:
            context = await build_rule_context(
                request,
                self.reads,
                now=now or self.clock(),
                settings=self.config,
                is_admin=is_admin,
            )
            result = await self.run_pipeline(context)

            span.set_attribute("rules.allowed", result.allowed)
            span.set_attribute("rules.blockers", len(result.blockers))
            span.set_attribute("rules.prime_time", result.is_prime_time)
            return result

    # -- Override --

    async def evaluate_with_override(
        self,
        request: BookingRequest,
        override: AdminOverride,
        *,
        now: datetime | None = None,
    ) -> OverrideEvaluation:
        """Evaluate normally, then allow regardless and record what was bypassed.

        Slot conflicts are not rules and are never bypassed here; the booking
        service checks them before insert.
        """
        if not override.admin_id or not override.admin_id.strip():
            raise ValueError("admin_id is required for an override")
        if not override.reason or not override.reason.strip():
            raise ValueError("reason is required for an override")

        now = now or self.clock()
        result = await self.evaluate(request, now=now)

        blocker_codes = tuple(b.rule_code for b in result.blockers)
        requested = tuple(override.override_rule_codes)
        unrequested = [code for code in blocker_codes if requested and code not in requested]
        if unrequested:
            logger.warning(
                f"Override by {override.admin_id} also bypasses unrequested rules: "
                f"{', '.join(unrequested)}"
            )

        result.allowed = True
        audit = OverrideAudit(
            overridden_rule_codes=blocker_codes,
            requested_rule_codes=requested,
            admin_id=override.admin_id,
            reason=override.reason,
            timestamp=override.timestamp or now,
        )
        logger.info(
            f"Admin override by {override.admin_id} for user {request.user_id} "
            f"on court {request.court_id}: bypassed [{', '.join(blocker_codes)}]"
        )
        return OverrideEvaluation(result=result, audit=audit)

    # -- Cancellation --

    async def evaluate_cancellation(
        self,
        request: CancellationRequest,
        *,
        now: datetime | None = None,
    ) -> CancellationEvaluation:
        with tracer.start_as_current_span(
            "rules.cancellation",
            attributes={
                "facility.id": request.facility_id,
                "booking.id": request.booking_id,
            },
        ) as span:
            context = await build_cancellation_context(
                request,
                self.reads,
                now=now or self.clock(),
                settings=self.config,
            )
            evaluation = evaluate_cancellation_policy(context)

            span.set_attribute("cancellation.allowed", evaluation.allowed)
            span.set_attribute("cancellation.late", evaluation.is_late_cancel)
            return evaluation

    # -- Strikes --

    async def check_lockout(
        self,
        user_id: str,
        facility_id: str,
        *,
        now: datetime | None = None,
    ) -> LockoutStatus:
        """Current lockout state under the facility's ACC-009 settings."""
        now = now or self.clock()
        facility, tier, strikes = await gather_reads(
            self.config,
            self.reads.get_facility(facility_id),
            self.reads.get_user_tier(user_id, facility_id, now),
            self.reads.list_active_strikes(user_id, facility_id, now),
        )
        if facility is None:
            raise NotFoundError("Facility", facility_id)

        tz = facility_timezone(facility, self.config)
        resolved = resolve_rule("ACC-009", facility.rule_configs, "", tier or facility.default_tier)
        config = resolved.config
        return lockout_status(
            [localize_strike(s, tz) for s in strikes],
            to_local(now, tz),
            threshold=config.strike_threshold,
            window_days=config.strike_window_days,
            lockout_days=config.lockout_days,
        )
