"""Cancellation evaluator: lateness, penalty, and the signals to emit.

The cutoff comes from an applicable court-specific CRT-012 row when the
facility configured one, otherwise from the facility-wide ACC-008 policy.
"""

import logging

from verticals.courts.context import CancellationContext
from verticals.courts.rule_config import merge_config, resolve_rule, select_facility_row
from verticals.courts.time_utils import minutes_between
from verticals.courts.types import (
    BookingStatus,
    CancellationEvaluation,
    IssueStrike,
    PenaltyType,
    RecordCancellation,
    StrikeType,
)

logger = logging.getLogger(__name__)


def resolve_cancellation_policy(context: CancellationContext) -> tuple[int, PenaltyType, str]:
    """Return (cutoff minutes, penalty type, rule code that supplied them)."""
    rows = context.facility.rule_configs
    tier = context.tier
    tier_id = tier.id if tier else None

    court_row = select_facility_row(rows, "CRT-012", context.court.id, tier_id)
    if court_row is not None and court_row.is_enabled:
        config, _ = merge_config("CRT-012", tier, court_row)
        return config.cancel_cutoff_minutes, PenaltyType(config.penalty_type), "CRT-012"

    resolved = resolve_rule("ACC-008", rows, context.court.id, tier)
    if not resolved.enabled:
        return 0, PenaltyType.NONE, "ACC-008"
    config = resolved.config
    return config.late_cancel_cutoff_minutes, PenaltyType(config.penalty_type), "ACC-008"


def evaluate_cancellation_policy(context: CancellationContext) -> CancellationEvaluation:
    """Decide whether a cancellation is allowed and what the caller must record."""
    booking = context.booking
    request = context.request
    booking_start = context.booking_start
    minutes_before = minutes_between(context.now, booking_start)
    cutoff, penalty, source = resolve_cancellation_policy(context)

    if booking.status == BookingStatus.CANCELLED:
        return CancellationEvaluation(
            allowed=False,
            is_late_cancel=False,
            strike_will_be_issued=False,
            minutes_before_start=minutes_before,
            message="This reservation is already cancelled.",
            cutoff_minutes=cutoff,
            penalty_type=penalty,
        )

    is_late = cutoff > 0 and minutes_before < cutoff

    if is_late and penalty == PenaltyType.BLOCK_CANCEL:
        return CancellationEvaluation(
            allowed=False,
            is_late_cancel=True,
            strike_will_be_issued=False,
            minutes_before_start=minutes_before,
            message=(
                f"Reservations on {context.court.name} cannot be cancelled within "
                f"{cutoff} minutes of start."
            ),
            cutoff_minutes=cutoff,
            penalty_type=penalty,
        )

    strike_will_be_issued = is_late and penalty == PenaltyType.STRIKE
    strike = None
    if strike_will_be_issued:
        strike = IssueStrike(
            user_id=booking.user_id,
            facility_id=booking.facility_id,
            strike_type=StrikeType.LATE_CANCEL,
            reason=f"Late cancellation: canceled {minutes_before} minutes before start",
            related_booking_id=booking.id,
        )
        logger.info(
            f"Late cancellation of booking {booking.id} by user {booking.user_id} "
            f"({minutes_before}m before start, cutoff {cutoff}m via {source}); strike signalled"
        )

    if strike_will_be_issued:
        message = (
            f"This is a late cancellation ({minutes_before} minutes before start). "
            "A strike will be added to your account."
        )
    elif is_late:
        message = f"This is a late cancellation ({minutes_before} minutes before start)."
    else:
        message = "Reservation can be cancelled without penalty."

    return CancellationEvaluation(
        allowed=True,
        is_late_cancel=is_late,
        strike_will_be_issued=strike_will_be_issued,
        minutes_before_start=minutes_before,
        message=message,
        cutoff_minutes=cutoff,
        penalty_type=penalty,
        strike=strike,
        cancellation=RecordCancellation(
            booking_id=booking.id,
            user_id=booking.user_id,
            facility_id=booking.facility_id,
            cancelled_at=context.now,
            booking_start=booking_start,
            minutes_before_start=minutes_before,
            is_late_cancel=is_late,
            strike_issued=strike_will_be_issued,
            reason=request.reason,
        ),
    )
