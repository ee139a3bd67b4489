"""Account rules (ACC-0xx): per-user limits, windows, and penalties."""

from datetime import timedelta

from patterns.rules_engine import RuleEvaluator, RuleResult
from verticals.courts.catalog import (
    AdvanceWindowConfig,
    CancellationCooldownConfig,
    LateCancellationConfig,
    MaxActiveReservationsConfig,
    MaxMinutesPerWeekConfig,
    MaxReservationsPerWeekConfig,
    MinimumLeadTimeConfig,
    NoOverlapConfig,
    PrimeTimePerWeekConfig,
    RateLimitConfig,
    StrikeSystemConfig,
    registry,
)
from verticals.courts.context import RuleContext, bounded_read
from verticals.courts.prime_time import count_prime_time_bookings
from verticals.courts.strikes import lockout_status
from verticals.courts.time_utils import (
    format_hhmm,
    in_window,
    minutes_between,
    time_ranges_overlap,
    to_time,
    week_window,
)


@registry.register
class MaxActiveReservations(RuleEvaluator[RuleContext]):
    code = "ACC-001"

    async def evaluate(self, context: RuleContext, config: MaxActiveReservationsConfig) -> RuleResult:
        states = {s.lower() for s in config.count_states}
        current = sum(
            1
            for b in context.user_bookings
            if b.status.value in states and b.booking_date >= context.today
        )
        maximum = config.max_active_reservations

        if current >= maximum:
            return self.fail(
                f"You have reached the maximum of {maximum} active reservations. "
                "Cancel one to book another.",
                current=current,
                max=maximum,
            )
        return self.ok()


@registry.register
class MaxReservationsPerWeek(RuleEvaluator[RuleContext]):
    code = "ACC-002"

    async def evaluate(self, context: RuleContext, config: MaxReservationsPerWeekConfig) -> RuleResult:
        window = week_window(config.window_type, context.request.booking_date)
        current = sum(
            1
            for b in context.user_bookings
            if in_window(b.booking_date, window)
            and (config.include_canceled or not b.is_cancelled)
        )

        if current >= config.max_per_week:
            return self.fail(
                f"Weekly booking limit reached ({current}/{config.max_per_week}).",
                current=current,
                max=config.max_per_week,
                window_start=window[0].isoformat(),
                window_end=window[1].isoformat(),
            )
        return self.ok()


@registry.register
class MaxMinutesPerWeek(RuleEvaluator[RuleContext]):
    code = "ACC-003"

    async def evaluate(self, context: RuleContext, config: MaxMinutesPerWeekConfig) -> RuleResult:
        window = week_window(config.window_type, context.request.booking_date)
        current = sum(
            b.duration_minutes
            for b in context.user_bookings
            if in_window(b.booking_date, window) and not b.is_cancelled
        )
        requested = context.request.duration_minutes
        new_total = current + requested

        if new_total > config.max_minutes_per_week:
            return self.fail(
                f"Weekly hours limit would be exceeded "
                f"({new_total}/{config.max_minutes_per_week} minutes).",
                current_minutes=current,
                requested_minutes=requested,
                max_minutes=config.max_minutes_per_week,
            )
        return self.ok()


@registry.register
class NoOverlappingReservations(RuleEvaluator[RuleContext]):
    code = "ACC-004"

    async def evaluate(self, context: RuleContext, config: NoOverlapConfig) -> RuleResult:
        if config.allow_overlap:
            return self.ok()

        request = context.request
        for existing in context.user_bookings:
            if existing.booking_date != request.booking_date or existing.is_cancelled:
                continue
            if time_ranges_overlap(
                request.start_time,
                request.end_time,
                existing.start_time,
                existing.end_time,
                config.overlap_grace_minutes,
            ):
                where = existing.court_name or "another court"
                summary = f"{where} at {format_hhmm(existing.start_time)}"
                return self.fail(
                    f"This booking overlaps with your existing reservation on {summary}.",
                    existing_booking_id=existing.id,
                    other_reservation_summary=summary,
                )
        return self.ok()


@registry.register
class AdvanceBookingWindow(RuleEvaluator[RuleContext]):
    code = "ACC-005"

    async def evaluate(self, context: RuleContext, config: AdvanceWindowConfig) -> RuleResult:
        max_days = config.max_days_ahead
        days_ahead = (context.request.booking_date - context.today).days

        if days_ahead > max_days:
            return self.fail(
                f"You can only book up to {max_days} days in advance.",
                max_days_ahead=max_days,
                requested_days_ahead=days_ahead,
                latest_allowed_date=(context.today + timedelta(days=max_days)).isoformat(),
            )

        # The furthest bookable day opens at a set local time
        if config.open_time_local and days_ahead == max_days:
            opens_at = to_time(config.open_time_local)
            if context.now.time() < opens_at:
                return self.fail(
                    f"Reservations {max_days} days out open at {format_hhmm(opens_at)}.",
                    max_days_ahead=max_days,
                    requested_days_ahead=days_ahead,
                    opens_at=format_hhmm(opens_at),
                )
        return self.ok()


@registry.register
class MinimumLeadTime(RuleEvaluator[RuleContext]):
    code = "ACC-006"

    async def evaluate(self, context: RuleContext, config: MinimumLeadTimeConfig) -> RuleResult:
        min_minutes = config.min_minutes_before_start
        minutes_until_start = minutes_between(context.now, context.request_start)

        if minutes_until_start < min_minutes:
            return self.fail(
                f"Reservations must be made at least {min_minutes} minutes before start time.",
                min_minutes=min_minutes,
                minutes_until_start=minutes_until_start,
            )
        return self.ok()


@registry.register
class CancellationCooldown(RuleEvaluator[RuleContext]):
    code = "ACC-007"

    async def evaluate(self, context: RuleContext, config: CancellationCooldownConfig) -> RuleResult:
        within = config.only_if_within_minutes_of_start

        for cancellation in context.recent_cancellations:
            if within is not None and cancellation.minutes_before_start > within:
                continue
            if minutes_between(cancellation.cancelled_at, context.now) >= config.cooldown_minutes:
                continue

            ends_at = cancellation.cancelled_at + timedelta(minutes=config.cooldown_minutes)
            return self.fail(
                "You recently canceled a reservation. "
                f"You can book again after {ends_at.strftime('%H:%M')}.",
                cooldown_minutes=config.cooldown_minutes,
                cooldown_ends_at=ends_at.isoformat(),
                last_cancellation=cancellation.cancelled_at.isoformat(),
            )
        return self.ok()


@registry.register
class LateCancellationPolicy(RuleEvaluator[RuleContext]):
    """Enforced by the cancellation evaluator; always passes at booking time."""

    code = "ACC-008"

    async def evaluate(self, context: RuleContext, config: LateCancellationConfig) -> RuleResult:
        return self.ok()


@registry.register
class StrikeLockout(RuleEvaluator[RuleContext]):
    code = "ACC-009"

    async def evaluate(self, context: RuleContext, config: StrikeSystemConfig) -> RuleResult:
        status = lockout_status(
            context.strikes,
            context.now,
            threshold=config.strike_threshold,
            window_days=config.strike_window_days,
            lockout_days=config.lockout_days,
        )

        if status.is_locked_out:
            return self.fail(
                f"Your account is temporarily locked due to {status.strike_count} strikes. "
                f"Lockout ends {status.lockout_ends_at:%Y-%m-%d %H:%M}.",
                strike_count=status.strike_count,
                threshold=status.threshold,
                lockout_ends_at=status.lockout_ends_at.isoformat(),
            )
        return self.ok()


@registry.register
class PrimeTimePerWeek(RuleEvaluator[RuleContext]):
    code = "ACC-010"

    async def evaluate(self, context: RuleContext, config: PrimeTimePerWeekConfig) -> RuleResult:
        if not context.is_prime_time:
            return self.ok()

        current = count_prime_time_bookings(
            list(context.user_bookings), config.window_type, context.request.booking_date
        )
        if current >= config.max_prime_per_week:
            return self.fail(
                f"Prime-time weekly limit reached ({current}/{config.max_prime_per_week}).",
                current=current,
                max=config.max_prime_per_week,
            )
        return self.ok()


@registry.register
class RateLimitActions(RuleEvaluator[RuleContext]):
    """Runs a live count against the action log; may raise TransientIOError."""

    code = "ACC-011"

    async def evaluate(self, context: RuleContext, config: RateLimitConfig) -> RuleResult:
        if context.reads is None:
            return self.ok()

        recent = await bounded_read(
            context.settings,
            context.reads.count_recent_actions(
                context.user.id,
                context.facility.id,
                config.action_types,
                config.window_seconds,
            ),
        )
        if recent >= config.max_actions:
            return self.fail(
                f"Too many booking actions. Please wait {config.window_seconds} seconds "
                "before trying again.",
                recent_actions=recent,
                max_actions=config.max_actions,
                retry_after_seconds=config.window_seconds,
            )
        return self.ok()
