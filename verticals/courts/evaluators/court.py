"""Court rules (CRT-0xx): prime time, hours, grid, blackouts, buffers, inventory."""

from patterns.rules_engine import RuleEvaluator, RuleResult, Severity
from verticals.courts.catalog import (
    AllowedActivitiesConfig,
    BlackoutConfig,
    BufferTimeConfig,
    CourtCancellationConfig,
    CourtWeeklyCapConfig,
    OperatingHoursConfig,
    PrimeTimeEligibilityConfig,
    PrimeTimeMaxDurationConfig,
    PrimeTimeScheduleConfig,
    ReleaseTimeConfig,
    SlotGridConfig,
    SubAmenityConfig,
    registry,
)
from verticals.courts.context import RuleContext, bounded_read
from verticals.courts.prime_time import format_prime_time_window, is_tier_eligible_for_prime_time
from verticals.courts.time_utils import (
    datetime_ranges_overlap,
    format_hhmm,
    in_window,
    is_aligned_to_slot,
    matches_weekly_recurrence,
    next_aligned_slot,
    time_ranges_overlap,
    time_to_minutes,
    to_time,
    week_window,
)
from verticals.courts.types import BlackoutVisibility, DayHours

DAY_NAMES = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")


@registry.register
class PrimeTimeSchedule(RuleEvaluator[RuleContext]):
    """Informational notice only."""

    code = "CRT-001"
    severity = Severity.WARNING

    async def evaluate(self, context: RuleContext, config: PrimeTimeScheduleConfig) -> RuleResult:
        if not context.is_prime_time:
            return self.ok()

        details = {"court_name": context.court.name}
        day = context.day_config
        if day and day.prime_time_start and day.prime_time_end:
            details["prime_time_window"] = format_prime_time_window(
                day.prime_time_start, day.prime_time_end
            )
        return self.ok(
            f"This time is designated as prime time for {context.court.name}.",
            **details,
        )


@registry.register
class PrimeTimeMaxDuration(RuleEvaluator[RuleContext]):
    code = "CRT-002"

    async def evaluate(self, context: RuleContext, config: PrimeTimeMaxDurationConfig) -> RuleResult:
        if not context.is_prime_time:
            return self.ok()

        day = context.day_config
        max_minutes = (day.prime_time_max_duration if day else None) or config.max_minutes_prime
        if context.request.duration_minutes > max_minutes:
            return self.fail(
                f"Prime-time bookings on {context.court.name} are limited to {max_minutes} minutes.",
                max_minutes=max_minutes,
                requested_minutes=context.request.duration_minutes,
            )
        return self.ok()


@registry.register
class PrimeTimeEligibility(RuleEvaluator[RuleContext]):
    code = "CRT-003"

    async def evaluate(self, context: RuleContext, config: PrimeTimeEligibilityConfig) -> RuleResult:
        if not context.is_prime_time:
            return self.ok()

        admin_bypass = config.allow_admin_override and context.is_admin
        tier_name = context.tier.name if context.tier else None

        if not config.tier_eligible and not admin_bypass:
            label = f" ({tier_name})" if tier_name else ""
            return self.fail(
                f"Your membership tier{label} is not eligible to book prime time "
                f"on {context.court.name}.",
                tier_name=tier_name,
            )

        if not is_tier_eligible_for_prime_time(
            tier_name,
            config.allowed_tiers,
            allow_admin_override=config.allow_admin_override,
            is_facility_admin=context.is_admin,
        ):
            return self.fail(
                f"Your membership tier is not eligible to book prime time on {context.court.name}.",
                tier_name=tier_name,
                allowed_tiers=config.allowed_tiers,
            )
        return self.ok()


@registry.register
class CourtOperatingHours(RuleEvaluator[RuleContext]):
    code = "CRT-004"

    def _outside(self, context: RuleContext, open_time, close_time) -> RuleResult | None:
        start = time_to_minutes(context.request.start_time)
        end = time_to_minutes(context.request.end_time)
        if start < time_to_minutes(open_time) or end > time_to_minutes(close_time):
            return self.fail(
                f"{context.court.name} is only available "
                f"{format_hhmm(open_time)} - {format_hhmm(close_time)}.",
                court_name=context.court.name,
                open_time=format_hhmm(open_time),
                close_time=format_hhmm(close_time),
                requested_start=format_hhmm(context.request.start_time),
                requested_end=format_hhmm(context.request.end_time),
            )
        return None

    def _facility_hours(self, context: RuleContext, config: OperatingHoursConfig) -> DayHours | None:
        hours = context.facility.operating_hours.get(context.day_of_week)
        if hours is not None:
            return hours
        raw = config.open_hours.get(DAY_NAMES[context.day_of_week])
        if not isinstance(raw, dict):
            return None
        return DayHours(
            open_time=to_time(raw["open"]) if raw.get("open") else None,
            close_time=to_time(raw["close"]) if raw.get("close") else None,
            is_closed=bool(raw.get("closed", False)),
        )

    async def evaluate(self, context: RuleContext, config: OperatingHoursConfig) -> RuleResult:
        court = context.court
        if court.status != "available":
            return self.fail(
                f"{court.name} is currently unavailable ({court.status}).",
                court_name=court.name,
                status=court.status,
            )

        if context.request.booking_date in config.closed_dates:
            return self.fail(
                f"{context.facility.name} is closed on {context.request.booking_date.isoformat()}.",
                facility_name=context.facility.name,
            )

        day = context.day_config
        if day is not None:
            if not day.is_open:
                return self.fail(
                    f"{court.name} is closed on this day.",
                    court_name=court.name,
                    day_of_week=context.day_of_week,
                )
            if day.open_time and day.close_time:
                return self._outside(context, day.open_time, day.close_time) or self.ok()
            return self.ok()

        hours = self._facility_hours(context, config)
        if hours is None:
            return self.ok()
        if hours.is_closed:
            return self.fail(
                f"{context.facility.name} is closed on this day.",
                facility_name=context.facility.name,
                day_of_week=context.day_of_week,
            )
        if hours.open_time and hours.close_time:
            return self._outside(context, hours.open_time, hours.close_time) or self.ok()
        return self.ok()


@registry.register
class ReservationSlotGrid(RuleEvaluator[RuleContext]):
    code = "CRT-005"

    async def evaluate(self, context: RuleContext, config: SlotGridConfig) -> RuleResult:
        day = context.day_config
        slot = (day.slot_duration if day else None) or config.slot_minutes
        min_duration = (day.min_duration if day else None) or config.min_duration_minutes
        max_duration = (day.max_duration if day else None) or config.max_duration_minutes
        requested = context.request.duration_minutes

        if not is_aligned_to_slot(context.request.start_time, slot):
            return self.fail(
                f"Reservations must start on {slot}-minute increments.",
                slot_minutes=slot,
                requested_start=format_hhmm(context.request.start_time),
                next_start=format_hhmm(next_aligned_slot(context.request.start_time, slot)),
            )
        if requested < min_duration:
            return self.fail(
                f"Minimum reservation duration is {min_duration} minutes.",
                min_duration=min_duration,
                requested_duration=requested,
            )
        if requested > max_duration:
            return self.fail(
                f"Maximum reservation duration is {max_duration} minutes.",
                max_duration=max_duration,
                requested_duration=requested,
            )
        return self.ok()


@registry.register
class BlackoutBlocks(RuleEvaluator[RuleContext]):
    code = "CRT-006"

    async def evaluate(self, context: RuleContext, config: BlackoutConfig) -> RuleResult:
        court = context.court
        for blackout in context.blackouts:
            if blackout.court_id and blackout.court_id != court.id:
                continue
            hidden = blackout.visibility == BlackoutVisibility.HIDDEN

            if datetime_ranges_overlap(
                context.request_start,
                context.request_end,
                blackout.start_datetime,
                blackout.end_datetime,
            ):
                reason = "scheduled maintenance" if hidden else (blackout.title or blackout.blackout_type)
                return self.fail(
                    f"{court.name} is unavailable during this time ({reason}).",
                    court_name=court.name,
                    reason=reason,
                    blackout_type=blackout.blackout_type,
                    blackout_start=blackout.start_datetime.isoformat(),
                    blackout_end=blackout.end_datetime.isoformat(),
                )

            if blackout.recurrence_rule and matches_weekly_recurrence(
                blackout.recurrence_rule,
                blackout.start_datetime.date(),
                context.request.booking_date,
            ):
                if time_ranges_overlap(
                    context.request.start_time,
                    context.request.end_time,
                    blackout.start_datetime.time(),
                    blackout.end_datetime.time(),
                ):
                    reason = "recurring maintenance" if hidden else (blackout.title or blackout.blackout_type)
                    return self.fail(
                        f"{court.name} is unavailable during this time ({reason}).",
                        court_name=court.name,
                        reason=reason,
                        recurring=True,
                    )
        return self.ok()


@registry.register
class BufferTime(RuleEvaluator[RuleContext]):
    code = "CRT-007"

    async def evaluate(self, context: RuleContext, config: BufferTimeConfig) -> RuleResult:
        day = context.day_config
        before = day.buffer_before if day and day.buffer_before is not None else config.buffer_before_minutes
        after = day.buffer_after if day and day.buffer_after is not None else config.buffer_after_minutes
        if before == 0 and after == 0:
            return self.ok()

        start = time_to_minutes(context.request.start_time)
        end = time_to_minutes(context.request.end_time)

        for existing in context.court_bookings:
            if existing.is_cancelled:
                continue
            existing_start = time_to_minutes(existing.start_time)
            existing_end = time_to_minutes(existing.end_time)

            if after > 0 and existing_end < start < existing_end + after:
                return self.fail(
                    f"A {after}-minute buffer is required after the previous booking.",
                    buffer_after=after,
                    existing_end=format_hhmm(existing.end_time),
                )
            if before > 0 and existing_start - before < end < existing_start:
                return self.fail(
                    f"A {before}-minute buffer is required before the next booking.",
                    buffer_before=before,
                    existing_start=format_hhmm(existing.start_time),
                )
        return self.ok()


@registry.register
class AllowedActivities(RuleEvaluator[RuleContext]):
    code = "CRT-008"

    async def evaluate(self, context: RuleContext, config: AllowedActivitiesConfig) -> RuleResult:
        court = context.court
        activity = context.request.activity

        # Court-level activity rows replace the facility-wide list
        if court.allowed_activities:
            allowed = [a.activity_type.lower() for a in court.allowed_activities if a.is_allowed]
        else:
            allowed = [a.lower() for a in config.allowed_activity_types]

        if not allowed:
            return self.ok()

        if config.activity_required and not activity:
            return self.fail(
                f"Please select an activity type for {court.name}.",
                allowed_types=allowed,
                court_name=court.name,
            )
        if activity and activity.lower() not in allowed:
            return self.fail(
                f'"{activity}" is not allowed on {court.name}. Allowed: {", ".join(allowed)}.',
                requested_activity=activity,
                allowed_types=allowed,
                court_name=court.name,
            )
        return self.ok()


@registry.register
class SubAmenityInventory(RuleEvaluator[RuleContext]):
    """Runs a live concurrency count; may raise TransientIOError."""

    code = "CRT-009"

    async def evaluate(self, context: RuleContext, config: SubAmenityConfig) -> RuleResult:
        activity = context.request.activity
        amenity = config.sub_amenity_type
        if not activity or activity.lower() != amenity.lower() or context.reads is None:
            return self.ok()

        max_concurrent = config.max_concurrent
        for row in context.court.allowed_activities:
            if row.activity_type.lower() == amenity.lower() and row.max_concurrent:
                max_concurrent = row.max_concurrent

        current = await bounded_read(
            context.settings,
            context.reads.count_concurrent_activity(
                context.facility.id,
                context.request.booking_date,
                amenity,
                context.request.start_time,
                context.request.end_time,
                court_id=context.court.id if config.scope == "court_only" else None,
            ),
        )
        if current >= max_concurrent:
            return self.fail(
                f"All {amenity} units are currently reserved for that time. "
                "Please choose another time or activity.",
                sub_amenity_type=amenity,
                max_concurrent=max_concurrent,
                current_count=current,
            )
        return self.ok()


@registry.register
class CourtWeeklyCap(RuleEvaluator[RuleContext]):
    code = "CRT-010"

    async def evaluate(self, context: RuleContext, config: CourtWeeklyCapConfig) -> RuleResult:
        window = week_window(config.window_type, context.request.booking_date)
        current = sum(
            1
            for b in context.user_bookings
            if b.court_id == context.court.id
            and not b.is_cancelled
            and in_window(b.booking_date, window)
        )
        maximum = config.max_per_week_per_account

        if current >= maximum:
            return self.fail(
                f"You've reached the weekly limit for {context.court.name} ({current}/{maximum}).",
                court_name=context.court.name,
                current=current,
                max=maximum,
            )
        return self.ok()


@registry.register
class CourtReleaseTime(RuleEvaluator[RuleContext]):
    code = "CRT-011"

    async def evaluate(self, context: RuleContext, config: ReleaseTimeConfig) -> RuleResult:
        day = context.day_config
        release_time = (day.release_time if day else None) or to_time(config.release_time_local)
        days_until = (context.request.booking_date - context.today).days

        # Further out than the release horizon is the advance window's concern
        if days_until != config.days_ahead:
            return self.ok()

        if context.now.time() < release_time:
            booking_date = context.request.booking_date.isoformat()
            return self.fail(
                f"Bookings for {booking_date} on {context.court.name} open at "
                f"{format_hhmm(release_time)} today.",
                target_date=booking_date,
                release_time=format_hhmm(release_time),
                court_name=context.court.name,
            )
        return self.ok()


@registry.register
class CourtCancellationDeadline(RuleEvaluator[RuleContext]):
    """Enforced by the cancellation evaluator; always passes at booking time."""

    code = "CRT-012"
    severity = Severity.WARNING

    async def evaluate(self, context: RuleContext, config: CourtCancellationConfig) -> RuleResult:
        return self.ok()
