"""Household rules (HH-00x): caps shared by every member at one address."""

from patterns.rules_engine import RuleEvaluator, RuleResult, Severity
from verticals.courts.catalog import (
    HouseholdActiveConfig,
    HouseholdPrimeTimeConfig,
    MaxMembersConfig,
    registry,
)
from verticals.courts.context import RuleContext
from verticals.courts.households import count_active_bookings
from verticals.courts.prime_time import count_prime_time_bookings


@registry.register
class MaxMembersPerAddress(RuleEvaluator[RuleContext]):
    """Advisory: a full household never blocks a booking."""

    code = "HH-001"
    severity = Severity.WARNING

    async def evaluate(self, context: RuleContext, config: MaxMembersConfig) -> RuleResult:
        household = context.household
        if household is None:
            return self.ok()

        maximum = household.max_members or config.max_members
        current = len(household.members)
        if current >= maximum:
            return self.ok(
                f"Your household has reached the maximum of {maximum} members.",
                current_members=current,
                max_members=maximum,
            )
        return self.ok()


@registry.register
class HouseholdMaxActive(RuleEvaluator[RuleContext]):
    code = "HH-002"

    async def evaluate(self, context: RuleContext, config: HouseholdActiveConfig) -> RuleResult:
        household = context.household
        if household is None:
            return self.ok()

        maximum = household.max_active_reservations
        if maximum is None:
            maximum = config.max_active_household
        current = count_active_bookings(list(context.household_bookings), context.today)

        if current >= maximum:
            return self.fail(
                f"Your household has reached its active reservation limit ({current}/{maximum}).",
                current=current,
                max=maximum,
                household_id=household.id,
            )
        return self.ok()


@registry.register
class HouseholdPrimeTimeCap(RuleEvaluator[RuleContext]):
    code = "HH-003"

    async def evaluate(self, context: RuleContext, config: HouseholdPrimeTimeConfig) -> RuleResult:
        household = context.household
        if not context.is_prime_time or household is None:
            return self.ok()

        maximum = household.prime_time_max_per_week
        if maximum is None:
            maximum = config.max_prime_per_week_household
        current = count_prime_time_bookings(
            list(context.household_bookings), config.window_type, context.request.booking_date
        )

        if current >= maximum:
            return self.fail(
                f"Your household has reached its prime-time weekly limit ({current}/{maximum}).",
                current=current,
                max=maximum,
                household_id=household.id,
            )
        return self.ok()
