"""Three-level rule config lookup.

Precedence, lowest to highest:
1. System default (the rule's config model defaults)
2. Tier override (only rules whose caps live on the membership tier)
3. Facility rule config row (if enabled and applicable)

A facility row that fails validation is dropped with a warning and the
rule runs on tier + system defaults instead.
"""

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from verticals.courts.catalog import DEFINITIONS_BY_CODE, RuleConfig
from verticals.courts.errors import ConfigError
from verticals.courts.types import FacilityRuleConfig, MembershipTier

logger = logging.getLogger(__name__)

SYSTEM = "system"
TIER = "tier"
FACILITY = "facility"

# rule code -> {config field: tier attribute}
TIER_FIELDS: dict[str, dict[str, str]] = {
    "ACC-001": {"max_active_reservations": "max_active_reservations"},
    "ACC-002": {"max_per_week": "max_reservations_per_week"},
    "ACC-003": {"max_minutes_per_week": "max_minutes_per_week"},
    "ACC-005": {"max_days_ahead": "advance_booking_days"},
    "ACC-010": {"max_prime_per_week": "prime_time_max_per_week"},
    "CRT-003": {"tier_eligible": "prime_time_eligible"},
}


@dataclass(frozen=True)
class ResolvedRule:
    """Merged config for one rule, plus where the winning values came from."""

    code: str
    enabled: bool
    config: RuleConfig
    source: str
    row: FacilityRuleConfig | None = None


def select_facility_row(
    rows: tuple[FacilityRuleConfig, ...] | list[FacilityRuleConfig],
    code: str,
    court_id: str,
    tier_id: str | None,
) -> FacilityRuleConfig | None:
    """First applicable row for ``code`` by ascending priority.

    Rows scoped to other courts or tiers are ignored.
    """
    candidates = [r for r in rows if r.rule_code == code and r.applies_to(court_id, tier_id)]
    if not candidates:
        return None
    return min(candidates, key=lambda r: r.priority)


def tier_overrides(code: str, tier: MembershipTier | None) -> dict[str, Any]:
    if tier is None:
        return {}
    overrides = {}
    for field_name, tier_attr in TIER_FIELDS.get(code, {}).items():
        value = getattr(tier, tier_attr, None)
        if value is not None:
            overrides[field_name] = value
    return overrides


def validate_config(code: str, values: dict[str, Any]) -> RuleConfig:
    """Build the rule's config model, raising ConfigError on a schema mismatch."""
    model = DEFINITIONS_BY_CODE[code].config_model
    try:
        return model.model_validate(values)
    except ValidationError as exc:
        raise ConfigError(code, str(exc)) from exc


def merge_config(
    code: str,
    tier: MembershipTier | None,
    row: FacilityRuleConfig | None,
) -> tuple[RuleConfig, str]:
    """Merge the three levels. Returns (config, source of the top layer)."""
    base = tier_overrides(code, tier)
    source = TIER if base else SYSTEM

    if row is not None and row.rule_config:
        try:
            return validate_config(code, {**base, **row.rule_config}), FACILITY
        except ConfigError as exc:
            logger.warning(
                f"Ignoring facility config {row.id or '?'} for {code}: {exc.reason}"
            )

    try:
        return validate_config(code, base), source
    except ConfigError as exc:
        logger.warning(f"Ignoring tier override for {code}: {exc.reason}")
        return validate_config(code, {}), SYSTEM


def resolve_rule(
    code: str,
    rows: tuple[FacilityRuleConfig, ...] | list[FacilityRuleConfig],
    court_id: str,
    tier: MembershipTier | None,
) -> ResolvedRule:
    """Enablement and merged config for one rule in one request."""
    row = select_facility_row(rows, code, court_id, tier.id if tier else None)
    if row is not None and not row.is_enabled:
        return ResolvedRule(
            code=code,
            enabled=False,
            config=validate_config(code, {}),
            source=FACILITY,
            row=row,
        )

    config, source = merge_config(code, tier, row)
    return ResolvedRule(code=code, enabled=True, config=config, source=source, row=row)
