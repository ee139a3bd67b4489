"""Test the rules engine pattern: results, partition, registry."""
import pytest

from patterns.rules_engine import (
    EvaluationResult,
    RuleDefinition,
    RuleEvaluator,
    RuleRegistry,
    RuleResult,
    Severity,
)
from verticals.courts.catalog import RULE_DEFINITIONS, list_definitions
from verticals.courts.evaluators import registry


def _result(code, passed, severity=Severity.ERROR, message=None):
    return RuleResult(rule_code=code, rule_name=code, passed=passed, severity=severity, message=message)


def test_partition_blockers_and_warnings():
    result = EvaluationResult(
        results=[
            _result("A", True),
            _result("B", False),
            _result("C", False, Severity.WARNING),
            _result("D", True, Severity.WARNING, "heads up"),
            _result("E", True, Severity.WARNING),
        ]
    )
    assert [r.rule_code for r in result.blockers] == ["B"]
    assert [r.rule_code for r in result.warnings] == ["C", "D"]
    assert not result.allowed


def test_allowed_when_only_warnings_fail():
    result = EvaluationResult(results=[_result("A", True), _result("C", False, Severity.WARNING)])
    assert result.allowed
    assert result.blockers == []


def test_to_dict_shape():
    data = EvaluationResult(results=[_result("B", False)], is_prime_time=True).to_dict()
    assert data["allowed"] is False
    assert data["is_prime_time"] is True
    assert data["blockers"][0]["severity"] == "error"


def test_registry_rejects_unknown_and_duplicate_codes():
    local = RuleRegistry([RuleDefinition("T-001", "Test", "test", 1)])

    class Unknown(RuleEvaluator):
        code = "T-999"

        async def evaluate(self, context, config):
            return self.ok()

    with pytest.raises(KeyError):
        local.register(Unknown)

    class Known(RuleEvaluator):
        code = "T-001"

        async def evaluate(self, context, config):
            return self.ok()

    local.register(Known)
    assert "T-001" in local
    with pytest.raises(ValueError):
        local.register(Known)


@pytest.mark.asyncio
async def test_evaluator_helpers_carry_definition():
    local = RuleRegistry([RuleDefinition("T-001", "Test Rule", "test", 1)])

    @local.register
    class Failing(RuleEvaluator):
        code = "T-001"

        async def evaluate(self, context, config):
            return self.fail("nope", reason="x")

    result = await local.get("T-001").evaluate(None, None)
    assert result.rule_name == "Test Rule"
    assert result.is_blocker
    assert result.details == {"reason": "x"}


def test_every_catalog_rule_has_an_evaluator():
    assert len(registry) == len(RULE_DEFINITIONS) == 26
    for definition in RULE_DEFINITIONS:
        assert definition.code in registry


def test_registry_order_is_account_then_court_then_household():
    codes = [e.code for e in registry.ordered()]
    assert codes[0] == "ACC-001"
    assert codes[10] == "ACC-011"
    assert codes[11] == "CRT-001"
    assert codes[-1] == "HH-003"
    orders = [e.evaluation_order for e in registry.ordered()]
    assert orders == sorted(orders)


def test_list_definitions_filters_by_category():
    household = list_definitions("household")
    assert [d["rule_code"] for d in household] == ["HH-001", "HH-002", "HH-003"]
    assert household[0]["default_config"]["max_members"] == 6
    assert len(list_definitions()) == 26
