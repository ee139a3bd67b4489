"""Pluggable rules engine pattern.

Rules are small evaluator objects registered under a stable code:
(context, config) -> RuleResult. The pipeline owns ordering and the
blocker/warning partition; evaluators only answer "does this pass?".
This makes them:
- Trivially testable (context in, result out)
- Composable (add a rule without touching the pipeline)
- Auditable (deterministic order, every result kept)

Example domain: a court-booking vertical checking account, court, and
household limits before a reservation is created.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Generic, Iterable, TypeVar


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass
class RuleResult:
    """Outcome of a single rule evaluation."""

    rule_code: str
    rule_name: str
    passed: bool
    severity: Severity = Severity.ERROR
    message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_blocker(self) -> bool:
        return not self.passed and self.severity == Severity.ERROR

    @property
    def is_warning(self) -> bool:
        if self.severity != Severity.WARNING:
            return False
        # A passing warning only surfaces when it has something to say
        return not self.passed or bool(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_code": self.rule_code,
            "rule_name": self.rule_name,
            "passed": self.passed,
            "severity": self.severity.value,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class EvaluationResult:
    """Aggregate outcome of every enabled rule.

    ``blockers``, ``warnings`` and ``allowed`` are derived from
    ``results`` and never passed in.
    """

    results: list[RuleResult]
    is_prime_time: bool = False
    blockers: list[RuleResult] = field(default_factory=list, init=False)
    warnings: list[RuleResult] = field(default_factory=list, init=False)
    allowed: bool = field(default=True, init=False)

    def __post_init__(self):
        self.blockers = [r for r in self.results if r.is_blocker]
        self.warnings = [r for r in self.results if r.is_warning]
        self.allowed = len(self.blockers) == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "is_prime_time": self.is_prime_time,
            "results": [r.to_dict() for r in self.results],
            "blockers": [r.to_dict() for r in self.blockers],
            "warnings": [r.to_dict() for r in self.warnings],
        }


# ---------------------------------------------------------------------------
# Rule definitions & evaluators
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RuleDefinition:
    """Static catalog entry for a rule: identity, grouping, and order."""

    code: str
    name: str
    category: str
    evaluation_order: int
    description: str = ""
    config_model: Any = None


ContextT = TypeVar("ContextT")


class RuleEvaluator(ABC, Generic[ContextT]):
    """Base class for a single pluggable rule.

    Subclasses set ``code`` and implement ``evaluate``. The registry
    attaches the matching ``RuleDefinition`` on registration::

        @registry.register
        class MaxActiveReservations(RuleEvaluator[RuleContext]):
            code = "ACC-001"

            async def evaluate(self, context, config):
                if context.active_count >= config.max_active_reservations:
                    return self.fail("Limit reached", current=...)
                return self.ok()
    """

    code: ClassVar[str]
    definition: ClassVar[RuleDefinition]
    severity: ClassVar[Severity] = Severity.ERROR

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def evaluation_order(self) -> int:
        return self.definition.evaluation_order

    @abstractmethod
    async def evaluate(self, context: ContextT, config: Any) -> RuleResult:
        """Evaluate the rule against one immutable context."""

    def ok(self, message: str | None = None, **details: Any) -> RuleResult:
        return RuleResult(
            rule_code=self.code,
            rule_name=self.name,
            passed=True,
            severity=self.severity,
            message=message,
            details=details,
        )

    def fail(self, message: str, **details: Any) -> RuleResult:
        return RuleResult(
            rule_code=self.code,
            rule_name=self.name,
            passed=False,
            severity=self.severity,
            message=message,
            details=details,
        )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class RuleRegistry:
    """Evaluators keyed by rule code, iterated in evaluation order."""

    def __init__(self, definitions: Iterable[RuleDefinition]):
        self._definitions = {d.code: d for d in definitions}
        self._evaluators: dict[str, RuleEvaluator] = {}

    def register(self, evaluator_cls: type[RuleEvaluator]) -> type[RuleEvaluator]:
        """Class decorator: attach the definition and store one instance."""
        code = evaluator_cls.code
        if code not in self._definitions:
            raise KeyError(f"No rule definition for {code}")
        if code in self._evaluators:
            raise ValueError(f"Rule {code} is already registered")

        evaluator_cls.definition = self._definitions[code]
        self._evaluators[code] = evaluator_cls()
        return evaluator_cls

    def get(self, code: str) -> RuleEvaluator:
        return self._evaluators[code]

    def definition(self, code: str) -> RuleDefinition:
        return self._definitions[code]

    def definitions(self) -> list[RuleDefinition]:
        return sorted(self._definitions.values(), key=lambda d: (d.evaluation_order, d.code))

    def ordered(self) -> list[RuleEvaluator]:
        return sorted(
            self._evaluators.values(),
            key=lambda e: (e.evaluation_order, e.code),
        )

    def __contains__(self, code: object) -> bool:
        return code in self._evaluators

    def __len__(self) -> int:
        return len(self._evaluators)
