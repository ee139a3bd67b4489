"""Error taxonomy for the court-booking rules engine.

Rule violations are NOT exceptions; they come back as blocker results.
These exceptions cover the cases where no evaluation result can be produced.
"""


class RulesEngineError(Exception):
    """Base class for rules engine failures."""


class NotFoundError(RulesEngineError):
    """A user, court, facility, or booking could not be resolved."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class TransientIOError(RulesEngineError):
    """An underlying read failed or timed out. Not retried by the engine."""


class ConfigError(RulesEngineError):
    """A facility rule config does not match the rule's schema."""

    def __init__(self, rule_code: str, reason: str):
        self.rule_code = rule_code
        self.reason = reason
        super().__init__(f"Invalid config for {rule_code}: {reason}")
