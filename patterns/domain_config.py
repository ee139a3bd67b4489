"""Dataclass-based domain configuration pattern.

Each vertical defines its thresholds, limits, and feature flags as a
frozen dataclass. This gives you:
- Type safety (IDE autocompletion, mypy checking)
- Default values (sensible out-of-the-box)
- Immutability (frozen=True prevents accidental mutation)
- Easy overrides (from env vars, config files, or facility settings)

Example domain: the court-booking rules engine with read and timing config.
Per-rule policy (caps, windows, buffers) is NOT here; that lives in the
rule catalog and per-facility rule configs.
"""

import os
from dataclasses import dataclass, field


# ---------------------------------------------------------------------------
# Nested config sections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReadConfig:
    """Bounds on the context builder's data reads."""

    timeout_seconds: float = 5.0
    booking_history_days: int = 7  # user/household bookings read back this far
    recent_cancellation_hours: int = 24


@dataclass(frozen=True)
class ServiceConfig:
    """How the booking service applies engine signals."""

    record_actions: bool = True  # feeds the ACC-011 rate limit
    strike_expiry_days: int | None = None


# ---------------------------------------------------------------------------
# Top-level domain config
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RulesEngineConfig:
    """Complete configuration for the court-booking rules engine.

    Usage::

        config = RulesEngineConfig.from_env()
        engine = RulesEngine(reads, config=config)
    """

    reads: ReadConfig = field(default_factory=ReadConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)

    default_timezone: str = "UTC"

    @classmethod
    def default(cls) -> "RulesEngineConfig":
        """Create config with all defaults."""
        return cls()

    @classmethod
    def from_env(cls, prefix: str = "COURTS_") -> "RulesEngineConfig":
        """Create config from environment variables.

        Example: COURTS_READ_TIMEOUT_SECONDS=2.5
        """
        read_overrides = {}
        timeout = os.getenv(f"{prefix}READ_TIMEOUT_SECONDS")
        if timeout:
            read_overrides["timeout_seconds"] = float(timeout)
        history = os.getenv(f"{prefix}BOOKING_HISTORY_DAYS")
        if history:
            read_overrides["booking_history_days"] = int(history)
        cancel_hours = os.getenv(f"{prefix}RECENT_CANCELLATION_HOURS")
        if cancel_hours:
            read_overrides["recent_cancellation_hours"] = int(cancel_hours)

        service_overrides = {}
        expiry = os.getenv(f"{prefix}STRIKE_EXPIRY_DAYS")
        if expiry:
            service_overrides["strike_expiry_days"] = int(expiry)

        overrides = {}
        tz = os.getenv(f"{prefix}DEFAULT_TIMEZONE")
        if tz:
            overrides["default_timezone"] = tz

        return cls(
            reads=ReadConfig(**read_overrides),
            service=ServiceConfig(**service_overrides),
            **overrides,
        )
