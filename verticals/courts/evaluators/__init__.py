"""Rule evaluators, registered on import.

Importing this package populates ``registry`` with every ACC, CRT, and HH
evaluator.
"""

from verticals.courts.catalog import registry
from verticals.courts.evaluators import account, court, household  # noqa: F401

__all__ = ["registry"]
