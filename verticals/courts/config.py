"""Courts vertical configuration.

Loads the RulesEngineConfig from COURTS_* environment variables.
"""

from patterns.domain_config import RulesEngineConfig

config = RulesEngineConfig.from_env()
