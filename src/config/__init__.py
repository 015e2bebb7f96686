"""
Configuration loaders.

App config:     reads config.yaml, resolves env overrides.
Engine config:  reads groundwork.default.json (or override), validates against JSON Schema.
"""

from config.engine_config import (
    EngineConfig,
    EngineConfigError,
    FeaturesEngineeringConfig,
    SignalConfig,
    VolumetricConfig,
    load_engine_config,
)
from config.loader import (
    AppConfig,
    LoggingConfig,
    TimeframesConfig,
    load_config,
)

__all__ = [
    # App config (YAML)
    "AppConfig",
    "LoggingConfig",
    "TimeframesConfig",
    "load_config",
    # Engine config (JSON + schema)
    "EngineConfig",
    "EngineConfigError",
    "FeaturesEngineeringConfig",
    "SignalConfig",
    "VolumetricConfig",
    "load_engine_config",
]
