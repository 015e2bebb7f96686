"""
Config loader: YAML file -> frozen dataclass tree.

The engine config path can be overridden from the environment
(GROUNDWORK_ENGINE_CONFIG), e.g. through a .env file loaded by the CLI.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

ENGINE_CONFIG_ENV = "GROUNDWORK_ENGINE_CONFIG"


@dataclass(frozen=True)
class TimeframesConfig:
    primary: str = "500T"
    secondary: str = "1000T"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    structured_logs: bool = True


@dataclass(frozen=True)
class AppConfig:
    symbol: str
    timeframes: TimeframesConfig = field(default_factory=TimeframesConfig)
    engine_config_path: str = ""
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _section(raw: dict, key: str) -> dict:
    value = raw.get(key)
    return value if isinstance(value, dict) else {}


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """
    Load application configuration from a YAML file.

    ``engine_config_path`` resolves from the GROUNDWORK_ENGINE_CONFIG
    environment variable first, then the file; empty means the packaged
    default engine config.
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    raw = yaml.safe_load(config_path.read_text())
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    defaults_tf = TimeframesConfig()
    timeframes = _section(raw, "timeframes")
    defaults_log = LoggingConfig()
    log = _section(raw, "logging")

    return AppConfig(
        symbol=str(raw.get("symbol", "ES")),
        timeframes=TimeframesConfig(
            primary=str(timeframes.get("primary", defaults_tf.primary)),
            secondary=str(timeframes.get("secondary", defaults_tf.secondary)),
        ),
        engine_config_path=str(os.environ.get(ENGINE_CONFIG_ENV) or raw.get("engine_config_path") or ""),
        logging=LoggingConfig(
            level=str(log.get("level", defaults_log.level)).upper(),
            structured_logs=bool(log.get("structured_logs", defaults_log.structured_logs)),
        ),
    )
