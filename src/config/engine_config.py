"""
Engine config loader: JSON file -> frozen dataclass tree, validated against JSON Schema.

Default values:      docs/config/groundwork.default.json
Schema:              docs/config/groundwork_config.schema.json

Per-symbol overrides: place a partial JSON file named ``groundwork.{SYMBOL}.json``
next to the default config (e.g. ``docs/config/groundwork.ES.json``). Only the
keys you want to override need to be present; they are deep-merged on top
of the base config before schema validation.

Usage:
    from config.engine_config import load_engine_config
    cfg = load_engine_config()                       # loads default
    cfg = load_engine_config(symbol="ES")            # merges groundwork.ES.json if present
    cfg = load_engine_config("my_overrides.json")    # loads custom file
    cfg.signal.min_ma_distance  # -> 0.3

The dataclass defaults mirror the shipped JSON, so ``EngineConfig()`` is
usable without any file on disk.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema

logger = logging.getLogger("groundwork.config")

# ---------------------------------------------------------------------------
# Locating the shipped config (docs/config next to pyproject.toml)
# ---------------------------------------------------------------------------


def _find_project_root() -> Path:
    """First ancestor of this module holding a pyproject.toml, else the CWD."""
    for directory in Path(__file__).resolve().parents:
        if (directory / "pyproject.toml").is_file():
            return directory
    return Path.cwd()


_PROJECT_ROOT = _find_project_root()

DEFAULT_CONFIG_PATH = _PROJECT_ROOT / "docs" / "config" / "groundwork.default.json"
DEFAULT_SCHEMA_PATH = _PROJECT_ROOT / "docs" / "config" / "groundwork_config.schema.json"


# ---------------------------------------------------------------------------
# Frozen dataclass tree, mirrors groundwork.default.json structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FeaturesEngineeringConfig:
    tick_size: float = 0.25
    bars_required_to_trade: int = 14   # gate for emission; buffers hold this + 1
    lookback_period: int = 9           # MA-slope window and volume-surge average window


@dataclass(frozen=True)
class VolumetricConfig:
    ticks_per_level: int = 5
    value_area_percent: float = 0.70
    imbalance_ratio: float = 1.5
    imbalance_min_delta: int = 10
    stacked_imbalance_count: int = 3


@dataclass(frozen=True)
class SignalConfig:
    """Feature-based signal thresholds. Features are normalized, mostly in [-1, 1]."""

    # Temporal (moving average)
    min_ma_distance: float = 0.3
    min_slope: float = 0.2
    # Order flow
    min_delta_pressure: float = 0.4
    min_volume_dominance: float = 0.3
    min_volume_surge: float = 0.5
    exit_cumulative_delta_momentum: float = -1.5
    # Market state (efficiency)
    min_market_state_trend: float = 0.6
    max_market_state_chop: float = 0.25
    # Price action
    min_close_open_bullish: float = 0.5
    max_close_open_bearish: float = -0.5
    # Value area
    exit_poc_displacement: float = -1.5
    # Exits
    exit_slope_reversal: float = -0.3
    exit_delta_pressure_reversal: float = -0.4
    # Confirmation
    min_confirming_categories: int = 3
    require_secondary_alignment: bool = True


@dataclass(frozen=True)
class EngineConfig:
    """Top-level engine configuration."""
    version: str = "0.1"
    features: FeaturesEngineeringConfig = field(default_factory=FeaturesEngineeringConfig)
    volumetric: VolumetricConfig = field(default_factory=VolumetricConfig)
    signal: SignalConfig = field(default_factory=SignalConfig)


# ---------------------------------------------------------------------------
# Per-symbol overrides
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *base* with *overrides* layered on top.

    Nested sections merge key by key; any other override value replaces
    the base value wholesale. *base* itself is not modified.
    """
    merged = dict(base)
    for key, override in overrides.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(override, dict):
            override = _deep_merge(current, override)
        merged[key] = override
    return merged


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


class EngineConfigError(Exception):
    """Raised when engine config loading or validation fails."""


def _read_json(path: Path, label: str) -> dict[str, Any]:
    try:
        return json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise EngineConfigError(f"{label} is not valid JSON: {exc}") from exc


def _validate_schema(data: dict[str, Any], schema_path: Path) -> None:
    """Raise EngineConfigError unless *data* conforms to the schema at *schema_path*."""
    if not schema_path.exists():
        raise EngineConfigError(f"Schema file not found: {schema_path}")
    schema = _read_json(schema_path, f"Schema {schema_path.name}")
    errors = sorted(jsonschema.Draft202012Validator(schema).iter_errors(data), key=lambda e: list(e.path))
    if errors:
        first = errors[0]
        where = "/".join(str(p) for p in first.path) or "<root>"
        raise EngineConfigError(f"Engine config validation failed at {where}: {first.message}")


def _build_config(data: dict[str, Any]) -> EngineConfig:
    """Convert a raw dict (already validated) into the frozen dataclass tree.

    Sections or keys missing from the file fall back to dataclass defaults.
    """
    fe_defaults = FeaturesEngineeringConfig()
    vb_defaults = VolumetricConfig()
    sig_defaults = SignalConfig()

    fe_raw = data.get("features", {})
    vb_raw = data.get("volumetric", {})
    sig_raw = data.get("signal", {})

    return EngineConfig(
        version=data["version"],
        features=FeaturesEngineeringConfig(
            tick_size=float(fe_raw.get("tick_size", fe_defaults.tick_size)),
            bars_required_to_trade=fe_raw.get("bars_required_to_trade", fe_defaults.bars_required_to_trade),
            lookback_period=fe_raw.get("lookback_period", fe_defaults.lookback_period),
        ),
        volumetric=VolumetricConfig(
            ticks_per_level=vb_raw.get("ticks_per_level", vb_defaults.ticks_per_level),
            value_area_percent=float(vb_raw.get("value_area_percent", vb_defaults.value_area_percent)),
            imbalance_ratio=float(vb_raw.get("imbalance_ratio", vb_defaults.imbalance_ratio)),
            imbalance_min_delta=vb_raw.get("imbalance_min_delta", vb_defaults.imbalance_min_delta),
            stacked_imbalance_count=vb_raw.get("stacked_imbalance_count", vb_defaults.stacked_imbalance_count),
        ),
        signal=SignalConfig(
            **{
                name: sig_raw.get(name, getattr(sig_defaults, name))
                for name in SignalConfig.__dataclass_fields__
            }
        ),
    )


def load_engine_config(
    config_path: str | Path | None = None,
    schema_path: str | Path | None = None,
    symbol: str | None = None,
) -> EngineConfig:
    """Load and validate engine configuration.

    Parameters
    ----------
    config_path:
        Path to an engine JSON config file.  Defaults to ``docs/config/groundwork.default.json``.
    schema_path:
        Path to the JSON Schema file.  Defaults to ``docs/config/groundwork_config.schema.json``.
    symbol:
        Optional instrument symbol.  When provided, the loader looks for a
        per-symbol override file ``groundwork.{SYMBOL}.json`` in the same
        directory as the base config and deep-merges it before validation.
        A missing override file is not an error.

    Returns
    -------
    EngineConfig
        Frozen dataclass tree with all engine parameters.

    Raises
    ------
    EngineConfigError
        If the file is missing, unparseable, or fails schema validation.
    """
    cfg_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    sch_path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH

    if not cfg_path.exists():
        raise EngineConfigError(f"Engine config file not found: {cfg_path}")
    data = _read_json(cfg_path, "Engine config")

    if symbol:
        symbol_path = cfg_path.with_name(f"groundwork.{symbol.upper()}.json")
        if symbol_path.exists():
            data = _deep_merge(data, _read_json(symbol_path, f"Per-symbol config {symbol_path.name}"))
            logger.info("Applied per-symbol config %s", symbol_path.name)
        else:
            logger.debug("No per-symbol config at %s, using base values", symbol_path)

    _validate_schema(data, sch_path)
    return _build_config(data)
