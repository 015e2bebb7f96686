"""
Human-readable output for the terminal.

Every CLI command uses these formatters so features and signals explain
themselves: each number is labelled and each signal carries its reason.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from config.engine_config import EngineConfig
    from orderflow_core.contracts import BaseBar, FeatureSignal, FeatureVector, VolumetricBar
    from orderflow_core.pipeline import PipelineResult


def _fmt_volume(vol: int | float) -> str:
    if vol >= 1_000_000:
        return f"{vol / 1_000_000:.2f}M"
    if vol >= 1_000:
        return f"{vol / 1_000:.1f}K"
    return str(int(vol))


def _fmt_direction(direction: int) -> str:
    if direction > 0:
        return "LONG"
    if direction < 0:
        return "SHORT"
    return "NONE"


def format_features(features: FeatureVector) -> str:
    """One labelled line per feature plus a bar header."""
    bar = features.bar
    lines = [
        f"--- Features @ day {bar.day} time {bar.time:06d} ---",
        f"Bar          : O {bar.open:.2f}  H {bar.high:.2f}  L {bar.low:.2f}  C {bar.close:.2f}  "
        f"V {_fmt_volume(bar.volume)}  ATR {bar.atr:.2f}",
    ]
    for name in features.feature_names():
        label = name[2:].replace("_", " ")
        lines.append(f"  {label:<26}: {getattr(features, name):+.3f}")
    return "\n".join(lines)


def format_signal(signal: FeatureSignal, label: str = "Entry") -> str:
    if not signal.has_signal:
        return f"  {label:<6}: no signal ({signal.reason})"
    return (
        f"  {label:<6}: {_fmt_direction(signal.direction)}  strength {signal.strength:.2f}  "
        f"confidence {signal.confidence:.2f}\n"
        f"  Reason: {signal.reason}"
    )


def format_pipeline_result(result: PipelineResult) -> str:
    if result.features is None:
        return f"  [{result.timeframe.value}] day {result.bar.day} time {result.bar.time:06d}: warming up"
    lines = [format_features(result.features)]
    if result.entry_signal is not None:
        lines.append(format_signal(result.entry_signal, "Entry"))
    if result.exit_signal is not None:
        lines.append(format_signal(result.exit_signal, "Exit"))
    return "\n".join(lines)


def format_volumetric_bar(vb: VolumetricBar) -> str:
    """Summary block plus a per-level ladder, highest price first."""
    lines = [
        "--- Volumetric bar ---",
        f"Volume       : {_fmt_volume(vb.total_volume)} (buy {_fmt_volume(vb.buy_volume)} / sell {_fmt_volume(vb.sell_volume)})",
        f"Delta        : {vb.bar_delta:+d}  (min {vb.min_delta:+d}, max {vb.max_delta:+d}, cum {vb.cumulative_delta:+d})",
        f"Value area   : {vb.value_area_low:.2f} - {vb.value_area_high:.2f}  POC {vb.point_of_control:.2f}",
        f"Imbalances   : bid {vb.bid_imbalances} (stacked {vb.bid_stacked_imbalances})  "
        f"ask {vb.ask_imbalances} (stacked {vb.ask_stacked_imbalances})",
        "",
        f"  {'price':>12}  {'bid':>8}  {'ask':>8}  flags",
    ]
    for level in reversed(vb.levels):
        flags = []
        if level.has_bid_imbalance:
            flags.append("BID*" if level.is_bid_stacked else "bid")
        if level.has_ask_imbalance:
            flags.append("ASK*" if level.is_ask_stacked else "ask")
        lines.append(f"  {level.price:>12.2f}  {level.bid_volume:>8d}  {level.ask_volume:>8d}  {' '.join(flags)}")
    return "\n".join(lines)


def format_engine_config(cfg: EngineConfig) -> str:
    lines = [f"Engine config v{cfg.version}"]
    for section in ("features", "volumetric", "signal"):
        lines.append(f"[{section}]")
        values = getattr(cfg, section)
        for name in values.__dataclass_fields__:
            lines.append(f"  {name:<32} = {getattr(values, name)}")
    return "\n".join(lines)


def format_replay_summary(bars: int, features: int, entries: int, exits: int, breakouts: int = 0) -> str:
    return (
        "\n=== Replay summary ===\n"
        f"  Bars processed : {bars}\n"
        f"  Feature rows   : {features}\n"
        f"  Entry signals  : {entries}\n"
        f"  Exit signals   : {exits}\n"
        f"  Breakouts      : {breakouts}"
    )


def format_breakout(bar: BaseBar, side: str, level: float) -> str:
    label = "above bearish high" if side == "above_bearish_high" else "below bullish low"
    return f"[{bar.day} {bar.time:06d}] Breakout {label} {level:.2f} (close {bar.close:.2f})"
