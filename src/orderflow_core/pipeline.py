"""
Pipeline orchestrator: chains VolumetricBar -> Features -> Entry/Exit signals.

Single entry point for processing one closed bar of one timeframe.
"""

from __future__ import annotations

from dataclasses import dataclass

from orderflow_core.contracts import (
    BaseBar,
    FeatureSignal,
    FeatureVector,
    Timeframe,
    VolumetricBar,
)
from orderflow_core.feature_engine import FeatureEngine
from orderflow_core.signal_evaluator import FeatureSignalEvaluator


@dataclass(frozen=True)
class PipelineResult:
    """Output of one bar's evaluation. Every stage is kept for observability."""

    timeframe: Timeframe
    bar: BaseBar
    volumetric_bar: VolumetricBar | None = None
    features: FeatureVector | None = None
    entry_signal: FeatureSignal | None = None
    exit_signal: FeatureSignal | None = None


def process_bar(
    engine: FeatureEngine,
    evaluator: FeatureSignalEvaluator,
    timeframe: Timeframe,
    bar: BaseBar,
    volumetric_bar: VolumetricBar | None = None,
    position_direction: int = 0,
) -> PipelineResult:
    """Process one closed bar through the engine and the evaluator.

    Stages:
        1. Buffer the bar and its VolumetricBar (if any), resetting on a new day.
        2. Emit features; stop here while the timeframe is warming up.
        3. Evaluate entry; evaluate exit only with an open position.

    Signals are only evaluated on the primary timeframe; secondary bars
    feed the cross-timeframe market state.
    """
    timeframe = Timeframe(timeframe)
    features = engine.emit(timeframe, bar, volumetric_bar)
    if features is None or timeframe is not Timeframe.PRIMARY:
        return PipelineResult(timeframe=timeframe, bar=bar, volumetric_bar=volumetric_bar, features=features)

    entry = evaluator.evaluate_entry(features)
    exit_signal = evaluator.evaluate_exit(features, position_direction) if position_direction != 0 else None

    return PipelineResult(
        timeframe=timeframe,
        bar=bar,
        volumetric_bar=volumetric_bar,
        features=features,
        entry_signal=entry,
        exit_signal=exit_signal,
    )
