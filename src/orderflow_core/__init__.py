"""
orderflow-core: pure order-flow feature engineering and signal rules.

No I/O, no network, no side effects. Consumes closed bars and per-price
bid/ask volume, produces VolumetricBars, FeatureVectors and FeatureSignals.
Fully deterministic and unit-testable.
"""

from orderflow_core.breakout import BreakoutLevels
from orderflow_core.contracts import (
    BaseBar,
    FeatureSignal,
    FeatureVector,
    OrderFlowTotals,
    PriceLevel,
    Timeframe,
    VolumetricBar,
)
from orderflow_core.feature_engine import FeatureEngine
from orderflow_core.signal_evaluator import FeatureSignalEvaluator
from orderflow_core.volumetric_bar import VolumetricBarBuilder, build_volumetric_bar

__all__ = [
    "BaseBar",
    "BreakoutLevels",
    "build_volumetric_bar",
    "FeatureEngine",
    "FeatureSignal",
    "FeatureSignalEvaluator",
    "FeatureVector",
    "OrderFlowTotals",
    "PriceLevel",
    "Timeframe",
    "VolumetricBar",
    "VolumetricBarBuilder",
]
