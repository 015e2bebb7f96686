"""
Moving-average features: fast/slow distance and fast-MA slope, both ATR-normalized.

The EMA and ATR values are computed by the host and arrive on BaseBar.
Pure functions; no I/O.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from orderflow_core.contracts import BaseBar, MovingAverageFeatures
from orderflow_core.numeric import TOLERANCE, clamp, finite_or_zero, is_valid, safe_ratio

if TYPE_CHECKING:
    from config.engine_config import FeaturesEngineeringConfig

# Typical strong slopes are ~0.1-0.3 ATR per bar.
SLOPE_SCALE = 5.0
# For 9/14 EMAs a 0.4 ATR separation maps to 1.0.
DISTANCE_SCALE = 2.5


def ma_slope(ma_series: Sequence[float], bar: BaseBar, window: int, tolerance: float = TOLERANCE) -> float:
    """Per-bar MA change over ``min(window, len)`` bars, in ATR units, scaled and clamped to [-1, 1]."""
    if ma_series is None or len(ma_series) < 2 or window < 1:
        return 0.0
    if not is_valid(bar.atr) or bar.atr < tolerance:
        return 0.0

    n = len(ma_series)
    actual_window = min(window, n)
    ma_change = ma_series[n - 1] - ma_series[n - actual_window]

    normalized = (ma_change / actual_window) / bar.atr
    return clamp(finite_or_zero(normalized * SLOPE_SCALE), -1.0, 1.0)


def ma_distance(bar: BaseBar, tolerance: float = TOLERANCE) -> float:
    """(fast - slow) / ATR, scaled and clamped to [-1, 1]. Positive when fast is above slow."""
    fast, slow, atr = bar.moving_average, bar.slow_moving_average, bar.atr
    if not is_valid(fast) or not is_valid(slow) or not is_valid(atr) or atr < tolerance:
        return 0.0
    return clamp(finite_or_zero((fast - slow) / atr * DISTANCE_SCALE), -1.0, 1.0)


def ma_ratio(bar: BaseBar, tolerance: float = TOLERANCE) -> float:
    """fast / slow; 1.0 when either MA is invalid or the slow MA is ~0."""
    return safe_ratio(bar.moving_average, bar.slow_moving_average, tolerance)


def extract_moving_average_features(
    config: FeaturesEngineeringConfig,
    bar: BaseBar,
    ma_fast_series: Sequence[float],
) -> MovingAverageFeatures:
    """Moving-average feature group for ``bar``; neutral when the series is empty."""
    if not ma_fast_series:
        return MovingAverageFeatures.empty()
    return MovingAverageFeatures(
        fast_slow_distance=ma_distance(bar),
        slope=ma_slope(ma_fast_series, bar, config.lookback_period),
    )
