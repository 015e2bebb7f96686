"""
Price-action features: close/open relationship and market state.

Market state is a signed Kaufman efficiency ratio over body midpoints:
    +1 = strong uptrend, 0 = range/chop, -1 = strong downtrend.
Strong trend |index| ~ 0.6-0.95, transition ~ 0.25-0.6, chop ~ 0.0-0.25.

Pure functions; no I/O.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from orderflow_core.contracts import BaseBar, PriceFeatures
from orderflow_core.numeric import TOLERANCE, clamp, is_valid

if TYPE_CHECKING:
    from config.engine_config import FeaturesEngineeringConfig


def close_open_relationship(bar: BaseBar, tolerance: float = TOLERANCE) -> float:
    """(close - open) / (high - low), in [-1, 1]; 0.0 for a zero-range bar."""
    rng = bar.high - bar.low
    if not is_valid(rng) or rng < tolerance:
        return 0.0
    value = (bar.close - bar.open) / rng
    return value if is_valid(value) else 0.0


def market_state(
    open_series: Sequence[float],
    close_series: Sequence[float],
    tolerance: float = TOLERANCE,
) -> float:
    """Signed efficiency ratio of the body-midpoint series, clamped to [-1, 1].

    path = sum |mid[i] - mid[i-1]|, net = mid[last] - mid[first],
    index = sign(net) * |net| / path. Returns 0.0 for fewer than two points,
    a flat window (path <= tolerance) or a non-finite result.
    """
    if open_series is None or close_series is None:
        return 0.0

    n = min(len(open_series), len(close_series))
    if n < 2:
        return 0.0

    first = 0.5 * (open_series[0] + close_series[0])
    prev = first
    path = 0.0
    for i in range(1, n):
        mid = 0.5 * (open_series[i] + close_series[i])
        path += abs(mid - prev)
        prev = mid

    net = prev - first
    if not is_valid(path) or path <= tolerance:
        return 0.0

    sign = 1.0 if net >= 0.0 else -1.0
    index = sign * abs(net) / path
    if not is_valid(index):
        return 0.0
    return clamp(index, -1.0, 1.0)


def extract_price_features(
    config: FeaturesEngineeringConfig,
    bar: BaseBar,
    open_series: Sequence[float],
    high_series: Sequence[float],
    low_series: Sequence[float],
    close_series: Sequence[float],
    atr_series: Sequence[float],
) -> PriceFeatures:
    """Price feature group for ``bar``; neutral when any series is empty."""
    if not open_series or not high_series or not low_series or not close_series or not atr_series:
        return PriceFeatures.empty()
    return PriceFeatures(
        close_open_relationship=close_open_relationship(bar),
        market_state=market_state(open_series, close_series),
    )
