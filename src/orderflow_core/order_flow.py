"""
Order-flow features from the buffered VolumetricBars.

The newest buffered VolumetricBar is the most recent *closed* bar; the ATR
and close come from the current bar. ATR is floored at 1e-4 and total
volume at 1 so no feature divides by zero.

Pure functions; no I/O.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from orderflow_core.contracts import BaseBar, VolumetricBar, VolumetricFeatures
from orderflow_core.numeric import clamp, is_valid

if TYPE_CHECKING:
    from config.engine_config import FeaturesEngineeringConfig

ATR_FLOOR = 1e-4
CDM_LIMIT = 3.0


def average_volume(volumetric_series: Sequence[VolumetricBar], lookback: int) -> float:
    """Mean TotalVolume over the first ``min(lookback, len)`` entries (oldest first)."""
    count = min(lookback, len(volumetric_series))
    if count <= 0:
        return 0.0
    return sum(volumetric_series[i].total_volume for i in range(count)) / count


def extract_volumetric_features(
    config: FeaturesEngineeringConfig,
    bar: BaseBar,
    volumetric_series: Sequence[VolumetricBar],
) -> VolumetricFeatures:
    """Order-flow feature group; neutral when no VolumetricBar is buffered."""
    if not volumetric_series:
        return VolumetricFeatures.empty()

    latest = volumetric_series[len(volumetric_series) - 1]

    atr = bar.atr if is_valid(bar.atr) else 0.0
    atr = max(atr, ATR_FLOOR)
    total_volume = max(latest.total_volume, 1)

    delta_pressure = latest.bar_delta / total_volume

    cumulative_delta_momentum = 0.0
    if len(volumetric_series) >= 2:
        previous = volumetric_series[len(volumetric_series) - 2]
        delta_change = latest.cumulative_delta - previous.cumulative_delta
        cumulative_delta_momentum = clamp(delta_change / atr, -CDM_LIMIT, CDM_LIMIT)

    poc_displacement = (bar.close - latest.point_of_control) / atr
    volume_dominance = (latest.buy_volume - latest.sell_volume) / total_volume
    value_area_width = (latest.value_area_high - latest.value_area_low) / atr

    avg_volume = average_volume(volumetric_series, config.lookback_period)
    volume_surge = (latest.total_volume - avg_volume) / avg_volume if avg_volume > 0 else 0.0

    return VolumetricFeatures(
        delta_pressure=delta_pressure,
        cumulative_delta_momentum=cumulative_delta_momentum,
        poc_displacement=poc_displacement,
        volume_dominance=volume_dominance,
        # The stored DeltaPercentage can be extreme; delta pressure is already in [-1, 1].
        delta_percentage=delta_pressure,
        value_area_width=value_area_width,
        volume_surge=volume_surge,
    )
