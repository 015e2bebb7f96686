"""
Signal Evaluator: FeatureVector -> FeatureSignal.

Stateless rule engine over the normalized features; no bars, no history.

Entry categories (each bullish or bearish against SignalConfig thresholds):
    Temporal           : MA distance + MA slope
    OrderFlow          : delta pressure + volume dominance
    MarketEfficiency   : market state beyond the trend threshold
    PriceAction        : close/open relationship
    VolumeSurge        : direction-agnostic volume spike
    SecondaryAlignment : secondary timeframe trending; also a hard gate
                         when ``require_secondary_alignment`` is set

Exit conditions (direction-aware, any one triggers):
    SlopeReversal, DeltaReversal, CDM_Reversal, EnteringChop, POC_Rejection

No-signal outcomes are returned as ``FeatureSignal.no_signal(reason)``,
never raised.
"""

from __future__ import annotations

from dataclasses import replace

from config.engine_config import SignalConfig
from orderflow_core.contracts import FeatureContributions, FeatureSignal, FeatureVector

TOTAL_CATEGORIES = 6
FULL_CONFIDENCE = 1.0
PARTIAL_CONFIDENCE = 0.7
EXIT_CONFIDENCE = 0.8


def _side(bullish: bool) -> str:
    return "Bullish" if bullish else "Bearish"


def evaluate_entry(features: FeatureVector, config: SignalConfig) -> FeatureSignal:
    """Evaluate one FeatureVector for an entry.

    Direction is +1/-1 with confidence 1.0 when Temporal, OrderFlow and
    MarketEfficiency agree unanimously. Otherwise a majority vote over the
    four directional categories (Temporal, OrderFlow, MarketEfficiency,
    PriceAction) decides with confidence 0.7; it needs strictly more votes
    than the other side and at least two. Strength is confirmed / 6.
    """
    contributions = FeatureContributions()
    reasons: list[str] = []
    confirmed = 0

    # 1. Temporal (MA distance + slope)
    temporal_bullish = (
        features.f_ma_fast_slow_distance > config.min_ma_distance
        and features.f_ma_slope > config.min_slope
    )
    temporal_bearish = (
        features.f_ma_fast_slow_distance < -config.min_ma_distance
        and features.f_ma_slope < -config.min_slope
    )
    if temporal_bullish or temporal_bearish:
        contributions = replace(contributions, temporal_alignment=True)
        confirmed += 1
        reasons.append(
            f"Temporal({_side(temporal_bullish)}:"
            f"Dist={features.f_ma_fast_slow_distance:.2f},Slope={features.f_ma_slope:.2f})"
        )

    # 2. Order flow (delta pressure + volume dominance)
    order_flow_bullish = (
        features.f_delta_pressure > config.min_delta_pressure
        and features.f_volume_dominance > config.min_volume_dominance
    )
    order_flow_bearish = (
        features.f_delta_pressure < -config.min_delta_pressure
        and features.f_volume_dominance < -config.min_volume_dominance
    )
    if order_flow_bullish or order_flow_bearish:
        contributions = replace(contributions, order_flow_alignment=True)
        confirmed += 1
        reasons.append(
            f"OrderFlow({_side(order_flow_bullish)}:"
            f"Delta={features.f_delta_pressure:.2f},VolDom={features.f_volume_dominance:.2f})"
        )

    # 3. Market efficiency (trend vs chop)
    market_bullish = features.f_market_state > config.min_market_state_trend
    market_bearish = features.f_market_state < -config.min_market_state_trend
    if market_bullish or market_bearish:
        contributions = replace(contributions, market_efficiency=True)
        confirmed += 1
        reasons.append(f"MarketState({_side(market_bullish)}:{features.f_market_state:.2f})")

    # 4. Price action
    price_bullish = features.f_close_open_relationship > config.min_close_open_bullish
    price_bearish = features.f_close_open_relationship < config.max_close_open_bearish
    if price_bullish or price_bearish:
        contributions = replace(contributions, price_action=True)
        confirmed += 1
        reasons.append(f"PriceAction({_side(price_bullish)}:{features.f_close_open_relationship:.2f})")

    # 5. Volume surge
    if features.f_volume_surge > config.min_volume_surge:
        contributions = replace(contributions, volume_surge=True)
        confirmed += 1
        reasons.append(f"VolumeSurge({features.f_volume_surge:.2f})")

    # 6. Secondary timeframe alignment
    if abs(features.f_market_state_secondary) > config.min_market_state_trend:
        contributions = replace(contributions, secondary_alignment=True)
        confirmed += 1
        reasons.append(f"SecondaryTrend({features.f_market_state_secondary:.2f})")
    elif config.require_secondary_alignment:
        return FeatureSignal.no_signal(
            f"Secondary timeframe not trending (MarketStateSecondary={features.f_market_state_secondary:.2f})"
        )

    if confirmed < config.min_confirming_categories:
        return FeatureSignal.no_signal(
            f"Insufficient confirmations ({confirmed}/{config.min_confirming_categories})"
        )

    all_bullish = temporal_bullish and order_flow_bullish and market_bullish
    all_bearish = temporal_bearish and order_flow_bearish and market_bearish

    if all_bullish or all_bearish:
        direction = 1 if all_bullish else -1
        confidence = FULL_CONFIDENCE
    else:
        bullish_votes = sum((temporal_bullish, order_flow_bullish, market_bullish, price_bullish))
        bearish_votes = sum((temporal_bearish, order_flow_bearish, market_bearish, price_bearish))
        if bullish_votes > bearish_votes and bullish_votes >= 2:
            direction = 1
        elif bearish_votes > bullish_votes and bearish_votes >= 2:
            direction = -1
        else:
            return FeatureSignal.no_signal(f"Mixed signals (Bull={bullish_votes}, Bear={bearish_votes})")
        confidence = PARTIAL_CONFIDENCE

    return FeatureSignal(
        direction=direction,
        strength=confirmed / TOTAL_CATEGORIES,
        confidence=confidence,
        reason=" ".join(reasons),
        contributions=contributions,
    )


def evaluate_exit(features: FeatureVector, position_direction: int, config: SignalConfig) -> FeatureSignal:
    """Evaluate exit conditions for an open position (+1 long, -1 short).

    Any triggered condition yields direction ``-position_direction``,
    strength 1.0, confidence 0.8 and a reason listing every trigger.

    Raises ValueError when ``position_direction`` is not -1, 0 or +1.
    """
    if position_direction not in (-1, 0, 1):
        raise ValueError(f"position_direction must be -1, 0 or 1, got {position_direction!r}")
    if position_direction == 0:
        return FeatureSignal.no_signal("No position")

    is_long = position_direction > 0
    reasons: list[str] = []

    slope = features.f_ma_slope
    if (is_long and slope < config.exit_slope_reversal) or (
        not is_long and slope > -config.exit_slope_reversal
    ):
        reasons.append(f"SlopeReversal({slope:.2f})")

    delta = features.f_delta_pressure
    if (is_long and delta < config.exit_delta_pressure_reversal) or (
        not is_long and delta > -config.exit_delta_pressure_reversal
    ):
        reasons.append(f"DeltaReversal({delta:.2f})")

    cdm = features.f_cumulative_delta_momentum
    if (is_long and cdm < config.exit_cumulative_delta_momentum) or (
        not is_long and cdm > -config.exit_cumulative_delta_momentum
    ):
        reasons.append(f"CDM_Reversal({cdm:.2f})")

    if abs(features.f_market_state) < config.max_market_state_chop:
        reasons.append(f"EnteringChop({features.f_market_state:.2f})")

    poc = features.f_poc_displacement
    if (is_long and poc < config.exit_poc_displacement) or (
        not is_long and poc > -config.exit_poc_displacement
    ):
        reasons.append(f"POC_Rejection({poc:.2f})")

    if not reasons:
        return FeatureSignal.no_signal("No exit conditions met")

    return FeatureSignal(
        direction=-position_direction,
        strength=1.0,
        confidence=EXIT_CONFIDENCE,
        reason="EXIT: " + " ".join(reasons),
        contributions=FeatureContributions(),
    )


class FeatureSignalEvaluator:
    """Config-bound evaluator. Holds no state between calls."""

    def __init__(self, config: SignalConfig | None = None) -> None:
        self._config = config or SignalConfig()

    @property
    def config(self) -> SignalConfig:
        return self._config

    def evaluate_entry(self, features: FeatureVector) -> FeatureSignal:
        return evaluate_entry(features, self._config)

    def evaluate_exit(self, features: FeatureVector, position_direction: int) -> FeatureSignal:
        return evaluate_exit(features, position_direction, self._config)
