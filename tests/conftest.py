"""Pytest fixtures: bar, volumetric-bar and feature-vector factories for deterministic tests."""

from typing import Callable

import pytest

from config.engine_config import FeaturesEngineeringConfig, SignalConfig, VolumetricConfig
from orderflow_core.contracts import BaseBar, FeatureVector, OrderFlowTotals, VolumetricBar


class FakeOrderFlow:
    """OrderFlowSource over a plain ``{price: (bid, ask)}`` dict."""

    def __init__(
        self,
        volumes: dict[float, tuple[int, int]],
        poc: float = 0.0,
        totals: OrderFlowTotals | None = None,
    ) -> None:
        self.volumes = volumes
        self.poc = poc
        self._totals = totals or OrderFlowTotals(
            total_volume=sum(b + a for b, a in volumes.values()),
            buy_volume=sum(a for _, a in volumes.values()),
            sell_volume=sum(b for b, _ in volumes.values()),
        )

    def bid_volume_at(self, price: float) -> int:
        return self.volumes.get(price, (0, 0))[0]

    def ask_volume_at(self, price: float) -> int:
        return self.volumes.get(price, (0, 0))[1]

    def point_of_control(self) -> float:
        return self.poc

    def totals(self) -> OrderFlowTotals:
        return self._totals


@pytest.fixture
def fake_order_flow() -> type[FakeOrderFlow]:
    return FakeOrderFlow


@pytest.fixture
def make_bar() -> Callable[..., BaseBar]:
    """Factory: a flat 100 bar on day 20240102 unless overridden."""

    def _make(**overrides) -> BaseBar:
        fields = {
            "time": 93000,
            "day": 20240102,
            "open": 100.0,
            "high": 101.0,
            "low": 99.0,
            "close": 100.5,
            "volume": 1000.0,
            "moving_average": 100.0,
            "slow_moving_average": 100.0,
            "atr": 2.0,
        }
        fields.update(overrides)
        return BaseBar(**fields)

    return _make


@pytest.fixture
def make_volumetric() -> Callable[..., VolumetricBar]:
    """Factory: a 1000-lot bar with 600 bought / 400 sold unless overridden."""

    def _make(**overrides) -> VolumetricBar:
        fields = {
            "total_volume": 1000,
            "buy_volume": 600,
            "sell_volume": 400,
            "bar_delta": 200,
            "max_delta": 250,
            "min_delta": -50,
            "cumulative_delta": 500,
            "delta_percentage": 20.0,
            "value_area_high": 102.0,
            "value_area_low": 98.0,
            "point_of_control": 100.0,
            "bid_imbalances": 0,
            "ask_imbalances": 0,
            "bid_stacked_imbalances": 0,
            "ask_stacked_imbalances": 0,
        }
        fields.update(overrides)
        return VolumetricBar(**fields)

    return _make


@pytest.fixture
def make_features(make_bar) -> Callable[..., FeatureVector]:
    """Factory: a FeatureVector with every feature at 0.0 unless overridden."""

    def _make(**overrides) -> FeatureVector:
        fields = {name: 0.0 for name in FeatureVector.__dataclass_fields__ if name.startswith("f_")}
        fields.update(overrides)
        return FeatureVector(bar=make_bar(), **fields)

    return _make


@pytest.fixture
def bullish_features(make_features) -> FeatureVector:
    """Every entry category confirms long under the default thresholds."""
    return make_features(
        f_ma_fast_slow_distance=0.4,
        f_ma_slope=0.25,
        f_delta_pressure=0.5,
        f_volume_dominance=0.35,
        f_market_state=0.7,
        f_close_open_relationship=0.6,
        f_volume_surge=0.6,
        f_market_state_secondary=0.7,
    )


@pytest.fixture
def features_config() -> FeaturesEngineeringConfig:
    return FeaturesEngineeringConfig(tick_size=0.25, bars_required_to_trade=3, lookback_period=2)


@pytest.fixture
def signal_config() -> SignalConfig:
    return SignalConfig()


@pytest.fixture
def volumetric_config() -> VolumetricConfig:
    return VolumetricConfig(ticks_per_level=1)
