"""Tests for the feature engine: emission gating, session resets, secondary timeframe, finite output."""

import math

import pytest

from config.engine_config import FeaturesEngineeringConfig
from orderflow_core.contracts import (
    MovingAverageFeatures,
    PriceFeatures,
    Timeframe,
    VolumetricFeatures,
)
from orderflow_core.feature_engine import BufferSet, FeatureEngine, create_feature_vector

DAY_1 = 20240102
DAY_2 = 20240103


def _rising(make_bar, n: int, day: int = DAY_1, start: float = 100.0) -> list:
    """n bars whose bodies step up by 1.0."""
    return [
        make_bar(time=93000 + i * 100, day=day, open=start + i, close=start + i + 0.5,
                 high=start + i + 1.0, low=start + i - 0.5)
        for i in range(n)
    ]


class TestConstruction:
    def test_requires_config(self) -> None:
        with pytest.raises(ValueError):
            FeatureEngine(None)

    def test_rejects_zero_lookback(self) -> None:
        with pytest.raises(ValueError):
            FeatureEngine(FeaturesEngineeringConfig(lookback_period=0))

    def test_buffer_capacity_is_required_plus_one(self, features_config) -> None:
        engine = FeatureEngine(features_config)
        for tf in Timeframe:
            buffers = engine.buffers(tf)
            assert buffers.bars.capacity == 4
            assert buffers.volumetric_bars.capacity == 4
            assert buffers.atr.capacity == 4


class TestEmissionGating:
    def test_no_value_until_required_bars(self, features_config, make_bar) -> None:
        engine = FeatureEngine(features_config)
        bars = _rising(make_bar, 5)
        out = [engine.emit(Timeframe.PRIMARY, b) for b in bars]
        assert out[0] is None
        assert out[1] is None
        assert all(fv is not None for fv in out[2:])
        assert out[2].bar is bars[2]

    def test_timeframes_gate_independently(self, features_config, make_bar) -> None:
        engine = FeatureEngine(features_config)
        for b in _rising(make_bar, 3):
            engine.emit(Timeframe.PRIMARY, b)
        assert engine.is_ready(Timeframe.PRIMARY)
        assert not engine.is_ready(Timeframe.SECONDARY)

    def test_accepts_timeframe_string(self, features_config, make_bar) -> None:
        engine = FeatureEngine(features_config)
        engine.add_bar("secondary", make_bar())
        assert engine.buffers(Timeframe.SECONDARY).count == 1


class TestSessionReset:
    def test_day_change_restarts_warmup(self, features_config, make_bar) -> None:
        engine = FeatureEngine(features_config)
        for b in _rising(make_bar, 3, day=DAY_1):
            engine.emit(Timeframe.PRIMARY, b)

        next_day = _rising(make_bar, 3, day=DAY_2)
        assert engine.emit(Timeframe.PRIMARY, next_day[0]) is None
        assert engine.buffers(Timeframe.PRIMARY).count == 1
        assert engine.emit(Timeframe.PRIMARY, next_day[1]) is None
        assert engine.emit(Timeframe.PRIMARY, next_day[2]) is not None

    def test_reset_clears_every_window(self, make_bar, make_volumetric) -> None:
        buffers = BufferSet(4)
        buffers.add(make_bar(day=DAY_1))
        buffers.add_volumetric(make_volumetric())
        assert buffers.add(make_bar(day=DAY_2)) is True
        assert buffers.count == 1
        assert len(buffers.volumetric_bars) == 0
        assert len(buffers.close) == 1
        assert buffers.last_day == DAY_2

    def test_same_day_is_not_a_reset(self, make_bar) -> None:
        buffers = BufferSet(4)
        assert buffers.add(make_bar()) is False
        assert buffers.add(make_bar()) is False
        assert buffers.count == 2

    def test_new_session_keeps_its_first_volumetric_bar(self, features_config, make_bar, make_volumetric) -> None:
        engine = FeatureEngine(features_config)
        for b in _rising(make_bar, 3, day=DAY_1):
            engine.emit(Timeframe.PRIMARY, b, make_volumetric())
        engine.emit(Timeframe.PRIMARY, make_bar(day=DAY_2), make_volumetric(total_volume=7))
        window = engine.buffers(Timeframe.PRIMARY).volumetric_bars
        assert len(window) == 1
        assert window.newest().total_volume == 7

    def test_engine_reset(self, features_config, make_bar) -> None:
        engine = FeatureEngine(features_config)
        for b in _rising(make_bar, 3):
            engine.emit(Timeframe.PRIMARY, b)
        engine.reset()
        assert engine.buffers(Timeframe.PRIMARY).count == 0
        assert engine.buffers(Timeframe.PRIMARY).last_day is None


class TestVolumetricBuffering:
    def test_add_volumetric_ignores_gating(self, features_config, make_volumetric) -> None:
        engine = FeatureEngine(features_config)
        engine.add_volumetric(Timeframe.PRIMARY, make_volumetric())
        assert len(engine.buffers(Timeframe.PRIMARY).volumetric_bars) == 1
        assert engine.buffers(Timeframe.PRIMARY).count == 0

    def test_order_flow_features_use_newest_volumetric_bar(self, features_config, make_bar, make_volumetric) -> None:
        engine = FeatureEngine(features_config)
        bars = _rising(make_bar, 3)
        engine.emit(Timeframe.PRIMARY, bars[0], make_volumetric(bar_delta=0))
        engine.emit(Timeframe.PRIMARY, bars[1], make_volumetric(bar_delta=0))
        fv = engine.emit(Timeframe.PRIMARY, bars[2], make_volumetric(bar_delta=-500))
        assert fv.f_delta_pressure == pytest.approx(-0.5)


class TestSecondaryTimeframe:
    def test_zero_while_secondary_warming_up(self, features_config, make_bar) -> None:
        engine = FeatureEngine(features_config)
        engine.emit(Timeframe.SECONDARY, make_bar())
        fv = None
        for b in _rising(make_bar, 3):
            fv = engine.emit(Timeframe.PRIMARY, b)
        assert fv.f_market_state_secondary == 0.0

    def test_primary_carries_secondary_trend(self, features_config, make_bar) -> None:
        engine = FeatureEngine(features_config)
        for b in _rising(make_bar, 3):
            engine.emit(Timeframe.SECONDARY, b)
        fv = None
        for b in _rising(make_bar, 3, start=200.0)[::-1]:
            fv = engine.emit(Timeframe.PRIMARY, b)
        assert fv.f_market_state_secondary == pytest.approx(1.0)
        assert fv.f_market_state == pytest.approx(-1.0)

    def test_secondary_emission_has_no_cross_feature(self, features_config, make_bar) -> None:
        engine = FeatureEngine(features_config)
        fv = None
        for b in _rising(make_bar, 3):
            fv = engine.emit(Timeframe.SECONDARY, b)
        assert fv.f_market_state == pytest.approx(1.0)
        assert fv.f_market_state_secondary == 0.0


class TestFiniteOutput:
    def test_degenerate_bars_give_finite_features(self, features_config, make_bar) -> None:
        engine = FeatureEngine(features_config)
        fv = None
        for _ in range(3):
            fv = engine.emit(
                Timeframe.PRIMARY,
                make_bar(atr=float("nan"), moving_average=float("inf"), high=100.0, low=100.0),
            )
        assert fv is not None
        for name in fv.feature_names():
            assert math.isfinite(getattr(fv, name)), name

    def test_create_feature_vector_coerces_non_finite(self, make_bar) -> None:
        fv = create_feature_vector(
            make_bar(),
            MovingAverageFeatures(float("nan"), float("inf")),
            PriceFeatures.empty(),
            VolumetricFeatures(float("-inf"), 0.0, 0.0, 0.0, 0.0, 0.0, float("nan")),
            market_state_secondary=float("nan"),
        )
        assert fv.f_ma_fast_slow_distance == 0.0
        assert fv.f_ma_slope == 0.0
        assert fv.f_delta_pressure == 0.0
        assert fv.f_volume_surge == 0.0
        assert fv.f_market_state_secondary == 0.0

    def test_as_record_flattens_bar_and_features(self, features_config, make_bar) -> None:
        engine = FeatureEngine(features_config)
        fv = None
        for b in _rising(make_bar, 3):
            fv = engine.emit(Timeframe.PRIMARY, b)
        record = fv.as_record()
        assert record["day"] == DAY_1
        assert len(fv.feature_names()) == 12
        assert all(name in record for name in fv.feature_names())
