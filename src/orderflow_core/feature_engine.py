"""
Feature Engine: closed BaseBar + buffered history -> FeatureVector.

Owns two independent BufferSets (primary and secondary timeframe). Each
BufferSet resets atomically when the bar's day id changes, and emission is
gated until ``bars_required_to_trade`` bars of the current session are
buffered.

Deterministic, O(window) per call. After construction nothing here raises:
degenerate inputs fall back to neutral feature values.

Single-writer: callers ingesting the same instrument from several threads
must serialize access themselves (e.g. one queue per engine).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from orderflow_core.contracts import (
    BaseBar,
    FeatureVector,
    MovingAverageFeatures,
    PriceFeatures,
    Timeframe,
    VolumetricBar,
    VolumetricFeatures,
)
from orderflow_core.moving_average import extract_moving_average_features
from orderflow_core.numeric import finite_or_zero
from orderflow_core.order_flow import extract_volumetric_features
from orderflow_core.price_action import extract_price_features
from orderflow_core.sliding_window import SlidingWindow

if TYPE_CHECKING:
    from config.engine_config import FeaturesEngineeringConfig

logger = logging.getLogger("groundwork.features")


class BufferSet:
    """Rolling history for one timeframe. All windows share one capacity."""

    def __init__(self, capacity: int) -> None:
        self.bars: SlidingWindow[BaseBar] = SlidingWindow(capacity)
        self.volumetric_bars: SlidingWindow[VolumetricBar] = SlidingWindow(capacity)
        self.ma_fast: SlidingWindow[float] = SlidingWindow(capacity)
        self.ma_slow: SlidingWindow[float] = SlidingWindow(capacity)
        self.open: SlidingWindow[float] = SlidingWindow(capacity)
        self.high: SlidingWindow[float] = SlidingWindow(capacity)
        self.low: SlidingWindow[float] = SlidingWindow(capacity)
        self.close: SlidingWindow[float] = SlidingWindow(capacity)
        self.atr: SlidingWindow[float] = SlidingWindow(capacity)
        self.last_day: int | None = None

    @property
    def count(self) -> int:
        return len(self.bars)

    def add(self, bar: BaseBar) -> bool:
        """Append ``bar``; clears every window first on a day change.

        Returns True when a session reset happened.
        """
        reset = self.last_day is not None and bar.day != self.last_day
        if reset:
            self.clear()
        self.last_day = bar.day

        self.bars.add(bar)
        self.ma_fast.add(bar.moving_average)
        self.ma_slow.add(bar.slow_moving_average)
        self.open.add(bar.open)
        self.high.add(bar.high)
        self.low.add(bar.low)
        self.close.add(bar.close)
        self.atr.add(bar.atr)
        return reset

    def add_volumetric(self, volumetric_bar: VolumetricBar) -> None:
        self.volumetric_bars.add(volumetric_bar)

    def clear(self) -> None:
        for window in (
            self.bars,
            self.volumetric_bars,
            self.ma_fast,
            self.ma_slow,
            self.open,
            self.high,
            self.low,
            self.close,
            self.atr,
        ):
            window.clear()


def create_feature_vector(
    bar: BaseBar,
    ma: MovingAverageFeatures,
    price: PriceFeatures,
    volumetric: VolumetricFeatures,
    market_state_secondary: float = 0.0,
) -> FeatureVector:
    """Assemble the emitted record; every scalar is coerced to a finite value."""
    return FeatureVector(
        bar=bar,
        f_ma_fast_slow_distance=finite_or_zero(ma.fast_slow_distance),
        f_ma_slope=finite_or_zero(ma.slope),
        f_close_open_relationship=finite_or_zero(price.close_open_relationship),
        f_market_state=finite_or_zero(price.market_state),
        f_market_state_secondary=finite_or_zero(market_state_secondary),
        f_delta_pressure=finite_or_zero(volumetric.delta_pressure),
        f_cumulative_delta_momentum=finite_or_zero(volumetric.cumulative_delta_momentum),
        f_poc_displacement=finite_or_zero(volumetric.poc_displacement),
        f_volume_dominance=finite_or_zero(volumetric.volume_dominance),
        f_delta_percentage=finite_or_zero(volumetric.delta_percentage),
        f_value_area_width=finite_or_zero(volumetric.value_area_width),
        f_volume_surge=finite_or_zero(volumetric.volume_surge),
    )


class FeatureEngine:
    """Per-instrument feature orchestrator over a primary and a secondary timeframe.

    Usage per closed bar::

        engine.add_volumetric(Timeframe.PRIMARY, volumetric_bar)
        features = engine.emit(Timeframe.PRIMARY, base_bar)   # None until warmed up
    """

    def __init__(self, config: FeaturesEngineeringConfig | None) -> None:
        if config is None:
            raise ValueError("FeatureEngine requires a FeaturesEngineeringConfig")
        if config.lookback_period < 1:
            raise ValueError(f"lookback_period must be >= 1, got {config.lookback_period}")
        self._config = config
        capacity = config.bars_required_to_trade + 1
        self._buffers = {
            Timeframe.PRIMARY: BufferSet(capacity),
            Timeframe.SECONDARY: BufferSet(capacity),
        }

    @property
    def config(self) -> FeaturesEngineeringConfig:
        return self._config

    def buffers(self, timeframe: Timeframe) -> BufferSet:
        return self._buffers[Timeframe(timeframe)]

    def is_ready(self, timeframe: Timeframe) -> bool:
        return self.buffers(timeframe).count >= self._config.bars_required_to_trade

    def add_volumetric(self, timeframe: Timeframe, volumetric_bar: VolumetricBar) -> None:
        """Append a completed VolumetricBar; independent of bar-count gating."""
        self.buffers(timeframe).add_volumetric(volumetric_bar)

    def add_bar(self, timeframe: Timeframe, bar: BaseBar) -> None:
        """Buffer ``bar``, resetting that timeframe's history first on a new day."""
        if self.buffers(timeframe).add(bar):
            logger.debug("Session reset on %s timeframe (day=%s)", Timeframe(timeframe).value, bar.day)

    def emit(
        self,
        timeframe: Timeframe,
        bar: BaseBar,
        volumetric_bar: VolumetricBar | None = None,
    ) -> FeatureVector | None:
        """Buffer ``bar`` and return its FeatureVector once enough history exists.

        ``volumetric_bar``, when given, is appended after the session check so
        the first bar of a new day keeps its order-flow record.

        For the primary timeframe the secondary market state is taken from the
        secondary buffer's newest state, or 0.0 while that buffer is warming up.
        """
        timeframe = Timeframe(timeframe)
        self.add_bar(timeframe, bar)
        if volumetric_bar is not None:
            self.add_volumetric(timeframe, volumetric_bar)

        if not self.is_ready(timeframe):
            return None

        market_state_secondary = 0.0
        if timeframe is Timeframe.PRIMARY:
            market_state_secondary = self._secondary_market_state()

        return self._create(bar, self.buffers(timeframe), market_state_secondary)

    def reset(self) -> None:
        for buffer_set in self._buffers.values():
            buffer_set.clear()
            buffer_set.last_day = None

    def _secondary_market_state(self) -> float:
        if not self.is_ready(Timeframe.SECONDARY):
            return 0.0
        secondary = self.buffers(Timeframe.SECONDARY)
        newest = secondary.bars.newest()
        price = extract_price_features(
            self._config, newest,
            secondary.open, secondary.high, secondary.low, secondary.close, secondary.atr,
        )
        return price.market_state

    def _create(self, bar: BaseBar, buffers: BufferSet, market_state_secondary: float) -> FeatureVector:
        ma = extract_moving_average_features(self._config, bar, buffers.ma_fast)
        price = extract_price_features(
            self._config, bar,
            buffers.open, buffers.high, buffers.low, buffers.close, buffers.atr,
        )
        volumetric = extract_volumetric_features(self._config, bar, buffers.volumetric_bars)
        return create_feature_vector(bar, ma, price, volumetric, market_state_secondary)
