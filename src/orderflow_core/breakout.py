"""
Breakout levels: rolling buffer of closed bars with running reference levels.

    Bullish bar (close > open): bullish low  = bar.low
    Bearish bar (close < open): bearish high = bar.high
    Neutral bars leave both levels unchanged.

A spot price breaks out above the latest bearish high or below the latest
bullish low (epsilon 1e-6).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from orderflow_core.contracts import BaseBar
from orderflow_core.sliding_window import SlidingWindow

logger = logging.getLogger("groundwork.breakout")

LEVEL_EPS = 1e-6


@dataclass(frozen=True)
class LevelsSnapshot:
    has_bullish_low: bool
    has_bearish_high: bool
    last_bullish_low: float
    last_bearish_high: float


class BreakoutLevels:
    """Running bullish-low / bearish-high levels over the last ``capacity`` bars."""

    def __init__(self, capacity: int = 20, on_change: Callable[[LevelsSnapshot], None] | None = None) -> None:
        self._bars: SlidingWindow[BaseBar] = SlidingWindow(capacity)
        self._on_change = on_change
        self._has_bullish_low = False
        self._has_bearish_high = False
        self._last_bullish_low = 0.0
        self._last_bearish_high = 0.0

    @property
    def capacity(self) -> int:
        return self._bars.capacity

    @property
    def count(self) -> int:
        return len(self._bars)

    def set_capacity(self, capacity: int) -> None:
        """Resize the buffer, keeping the newest bars that fit. Levels are kept as-is."""
        if capacity == self._bars.capacity:
            return
        resized: SlidingWindow[BaseBar] = SlidingWindow(capacity)
        for bar in self._bars.to_list()[-capacity:]:
            resized.add(bar)
        self._bars = resized

    def snapshot(self) -> LevelsSnapshot:
        return LevelsSnapshot(
            has_bullish_low=self._has_bullish_low,
            has_bearish_high=self._has_bearish_high,
            last_bullish_low=self._last_bullish_low,
            last_bearish_high=self._last_bearish_high,
        )

    def add_bar(self, bar: BaseBar) -> None:
        """Append a closed bar and update the level it affects."""
        self._bars.add(bar)
        changed = False
        if bar.close > bar.open:
            if not self._has_bullish_low or abs(bar.low - self._last_bullish_low) > LEVEL_EPS:
                self._last_bullish_low = bar.low
                self._has_bullish_low = True
                changed = True
        elif bar.close < bar.open:
            if not self._has_bearish_high or abs(bar.high - self._last_bearish_high) > LEVEL_EPS:
                self._last_bearish_high = bar.high
                self._has_bearish_high = True
                changed = True
        if changed:
            self._notify()

    def recompute_from_history(self) -> None:
        """Rebuild both levels from the buffered bars, oldest to newest."""
        self._clear_levels()
        changed = False
        for bar in self._bars:
            if bar.close > bar.open:
                self._last_bullish_low = bar.low
                self._has_bullish_low = True
                changed = True
            elif bar.close < bar.open:
                self._last_bearish_high = bar.high
                self._has_bearish_high = True
                changed = True
        if changed:
            self._notify()

    def reset(self) -> None:
        self._bars.clear()
        self._clear_levels()
        self._notify()

    def check_breakout(self, spot: float) -> tuple[bool, bool]:
        """Return (broke above bearish high, broke below bullish low)."""
        return self.is_break_above_bearish_high(spot), self.is_break_below_bullish_low(spot)

    def is_break_above_bearish_high(self, spot: float) -> bool:
        return self._has_bearish_high and spot > self._last_bearish_high + LEVEL_EPS

    def is_break_below_bullish_low(self, spot: float) -> bool:
        return self._has_bullish_low and spot < self._last_bullish_low - LEVEL_EPS

    def _clear_levels(self) -> None:
        self._has_bullish_low = False
        self._has_bearish_high = False
        self._last_bullish_low = 0.0
        self._last_bearish_high = 0.0

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self.snapshot())
        except Exception as exc:
            logger.warning("Breakout level listener failed: %s", exc)
