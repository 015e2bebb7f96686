"""
Volumetric Bar Builder: one bar's per-price bid/ask volume -> VolumetricBar.

Stages:
    1. Level sampling  : walk down from ``high`` in ``tick_size`` steps and keep
                         one PriceLevel every ``ticks_per_level`` ticks.
    2. Value area      : expand outward from the sampled POC until the
                         configured share of volume is covered.
    3. Imbalances      : diagonal bid/ask comparison between adjacent levels.
    4. Stacked runs    : contiguous imbalanced levels of one side whose run
                         length meets the stacked threshold.

The point of control reported on the bar comes from the order-flow source
(full resolution), not from the sampled levels.

Pure function of its inputs; never raises on degenerate bars.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

from orderflow_core.contracts import OrderFlowSource, PriceLevel, VolumetricBar
from orderflow_core.numeric import is_valid

if TYPE_CHECKING:
    from config.engine_config import VolumetricConfig

logger = logging.getLogger("groundwork.volumetric")

_PRICE_DECIMALS = 10
# Tops with a partial bucket are only trimmed when enough levels remain.
_MIN_LEVELS_FOR_TRIM = 4


@dataclass(frozen=True)
class VolumetricBarParams:
    """Inputs for building one VolumetricBar."""

    ticks_per_level: int
    tick_size: float
    source: OrderFlowSource
    high: float
    low: float
    value_area_percent: float = 0.70
    imbalance_ratio: float = 1.5
    imbalance_min_delta: int = 10
    stacked_imbalance_count: int = 3

    @property
    def level_step(self) -> float:
        return self.tick_size * self.ticks_per_level


@dataclass(frozen=True)
class ImbalanceResult:
    """Output of diagonal imbalance detection; ``levels`` ascending by price."""

    bid_imbalances: int
    ask_imbalances: int
    bid_stacked_imbalances: int
    ask_stacked_imbalances: int
    levels: tuple[PriceLevel, ...]


def _round_price(price: float) -> float:
    return round(price, _PRICE_DECIMALS)


def _round_half_away_from_zero(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


# ---------------------------------------------------------------------------
# 1. Level sampling
# ---------------------------------------------------------------------------


def sample_levels(params: VolumetricBarParams) -> list[PriceLevel]:
    """Sample one PriceLevel every ``ticks_per_level`` ticks, from high down to low.

    Returns levels in sampling order (descending price). When the tick count
    is not a multiple of ``ticks_per_level`` and more than four levels were
    collected, the topmost (partial) bucket is dropped.
    """
    high, low, tick_size = params.high, params.low, params.tick_size
    if (
        not is_valid(high)
        or not is_valid(low)
        or not is_valid(tick_size)
        or tick_size <= 0
        or params.ticks_per_level <= 0
        or high < low
    ):
        return []

    total_ticks = int(math.floor((high - low) / tick_size + 1e-9)) + 1

    levels: list[PriceLevel] = []
    for tick in range(0, total_ticks, params.ticks_per_level):
        price = _round_price(high - tick * tick_size)
        levels.append(
            PriceLevel(
                price=price,
                bid_volume=int(params.source.bid_volume_at(price)),
                ask_volume=int(params.source.ask_volume_at(price)),
            )
        )

    if total_ticks % params.ticks_per_level > 0 and len(levels) > _MIN_LEVELS_FOR_TRIM:
        levels.pop(0)

    return levels


# ---------------------------------------------------------------------------
# 2. Value area
# ---------------------------------------------------------------------------


def value_area(levels: Sequence[PriceLevel], value_area_percent: float) -> tuple[float, float, float]:
    """Compute (value_area_high, value_area_low, point_of_control) from sampled levels.

    The window grows from the POC one level at a time, taking whichever
    neighbour carries more volume. Ties, and an exhausted upper side, extend
    downward first. Stops once the accumulated volume reaches
    ``round(total * value_area_percent)`` or both sides are exhausted.

    Returns (0.0, 0.0, 0.0) for an empty profile or non-positive percent.
    """
    if not levels or value_area_percent <= 0:
        return 0.0, 0.0, 0.0

    ordered = sorted(levels, key=lambda lv: lv.price)
    last = len(ordered) - 1

    # First maximum in ascending order: equal-volume peaks resolve to the lowest price.
    poc_index = max(range(len(ordered)), key=lambda i: ordered[i].total_volume)

    total_volume = sum(lv.total_volume for lv in ordered)
    target_volume = _round_half_away_from_zero(total_volume * value_area_percent)

    current_volume = ordered[poc_index].total_volume
    lower = upper = poc_index

    while current_volume < target_volume and (lower > 0 or upper < last):
        lower_volume = ordered[lower - 1].total_volume if lower > 0 else None
        upper_volume = ordered[upper + 1].total_volume if upper < last else None

        if lower_volume is not None and (upper_volume is None or lower_volume >= upper_volume):
            current_volume += lower_volume
            lower -= 1
        else:
            current_volume += upper_volume
            upper += 1

    return ordered[upper].price, ordered[lower].price, ordered[poc_index].price


# ---------------------------------------------------------------------------
# 3. Diagonal imbalances + 4. stacked runs
# ---------------------------------------------------------------------------


def _passes(volume: int, diagonal: int, ratio: float, min_delta: int) -> bool:
    """Delta test and ratio test of one side against its diagonal volume."""
    if volume - diagonal < min_delta:
        return False
    if diagonal == 0:
        return volume >= math.ceil(ratio)
    return volume / diagonal >= ratio


def _commit_run(run: list[int], stacked: list[bool], threshold: int) -> int:
    if len(run) < threshold:
        return 0
    for i in run:
        stacked[i] = True
    return len(run)


def mark_stacks(
    flags: Sequence[bool],
    prices: Sequence[float],
    level_step: float,
    threshold: int,
) -> tuple[list[bool], int]:
    """Find maximal runs of flagged, price-adjacent levels.

    A flagged level continues the current run when its price is within one
    ``level_step`` (plus a tiny tolerance) of the previous flagged level.
    Runs of length >= ``threshold`` have every member marked stacked.

    Returns (stacked_flags, stacked_count) where the count is the sum of the
    lengths of qualifying runs.
    """
    stacked = [False] * len(flags)
    if not flags:
        return stacked, 0

    eps = level_step * 1e-6
    stacked_count = 0
    run: list[int] = []

    for i, flagged in enumerate(flags):
        if not flagged:
            stacked_count += _commit_run(run, stacked, threshold)
            run = []
            continue
        if run and abs(prices[i] - prices[run[-1]]) > level_step + eps:
            stacked_count += _commit_run(run, stacked, threshold)
            run = []
        run.append(i)

    stacked_count += _commit_run(run, stacked, threshold)
    return stacked, stacked_count


def detect_imbalances(
    levels: Sequence[PriceLevel],
    level_step: float,
    ratio: float,
    min_delta: int,
    stacked_threshold: int,
) -> ImbalanceResult:
    """Flag diagonal imbalances and stacked runs on both sides.

    Ask imbalance at a level: its ask volume against the bid volume of the
    next lower-priced level. Bid imbalance: its bid volume against the ask
    volume of the next higher-priced level. When both fire on one level only
    the larger raw delta survives; an exact tie keeps the bid imbalance.
    """
    if not levels:
        return ImbalanceResult(0, 0, 0, 0, ())

    ordered = sorted(levels, key=lambda lv: lv.price)
    n = len(ordered)
    prices = [lv.price for lv in ordered]
    ask_flags = [False] * n
    bid_flags = [False] * n

    for i, level in enumerate(ordered):
        has_ask = i > 0 and _passes(level.ask_volume, ordered[i - 1].bid_volume, ratio, min_delta)
        has_bid = i < n - 1 and _passes(level.bid_volume, ordered[i + 1].ask_volume, ratio, min_delta)

        if has_ask and has_bid:
            ask_delta = level.ask_volume - ordered[i - 1].bid_volume
            bid_delta = level.bid_volume - ordered[i + 1].ask_volume
            if ask_delta > bid_delta:
                has_bid = False
            else:
                has_ask = False

        ask_flags[i] = has_ask
        bid_flags[i] = has_bid

    bid_stacked, bid_stack_count = mark_stacks(bid_flags, prices, level_step, stacked_threshold)
    ask_stacked, ask_stack_count = mark_stacks(ask_flags, prices, level_step, stacked_threshold)

    annotated = tuple(
        PriceLevel(
            price=lv.price,
            bid_volume=lv.bid_volume,
            ask_volume=lv.ask_volume,
            has_ask_imbalance=ask_flags[i],
            has_bid_imbalance=bid_flags[i],
            is_ask_stacked=ask_stacked[i],
            is_bid_stacked=bid_stacked[i],
        )
        for i, lv in enumerate(ordered)
    )

    return ImbalanceResult(
        bid_imbalances=sum(bid_flags),
        ask_imbalances=sum(ask_flags),
        bid_stacked_imbalances=bid_stack_count,
        ask_stacked_imbalances=ask_stack_count,
        levels=annotated,
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_volumetric_bar(params: VolumetricBarParams) -> VolumetricBar:
    """Build the VolumetricBar for one closed bar.

    Totals and delta statistics are taken from the source as reported. With
    zero sampled levels the value area, POC and level list are all empty.
    """
    totals = params.source.totals()
    levels = sample_levels(params)

    if not levels:
        logger.debug(
            "No price levels sampled (high=%s low=%s tick_size=%s ticks_per_level=%s)",
            params.high, params.low, params.tick_size, params.ticks_per_level,
        )
        return VolumetricBar(
            total_volume=totals.total_volume,
            buy_volume=totals.buy_volume,
            sell_volume=totals.sell_volume,
            bar_delta=totals.bar_delta,
            max_delta=totals.max_delta,
            min_delta=totals.min_delta,
            cumulative_delta=totals.cumulative_delta,
            delta_percentage=totals.delta_percentage,
            value_area_high=0.0,
            value_area_low=0.0,
            point_of_control=0.0,
            bid_imbalances=0,
            ask_imbalances=0,
            bid_stacked_imbalances=0,
            ask_stacked_imbalances=0,
            levels=(),
        )

    vah, val = 0.0, 0.0
    if 0 < params.value_area_percent <= 1:
        vah, val, _ = value_area(levels, params.value_area_percent)

    imbalances = detect_imbalances(
        levels,
        level_step=params.level_step,
        ratio=params.imbalance_ratio,
        min_delta=params.imbalance_min_delta,
        stacked_threshold=params.stacked_imbalance_count,
    )

    return VolumetricBar(
        total_volume=totals.total_volume,
        buy_volume=totals.buy_volume,
        sell_volume=totals.sell_volume,
        bar_delta=totals.bar_delta,
        max_delta=totals.max_delta,
        min_delta=totals.min_delta,
        cumulative_delta=totals.cumulative_delta,
        delta_percentage=totals.delta_percentage,
        value_area_high=vah,
        value_area_low=val,
        point_of_control=params.source.point_of_control(),
        bid_imbalances=imbalances.bid_imbalances,
        ask_imbalances=imbalances.ask_imbalances,
        bid_stacked_imbalances=imbalances.bid_stacked_imbalances,
        ask_stacked_imbalances=imbalances.ask_stacked_imbalances,
        levels=imbalances.levels,
    )


class VolumetricBarBuilder:
    """Config-bound builder: holds tick geometry and thresholds across bars."""

    def __init__(self, config: VolumetricConfig, tick_size: float) -> None:
        self._config = config
        self._tick_size = tick_size

    def build(self, source: OrderFlowSource, high: float, low: float) -> VolumetricBar:
        return build_volumetric_bar(
            VolumetricBarParams(
                ticks_per_level=self._config.ticks_per_level,
                tick_size=self._tick_size,
                source=source,
                high=high,
                low=low,
                value_area_percent=self._config.value_area_percent,
                imbalance_ratio=self._config.imbalance_ratio,
                imbalance_min_delta=self._config.imbalance_min_delta,
                stacked_imbalance_count=self._config.stacked_imbalance_count,
            )
        )
