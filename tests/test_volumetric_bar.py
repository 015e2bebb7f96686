"""Tests for the volumetric bar builder: level sampling, value area, diagonal imbalances, stacked runs."""

import pytest

from config.engine_config import VolumetricConfig
from orderflow_core.contracts import OrderFlowTotals, PriceLevel
from orderflow_core.volumetric_bar import (
    VolumetricBarBuilder,
    VolumetricBarParams,
    build_volumetric_bar,
    detect_imbalances,
    mark_stacks,
    sample_levels,
    value_area,
)

# Symmetric bid/ask, peak at 102.
TRIANGLE = {
    100.0: (5, 5),
    101.0: (10, 10),
    102.0: (20, 20),
    103.0: (10, 10),
    104.0: (5, 5),
    105.0: (1, 1),
}


def _levels(rows: list[tuple[float, int, int]]) -> list[PriceLevel]:
    return [PriceLevel(price=p, bid_volume=b, ask_volume=a) for p, b, a in rows]


def _params(source, high: float, low: float, **kw) -> VolumetricBarParams:
    fields = {"ticks_per_level": 1, "tick_size": 1.0, "source": source, "high": high, "low": low}
    fields.update(kw)
    return VolumetricBarParams(**fields)


# ---------------------------------------------------------------------------
# Level sampling
# ---------------------------------------------------------------------------


class TestSampleLevels:
    def test_one_level_per_tick_descending(self, fake_order_flow) -> None:
        levels = sample_levels(_params(fake_order_flow(TRIANGLE), 105.0, 100.0))
        assert [lv.price for lv in levels] == [105.0, 104.0, 103.0, 102.0, 101.0, 100.0]
        assert levels[3].bid_volume == 20
        assert levels[3].ask_volume == 20

    def test_partial_top_bucket_dropped(self, fake_order_flow) -> None:
        # 11 ticks, 2 per level -> 6 sampled, remainder 1 -> top level dropped
        levels = sample_levels(_params(fake_order_flow({}), 10.0, 0.0, ticks_per_level=2))
        assert [lv.price for lv in levels] == [8.0, 6.0, 4.0, 2.0, 0.0]

    def test_partial_top_bucket_kept_with_few_levels(self, fake_order_flow) -> None:
        # 11 ticks, 3 per level -> only 4 sampled, nothing dropped
        levels = sample_levels(_params(fake_order_flow({}), 10.0, 0.0, ticks_per_level=3))
        assert [lv.price for lv in levels] == [10.0, 7.0, 4.0, 1.0]

    def test_fractional_tick_size_hits_exact_prices(self, fake_order_flow) -> None:
        source = fake_order_flow({4800.75: (3, 7)})
        levels = sample_levels(_params(source, 4801.25, 4800.0, tick_size=0.25))
        assert len(levels) == 6
        assert levels[-1].price == 4800.0
        at = {lv.price: lv for lv in levels}
        assert at[4800.75].ask_volume == 7

    def test_high_below_low_yields_nothing(self, fake_order_flow) -> None:
        assert sample_levels(_params(fake_order_flow({}), 99.0, 100.0)) == []

    def test_non_positive_tick_size_yields_nothing(self, fake_order_flow) -> None:
        assert sample_levels(_params(fake_order_flow({}), 101.0, 100.0, tick_size=0.0)) == []


# ---------------------------------------------------------------------------
# Value area
# ---------------------------------------------------------------------------


class TestValueArea:
    def test_triangular_profile(self) -> None:
        levels = _levels([(p, b, a) for p, (b, a) in TRIANGLE.items()])
        vah, val, poc = value_area(levels, 0.70)
        assert poc == 102.0
        assert val <= 101.0
        assert vah >= 103.0
        # 40 at POC, tie 20/20 extends down, then 20 above beats 10 below -> 80 >= 71
        assert (val, vah) == (101.0, 103.0)

    def test_poc_inside_value_area(self) -> None:
        levels = _levels([(1.0, 3, 0), (2.0, 0, 9), (3.0, 4, 4), (4.0, 1, 0)])
        vah, val, poc = value_area(levels, 0.70)
        assert val <= poc <= vah

    def test_exhausted_upper_side_extends_down(self) -> None:
        levels = _levels([(1.0, 1, 0), (2.0, 1, 0), (3.0, 10, 0)])
        vah, val, poc = value_area(levels, 1.0)
        assert (vah, val, poc) == (3.0, 1.0, 3.0)

    def test_empty_profile(self) -> None:
        assert value_area([], 0.70) == (0.0, 0.0, 0.0)


# ---------------------------------------------------------------------------
# Imbalances + stacked runs
# ---------------------------------------------------------------------------


class TestDetectImbalances:
    def test_stacked_ask_run_at_threshold(self) -> None:
        levels = _levels([
            (1.0, 10, 0),
            (2.0, 10, 30),
            (3.0, 10, 30),
            (4.0, 10, 30),
            (5.0, 10, 0),
        ])
        result = detect_imbalances(levels, level_step=1.0, ratio=1.5, min_delta=10, stacked_threshold=3)
        assert result.ask_imbalances == 3
        assert result.ask_stacked_imbalances == 3
        assert result.bid_imbalances == 0
        assert [lv.is_ask_stacked for lv in result.levels] == [False, True, True, True, False]

    def test_run_below_threshold_not_stacked(self) -> None:
        levels = _levels([
            (1.0, 10, 0),
            (2.0, 10, 30),
            (3.0, 10, 30),
            (4.0, 10, 10),
            (5.0, 10, 0),
        ])
        result = detect_imbalances(levels, level_step=1.0, ratio=1.5, min_delta=10, stacked_threshold=3)
        assert result.ask_imbalances == 2
        assert result.ask_stacked_imbalances == 0
        assert not any(lv.is_ask_stacked for lv in result.levels)

    def test_stacked_never_exceeds_total(self) -> None:
        levels = _levels([(float(p), 10, 40) for p in range(1, 9)])
        result = detect_imbalances(levels, level_step=1.0, ratio=1.5, min_delta=10, stacked_threshold=3)
        assert result.ask_stacked_imbalances <= result.ask_imbalances
        assert result.bid_stacked_imbalances <= result.bid_imbalances

    def test_equal_deltas_keep_bid(self) -> None:
        levels = _levels([(1.0, 10, 0), (2.0, 30, 30), (3.0, 0, 10)])
        result = detect_imbalances(levels, level_step=1.0, ratio=1.5, min_delta=10, stacked_threshold=3)
        middle = result.levels[1]
        assert middle.has_bid_imbalance
        assert not middle.has_ask_imbalance
        assert (result.bid_imbalances, result.ask_imbalances) == (1, 0)

    def test_larger_delta_wins_conflict(self) -> None:
        levels = _levels([(1.0, 10, 0), (2.0, 25, 40), (3.0, 0, 10)])
        result = detect_imbalances(levels, level_step=1.0, ratio=1.5, min_delta=10, stacked_threshold=3)
        assert result.levels[1].has_ask_imbalance
        assert not result.levels[1].has_bid_imbalance

    def test_zero_diagonal_uses_ceil_ratio(self) -> None:
        thin = detect_imbalances(_levels([(1.0, 0, 0), (2.0, 0, 1)]), 1.0, 1.5, 0, 3)
        thick = detect_imbalances(_levels([(1.0, 0, 0), (2.0, 0, 2)]), 1.0, 1.5, 0, 3)
        assert thin.ask_imbalances == 0
        assert thick.ask_imbalances == 1

    def test_levels_come_back_ascending(self) -> None:
        levels = _levels([(3.0, 1, 1), (1.0, 1, 1), (2.0, 1, 1)])
        result = detect_imbalances(levels, 1.0, 1.5, 10, 3)
        assert [lv.price for lv in result.levels] == [1.0, 2.0, 3.0]


class TestMarkStacks:
    def test_contiguous_run(self) -> None:
        stacked, count = mark_stacks([True, True, True], [1.0, 2.0, 3.0], 1.0, 3)
        assert stacked == [True, True, True]
        assert count == 3

    def test_price_gap_breaks_run(self) -> None:
        stacked, count = mark_stacks([True, True, True], [1.0, 2.0, 4.0], 1.0, 3)
        assert stacked == [False, False, False]
        assert count == 0

    def test_count_is_sum_of_run_lengths(self) -> None:
        flags = [True, True, False, True, True, True]
        prices = [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]
        _, count = mark_stacks(flags, prices, 1.0, 2)
        assert count == 5


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


class TestBuildVolumetricBar:
    def test_poc_comes_from_source(self, fake_order_flow) -> None:
        source = fake_order_flow(TRIANGLE, poc=102.5)
        vb = build_volumetric_bar(_params(source, 105.0, 100.0))
        assert vb.point_of_control == 102.5
        assert vb.value_area_high == 103.0
        assert vb.value_area_low == 101.0

    def test_totals_pass_through(self, fake_order_flow) -> None:
        totals = OrderFlowTotals(
            total_volume=500, buy_volume=300, sell_volume=200, bar_delta=100,
            max_delta=120, min_delta=-10, cumulative_delta=900, delta_percentage=20.0,
        )
        vb = build_volumetric_bar(_params(fake_order_flow(TRIANGLE, totals=totals), 105.0, 100.0))
        assert vb.total_volume == 500
        assert vb.bar_delta == 100
        assert vb.cumulative_delta == 900
        assert vb.min_delta == -10

    def test_levels_uniformly_spaced_ascending(self, fake_order_flow) -> None:
        vb = build_volumetric_bar(_params(fake_order_flow({}), 4802.0, 4800.0, tick_size=0.25, ticks_per_level=2))
        prices = [lv.price for lv in vb.levels]
        assert prices == sorted(prices)
        gaps = {round(b - a, 10) for a, b in zip(prices, prices[1:])}
        assert gaps == {0.5}

    def test_zero_levels_are_empty_not_an_error(self, fake_order_flow) -> None:
        vb = build_volumetric_bar(_params(fake_order_flow(TRIANGLE, poc=102.0), 99.0, 100.0))
        assert vb.levels == ()
        assert (vb.value_area_high, vb.value_area_low, vb.point_of_control) == (0.0, 0.0, 0.0)
        assert vb.bid_imbalances == vb.ask_imbalances == 0

    def test_builder_uses_config(self, fake_order_flow) -> None:
        builder = VolumetricBarBuilder(VolumetricConfig(ticks_per_level=1, value_area_percent=1.0), tick_size=1.0)
        vb = builder.build(fake_order_flow(TRIANGLE, poc=102.0), high=105.0, low=100.0)
        assert len(vb.levels) == 6
        assert vb.value_area_low == 100.0
        assert vb.value_area_high == 105.0
