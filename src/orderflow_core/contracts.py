"""
Data contracts for orderflow-core: BaseBar, PriceLevel, VolumetricBar,
FeatureVector, FeatureSignal.

orderflow-core consumes BaseBar + order-flow data and produces
VolumetricBar, FeatureVector and FeatureSignal records.
No I/O; these are plain frozen dataclasses.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Protocol


class Timeframe(str, Enum):
    """Which of the two buffered timeframes a bar belongs to."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BaseBar:
    """One closed price bar plus host-computed indicator values.

    ``time`` and ``day`` are integer encodings (HHMMSS, YYYYMMDD). Only
    inequality of ``day`` is used, to detect a session change.
    """

    time: int
    day: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    moving_average: float = 0.0       # fast EMA
    slow_moving_average: float = 0.0  # slow EMA
    atr: float = 0.0
    donchian_upper: float = 0.0
    donchian_lower: float = 0.0
    value_area_high: float = 0.0
    value_area_low: float = 0.0

    def bar_range(self) -> float:
        """Full extent of the bar: high - low."""
        return self.high - self.low


@dataclass(frozen=True)
class OrderFlowTotals:
    """Bar-level totals reported by the order-flow source."""

    total_volume: int = 0
    buy_volume: int = 0
    sell_volume: int = 0
    bar_delta: int = 0
    max_delta: int = 0
    min_delta: int = 0
    cumulative_delta: int = 0
    delta_percentage: float = 0.0


class OrderFlowSource(Protocol):
    """Protocol for the per-bar order-flow collaborator.

    Implemented by the host platform adapter (or ``data.replay.InMemoryOrderFlow``).
    """

    def bid_volume_at(self, price: float) -> int:
        """Volume traded at the bid at exactly ``price`` within the bar."""
        ...

    def ask_volume_at(self, price: float) -> int:
        """Volume traded at the ask at exactly ``price`` within the bar."""
        ...

    def point_of_control(self) -> float:
        """Full-resolution price with the greatest combined volume."""
        ...

    def totals(self) -> OrderFlowTotals:
        """Bar totals: volume, buy/sell split, delta statistics."""
        ...


# ---------------------------------------------------------------------------
# Volumetric bar
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PriceLevel:
    """One sampled price level within a bar, with its imbalance annotations."""

    price: float
    bid_volume: int
    ask_volume: int
    has_ask_imbalance: bool = False
    has_bid_imbalance: bool = False
    is_ask_stacked: bool = False
    is_bid_stacked: bool = False

    @property
    def total_volume(self) -> int:
        return self.bid_volume + self.ask_volume


@dataclass(frozen=True)
class VolumetricBar:
    """Aggregated order-flow statistics for one closed bar.

    ``levels`` are ordered ascending by price.
    """

    total_volume: int
    buy_volume: int
    sell_volume: int
    bar_delta: int
    max_delta: int
    min_delta: int
    cumulative_delta: int
    delta_percentage: float
    value_area_high: float
    value_area_low: float
    point_of_control: float
    bid_imbalances: int
    ask_imbalances: int
    bid_stacked_imbalances: int
    ask_stacked_imbalances: int
    levels: tuple[PriceLevel, ...] = ()


# ---------------------------------------------------------------------------
# Feature groups (output of the extractors)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MovingAverageFeatures:
    fast_slow_distance: float  # (fast - slow) / ATR, scaled and clamped to [-1, 1]
    slope: float               # per-bar fast MA change / ATR, scaled and clamped to [-1, 1]

    @classmethod
    def empty(cls) -> MovingAverageFeatures:
        return cls(0.0, 0.0)


@dataclass(frozen=True)
class PriceFeatures:
    close_open_relationship: float
    market_state: float

    @classmethod
    def empty(cls) -> PriceFeatures:
        return cls(0.0, 0.0)


@dataclass(frozen=True)
class VolumetricFeatures:
    delta_pressure: float             # bar delta / total volume
    cumulative_delta_momentum: float  # cum-delta change / ATR, clamped to [-3, 3]
    poc_displacement: float           # (close - POC) / ATR
    volume_dominance: float           # (buy - sell) / total volume
    delta_percentage: float           # same value as delta_pressure
    value_area_width: float           # (VAH - VAL) / ATR
    volume_surge: float               # latest volume vs average

    @classmethod
    def empty(cls) -> VolumetricFeatures:
        return cls(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)


# ---------------------------------------------------------------------------
# Emitted feature record
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FeatureVector:
    """Final per-bar record: the source bar plus twelve normalized features.

    All ``f_*`` values are finite; the feature engine coerces NaN/Inf to 0.
    """

    bar: BaseBar
    f_ma_fast_slow_distance: float
    f_ma_slope: float
    f_close_open_relationship: float
    f_market_state: float
    f_market_state_secondary: float
    f_delta_pressure: float
    f_cumulative_delta_momentum: float
    f_poc_displacement: float
    f_volume_dominance: float
    f_delta_percentage: float
    f_value_area_width: float
    f_volume_surge: float

    def feature_names(self) -> list[str]:
        return [name for name in self.__dataclass_fields__ if name.startswith("f_")]

    def as_record(self) -> dict[str, Any]:
        """Flatten bar fields and features into a single plain dict."""
        record = asdict(self.bar)
        for name in self.feature_names():
            record[name] = getattr(self, name)
        return record


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FeatureContributions:
    """Which feature categories confirmed a signal.

    Immutable: the evaluator rebuilds it with ``dataclasses.replace``.
    """

    temporal_alignment: bool = False
    order_flow_alignment: bool = False
    market_efficiency: bool = False
    price_action: bool = False
    volume_surge: bool = False
    secondary_alignment: bool = False

    @property
    def total_contributors(self) -> int:
        return sum(
            (
                self.temporal_alignment,
                self.order_flow_alignment,
                self.market_efficiency,
                self.price_action,
                self.volume_surge,
                self.secondary_alignment,
            )
        )


@dataclass(frozen=True)
class FeatureSignal:
    """A decision derived purely from features.

    direction: +1 long, -1 short, 0 no signal.
    strength, confidence: in [0, 1].
    """

    direction: int
    strength: float
    confidence: float
    reason: str = ""
    contributions: FeatureContributions = field(default_factory=FeatureContributions)

    @classmethod
    def no_signal(cls, reason: str = "No signal conditions met") -> FeatureSignal:
        return cls(0, 0.0, 0.0, reason, FeatureContributions())

    @property
    def has_signal(self) -> bool:
        return self.direction != 0

    @property
    def is_long(self) -> bool:
        return self.direction > 0

    @property
    def is_short(self) -> bool:
        return self.direction < 0
