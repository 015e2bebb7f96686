"""
Replay input: JSON-lines bar records + an in-memory order-flow source.

One record per line, oldest first:

    {"timeframe": "primary",
     "bar": {"time": 93000, "day": 20240102, "open": ..., "high": ..., "low": ...,
             "close": ..., "volume": ..., "moving_average": ..., "slow_moving_average": ...,
             "atr": ...},
     "levels": [[price, bid_volume, ask_volume], ...],
     "totals": {"total_volume": ..., "buy_volume": ..., ...},   # optional
     "point_of_control": 4801.25}                               # optional

Missing totals / POC are derived from the level rows.
"""

from __future__ import annotations

import json
import math
from dataclasses import MISSING, dataclass, fields
from pathlib import Path
from typing import Any, Iterator, Sequence

from orderflow_core.contracts import BaseBar, OrderFlowTotals, Timeframe

_PRICE_DECIMALS = 10


class ReplayFormatError(Exception):
    """Raised when a replay record cannot be parsed."""


def _key(price: float) -> float:
    return round(float(price), _PRICE_DECIMALS)


class InMemoryOrderFlow:
    """OrderFlowSource over a price -> (bid, ask) mapping."""

    def __init__(
        self,
        volumes: dict[float, tuple[int, int]],
        totals: OrderFlowTotals,
        point_of_control: float,
    ) -> None:
        self._volumes = {_key(p): v for p, v in volumes.items()}
        self._totals = totals
        self._poc = point_of_control

    @classmethod
    def from_levels(
        cls,
        rows: Sequence[Sequence[float]],
        totals: OrderFlowTotals | None = None,
        point_of_control: float | None = None,
    ) -> InMemoryOrderFlow:
        """Build from ``[price, bid, ask]`` rows, deriving totals and POC when absent."""
        volumes: dict[float, tuple[int, int]] = {}
        for price, bid, ask in rows:
            prev_bid, prev_ask = volumes.get(_key(price), (0, 0))
            volumes[_key(price)] = (prev_bid + int(bid), prev_ask + int(ask))

        if totals is None:
            sell = sum(b for b, _ in volumes.values())
            buy = sum(a for _, a in volumes.values())
            total = buy + sell
            delta = buy - sell
            totals = OrderFlowTotals(
                total_volume=total,
                buy_volume=buy,
                sell_volume=sell,
                bar_delta=delta,
                max_delta=delta,
                min_delta=delta,
                cumulative_delta=delta,
                delta_percentage=(delta / total * 100.0) if total else 0.0,
            )

        if point_of_control is None:
            point_of_control = 0.0
            if volumes:
                # Lowest price wins among equal-volume peaks.
                point_of_control = min(volumes, key=lambda p: (-sum(volumes[p]), p))

        return cls(volumes, totals, point_of_control)

    def bid_volume_at(self, price: float) -> int:
        return self._volumes.get(_key(price), (0, 0))[0]

    def ask_volume_at(self, price: float) -> int:
        return self._volumes.get(_key(price), (0, 0))[1]

    def point_of_control(self) -> float:
        return self._poc

    def totals(self) -> OrderFlowTotals:
        return self._totals


@dataclass(frozen=True)
class ReplayRecord:
    """One closed bar of one timeframe with its order flow."""

    timeframe: Timeframe
    bar: BaseBar
    order_flow: InMemoryOrderFlow


_BAR_FIELDS = {f.name for f in fields(BaseBar)}
_BAR_INT_FIELDS = {"time", "day"}
_BAR_REQUIRED = {f.name for f in fields(BaseBar) if f.default is MISSING}
_TOTALS_FIELDS = {f.name for f in fields(OrderFlowTotals)}


def _number(value: Any, kind: type, what: str) -> float | int:
    """Coerce a JSON scalar to ``kind``; bools, nulls and non-numeric strings are rejected."""
    if isinstance(value, bool) or value is None:
        raise ReplayFormatError(f"{what} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ReplayFormatError(f"{what} must be a number, got {value!r}") from exc
    if not math.isfinite(number):
        raise ReplayFormatError(f"{what} must be finite, got {value!r}")
    if kind is int:
        if not number.is_integer():
            raise ReplayFormatError(f"{what} must be an integer, got {value!r}")
        return int(number)
    return number


def _parse_bar(bar_raw: Any) -> BaseBar:
    if not isinstance(bar_raw, dict):
        raise ReplayFormatError("record is missing a 'bar' object")
    unknown = set(bar_raw) - _BAR_FIELDS
    if unknown:
        raise ReplayFormatError(f"unknown bar fields: {sorted(unknown)}")
    missing = _BAR_REQUIRED - set(bar_raw)
    if missing:
        raise ReplayFormatError(f"invalid bar: missing fields {sorted(missing)}")
    values = {
        name: _number(value, int if name in _BAR_INT_FIELDS else float, f"bar.{name}")
        for name, value in bar_raw.items()
    }
    return BaseBar(**values)


def _parse_levels(rows: Any) -> list[tuple[float, int, int]]:
    if not isinstance(rows, list):
        raise ReplayFormatError("levels must be [price, bid_volume, ask_volume] rows")
    parsed = []
    for i, row in enumerate(rows):
        if not isinstance(row, (list, tuple)) or len(row) != 3:
            raise ReplayFormatError("levels must be [price, bid_volume, ask_volume] rows")
        price, bid, ask = row
        parsed.append(
            (
                _number(price, float, f"levels[{i}] price"),
                _number(bid, int, f"levels[{i}] bid_volume"),
                _number(ask, int, f"levels[{i}] ask_volume"),
            )
        )
    return parsed


def _parse_totals(totals_raw: Any) -> OrderFlowTotals | None:
    if totals_raw is None:
        return None
    if not isinstance(totals_raw, dict):
        raise ReplayFormatError(f"totals must be a JSON object, got {type(totals_raw).__name__}")
    unknown = set(totals_raw) - _TOTALS_FIELDS
    if unknown:
        raise ReplayFormatError(f"unknown totals fields: {sorted(unknown)}")
    return OrderFlowTotals(
        **{
            name: _number(value, float if name == "delta_percentage" else int, f"totals.{name}")
            for name, value in totals_raw.items()
        }
    )


def parse_record(raw: dict[str, Any]) -> ReplayRecord:
    """Convert one decoded JSON object into a ReplayRecord.

    Every numeric field is type-checked here so malformed input surfaces
    as ReplayFormatError rather than failing later inside the builder.
    """
    if not isinstance(raw, dict):
        raise ReplayFormatError(f"record must be a JSON object, got {type(raw).__name__}")

    try:
        timeframe = Timeframe(raw.get("timeframe", Timeframe.PRIMARY.value))
    except ValueError as exc:
        raise ReplayFormatError(f"unknown timeframe {raw.get('timeframe')!r}") from exc

    bar = _parse_bar(raw.get("bar"))
    rows = _parse_levels(raw.get("levels", []))
    totals = _parse_totals(raw.get("totals"))

    poc = raw.get("point_of_control")
    if poc is not None:
        poc = _number(poc, float, "point_of_control")

    order_flow = InMemoryOrderFlow.from_levels(rows, totals, poc)
    return ReplayRecord(timeframe=timeframe, bar=bar, order_flow=order_flow)


def iter_replay(path: str | Path) -> Iterator[ReplayRecord]:
    """Yield ReplayRecords from a JSON-lines file, skipping blank lines."""
    replay_path = Path(path)
    if not replay_path.exists():
        raise FileNotFoundError(f"Replay file not found: {replay_path}")

    with open(replay_path) as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                raw = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ReplayFormatError(f"line {line_no}: invalid JSON: {exc}") from exc
            try:
                yield parse_record(raw)
            except ReplayFormatError as exc:
                raise ReplayFormatError(f"line {line_no}: {exc}") from exc


def read_replay(path: str | Path) -> list[ReplayRecord]:
    return list(iter_replay(path))
