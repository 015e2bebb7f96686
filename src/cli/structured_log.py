"""
Replay event stream: one JSON object per line.

Written to stderr by default so stdout stays human-readable. Every record
carries ``event``, ``symbol`` and a UTC ``ts``; the remaining keys depend
on the event type.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

logger = logging.getLogger("groundwork.events")


class StructuredEventLogger:
    """Event sink for replay runs. ``enabled=False`` builds records without writing them."""

    def __init__(self, symbol: str, *, enabled: bool = True, stream: TextIO | None = None) -> None:
        self._symbol = symbol
        self._enabled = enabled
        self._stream = stream if stream is not None else sys.stderr

    def _emit(self, event_type: str, **fields: Any) -> dict:
        record: dict[str, Any] = {"event": event_type, "symbol": self._symbol}
        record.update(fields)
        record["ts"] = datetime.now(timezone.utc).isoformat()
        if not self._enabled:
            logger.debug("event %s suppressed", event_type)
            return record
        print(json.dumps(record), file=self._stream, flush=True)
        return record

    def replay_start(self, source: str, records: int) -> dict:
        return self._emit("replay_start", source=source, records=records)

    def session_reset(self, timeframe: str, day: int) -> dict:
        return self._emit("session_reset", timeframe=timeframe, day=day)

    def features_emitted(self, timeframe: str, time: int, day: int, features: dict[str, float]) -> dict:
        return self._emit(
            "features_emitted",
            timeframe=timeframe,
            time=time,
            day=day,
            features={k: round(v, 6) for k, v in features.items()},
        )

    def signal_detected(self, direction: int, strength: float, confidence: float, reason: str) -> dict:
        return self._emit(
            "signal_detected",
            direction=direction,
            strength=round(strength, 4),
            confidence=round(confidence, 4),
            reason=reason,
        )

    def exit_detected(self, position: int, reason: str) -> dict:
        return self._emit("exit_detected", position=position, reason=reason)

    def breakout_detected(self, side: str, level: float, close: float, time: int, day: int) -> dict:
        return self._emit("breakout_detected", side=side, level=level, close=close, time=time, day=day)

    def error(self, message: str, detail: str = "") -> dict:
        return self._emit("error", message=message, detail=detail)

    def replay_complete(self, bars: int, features: int, entries: int, exits: int, breakouts: int = 0) -> dict:
        return self._emit(
            "replay_complete",
            bars=bars,
            features=features,
            entries=entries,
            exits=exits,
            breakouts=breakouts,
        )
