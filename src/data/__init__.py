"""
Data adapters: replay files and in-memory order-flow sources.

Depends on orderflow_core.contracts; no dependency from orderflow_core back to data.
"""

from data.replay import (
    InMemoryOrderFlow,
    ReplayFormatError,
    ReplayRecord,
    iter_replay,
    read_replay,
)

__all__ = [
    "InMemoryOrderFlow",
    "iter_replay",
    "read_replay",
    "ReplayFormatError",
    "ReplayRecord",
]
