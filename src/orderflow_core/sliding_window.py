"""
Fixed-capacity FIFO window, indexable oldest -> newest.

Backbone of every rolling history in orderflow-core. Appending to a full
window evicts the oldest element in O(1).
"""

from __future__ import annotations

from collections import deque
from typing import Generic, Iterator, TypeVar

T = TypeVar("T")


class SlidingWindow(Generic[T]):
    """Ring buffer: index 0 is the oldest element, ``len - 1`` the newest."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"SlidingWindow capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._items: deque[T] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_full(self) -> bool:
        return len(self._items) == self._capacity

    def add(self, item: T) -> None:
        """Append ``item``; the oldest element drops out once full."""
        self._items.append(item)

    def clear(self) -> None:
        """Remove every element; capacity is unchanged."""
        self._items.clear()

    def newest(self) -> T:
        return self[len(self._items) - 1]

    def oldest(self) -> T:
        return self[0]

    def to_list(self) -> list[T]:
        return list(self._items)

    def __getitem__(self, index: int) -> T:
        if not 0 <= index < len(self._items):
            raise IndexError(
                f"SlidingWindow index {index} out of range (count={len(self._items)})"
            )
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __repr__(self) -> str:
        return f"SlidingWindow(capacity={self._capacity}, count={len(self._items)})"
