"""Tests for the fixed-capacity sliding window."""

import pytest

from orderflow_core.sliding_window import SlidingWindow


class TestConstruction:
    def test_rejects_non_positive_capacity(self) -> None:
        with pytest.raises(ValueError):
            SlidingWindow(0)
        with pytest.raises(ValueError):
            SlidingWindow(-3)

    def test_starts_empty(self) -> None:
        w: SlidingWindow[int] = SlidingWindow(3)
        assert len(w) == 0
        assert w.capacity == 3
        assert not w.is_full


class TestAddAndEvict:
    def test_index_zero_is_oldest(self) -> None:
        w: SlidingWindow[int] = SlidingWindow(3)
        for v in (1, 2, 3):
            w.add(v)
        assert w[0] == 1
        assert w[2] == 3
        assert w.oldest() == 1
        assert w.newest() == 3
        assert w.is_full

    def test_full_window_evicts_oldest(self) -> None:
        w: SlidingWindow[int] = SlidingWindow(3)
        for v in (1, 2, 3, 4):
            w.add(v)
        assert len(w) == 3
        assert w.to_list() == [2, 3, 4]
        assert list(w) == [2, 3, 4]

    def test_clear_keeps_capacity(self) -> None:
        w: SlidingWindow[int] = SlidingWindow(2)
        w.add(1)
        w.add(2)
        w.clear()
        assert len(w) == 0
        assert w.capacity == 2
        w.add(5)
        assert w.newest() == 5


class TestOutOfRange:
    def test_index_past_count(self) -> None:
        w: SlidingWindow[int] = SlidingWindow(3)
        w.add(1)
        with pytest.raises(IndexError):
            _ = w[1]

    def test_negative_index(self) -> None:
        w: SlidingWindow[int] = SlidingWindow(3)
        w.add(1)
        with pytest.raises(IndexError):
            _ = w[-1]

    def test_newest_on_empty(self) -> None:
        w: SlidingWindow[int] = SlidingWindow(3)
        with pytest.raises(IndexError):
            w.newest()
