"""Tests for Interval and IntervalBuilder (cronus/core/models/interval.py)."""

from __future__ import annotations

import pytest

from cronus.core.models.interval import Interval, IntervalBuilder


def _interval(low: int, high: int, *indices: int) -> Interval:
    builder = IntervalBuilder(low, high)
    for index in indices:
        builder.set_index(index, True)
    return builder.build()


@pytest.mark.unit
class TestIntervalQueries:
    """Membership, emptiness and fullness."""

    def test_empty_interval(self) -> None:
        interval = IntervalBuilder(0, 6).build()
        assert interval.is_empty()
        assert not interval.is_full()
        assert not any(interval.test(i) for i in range(0, 7))

    def test_full_interval(self) -> None:
        interval = IntervalBuilder(1, 31).set_all(True).build()
        assert interval.is_full()
        assert not interval.is_empty()
        assert interval.test(1) and interval.test(31)

    def test_single_value_interval_is_full_when_set(self) -> None:
        assert _interval(5, 5, 5).is_full()

    def test_test_out_of_range_raises(self) -> None:
        interval = _interval(0, 6, 3)
        with pytest.raises(ValueError, match='Expected min <= value, but 0 > -1'):
            interval.test(-1)
        with pytest.raises(ValueError, match='Expected max >= value, but 6 < 7'):
            interval.test(7)

    def test_min_greater_than_max_rejected(self) -> None:
        with pytest.raises(ValueError, match='Expected min <= max'):
            Interval(5, 4)
        with pytest.raises(ValueError, match='Expected min <= max'):
            IntervalBuilder(5, 4)

    def test_equality_and_hash_by_value(self) -> None:
        a = _interval(0, 59, 1, 2, 3)
        b = IntervalBuilder(0, 59).set_range(1, 3, True).build()
        assert a == b
        assert hash(a) == hash(b)
        assert a != _interval(0, 58, 1, 2, 3)


@pytest.mark.unit
class TestIntervalNavigation:
    """next/previous never wrap around."""

    def test_next_inclusive_and_exclusive(self) -> None:
        interval = _interval(0, 59, 15, 30)
        assert interval.next(15, True) == 15
        assert interval.next(15, False) == 30
        assert interval.next(0, False) == 15
        assert interval.next(30, False) is None
        assert interval.next(59, True) is None

    def test_previous_inclusive_and_exclusive(self) -> None:
        interval = _interval(0, 59, 15, 30)
        assert interval.previous(30, True) == 30
        assert interval.previous(30, False) == 15
        assert interval.previous(59, False) == 30
        assert interval.previous(15, False) is None
        assert interval.previous(0, True) is None

    def test_non_zero_minimum(self) -> None:
        interval = _interval(1, 12, 1, 12)
        assert interval.next(1, False) == 12
        assert interval.previous(12, False) == 1
        assert interval.previous(1, False) is None

    def test_navigation_bounds_checked(self) -> None:
        interval = _interval(1, 12, 6)
        with pytest.raises(ValueError, match='Expected min <= index'):
            interval.next(0, True)
        with pytest.raises(ValueError, match='Expected max >= index'):
            interval.previous(13, True)

    def test_index_iterator_from_start(self) -> None:
        interval = _interval(0, 23, 0, 5, 23)
        assert list(interval.index_iterator()) == [0, 5, 23]
        assert list(interval.index_iterator(1)) == [5, 23]
        assert list(interval.index_iterator(23)) == [23]
        assert list(interval) == [0, 5, 23]

    def test_index_iterator_restarts_on_each_call(self) -> None:
        interval = _interval(0, 6, 2, 4)
        first = interval.index_iterator()
        assert next(first) == 2
        assert list(interval.index_iterator()) == [2, 4]
        assert list(first) == [4]

    def test_index_iterator_start_out_of_bounds(self) -> None:
        with pytest.raises(ValueError, match='Expected max >= start'):
            _interval(0, 6, 1).index_iterator(7)


@pytest.mark.unit
class TestIntervalBuilder:
    """Builder setters validate and chain."""

    def test_set_range_with_step(self) -> None:
        interval = IntervalBuilder(0, 59).set_range(1, 10, True, step=2).build()
        assert list(interval) == [1, 3, 5, 7, 9]

    def test_set_range_clears(self) -> None:
        interval = (
            IntervalBuilder(0, 9).set_all(True).set_range(2, 7, False).build()
        )
        assert list(interval) == [0, 1, 8, 9]

    def test_set_range_low_above_high(self) -> None:
        with pytest.raises(ValueError, match='Expected low <= high, but 3 > 1'):
            IntervalBuilder(0, 6).set_range(3, 1, True)

    def test_set_range_step_below_one(self) -> None:
        with pytest.raises(ValueError, match='Expected increment >= 1, but 0 < 1'):
            IntervalBuilder(0, 6).set_range(0, 6, True, step=0)

    def test_set_index_out_of_bounds(self) -> None:
        with pytest.raises(ValueError, match='Expected max >= index, but 6 < 8'):
            IntervalBuilder(0, 6).set_index(8, True)

    def test_from_interval_does_not_mutate_source(self) -> None:
        original = _interval(0, 6, 1)
        updated = IntervalBuilder.from_interval(original).set_index(2, True).build()
        assert list(original) == [1]
        assert list(updated) == [1, 2]
