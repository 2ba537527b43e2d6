# cronus/core/models/interval.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional


def _check_bound(name: str, value: int, lo: int, hi: int) -> None:
    if lo > value:
        raise ValueError(f'Expected min <= {name}, but {lo} > {value}')
    if hi < value:
        raise ValueError(f'Expected max >= {name}, but {hi} < {value}')


@dataclass(frozen=True)
class Interval:
    """
    Immutable set of enabled indices within a closed range [min, max].

    Membership is stored as an integer bitset where bit ``i`` corresponds to
    value ``min + i``. Instances are constructed with ``IntervalBuilder``.
    """

    min: int
    max: int
    bits: int = 0

    def __post_init__(self) -> None:
        if self.min > self.max:
            raise ValueError(f'Expected min <= max, but {self.min} > {self.max}')
        if self.bits < 0 or self.bits >> self.size:
            raise ValueError('bits fall outside of the interval range')

    @property
    def size(self) -> int:
        return self.max - self.min + 1

    def test(self, value: int) -> bool:
        """Return True if ``value`` is enabled."""
        _check_bound('value', value, self.min, self.max)
        return bool((self.bits >> (value - self.min)) & 1)

    def is_empty(self) -> bool:
        return self.bits == 0

    def is_full(self) -> bool:
        return self.bits == (1 << self.size) - 1

    def previous(self, index: int, inclusive: bool) -> Optional[int]:
        """Return the nearest enabled index at or before ``index``, or None."""
        _check_bound('index', index, self.min, self.max)
        offset = index - self.min if inclusive else index - self.min - 1
        if offset < 0:
            return None
        candidates = self.bits & ((1 << (offset + 1)) - 1)
        if candidates == 0:
            return None
        return candidates.bit_length() - 1 + self.min

    def next(self, index: int, inclusive: bool) -> Optional[int]:
        """Return the nearest enabled index at or after ``index``, or None."""
        _check_bound('index', index, self.min, self.max)
        offset = index - self.min if inclusive else index - self.min + 1
        candidates = self.bits >> offset
        if candidates == 0:
            return None
        lowest = (candidates & -candidates).bit_length() - 1
        return offset + lowest + self.min

    def index_iterator(self, start: Optional[int] = None) -> Iterator[int]:
        """Lazily yield enabled indices >= ``start`` in ascending order."""
        if start is None:
            start = self.min
        _check_bound('start', start, self.min, self.max)
        return self._iter_from(start)

    def _iter_from(self, start: int) -> Iterator[int]:
        current: Optional[int] = start
        while current is not None:
            current = self.next(current, True)
            if current is None:
                return
            yield current
            if current == self.max:
                return
            current += 1

    def __iter__(self) -> Iterator[int]:
        return self.index_iterator()


class IntervalBuilder:
    """
    Mutable builder that is frozen into an ``Interval``.

    Every setter validates its arguments against the builder bounds and
    returns the builder so calls can be chained.
    """

    def __init__(self, min_value: int, max_value: int) -> None:
        if min_value > max_value:
            raise ValueError(f'Expected min <= max, but {min_value} > {max_value}')
        self._min = min_value
        self._max = max_value
        self._bits = 0

    @classmethod
    def from_interval(cls, interval: Interval) -> IntervalBuilder:
        builder = cls(interval.min, interval.max)
        builder._bits = interval.bits
        return builder

    def _apply(self, mask: int, value: bool) -> IntervalBuilder:
        if value:
            self._bits |= mask
        else:
            self._bits &= ~mask
        return self

    def set_all(self, value: bool) -> IntervalBuilder:
        return self._apply((1 << (self._max - self._min + 1)) - 1, value)

    def set_range(
        self, low: int, high: int, value: bool, *, step: int = 1
    ) -> IntervalBuilder:
        """Set every ``step``-th index in [low, high] to ``value``."""
        _check_bound('low', low, self._min, self._max)
        _check_bound('high', high, self._min, self._max)
        if low > high:
            raise ValueError(f'Expected low <= high, but {low} > {high}')
        if step < 1:
            raise ValueError(f'Expected increment >= 1, but {step} < 1')
        mask = 0
        for i in range(low - self._min, high - self._min + 1, step):
            mask |= 1 << i
        return self._apply(mask, value)

    def set_index(self, index: int, value: bool) -> IntervalBuilder:
        _check_bound('index', index, self._min, self._max)
        return self._apply(1 << (index - self._min), value)

    def build(self) -> Interval:
        return Interval(self._min, self._max, self._bits)
