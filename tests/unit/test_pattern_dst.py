"""Tests for next/previous across America/New_York daylight-saving transitions.

Fall back: 2015-11-01 02:00 EDT -> 01:00 EST (01:00-01:59 occurs twice).
Spring forward: 2015-03-08 02:00 EST -> 03:00 EDT (02:00-02:59 never occurs).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from cronus.core.models.pattern import CronPattern

NEW_YORK = ZoneInfo('America/New_York')
EDT = -4
EST = -5


def _eastern(
    year: int,
    month: int,
    day: int,
    hour: int,
    minute: int,
    offset_hours: Optional[int] = None,
) -> datetime:
    """Eastern wall time; with an offset, picks that reading of a repeated time."""
    if offset_hours is None:
        return datetime(year, month, day, hour, minute, tzinfo=NEW_YORK)
    fixed = timezone(timedelta(hours=offset_hours))
    return datetime(year, month, day, hour, minute, tzinfo=fixed).astimezone(NEW_YORK)


def _assert_same(actual: Optional[datetime], expected: datetime) -> None:
    """Same wall time and same UTC offset (zone-local equality ignores fold)."""
    assert actual is not None
    assert actual == expected
    assert actual.utcoffset() == expected.utcoffset()
    assert actual.timestamp() == expected.timestamp()


@pytest.mark.unit
class TestNextFallBack:
    """'30 1 * * *' around the repeated 01:00-01:59 hour."""

    pattern = CronPattern.build('30 1 * * *')

    def test_first_0120_fires_at_first_0130(self) -> None:
        value = _eastern(2015, 11, 1, 1, 20, EDT)
        _assert_same(self.pattern.next(value, True), _eastern(2015, 11, 1, 1, 30, EDT))

    def test_second_0120_fires_next_day(self) -> None:
        value = _eastern(2015, 11, 1, 1, 20, EST)
        _assert_same(self.pattern.next(value, True), _eastern(2015, 11, 2, 1, 30, EST))

    def test_first_0130_inclusive_is_itself(self) -> None:
        value = _eastern(2015, 11, 1, 1, 30, EDT)
        _assert_same(self.pattern.next(value, True), value)

    def test_first_0130_exclusive_is_next_day(self) -> None:
        value = _eastern(2015, 11, 1, 1, 30, EDT)
        _assert_same(self.pattern.next(value, False), _eastern(2015, 11, 2, 1, 30))

    def test_second_0130_inclusive_is_next_day(self) -> None:
        value = _eastern(2015, 11, 1, 1, 30, EST)
        _assert_same(self.pattern.next(value, True), _eastern(2015, 11, 2, 1, 30))

    def test_second_0130_exclusive_is_next_day(self) -> None:
        value = _eastern(2015, 11, 1, 1, 30, EST)
        _assert_same(self.pattern.next(value, False), _eastern(2015, 11, 2, 1, 30))


@pytest.mark.unit
class TestNextSpringForward:
    """'30 2 * * *' on the day 02:30 does not exist."""

    pattern = CronPattern.build('30 2 * * *')

    def test_from_midnight_fires_at_end_of_gap(self) -> None:
        value = _eastern(2015, 3, 8, 0, 0)
        _assert_same(self.pattern.next(value, True), _eastern(2015, 3, 8, 3, 0))

    def test_from_0159_fires_at_end_of_gap(self) -> None:
        value = _eastern(2015, 3, 8, 1, 59)
        _assert_same(self.pattern.next(value, True), _eastern(2015, 3, 8, 3, 0))
        _assert_same(self.pattern.next(value, False), _eastern(2015, 3, 8, 3, 0))

    def test_result_carries_post_transition_offset(self) -> None:
        result = self.pattern.next(_eastern(2015, 3, 8, 0, 0))
        assert result is not None
        assert result.utcoffset() == timedelta(hours=EDT)

    def test_next_day_is_regular(self) -> None:
        value = _eastern(2015, 3, 8, 3, 0)
        _assert_same(self.pattern.next(value, False), _eastern(2015, 3, 9, 2, 30))


@pytest.mark.unit
class TestPreviousFallBack:
    """'30 1 * * *' walking backwards into the repeated hour."""

    pattern = CronPattern.build('30 1 * * *')

    def test_from_next_midnight_is_first_0130(self) -> None:
        value = _eastern(2015, 11, 2, 0, 0)
        _assert_same(self.pattern.previous(value, True), _eastern(2015, 11, 1, 1, 30, EDT))

    def test_second_0140_is_first_0130(self) -> None:
        value = _eastern(2015, 11, 1, 1, 40, EST)
        _assert_same(self.pattern.previous(value, True), _eastern(2015, 11, 1, 1, 30, EDT))

    def test_second_0120_is_first_0130(self) -> None:
        value = _eastern(2015, 11, 1, 1, 20, EST)
        _assert_same(self.pattern.previous(value, True), _eastern(2015, 11, 1, 1, 30, EDT))

    def test_first_0130_inclusive_is_itself(self) -> None:
        value = _eastern(2015, 11, 1, 1, 30, EDT)
        _assert_same(self.pattern.previous(value, True), value)

    def test_first_0130_exclusive_is_previous_day(self) -> None:
        value = _eastern(2015, 11, 1, 1, 30, EDT)
        _assert_same(self.pattern.previous(value, False), _eastern(2015, 10, 31, 1, 30, EDT))

    def test_second_0130_is_first_0130(self) -> None:
        value = _eastern(2015, 11, 1, 1, 30, EST)
        expected = _eastern(2015, 11, 1, 1, 30, EDT)
        _assert_same(self.pattern.previous(value, True), expected)
        _assert_same(self.pattern.previous(value, False), expected)


@pytest.mark.unit
class TestPreviousSpringForward:
    """'30 2 * * *' walking backwards over the skipped hour."""

    pattern = CronPattern.build('30 2 * * *')

    def test_from_0400_is_end_of_gap(self) -> None:
        value = _eastern(2015, 3, 8, 4, 0)
        _assert_same(self.pattern.previous(value, True), _eastern(2015, 3, 8, 3, 0))

    def test_from_0301_is_end_of_gap(self) -> None:
        value = _eastern(2015, 3, 8, 3, 1)
        _assert_same(self.pattern.previous(value, True), _eastern(2015, 3, 8, 3, 0))
        _assert_same(self.pattern.previous(value, False), _eastern(2015, 3, 8, 3, 0))

    def test_from_0300_inclusive_is_itself(self) -> None:
        value = _eastern(2015, 3, 8, 3, 0)
        _assert_same(self.pattern.previous(value, True), value)

    def test_from_0300_exclusive_is_previous_day(self) -> None:
        value = _eastern(2015, 3, 8, 3, 0)
        _assert_same(self.pattern.previous(value, False), _eastern(2015, 3, 7, 2, 30))


@pytest.mark.unit
class TestUncorrectedPatterns:
    """Patterns with a full hour or minute field follow the timeline."""

    def test_every_minute_steps_over_gap(self) -> None:
        pattern = CronPattern.build('* * * * *')
        value = _eastern(2015, 3, 8, 1, 59)
        _assert_same(pattern.next(value, False), _eastern(2015, 3, 8, 3, 0))

    def test_hourly_fires_in_both_repeated_hours(self) -> None:
        pattern = CronPattern.build('0 * * * *')
        first = _eastern(2015, 11, 1, 1, 0, EDT)
        second = pattern.next(first, False)
        _assert_same(second, _eastern(2015, 11, 1, 1, 0, EST))
        assert second is not None
        _assert_same(pattern.next(second, False), _eastern(2015, 11, 1, 2, 0))

    def test_hourly_previous_from_second_repeat(self) -> None:
        pattern = CronPattern.build('0 * * * *')
        value = _eastern(2015, 11, 1, 1, 30, EST)
        _assert_same(pattern.previous(value, False), _eastern(2015, 11, 1, 1, 0, EST))

    def test_nonexistent_input_is_normalized(self) -> None:
        # 02:30 on 2015-03-08 does not exist; it reads as 03:30 EDT.
        pattern = CronPattern.build('* * * * *')
        value = datetime(2015, 3, 8, 2, 30, tzinfo=NEW_YORK)
        _assert_same(pattern.next(value, True), _eastern(2015, 3, 8, 3, 30))


@pytest.mark.unit
class TestHourlyWithMinute:
    """'5 * * * *' has a fixed minute and a full hour, so it follows the timeline."""

    pattern = CronPattern.build('5 * * * *')

    def test_next_from_first_repeat_is_second_repeat(self) -> None:
        value = _eastern(2015, 11, 1, 1, 10, EDT)
        _assert_same(self.pattern.next(value, False), _eastern(2015, 11, 1, 1, 5, EST))

    def test_next_into_first_repeat(self) -> None:
        value = _eastern(2015, 11, 1, 0, 50, EDT)
        _assert_same(self.pattern.next(value, False), _eastern(2015, 11, 1, 1, 5, EDT))

    def test_next_from_second_repeat_leaves_the_hour(self) -> None:
        value = _eastern(2015, 11, 1, 1, 5, EST)
        _assert_same(self.pattern.next(value, False), _eastern(2015, 11, 1, 2, 5, EST))

    def test_walk_through_fall_back(self) -> None:
        current: Optional[datetime] = _eastern(2015, 11, 1, 0, 0, EDT)
        seen = []
        inclusive = True
        for _ in range(4):
            assert current is not None
            current = self.pattern.next(current, inclusive)
            assert current is not None
            seen.append((current.hour, current.minute, current.utcoffset()))
            inclusive = False
        assert seen == [
            (0, 5, timedelta(hours=EDT)),
            (1, 5, timedelta(hours=EDT)),
            (1, 5, timedelta(hours=EST)),
            (2, 5, timedelta(hours=EST)),
        ]

    def test_previous_from_second_repeat_start(self) -> None:
        value = _eastern(2015, 11, 1, 1, 0, EST)
        _assert_same(self.pattern.previous(value, False), _eastern(2015, 11, 1, 1, 5, EDT))

    def test_previous_within_second_repeat(self) -> None:
        value = _eastern(2015, 11, 1, 1, 30, EST)
        _assert_same(self.pattern.previous(value, False), _eastern(2015, 11, 1, 1, 5, EST))

    def test_previous_into_second_repeat(self) -> None:
        value = _eastern(2015, 11, 1, 2, 0, EST)
        _assert_same(self.pattern.previous(value, False), _eastern(2015, 11, 1, 1, 5, EST))

    def test_next_over_spring_forward_gap(self) -> None:
        value = _eastern(2015, 3, 8, 1, 10, EST)
        _assert_same(self.pattern.next(value, False), _eastern(2015, 3, 8, 3, 5, EDT))

    def test_previous_over_spring_forward_gap(self) -> None:
        value = _eastern(2015, 3, 8, 3, 0, EDT)
        _assert_same(self.pattern.previous(value, False), _eastern(2015, 3, 8, 1, 5, EST))
