# cronus/core/models/pattern.py
from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

from cronus.core.models.interval import Interval, IntervalBuilder
from cronus.core.types.fields import CRON_FIELDS, TimeField
from cronus.core.utils.timepoint import (
    NaiveTimePoint,
    TimePoint,
    ZonedTimePoint,
    time_point,
)
from cronus.core.utils.zones import at_offset, find_transition, same_instant_and_offset

MINUTE = TimeField.MINUTE
HOUR = TimeField.HOUR
DAY_OF_MONTH = TimeField.DAY_OF_MONTH
MONTH = TimeField.MONTH
DAY_OF_WEEK = TimeField.DAY_OF_WEEK

# A leap year, so that February 29 counts as a reachable date.
_LEAP_YEAR = 2000


@dataclass(frozen=True)
class CronPattern:
    """
    Immutable five-field cron pattern.

    Patterns are created with ``CronPattern.build(text)`` or derived from an
    existing pattern through the copying setters (``set_interval``,
    ``set_all``, ``set_range``, ``set_index``). Two patterns are equal when
    their intervals are equal; the source text is informational.

    ``next`` and ``previous`` accept naive or aware datetimes. Naive values
    are treated as wall-clock time. Aware values whose zone observes
    daylight saving time are corrected so that the result is always a real,
    unambiguous instant:

        - a match inside a spring-forward gap fires at the end of the gap
        - a match inside a fall-back overlap fires at its first occurrence
    """

    minute: Interval
    hour: Interval
    day_of_month: Interval
    month: Interval
    day_of_week: Interval
    source: str = field(default='', compare=False)
    _is_empty: bool = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for time_field in CRON_FIELDS:
            time_field.validate(self.get_interval(time_field))
        object.__setattr__(self, '_is_empty', self._calculate_is_empty())
        if not self.source:
            from cronus.core.parser import print_pattern

            object.__setattr__(self, 'source', print_pattern(self))

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def build(cls, text: str) -> CronPattern:
        """Parse cron text. Raises PatternParseError on malformed input."""
        from cronus.core.parser import parse_pattern

        return parse_pattern(text)

    @classmethod
    def empty(cls) -> CronPattern:
        """A pattern with every field cleared; it never fires."""
        return cls(*(time_field.interval() for time_field in CRON_FIELDS))

    def get_interval(self, time_field: TimeField) -> Interval:
        match time_field:
            case TimeField.MINUTE:
                return self.minute
            case TimeField.HOUR:
                return self.hour
            case TimeField.DAY_OF_MONTH:
                return self.day_of_month
            case TimeField.MONTH:
                return self.month
            case TimeField.DAY_OF_WEEK:
                return self.day_of_week

    def set_interval(self, time_field: TimeField, interval: Interval) -> CronPattern:
        if time_field is None:
            raise ValueError('time_field argument must be non-null')
        if interval is None:
            raise ValueError('interval argument must be non-null')
        intervals = {f: self.get_interval(f) for f in CRON_FIELDS}
        intervals[time_field] = time_field.validate(interval)
        return CronPattern(*(intervals[f] for f in CRON_FIELDS))

    def set_all(self, time_field: TimeField, value: bool) -> CronPattern:
        builder = IntervalBuilder.from_interval(self.get_interval(time_field))
        return self.set_interval(time_field, builder.set_all(value).build())

    def set_range(
        self,
        time_field: TimeField,
        low: int,
        high: int,
        value: bool,
        *,
        step: int = 1,
    ) -> CronPattern:
        builder = IntervalBuilder.from_interval(self.get_interval(time_field))
        return self.set_interval(
            time_field, builder.set_range(low, high, value, step=step).build()
        )

    def set_index(self, time_field: TimeField, index: int, value: bool) -> CronPattern:
        builder = IntervalBuilder.from_interval(self.get_interval(time_field))
        return self.set_interval(time_field, builder.set_index(index, value).build())

    # ------------------------------------------------------------------
    # Emptiness
    # ------------------------------------------------------------------

    @property
    def is_empty(self) -> bool:
        """True if the pattern can never fire."""
        return self._is_empty

    def _invalid_days(self) -> bool:
        """
        True if day-of-week defers to day-of-month and no selected
        (month, day) combination exists on the calendar.
        """
        if not self.day_of_week.is_full() or self.day_of_month.is_full():
            return False
        if self.day_of_month.is_empty():
            return True
        if self.month.is_full():
            return False
        for month in self.month.index_iterator():
            month_days = calendar.monthrange(_LEAP_YEAR, month)[1]
            for day in self.day_of_month.index_iterator():
                if day <= month_days:
                    return False
        return True

    def _calculate_is_empty(self) -> bool:
        if self.minute.is_empty() or self.hour.is_empty() or self.month.is_empty():
            return True
        if self.day_of_week.is_empty() and self.day_of_month.is_empty():
            return True
        # Day-of-month unrestricted defers entirely to day-of-week.
        if self.day_of_month.is_full() and self.day_of_week.is_empty():
            return True
        return self._invalid_days()

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def matches(self, candidate: datetime) -> bool:
        """True if the wall-clock fields of ``candidate`` satisfy the pattern."""
        if candidate is None:
            raise ValueError('candidate argument must be non-null')
        return self._matches_point(time_point(candidate))

    def _matches_point(self, point: TimePoint) -> bool:
        if self.is_empty:
            return False
        return self._minute_hour_matches(point) and self._day_matches(point)

    def _minute_hour_matches(self, point: TimePoint) -> bool:
        return self.minute.test(point.get(MINUTE)) and self.hour.test(point.get(HOUR))

    def _day_matches(self, point: TimePoint) -> bool:
        if not self.month.test(point.get(MONTH)):
            return False
        day_of_month_full = self.day_of_month.is_full()
        day_of_week_full = self.day_of_week.is_full()
        if day_of_month_full and day_of_week_full:
            return True
        if day_of_month_full:
            return self.day_of_week.test(point.get(DAY_OF_WEEK))
        if day_of_week_full:
            return self.day_of_month.test(point.get(DAY_OF_MONTH))
        # Both restricted: traditional cron fires when either matches.
        return self.day_of_week.test(point.get(DAY_OF_WEEK)) or self.day_of_month.test(
            point.get(DAY_OF_MONTH)
        )

    # ------------------------------------------------------------------
    # Zone-naive search
    # ------------------------------------------------------------------

    def _next_same_day(self, point: TimePoint, inclusive: bool) -> Optional[TimePoint]:
        """Next firing if it falls on the same day as ``point``, else None."""
        if not self._day_matches(point):
            return None
        output = point
        next_minute = self.minute.next(point.get(MINUTE), inclusive)
        rolled = next_minute is None
        if next_minute is not None:
            output = output.with_field(MINUTE, next_minute)
        else:
            output = output.plus_hours(1)
            if output.epoch_day != point.epoch_day:
                return None
        if not point.same_as(output):
            inclusive = True
        next_hour = self.hour.next(output.get(HOUR), inclusive)
        if next_hour is None:
            return None
        output = output.with_field(HOUR, next_hour)
        # On a fall-back day the next hour can carry the same number.
        if rolled or point.get(HOUR) != next_hour:
            output = output.with_field(MINUTE, self._first_minute())
        return self._verified(output)

    def _previous_same_day(self, point: TimePoint, inclusive: bool) -> Optional[TimePoint]:
        """Previous firing if it falls on the same day as ``point``, else None."""
        if not self._day_matches(point):
            return None
        output = point
        previous_minute = self.minute.previous(point.get(MINUTE), inclusive)
        rolled = previous_minute is None
        if previous_minute is not None:
            output = output.with_field(MINUTE, previous_minute)
        else:
            output = output.plus_hours(-1)
            if output.epoch_day != point.epoch_day:
                return None
        if not point.same_as(output):
            inclusive = True
        previous_hour = self.hour.previous(output.get(HOUR), inclusive)
        if previous_hour is None:
            return None
        output = output.with_field(HOUR, previous_hour)
        if rolled or point.get(HOUR) != previous_hour:
            output = output.with_field(MINUTE, self._last_minute())
        return self._verified(output)

    def _verified(self, output: TimePoint) -> TimePoint:
        if not self._minute_hour_matches(output):
            raise RuntimeError(
                f"Search for '{self}' produced {output.value.isoformat()}, "
                'which does not match its minute and hour fields'
            )
        return output

    def _bound(self, time_field: TimeField, first: bool) -> int:
        """First or last enabled value of a field; non-empty patterns have one."""
        interval = self.get_interval(time_field)
        if first:
            value = interval.next(time_field.min, True)
        else:
            value = interval.previous(time_field.max, True)
        if value is None:
            raise RuntimeError(f"Pattern '{self}' has no {time_field.description} values")
        return value

    def _first_minute(self) -> int:
        return self._bound(MINUTE, first=True)

    def _last_minute(self) -> int:
        return self._bound(MINUTE, first=False)

    def _next_point(self, point: TimePoint, inclusive: bool) -> Optional[TimePoint]:
        """
        Try the same day first. Failing that, the hour and minute can be
        reset to their first legal values and whole days walked forward.
        """
        if self.is_empty:
            return None
        if inclusive and self._matches_point(point):
            return point
        same_day = self._next_same_day(point, inclusive)
        if same_day is not None:
            return same_day
        output = (
            point.plus_days(1)
            .with_field(HOUR, self._bound(HOUR, first=True))
            .with_field(MINUTE, self._first_minute())
        )
        while True:
            self._verified(output)
            if self._day_matches(output):
                return output
            output = output.plus_days(1)

    def _previous_point(self, point: TimePoint, inclusive: bool) -> Optional[TimePoint]:
        """Mirror of ``_next_point`` walking backwards from the last legal time."""
        if self.is_empty:
            return None
        if inclusive and self._matches_point(point):
            return point
        same_day = self._previous_same_day(point, inclusive)
        if same_day is not None:
            return same_day
        output = (
            point.plus_days(-1)
            .with_field(HOUR, self._bound(HOUR, first=False))
            .with_field(MINUTE, self._last_minute())
        )
        while True:
            self._verified(output)
            if self._day_matches(output):
                return output
            output = output.plus_days(-1)

    # ------------------------------------------------------------------
    # Public search with daylight-saving correction
    # ------------------------------------------------------------------

    def next(self, value: datetime, inclusive: bool = False) -> Optional[datetime]:
        """
        Return the next datetime the pattern fires.

        Args:
            value: Starting point, naive or aware
            inclusive: If True, ``value`` itself is returned when it matches

        Returns:
            The next firing time (same awareness and zone as ``value``),
            or None if the pattern is empty
        """
        if value is None:
            raise ValueError('input argument must be non-null')
        point = time_point(value)
        if isinstance(point, NaiveTimePoint):
            result = self._next_point(point, inclusive)
            return None if result is None else result.value
        tz = point.tz
        value = _normalize(value)
        if not self._handle_zone_transition():
            result = self._next_point(ZonedTimePoint(value), inclusive)
            return None if result is None else result.value
        adjusted = self._input_daylight_savings_next(value, tz)
        if not same_instant_and_offset(adjusted, value):
            value, inclusive = adjusted, True
        local = self._next_point(NaiveTimePoint(value.replace(tzinfo=None)), inclusive)
        return self._output_adjust_daylight_savings(local, tz)

    def previous(self, value: datetime, inclusive: bool = False) -> Optional[datetime]:
        """
        Return the previous datetime the pattern fired.

        Args:
            value: Starting point, naive or aware
            inclusive: If True, ``value`` itself is returned when it matches

        Returns:
            The previous firing time, or None if the pattern is empty
        """
        if value is None:
            raise ValueError('input argument must be non-null')
        point = time_point(value)
        if isinstance(point, NaiveTimePoint):
            result = self._previous_point(point, inclusive)
            return None if result is None else result.value
        tz = point.tz
        value = _normalize(value)
        if not self._handle_zone_transition():
            result = self._previous_point(ZonedTimePoint(value), inclusive)
            return None if result is None else result.value
        adjusted = self._input_daylight_savings_previous(value, tz, inclusive)
        if not same_instant_and_offset(adjusted, value):
            value, inclusive = adjusted, True
        local = self._previous_point(
            NaiveTimePoint(value.replace(tzinfo=None)), inclusive
        )
        return self._output_adjust_daylight_savings(local, tz)

    def _handle_zone_transition(self) -> bool:
        """Only patterns pinned to specific hours and minutes shift with DST."""
        return not self.hour.is_full() and not self.minute.is_full()

    @staticmethod
    def _input_daylight_savings_next(value: datetime, tz: tzinfo) -> datetime:
        """
        Inside the repeated hour of an overlap, the second occurrence moves
        forward to the end of the repeated period.
        """
        transition = find_transition(value.replace(tzinfo=None), tz)
        if transition is None:
            return value
        if value.utcoffset() == transition.offset_after:
            return at_offset(transition.local_before, transition.offset_after, tz)
        return value

    @staticmethod
    def _input_daylight_savings_previous(
        value: datetime, tz: tzinfo, inclusive: bool
    ) -> datetime:
        """
        An exclusive query looks one minute earlier. A lookup point inside a gap, or
        inside the second occurrence of a repeated hour, moves back to the
        minute before the transition.
        """
        local = value.replace(tzinfo=None)
        if not inclusive:
            local -= timedelta(minutes=1)
        transition = find_transition(local, tz)
        if transition is None:
            return value
        if transition.is_gap or value.utcoffset() == transition.offset_after:
            return at_offset(
                transition.local_before - timedelta(minutes=1),
                transition.offset_before,
                tz,
            )
        return value

    @staticmethod
    def _output_adjust_daylight_savings(
        local: Optional[TimePoint], tz: tzinfo
    ) -> Optional[datetime]:
        """
        Attach the zone to a wall-clock result. Repeated times take the
        offset from before the transition; skipped times move to the end of
        the gap.
        """
        if local is None:
            return None
        wall = local.value.replace(fold=0)
        transition = find_transition(wall, tz)
        if transition is None:
            return wall.replace(tzinfo=tz)
        if transition.is_overlap:
            return at_offset(wall, transition.offset_before, tz)
        return at_offset(transition.local_after, transition.offset_after, tz)

    def __str__(self) -> str:
        return self.source

    def __repr__(self) -> str:
        return f'CronPattern({self.source!r})'


def _normalize(value: datetime) -> datetime:
    """Round-trip through UTC so that imaginary wall times become real ones."""
    return value.astimezone(timezone.utc).astimezone(value.tzinfo)
