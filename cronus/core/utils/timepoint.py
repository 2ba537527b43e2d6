# cronus/core/utils/timepoint.py
"""
Field-level access to naive and zone-aware datetimes.

The pattern search is written once against ``TimePoint`` and instantiated
with ``NaiveTimePoint`` (plain wall-clock arithmetic) or ``ZonedTimePoint``
(hour arithmetic on the timeline, day arithmetic and field setters on the
local calendar with the offset re-resolved).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Protocol, cast

from cronus.core.types.fields import TimeField
from cronus.core.utils.zones import resolve_local, same_instant_and_offset


def _get_field(dt: datetime, field: TimeField) -> int:
    match field:
        case TimeField.MINUTE:
            return dt.minute
        case TimeField.HOUR:
            return dt.hour
        case TimeField.DAY_OF_MONTH:
            return dt.day
        case TimeField.MONTH:
            return dt.month
        case TimeField.DAY_OF_WEEK:
            # ISO weekday: Monday is 1 and Sunday is 7; cron Sunday is 0.
            return dt.isoweekday() % 7


def _with_field(dt: datetime, field: TimeField, value: int) -> datetime:
    match field:
        case TimeField.MINUTE:
            return dt.replace(minute=value)
        case TimeField.HOUR:
            return dt.replace(hour=value)
        case _:
            raise ValueError(f'cannot set {field.description} on a time point')


class TimePoint(Protocol):
    """Capabilities the pattern search needs from a time value."""

    @property
    def value(self) -> datetime: ...

    @property
    def epoch_day(self) -> int: ...

    def get(self, field: TimeField) -> int: ...

    def with_field(self, field: TimeField, value: int) -> TimePoint: ...

    def plus_hours(self, hours: int) -> TimePoint: ...

    def plus_days(self, days: int) -> TimePoint: ...

    def same_as(self, other: TimePoint) -> bool: ...


@dataclass(frozen=True)
class NaiveTimePoint:
    value: datetime

    @property
    def epoch_day(self) -> int:
        return self.value.toordinal()

    def get(self, field: TimeField) -> int:
        return _get_field(self.value, field)

    def with_field(self, field: TimeField, value: int) -> NaiveTimePoint:
        return NaiveTimePoint(_with_field(self.value, field, value))

    def plus_hours(self, hours: int) -> NaiveTimePoint:
        return NaiveTimePoint(self.value + timedelta(hours=hours))

    def plus_days(self, days: int) -> NaiveTimePoint:
        return NaiveTimePoint(self.value + timedelta(days=days))

    def same_as(self, other: TimePoint) -> bool:
        return self.value == other.value


@dataclass(frozen=True)
class ZonedTimePoint:
    value: datetime

    def __post_init__(self) -> None:
        if self.value.tzinfo is None or self.value.utcoffset() is None:
            raise ValueError('ZonedTimePoint requires an aware datetime')

    @property
    def tz(self) -> tzinfo:
        return cast(tzinfo, self.value.tzinfo)

    def _resolve(self, local: datetime) -> ZonedTimePoint:
        resolved = resolve_local(local, self.tz, self.value.utcoffset())
        return ZonedTimePoint(resolved)

    @property
    def epoch_day(self) -> int:
        return self.value.toordinal()

    def get(self, field: TimeField) -> int:
        return _get_field(self.value, field)

    def with_field(self, field: TimeField, value: int) -> ZonedTimePoint:
        local = _with_field(self.value.replace(tzinfo=None), field, value)
        return self._resolve(local)

    def plus_hours(self, hours: int) -> ZonedTimePoint:
        shifted = self.value.astimezone(timezone.utc) + timedelta(hours=hours)
        return ZonedTimePoint(shifted.astimezone(self.tz))

    def plus_days(self, days: int) -> ZonedTimePoint:
        local = self.value.replace(tzinfo=None) + timedelta(days=days)
        return self._resolve(local)

    def same_as(self, other: TimePoint) -> bool:
        return same_instant_and_offset(self.value, other.value)


def time_point(value: datetime) -> NaiveTimePoint | ZonedTimePoint:
    """Wrap a datetime in the time point matching its awareness."""
    if value.tzinfo is None or value.utcoffset() is None:
        return NaiveTimePoint(value)
    return ZonedTimePoint(value)
