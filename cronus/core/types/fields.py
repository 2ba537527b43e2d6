# cronus/core/types/fields.py
"""
Cron columns and their fixed bounds.
This module should not import from other application modules except
the interval model it validates.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cronus.core.models.interval import Interval


_MONTH_NAMES = (
    'jan', 'feb', 'mar', 'apr', 'may', 'jun',
    'jul', 'aug', 'sep', 'oct', 'nov', 'dec',
)

# Monday is 1; Sunday maps to 7 and is folded into 0 by substitute_value().
_WEEKDAY_NAMES = ('mon', 'tue', 'wed', 'thu', 'fri', 'sat', 'sun')


def _build_replacements(names: tuple[str, ...]) -> tuple[tuple[re.Pattern[str], str], ...]:
    return tuple(
        (re.compile(rf'(?<![a-z]){name}(?![a-z])', re.IGNORECASE), str(i + 1))
        for i, name in enumerate(names)
    )


_REPLACEMENTS: dict[str, tuple[tuple[re.Pattern[str], str], ...]] = {
    'month': _build_replacements(_MONTH_NAMES),
    'dayOfWeek': _build_replacements(_WEEKDAY_NAMES),
}


class TimeField(Enum):
    """The five cron columns, in pattern order."""

    MINUTE = (0, 59, 'minute')
    HOUR = (0, 23, 'hour')
    DAY_OF_MONTH = (1, 31, 'dayOfMonth')
    MONTH = (1, 12, 'month')
    DAY_OF_WEEK = (0, 6, 'dayOfWeek')  # 0 or 7 is Sunday

    def __init__(self, min_value: int, max_value: int, description: str) -> None:
        self.min = min_value
        self.max = max_value
        self.description = description

    @property
    def replacements(self) -> tuple[tuple[re.Pattern[str], str], ...]:
        """Alias patterns and their numeric replacements (empty for most fields)."""
        return _REPLACEMENTS.get(self.description, ())

    def interval(self) -> Interval:
        """Return an empty interval spanning this field's bounds."""
        from cronus.core.models.interval import IntervalBuilder

        return IntervalBuilder(self.min, self.max).build()

    def validate(self, interval: Interval) -> Interval:
        """Ensure the interval was built for this field's bounds."""
        if interval.min != self.min:
            raise ValueError(
                f'Expected interval minimum to be {self.min} but was {interval.min}'
            )
        if interval.max != self.max:
            raise ValueError(
                f'Expected interval maximum to be {self.max} but was {interval.max}'
            )
        return interval

    def substitute_end_range(self, value: int) -> int:
        """Fold a day-of-week range endpoint of 7 (Sunday) onto 6."""
        if self is TimeField.DAY_OF_WEEK and value == 7:
            return 6
        return value

    def substitute_value(self, value: int) -> int:
        """Fold a day-of-week literal 7 (Sunday) onto 0."""
        if self is TimeField.DAY_OF_WEEK and value == 7:
            return 0
        return value

    def replace_constants(self, text: str) -> str:
        """Substitute month/weekday names with their numeric values."""
        for pattern, replacement in self.replacements:
            text = pattern.sub(replacement, text)
        return text


CRON_FIELDS: tuple[TimeField, ...] = tuple(TimeField)
