# cronus/core/parser.py
"""
Conversion between cron text and CronPattern.

Grammar: five whitespace-separated columns (minute, hour, dayOfMonth,
month, dayOfWeek). Each column is a comma-separated list of buckets:

    *          every value of the field
    */n        every n-th value of the field
    a-b        inclusive range
    a-b/n      every n-th value of an inclusive range
    a          single value

Month and weekday names (jan..dec, mon..sun) are accepted case-insensitively.
Use ``CronPattern.build`` rather than calling ``parse_pattern`` directly.
"""

from __future__ import annotations

import re

from cronus.core.errors import ErrorCode, PatternParseError
from cronus.core.models.interval import IntervalBuilder
from cronus.core.models.pattern import CronPattern
from cronus.core.types.fields import CRON_FIELDS, TimeField

_COLUMN = re.compile(r'\S+')
_RANGE = re.compile(r'([0-9]+)-([0-9]+)')
_RANGE_INCREMENT = re.compile(r'([0-9]+)-([0-9]+)/([0-9]+)')
_NUMBER = re.compile(r'[0-9]+')


def print_pattern(pattern: CronPattern) -> str:
    """
    Render a pattern in canonical form.

    Full fields print as ``*``; otherwise enabled values are collapsed into
    maximal runs (``a`` or ``a-b``). The output re-parses to an equal
    pattern but need not match the original text.
    """
    if pattern is None:
        raise ValueError('pattern argument must be non-null')
    components: list[str] = []
    for time_field in CRON_FIELDS:
        interval = pattern.get_interval(time_field)
        if interval.is_full():
            components.append('*')
            continue
        sections: list[str] = []
        current = time_field.min
        while current <= time_field.max:
            while current <= time_field.max and not interval.test(current):
                current += 1
            if current > time_field.max:
                break
            start = current
            while current <= time_field.max and interval.test(current):
                current += 1
            end = current - 1
            sections.append(str(start) if start == end else f'{start}-{end}')
        components.append(','.join(sections))
    return ' '.join(components)


def _parse_bucket(
    builder: IntervalBuilder,
    time_field: TimeField,
    bucket: str,
    text: str,
    offset: int,
) -> None:
    if bucket.startswith('*'):
        if '*' in bucket[1:]:
            raise PatternParseError(
                message=f'wildcard syntax error in {time_field.description} column',
                code=ErrorCode.PATTERN_WILDCARD_SYNTAX,
                pattern=text,
                offset=offset,
                column=time_field.description,
            )
        bucket = f'{time_field.min}-{time_field.max}{bucket[1:]}'

    try:
        if match := _RANGE.fullmatch(bucket):
            builder.set_range(
                int(match.group(1)),
                time_field.substitute_end_range(int(match.group(2))),
                True,
            )
        elif match := _RANGE_INCREMENT.fullmatch(bucket):
            builder.set_range(
                int(match.group(1)),
                time_field.substitute_end_range(int(match.group(2))),
                True,
                step=int(match.group(3)),
            )
        elif _NUMBER.fullmatch(bucket):
            builder.set_index(time_field.substitute_value(int(bucket)), True)
        else:
            raise PatternParseError(
                message=f'Unrecognized value in {time_field.description} column',
                code=ErrorCode.PATTERN_UNRECOGNIZED_VALUE,
                pattern=text,
                offset=offset,
                column=time_field.description,
                notes=[f"bucket '{bucket}' is not *, */n, a, a-b or a-b/n"],
            )
    except ValueError as e:
        raise PatternParseError(
            message=f'{e} in {time_field.description} column',
            code=ErrorCode.PATTERN_INVALID_VALUE,
            pattern=text,
            offset=offset,
            column=time_field.description,
            help_text=f'{time_field.description} accepts values {time_field.min}-{time_field.max}',
        ) from e


def parse_pattern(text: str) -> CronPattern:
    """
    Parse cron text into a CronPattern.

    Raises:
        PatternParseError: With ``offset`` set to the start of the offending
            column in the stripped input (0 for a wrong column count).
    """
    if text is None:
        raise ValueError('pattern argument must be non-null')
    text = text.strip()
    columns = list(_COLUMN.finditer(text))
    if len(columns) != len(CRON_FIELDS):
        raise PatternParseError(
            message=f'Expected {len(CRON_FIELDS)} columns. Found {len(columns)} columns',
            code=ErrorCode.PATTERN_COLUMN_COUNT,
            pattern=text,
            offset=0,
            help_text='columns are: minute hour dayOfMonth month dayOfWeek',
        )

    intervals = []
    for time_field, column in zip(CRON_FIELDS, columns):
        builder = IntervalBuilder(time_field.min, time_field.max)
        component = time_field.replace_constants(column.group())
        for bucket in component.split(','):
            _parse_bucket(builder, time_field, bucket, text, column.start())
        intervals.append(builder.build())

    return CronPattern(*intervals, source=text)
