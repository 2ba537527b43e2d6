# cronus/core/errors.py
"""
Errors raised by cronus, rendered rustc-style when they reach the top level:

    error[E003]: Unrecognized value in dayOfWeek column
      --> jobs.py:12
       |
    12| scheduler.schedule('* * * * foo', job)
       | ^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^
       |
       | * * * * foo
       |         ^^^
"""

from __future__ import annotations

import inspect
import linecache
import os
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from types import FrameType
from typing import Any, Iterator

# Frames from files below this directory belong to cronus itself.
_CRONUS_PKG_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class ErrorCode(str, Enum):
    """Stable identifiers shown as ``error[Exxx]``.

    - E001-E099: pattern text
    - E200-E299: configuration and CLI arguments
    - E300-E399: scheduler lifecycle
    """

    PATTERN_COLUMN_COUNT = 'E001'
    PATTERN_WILDCARD_SYNTAX = 'E002'
    PATTERN_UNRECOGNIZED_VALUE = 'E003'
    PATTERN_INVALID_VALUE = 'E004'

    CONFIG_INVALID_TIMEZONE = 'E200'
    CONFIG_INVALID_SHUTDOWN = 'E201'
    CLI_INVALID_ARGS = 'E202'

    SCHEDULER_TERMINATED = 'E300'


@dataclass(frozen=True)
class _Palette:
    reset: str = ''
    bold: str = ''
    dim: str = ''
    red: str = ''
    green: str = ''
    blue: str = ''
    cyan: str = ''


_PLAIN = _Palette()
_ANSI = _Palette(
    reset='\033[0m',
    bold='\033[1m',
    dim='\033[2m',
    red='\033[91m',
    green='\033[92m',
    blue='\033[94m',
    cyan='\033[96m',
)


def _palette(use_colors: bool | None) -> _Palette:
    if use_colors is None:
        use_colors = _should_use_colors()
    return _ANSI if use_colors else _PLAIN


def _env_flag(name: str) -> bool:
    return os.environ.get(name, '').strip().lower() in ('1', 'true', 'yes')


def _should_use_colors() -> bool:
    """CRONUS_FORCE_COLOR wins, then NO_COLOR, then whether stderr is a terminal."""
    if _env_flag('CRONUS_FORCE_COLOR'):
        return True
    if 'NO_COLOR' in os.environ:
        return False
    isatty = getattr(sys.stderr, 'isatty', None)
    return bool(isatty and isatty())


def _should_show_verbose() -> bool:
    """CRONUS_VERBOSE appends the Python traceback to formatted errors."""
    return _env_flag('CRONUS_VERBOSE')


def _should_use_plain_errors() -> bool:
    """CRONUS_PLAIN_ERRORS leaves error display to the default excepthook."""
    return _env_flag('CRONUS_PLAIN_ERRORS')


@dataclass
class SourceLocation:
    """A line (and optionally a column span) in a source file."""

    file: str
    line: int
    column: int | None = None
    end_column: int | None = None

    @classmethod
    def from_frame(cls, frame: FrameType) -> SourceLocation:
        return cls(frame.f_code.co_filename, frame.f_lineno)

    def get_source_line(self) -> str | None:
        """The text of the line, or None when the file cannot be read."""
        text = linecache.getline(self.file, self.line)
        if not text:
            return None
        return text.rstrip('\n')

    def format_short(self) -> str:
        parts = [self.file, str(self.line)]
        if self.column is not None:
            parts.append(str(self.column))
        return ':'.join(parts)

    def underline(self, source_line: str) -> str:
        """Carets under the column span, or under the whole statement."""
        if self.column is None:
            body = source_line.lstrip()
            return ' ' * (len(source_line) - len(body)) + '^' * len(body)
        end = self.end_column if self.end_column else self.column + 1
        return ' ' * self.column + '^' * max(1, end - self.column)


@dataclass
class CronusError(Exception):
    """Base class for errors cronus reports with a code, location, notes and help.

    When no location is passed, the first caller outside cronus is recorded,
    so the snippet points at user code rather than library internals.
    """

    message: str
    code: ErrorCode | None = None
    location: SourceLocation | None = None
    notes: list[str] = field(default_factory=list)
    help_text: str | None = None

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)
        if self.location is None:
            caller = _find_user_frame()
            if caller is not None:
                self.location = SourceLocation.from_frame(caller)

    def with_note(self, note: str) -> CronusError:
        self.notes.append(note)
        return self

    def with_help(self, help_text: str) -> CronusError:
        self.help_text = help_text
        return self

    def _header(self, p: _Palette) -> str:
        code = f'[{self.code.value}]' if self.code is not None else ''
        return f'{p.bold}{p.red}error{code}:{p.reset} {self.message}'

    def _snippet_lines(self, p: _Palette) -> list[str]:
        """``-->`` pointer and the underlined source line, when known."""
        if self.location is None:
            return []
        out = [f'  {p.blue}-->{p.reset} {p.cyan}{self.location.format_short()}{p.reset}']
        source_line = self.location.get_source_line()
        if source_line:
            number = str(self.location.line)
            gutter = f'   {p.blue}{" " * len(number)}|{p.reset}'
            out.append(gutter)
            out.append(f'   {p.blue}{number}|{p.reset} {source_line}')
            out.append(f'{gutter} {p.red}{self.location.underline(source_line)}{p.reset}')
        return out

    def _trailer_lines(self, p: _Palette) -> Iterator[str]:
        for note in self.notes:
            first, *rest = note.split('\n')
            yield f'   {p.blue}={p.reset} {p.bold}{p.blue}note{p.reset}: {first}'
            for continuation in rest:
                yield ' ' * 10 + continuation
        if self.help_text:
            yield ''
            yield f'   {p.blue}={p.reset} {p.bold}{p.green}help{p.reset}:'
            for text in self.help_text.split('\n'):
                yield ' ' * 8 + text

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        """Render the error; colors follow the environment unless forced."""
        p = _palette(use_colors)
        lines = ['', self._header(p), *self._snippet_lines(p), *self._trailer_lines(p)]
        return '\n'.join(lines)

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


_original_excepthook = sys.excepthook


def _cronus_excepthook(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_tb: Any,
) -> None:
    """Print uncaught CronusErrors rustc-style; defer everything else."""
    if _should_use_plain_errors() or not isinstance(exc_value, CronusError):
        _original_excepthook(exc_type, exc_value, exc_tb)
        return

    print(exc_value.format_rust_style(), file=sys.stderr)
    if not _should_show_verbose():
        return
    p = _palette(None)
    print(f'\n{p.dim}Full traceback (CRONUS_VERBOSE=1):{p.reset}', file=sys.stderr)
    traceback.print_exception(exc_type, exc_value, exc_tb, file=sys.stderr)


def install_error_handler() -> None:
    sys.excepthook = _cronus_excepthook


def uninstall_error_handler() -> None:
    sys.excepthook = _original_excepthook


# =============================================================================
# Error types
# =============================================================================


@dataclass
class PatternParseError(CronusError):
    """Cron text that does not parse.

    ``offset`` is the zero-based start of the offending column in the
    stripped pattern text; ``column`` names that column.
    """

    pattern: str = ''
    offset: int = 0
    column: str | None = None

    @property
    def error_offset(self) -> int:
        return self.offset

    def _caret_width(self) -> int:
        token = self.pattern[self.offset:].split(maxsplit=1)
        if self.column is None or not token:
            return 1
        return len(token[0])

    def _snippet_lines(self, p: _Palette) -> list[str]:
        carets = ' ' * self.offset + '^' * self._caret_width()
        return [
            *super()._snippet_lines(p),
            f'   {p.blue}|{p.reset}',
            f'   {p.blue}|{p.reset} {self.pattern}',
            f'   {p.blue}|{p.reset} {p.red}{carets}{p.reset}',
        ]


@dataclass
class ConfigurationError(CronusError):
    """Invalid SchedulerConfig values or CLI arguments."""


@dataclass
class SchedulerStateError(CronusError):
    """A scheduler used after it has been shut down."""


class RejectedExecutionError(RuntimeError):
    """The executor refused a submission (it has been shut down)."""


# =============================================================================
# Collecting several errors before raising
# =============================================================================


class ValidationReport:
    """Errors gathered during one validation phase, reported together."""

    def __init__(self, phase_name: str) -> None:
        self.phase_name = phase_name
        self.errors: list[CronusError] = []

    def add(self, error: CronusError) -> None:
        self.errors.append(error)

    def has_errors(self) -> bool:
        return bool(self.errors)

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        p = _palette(use_colors)
        rendered = [e.format_rust_style(use_colors=p is _ANSI) for e in self.errors]
        summary = f'{p.bold}{p.red}error{p.reset}: aborting due to {len(self.errors)} previous errors'
        return '\n'.join([*rendered, '', summary])

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


@dataclass
class MultipleValidationErrors(CronusError):
    """Two or more errors from one ValidationReport.

    Each collected error keeps its own location, so none is detected here.
    """

    report: ValidationReport = field(default_factory=lambda: ValidationReport(''))

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f'aborting due to {len(self.report.errors)} previous errors'
        Exception.__init__(self, self.message)

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        return self.report.format_rust_style(use_colors=use_colors)

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


def raise_collected(report: ValidationReport) -> None:
    """Raise nothing, the single error as itself, or MultipleValidationErrors."""
    match report.errors:
        case []:
            return
        case [only]:
            raise only
        case errors:
            raise MultipleValidationErrors(
                message=f'aborting due to {len(errors)} previous errors',
                report=report,
            )


def _find_user_frame() -> FrameType | None:
    """Innermost frame that is neither synthetic nor cronus/site-packages code."""
    frame = inspect.currentframe()
    while frame is not None:
        filename = frame.f_code.co_filename
        internal = (
            filename.startswith('<')
            or filename.startswith(_CRONUS_PKG_DIR)
            or f'{os.sep}site-packages{os.sep}' in filename
        )
        if not internal:
            return frame
        frame = frame.f_back
    return None
