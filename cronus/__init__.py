"""Cronus - cron patterns and a daylight-saving aware scheduler"""

# Install Rust-style error handler on import
from .core.errors import install_error_handler as _install_error_handler

_install_error_handler()

from .core.types.fields import TimeField, CRON_FIELDS
from .core.models.interval import Interval, IntervalBuilder
from .core.models.pattern import CronPattern
from .core.models.scheduler import SchedulerConfig
from .core.parser import parse_pattern as parse, print_pattern
from .core.scheduler import (
    CronFuture,
    CronScheduler,
    ScheduledExecutor,
    ScheduledTask,
    SchedulerState,
)
from .core.errors import (
    ErrorCode,
    CronusError,
    PatternParseError,
    ConfigurationError,
    SchedulerStateError,
    RejectedExecutionError,
    ValidationReport,
    MultipleValidationErrors,
)

__all__ = [
    # Patterns
    'TimeField',
    'CRON_FIELDS',
    'Interval',
    'IntervalBuilder',
    'CronPattern',
    'parse',
    'print_pattern',
    # Scheduling
    'SchedulerConfig',
    'CronFuture',
    'CronScheduler',
    'ScheduledExecutor',
    'ScheduledTask',
    'SchedulerState',
    # Errors
    'ErrorCode',
    'CronusError',
    'PatternParseError',
    'ConfigurationError',
    'SchedulerStateError',
    'RejectedExecutionError',
    'ValidationReport',
    'MultipleValidationErrors',
]
