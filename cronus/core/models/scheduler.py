# cronus/core/models/scheduler.py
from __future__ import annotations
from typing import Any, Callable, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing_extensions import Self
from cronus.core.defaults import (
    DEFAULT_POOL_SIZE,
    DEFAULT_SHUTDOWN_WAIT_SECONDS,
    DEFAULT_THREAD_NAME_PREFIX,
    DEFAULT_TIMEZONE,
)
from cronus.core.errors import (
    ConfigurationError,
    ErrorCode,
    ValidationReport,
    raise_collected,
)
from cronus.core.utils.zones import resolve_timezone


class SchedulerConfig(BaseModel):
    """
    Configuration for CronScheduler.from_config.

    Fields:
        - pool_size: Worker threads running fired actions (>= 1)
        - shutdown_wait_seconds: Grace period for running actions on shut_down
        - remove_on_cancel: Drop cancelled timers from the queue immediately
        - continue_after_shutdown: Keep firing already-armed timers after shutdown
        - thread_name_prefix: Prefix for worker and timer thread names
        - thread_initializer: Called once in each worker thread before its first task
        - rejection_handler: Called with (fn, executor) when a submission is refused
        - timezone: IANA zone used to compute "now" for patterns
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    pool_size: int = Field(
        default=DEFAULT_POOL_SIZE, ge=1, description='Worker thread count'
    )
    shutdown_wait_seconds: float = Field(
        default=DEFAULT_SHUTDOWN_WAIT_SECONDS,
        ge=0,
        description='Seconds to wait for running actions on shutdown',
    )
    remove_on_cancel: bool = Field(
        default=True, description='Remove cancelled timers from the queue'
    )
    continue_after_shutdown: bool = Field(
        default=False, description='Run already-armed timers after shutdown'
    )
    thread_name_prefix: str = Field(
        default=DEFAULT_THREAD_NAME_PREFIX,
        min_length=1,
        description='Thread name prefix',
    )
    thread_initializer: Optional[Callable[[], Any]] = Field(
        default=None, description='Per-thread initializer'
    )
    rejection_handler: Optional[Callable[..., Any]] = Field(
        default=None, description='Handler for refused submissions'
    )
    timezone: str = Field(
        default=DEFAULT_TIMEZONE, description='Timezone for pattern evaluation'
    )

    @model_validator(mode='after')
    def validate_scheduler_config(self) -> Self:
        """Check the timezone resolves and the shutdown policy is coherent."""
        report = ValidationReport('config')
        try:
            resolve_timezone(self.timezone)
        except ValueError as e:
            report.add(
                ConfigurationError(
                    message=f"invalid timezone '{self.timezone}'",
                    code=ErrorCode.CONFIG_INVALID_TIMEZONE,
                    notes=[str(e)],
                    help_text="use an IANA zone name such as 'UTC' or 'America/New_York'",
                )
            )
        if self.continue_after_shutdown and self.shutdown_wait_seconds == 0:
            report.add(
                ConfigurationError(
                    message='continue_after_shutdown requires a shutdown wait',
                    code=ErrorCode.CONFIG_INVALID_SHUTDOWN,
                    notes=[
                        'timers kept alive after shutdown are cancelled immediately '
                        'when shutdown_wait_seconds is 0',
                    ],
                    help_text='set shutdown_wait_seconds > 0 or disable continue_after_shutdown',
                )
            )
        raise_collected(report)
        return self
