# cronus/core/scheduler/service.py
from __future__ import annotations
import contextlib
import threading
from concurrent.futures import InvalidStateError
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from enum import Enum
from functools import partial
from typing import Any, Callable, Optional, Union
from cronus.core.defaults import DEFAULT_TIMEZONE
from cronus.core.errors import ErrorCode, RejectedExecutionError, SchedulerStateError
from cronus.core.logging import get_logger
from cronus.core.models.pattern import CronPattern
from cronus.core.models.scheduler import SchedulerConfig
from cronus.core.scheduler.executor import ScheduledExecutor, ScheduledTask
from cronus.core.scheduler.handles import CronFuture, _TaskRecord, _TaskTable
from cronus.core.utils.zones import resolve_timezone

logger = get_logger('scheduler')


class SchedulerState(str, Enum):
    """Lifecycle of a CronScheduler. Transitions only move forward."""

    NEW = 'new'
    RUNNING = 'running'
    TERMINATED = 'terminated'


class BufferState(str, Enum):
    """Lifecycle of the pre-start buffer."""

    BUFFERING = 'buffering'
    DRAINING = 'draining'
    DRAINED = 'drained'


@dataclass(frozen=True)
class _Runnable:
    key: CronFuture
    pattern: CronPattern
    action: Callable[[], Any]
    stop_on_failure: bool


class CronScheduler:
    """
    Fire actions at the instants a cron pattern matches.

    Responsibilities:
    1. Buffer schedules registered before start_up()
    2. Keep exactly one armed timer per schedule, re-armed before each action runs
    3. Apply the failure policy of each schedule
    4. Tear everything down on cancellation or shut_down()

    Example usage:
        with CronScheduler.from_config(SchedulerConfig(pool_size=4)) as scheduler:
            handle = scheduler.schedule('*/5 * * * *', refresh_cache)
            ...
            handle.cancel()
    """

    def __init__(
        self,
        executor: ScheduledExecutor,
        shutdown_wait: timedelta = timedelta(0),
        timezone: Union[str, tzinfo] = DEFAULT_TIMEZONE,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if executor is None:
            raise ValueError('executor argument must be non-null')
        if shutdown_wait is None or shutdown_wait < timedelta(0):
            raise ValueError(f'shutdown_wait must be >= 0, got {shutdown_wait}')
        self._executor = executor
        self._shutdown_wait = shutdown_wait
        self._tz = resolve_timezone(timezone)
        self._clock = clock if clock is not None else self._wall_clock
        self._tasks = _TaskTable()
        self._buffer: dict[CronFuture, _Runnable] = {}
        self._buffer_state = BufferState.BUFFERING
        self._buffer_lock = threading.Lock()
        self._state = SchedulerState.NEW
        self._state_lock = threading.RLock()

    @classmethod
    def from_config(cls, config: SchedulerConfig) -> CronScheduler:
        """Build a scheduler and its executor from a validated config."""
        executor = ScheduledExecutor(
            config.pool_size,
            thread_name_prefix=config.thread_name_prefix,
            initializer=config.thread_initializer,
            rejection_handler=config.rejection_handler,
            remove_on_cancel=config.remove_on_cancel,
            continue_after_shutdown=config.continue_after_shutdown,
        )
        return cls(
            executor,
            shutdown_wait=timedelta(seconds=config.shutdown_wait_seconds),
            timezone=config.timezone,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        with self._state_lock:
            return self._state

    @property
    def executor(self) -> ScheduledExecutor:
        return self._executor

    @property
    def timezone(self) -> tzinfo:
        return self._tz

    def scheduled_count(self) -> int:
        """Live schedules plus those still waiting in the pre-start buffer."""
        with self._buffer_lock:
            buffered = len(self._buffer)
        return len(self._tasks) + buffered

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule(
        self,
        pattern: Union[CronPattern, str],
        action: Callable[[], Any],
        stop_on_failure: bool = False,
    ) -> CronFuture:
        """
        Run ``action`` every time ``pattern`` matches.

        Args:
            pattern: A CronPattern or cron text
            action: Zero-argument callable, run on a worker thread
            stop_on_failure: If True, the first exception completes the
                handle exceptionally and stops further firings. Otherwise
                the exception is logged and firing continues.

        Returns:
            A CronFuture; cancel it to stop the schedule.

        Raises:
            PatternParseError: If ``pattern`` is text that does not parse
            SchedulerStateError: If the scheduler has been shut down
        """
        if pattern is None:
            raise ValueError('pattern argument must be non-null')
        if action is None:
            raise ValueError('action argument must be non-null')
        if not callable(action):
            raise TypeError(f'action must be callable, got {type(action).__name__}')
        if isinstance(pattern, str):
            pattern = CronPattern.build(pattern)

        with self._state_lock:
            if self._state is SchedulerState.TERMINATED:
                raise SchedulerStateError(
                    message='cannot schedule on a scheduler that has been shut down',
                    code=ErrorCode.SCHEDULER_TERMINATED,
                    notes=[f'pattern: {pattern}'],
                    help_text='create a new CronScheduler to schedule more work',
                )

        key = CronFuture(pattern, on_cancel=self._cancel)
        runnable = _Runnable(key, pattern, action, stop_on_failure)
        with self._buffer_lock:
            if self._buffer_state is BufferState.BUFFERING:
                self._buffer[key] = runnable
                logger.debug(f"Buffered pattern '{pattern}' until start-up")
                return key
        self._submit_initial(runnable)
        return key

    def _wall_clock(self) -> datetime:
        return datetime.now(self._tz)

    def _now(self) -> datetime:
        return self._clock().astimezone(self._tz).replace(second=0, microsecond=0)

    def _submit(
        self,
        runnable: _Runnable,
        inclusive: bool,
        after: Optional[datetime] = None,
    ) -> Optional[ScheduledTask]:
        """Arm a timer for the next occurrence. None if the pattern never fires."""
        start = self._now()
        if after is not None and after.timestamp() > start.timestamp():
            start = after
        fire_at = runnable.pattern.next(start, inclusive)
        if fire_at is None:
            return None
        delay = fire_at.timestamp() - self._clock().timestamp()
        logger.debug(
            f"Pattern '{runnable.pattern}' next fires at {fire_at.isoformat()} "
            f'(in {max(delay, 0.0):.3f}s)'
        )
        return self._executor.schedule(partial(self._fire, runnable, fire_at), delay)

    def _submit_initial(self, runnable: _Runnable) -> None:
        key = runnable.key
        if key.done():
            return

        def arm(record: Optional[_TaskRecord]) -> Optional[_TaskRecord]:
            if record is not None:
                return record
            task = self._submit(runnable, inclusive=True)
            if task is None:
                return None
            return _TaskRecord(current=task, next=task)

        try:
            record = self._tasks.compute(key, arm)
        except RejectedExecutionError as e:
            logger.warning(f"Executor refused pattern '{runnable.pattern}': {e}")
            self._complete_exceptionally(key, e)
            return
        if record is None:
            logger.warning(f"Pattern '{runnable.pattern}' is empty and will never fire")
            return
        # Cancelled after the start-up drain but before its record existed.
        if key.cancelled():
            self._cancel(key, False)

    def _fire(self, runnable: _Runnable, fire_at: datetime) -> None:
        key = runnable.key

        def rearm(record: Optional[_TaskRecord]) -> Optional[_TaskRecord]:
            if record is None:
                return None
            task = self._submit(runnable, inclusive=False, after=fire_at)
            if task is None:
                return None
            return _TaskRecord(current=record.next, next=task)

        final = False
        try:
            record = self._tasks.compute(key, rearm)
        except RejectedExecutionError:
            logger.info(
                f"Executor refused to re-arm pattern '{runnable.pattern}'; "
                'running the final occurrence'
            )
            self._tasks.pop(key)
            final = True
        else:
            if record is None:
                return

        try:
            self._run_action(runnable, fire_at)
        finally:
            if final:
                # Nothing is armed any more; release anyone waiting on the handle.
                key.cancel()

    def _run_action(self, runnable: _Runnable, fire_at: datetime) -> None:
        key = runnable.key
        try:
            runnable.action()
        except Exception as e:
            if not runnable.stop_on_failure:
                logger.warning(
                    f"Action for pattern '{runnable.pattern}' failed at "
                    f'{fire_at.isoformat()}: {e}',
                    exc_info=True,
                )
                return
            logger.error(
                f"Action for pattern '{runnable.pattern}' failed at "
                f'{fire_at.isoformat()}; stopping schedule: {e}',
            )
            stale = self._tasks.pop(key)
            if stale is not None:
                stale.cancel()
            self._complete_exceptionally(key, e)

    @staticmethod
    def _complete_exceptionally(key: CronFuture, exc: BaseException) -> None:
        # Cancelled concurrently; cancellation wins.
        with contextlib.suppress(InvalidStateError):
            key.set_exception(exc)

    def _cancel(self, key: CronFuture, may_interrupt: bool) -> None:
        with self._buffer_lock:
            if self._buffer.pop(key, None) is not None:
                return
        record = self._tasks.pop(key)
        if record is not None:
            record.cancel(may_interrupt)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_up(self) -> None:
        """Submit buffered schedules. Only the first call has an effect."""
        with self._state_lock:
            if self._state is not SchedulerState.NEW:
                return
            self._state = SchedulerState.RUNNING

        with self._buffer_lock:
            self._buffer_state = BufferState.DRAINING
            pending, self._buffer = self._buffer, {}

        logger.info(f'Scheduler starting with {len(pending)} buffered schedule(s)')
        try:
            for runnable in pending.values():
                try:
                    self._submit_initial(runnable)
                except Exception as e:
                    logger.error(
                        f"Could not arm pattern '{runnable.pattern}': {e}",
                        exc_info=True,
                    )
                    self._complete_exceptionally(runnable.key, e)
        finally:
            with self._buffer_lock:
                self._buffer_state = BufferState.DRAINED

    def shut_down(self) -> None:
        """
        Stop firing. Running actions get up to ``shutdown_wait`` to finish
        before the executor is forced down. Every outstanding handle is
        cancelled. Idempotent.
        """
        with self._state_lock:
            if self._state is SchedulerState.TERMINATED:
                return
            self._state = SchedulerState.TERMINATED

        with self._buffer_lock:
            buffered = list(self._buffer)
            self._buffer.clear()
            self._buffer_state = BufferState.DRAINED
        for key in buffered:
            key.cancel()

        logger.info(f'Scheduler shutting down ({len(self._tasks)} live schedule(s))')
        try:
            self._executor.shutdown()
            wait_seconds = self._shutdown_wait.total_seconds()
            if wait_seconds > 0:
                try:
                    if not self._executor.await_termination(wait_seconds):
                        logger.info(
                            f'Executor still busy after {wait_seconds}s; forcing shutdown'
                        )
                except KeyboardInterrupt:
                    logger.info('Interrupted while waiting for running actions')
                    raise
        finally:
            self._executor.shutdown_now()
            for key, record in self._tasks.drain():
                record.cancel()
                key.cancel()
            logger.info('Scheduler stopped')

    def __enter__(self) -> CronScheduler:
        self.start_up()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shut_down()
