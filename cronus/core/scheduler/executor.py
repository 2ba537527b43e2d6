# cronus/core/scheduler/executor.py
from __future__ import annotations
import heapq
import itertools
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional
from cronus.core.defaults import DEFAULT_POOL_SIZE, DEFAULT_THREAD_NAME_PREFIX
from cronus.core.errors import RejectedExecutionError
from cronus.core.logging import get_logger

logger = get_logger('executor')

RejectionHandler = Callable[[Callable[[], Any], 'ScheduledExecutor'], Any]


class ScheduledTask(Future):
    """A delayed call whose result (or cancellation) is observable as a Future."""

    def __init__(
        self,
        fn: Callable[[], Any],
        deadline: float,
        executor: ScheduledExecutor,
    ) -> None:
        super().__init__()
        self._fn = fn
        self._executor = executor
        self.deadline = deadline
        self.interrupt_requested = False

    def delay_seconds(self) -> float:
        """Seconds until the task is due (negative once overdue)."""
        return self.deadline - time.monotonic()

    def cancel(self, may_interrupt: bool = False) -> bool:
        """
        Cancel the task if it has not started.

        Running tasks are never interrupted; ``may_interrupt`` is only
        recorded on the task.
        """
        self.interrupt_requested = self.interrupt_requested or may_interrupt
        cancelled = super().cancel()
        if cancelled:
            self._executor._on_cancel(self)
        return cancelled

    def _run(self) -> None:
        if not self.set_running_or_notify_cancel():
            return
        try:
            result = self._fn()
        except Exception as exc:
            self.set_exception(exc)
        else:
            self.set_result(result)


class ScheduledExecutor:
    """
    Run callables after a delay on a bounded worker pool.

    A single timer thread sleeps on a condition until the earliest deadline
    (monotonic clock) and hands due tasks to a ThreadPoolExecutor.
    """

    def __init__(
        self,
        pool_size: int = DEFAULT_POOL_SIZE,
        *,
        thread_name_prefix: str = DEFAULT_THREAD_NAME_PREFIX,
        initializer: Optional[Callable[[], Any]] = None,
        rejection_handler: Optional[RejectionHandler] = None,
        remove_on_cancel: bool = True,
        continue_after_shutdown: bool = False,
    ) -> None:
        if pool_size < 1:
            raise ValueError(f'pool_size must be >= 1, got {pool_size}')
        self.pool_size = pool_size
        self.remove_on_cancel = remove_on_cancel
        self.continue_after_shutdown = continue_after_shutdown
        self._rejection_handler = rejection_handler
        self._pool = ThreadPoolExecutor(
            max_workers=pool_size,
            thread_name_prefix=thread_name_prefix,
            initializer=initializer,
        )
        self._queue: list[tuple[float, int, ScheduledTask]] = []
        self._sequence = itertools.count()
        # Tasks handed to the pool that have not started running yet.
        self._dispatched: set[ScheduledTask] = set()
        self._active = 0
        self._shutdown = False
        self._terminated = threading.Event()
        self._condition = threading.Condition(threading.RLock())
        self._timer = threading.Thread(
            target=self._run_timer, name=f'{thread_name_prefix}-timer', daemon=True
        )
        self._timer.start()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def schedule(self, fn: Callable[[], Any], delay_seconds: float) -> ScheduledTask:
        """
        Run ``fn`` once after ``delay_seconds`` (negative delays run immediately).

        Raises:
            RejectedExecutionError: If the executor has been shut down and no
                rejection handler is configured.
        """
        if fn is None:
            raise ValueError('fn argument must be non-null')
        deadline = time.monotonic() + max(0.0, delay_seconds)
        task = ScheduledTask(fn, deadline, self)
        with self._condition:
            if not self._shutdown:
                heapq.heappush(self._queue, (deadline, next(self._sequence), task))
                self._condition.notify_all()
                return task
        return self._reject(task)

    def _reject(self, task: ScheduledTask) -> ScheduledTask:
        if self._rejection_handler is None:
            raise RejectedExecutionError('executor has been shut down')
        logger.debug('Submission refused after shutdown; calling rejection handler')
        self._rejection_handler(task._fn, self)
        # The refused task never runs.
        super(ScheduledTask, task).cancel()
        return task

    def _on_cancel(self, task: ScheduledTask) -> None:
        with self._condition:
            if self.remove_on_cancel:
                remaining = [entry for entry in self._queue if entry[2] is not task]
                if len(remaining) != len(self._queue):
                    heapq.heapify(remaining)
                    self._queue = remaining
            self._dispatched.discard(task)
            self._condition.notify_all()
            self._try_terminate()

    # ------------------------------------------------------------------
    # Timer and workers
    # ------------------------------------------------------------------

    def _has_pending(self) -> bool:
        return any(not entry[2].done() for entry in self._queue)

    def _next_due(self) -> Optional[ScheduledTask]:
        """Block until a task is due. Returns None when the timer should exit."""
        with self._condition:
            while True:
                if self._shutdown and not self._has_pending():
                    return None
                if not self._queue:
                    self._condition.wait()
                    continue
                deadline, _, task = self._queue[0]
                remaining = deadline - time.monotonic()
                if remaining > 0:
                    self._condition.wait(remaining)
                    continue
                heapq.heappop(self._queue)
                if task.done():
                    continue
                self._active += 1
                self._dispatched.add(task)
                return task

    def _run_timer(self) -> None:
        try:
            while (task := self._next_due()) is not None:
                self._pool.submit(self._run_task, task)
        except Exception:
            logger.error(
                'Timer thread failed; no further tasks will be dispatched',
                exc_info=True,
            )
        finally:
            with self._condition:
                self._try_terminate()

    def _run_task(self, task: ScheduledTask) -> None:
        with self._condition:
            self._dispatched.discard(task)
        try:
            task._run()
        finally:
            with self._condition:
                self._active -= 1
                self._try_terminate()

    def _try_terminate(self) -> None:
        # Callers hold self._condition.
        if self._terminated.is_set() or not self._shutdown:
            return
        if self._active > 0 or self._has_pending():
            return
        self._queue.clear()
        self._terminated.set()
        self._condition.notify_all()
        self._pool.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def shutdown(self) -> None:
        """
        Refuse new work. Delayed tasks that have not started are cancelled
        unless ``continue_after_shutdown`` is set; running tasks finish.
        """
        with self._condition:
            if self._shutdown:
                return
            self._shutdown = True
            dropped: list[ScheduledTask] = []
            if not self.continue_after_shutdown:
                dropped = [entry[2] for entry in self._queue]
                self._queue.clear()
            self._condition.notify_all()
        for task in dropped:
            task.cancel()
        with self._condition:
            self._try_terminate()
        logger.debug(f'Executor shut down, {len(dropped)} delayed tasks dropped')

    def shutdown_now(self) -> list[ScheduledTask]:
        """Shut down and cancel every task that has not started. Returns them."""
        with self._condition:
            self._shutdown = True
            pending = [entry[2] for entry in self._queue if not entry[2].done()]
            pending.extend(self._dispatched)
            self._queue.clear()
            self._dispatched.clear()
            self._condition.notify_all()
        for task in pending:
            task.cancel()
        with self._condition:
            self._try_terminate()
        return pending

    def await_termination(self, timeout: Optional[float] = None) -> bool:
        """Block until all work has finished after shutdown. False on timeout."""
        return self._terminated.wait(timeout)

    @property
    def is_shutdown(self) -> bool:
        with self._condition:
            return self._shutdown

    @property
    def is_terminated(self) -> bool:
        return self._terminated.is_set()

    def queue_size(self) -> int:
        """Number of delayed tasks still queued (cancelled ones included when kept)."""
        with self._condition:
            return len(self._queue)
