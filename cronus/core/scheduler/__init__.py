# cronus/core/scheduler/__init__.py
"""
Scheduler module for firing actions on cron patterns.

Main components:
- CronScheduler: Runs actions whenever their pattern matches
- ScheduledExecutor: Delayed execution on a worker thread pool
- CronFuture: Cancellable handle for one scheduled pattern

Example usage:
    from cronus.core.scheduler import CronScheduler, ScheduledExecutor

    scheduler = CronScheduler(ScheduledExecutor(pool_size=2))
    handle = scheduler.schedule('0 * * * *', rotate_logs)
    scheduler.start_up()
"""

from cronus.core.scheduler.executor import ScheduledExecutor, ScheduledTask
from cronus.core.scheduler.handles import CronFuture
from cronus.core.scheduler.service import BufferState, CronScheduler, SchedulerState

__all__ = [
    'BufferState',
    'CronFuture',
    'CronScheduler',
    'ScheduledExecutor',
    'ScheduledTask',
    'SchedulerState',
]
