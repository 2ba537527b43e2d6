"""Shared default constants for the cronus library."""

# Worker threads running fired actions.
DEFAULT_POOL_SIZE: int = 1

# How long shut_down() waits for running actions before forcing the executor down.
DEFAULT_SHUTDOWN_WAIT_SECONDS: float = 0.0

# Worker threads are named '<prefix>_<n>', the timer thread '<prefix>-timer'.
DEFAULT_THREAD_NAME_PREFIX: str = 'cronus-worker'

# Zone used to compute "now" for scheduled patterns.
DEFAULT_TIMEZONE: str = 'UTC'
