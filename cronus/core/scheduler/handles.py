# cronus/core/scheduler/handles.py
from __future__ import annotations
import asyncio
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Generator, Optional
from cronus.core.models.pattern import CronPattern
from cronus.core.scheduler.executor import ScheduledTask


class CronFuture(Future):
    """
    Handle returned by CronScheduler.schedule.

    The future never completes normally: ``result()`` blocks until the
    handle is cancelled, or until a stop-on-failure action raises. Cancelling
    it stops all further firings. Awaitable from asyncio code.
    """

    def __init__(
        self,
        pattern: CronPattern,
        on_cancel: Optional[Callable[[CronFuture, bool], None]] = None,
    ) -> None:
        super().__init__()
        self.pattern = pattern
        self._on_cancel = on_cancel

    def cancel(self, may_interrupt: bool = False) -> bool:
        cancelled = super().cancel()
        if cancelled and self._on_cancel is not None:
            self._on_cancel(self, may_interrupt)
        return cancelled

    def __await__(self) -> Generator[Any, None, Any]:
        return asyncio.wrap_future(self).__await__()

    def __repr__(self) -> str:
        return f'<CronFuture pattern={str(self.pattern)!r} state={self._state}>'


@dataclass(frozen=True)
class _TaskRecord:
    """The occurrence being fired and the one armed after it."""

    current: ScheduledTask
    next: ScheduledTask

    def cancel(self, may_interrupt: bool = False) -> None:
        self.current.cancel(may_interrupt)
        if self.next is not self.current:
            self.next.cancel(may_interrupt)


class _Slot:
    """One handle's record and the lock that serializes updates to it."""

    __slots__ = ('lock', 'record', 'detached')

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.record: Optional[_TaskRecord] = None
        # Set once the slot has left the table; holders must look it up again.
        self.detached = False


class _TaskTable:
    """
    Live task records keyed by their external handle.

    Each handle has its own lock, so arming one pattern never waits on
    another. The table lock only guards slot lookup and removal and is
    never held while a slot lock is being acquired.
    """

    def __init__(self) -> None:
        self._slots: dict[CronFuture, _Slot] = {}
        self._lock = threading.Lock()

    def _find(self, key: CronFuture) -> Optional[_Slot]:
        with self._lock:
            return self._slots.get(key)

    def _find_or_add(self, key: CronFuture) -> _Slot:
        with self._lock:
            slot = self._slots.get(key)
            if slot is None:
                slot = self._slots[key] = _Slot()
            return slot

    def _detach(self, key: CronFuture, slot: _Slot) -> None:
        slot.detached = True
        with self._lock:
            if self._slots.get(key) is slot:
                del self._slots[key]

    def pop(self, key: CronFuture) -> Optional[_TaskRecord]:
        while True:
            slot = self._find(key)
            if slot is None:
                return None
            with slot.lock:
                if slot.detached:
                    continue
                record, slot.record = slot.record, None
                self._detach(key, slot)
                return record

    def compute(
        self,
        key: CronFuture,
        fn: Callable[[Optional[_TaskRecord]], Optional[_TaskRecord]],
    ) -> Optional[_TaskRecord]:
        """
        Atomically replace the record for ``key`` with ``fn(current)``.

        A None result removes the entry. The key's lock is held while ``fn``
        runs, so ``fn`` must only submit timers, never run user actions.
        """
        while True:
            slot = self._find_or_add(key)
            with slot.lock:
                if slot.detached:
                    continue
                try:
                    updated = fn(slot.record)
                except BaseException:
                    if slot.record is None:
                        self._detach(key, slot)
                    raise
                if slot.detached:
                    # Popped from inside fn on this thread; the new timer has no owner.
                    if updated is not None:
                        updated.next.cancel()
                    return None
                slot.record = updated
                if updated is None:
                    self._detach(key, slot)
                return updated

    def drain(self) -> list[tuple[CronFuture, _TaskRecord]]:
        with self._lock:
            slots = list(self._slots.items())
            self._slots.clear()
        items = []
        for key, slot in slots:
            with slot.lock:
                slot.detached = True
                if slot.record is not None:
                    items.append((key, slot.record))
                    slot.record = None
        return items

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for slot in self._slots.values() if slot.record is not None)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            slot = self._slots.get(key)  # type: ignore[call-overload]
            return slot is not None and slot.record is not None
