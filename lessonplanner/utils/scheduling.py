# utils/scheduling.py
"""
Cancellable delayed callbacks, independent of any UI toolkit timer.

`Debouncer` collapses bursts of calls into one trailing call carrying the
latest value. Timing comes from a `Scheduler`; the default one runs on the
current asyncio event loop, so everything stays on a single thread.
"""

import asyncio
from typing import Any, Callable, Generic, Optional, Protocol, TypeVar

T = TypeVar("T")


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], Any]) -> Cancellable: ...


class AsyncioScheduler:
    """Schedules on the running event loop (must be called from inside it)."""

    def call_later(self, delay: float, callback: Callable[[], Any]) -> Cancellable:
        return asyncio.get_running_loop().call_later(delay, callback)


class ScheduledTask:
    """A single callback with a fixed delay that can be (re)scheduled and cancelled."""

    def __init__(self, delay: float, callback: Callable[[], Any], scheduler: Optional[Scheduler] = None):
        self.delay = delay
        self._callback = callback
        self._scheduler = scheduler or AsyncioScheduler()
        self._handle: Optional[Cancellable] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self):
        """Start the timer, cancelling a pending run first."""
        self.cancel()
        self._handle = self._scheduler.call_later(self.delay, self._run)

    def cancel(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def fire_now(self):
        """Run a pending callback immediately instead of waiting for the timer."""
        if self._handle is None:
            return
        self.cancel()
        self._callback()

    def _run(self):
        self._handle = None
        self._callback()


class Debouncer(Generic[T]):
    """Trailing-edge debounce: only the most recent value is delivered, once the delay passes quietly."""

    def __init__(self, delay: float, callback: Callable[[T], Any], scheduler: Optional[Scheduler] = None):
        self._callback = callback
        self._latest: Optional[T] = None
        self._task = ScheduledTask(delay, self._deliver, scheduler)

    @property
    def pending(self) -> bool:
        return self._task.pending

    def __call__(self, value: T):
        self._latest = value
        self._task.schedule()

    def flush(self):
        self._task.fire_now()

    def cancel(self):
        self._task.cancel()
        self._latest = None

    def _deliver(self):
        value, self._latest = self._latest, None
        self._callback(value)
