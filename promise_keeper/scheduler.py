"""
Timer scheduling for background refresh.

The keeper only needs "run this callback after a delay, cancelably". The
default implementation schedules on the running asyncio event loop; loop
timers never keep `asyncio.run()` alive on their own, so a forgotten
keep_fresh() does not block shutdown.
"""
import asyncio
import logging
from typing import Callable, Optional, Protocol

logger = logging.getLogger("promise_keeper.scheduler")


class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled."""

    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """
    Interface for timer providers.

    Implementations:
    - LoopScheduler: asyncio event loop timers (default)
    - test doubles driven by a manual clock
    """

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run callback once after delay seconds."""
        ...


class LoopScheduler:
    """
    Schedules callbacks on an asyncio event loop.

    With no explicit loop, the running loop at scheduling time is used, so
    keep_fresh() must be called from within the loop.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class RecurringTimer:
    """
    Calls a callback every `interval` seconds until cancelled.

    The next tick is scheduled before the callback runs, so a failing
    callback does not stop the timer.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        interval: float,
        callback: Callable[[], object],
        name: str = "timer",
    ):
        self._scheduler = scheduler
        self._interval = interval
        self._callback = callback
        self._name = name
        self._handle: Optional[TimerHandle] = None
        self._cancelled = False
        self.ticks = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def active(self) -> bool:
        return self._handle is not None and not self._cancelled

    def start(self) -> "RecurringTimer":
        self._cancelled = False
        self._schedule()
        return self

    def _schedule(self) -> None:
        self._handle = self._scheduler.call_later(self._interval, self._tick)

    def _tick(self) -> None:
        if self._cancelled:
            return
        self._schedule()
        self.ticks += 1
        try:
            self._callback()
        except Exception as e:
            logger.warning(f"Background tick failed for {self._name}: {e}")

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
