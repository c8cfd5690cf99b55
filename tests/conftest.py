"""
Shared fixtures: a manual-clock scheduler and a gated async producer.
"""
import asyncio
from typing import Callable, List

import pytest


class FakeHandle:
    """Timer handle recorded by FakeScheduler."""

    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Scheduler whose clock only moves when advance() is called."""

    def __init__(self):
        self.now = 0.0
        self.handles: List[FakeHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def active(self) -> List[FakeHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self.active if h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self.now = handle.when
            handle.fired = True
            handle.callback()
        self.now = target


class GatedProducer:
    """
    Producer returning a future per call that the test resolves by hand.
    """

    def __init__(self):
        self.gates: List[asyncio.Future] = []

    @property
    def calls(self) -> int:
        return len(self.gates)

    def __call__(self) -> asyncio.Future:
        gate = asyncio.get_running_loop().create_future()
        self.gates.append(gate)
        return gate

    def resolve(self, index: int, value) -> None:
        self.gates[index].set_result(value)

    def fail(self, index: int, error: Exception) -> None:
        self.gates[index].set_exception(error)


@pytest.fixture
def scheduler():
    """Manual-clock scheduler."""
    return FakeScheduler()


@pytest.fixture
def producer():
    """Gated producer; call N resolves when the test says so."""
    return GatedProducer()
