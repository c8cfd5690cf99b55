"""
Tests for interval validation and timer scheduling.
"""
import asyncio
import math

import pytest

from config.settings import Settings, settings
from promise_keeper import (
    DEFAULT_KEEP_FRESH_INTERVAL,
    LoopScheduler,
    RecurringTimer,
    get_keep_fresh_interval,
    is_valid_interval,
)


# =============================================================================
# Intervals
# =============================================================================

@pytest.mark.parametrize("interval", [0.001, 1, 2.5, 1800])
def test_valid_intervals(interval):
    assert is_valid_interval(interval)


@pytest.mark.parametrize("interval", [0, -1, -0.5, math.nan, math.inf, None, "5", True, False])
def test_invalid_intervals(interval):
    assert not is_valid_interval(interval)


def test_explicit_interval_is_returned_untouched():
    assert get_keep_fresh_interval(-1) == -1
    assert get_keep_fresh_interval(12) == 12


def test_default_interval_from_settings(monkeypatch):
    monkeypatch.setattr(settings, "keep_fresh_interval_seconds", 60.0)
    assert get_keep_fresh_interval() == 60.0


def test_default_interval_is_thirty_minutes():
    assert DEFAULT_KEEP_FRESH_INTERVAL == 1800
    assert Settings().keep_fresh_interval_seconds == 1800.0


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("PROMISE_KEEPER_KEEP_FRESH_INTERVAL_SECONDS", "90")
    monkeypatch.setenv("PROMISE_KEEPER_ISOLATE_PURGED_INVOCATIONS", "true")

    configured = Settings()

    assert configured.keep_fresh_interval_seconds == 90.0
    assert configured.isolate_purged_invocations is True


@pytest.mark.parametrize("value", ["0", "-5", "nan"])
def test_settings_reject_invalid_interval(monkeypatch, value):
    monkeypatch.setenv("PROMISE_KEEPER_KEEP_FRESH_INTERVAL_SECONDS", value)
    with pytest.raises(ValueError):
        Settings()


# =============================================================================
# RecurringTimer
# =============================================================================

def test_recurring_timer_ticks_every_interval(scheduler):
    ticks = []
    timer = RecurringTimer(scheduler, 3, lambda: ticks.append(scheduler.now)).start()

    scheduler.advance(10)

    assert ticks == [3, 6, 9]
    assert timer.ticks == 3
    assert timer.active


def test_recurring_timer_cancel(scheduler):
    ticks = []
    timer = RecurringTimer(scheduler, 1, lambda: ticks.append(1)).start()

    scheduler.advance(2)
    timer.cancel()
    scheduler.advance(5)

    assert len(ticks) == 2
    assert not timer.active
    assert scheduler.active == []


def test_recurring_timer_survives_failing_callback(scheduler, caplog):
    calls = []

    def flaky():
        calls.append(1)
        raise RuntimeError("tick failed")

    RecurringTimer(scheduler, 1, flaky, name="flaky").start()
    scheduler.advance(3)

    assert len(calls) == 3
    assert "Background tick failed for flaky" in caplog.text


def test_cancelled_tick_does_not_run(scheduler):
    calls = []
    timer = RecurringTimer(scheduler, 1, lambda: calls.append(1)).start()
    pending = scheduler.active[0]

    timer.cancel()
    pending.callback()

    assert calls == []


# =============================================================================
# LoopScheduler
# =============================================================================

@pytest.mark.asyncio
async def test_loop_scheduler_runs_callback():
    fired = asyncio.Event()

    LoopScheduler().call_later(0.01, fired.set)

    await asyncio.wait_for(fired.wait(), timeout=1.0)


@pytest.mark.asyncio
async def test_loop_scheduler_cancel():
    calls = []

    handle = LoopScheduler().call_later(0.01, lambda: calls.append(1))
    handle.cancel()
    await asyncio.sleep(0.03)

    assert calls == []


@pytest.mark.asyncio
async def test_loop_scheduler_with_explicit_loop():
    loop = asyncio.get_running_loop()
    fired = asyncio.Event()

    LoopScheduler(loop).call_later(0, fired.set)

    await asyncio.wait_for(fired.wait(), timeout=1.0)


def test_loop_scheduler_requires_running_loop():
    with pytest.raises(RuntimeError):
        LoopScheduler().call_later(1, lambda: None)
