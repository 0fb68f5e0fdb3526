"""Tests for the injectable clocks in crepuscule.core.clock.

ManualClock drives every scheduler test, so its ordering and cancellation
rules are pinned down here. SystemClock is exercised on a real event loop.

See Also:
    - backend/crepuscule/core/clock.py for implementation under test.
"""

from __future__ import annotations

import asyncio

import pytest

from crepuscule.core import clock as clock_module


def test_manual_clock_fires_in_due_order() -> None:
    """Test that timers fire by due time, then by arming order."""
    clock = clock_module.ManualClock(start=100)
    fired: list[tuple[str, int]] = []
    clock.call_later(50, lambda: fired.append(("late", clock.now())))
    clock.call_later(10, lambda: fired.append(("early", clock.now())))
    clock.call_later(10, lambda: fired.append(("early-2", clock.now())))

    clock.advance(100)

    assert fired == [("early", 110), ("early-2", 110), ("late", 150)]
    assert clock.now() == 200


def test_manual_clock_cancelled_timer_does_not_fire() -> None:
    """Test that a cancelled timer is skipped."""
    clock = clock_module.ManualClock()
    fired: list[int] = []
    handle = clock.call_later(10, lambda: fired.append(1))
    assert clock.pending == 1
    handle.cancel()
    assert clock.pending == 0
    clock.advance(20)
    assert fired == []


def test_manual_clock_runs_timers_armed_by_callbacks() -> None:
    """Test that a callback re-arming itself fires repeatedly within advance."""
    clock = clock_module.ManualClock()
    ticks: list[int] = []

    def tick() -> None:
        ticks.append(clock.now())
        clock.call_later(100, tick)

    clock.call_later(100, tick)
    clock.advance(350)
    assert ticks == [100, 200, 300]
    assert clock.pending == 1


def test_manual_clock_rejects_negative_advance() -> None:
    """Test that time cannot move backwards."""
    clock = clock_module.ManualClock()
    with pytest.raises(ValueError):
        clock.advance(-1)


def test_system_clock_now_is_epoch_milliseconds() -> None:
    """Test that SystemClock reports a plausible epoch millisecond count."""
    now = clock_module.SystemClock().now()
    assert now > 1_600_000_000_000


def test_system_clock_call_later_runs_on_loop() -> None:
    """Test that SystemClock arms timers on the running event loop."""

    async def scenario() -> list[str]:
        fired: list[str] = []
        clock = clock_module.SystemClock()
        clock.call_later(1, lambda: fired.append("fired"))
        cancelled = clock.call_later(1, lambda: fired.append("cancelled"))
        cancelled.cancel()
        await asyncio.sleep(0.05)
        return fired

    assert asyncio.run(scenario()) == ["fired"]
