"""Time sources used to timestamp overlays and drive the crossfade timer.

Overlays and the crossfade scheduler never read the wall clock or arm timers
directly. They receive a Clock, which provides the current time as epoch
milliseconds and a way to run a callback later. SystemClock is the real
implementation backed by the running asyncio loop; ManualClock advances only
when told to, which makes scheduler behaviour deterministic in tests.

Example:
    Drive a callback with a manual clock:
        >>> from crepuscule.core.clock import ManualClock
        >>> clock = ManualClock(start=1_700_000_000_000)
        >>> fired = []
        >>> clock.call_later(1000, lambda: fired.append(clock.now()))
        >>> clock.advance(1000)
        >>> fired
        [1700000001000]
"""

from __future__ import annotations

import asyncio
import dataclasses
import heapq
import itertools
import time
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable


class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled before it fires."""

    def cancel(self) -> None: ...


class Clock(Protocol):
    """Protocol interface for a time source with delayed callbacks."""

    def now(self) -> int: ...

    def call_later(
        self,
        delay_ms: int,
        callback: Callable[[], None],
    ) -> TimerHandle: ...


class SystemClock(Clock):
    """Wall-clock time with timers armed on the running asyncio loop.

    ``call_later`` must be invoked from a thread running an event loop, or a
    loop must be supplied at construction.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def now(self) -> int:
        return time.time_ns() // 1_000_000

    def call_later(
        self,
        delay_ms: int,
        callback: Callable[[], None],
    ) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay_ms / 1000, callback)


@dataclasses.dataclass
class _ManualTimer:
    due: int
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock(Clock):
    """Deterministic clock whose time only moves through ``advance``.

    Timers fire in due order; timers due at the same instant fire in the
    order they were armed. A callback may arm further timers, which fire
    within the same ``advance`` call if they fall due before its end.
    """

    def __init__(self, start: int = 0) -> None:
        """Initialize the clock at ``start`` epoch milliseconds."""
        self._now = start
        self._queue: list[tuple[int, int, _ManualTimer]] = []
        self._sequence = itertools.count()

    def now(self) -> int:
        return self._now

    def call_later(
        self,
        delay_ms: int,
        callback: Callable[[], None],
    ) -> TimerHandle:
        timer = _ManualTimer(due=self._now + max(0, int(delay_ms)),
                             callback=callback)
        heapq.heappush(self._queue, (timer.due, next(self._sequence), timer))
        return timer

    def advance(self, delta_ms: int) -> None:
        """Move time forward by ``delta_ms`` and run every timer due.

        Args:
            delta_ms: Milliseconds to advance; must not be negative.

        Raises:
            ValueError: If ``delta_ms`` is negative.
        """
        if delta_ms < 0:
            raise ValueError("a clock cannot go backwards")
        target = self._now + delta_ms
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = due
            timer.callback()
        self._now = target

    @property
    def pending(self) -> int:
        """Number of armed timers that have not been cancelled."""
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)
