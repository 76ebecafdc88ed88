from __future__ import annotations

import asyncio
import heapq
import itertools
from collections.abc import Callable
from typing import Optional, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Single-shot timers. ``asyncio.AbstractEventLoop`` already satisfies this shape."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class AsyncioScheduler:
    """Schedules on an asyncio event loop (the running loop unless one is given)."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class ManualTimer:
    def __init__(self, due_ms: float, callback: Callable[[], None]) -> None:
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Virtual-clock scheduler for tests and scenario replay.

    Time only moves through ``advance``/``advance_to``; due timers fire in due
    order, ties in scheduling order.
    """

    def __init__(self) -> None:
        self.now_ms: float = 0.0
        self._queue: list[tuple[float, int, ManualTimer]] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now_ms + delay * 1000.0, callback)
        heapq.heappush(self._queue, (timer.due_ms, next(self._seq), timer))
        return timer

    def advance(self, ms: float) -> int:
        return self.advance_to(self.now_ms + ms)

    def advance_to(self, target_ms: float) -> int:
        """Fire every timer due at or before ``target_ms``; returns how many fired."""
        fired = 0
        while self._queue and self._queue[0][0] <= target_ms:
            due_ms, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self.now_ms = max(self.now_ms, due_ms)
            timer.fired = True
            timer.callback()
            fired += 1
        self.now_ms = max(self.now_ms, target_ms)
        return fired

    @property
    def pending(self) -> int:
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)
