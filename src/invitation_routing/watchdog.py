# invitation_routing/watchdog.py
from __future__ import annotations

from collections.abc import Callable
from typing import Optional

from invitation_routing.adapters.scheduler import Scheduler, TimerHandle


class DelayWatchdog:
    """
    Single-shot delay timer.

    ``start`` arms the timer once; later calls are ignored, so an expired or
    cancelled watchdog is never restarted. ``on_elapsed`` runs at most once.
    """

    def __init__(self, scheduler: Scheduler, delay_ms: int, on_elapsed: Callable[[], None]) -> None:
        self._scheduler = scheduler
        self._delay_ms = delay_ms
        self._on_elapsed = on_elapsed
        self._handle: Optional[TimerHandle] = None
        self.started = False
        self.fired = False
        self.cancelled = False

    @property
    def delay_ms(self) -> int:
        return self._delay_ms

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        if self.started or self.cancelled:
            return
        self.started = True
        self._handle = self._scheduler.call_later(self._delay_ms / 1000.0, self._fire)

    def cancel(self) -> None:
        if self.cancelled or self.fired:
            return
        self.cancelled = True
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()

    def _fire(self) -> None:
        if self.fired or self.cancelled:
            return
        self.fired = True
        self._handle = None
        self._on_elapsed()
