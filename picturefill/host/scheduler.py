"""Fixed-delay schedulers.

``ManualScheduler`` runs on a virtual clock advanced by the caller, which
keeps debounce and polling behavior deterministic. ``ThreadingScheduler``
uses real timers for embedders without an event loop of their own.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List

from .interface import PicturefillError

logger = logging.getLogger(__name__)


@dataclass(order=True)
class _ScheduledCall:
    due_ms: int
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual-clock scheduler.

    Callbacks due at the same time fire in scheduling order. Callbacks may
    schedule further callbacks; those fire within the same ``advance`` call
    when they fall due before its end.
    """

    def __init__(self) -> None:
        self._now_ms = 0
        self._queue: List[_ScheduledCall] = []
        self._seq = itertools.count()

    @property
    def now_ms(self) -> int:
        return self._now_ms

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> _ScheduledCall:
        if delay_ms < 0:
            raise PicturefillError(f"Cannot schedule a negative delay: {delay_ms}")
        call = _ScheduledCall(self._now_ms + delay_ms, next(self._seq), callback)
        heapq.heappush(self._queue, call)
        return call

    def pending(self) -> int:
        """Number of callbacks scheduled and not cancelled."""
        return sum(1 for call in self._queue if not call.cancelled)

    def advance(self, delta_ms: int) -> int:
        """Move the clock forward, firing everything that falls due.

        Returns:
            Number of callbacks fired
        """
        target = self._now_ms + delta_ms
        fired = 0
        while self._queue and self._queue[0].due_ms <= target:
            call = heapq.heappop(self._queue)
            if call.cancelled:
                continue
            self._now_ms = call.due_ms
            call.callback()
            fired += 1
        self._now_ms = target
        return fired


class _TimerHandle:
    def __init__(self, timer: threading.Timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler:
    """Scheduler backed by ``threading.Timer`` daemon threads.

    Callbacks run on timer threads; the orchestrator serializes passes with
    its own lock.
    """

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> _TimerHandle:
        if delay_ms < 0:
            raise PicturefillError(f"Cannot schedule a negative delay: {delay_ms}")
        timer = threading.Timer(delay_ms / 1000.0, callback)
        timer.daemon = True
        timer.start()
        logger.debug("Scheduled timer in %dms", delay_ms)
        return _TimerHandle(timer)
