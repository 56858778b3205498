"""Cancellable one-shot callbacks and the single-slot timer holder."""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """Runs each callback on its own daemon ``threading.Timer``."""

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay_s, callback)
        timer.daemon = True
        timer.start()
        return timer


class _ManualHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Simulated clock. Callbacks run only from :meth:`advance`, in due order."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[tuple[float, int, _ManualHandle, Callable[[], None]]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        handle = _ManualHandle()
        heapq.heappush(self._queue, (self._now + delay_s, next(self._seq), handle, callback))
        return handle

    def advance(self, seconds: float) -> None:
        deadline = self._now + seconds
        while self._queue and self._queue[0][0] <= deadline:
            due, _, handle, callback = heapq.heappop(self._queue)
            self._now = due
            if not handle.cancelled:
                callback()
        self._now = deadline

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle, _ in self._queue if not handle.cancelled)


class TimerSlot:
    """Holds at most one outstanding timer of one kind.

    Scheduling cancels the previous timer. Every schedule/cancel bumps a
    generation token; a callback that fires with a stale token (already
    cancelled, or racing a reschedule on another thread) must be ignored, and
    :meth:`claim` tells the owner which case it is in.
    """

    def __init__(self, scheduler: Scheduler, name: str) -> None:
        self._scheduler = scheduler
        self.name = name
        self._handle: Optional[TimerHandle] = None
        self._token = 0

    @property
    def is_pending(self) -> bool:
        return self._handle is not None

    def schedule(self, delay_s: float, callback: Callable[[int], None]) -> None:
        self.cancel()
        token = self._token
        self._handle = self._scheduler.call_later(delay_s, lambda: callback(token))
        logger.debug("%s timer armed for %.0f ms", self.name, delay_s * 1000)

    def cancel(self) -> bool:
        self._token += 1
        handle = self._handle
        if handle is None:
            return False
        handle.cancel()
        self._handle = None
        logger.debug("%s timer cancelled", self.name)
        return True

    def claim(self, token: int) -> bool:
        if token != self._token or self._handle is None:
            return False
        self._handle = None
        self._token += 1
        return True
