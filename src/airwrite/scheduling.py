"""Timer handles for the recognition engine.

The engine never reads a global clock or polls for timers. It asks a
scheduler for a millisecond clock and for cancellable single-shot or
periodic callbacks. ``ManualScheduler`` advances time explicitly (tests,
offline replays); ``AsyncioScheduler`` runs on an event loop.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

logger = logging.getLogger("airwrite.scheduling")


class TimerHandle:
    """A cancellable scheduled callback."""

    def __init__(self, callback: Callable[[], None], deadline_ms: int):
        self.callback = callback
        self.deadline_ms = deadline_ms
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class Scheduler(ABC):
    @abstractmethod
    def now_ms(self) -> int:
        ...

    @abstractmethod
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        ...

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> TimerHandle:
        """Repeat ``callback`` every ``interval_ms`` until the handle is cancelled."""
        if interval_ms <= 0:
            raise ValueError("interval must be positive")
        outer = TimerHandle(callback, self.now_ms() + interval_ms)

        def fire():
            if outer.cancelled:
                return
            try:
                callback()
            finally:
                if not outer.cancelled:
                    outer.deadline_ms = self.now_ms() + interval_ms
                    self.call_later(interval_ms, fire)

        self.call_later(interval_ms, fire)
        return outer

    def run_blocking(self, fn: Callable[[], Any], callback: Callable[[Any], None]):
        """Run a blocking ``fn`` and pass its return value to ``callback``.

        The base implementation runs both inline and returns None. Event loop
        schedulers run ``fn`` on a worker thread and return a cancellable
        future; a cancelled future never reaches ``callback``.
        """
        callback(fn())
        return None


class ManualScheduler(Scheduler):
    """Deterministic scheduler driven by :meth:`advance`."""

    def __init__(self, start_ms: int = 0):
        self._now = start_ms
        self._queue: list[tuple[int, int, TimerHandle]] = []
        self._seq = itertools.count()

    def now_ms(self) -> int:
        return self._now

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(callback, self._now + max(0, int(delay_ms)))
        heapq.heappush(self._queue, (handle.deadline_ms, next(self._seq), handle))
        return handle

    def advance(self, delta_ms: int) -> int:
        """Move the clock forward, firing due callbacks in deadline order.

        Returns the number of callbacks fired.
        """
        target = self._now + delta_ms
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            deadline, _, handle = heapq.heappop(self._queue)
            self._now = max(self._now, deadline)
            if handle.cancelled:
                continue
            handle.callback()
            fired += 1
        self._now = target
        return fired

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled)


class _AsyncioTimer(TimerHandle):
    def __init__(self, callback, deadline_ms, loop_handle: asyncio.TimerHandle):
        super().__init__(callback, deadline_ms)
        self._loop_handle = loop_handle

    def cancel(self):
        super().cancel()
        self._loop_handle.cancel()


class AsyncioScheduler(Scheduler):
    """Scheduler backed by an asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now_ms(self) -> int:
        return int(time.monotonic() * 1000)

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        def run():
            try:
                callback()
            except Exception:
                logger.exception("Scheduled callback failed")

        loop_handle = self.loop.call_later(max(0, delay_ms) / 1000.0, run)
        return _AsyncioTimer(callback, self.now_ms() + delay_ms, loop_handle)

    def run_blocking(self, fn: Callable[[], Any], callback: Callable[[Any], None]):
        future = self.loop.run_in_executor(None, fn)

        def done(fut: asyncio.Future):
            if fut.cancelled():
                return
            error = fut.exception()
            if error is not None:
                logger.error("Blocking call failed: %s", error)
                return
            try:
                callback(fut.result())
            except Exception:
                logger.exception("Blocking call callback failed")

        future.add_done_callback(done)
        return future
