"""
Scheduled-task abstraction.

The reminder scan, countdown ticks and notification auto-dismiss all go through
one small interface:

    handle = timers.call_every(15, scheduler.scan)
    handle = timers.call_later(6, lambda: presenter.dismiss(nid))
    handle.cancel()

ThreadTimers runs callbacks on daemon threads. ManualTimers runs them only when
a test calls advance(), moving a SimulatedClock along with it.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from typing import Callable, Optional

from jadwalin.clock import SimulatedClock

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class TimerHandle:
    def __init__(self) -> None:
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()


def _run(fn: Callback) -> None:
    # a failing callback must not stop the timer that drives it
    try:
        fn()
    except Exception:
        logger.exception("Timer callback %r failed", fn)


class ThreadTimers:
    def __init__(self) -> None:
        self._handles: list[TimerHandle] = []
        self._lock = threading.Lock()

    def _track(self, handle: TimerHandle) -> None:
        with self._lock:
            self._handles = [h for h in self._handles if not h.cancelled]
            self._handles.append(handle)

    def call_later(self, delay: float, fn: Callback) -> TimerHandle:
        handle = TimerHandle()

        def worker() -> None:
            if not handle._cancelled.wait(max(0.0, delay)):
                handle.cancel()
                _run(fn)

        self._track(handle)
        threading.Thread(target=worker, daemon=True, name="jadwalin-later").start()
        return handle

    def call_every(self, period: float, fn: Callback) -> TimerHandle:
        if period <= 0:
            raise ValueError("period must be positive")
        handle = TimerHandle()

        def worker() -> None:
            # wait() returns True as soon as the handle is cancelled
            while not handle._cancelled.wait(period):
                _run(fn)

        self._track(handle)
        threading.Thread(target=worker, daemon=True, name="jadwalin-every").start()
        return handle

    def shutdown(self) -> None:
        with self._lock:
            handles, self._handles = self._handles, []
        for h in handles:
            h.cancel()


class ManualTimers:
    """
    Deterministic timers for tests. Nothing runs until advance() or run_pending().
    """

    def __init__(self, clock: SimulatedClock) -> None:
        self.clock = clock
        self._queue: list[tuple[int, int, TimerHandle, Callback, Optional[int]]] = []
        self._seq = itertools.count()

    def _push(self, due_ms: int, handle: TimerHandle, fn: Callback, period_ms: Optional[int]) -> None:
        heapq.heappush(self._queue, (due_ms, next(self._seq), handle, fn, period_ms))

    def call_later(self, delay: float, fn: Callback) -> TimerHandle:
        handle = TimerHandle()
        self._push(self.clock.now_ms() + int(max(0.0, delay) * 1000), handle, fn, None)
        return handle

    def call_every(self, period: float, fn: Callback) -> TimerHandle:
        if period <= 0:
            raise ValueError("period must be positive")
        handle = TimerHandle()
        period_ms = int(period * 1000)
        self._push(self.clock.now_ms() + period_ms, handle, fn, period_ms)
        return handle

    def advance(self, seconds: float) -> None:
        """Move time forward, running every callback that falls due on the way, in order."""
        target = self.clock.now_ms() + int(seconds * 1000)
        self._run_until(target)
        self.clock.set(max(target, self.clock.now_ms()))

    def run_pending(self) -> None:
        self._run_until(self.clock.now_ms())

    def _run_until(self, target_ms: int) -> None:
        while self._queue and self._queue[0][0] <= target_ms:
            due, _, handle, fn, period_ms = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            if due > self.clock.now_ms():
                self.clock.set(due)
            if period_ms is None:
                handle.cancel()
            _run(fn)
            if period_ms is not None and not handle.cancelled:
                self._push(due + period_ms, handle, fn, period_ms)

    @property
    def pending(self) -> int:
        return sum(1 for entry in self._queue if not entry[2].cancelled)

    def shutdown(self) -> None:
        for entry in self._queue:
            entry[2].cancel()
        self._queue.clear()
