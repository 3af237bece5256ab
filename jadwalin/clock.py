"""
Clock sources.

Everything that needs "now" takes a Clock so tests can pin or advance time:

    clock = SimulatedClock(start_ms=to_absolute(datetime(2026, 2, 19, 8, 0)))
    clock.advance(90_000)
"""

from __future__ import annotations

import threading
import time

from jadwalin.errors import ClockUnavailable


class Clock:
    def now_ms(self) -> int:
        raise NotImplementedError

    def monotonic(self) -> float:
        raise NotImplementedError

    def sleep(self, seconds: float) -> None:
        raise NotImplementedError


class SystemClock(Clock):
    """Wall clock for instants, time.monotonic for durations."""

    def now_ms(self) -> int:
        try:
            return int(time.time() * 1000)
        except (OSError, OverflowError) as exc:
            raise ClockUnavailable(str(exc)) from exc

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(max(0.0, seconds))


class SimulatedClock(Clock):
    """
    Manually driven clock. sleep() advances simulated time instead of blocking.
    """

    def __init__(self, start_ms: int = 0) -> None:
        self._now = int(start_ms)
        self._lock = threading.Lock()

    def now_ms(self) -> int:
        with self._lock:
            return self._now

    def monotonic(self) -> float:
        return self.now_ms() / 1000

    def advance(self, ms: int) -> int:
        if ms < 0:
            raise ValueError("Simulated time cannot go backwards")
        with self._lock:
            self._now += int(ms)
            return self._now

    def set(self, instant_ms: int) -> None:
        with self._lock:
            if instant_ms < self._now:
                raise ValueError("Simulated time cannot go backwards")
            self._now = int(instant_ms)

    def sleep(self, seconds: float) -> None:
        self.advance(int(max(0.0, seconds) * 1000))
