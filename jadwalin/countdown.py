"""
Countdown to a target instant.

remaining = max(0, target - now), decomposed into days/hours/minutes/seconds.

Two ways to consume it:
- pull: iterate a CountdownClock; every iteration starts a fresh, endless
  sequence (one snapshot per period, zeros after the target has passed)
- push: start(timers, callback) delivers one snapshot per tick

cancel() stops both. Nothing is produced after cancellation.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterator, Optional

from jadwalin.clock import Clock
from jadwalin.errors import ClockUnavailable
from jadwalin.model import CountdownSnapshot
from jadwalin.timers import TimerHandle

logger = logging.getLogger(__name__)

MS_PER_DAY = 86_400_000
MS_PER_HOUR = 3_600_000
MS_PER_MINUTE = 60_000
MS_PER_SECOND = 1_000


def decompose(total_ms: int) -> CountdownSnapshot:
    total_ms = max(0, int(total_ms))
    return CountdownSnapshot(
        days=total_ms // MS_PER_DAY,
        hours=(total_ms % MS_PER_DAY) // MS_PER_HOUR,
        minutes=(total_ms % MS_PER_HOUR) // MS_PER_MINUTE,
        seconds=(total_ms % MS_PER_MINUTE) // MS_PER_SECOND,
        total_ms=total_ms,
    )


def remaining(target_ms: int, now_ms: int) -> CountdownSnapshot:
    return decompose(target_ms - now_ms)


def format_snapshot(snap: CountdownSnapshot) -> str:
    if snap.days:
        return f"{snap.days}d {snap.hours:02d}:{snap.minutes:02d}:{snap.seconds:02d}"
    return f"{snap.hours:02d}:{snap.minutes:02d}:{snap.seconds:02d}"


class CountdownClock:
    def __init__(self, target_ms: int, clock: Clock, period: float = 1.0) -> None:
        if period <= 0:
            raise ValueError("period must be positive")
        self.clock = clock
        self.period = period
        self._target = int(target_ms)
        self._last: Optional[CountdownSnapshot] = None
        self._cancelled = threading.Event()
        self._handle: Optional[TimerHandle] = None

    @property
    def target_ms(self) -> int:
        return self._target

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def last(self) -> Optional[CountdownSnapshot]:
        return self._last

    def retarget(self, target_ms: int) -> None:
        self._target = int(target_ms)
        self._last = None

    def sample(self) -> Optional[CountdownSnapshot]:
        """
        One snapshot for the current instant.

        If the clock fails, the last known snapshot is held (None before the first success).
        """
        try:
            now = self.clock.now_ms()
        except ClockUnavailable as exc:
            logger.warning("Clock unavailable, holding last countdown snapshot: %s", exc)
            return self._last
        self._last = remaining(self._target, now)
        return self._last

    def __iter__(self) -> Iterator[CountdownSnapshot]:
        return self._ticks()

    def _ticks(self) -> Iterator[CountdownSnapshot]:
        while not self.cancelled:
            snap = self.sample()
            if snap is not None and not self.cancelled:
                yield snap
            self.clock.sleep(self.period)

    def start(self, timers, on_snapshot: Callable[[CountdownSnapshot], None]) -> "CountdownClock":
        """
        Push mode: deliver a snapshot now and then once per period via `timers`.
        """
        if self._handle is not None and not self._handle.cancelled:
            raise RuntimeError("Countdown already started")

        def tick() -> None:
            if self.cancelled:
                return
            snap = self.sample()
            if snap is not None and not self.cancelled:
                on_snapshot(snap)

        tick()
        self._handle = timers.call_every(self.period, tick)
        return self

    def cancel(self) -> None:
        self._cancelled.set()
        if self._handle is not None:
            self._handle.cancel()

    def restart(self) -> None:
        """Allow iteration again after cancel(). Push mode needs a new start()."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._cancelled.clear()
