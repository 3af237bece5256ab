"""
Unit tests for the countdown clock (pull and push modes).
"""

import itertools
import unittest

from jadwalin.clock import SimulatedClock
from jadwalin.countdown import CountdownClock, decompose, format_snapshot, remaining
from jadwalin.errors import ClockUnavailable
from jadwalin.model import CountdownSnapshot
from jadwalin.timers import ManualTimers


class FlakyClock(SimulatedClock):
    def __init__(self, start_ms: int = 0) -> None:
        super().__init__(start_ms)
        self.broken = False

    def now_ms(self) -> int:
        if self.broken:
            raise ClockUnavailable("no time source")
        return super().now_ms()


class TestDecompose(unittest.TestCase):
    def test_parts(self) -> None:
        total = 2 * 86_400_000 + 3 * 3_600_000 + 4 * 60_000 + 5_000 + 999
        self.assertEqual(decompose(total), CountdownSnapshot(2, 3, 4, 5, total))

    def test_past_target_is_zero(self) -> None:
        self.assertEqual(remaining(1_000, 5_000), CountdownSnapshot(0, 0, 0, 0, 0))

    def test_format(self) -> None:
        self.assertEqual(format_snapshot(decompose(3_661_000)), "01:01:01")
        self.assertEqual(format_snapshot(decompose(86_400_000 + 60_000)), "1d 00:01:00")


class TestCountdownClock(unittest.TestCase):
    def test_pull_is_monotonic_and_ends_at_zero(self) -> None:
        clock = SimulatedClock(0)
        countdown = CountdownClock(10_000, clock, period=1.0)
        snaps = list(itertools.islice(countdown, 15))
        totals = [s.total_ms for s in snaps]
        self.assertEqual(totals[0], 10_000)
        self.assertEqual(totals, sorted(totals, reverse=True))
        self.assertEqual(totals[-5:], [0] * 5)

    def test_each_iteration_is_a_fresh_sequence(self) -> None:
        clock = SimulatedClock(0)
        countdown = CountdownClock(5_000, clock)
        first = next(iter(countdown))
        second = next(iter(countdown))
        self.assertEqual(first.total_ms, 5_000)
        self.assertEqual(second.total_ms, 5_000)

    def test_cancel_stops_iteration(self) -> None:
        clock = SimulatedClock(0)
        countdown = CountdownClock(60_000, clock)
        produced = []
        for snap in countdown:
            produced.append(snap)
            if len(produced) == 3:
                countdown.cancel()
        self.assertEqual(len(produced), 3)
        self.assertEqual(list(countdown), [])

        countdown.restart()
        self.assertIsNotNone(next(iter(countdown)))

    def test_push_mode_with_manual_timers(self) -> None:
        clock = SimulatedClock(0)
        timers = ManualTimers(clock)
        received = []
        countdown = CountdownClock(3_000, clock).start(timers, received.append)
        self.assertEqual([s.total_ms for s in received], [3_000])

        timers.advance(2)
        self.assertEqual([s.total_ms for s in received], [3_000, 2_000, 1_000])

        countdown.cancel()
        timers.advance(5)
        self.assertEqual(len(received), 3)

    def test_start_twice_is_rejected(self) -> None:
        clock = SimulatedClock(0)
        timers = ManualTimers(clock)
        countdown = CountdownClock(3_000, clock).start(timers, lambda s: None)
        with self.assertRaises(RuntimeError):
            countdown.start(timers, lambda s: None)

    def test_clock_failure_holds_last_snapshot(self) -> None:
        clock = FlakyClock(0)
        countdown = CountdownClock(10_000, clock)
        first = countdown.sample()
        clock.broken = True
        with self.assertLogs("jadwalin.countdown", level="WARNING"):
            held = countdown.sample()
        self.assertEqual(held, first)

    def test_clock_failure_before_first_sample_produces_nothing(self) -> None:
        clock = FlakyClock(0)
        clock.broken = True
        timers = ManualTimers(SimulatedClock(0))
        received = []
        with self.assertLogs("jadwalin.countdown", level="WARNING"):
            CountdownClock(10_000, clock).start(timers, received.append)
        self.assertEqual(received, [])

    def test_retarget(self) -> None:
        clock = SimulatedClock(0)
        countdown = CountdownClock(1_000, clock)
        countdown.retarget(9_000)
        self.assertEqual(countdown.sample().total_ms, 9_000)


if __name__ == "__main__":
    unittest.main()
