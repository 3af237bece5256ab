import threading
import unittest

from jadwalin.clock import SimulatedClock, SystemClock
from jadwalin.timers import ManualTimers, ThreadTimers


class TestSimulatedClock(unittest.TestCase):
    def test_advance_and_sleep(self) -> None:
        clock = SimulatedClock(1_000)
        self.assertEqual(clock.advance(500), 1_500)
        clock.sleep(2)
        self.assertEqual(clock.now_ms(), 3_500)

    def test_cannot_go_backwards(self) -> None:
        clock = SimulatedClock(1_000)
        with self.assertRaises(ValueError):
            clock.advance(-1)
        with self.assertRaises(ValueError):
            clock.set(999)

    def test_system_clock_is_epoch_ms(self) -> None:
        self.assertGreater(SystemClock().now_ms(), 1_600_000_000_000)


class TestManualTimers(unittest.TestCase):
    def test_callbacks_run_in_due_order(self) -> None:
        clock = SimulatedClock(0)
        timers = ManualTimers(clock)
        seen = []
        timers.call_later(3, lambda: seen.append(("late", clock.now_ms())))
        timers.call_every(1, lambda: seen.append(("tick", clock.now_ms())))
        timers.advance(3)
        # equal due times run in scheduling order; the 3s entry was queued before the third tick
        self.assertEqual(seen, [("tick", 1_000), ("tick", 2_000), ("late", 3_000), ("tick", 3_000)])
        self.assertEqual(clock.now_ms(), 3_000)

    def test_cancelled_handles_do_not_run(self) -> None:
        clock = SimulatedClock(0)
        timers = ManualTimers(clock)
        seen = []
        handle = timers.call_later(1, lambda: seen.append(1))
        handle.cancel()
        timers.advance(5)
        self.assertEqual(seen, [])
        self.assertEqual(timers.pending, 0)

    def test_failing_callback_keeps_timer_alive(self) -> None:
        clock = SimulatedClock(0)
        timers = ManualTimers(clock)
        calls = []

        def boom() -> None:
            calls.append(1)
            raise RuntimeError("boom")

        timers.call_every(1, boom)
        with self.assertLogs("jadwalin.timers", level="ERROR"):
            timers.advance(2)
        self.assertEqual(len(calls), 2)

    def test_shutdown(self) -> None:
        timers = ManualTimers(SimulatedClock(0))
        timers.call_every(1, lambda: None)
        timers.shutdown()
        self.assertEqual(timers.pending, 0)


class TestThreadTimers(unittest.TestCase):
    def test_call_later_runs(self) -> None:
        timers = ThreadTimers()
        done = threading.Event()
        timers.call_later(0.01, done.set)
        self.assertTrue(done.wait(2))
        timers.shutdown()

    def test_cancel_before_due(self) -> None:
        timers = ThreadTimers()
        done = threading.Event()
        handle = timers.call_later(0.5, done.set)
        handle.cancel()
        self.assertFalse(done.wait(0.8))

    def test_call_every_rejects_non_positive_period(self) -> None:
        with self.assertRaises(ValueError):
            ThreadTimers().call_every(0, lambda: None)


if __name__ == "__main__":
    unittest.main()
