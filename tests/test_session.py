"""
Integration tests for the session lifecycle with simulated time.
"""

import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from jadwalin.clock import SimulatedClock
from jadwalin.config import load_settings
from jadwalin.conflicts import ConflictDetected
from jadwalin.model import ActivityCategory, DayOfWeek, Identity, Priority, TimeInterval
from jadwalin.session import Session
from jadwalin.storage import JsonFileBackend
from jadwalin.timers import ManualTimers
from jadwalin.timeutil import to_absolute

# Monday 2026-02-16 07:00 in Jakarta
NOW = to_absolute(datetime(2026, 2, 16, 7, 0))


class SessionTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.data_dir = Path(self._tmp.name)
        self.clock = SimulatedClock(NOW)
        self.timers = ManualTimers(self.clock)
        self.settings = load_settings(data_dir=self.data_dir, scan_period=15.0)

    def make_session(self, **overrides):
        settings = load_settings(data_dir=self.data_dir, **overrides) if overrides else self.settings
        return Session(JsonFileBackend(self.data_dir), clock=self.clock, timers=self.timers, settings=settings)


class TestSessionLifecycle(SessionTestCase):
    def test_actions_require_init(self) -> None:
        session = self.make_session()
        with self.assertRaises(RuntimeError):
            session.add_reminder("x", NOW)

    def test_double_init_rejected(self) -> None:
        session = self.make_session().init(Identity("u1"))
        self.addCleanup(session.dispose)
        with self.assertRaises(RuntimeError):
            session.init(Identity("u1"))

    def test_reminder_reaches_presenter_once(self) -> None:
        session = self.make_session().init(Identity("u1"))
        self.addCleanup(session.dispose)
        session.add_reminder("Tugas 3", NOW + 20_000, priority=Priority.HIGH)

        self.timers.advance(15)
        self.assertEqual(session.presenter.visible(), [])
        self.timers.advance(15)
        [shown] = session.presenter.visible()
        self.assertEqual(shown.event.title, "Tugas 3")

        self.timers.advance(60)
        self.assertEqual(session.presenter.visible(), [])
        self.assertEqual(session.presenter.pending(), [])

    def test_dispose_stops_delivery_and_resets(self) -> None:
        session = self.make_session().init(Identity("u1"))
        scheduler, presenter = session.scheduler, session.presenter
        session.add_reminder("Kuis", NOW + 10_000)
        session.dispose()

        self.timers.advance(60)
        self.assertEqual(presenter.visible(), [])
        self.assertTrue(scheduler.stopped)
        self.assertFalse(session.active)
        self.assertIsNone(session.reminders)
        session.dispose()

    def test_data_persists_between_sessions(self) -> None:
        with self.make_session().init(Identity("u1"), start=False) as session:
            r = session.add_reminder("UAS", NOW + 86_400_000)
            session.add_class(TimeInterval(DayOfWeek.MONDAY, 480, 580, title="Kalkulus"))

        with self.make_session().init(Identity("u1"), start=False) as session:
            self.assertEqual(session.reminders.get(r.id).title, "UAS")
            self.assertEqual(len(session.schedule), 1)
            titles = [a.title for a in session.activity.list_by_owner("u1")]
            self.assertIn("Pengingat ditambahkan: UAS", titles)

    def test_persisted_ledger_suppresses_refire_after_restart(self) -> None:
        with self.make_session(persist_fired_ledger=True).init(Identity("u1")) as session:
            session.add_reminder("Kuis", NOW - 1_000)
            session.scheduler.scan()
            self.assertEqual(len(session.presenter.visible()), 1)

        with self.make_session(persist_fired_ledger=True).init(Identity("u1")) as session:
            self.assertEqual(session.presenter.visible(), [])

        with self.make_session().init(Identity("u1")) as session:
            self.assertEqual(len(session.presenter.visible()), 1)


class TestSessionActions(SessionTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.session = self.make_session().init(Identity("u1"), start=False)
        self.addCleanup(self.session.dispose)

    def test_complete_records_activity_once(self) -> None:
        r = self.session.add_reminder("Tugas", NOW + 1_000)
        self.session.complete(r.id)
        self.session.complete(r.id)
        done = [
            a
            for a in self.session.activity.list_by_owner("u1", limit=None)
            if a.title == "Pengingat selesai: Tugas"
        ]
        self.assertEqual(len(done), 1)
        self.assertEqual(done[0].category, ActivityCategory.REMINDER)
        with self.assertRaises(KeyError):
            self.session.complete("missing")

    def test_add_class_rejects_conflict(self) -> None:
        self.assertIsNone(self.session.add_class(TimeInterval(DayOfWeek.MONDAY, 480, 580)))
        rejected = self.session.add_class(TimeInterval(DayOfWeek.MONDAY, 540, 600))
        self.assertIsInstance(rejected, ConflictDetected)
        self.assertEqual(len(self.session.schedule), 1)
        self.assertTrue(self.session.remove_class(TimeInterval(DayOfWeek.MONDAY, 480, 580)))
        self.assertFalse(self.session.remove_class(TimeInterval(DayOfWeek.MONDAY, 480, 580)))

    def test_countdown_to_next_class(self) -> None:
        self.assertIsNone(self.session.countdown_to_next_class())
        self.session.add_class(TimeInterval(DayOfWeek.MONDAY, 480, 580))
        snaps = []
        countdown = self.session.countdown_to_next_class(snaps.append)
        self.assertEqual(snaps[0].hours, 1)
        self.timers.advance(2)
        self.assertEqual(len(snaps), 3)

        self.session.dispose()
        self.assertTrue(countdown.cancelled)

    def test_dismiss(self) -> None:
        self.session.add_reminder("Kuis", NOW - 1_000)
        self.session.scheduler.scan()
        [shown] = self.session.presenter.visible()
        self.assertTrue(self.session.dismiss(shown.notification_id))
        self.assertFalse(self.session.dismiss(shown.notification_id))


if __name__ == "__main__":
    unittest.main()
