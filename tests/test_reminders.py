"""
Unit tests for the in-process reminder store.
"""

import unittest

from jadwalin.activity import ActivityStore
from jadwalin.clock import SimulatedClock
from jadwalin.model import ActivityCategory, Priority, Reminder
from jadwalin.reminders import ReminderStore


class RecordingBackend:
    def __init__(self) -> None:
        self.saved = []
        self.deleted = []

    def save(self, entity) -> None:
        self.saved.append(entity)

    def delete(self, entity) -> None:
        self.deleted.append(entity)


def reminder(rid="r1", owner="u1", due=10_000, **kw):
    return Reminder(id=rid, owner_id=owner, title=kw.pop("title", f"Tugas {rid}"), due_ms=due, **kw)


class TestReminderStore(unittest.TestCase):
    def test_add_assigns_id_and_persists(self) -> None:
        backend = RecordingBackend()
        store = ReminderStore(backend=backend)
        added = store.add(reminder(rid=""))
        self.assertTrue(added.id)
        self.assertEqual(store.get(added.id), added)
        self.assertEqual(backend.saved, [added])

    def test_add_duplicate_id_rejected(self) -> None:
        store = ReminderStore()
        store.add(reminder())
        with self.assertRaises(ValueError):
            store.add(reminder())

    def test_add_records_activity(self) -> None:
        activity = ActivityStore(clock=SimulatedClock(5_000))
        store = ReminderStore(activity=activity)
        store.add(reminder(title="Kuis"))
        [rec] = activity.list_by_owner("u1")
        self.assertEqual(rec.title, "Pengingat ditambahkan: Kuis")
        self.assertEqual(rec.category, ActivityCategory.REMINDER)
        self.assertEqual(rec.timestamp_ms, 5_000)

    def test_update(self) -> None:
        store = ReminderStore()
        store.add(reminder())
        updated = store.update("r1", due_ms=20_000, priority="high")
        self.assertEqual(updated.due_ms, 20_000)
        self.assertEqual(updated.priority, Priority.HIGH)
        with self.assertRaises(TypeError):
            store.update("r1", colour="red")
        with self.assertRaises(TypeError):
            store.update("r1", id="r2")
        with self.assertRaises(KeyError):
            store.update("missing", title="x")

    def test_complete_is_idempotent(self) -> None:
        backend = RecordingBackend()
        store = ReminderStore(backend=backend)
        store.add(reminder())
        first = store.complete("r1")
        second = store.complete("r1")
        self.assertTrue(first.completed)
        self.assertEqual(first, second)
        self.assertEqual(len(backend.saved), 2)
        self.assertFalse(store.reopen("r1").completed)
        with self.assertRaises(KeyError):
            store.complete("missing")

    def test_remove(self) -> None:
        backend = RecordingBackend()
        store = ReminderStore(backend=backend)
        r = store.add(reminder())
        self.assertTrue(store.remove("r1"))
        self.assertFalse(store.remove("r1"))
        self.assertEqual(backend.deleted, [r])
        self.assertIsNone(store.get("r1"))

    def test_owner_partitions(self) -> None:
        store = ReminderStore()
        store.load([reminder("a", "u1"), reminder("b", "u2"), reminder("c", "u1")])
        self.assertEqual(sorted(r.id for r in store.list_by_owner("u1")), ["a", "c"])
        self.assertEqual(store.clear_owner("u1"), 2)
        self.assertEqual(len(store), 1)

    def test_upcoming_and_overdue(self) -> None:
        store = ReminderStore()
        store.load(
            [
                reminder("late1", due=1_000),
                reminder("late2", due=4_000),
                reminder("soon2", due=9_000),
                reminder("soon1", due=6_000),
                reminder("far", due=5_000 + 90_000_000),
                reminder("done", due=7_000, completed=True),
                reminder("broken", due=None),
            ]
        )
        self.assertEqual([r.id for r in store.upcoming("u1", 5_000)], ["soon1", "soon2"])
        self.assertEqual([r.id for r in store.overdue("u1", 5_000)], ["late2", "late1"])


if __name__ == "__main__":
    unittest.main()
