"""
Tests for the web app API backend.

The HTTP session is mocked; no network access is needed.
"""

import json
import unittest
from unittest import mock

import requests

from jadwalin.errors import StorageError
from jadwalin.model import ActivityCategory, ActivityRecord, Reminder
from jadwalin.remote import ApiBackend


def response(payload, status=200):
    resp = requests.Response()
    resp.status_code = status
    resp._content = json.dumps(payload).encode("utf-8")
    return resp


class TestApiBackend(unittest.TestCase):
    def setUp(self) -> None:
        self.session = mock.Mock(spec=requests.Session)
        self.backend = ApiBackend("https://app.example/", session=self.session)

    def test_load_migrates_api_shape(self) -> None:
        self.session.request.side_effect = [
            response([{"id": "srv-1", "userId": "u1", "title": "UTS", "dueUTC": 1_000, "isActive": False}]),
            response([{"id": "act-1", "title": "Login", "category": "profile", "createdAt": "1970-01-01T00:00:02Z"}]),
        ]
        snap = self.backend.load("u1")

        [r] = snap.reminders
        self.assertEqual((r.id, r.owner_id, r.due_ms, r.completed), ("srv-1", "u1", 1_000, True))
        [a] = snap.activities
        self.assertEqual(a.timestamp_ms, 2_000)

    def test_load_tolerates_non_finite_numbers(self) -> None:
        resp = requests.Response()
        resp.status_code = 200
        resp._content = b'[{"id": "act-1", "title": "Login", "category": "profile", "timestamp": Infinity}]'
        self.session.request.side_effect = [
            response([{"id": "srv-1", "userId": "u1", "title": "UTS", "dueUTC": float("nan")}]),
            resp,
        ]
        snap = self.backend.load("u1")
        self.assertIsNone(snap.reminders[0].due_ms)
        self.assertEqual(snap.activities[0].timestamp_ms, 0)
        a = snap.activities[0]
        self.assertEqual(a.category, ActivityCategory.PROFILE)

        first = self.session.request.call_args_list[0]
        self.assertEqual(first.args, ("GET", "https://app.example/api/reminders"))
        self.assertEqual(first.kwargs["params"], {"userId": "u1"})

    def test_new_reminder_is_posted_then_patched_by_server_id(self) -> None:
        self.session.request.side_effect = [
            response({"success": True, "reminder": {"id": "srv-9"}}),
            response({"success": True}),
        ]
        r = Reminder(id="local-1", owner_id="u1", title="Tugas", due_ms=5_000)
        self.backend.save(r)
        self.backend.save(Reminder(id="local-1", owner_id="u1", title="Tugas", due_ms=5_000, completed=True))

        post, patch = self.session.request.call_args_list
        self.assertEqual(post.args[0], "POST")
        self.assertEqual(post.kwargs["json"]["dueUTC"], 5_000)
        self.assertTrue(post.kwargs["json"]["isActive"])
        self.assertEqual(patch.args[0], "PATCH")
        self.assertEqual(patch.kwargs["json"]["id"], "srv-9")
        self.assertFalse(patch.kwargs["json"]["isActive"])

    def test_activity_and_delete(self) -> None:
        self.session.request.return_value = response({"success": True})
        self.backend.save(ActivityRecord(id="a", owner_id="u1", title="KRS", timestamp_ms=0, category=ActivityCategory.KRS))
        self.backend.delete(Reminder(id="r1", owner_id="u1", title="x", due_ms=1))

        activity, delete = self.session.request.call_args_list
        self.assertEqual(activity.kwargs["json"], {"title": "KRS", "description": None, "category": "krs"})
        self.assertEqual(delete.args[0], "DELETE")
        self.assertEqual(delete.kwargs["params"], {"id": "r1", "userId": "u1"})

    def test_http_errors_become_storage_errors(self) -> None:
        self.session.request.return_value = response({"error": "nope"}, status=500)
        with self.assertRaises(StorageError):
            self.backend.load("u1")

        self.session.request.side_effect = requests.ConnectionError("offline")
        with self.assertRaises(StorageError):
            self.backend.delete(Reminder(id="r1", owner_id="u1", title="x", due_ms=1))

    def test_reminder_without_due_is_refused(self) -> None:
        with self.assertRaises(StorageError):
            self.backend.save(Reminder(id="r1", owner_id="u1", title="x", due_ms=None))
        self.session.request.assert_not_called()


if __name__ == "__main__":
    unittest.main()
