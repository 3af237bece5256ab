"""
Persistence collaborator backed by the web app's REST API.

Endpoints used (same as the browser client):

    GET    /api/reminders?userId=<owner>
    POST   /api/reminders                {userId, title, dueUTC, relatedSubjectId, isActive}
    PATCH  /api/reminders                {id, userId, ...changes}
    DELETE /api/reminders?id=<id>&userId=<owner>
    GET    /api/activities?limit=<n>
    POST   /api/activities               {title, description, category}

The server assigns its own reminder ids; reminders created locally are mapped
to the server id returned by POST. Priorities are not stored server-side and
come back as "medium". The API has no schedule endpoint, so this backend does
not persist schedules.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Optional, Union

import requests

from jadwalin.errors import StorageError
from jadwalin.model import ActivityRecord, Reminder
from jadwalin.storage import Snapshot, migrate, snapshot_from_document

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


def _iso_to_ms(value: Any) -> int:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str) and value:
        try:
            return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp() * 1000)
        except ValueError:
            pass
    return 0


class ApiBackend:
    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        activity_limit: int = 100,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.activity_limit = activity_limit
        # local reminder id -> server reminder id
        self._remote_ids: dict[str, str] = {}

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = self.session.request(method, self._url(path), timeout=self.timeout, **kwargs)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise StorageError(f"{method} {path} failed: {exc}") from exc
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise StorageError(f"{method} {path} returned invalid JSON") from exc

    def load(self, owner_id: str) -> Snapshot:
        reminders = self._request("GET", "/api/reminders", params={"userId": owner_id})
        activities = self._request("GET", "/api/activities", params={"limit": self.activity_limit})

        if not isinstance(reminders, list):
            raise StorageError("GET /api/reminders did not return a list")
        if not isinstance(activities, list):
            activities = []

        for r in reminders:
            if isinstance(r, dict) and r.get("id"):
                self._remote_ids[str(r["id"])] = str(r["id"])

        # the API speaks the version 0 (camelCase) shape
        doc = migrate(
            {
                "reminders": reminders,
                "activities": [
                    {**a, "userId": a.get("userId", owner_id), "timestamp": _iso_to_ms(a.get("createdAt", a.get("timestamp")))}
                    for a in activities
                    if isinstance(a, dict)
                ],
            }
        )
        return snapshot_from_document(doc)

    def save(self, entity: Union[Reminder, ActivityRecord]) -> None:
        if isinstance(entity, ActivityRecord):
            self._request(
                "POST",
                "/api/activities",
                json={"title": entity.title, "description": entity.description, "category": entity.category.value},
            )
            return
        if not isinstance(entity, Reminder):
            raise TypeError(f"Cannot persist {type(entity).__name__}")
        if entity.due_ms is None:
            raise StorageError(f"Reminder {entity.id} has no due time")

        remote_id = self._remote_ids.get(entity.id)
        if remote_id is None:
            body = self._request(
                "POST",
                "/api/reminders",
                json={
                    "userId": entity.owner_id,
                    "title": entity.title,
                    "dueUTC": entity.due_ms,
                    "relatedSubjectId": entity.related_subject_id,
                    "isActive": not entity.completed,
                },
            )
            created = (body or {}).get("reminder") if isinstance(body, dict) else None
            self._remote_ids[entity.id] = str(created["id"]) if created and created.get("id") else entity.id
            return

        self._request(
            "PATCH",
            "/api/reminders",
            json={
                "id": remote_id,
                "userId": entity.owner_id,
                "title": entity.title,
                "dueUTC": entity.due_ms,
                "relatedSubjectId": entity.related_subject_id,
                "isActive": not entity.completed,
            },
        )

    def delete(self, entity: Reminder) -> None:
        remote_id = self._remote_ids.pop(entity.id, entity.id)
        self._request("DELETE", "/api/reminders", params={"id": remote_id, "userId": entity.owner_id})
