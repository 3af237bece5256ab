"""
Persistent storage for one owner's reminders, activity log and weekly schedule.

This module manages one JSON document per owner:

    <data_dir>/<owner_id>.json

Document layout (schema_version 2):

    {
      "schema_version": 2,
      "owner_id": "...",
      "reminders": [ {Reminder.to_dict()}, ... ],
      "activities": [ {ActivityRecord.to_dict()}, ... ],
      "schedule": [ {TimeInterval.to_dict()}, ... ]
    }

Older documents are upgraded on load by running MIGRATIONS in order, from the
stored version to SCHEMA_VERSION. Version 0 is the browser-side store of the
web app ({"reminders": [{"userId", "dueUTC", "isActive", ...}]}).

A missing or corrupted file yields an empty snapshot (logged) instead of
crashing the session. Only a document from a newer schema is refused.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Union

from jadwalin.errors import StorageError
from jadwalin.model import ActivityRecord, Reminder, TimeInterval

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

Document = dict[str, Any]


@dataclass
class Snapshot:
    reminders: list[Reminder] = field(default_factory=list)
    activities: list[ActivityRecord] = field(default_factory=list)
    schedule: list[TimeInterval] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Schema migrations
# ---------------------------------------------------------------------------


def _empty_document(owner_id: str) -> Document:
    return {"schema_version": SCHEMA_VERSION, "owner_id": owner_id, "reminders": [], "activities": [], "schedule": []}


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, list) else []


def _v0_to_v1(data: Document) -> Document:
    """camelCase browser store -> snake_case; isActive becomes completed."""
    reminders = []
    for r in _as_list(data.get("reminders")):
        if not isinstance(r, dict):
            continue
        reminders.append(
            {
                "id": r.get("id"),
                "owner_id": r.get("userId", r.get("owner_id")),
                "title": r.get("title"),
                "due_ms": r.get("dueUTC", r.get("due_ms")),
                "completed": not r.get("isActive", True),
                "related_subject_id": r.get("relatedSubjectId"),
            }
        )
    activities = []
    for a in _as_list(data.get("activities")):
        if not isinstance(a, dict):
            continue
        activities.append(
            {
                "id": a.get("id"),
                "owner_id": a.get("userId", a.get("owner_id")),
                "title": a.get("title"),
                "description": a.get("description"),
                "timestamp_ms": a.get("timestamp", 0),
                "category": a.get("category", "other"),
            }
        )
    return {"owner_id": data.get("owner_id"), "reminders": reminders, "activities": activities}


def _v1_to_v2(data: Document) -> Document:
    """Priorities and the weekly schedule were added in version 2."""
    out = dict(data)
    out["reminders"] = [
        {**r, "priority": r.get("priority", "medium")} for r in _as_list(data.get("reminders")) if isinstance(r, dict)
    ]
    out["schedule"] = _as_list(data.get("schedule"))
    return out


# (from_version, upgrade) pairs; each upgrade returns data for from_version + 1
MIGRATIONS: list[tuple[int, Callable[[Document], Document]]] = [
    (0, _v0_to_v1),
    (1, _v1_to_v2),
]


def migrate(data: Document) -> Document:
    """
    Upgrade a stored document to SCHEMA_VERSION.

    Documents without a version tag are treated as version 0.
    Raises StorageError for documents written by a newer version.
    """
    version = data.get("schema_version", 0)
    if isinstance(version, bool) or not isinstance(version, int) or version < 0:
        raise StorageError(f"Invalid schema_version: {version!r}")
    if version > SCHEMA_VERSION:
        raise StorageError(f"Unsupported schema_version {version} (newest known is {SCHEMA_VERSION})")

    for from_version, upgrade in MIGRATIONS:
        if version == from_version:
            data = upgrade(data)
            version += 1
            logger.debug("Migrated document to schema_version %d", version)
    data["schema_version"] = version
    return data


def snapshot_from_document(data: Document) -> Snapshot:
    snap = Snapshot()
    for raw in _as_list(data.get("reminders")):
        if isinstance(raw, dict) and raw.get("id"):
            snap.reminders.append(Reminder.from_dict(raw))
    for raw in _as_list(data.get("activities")):
        if isinstance(raw, dict):
            try:
                snap.activities.append(ActivityRecord.from_dict(raw))
            except (OverflowError, TypeError, ValueError):
                logger.warning("Skipping malformed activity record: %r", raw)
    for raw in _as_list(data.get("schedule")):
        try:
            snap.schedule.append(TimeInterval.from_dict(raw))
        except (KeyError, OverflowError, TypeError, ValueError):
            logger.warning("Skipping malformed schedule entry: %r", raw)
    return snap


# ---------------------------------------------------------------------------
# JSON file backend
# ---------------------------------------------------------------------------

_SAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]+")


class JsonFileBackend:
    """
    Persistence collaborator writing one JSON file per owner.

    Using a directory parameter instead of a constant makes testing easier,
    because tests can point it at a temporary directory.
    """

    def __init__(self, data_dir: Union[str, Path], activity_limit: int = 100) -> None:
        self.data_dir = Path(data_dir)
        self.activity_limit = activity_limit
        self._docs: dict[str, Document] = {}
        self._lock = threading.Lock()

    def path_for(self, owner_id: str) -> Path:
        name = _SAFE_NAME.sub("_", owner_id.strip()) or "_"
        return self.data_dir / f"{name}.json"

    def _read(self, owner_id: str) -> Document:
        path = self.path_for(owner_id)

        # First run: file does not exist yet -> empty document
        if not path.exists():
            return _empty_document(owner_id)

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("Ignoring unreadable data file %s: %s", path, exc)
            return _empty_document(owner_id)

        # the web app stored a bare list of reminders under some keys
        if isinstance(data, list):
            data = {"reminders": data}
        if not isinstance(data, dict):
            logger.warning("Ignoring data file %s: unexpected top-level %s", path, type(data).__name__)
            data = {}
        data = migrate(data)
        data["owner_id"] = owner_id
        return data

    def _doc(self, owner_id: str) -> Document:
        doc = self._docs.get(owner_id)
        if doc is None:
            doc = self._docs[owner_id] = self._read(owner_id)
        return doc

    def _write(self, owner_id: str) -> None:
        path = self.path_for(owner_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(self._docs[owner_id], indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(path)

    def load(self, owner_id: str) -> Snapshot:
        with self._lock:
            self._docs.pop(owner_id, None)
            return snapshot_from_document(self._doc(owner_id))

    def save(self, entity: Union[Reminder, ActivityRecord]) -> None:
        with self._lock:
            doc = self._doc(entity.owner_id)
            if isinstance(entity, Reminder):
                items = [r for r in _as_list(doc.get("reminders")) if isinstance(r, dict) and r.get("id") != entity.id]
                items.append(entity.to_dict())
                doc["reminders"] = items
            elif isinstance(entity, ActivityRecord):
                items = _as_list(doc.get("activities"))
                items.append(entity.to_dict())
                doc["activities"] = items[-self.activity_limit:]
            else:
                raise TypeError(f"Cannot persist {type(entity).__name__}")
            self._write(entity.owner_id)

    def delete(self, entity: Reminder) -> None:
        with self._lock:
            doc = self._doc(entity.owner_id)
            doc["reminders"] = [
                r for r in _as_list(doc.get("reminders")) if isinstance(r, dict) and r.get("id") != entity.id
            ]
            self._write(entity.owner_id)

    def save_schedule(self, owner_id: str, intervals: Iterable[TimeInterval]) -> None:
        with self._lock:
            doc = self._doc(owner_id)
            doc["schedule"] = [iv.to_dict() for iv in intervals]
            self._write(owner_id)
