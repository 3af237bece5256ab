"""
In-process reminder store.

Reminders are immutable; every mutation swaps in a new object under a single
writer lock, so a concurrent scan sees either the old or the new reminder,
never a half-updated one. Each mutation is forwarded to the persistence
backend (if one is attached) after the in-memory change.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import fields, replace
from typing import Any, Optional

from jadwalin.model import ActivityCategory, Priority, Reminder

logger = logging.getLogger(__name__)

DAY_MS = 86_400_000

_MUTABLE_FIELDS = {f.name for f in fields(Reminder)} - {"id"}


def new_id() -> str:
    return uuid.uuid4().hex


class ReminderStore:
    def __init__(self, backend=None, activity=None) -> None:
        self.backend = backend
        self.activity = activity
        self._items: dict[str, Reminder] = {}
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def load(self, reminders: list[Reminder]) -> None:
        """Replace the contents with already-persisted reminders (no save)."""
        with self._lock:
            self._items = {r.id: r for r in reminders if r.id}

    def _persist(self, reminder: Reminder) -> None:
        if self.backend is not None:
            self.backend.save(reminder)

    def add(self, reminder: Reminder) -> Reminder:
        if not reminder.id:
            reminder = replace(reminder, id=new_id())
        with self._lock:
            if reminder.id in self._items:
                raise ValueError(f"Reminder already exists: {reminder.id}")
            self._items[reminder.id] = reminder
        self._persist(reminder)
        logger.debug("Added reminder %s for %s", reminder.id, reminder.owner_id)

        if self.activity is not None:
            self.activity.record(
                reminder.owner_id,
                f"Pengingat ditambahkan: {reminder.title}",
                category=ActivityCategory.REMINDER,
            )
        return reminder

    def update(self, reminder_id: str, **changes: Any) -> Reminder:
        """
        Apply partial changes. Raises KeyError for an unknown id and
        TypeError for fields a reminder does not have (or 'id').
        """
        unknown = set(changes) - _MUTABLE_FIELDS
        if unknown:
            raise TypeError(f"Cannot update reminder fields: {', '.join(sorted(unknown))}")
        if "priority" in changes:
            changes["priority"] = Priority.parse(changes["priority"])

        with self._lock:
            current = self._items[reminder_id]
            updated = replace(current, **changes)
            self._items[reminder_id] = updated
        self._persist(updated)
        return updated

    def complete(self, reminder_id: str) -> Reminder:
        """Mark as completed. Completing twice is a no-op."""
        with self._lock:
            current = self._items[reminder_id]
            if current.completed:
                return current
            updated = replace(current, completed=True)
            self._items[reminder_id] = updated
        self._persist(updated)
        return updated

    def reopen(self, reminder_id: str) -> Reminder:
        with self._lock:
            current = self._items[reminder_id]
            if not current.completed:
                return current
            updated = replace(current, completed=False)
            self._items[reminder_id] = updated
        self._persist(updated)
        return updated

    def remove(self, reminder_id: str) -> bool:
        with self._lock:
            removed = self._items.pop(reminder_id, None)
        if removed is None:
            return False
        if self.backend is not None:
            self.backend.delete(removed)
        return True

    def get(self, reminder_id: str) -> Optional[Reminder]:
        with self._lock:
            return self._items.get(reminder_id)

    def list_by_owner(self, owner_id: str) -> list[Reminder]:
        """All reminders of one owner. Order is unspecified; sort by due_ms if needed."""
        with self._lock:
            return [r for r in self._items.values() if r.owner_id == owner_id]

    def snapshot(self, owner_id: Optional[str] = None) -> list[Reminder]:
        with self._lock:
            items = list(self._items.values())
        if owner_id is None:
            return items
        return [r for r in items if r.owner_id == owner_id]

    def upcoming(self, owner_id: str, now_ms: int, within_ms: int = DAY_MS) -> list[Reminder]:
        """Open reminders due in (now, now + within], soonest first."""
        horizon = now_ms + within_ms
        out = [
            r
            for r in self.list_by_owner(owner_id)
            if not r.completed and r.due_ms is not None and now_ms < r.due_ms <= horizon
        ]
        return sorted(out, key=lambda r: r.due_ms)

    def overdue(self, owner_id: str, now_ms: int) -> list[Reminder]:
        """Open reminders already past due, most recently due first."""
        out = [
            r
            for r in self.list_by_owner(owner_id)
            if not r.completed and r.due_ms is not None and r.due_ms < now_ms
        ]
        return sorted(out, key=lambda r: r.due_ms, reverse=True)

    def clear_owner(self, owner_id: str) -> int:
        with self._lock:
            doomed = [r for r in self._items.values() if r.owner_id == owner_id]
            for r in doomed:
                del self._items[r.id]
        if self.backend is not None:
            for r in doomed:
                self.backend.delete(r)
        return len(doomed)
