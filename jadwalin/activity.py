"""
Activity log: append-only, newest first on read, capped per owner.

Each owner keeps only the most recent `limit` records (100 by default);
adding to a full log evicts exactly the oldest record.
"""

from __future__ import annotations

import threading
import uuid
from collections import deque
from typing import Optional, Union

from jadwalin.clock import Clock, SystemClock
from jadwalin.config import DEFAULT_ACTIVITY_LIMIT
from jadwalin.model import ActivityCategory, ActivityRecord


class ActivityStore:
    def __init__(self, clock: Optional[Clock] = None, limit: int = DEFAULT_ACTIVITY_LIMIT, backend=None) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        self.clock = clock or SystemClock()
        self.limit = limit
        self.backend = backend
        self._by_owner: dict[str, deque[ActivityRecord]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(d) for d in self._by_owner.values())

    def count(self, owner_id: str) -> int:
        with self._lock:
            return len(self._by_owner.get(owner_id, ()))

    def _append(self, record: ActivityRecord) -> None:
        with self._lock:
            log = self._by_owner.get(record.owner_id)
            if log is None:
                log = self._by_owner[record.owner_id] = deque(maxlen=self.limit)
            log.append(record)

    def load(self, records: list[ActivityRecord]) -> None:
        """Restore persisted records (oldest first after sorting, no save)."""
        with self._lock:
            self._by_owner.clear()
        for record in sorted(records, key=lambda r: r.timestamp_ms):
            self._append(record)

    def add(self, record: ActivityRecord) -> ActivityRecord:
        self._append(record)
        if self.backend is not None:
            self.backend.save(record)
        return record

    def record(
        self,
        owner_id: str,
        title: str,
        category: Union[ActivityCategory, str] = ActivityCategory.OTHER,
        description: Optional[str] = None,
    ) -> ActivityRecord:
        now = self.clock.now_ms()
        return self.add(
            ActivityRecord(
                id=f"activity-{now}-{uuid.uuid4().hex[:9]}",
                owner_id=owner_id,
                title=title,
                description=description,
                timestamp_ms=now,
                category=ActivityCategory(category),
            )
        )

    def list_by_owner(self, owner_id: str, limit: Optional[int] = 10) -> list[ActivityRecord]:
        with self._lock:
            newest_first = list(reversed(self._by_owner.get(owner_id, ())))
        return newest_first if limit is None else newest_first[:limit]

    def clear(self, owner_id: str) -> None:
        with self._lock:
            self._by_owner.pop(owner_id, None)

    def clear_all(self) -> None:
        with self._lock:
            self._by_owner.clear()
