"""
Central data model definitions used across the project.

This module defines the canonical structure of schedule and reminder objects so that:
- all modules share the same field names
- instants are always epoch milliseconds (int), wall-clock times are minutes since midnight
- entities are immutable; stores replace them instead of mutating in place
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Optional


MINUTES_PER_DAY = 1440


class DayOfWeek(IntEnum):
    """
    Weekday numbering used by the web app (Sunday = 0).
    """

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @property
    def short(self) -> str:
        return self.name[:3].title()

    @classmethod
    def parse(cls, value: Any) -> "DayOfWeek":
        """
        Accept an int (0-6), an English name/abbreviation or an Indonesian day name.
        Raises ValueError for anything else.
        """
        if isinstance(value, DayOfWeek):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)

        text = str(value).strip().lower()
        if text.isdigit():
            return cls(int(text))
        if text in _DAY_ALIASES:
            return _DAY_ALIASES[text]
        for day in cls:
            if len(text) >= 3 and day.name.lower().startswith(text):
                return day
        raise ValueError(f"Unknown day of week: {value!r}")


_DAY_ALIASES = {
    "minggu": DayOfWeek.SUNDAY,
    "senin": DayOfWeek.MONDAY,
    "selasa": DayOfWeek.TUESDAY,
    "rabu": DayOfWeek.WEDNESDAY,
    "kamis": DayOfWeek.THURSDAY,
    "jumat": DayOfWeek.FRIDAY,
    "sabtu": DayOfWeek.SATURDAY,
}


class Priority(IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: Any) -> "Priority":
        if isinstance(value, Priority):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown priority: {value!r}") from None


class ActivityCategory(str, Enum):
    SCHEDULE = "schedule"
    KRS = "krs"
    REMINDER = "reminder"
    SUBJECT = "subject"
    ATTENDANCE = "attendance"
    ASSIGNMENT = "assignment"
    MATERIAL = "material"
    PROFILE = "profile"
    OTHER = "other"


@dataclass(frozen=True)
class TimeInterval:
    """
    One weekly class meeting: [start_minute, end_minute) on a given day.

    title and location are for display only and take no part in overlap checks.
    """

    day: DayOfWeek
    start_minute: int
    end_minute: int
    title: str = field(default="", compare=False)
    location: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "day", DayOfWeek.parse(self.day))
        if not (0 <= self.start_minute < MINUTES_PER_DAY):
            raise ValueError(f"start_minute out of range: {self.start_minute}")
        if not (0 < self.end_minute <= MINUTES_PER_DAY):
            raise ValueError(f"end_minute out of range: {self.end_minute}")
        if self.start_minute >= self.end_minute:
            raise ValueError(
                f"Interval must start before it ends: {self.start_minute} >= {self.end_minute}"
            )

    @property
    def duration(self) -> int:
        return self.end_minute - self.start_minute

    def to_dict(self) -> dict[str, Any]:
        return {
            "day": int(self.day),
            "start_minute": self.start_minute,
            "end_minute": self.end_minute,
            "title": self.title,
            "location": self.location,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeInterval":
        return cls(
            day=DayOfWeek.parse(data["day"]),
            start_minute=int(data["start_minute"]),
            end_minute=int(data["end_minute"]),
            title=str(data.get("title") or ""),
            location=str(data.get("location") or ""),
        )


@dataclass(frozen=True)
class Reminder:
    """
    A user reminder or deadline.

    due_ms is None when the stored data was malformed; such reminders stay
    listable and editable but never fire.
    """

    id: str
    owner_id: str
    title: str
    due_ms: Optional[int]
    priority: Priority = Priority.MEDIUM
    completed: bool = False
    related_subject_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "due_ms": self.due_ms,
            "priority": self.priority.label,
            "completed": self.completed,
            "related_subject_id": self.related_subject_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Reminder":
        due = data.get("due_ms")
        # keep the reminder even when the due instant is broken
        if isinstance(due, bool) or not isinstance(due, (int, float)):
            due = None
        elif isinstance(due, float) and not math.isfinite(due):
            due = None
        try:
            priority = Priority.parse(data.get("priority", "medium"))
        except ValueError:
            priority = Priority.MEDIUM
        subject = data.get("related_subject_id")
        return cls(
            id=str(data.get("id") or ""),
            owner_id=str(data.get("owner_id") or ""),
            title=str(data.get("title") or ""),
            due_ms=int(due) if due is not None else None,
            priority=priority,
            completed=bool(data.get("completed", False)),
            related_subject_id=str(subject) if subject else None,
        )


@dataclass(frozen=True)
class NotificationEvent:
    reminder_id: str
    fired_at_ms: int
    priority: Priority
    title: str = ""
    due_ms: Optional[int] = None


@dataclass(frozen=True)
class ActivityRecord:
    id: str
    owner_id: str
    title: str
    timestamp_ms: int
    category: ActivityCategory = ActivityCategory.OTHER
    description: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "description": self.description,
            "timestamp_ms": self.timestamp_ms,
            "category": self.category.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActivityRecord":
        try:
            category = ActivityCategory(data.get("category", "other"))
        except ValueError:
            category = ActivityCategory.OTHER
        return cls(
            id=str(data.get("id") or ""),
            owner_id=str(data.get("owner_id") or ""),
            title=str(data.get("title") or ""),
            description=data.get("description") or None,
            timestamp_ms=int(data.get("timestamp_ms", 0)),
            category=category,
        )


@dataclass(frozen=True)
class CountdownSnapshot:
    days: int
    hours: int
    minutes: int
    seconds: int
    total_ms: int


@dataclass(frozen=True)
class Identity:
    """
    Who is using the session. Supplied by the authentication layer.
    """

    owner_id: str
    role: str = "mahasiswa"
