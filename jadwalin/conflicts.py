"""
Conflict detection.

Intervals are half-open: [start, end). Two intervals conflict iff
    same day AND start < other_end AND other_start < end

Touching endpoints do NOT conflict: 09:00-10:00 and 10:00-11:00 are adjacent.

A conflict is a reportable result, not a failure: nothing in this module raises
for overlapping input. ScheduleSet rejects a conflicting insert and returns a
ConflictDetected describing it; the caller decides whether to block or warn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import tzinfo
from typing import Iterable, Iterator, Optional

from jadwalin.model import DayOfWeek, TimeInterval
from jadwalin.timeutil import format_clock, minute_of_week, next_occurrence

logger = logging.getLogger(__name__)


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    return a.day == b.day and a.start_minute < b.end_minute and b.start_minute < a.end_minute


def find_conflicts(candidate: TimeInterval, existing: Iterable[TimeInterval]) -> list[TimeInterval]:
    """
    Return every interval of `existing` that overlaps `candidate`, in their given order.
    Returns [] when nothing conflicts.
    """
    return [iv for iv in existing if overlaps(candidate, iv)]


def find_schedule_conflicts(intervals: Iterable[TimeInterval]) -> list[tuple[TimeInterval, TimeInterval]]:
    """
    Find overlapping interval pairs (A,B), each pair appears once (i<j).
    """
    items = list(intervals)
    conflicts: list[tuple[TimeInterval, TimeInterval]] = []

    # O(n^2) is fine for typical uni schedule sizes
    for i in range(len(items)):
        for j in range(i + 1, len(items)):
            if overlaps(items[i], items[j]):
                conflicts.append((items[i], items[j]))

    return conflicts


def describe(interval: TimeInterval) -> str:
    label = f" {interval.title}" if interval.title else ""
    end = "24:00" if interval.end_minute == 1440 else format_clock(interval.end_minute)
    return f"{interval.day.short} {format_clock(interval.start_minute)}-{end}{label}"


@dataclass(frozen=True)
class ConflictDetected:
    """
    Result of a rejected insert: the candidate and everything it collides with.
    """

    candidate: TimeInterval
    conflicts: tuple[TimeInterval, ...]

    def __bool__(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self.conflicts)

    def message(self) -> str:
        others = ", ".join(describe(iv) for iv in self.conflicts)
        return f"{describe(self.candidate)} conflicts with {others}"


class ScheduleSet:
    """
    Weekly intervals of one owner (student, lecturer or room).

    Invariant: no two intervals on the same day overlap.
    """

    def __init__(self, owner_id: str, intervals: Iterable[TimeInterval] = (), tz: Optional[tzinfo] = None) -> None:
        self.owner_id = owner_id
        self.tz = tz
        self._intervals: list[TimeInterval] = []
        for iv in intervals:
            rejected = self.add(iv)
            if rejected:
                logger.warning("Dropping stored interval for %s: %s", owner_id, rejected.message())

    def __iter__(self) -> Iterator[TimeInterval]:
        return iter(list(self._intervals))

    def __len__(self) -> int:
        return len(self._intervals)

    def __contains__(self, interval: object) -> bool:
        return interval in self._intervals

    def check(self, candidate: TimeInterval, exclude: Optional[TimeInterval] = None) -> list[TimeInterval]:
        """Conflicts `candidate` would have, without inserting it."""
        others = [iv for iv in self._intervals if exclude is None or iv != exclude]
        return find_conflicts(candidate, others)

    def add(self, candidate: TimeInterval) -> Optional[ConflictDetected]:
        """
        Insert `candidate` if it is conflict-free.

        Returns None on success, otherwise a ConflictDetected and the set is unchanged.
        """
        conflicts = self.check(candidate)
        if conflicts:
            logger.debug("Rejected %s for %s: %d conflict(s)", describe(candidate), self.owner_id, len(conflicts))
            return ConflictDetected(candidate=candidate, conflicts=tuple(conflicts))
        self._intervals.append(candidate)
        return None

    def replace(self, old: TimeInterval, new: TimeInterval) -> Optional[ConflictDetected]:
        """Reschedule `old` to `new`; the old slot does not count as a conflict."""
        if old not in self._intervals:
            raise KeyError(f"Not in schedule: {describe(old)}")
        conflicts = self.check(new, exclude=old)
        if conflicts:
            return ConflictDetected(candidate=new, conflicts=tuple(conflicts))
        self._intervals[self._intervals.index(old)] = new
        return None

    def remove(self, interval: TimeInterval) -> bool:
        try:
            self._intervals.remove(interval)
        except ValueError:
            return False
        return True

    def by_day(self, day: DayOfWeek) -> list[TimeInterval]:
        return sorted((iv for iv in self._intervals if iv.day == day), key=lambda iv: iv.start_minute)

    def ordered(self) -> list[TimeInterval]:
        return sorted(self._intervals, key=lambda iv: minute_of_week(iv.day, iv.start_minute))

    def next_upcoming(self, now_ms: int) -> Optional[tuple[TimeInterval, int]]:
        """
        The interval that starts next after `now_ms`, with its start instant.
        Returns None for an empty schedule.
        """
        best: Optional[tuple[TimeInterval, int]] = None
        for iv in self._intervals:
            at = next_occurrence(iv, now_ms, self.tz)
            if best is None or at < best[1]:
                best = (iv, at)
        return best
