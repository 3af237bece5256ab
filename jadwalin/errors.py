"""
Error taxonomy.

- ParseError: malformed clock/date input, raised to the immediate caller
- ScanFault: one reminder could not be scanned; logged by the scheduler, never raised past it
- ClockUnavailable: the clock source could not produce a sample
- StorageError: the persistence collaborator failed or returned unsupported data

Schedule conflicts are not errors; see conflicts.ConflictDetected.
"""

from __future__ import annotations


class ParseError(ValueError):
    """Malformed clock string or date input."""


class ScanFault(Exception):
    def __init__(self, reminder_id: str, reason: str) -> None:
        super().__init__(f"Reminder {reminder_id!r} skipped: {reason}")
        self.reminder_id = reminder_id
        self.reason = reason


class ClockUnavailable(RuntimeError):
    """The time source failed to produce a sample."""


class StorageError(RuntimeError):
    """Loading or saving through the persistence collaborator failed."""
