"""
Reminder notification scheduler.

Each scan tick:
1. read `now` from the clock
2. snapshot the active owner's reminders (under the store lock)
3. every open reminder whose trigger point (due_ms - lead_ms) is <= now and
   whose current due_ms has not fired yet produces one NotificationEvent
4. events of the tick are ordered: priority high -> low, then due_ms, then id
5. ledger entries of completed or deleted reminders are pruned
6. events are handed to subscribers, unless the scheduler was stopped

Per reminder this is a small state machine:

    PENDING  --(trigger point passes)-->  DUE_UNFIRED  --(scan)-->  FIRED

FIRED holds for one due-crossing. The ledger remembers which due_ms fired, so
moving the due time starts a new crossing and the reminder can fire again.

A reminder with a broken due time is reported once (ScanFault, logged and passed
to on_fault) and skipped; the rest of the scan carries on.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from jadwalin.clock import Clock
from jadwalin.config import DEFAULT_SCAN_PERIOD
from jadwalin.countdown import remaining
from jadwalin.errors import ClockUnavailable, ScanFault
from jadwalin.model import CountdownSnapshot, NotificationEvent, Reminder
from jadwalin.reminders import ReminderStore
from jadwalin.timers import TimerHandle

logger = logging.getLogger(__name__)

Subscriber = Callable[[NotificationEvent], None]


def event_order(event: NotificationEvent) -> tuple[int, int, str]:
    due = event.due_ms if event.due_ms is not None else 0
    return (-int(event.priority), due, event.reminder_id)


class FiredLedger:
    """
    Which due-crossing of each reminder already fired: reminder id -> due_ms.

    Session-scoped: it lives in memory and is gone after a restart, so reminders
    that are still due fire again in the next session.
    """

    def __init__(self) -> None:
        self._fired: dict[str, int] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._fired)

    def __contains__(self, reminder_id: object) -> bool:
        with self._lock:
            return reminder_id in self._fired

    def has_fired(self, reminder_id: str, due_ms: int) -> bool:
        with self._lock:
            return self._fired.get(reminder_id) == due_ms

    def record(self, reminder_id: str, due_ms: int) -> None:
        with self._lock:
            self._fired[reminder_id] = due_ms
        self._changed()

    def prune(self, keep: Iterable[str]) -> int:
        """Forget every reminder id not in `keep`. Returns how many were dropped."""
        keep = set(keep)
        with self._lock:
            doomed = [rid for rid in self._fired if rid not in keep]
            for rid in doomed:
                del self._fired[rid]
        if doomed:
            self._changed()
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._fired.clear()
        self._changed()

    def _changed(self) -> None:
        pass


class JsonFiredLedger(FiredLedger):
    """
    Ledger persisted to a JSON file, so a restart does not fire the same
    due-crossing twice.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        super().__init__()
        self.path = Path(path)
        self._fired.update(self._read())

    def _read(self) -> dict[str, int]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("Ignoring unreadable fired ledger %s: %s", self.path, exc)
            return {}
        fired = data.get("fired", {}) if isinstance(data, dict) else {}
        if not isinstance(fired, dict):
            return {}
        return {str(k): int(v) for k, v in fired.items() if isinstance(v, int) and not isinstance(v, bool)}

    def _changed(self) -> None:
        with self._lock:
            payload = {"fired": dict(self._fired)}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        tmp.replace(self.path)


class NotificationScheduler:
    def __init__(
        self,
        store: ReminderStore,
        clock: Clock,
        owner_id: str,
        ledger: Optional[FiredLedger] = None,
        period: float = DEFAULT_SCAN_PERIOD,
        lead_ms: int = 0,
        on_fault: Optional[Callable[[ScanFault], None]] = None,
    ) -> None:
        if period <= 0:
            raise ValueError("period must be positive")
        self.store = store
        self.clock = clock
        self.owner_id = owner_id
        self.ledger = ledger if ledger is not None else FiredLedger()
        self.period = period
        self.lead_ms = lead_ms
        self.on_fault = on_fault
        self.last_scan_ms: Optional[int] = None

        self._subscribers: list[Subscriber] = []
        self._reported: set[str] = set()
        # one tick at a time, so earlier ticks are always delivered before later ones
        self._scan_lock = threading.RLock()
        # held while delivering; stop() takes it so nothing is delivered after stop() returns
        self._deliver_lock = threading.RLock()
        self._stopped = threading.Event()
        self._handle: Optional[TimerHandle] = None

    # -- subscription ------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # -- lifecycle ---------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._handle is not None and not self._handle.cancelled

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def start(self, timers) -> None:
        """Scan now, then every `period` seconds."""
        if self.running:
            raise RuntimeError("Scheduler already running")
        self._stopped.clear()
        self.scan()
        self._handle = timers.call_every(self.period, self.scan)
        logger.info("Reminder scan started for %s every %ss", self.owner_id, self.period)

    def stop(self) -> None:
        with self._deliver_lock:
            self._stopped.set()
            if self._handle is not None:
                self._handle.cancel()
        logger.info("Reminder scan stopped for %s", self.owner_id)

    # -- scanning ----------------------------------------------------------

    def _report(self, fault: ScanFault) -> None:
        if fault.reminder_id in self._reported:
            return
        self._reported.add(fault.reminder_id)
        logger.warning("%s", fault)
        if self.on_fault is not None:
            try:
                self.on_fault(fault)
            except Exception:
                logger.exception("Fault handler failed for reminder %s", fault.reminder_id)

    def _evaluate(self, reminder: Reminder, now_ms: int) -> Optional[NotificationEvent]:
        due = reminder.due_ms
        if due is None or isinstance(due, bool) or not isinstance(due, int):
            raise ScanFault(reminder.id, "missing or invalid due time")
        if due - self.lead_ms > now_ms:
            return None
        if self.ledger.has_fired(reminder.id, due):
            return None
        return NotificationEvent(
            reminder_id=reminder.id,
            fired_at_ms=now_ms,
            priority=reminder.priority,
            title=reminder.title,
            due_ms=due,
        )

    def collect(self, now_ms: int) -> list[NotificationEvent]:
        """
        Compute (and record as fired) the events for one tick at `now_ms`,
        without delivering them.
        """
        with self._scan_lock:
            reminders = self.store.snapshot(self.owner_id)
            events: list[NotificationEvent] = []

            for reminder in reminders:
                if reminder.completed:
                    continue
                try:
                    event = self._evaluate(reminder, now_ms)
                except ScanFault as fault:
                    self._report(fault)
                    continue
                except Exception as exc:
                    self._report(ScanFault(reminder.id, f"unexpected error: {exc!r}"))
                    continue
                # a corrected reminder may be reported again if it breaks later
                self._reported.discard(reminder.id)
                if event is not None:
                    events.append(event)

            events.sort(key=event_order)
            for event in events:
                self.ledger.record(event.reminder_id, event.due_ms)

            open_ids = {r.id for r in reminders if not r.completed}
            pruned = self.ledger.prune(open_ids)
            if pruned:
                logger.debug("Pruned %d fired ledger entries", pruned)
            self._reported &= {r.id for r in reminders}

            self.last_scan_ms = now_ms
            return events

    def scan(self) -> list[NotificationEvent]:
        """
        One scan tick. Returns the events that were actually delivered.
        """
        if self.stopped:
            return []
        try:
            now = self.clock.now_ms()
        except ClockUnavailable as exc:
            logger.warning("Skipping reminder scan, clock unavailable: %s", exc)
            return []

        delivered: list[NotificationEvent] = []
        with self._scan_lock:
            events = self.collect(now)
            for event in events:
                with self._deliver_lock:
                    if self.stopped:
                        break
                    for callback in list(self._subscribers):
                        try:
                            callback(event)
                        except Exception:
                            logger.exception("Notification subscriber failed for %s", event.reminder_id)
                    delivered.append(event)
        if delivered:
            logger.debug("Delivered %d notification(s) for %s", len(delivered), self.owner_id)
        return delivered

    def next_due(self, now_ms: Optional[int] = None) -> Optional[tuple[Reminder, CountdownSnapshot]]:
        """The next open reminder still ahead of now, with the time left until it."""
        now = self.clock.now_ms() if now_ms is None else now_ms
        ahead = [
            r
            for r in self.store.snapshot(self.owner_id)
            if not r.completed and isinstance(r.due_ms, int) and r.due_ms > now
        ]
        if not ahead:
            return None
        soonest = min(ahead, key=lambda r: (r.due_ms, r.id))
        return soonest, remaining(soonest.due_ms, now)
