"""
Session host context.

Owns everything that lives for one signed-in user:

    session = Session(JsonFileBackend(data_dir), clock, timers, settings)
    session.init(Identity(owner_id="u-123", role="mahasiswa"))
    ...
    session.dispose()

init() loads the owner's data, wires scheduler -> presenter and starts the scan.
dispose() stops the scan first, so no notification is delivered afterwards,
then clears the screen queue and drops the in-memory fired ledger.

Stores are created here and handed to their consumers; nothing else reaches for
them as globals.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from jadwalin.activity import ActivityStore
from jadwalin.clock import Clock, SystemClock
from jadwalin.config import Settings, load_settings
from jadwalin.conflicts import ConflictDetected, ScheduleSet, describe
from jadwalin.countdown import CountdownClock
from jadwalin.model import ActivityCategory, CountdownSnapshot, Identity, Priority, Reminder, TimeInterval
from jadwalin.presenter import FloatingNotificationPresenter
from jadwalin.reminders import ReminderStore
from jadwalin.scheduler import FiredLedger, JsonFiredLedger, NotificationScheduler
from jadwalin.timers import ThreadTimers

logger = logging.getLogger(__name__)


class Session:
    def __init__(self, backend, clock: Optional[Clock] = None, timers=None, settings: Optional[Settings] = None) -> None:
        self.backend = backend
        self.clock = clock or SystemClock()
        self.timers = timers if timers is not None else ThreadTimers()
        self.settings = settings or load_settings()
        self.tz = ZoneInfo(self.settings.timezone)

        self.identity: Optional[Identity] = None
        self.activity: Optional[ActivityStore] = None
        self.reminders: Optional[ReminderStore] = None
        self.schedule: Optional[ScheduleSet] = None
        self.ledger: Optional[FiredLedger] = None
        self.scheduler: Optional[NotificationScheduler] = None
        self.presenter: Optional[FloatingNotificationPresenter] = None
        self._countdowns: list[CountdownClock] = []

    # -- lifecycle ---------------------------------------------------------

    @property
    def active(self) -> bool:
        return self.identity is not None

    def init(self, identity: Identity, start: bool = True) -> "Session":
        if self.active:
            raise RuntimeError(f"Session already initialised for {self.identity.owner_id}")
        owner = identity.owner_id
        snapshot = self.backend.load(owner)

        self.activity = ActivityStore(clock=self.clock, limit=self.settings.activity_limit, backend=self.backend)
        self.activity.load([a for a in snapshot.activities if a.owner_id == owner])
        self.reminders = ReminderStore(backend=self.backend, activity=self.activity)
        self.reminders.load([r for r in snapshot.reminders if r.owner_id == owner])
        self.schedule = ScheduleSet(owner, snapshot.schedule, tz=self.tz)

        if self.settings.persist_fired_ledger:
            self.ledger = JsonFiredLedger(self.settings.ledger_path(owner))
        else:
            self.ledger = FiredLedger()

        self.scheduler = NotificationScheduler(
            self.reminders,
            self.clock,
            owner,
            ledger=self.ledger,
            period=self.settings.scan_period,
            lead_ms=self.settings.lead_ms,
        )
        self.presenter = FloatingNotificationPresenter(
            self.timers,
            self.clock,
            max_visible=self.settings.max_visible,
            auto_dismiss=self.settings.auto_dismiss,
        )
        self.scheduler.subscribe(self.presenter.handle)
        self.identity = identity
        logger.info(
            "Session started for %s (%s): %d reminders, %d classes",
            owner,
            identity.role,
            len(self.reminders),
            len(self.schedule),
        )

        if start:
            self.scheduler.start(self.timers)
        return self

    def dispose(self) -> None:
        if not self.active:
            return
        self.scheduler.stop()
        for countdown in self._countdowns:
            countdown.cancel()
        self._countdowns.clear()
        self.presenter.clear()
        # a persisted ledger must survive the session
        if not isinstance(self.ledger, JsonFiredLedger):
            self.ledger.clear()
        logger.info("Session ended for %s", self.identity.owner_id)

        self.identity = None
        self.activity = self.reminders = self.schedule = None
        self.ledger = self.scheduler = self.presenter = None

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()

    def _require(self) -> Identity:
        if self.identity is None:
            raise RuntimeError("Session not initialised; call init() first")
        return self.identity

    # -- user actions ------------------------------------------------------

    def add_reminder(
        self,
        title: str,
        due_ms: int,
        priority: Priority = Priority.MEDIUM,
        related_subject_id: Optional[str] = None,
    ) -> Reminder:
        identity = self._require()
        return self.reminders.add(
            Reminder(
                id="",
                owner_id=identity.owner_id,
                title=title,
                due_ms=due_ms,
                priority=Priority.parse(priority),
                related_subject_id=related_subject_id,
            )
        )

    def complete(self, reminder_id: str) -> Reminder:
        identity = self._require()
        reminder = self.reminders.get(reminder_id)
        if reminder is None or reminder.owner_id != identity.owner_id:
            raise KeyError(reminder_id)
        was_completed = reminder.completed
        reminder = self.reminders.complete(reminder_id)
        if not was_completed:
            self.activity.record(
                identity.owner_id, f"Pengingat selesai: {reminder.title}", category=ActivityCategory.REMINDER
            )
        return reminder

    def dismiss(self, notification_id: str) -> bool:
        self._require()
        return self.presenter.dismiss(notification_id)

    def _save_schedule(self) -> None:
        save_schedule = getattr(self.backend, "save_schedule", None)
        if save_schedule is not None:
            save_schedule(self.schedule.owner_id, self.schedule.ordered())

    def add_class(self, interval: TimeInterval) -> Optional[ConflictDetected]:
        """
        Add a weekly class. Returns ConflictDetected (and changes nothing) on overlap.
        """
        identity = self._require()
        rejected = self.schedule.add(interval)
        if rejected:
            return rejected
        self._save_schedule()
        self.activity.record(
            identity.owner_id, f"Jadwal ditambahkan: {describe(interval)}", category=ActivityCategory.SCHEDULE
        )
        return None

    def remove_class(self, interval: TimeInterval) -> bool:
        self._require()
        if not self.schedule.remove(interval):
            return False
        self._save_schedule()
        return True

    def countdown_for(
        self, target_ms: int, on_snapshot: Optional[Callable[[CountdownSnapshot], None]] = None
    ) -> CountdownClock:
        self._require()
        countdown = CountdownClock(target_ms, self.clock)
        if on_snapshot is not None:
            countdown.start(self.timers, on_snapshot)
            self._countdowns.append(countdown)
        return countdown

    def countdown_to_next_class(
        self, on_snapshot: Optional[Callable[[CountdownSnapshot], None]] = None
    ) -> Optional[CountdownClock]:
        """
        Countdown to the next class start, or None with an empty schedule.
        With on_snapshot the countdown is started on the session timers and
        cancelled by dispose().
        """
        self._require()
        upcoming = self.schedule.next_upcoming(self.clock.now_ms())
        if upcoming is None:
            return None
        return self.countdown_for(upcoming[1], on_snapshot)
