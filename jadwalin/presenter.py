"""
Floating notification queue.

Consumes NotificationEvents in emission order and keeps at most `max_visible`
of them on screen. Overflow waits per priority band (high, medium, low), FIFO
inside a band; a freed slot goes to the oldest waiting item of the highest
non-empty band.

Every visible notification has its own auto-dismiss timer. A manual dismiss
cancels that timer. Dismissing only affects the screen: the reminder and the
scheduler's fired state are untouched.

Listeners receive ("show", notification) and ("hide", notification).
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections import OrderedDict, deque
from dataclasses import dataclass, replace
from functools import partial
from typing import Callable, Optional

from jadwalin.clock import Clock
from jadwalin.config import DEFAULT_AUTO_DISMISS, DEFAULT_MAX_VISIBLE
from jadwalin.model import NotificationEvent, Priority
from jadwalin.timers import TimerHandle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    notification_id: str
    event: NotificationEvent
    shown_at_ms: Optional[int] = None


Listener = Callable[[str, Notification], None]


class FloatingNotificationPresenter:
    def __init__(
        self,
        timers,
        clock: Clock,
        max_visible: int = DEFAULT_MAX_VISIBLE,
        auto_dismiss: Optional[float] = DEFAULT_AUTO_DISMISS,
    ) -> None:
        if max_visible <= 0:
            raise ValueError("max_visible must be positive")
        self.timers = timers
        self.clock = clock
        self.max_visible = max_visible
        self.auto_dismiss = auto_dismiss

        self._visible: "OrderedDict[str, tuple[Notification, Optional[TimerHandle]]]" = OrderedDict()
        self._pending: dict[Priority, deque[Notification]] = {p: deque() for p in Priority}
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()
        self._ids = itertools.count(1)

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _emit(self, changes: list[tuple[str, Notification]]) -> None:
        for kind, notification in changes:
            for listener in list(self._listeners):
                try:
                    listener(kind, notification)
                except Exception:
                    logger.exception("Notification listener failed on %s", kind)

    # -- queue -------------------------------------------------------------

    def handle(self, event: NotificationEvent) -> Notification:
        """Accept one event from the scheduler."""
        changes: list[tuple[str, Notification]] = []
        with self._lock:
            notification = Notification(notification_id=f"notif-{next(self._ids)}", event=event)
            if len(self._visible) < self.max_visible:
                notification = self._show(notification, changes)
            else:
                self._pending[event.priority].append(notification)
        self._emit(changes)
        return notification

    def _show(self, notification: Notification, changes: list[tuple[str, Notification]]) -> Notification:
        shown = replace(notification, shown_at_ms=self.clock.now_ms())
        handle = None
        if self.auto_dismiss is not None and self.auto_dismiss > 0:
            handle = self.timers.call_later(self.auto_dismiss, partial(self._expire, shown.notification_id))
        self._visible[shown.notification_id] = (shown, handle)
        changes.append(("show", shown))
        return shown

    def _promote(self, changes: list[tuple[str, Notification]]) -> None:
        while len(self._visible) < self.max_visible:
            band = next((self._pending[p] for p in sorted(Priority, reverse=True) if self._pending[p]), None)
            if band is None:
                return
            self._show(band.popleft(), changes)

    def _expire(self, notification_id: str) -> None:
        self.dismiss(notification_id)

    def dismiss(self, notification_id: str) -> bool:
        """
        Remove a visible or waiting notification. Returns False for unknown ids.
        """
        changes: list[tuple[str, Notification]] = []
        with self._lock:
            entry = self._visible.pop(notification_id, None)
            if entry is not None:
                notification, handle = entry
                if handle is not None:
                    handle.cancel()
                changes.append(("hide", notification))
                self._promote(changes)
            else:
                found = False
                for band in self._pending.values():
                    for waiting in band:
                        if waiting.notification_id == notification_id:
                            band.remove(waiting)
                            found = True
                            break
                    if found:
                        break
                if not found:
                    return False
        self._emit(changes)
        return True

    def visible(self) -> list[Notification]:
        with self._lock:
            return [n for n, _ in self._visible.values()]

    def pending(self) -> list[Notification]:
        """Waiting notifications in the order they would be shown."""
        with self._lock:
            out: list[Notification] = []
            for p in sorted(Priority, reverse=True):
                out.extend(self._pending[p])
            return out

    def clear(self) -> None:
        """Drop everything and cancel all auto-dismiss timers."""
        changes: list[tuple[str, Notification]] = []
        with self._lock:
            for notification, handle in self._visible.values():
                if handle is not None:
                    handle.cancel()
                changes.append(("hide", notification))
            self._visible.clear()
            for band in self._pending.values():
                band.clear()
        self._emit(changes)
