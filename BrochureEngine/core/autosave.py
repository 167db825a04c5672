"""Debounced auto-save.

Every project change (re)starts a timer; when it fires the project is saved through the callback
passed in. Failures are logged and otherwise ignored: auto-save never reports to the user, the next
explicit save does."""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Any, Callable, List, Optional

from loguru import logger

from .event_bus import EventBus, Events

MIN_DELAY = 1.0
MAX_DELAY = 300.0

TRIGGER_EVENTS = (
    Events.PROJECT_DIRTY,
    Events.PAGE_ADDED,
    Events.PAGE_REMOVED,
    Events.PAGE_MOVED,
    Events.PAGE_UPDATED,
    Events.PAGE_DUPLICATED,
    Events.OVERLAY_CHANGED,
    Events.OVERLAY_CLEARED,
)


class AutoSave:
    """Debounce project saves behind a threading.Timer."""

    def __init__(
        self,
        save_callback: Callable[[], Any],
        event_bus: EventBus | None = None,
        delay: float = 30.0,
        enabled: bool = True,
    ):
        self.save_callback = save_callback
        self.enabled = enabled
        self.delay = delay
        self.last_save_time: Optional[datetime] = None
        self.save_count = 0
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._unsubscribers: List[Callable[[], None]] = []
        if event_bus is not None:
            self.attach(event_bus)

    @property
    def delay(self) -> float:
        return self._delay

    @delay.setter
    def delay(self, value: float):
        if value < MIN_DELAY or value > MAX_DELAY:
            raise ValueError(f"Auto-save delay must be between {MIN_DELAY:g} and {MAX_DELAY:g} seconds")
        self._delay = float(value)

    def attach(self, event_bus: EventBus):
        for topic in TRIGGER_EVENTS:
            self._unsubscribers.append(event_bus.on(topic, lambda _payload: self.schedule()))
        self._unsubscribers.append(event_bus.on(Events.PROJECT_SAVED, self._on_saved))

    def detach(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self.cancel()

    def _on_saved(self, payload: Any):
        # a user save makes the pending auto-save redundant
        if not (isinstance(payload, dict) and payload.get("autoSave")):
            self.cancel()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self, delay: Optional[float] = None):
        """Restart the debounce timer."""
        if not self.enabled:
            return
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay if delay is None else delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self):
        with self._lock:
            self._timer = None
        self.run_now()

    def run_now(self) -> bool:
        """Save immediately, swallowing (and logging) any failure.

        Return:
            bool: whether the save went through"""
        try:
            result = self.save_callback()
        except Exception as exc:
            logger.error(f"Auto-save failed: {exc}")
            return False
        if result is False:
            return False
        self.last_save_time = datetime.now()
        self.save_count += 1
        logger.debug(f"Auto-saved (#{self.save_count})")
        return True

    def flush(self) -> bool:
        """Run a pending save right away; nothing happens when no save is pending."""
        if not self.pending:
            return False
        self.cancel()
        return self.run_now()

    def stats(self) -> dict:
        return {
            "enabled": self.enabled,
            "delay": self.delay,
            "pending": self.pending,
            "saveCount": self.save_count,
            "lastSaveTime": self.last_save_time.isoformat() if self.last_save_time else None,
        }


__all__ = ["AutoSave"]
