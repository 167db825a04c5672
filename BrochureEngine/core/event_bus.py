"""Typed in-process message bus.

Editors, the overlay store, the project session and auto-save talk to each other through
named topics instead of direct references. Every listener runs inside its own error
boundary: an exception is logged and the remaining listeners still receive the event."""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List

from loguru import logger

Listener = Callable[[Any], None]


class Events:
    """Topic names shared by every publisher and subscriber."""

    PROJECT_CREATED = "project:created"
    PROJECT_LOADED = "project:loaded"
    PROJECT_SAVED = "project:saved"
    PROJECT_DIRTY = "project:dirty"

    PAGE_ADDED = "page:added"
    PAGE_REMOVED = "page:removed"
    PAGE_UPDATED = "page:updated"
    PAGE_MOVED = "page:moved"
    PAGE_DUPLICATED = "page:duplicated"

    TEMPLATES_LOADED = "templates:loaded"
    TEMPLATE_COPIES_REPAIRED = "templates:copies-repaired"

    OVERLAY_CHANGED = "overlay:changed"
    OVERLAY_CLEARED = "overlay:cleared"
    OVERLAY_LOADED = "overlay:loaded"

    EXPORT_COMPLETED = "export:completed"
    EXPORT_FAILED = "export:failed"


class EventBus:
    """Publish/subscribe registry keyed by topic.

    Listeners are kept in subscription order; a listener registered twice for the same
    topic is only called once."""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._lock = threading.RLock()

    def on(self, topic: str, callback: Listener) -> Callable[[], None]:
        """Subscribe to a topic and return an unsubscribe function."""
        with self._lock:
            if callback not in self._listeners[topic]:
                self._listeners[topic].append(callback)
        return lambda: self.off(topic, callback)

    def off(self, topic: str, callback: Listener) -> None:
        with self._lock:
            listeners = self._listeners.get(topic)
            if listeners and callback in listeners:
                listeners.remove(callback)

    def once(self, topic: str, callback: Listener) -> Callable[[], None]:
        """Subscribe for a single delivery."""

        def _wrapper(payload: Any) -> None:
            unsubscribe()
            callback(payload)

        unsubscribe = self.on(topic, _wrapper)
        return unsubscribe

    def emit(self, topic: str, payload: Any = None) -> int:
        """Deliver the payload to every listener of the topic.

        Returns:
            int: number of listeners that completed without raising."""
        with self._lock:
            listeners = list(self._listeners.get(topic, ()))

        delivered = 0
        for callback in listeners:
            try:
                callback(payload)
                delivered += 1
            except Exception as exc:
                logger.warning(f"Error in event listener for '{topic}': {exc}")
        return delivered

    def clear(self, topic: str | None = None) -> None:
        with self._lock:
            if topic is None:
                self._listeners.clear()
            else:
                self._listeners.pop(topic, None)

    def listener_count(self, topic: str) -> int:
        with self._lock:
            return len(self._listeners.get(topic, ()))


__all__ = ["EventBus", "Events", "Listener"]
