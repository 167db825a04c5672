"""Page-keyed registry of overlay edits.

An overlay is structured, JSON-serialisable edit data that is applied to a template at render
time, so the template itself never has to change. Each page owns one overlay with four
categories, every entry keyed by CSS selector:

    text        selector -> replacement text         (replace)
    images      selector -> image url                (replace)
    containers  selector -> {css property: value}    (shallow merge)
    sections    selector -> {css property: value}    (shallow merge)

The page id is passed explicitly to every call; the store has no notion of a "current page"."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from loguru import logger

from .event_bus import EventBus, Events

TEXT = "text"
IMAGES = "images"
CONTAINERS = "containers"
SECTIONS = "sections"

OVERLAY_CATEGORIES = (TEXT, IMAGES, CONTAINERS, SECTIONS)
REPLACE_CATEGORIES = (TEXT, IMAGES)
MERGE_CATEGORIES = (CONTAINERS, SECTIONS)


@dataclass
class Overlay:
    """Edits of a single page."""

    text: Dict[str, str] = field(default_factory=dict)
    images: Dict[str, str] = field(default_factory=dict)
    containers: Dict[str, Dict[str, str]] = field(default_factory=dict)
    sections: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def category(self, name: str) -> Dict[str, Any]:
        """Return the mutable mapping of one category."""
        if name not in OVERLAY_CATEGORIES:
            raise ValueError(f"Unknown overlay category: {name!r}")
        return getattr(self, name)

    def is_empty(self) -> bool:
        return not (self.text or self.images or self.containers or self.sections)

    def count(self) -> int:
        return len(self.text) + len(self.images) + len(self.containers) + len(self.sections)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Plain nested dicts in the persisted project format."""
        return {
            TEXT: dict(self.text),
            IMAGES: dict(self.images),
            CONTAINERS: {sel: dict(props) for sel, props in self.containers.items()},
            SECTIONS: {sel: dict(props) for sel, props in self.sections.items()},
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Overlay":
        """Build an overlay from persisted data, tolerating missing or malformed categories."""
        overlay = cls()
        if not isinstance(data, Mapping):
            return overlay

        for name in REPLACE_CATEGORIES:
            entries = data.get(name) or {}
            if not isinstance(entries, Mapping):
                logger.warning(f"Ignoring malformed overlay category {name!r}: expected an object")
                continue
            target = overlay.category(name)
            for selector, value in entries.items():
                if value is None:
                    continue
                target[str(selector)] = str(value)

        for name in MERGE_CATEGORIES:
            entries = data.get(name) or {}
            if not isinstance(entries, Mapping):
                logger.warning(f"Ignoring malformed overlay category {name!r}: expected an object")
                continue
            target = overlay.category(name)
            for selector, props in entries.items():
                if not isinstance(props, Mapping):
                    logger.warning(f"Ignoring overlay {name}[{selector!r}]: properties must be an object")
                    continue
                target[str(selector)] = {str(k): str(v) for k, v in props.items() if v is not None}

        return overlay


@dataclass(frozen=True)
class OverlayChange:
    """Notification emitted after every store mutation.

    kind is one of "set", "removed", "cleared", "loaded". For "set" on merge categories the
    value is the property bag passed by the caller, not the merged result."""

    page_id: Optional[str]
    category: Optional[str]
    selector: Optional[str]
    value: Any
    kind: str = "set"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pageId": self.page_id,
            "category": self.category,
            "selector": self.selector,
            "value": self.value,
            "kind": self.kind,
        }


Subscriber = Callable[[OverlayChange], None]


class OverlayStore:
    """Overlay registry with replace/merge mutation semantics and change notification.

    Operating on an unknown page id lazily creates an empty overlay for it."""

    def __init__(self, event_bus: EventBus | None = None):
        self._overlays: Dict[str, Overlay] = {}
        self._subscribers: List[Subscriber] = []
        self.event_bus = event_bus

    # ======== Reading ========

    def get_overlay(self, page_id: str) -> Overlay:
        """Return the overlay of a page, creating an empty one on first reference."""
        overlay = self._overlays.get(page_id)
        if overlay is None:
            overlay = Overlay()
            self._overlays[page_id] = overlay
        return overlay

    def has_overlays(self, page_id: str) -> bool:
        overlay = self._overlays.get(page_id)
        return bool(overlay) and not overlay.is_empty()

    def count_overlays(self, page_id: str) -> int:
        overlay = self._overlays.get(page_id)
        return overlay.count() if overlay else 0

    def page_ids(self) -> List[str]:
        return list(self._overlays)

    # ======== Replace semantics ========

    def set_text_overlay(self, page_id: str, selector: str, content: str) -> None:
        self.get_overlay(page_id).text[selector] = content
        logger.debug(f"Text overlay set: page={page_id} selector={selector}")
        self._notify(OverlayChange(page_id, TEXT, selector, content))

    def set_image_overlay(self, page_id: str, selector: str, src: str) -> None:
        self.get_overlay(page_id).images[selector] = src
        logger.debug(f"Image overlay set: page={page_id} selector={selector}")
        self._notify(OverlayChange(page_id, IMAGES, selector, src))

    # ======== Merge semantics ========

    def set_container_overlay(self, page_id: str, selector: str, properties: Mapping[str, str]) -> None:
        self._merge(page_id, CONTAINERS, selector, properties)

    def set_section_overlay(self, page_id: str, selector: str, properties: Mapping[str, str]) -> None:
        self._merge(page_id, SECTIONS, selector, properties)

    def _merge(self, page_id: str, category: str, selector: str, properties: Mapping[str, str]) -> None:
        bag = self.get_overlay(page_id).category(category)
        merged = dict(bag.get(selector, {}))
        merged.update({str(k): str(v) for k, v in properties.items()})
        bag[selector] = merged
        logger.debug(f"{category} overlay merged: page={page_id} selector={selector} props={dict(properties)}")
        self._notify(OverlayChange(page_id, category, selector, dict(properties)))

    # ======== Removal ========

    def remove_overlay(self, page_id: str, category: str, selector: str) -> bool:
        """Delete one selector entry; returns False (and notifies nobody) when it was absent."""
        entries = self.get_overlay(page_id).category(category)
        if selector not in entries:
            return False
        del entries[selector]
        logger.debug(f"Overlay removed: page={page_id} category={category} selector={selector}")
        self._notify(OverlayChange(page_id, category, selector, None, kind="removed"))
        return True

    def clear_page_overlays(self, page_id: str) -> None:
        self._overlays[page_id] = Overlay()
        logger.info(f"All overlays cleared for page: {page_id}")
        self._notify(OverlayChange(page_id, None, None, None, kind="cleared"))

    def drop_page(self, page_id: str) -> bool:
        """Forget a page entirely, used when the page leaves the project."""
        if self._overlays.pop(page_id, None) is None:
            return False
        self._notify(OverlayChange(page_id, None, None, None, kind="cleared"))
        return True

    def copy_page_overlays(self, source_page_id: str, target_page_id: str) -> None:
        """Give a duplicated page an independent copy of the source page's edits."""
        source = self._overlays.get(source_page_id)
        self._overlays[target_page_id] = Overlay.from_dict(source.to_dict()) if source else Overlay()
        self._notify(OverlayChange(target_page_id, None, None, None, kind="loaded"))

    # ======== Persistence ========

    def get_all_overlays(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """Serialize the whole registry into plain JSON-compatible dicts."""
        return {page_id: overlay.to_dict() for page_id, overlay in self._overlays.items()}

    def load_overlays(self, overlay_data: Optional[Mapping[str, Any]]) -> None:
        """Replace the whole in-memory registry with persisted data."""
        self._overlays = {}
        if overlay_data:
            for page_id, data in overlay_data.items():
                self._overlays[str(page_id)] = Overlay.from_dict(copy.deepcopy(data))
        logger.info(f"Loaded overlays for {len(self._overlays)} pages")
        self._notify(OverlayChange(None, None, None, None, kind="loaded"))

    # ======== Notification ========

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a change listener; returns the matching unsubscribe function."""
        if callback not in self._subscribers:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _notify(self, change: OverlayChange) -> None:
        for callback in list(self._subscribers):
            try:
                callback(change)
            except Exception as exc:
                logger.warning(f"Overlay subscriber failed for {change.kind} on page {change.page_id}: {exc}")

        if self.event_bus is not None:
            topic = {
                "cleared": Events.OVERLAY_CLEARED,
                "loaded": Events.OVERLAY_LOADED,
            }.get(change.kind, Events.OVERLAY_CHANGED)
            self.event_bus.emit(topic, change)


__all__ = [
    "Overlay",
    "OverlayChange",
    "OverlayStore",
    "OVERLAY_CATEGORIES",
    "TEXT",
    "IMAGES",
    "CONTAINERS",
    "SECTIONS",
]
