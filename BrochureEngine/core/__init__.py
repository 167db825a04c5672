"""Brochure Engine core tool collection.

Selector resolution, the overlay store and the event bus, plus template, project storage and
auto-save services. The project session is imported from its module directly."""

from .event_bus import EventBus, Events
from .markup import CompleteDocument, Fragment, classify_markup, is_complete_document, parse_markup
from .overlay_store import Overlay, OverlayChange, OverlayStore
from .selector_resolver import NodeDescriptor, SelectorResolver, collect_editable_selectors
from .template_library import TemplateLibrary, TemplateNotFoundError
from .project_storage import ProjectStorage, ProjectStorageError
from .autosave import AutoSave

__all__ = [
    "EventBus",
    "Events",
    "CompleteDocument",
    "Fragment",
    "classify_markup",
    "is_complete_document",
    "parse_markup",
    "Overlay",
    "OverlayChange",
    "OverlayStore",
    "NodeDescriptor",
    "SelectorResolver",
    "collect_editable_selectors",
    "TemplateLibrary",
    "TemplateNotFoundError",
    "ProjectStorage",
    "ProjectStorageError",
    "AutoSave",
]
