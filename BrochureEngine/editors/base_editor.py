"""Brochure Engine editor base class.

Editors turn a selection on the live preview document into overlay store mutations. The live
document is a parse of the page as currently rendered (template copy plus overlay), which has the
same structure as a fresh parse of the template source, so selectors computed here re-resolve
on every later render. Durable edits only ever go through the overlay store; patching the live
document is feedback for the user and nothing else.

Reset restores the live element from the template source rendered with what is left in the
store, so the live page looks as if the entry had never been set."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

from bs4 import BeautifulSoup, Tag
from loguru import logger

from ..core.markup import parse_markup
from ..core.overlay_store import OverlayStore
from ..core.selector_resolver import SelectorResolver
from ..renderers.overlay_applier import apply_overlay, parse_style, set_style_properties

_LENGTH_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*(px|mm|cm|in|pt)?\s*$", re.IGNORECASE)
_PX_PER_UNIT = {"px": 1.0, "mm": 96 / 25.4, "cm": 96 / 2.54, "in": 96.0, "pt": 96 / 72}


def css_length_to_px(value: Optional[str]) -> Optional[float]:
    """Convert an absolute CSS length to pixels at 96dpi; None for anything else (auto, %, em)."""
    if value is None:
        return None
    match = _LENGTH_RE.match(str(value))
    if not match:
        return None
    return float(match.group(1)) * _PX_PER_UNIT[(match.group(2) or "px").lower()]


def format_px(value: float) -> str:
    return f"{int(value)}px" if float(value).is_integer() else f"{value:.1f}px"


class EditorSelectionError(ValueError):
    """The requested element cannot be edited by this editor."""


class BaseEditor(ABC):
    """Editor base class.

    Holds the overlay store, the explicit page id and the live document, and provides selection,
    reset and the log prefixing shared by every editor."""

    category: str = ""

    def __init__(
        self,
        store: OverlayStore,
        page_id: str,
        document: Union[str, BeautifulSoup, None] = None,
        editor_name: str = "",
        source: Optional[str] = None,
    ):
        """Initialize the editor

        Args:
            store: overlay store receiving every durable edit
            page_id: page whose overlay is edited
            document: live preview markup (or parsed tree) selections are made on
            editor_name: log prefix, class name by default
            source: untouched template markup the live document was rendered from"""
        self.store = store
        self.page_id = page_id
        self.editor_name = editor_name or self.__class__.__name__
        self.document: Optional[BeautifulSoup] = None
        self.selector: Optional[str] = None
        self.element: Optional[Tag] = None
        self._original: Dict[str, Any] = {}
        self.source: Optional[str] = None
        if document is not None:
            self.load_document(document, source)

    # ======== Live document ========

    def load_document(self, document: Union[str, BeautifulSoup], source: Optional[str] = None):
        """Attach a (re-)rendered live document and drop the current selection."""
        self.document = document if isinstance(document, BeautifulSoup) else parse_markup(document)
        self.source = source
        self.selector = None
        self.element = None
        self._original = {}

    def _require_document(self) -> BeautifulSoup:
        if self.document is None:
            raise EditorSelectionError("No live document loaded")
        return self.document

    @abstractmethod
    def is_candidate(self, node: Tag) -> bool:
        """Whether this editor handles the element."""

    def candidates(self) -> List[Tag]:
        return [node for node in self._require_document().find_all(True) if self.is_candidate(node)]

    # ======== Selection ========

    def select(self, target: Union[Tag, str]) -> str:
        """Select an element of the live document, by node or by selector.

        Returns:
            The selector overlay entries for this element are stored under"""
        document = self._require_document()
        if isinstance(target, str):
            node = document.select_one(target)
            if node is None:
                raise EditorSelectionError(f"No element matches {target!r}")
        else:
            node = target
        if not self.is_candidate(node):
            raise EditorSelectionError(f"<{node.name}> is not editable by {self.editor_name}")

        self.element = node
        self.selector = SelectorResolver(document).resolve(node)
        self._original = self.snapshot(node)
        self.log_info(f"Selected {self.selector}")
        return self.selector

    def _require_selection(self) -> str:
        if not self.selector or self.element is None:
            raise EditorSelectionError("Nothing selected")
        return self.selector

    def snapshot(self, node: Tag) -> Dict[str, Any]:
        """State of the live element restored by reset()."""
        return {"style": node.get("style")}

    def restore(self, node: Tag, snapshot: Dict[str, Any]):
        style = snapshot.get("style")
        if style is None:
            if node.has_attr("style"):
                del node["style"]
        else:
            node["style"] = style

    def current_overlay(self) -> Any:
        """This editor's overlay entry for the selection, None when unset."""
        if not self.selector:
            return None
        entries = self.store.get_overlay(self.page_id).category(self.category)
        return entries.get(self.selector)

    def reset(self) -> bool:
        """Remove the selection's overlay entry and restore the live element."""
        selector = self._require_selection()
        removed = self.store.remove_overlay(self.page_id, self.category, selector)
        self.restore(self.element, self._reset_state(selector))
        self.log_info(f"Reset {selector}")
        return removed

    def _reset_state(self, selector: str) -> Dict[str, Any]:
        """Snapshot of the element in the source rendered with the remaining overlay entries."""
        if self.source is None:
            return self._original
        rendered = parse_markup(apply_overlay(self.source, self.store.get_overlay(self.page_id)))
        try:
            node = rendered.select_one(selector)
        except Exception as exc:
            self.log_error(f"Cannot re-resolve {selector} on the template source: {exc}")
            return self._original
        if node is None:
            return self._original
        return self.snapshot(node)

    # ======== Style helpers ========

    def live_style(self) -> Dict[str, str]:
        """Inline style of the selection on the live document."""
        if self.element is None:
            return {}
        return parse_style(self.element.get("style"))

    def patch_live_style(self, properties: Dict[str, str]):
        if self.element is not None:
            set_style_properties(self.element, properties)

    def describe(self) -> Dict[str, Any]:
        return {
            "editor": self.editor_name,
            "pageId": self.page_id,
            "selector": self.selector,
            "tag": self.element.name if self.element is not None else None,
            "overlay": self.current_overlay(),
        }

    # ======== Logging ========

    def log_info(self, message: str):
        """Record information logs and automatically prefix them with the editor name."""
        logger.info(f"[{self.editor_name}] {message}")

    def log_error(self, message: str):
        """Record error logs to facilitate troubleshooting."""
        logger.error(f"[{self.editor_name}] {message}")


__all__ = ["BaseEditor", "EditorSelectionError", "css_length_to_px", "format_px"]
