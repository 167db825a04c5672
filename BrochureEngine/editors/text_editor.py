"""Text editor: replace the text of headings, paragraphs and other text elements."""

from __future__ import annotations

from typing import Any, Dict

from bs4 import Tag

from ..core.markup import parse_markup
from ..core.overlay_store import TEXT
from ..core.selector_resolver import is_text_element
from .base_editor import BaseEditor


class TextEditor(BaseEditor):
    """Edits the text overlay category (replace semantics)."""

    category = TEXT

    def is_candidate(self, node: Tag) -> bool:
        return is_text_element(node)

    def snapshot(self, node: Tag) -> Dict[str, Any]:
        return {"contents": [str(child) for child in node.contents]}

    def restore(self, node: Tag, snapshot: Dict[str, Any]):
        node.clear()
        fragment = parse_markup("".join(snapshot.get("contents", [])))
        for child in list(fragment.contents):
            node.append(child.extract())

    def current_text(self) -> str:
        override = self.current_overlay()
        if override is not None:
            return override
        return self.element.get_text(strip=True) if self.element is not None else ""

    def apply_text(self, text: str) -> str:
        """Store new text for the selection and show it on the live document."""
        selector = self._require_selection()
        text = "" if text is None else str(text)
        self.store.set_text_overlay(self.page_id, selector, text)
        self.element.string = text
        self.log_info(f"Text set for {selector}")
        return selector
