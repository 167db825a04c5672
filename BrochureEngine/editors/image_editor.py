"""Image editor: swap the source of template images."""

from __future__ import annotations

from typing import Any, Dict

from bs4 import Tag

from ..core.overlay_store import IMAGES
from ..core.selector_resolver import is_image_element
from .base_editor import BaseEditor, EditorSelectionError


class ImageEditor(BaseEditor):
    """Edits the images overlay category (replace semantics)."""

    category = IMAGES

    def is_candidate(self, node: Tag) -> bool:
        return is_image_element(node)

    def snapshot(self, node: Tag) -> Dict[str, Any]:
        return {"src": node.get("src")}

    def restore(self, node: Tag, snapshot: Dict[str, Any]):
        src = snapshot.get("src")
        if src is None:
            if node.has_attr("src"):
                del node["src"]
        else:
            node["src"] = src

    def current_src(self) -> str:
        override = self.current_overlay()
        if override is not None:
            return override
        return (self.element.get("src") or "") if self.element is not None else ""

    def replace_image(self, src: str) -> str:
        """Store a new image URL for the selection and show it on the live document."""
        selector = self._require_selection()
        if not src:
            raise EditorSelectionError("Image source must not be empty")
        self.store.set_image_overlay(self.page_id, selector, src)
        self.element["src"] = src
        self.log_info(f"Image replaced for {selector}")
        return selector
