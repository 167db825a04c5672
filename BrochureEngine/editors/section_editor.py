"""Section editor: header/footer height and order adjustments."""

from __future__ import annotations

from typing import Optional, Union

from bs4 import BeautifulSoup, Tag

from ..core.overlay_store import SECTIONS, OverlayStore
from ..core.selector_resolver import is_section_element, section_type
from .base_editor import BaseEditor, EditorSelectionError, css_length_to_px, format_px

MIN_SECTION_HEIGHT = 20.0
MAX_PAGE_SHARE = 0.4
DEFAULT_PAGE_HEIGHT = "297mm"


class SectionEditor(BaseEditor):
    """Edits the sections overlay category (merge semantics).

    Heights are clamped between 20px and 40% of the page height so a header or footer can never
    push the page content off the sheet."""

    category = SECTIONS

    def __init__(
        self,
        store: OverlayStore,
        page_id: str,
        document: Union[str, BeautifulSoup, None] = None,
        page_height: str = DEFAULT_PAGE_HEIGHT,
        editor_name: str = "",
        source: Optional[str] = None,
    ):
        super().__init__(store, page_id, document, editor_name, source)
        self.page_height_px = css_length_to_px(page_height) or css_length_to_px(DEFAULT_PAGE_HEIGHT)

    @property
    def max_height(self) -> float:
        return round(self.page_height_px * MAX_PAGE_SHARE, 1)

    def is_candidate(self, node: Tag) -> bool:
        return is_section_element(node)

    def section_type(self) -> str:
        self._require_selection()
        return section_type(self.element)

    def current_height(self) -> Optional[float]:
        """Height from the stored overlay, then the inline style; None when unknown."""
        overlay = self.current_overlay() or {}
        if "height" in overlay:
            return css_length_to_px(overlay["height"])
        return css_length_to_px(self.live_style().get("height"))

    def adjust_height(self, delta: float, current_height: Optional[float] = None) -> str:
        """Grow (positive delta) or shrink the selected section.

        Args:
            delta: change in px
            current_height: measured height when the caller has a layout engine

        Returns:
            The clamped height written to the overlay, e.g. "120px"."""
        selector = self._require_selection()
        base = current_height if current_height is not None else self.current_height()
        if base is None:
            base = MIN_SECTION_HEIGHT
        new_height = min(self.max_height, max(MIN_SECTION_HEIGHT, base + delta))
        height = format_px(new_height)

        self.store.set_section_overlay(self.page_id, selector, {"height": height})
        self.patch_live_style({"height": height})
        self.log_info(f"{self.section_type()} height {format_px(base)} -> {height}")
        return height

    def move_order(self, direction: str) -> int:
        """Shift the section's flex order one step up or down."""
        selector = self._require_selection()
        if direction not in ("up", "down"):
            raise EditorSelectionError(f"Unknown order direction: {direction}")
        overlay = self.current_overlay() or {}
        raw = overlay.get("order", self.live_style().get("order", "0"))
        try:
            order = int(str(raw).strip())
        except ValueError:
            order = 0
        order += -1 if direction == "up" else 1

        self.store.set_section_overlay(self.page_id, selector, {"order": str(order)})
        self.patch_live_style({"order": str(order)})
        self.log_info(f"Order of {selector} set to {order}")
        return order
