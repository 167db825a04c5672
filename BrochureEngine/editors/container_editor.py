"""Container editor: nudge and resize layout blocks outside the header and footer.

Moves are stored as a translate() transform in 10px steps, resizes as explicit width/height in
20px steps, never below 50px wide or 20px tall."""

from __future__ import annotations

import re
from typing import Optional, Tuple

from bs4 import Tag

from ..core.overlay_store import CONTAINERS
from ..core.selector_resolver import is_container_element
from .base_editor import BaseEditor, EditorSelectionError, css_length_to_px, format_px

MOVE_STEP = 10
RESIZE_STEP = 20
MIN_WIDTH = 50
MIN_HEIGHT = 20

_TRANSLATE_RE = re.compile(r"translate\(\s*(-?[\d.]+)px\s*,\s*(-?[\d.]+)px\s*\)")

MOVES = {
    "up": (0, -MOVE_STEP),
    "down": (0, MOVE_STEP),
    "left": (-MOVE_STEP, 0),
    "right": (MOVE_STEP, 0),
}


def parse_translate(transform: Optional[str]) -> Tuple[float, float]:
    match = _TRANSLATE_RE.search(transform or "")
    if not match:
        return 0.0, 0.0
    return float(match.group(1)), float(match.group(2))


class ContainerEditor(BaseEditor):
    """Edits the containers overlay category (merge semantics)."""

    category = CONTAINERS

    def is_candidate(self, node: Tag) -> bool:
        return is_container_element(node)

    def _effective_style(self, name: str) -> Optional[str]:
        overlay = self.current_overlay() or {}
        if name in overlay:
            return overlay[name]
        return self.live_style().get(name)

    def move(self, direction: str) -> str:
        """Shift the selection one step; returns the new transform."""
        selector = self._require_selection()
        if direction not in MOVES:
            raise EditorSelectionError(f"Unknown move direction: {direction}")
        dx, dy = MOVES[direction]
        x, y = parse_translate(self._effective_style("transform"))
        transform = f"translate({format_px(x + dx)}, {format_px(y + dy)})"
        self.store.set_container_overlay(self.page_id, selector, {"transform": transform})
        self.patch_live_style({"transform": transform})
        self.log_info(f"Moved {selector} {direction}: {transform}")
        return transform

    def resize(
        self,
        direction: str,
        current_width: Optional[float] = None,
        current_height: Optional[float] = None,
    ) -> dict:
        """Grow or shrink the selection one step.

        Args:
            direction: wider, narrower, taller or shorter
            current_width / current_height: measured size in px when the caller has a layout;
                otherwise the stored or inline size is used

        Returns:
            The width/height properties written to the overlay"""
        selector = self._require_selection()
        width = current_width if current_width is not None else css_length_to_px(self._effective_style("width"))
        height = current_height if current_height is not None else css_length_to_px(self._effective_style("height"))

        if direction == "wider":
            properties = {"width": format_px((width or MIN_WIDTH) + RESIZE_STEP)}
        elif direction == "narrower":
            properties = {"width": format_px(max(MIN_WIDTH, (width or MIN_WIDTH) - RESIZE_STEP))}
        elif direction == "taller":
            properties = {"height": format_px((height or MIN_HEIGHT) + RESIZE_STEP)}
        elif direction == "shorter":
            properties = {"height": format_px(max(MIN_HEIGHT, (height or MIN_HEIGHT) - RESIZE_STEP))}
        else:
            raise EditorSelectionError(f"Unknown resize direction: {direction}")

        if width is not None and "width" not in properties:
            properties["width"] = format_px(width)
        if height is not None and "height" not in properties:
            properties["height"] = format_px(height)

        self.store.set_container_overlay(self.page_id, selector, properties)
        self.patch_live_style(properties)
        self.log_info(f"Resized {selector} {direction}: {properties}")
        return properties
