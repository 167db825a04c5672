"""Element editor: detect what kind of component an element is and route edits to its editor.

Detection order, first hit wins:
1. the element is an image
2. the element is a text element
3. the element sits in a header/footer section (closest one)
4. the element sits in a layout container (closest one)
5. the closest [data-editable] / [contenteditable="true"] ancestor, if another editor accepts it
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, Optional, Tuple, Union

from bs4 import BeautifulSoup, Tag

from ..core.overlay_store import OverlayStore
from ..core.selector_resolver import (
    is_container_element,
    is_image_element,
    is_section_element,
    is_text_element,
)
from .base_editor import BaseEditor, EditorSelectionError
from .container_editor import ContainerEditor
from .image_editor import ImageEditor
from .section_editor import DEFAULT_PAGE_HEIGHT, SectionEditor
from .text_editor import TextEditor

IMAGE = "image"
TEXT = "text"
SECTION = "section"
CONTAINER = "container"

# action name -> (component kind, editor method)
ACTIONS: Dict[str, Tuple[str, str]] = {
    "set-text": (TEXT, "apply_text"),
    "replace-image": (IMAGE, "replace_image"),
    "move-container": (CONTAINER, "move"),
    "resize-container": (CONTAINER, "resize"),
    "adjust-section-height": (SECTION, "adjust_height"),
    "move-section": (SECTION, "move_order"),
}


def _self_and_parents(node: Tag) -> Iterator[Tag]:
    yield node
    for parent in node.parents:
        if isinstance(parent, Tag) and parent.name != "[document]":
            yield parent


def _closest(node: Tag, predicate: Callable[[Tag], bool]) -> Optional[Tag]:
    for candidate in _self_and_parents(node):
        if predicate(candidate):
            return candidate
    return None


def _is_marked_editable(node: Tag) -> bool:
    return node.has_attr("data-editable") or str(node.get("contenteditable", "")).lower() == "true"


class ElementEditor:
    """Single entry point for click-to-edit: one live document shared by the four editors."""

    def __init__(
        self,
        store: OverlayStore,
        page_id: str,
        document: Union[str, BeautifulSoup, None] = None,
        page_height: str = DEFAULT_PAGE_HEIGHT,
        source: Optional[str] = None,
    ):
        self.store = store
        self.page_id = page_id
        self.editors: Dict[str, BaseEditor] = {
            IMAGE: ImageEditor(store, page_id),
            TEXT: TextEditor(store, page_id),
            SECTION: SectionEditor(store, page_id, page_height=page_height),
            CONTAINER: ContainerEditor(store, page_id),
        }
        self.document: Optional[BeautifulSoup] = None
        self.active_kind: Optional[str] = None
        if document is not None:
            self.load_document(document, source)

    def load_document(self, document: Union[str, BeautifulSoup], source: Optional[str] = None):
        first = self.editors[IMAGE]
        first.load_document(document, source)
        self.document = first.document
        for kind, editor in self.editors.items():
            if kind != IMAGE:
                editor.load_document(self.document, source)
        self.active_kind = None

    @property
    def active(self) -> Optional[BaseEditor]:
        return self.editors.get(self.active_kind) if self.active_kind else None

    def detect(self, target: Tag) -> Tuple[Optional[str], Optional[Tag]]:
        """Classify the clicked element; returns (kind, element to edit) or (None, None)."""
        if is_image_element(target):
            return IMAGE, target
        if is_text_element(target):
            return TEXT, target

        section = _closest(target, is_section_element)
        if section is not None:
            return SECTION, section

        container = _closest(target, is_container_element)
        if container is not None:
            return CONTAINER, container

        editable = _closest(target, _is_marked_editable)
        if editable is not None:
            for kind, editor in self.editors.items():
                if editor.is_candidate(editable):
                    return kind, editable
        return None, None

    def select(self, target: Union[Tag, str]) -> Dict[str, Any]:
        """Detect the component under target and select it on the matching editor."""
        if self.document is None:
            raise EditorSelectionError("No live document loaded")
        node = self.document.select_one(target) if isinstance(target, str) else target
        if node is None:
            raise EditorSelectionError(f"No element matches {target!r}")

        kind, element = self.detect(node)
        if kind is None:
            self.active_kind = None
            raise EditorSelectionError(f"<{node.name}> is not an editable component")

        self.editors[kind].select(element)
        self.active_kind = kind
        return {"component": kind, **self.editors[kind].describe()}

    def perform(self, action: str, *args, **kwargs) -> Any:
        """Run an editor action (see ACTIONS) on the current selection."""
        if action == "reset":
            return self._require_active().reset()
        if action not in ACTIONS:
            raise EditorSelectionError(f"Unknown action: {action}")
        kind, method = ACTIONS[action]
        editor = self._require_active()
        if kind != self.active_kind:
            raise EditorSelectionError(f"{action} does not apply to a {self.active_kind} selection")
        return getattr(editor, method)(*args, **kwargs)

    def reset(self) -> bool:
        return self._require_active().reset()

    def _require_active(self) -> BaseEditor:
        editor = self.active
        if editor is None:
            raise EditorSelectionError("Nothing selected")
        return editor
