"""Stable CSS selectors for template elements.

Overlay entries are keyed by selector rather than by node identity: every render starts from a
fresh parse of the untouched template source, so a selector computed on one parse has to find the
equivalent element in any structurally identical parse. Selectors therefore depend only on the
element's attributes and its position among siblings.

Priority, each candidate checked for uniqueness against the inspected document:

    1. #id                  non-empty id, accepted unconditionally
    2. .class1.class2       all classes, when exactly one element matches
    3. [data-x="v"]         first data attribute whose selector is unique
    4. tag:nth-child(k)     k = 1-based index among same-tag siblings
    5. tag                  element alone at the top of the document
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import soupsieve
from bs4 import BeautifulSoup, Tag
from loguru import logger

from .markup import Fragment, CompleteDocument, parse_markup

OVERLAY_MARKER_PREFIX = "data-overlay-"

TEXT_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6", "p", "span", "div", "a")
CONTAINER_TAGS = ("div", "section", "article", "aside", "main")
SECTION_TAGS = ("header", "footer")
SECTION_CLASSES = ("header", "footer", "page-header", "page-footer")
SECTION_ROLES = ("banner", "contentinfo")

PREVIEW_LENGTH = 50


@dataclass(frozen=True)
class NodeDescriptor:
    """Everything the resolver needs to know about an element.

    element_index is the 1-based position among all element siblings; it only matters when it
    differs from same_tag_index, in which case the positional selector uses nth-of-type so it
    keeps pointing at the same element."""

    tag: str
    id: str = ""
    classes: Tuple[str, ...] = ()
    data_attributes: Tuple[Tuple[str, str], ...] = ()
    same_tag_index: int = 1
    has_parent: bool = False
    element_index: Optional[int] = None

    @classmethod
    def from_tag(cls, node: Tag) -> "NodeDescriptor":
        classes = node.get("class") or ()
        if isinstance(classes, str):
            classes = classes.split()
        data_attributes = tuple(
            (name, value if isinstance(value, str) else " ".join(value))
            for name, value in node.attrs.items()
            if name.startswith("data-") and not name.startswith(OVERLAY_MARKER_PREFIX)
        )

        parent = node.parent if isinstance(node.parent, Tag) else None
        if parent is not None:
            siblings = [child for child in parent.children if isinstance(child, Tag)]
        else:
            siblings = [node]
        # Top-level elements of a fragment are siblings under the document root
        if parent is not None and parent.name == "[document]" and len(siblings) < 2:
            parent = None
        same_tag = [child for child in siblings if child.name == node.name]

        return cls(
            tag=node.name.lower(),
            id=(node.get("id") or "").strip(),
            classes=tuple(c for c in classes if c),
            data_attributes=data_attributes,
            same_tag_index=_index_of(same_tag, node) + 1,
            has_parent=parent is not None,
            element_index=_index_of(siblings, node) + 1,
        )


def _index_of(nodes: Sequence[Tag], node: Tag) -> int:
    for index, candidate in enumerate(nodes):
        if candidate is node:
            return index
    return 0


def _quote_attribute_value(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


class SelectorResolver:
    """Compute selectors against one parsed document."""

    def __init__(self, document: Union[str, Fragment, CompleteDocument, BeautifulSoup]):
        if isinstance(document, BeautifulSoup):
            self.document = document
        else:
            self.document = parse_markup(document)

    def count_matches(self, selector: str) -> int:
        try:
            return len(self.document.select(selector))
        except Exception as exc:
            logger.debug(f"Selector {selector!r} could not be evaluated: {exc}")
            return -1

    def is_unique(self, selector: str) -> bool:
        return self.count_matches(selector) == 1

    def resolve(self, node: Union[Tag, NodeDescriptor]) -> str:
        """Return the highest-priority selector that identifies the node."""
        tag_node = node if isinstance(node, Tag) else None
        descriptor = NodeDescriptor.from_tag(node) if tag_node is not None else node

        if descriptor.id:
            return f"#{soupsieve.escape(descriptor.id)}"

        if descriptor.classes:
            class_selector = "".join(f".{soupsieve.escape(c)}" for c in descriptor.classes)
            if self.is_unique(class_selector):
                return class_selector

        for name, value in descriptor.data_attributes:
            if not value:
                continue
            attr_selector = f"[{name}={_quote_attribute_value(value)}]"
            if self.is_unique(attr_selector):
                return attr_selector

        if descriptor.has_parent:
            positional = self._positional_selector(descriptor)
            if tag_node is not None and not self.is_unique(positional):
                return self._anchor_to_parent(tag_node, positional)
            return positional

        return descriptor.tag

    def _positional_selector(self, descriptor: NodeDescriptor) -> str:
        element_index = descriptor.element_index or descriptor.same_tag_index
        if element_index == descriptor.same_tag_index:
            return f"{descriptor.tag}:nth-child({descriptor.same_tag_index})"
        return f"{descriptor.tag}:nth-of-type({descriptor.same_tag_index})"

    def _anchor_to_parent(self, node: Tag, positional: str) -> str:
        """Prefix a positional selector with its parent's selector until it is unique."""
        parent = node.parent
        if not isinstance(parent, Tag) or parent.name == "[document]":
            return positional
        chained = f"{self.resolve(parent)} > {positional}"
        if self.count_matches(chained) < 1:
            return positional
        return chained


# ======== Element classification ========


def _has_class(node: Tag, names: Sequence[str]) -> bool:
    classes = node.get("class") or ()
    return any(name in classes for name in names)


def _inside_section(node: Tag) -> bool:
    return any(is_section_element(parent) for parent in node.parents if isinstance(parent, Tag))


def is_image_element(node: Tag) -> bool:
    return isinstance(node, Tag) and node.name == "img"


def is_text_element(node: Tag) -> bool:
    """Text-bearing element with visible text and no image inside."""
    return (
        isinstance(node, Tag)
        and node.name in TEXT_TAGS
        and bool(node.get_text(strip=True))
        and node.find("img") is None
    )


def is_section_element(node: Tag) -> bool:
    if not isinstance(node, Tag):
        return False
    return (
        node.name in SECTION_TAGS
        or _has_class(node, SECTION_CLASSES)
        or node.get("role") in SECTION_ROLES
    )


def is_container_element(node: Tag) -> bool:
    """Layout block that is not part of a header or footer."""
    return (
        isinstance(node, Tag)
        and node.name in CONTAINER_TAGS
        and not is_section_element(node)
        and not _inside_section(node)
    )


def section_type(node: Tag) -> str:
    """Classify a header/footer element as "header", "footer" or "section"."""
    if node.name == "header" or _has_class(node, ("header", "page-header")) or node.get("role") == "banner":
        return "header"
    if node.name == "footer" or _has_class(node, ("footer", "page-footer")) or node.get("role") == "contentinfo":
        return "footer"
    return "section"


def _preview_text(node: Tag) -> str:
    return node.get_text(" ", strip=True)[:PREVIEW_LENGTH]


def collect_editable_selectors(markup: Union[str, Fragment, CompleteDocument]) -> Dict[str, List[Dict[str, Any]]]:
    """List the editable elements of a template grouped by overlay category.

    Returns:
        dict: {"text": [...], "images": [...], "containers": [...], "sections": [...]}, every
        entry carrying selector, type and a short preview."""
    resolver = SelectorResolver(markup)
    selectors: Dict[str, List[Dict[str, Any]]] = {"text": [], "images": [], "containers": [], "sections": []}

    for node in resolver.document.find_all(True):
        if is_image_element(node):
            src = node.get("src") or ""
            selectors["images"].append({
                "selector": resolver.resolve(node),
                "type": "img",
                "preview": node.get("alt") or src.rsplit("/", 1)[-1] or "Image",
                "currentSrc": src,
            })
            continue

        if is_section_element(node):
            selectors["sections"].append({
                "selector": resolver.resolve(node),
                "type": section_type(node),
                "preview": _preview_text(node) or node.name,
            })
        elif is_container_element(node):
            selectors["containers"].append({
                "selector": resolver.resolve(node),
                "type": node.name,
                "preview": " ".join(node.get("class") or ()) or node.name,
            })

        if is_text_element(node) and not node.find(TEXT_TAGS):
            selectors["text"].append({
                "selector": resolver.resolve(node),
                "type": node.name,
                "preview": _preview_text(node),
            })

    logger.debug(
        "Editable selectors collected: "
        + ", ".join(f"{category}={len(entries)}" for category, entries in selectors.items())
    )
    return selectors


__all__ = [
    "NodeDescriptor",
    "SelectorResolver",
    "collect_editable_selectors",
    "is_image_element",
    "is_text_element",
    "is_container_element",
    "is_section_element",
    "section_type",
]
