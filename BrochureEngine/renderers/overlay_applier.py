"""Overlay Applier - patch template markup with a page's overlay.

apply_overlay() is a pure function of (template markup, overlay): it parses the markup, applies
the categories in the fixed order text -> images -> containers -> sections, and serialises the
tree again. Documents keep their doctype/html/head/body scaffolding; fragments stay fragments.

Callers must always pass the stored, untouched template source. Feeding a previously patched
string back in is not supported."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Union

from bs4 import Tag
from loguru import logger

from ..core.markup import Fragment, CompleteDocument, parse_markup
from ..core.overlay_store import Overlay

TEXT_MARKER = "data-overlay-text"
IMAGE_MARKER = "data-overlay-image"
CONTAINER_MARKER = "data-overlay-container"
SECTION_MARKER = "data-overlay-section"
LEGACY_MARKERS = ("data-overlay-applied",)
OVERLAY_MARKERS = (TEXT_MARKER, IMAGE_MARKER, CONTAINER_MARKER, SECTION_MARKER)

_CAMEL_RE = re.compile(r"([A-Z])")
_START_TAG_RE = re.compile(r"<[a-zA-Z][^<>]*>")
_MARKER_ATTR_RE = re.compile(
    r"\s+(?:%s)(?:\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s\"'>]+))?(?=[\s/>])"
    % "|".join(re.escape(name) for name in OVERLAY_MARKERS + LEGACY_MARKERS),
    re.IGNORECASE,
)

OverlayLike = Union[Overlay, Mapping[str, Any], None]


def css_property_name(name: str) -> str:
    """Normalise a style property name: ``backgroundColor`` becomes ``background-color``.

    Custom properties (``--brand``) and names that are already kebab-case are returned as-is."""
    name = name.strip()
    if name.startswith("--"):
        return name
    return _CAMEL_RE.sub(lambda m: "-" + m.group(1).lower(), name)


def parse_style(style: Optional[str]) -> Dict[str, str]:
    """Split an inline style attribute into an ordered property map."""
    declarations: Dict[str, str] = {}
    if not style:
        return declarations
    for chunk in style.split(";"):
        if ":" not in chunk:
            continue
        prop, value = chunk.split(":", 1)
        prop = prop.strip()
        if prop:
            declarations[prop if prop.startswith("--") else prop.lower()] = value.strip()
    return declarations


def serialize_style(declarations: Mapping[str, str]) -> str:
    return " ".join(f"{prop}: {value};" for prop, value in declarations.items())


def set_style_properties(node: Tag, properties: Mapping[str, Any]) -> None:
    """Assign style properties on an element; an empty value removes the property."""
    declarations = parse_style(node.get("style"))
    for prop, value in properties.items():
        css_name = css_property_name(str(prop))
        text = "" if value is None else str(value).strip()
        if text:
            declarations[css_name] = text
        else:
            declarations.pop(css_name, None)
    if declarations:
        node["style"] = serialize_style(declarations)
    elif node.has_attr("style"):
        del node["style"]


def _select(soup, selector: str, category: str) -> List[Tag]:
    try:
        matches = soup.select(selector)
    except Exception as exc:
        logger.warning(f"Invalid {category} overlay selector {selector!r}: {exc}")
        return []
    if not matches:
        logger.debug(f"{category} overlay selector matched nothing: {selector!r}")
    return matches


def _apply_text(soup, entries: Mapping[str, str]) -> int:
    touched = 0
    for selector, content in entries.items():
        for node in _select(soup, selector, "text"):
            node.string = "" if content is None else str(content)
            node[TEXT_MARKER] = "true"
            touched += 1
    return touched


def _apply_images(soup, entries: Mapping[str, str]) -> int:
    touched = 0
    for selector, src in entries.items():
        for node in _select(soup, selector, "image"):
            image = node if node.name == "img" else node.find("img")
            if image is None:
                logger.debug(f"Image overlay target has no <img>: {selector!r}")
                continue
            image["src"] = str(src)
            node[IMAGE_MARKER] = "true"
            touched += 1
    return touched


def _apply_styles(soup, entries: Mapping[str, Mapping[str, Any]], category: str, marker: str) -> int:
    touched = 0
    for selector, properties in entries.items():
        if not isinstance(properties, Mapping):
            logger.warning(f"Skipping {category} overlay {selector!r}: properties must be a mapping")
            continue
        for node in _select(soup, selector, category):
            set_style_properties(node, properties)
            node[marker] = "true"
            touched += 1
    return touched


def _as_overlay(overlay: OverlayLike) -> Overlay:
    if isinstance(overlay, Overlay):
        return overlay
    return Overlay.from_dict(overlay)


def apply_overlay(template_markup: Union[str, Fragment, CompleteDocument], overlay: OverlayLike) -> str:
    """Render template markup with an overlay applied.

    Parameters:
        template_markup: stored template source (document or fragment)
        overlay: Overlay instance or its persisted dict form

    Return:
        str: patched markup; the input unchanged when the overlay is empty or parsing fails."""
    source = template_markup.source if isinstance(template_markup, (Fragment, CompleteDocument)) else (template_markup or "")
    overlay = _as_overlay(overlay)
    if overlay.is_empty():
        return source

    try:
        soup = parse_markup(source)
    except Exception as exc:
        logger.error(f"Template markup could not be parsed, rendering it without overlays: {exc}")
        return source

    touched = _apply_text(soup, overlay.text)
    touched += _apply_images(soup, overlay.images)
    touched += _apply_styles(soup, overlay.containers, "container", CONTAINER_MARKER)
    touched += _apply_styles(soup, overlay.sections, "section", SECTION_MARKER)
    logger.debug(f"Applied {overlay.count()} overlay entries to {touched} elements")

    return str(soup)


def clean_overlay_markers(html: str) -> str:
    """Strip overlay marker attributes from every start tag; all other bytes are kept as-is."""
    if not html:
        return html

    cleaned = 0

    def _strip(match: re.Match) -> str:
        nonlocal cleaned
        tag, count = _MARKER_ATTR_RE.subn("", match.group(0))
        cleaned += count
        return tag

    result = _START_TAG_RE.sub(_strip, html)
    if cleaned:
        logger.debug(f"Removed {cleaned} overlay marker attributes")
    return result


__all__ = [
    "apply_overlay",
    "clean_overlay_markers",
    "css_property_name",
    "parse_style",
    "serialize_style",
    "set_style_properties",
    "OVERLAY_MARKERS",
]
