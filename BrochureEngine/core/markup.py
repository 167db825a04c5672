"""Template markup shapes.

Templates arrive either as complete HTML documents (doctype, head and body) or as bare fragments.
The shape is decided once, when markup enters the rendering pipeline, and carried around as a
tagged value so render paths dispatch on the type instead of sniffing strings again."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from bs4 import BeautifulSoup

HTML_PARSER = "html.parser"

_DOCTYPE_RE = re.compile(r"<!doctype", re.IGNORECASE)
_HEAD_RE = re.compile(r"<head[\s>]", re.IGNORECASE)
_BODY_RE = re.compile(r"<body[\s>]", re.IGNORECASE)


@dataclass(frozen=True)
class Fragment:
    """Markup without document scaffolding; serialised back as a fragment."""

    source: str

    is_document = False


@dataclass(frozen=True)
class CompleteDocument:
    """Markup with doctype, head and body."""

    source: str

    is_document = True


Markup = Union[Fragment, CompleteDocument]


def is_complete_document(markup: str) -> bool:
    """True when the markup carries a doctype, a head and a body (case-insensitive)."""
    if not markup:
        return False
    return bool(_DOCTYPE_RE.search(markup) and _HEAD_RE.search(markup) and _BODY_RE.search(markup))


def classify_markup(markup: Union[str, Fragment, CompleteDocument, None]) -> Markup:
    """Resolve raw markup into its shape; already classified values pass through."""
    if isinstance(markup, (Fragment, CompleteDocument)):
        return markup
    text = markup or ""
    if is_complete_document(text):
        return CompleteDocument(text)
    return Fragment(text)


def parse_markup(markup: Union[str, Markup]) -> BeautifulSoup:
    """Parse markup with the stdlib-backed parser, which never invents html/head/body tags."""
    source = markup.source if isinstance(markup, (Fragment, CompleteDocument)) else (markup or "")
    return BeautifulSoup(source, HTML_PARSER)


__all__ = [
    "Fragment",
    "CompleteDocument",
    "Markup",
    "HTML_PARSER",
    "is_complete_document",
    "classify_markup",
    "parse_markup",
]
