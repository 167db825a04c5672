"""Brochure Engine renderer collection.

Overlay application, CSS scoping, page composition and PDF export."""

from .overlay_applier import apply_overlay, clean_overlay_markers
from .css_scoper import scope_css
from .page_composer import PageComposer, PageParts, extract_page_parts
from .pdf_renderer import PDFExporter, PDFExportError

__all__ = [
    "apply_overlay",
    "clean_overlay_markers",
    "scope_css",
    "PageComposer",
    "PageParts",
    "extract_page_parts",
    "PDFExporter",
    "PDFExportError",
]
