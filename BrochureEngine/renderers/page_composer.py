"""Page Composer: wrap patched template pages into self-contained A4 blocks and combine them.

Every page is rendered from its stored template copy plus the page overlay, reduced to body
content and style text, and placed in one ``<div class="unified-page page-{id}">`` that carries
its own ``<style>``. When more than one page goes into the same document the page styles are
scoped to the wrapper class so identically named selectors of different templates cannot collide.
The combined document produced here is exactly what the PDF exporter receives."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional

from loguru import logger

from ..core.markup import CompleteDocument, classify_markup, parse_markup
from ..state.project import Page, Project
from .css_scoper import page_class, page_selector, scope_css
from .overlay_applier import apply_overlay, clean_overlay_markers

FONT_PRECONNECTS = (
    '<link rel="preconnect" href="https://fonts.googleapis.com">',
    '<link rel="preconnect" href="https://fonts.gstatic.com" crossorigin>',
)

_STYLE_BLOCK_RE = re.compile(r"<style[^>]*>(.*?)</style\s*>", re.IGNORECASE | re.DOTALL)
_STYLESHEET_LINK_RE = re.compile(r"<link\b[^>]*\brel\s*=\s*[\"']?stylesheet[\"']?[^>]*>", re.IGNORECASE)
_HREF_RE = re.compile(r"\bhref\s*=\s*(?:\"([^\"]*)\"|'([^']*)'|([^\s>]+))", re.IGNORECASE)
_DOCTYPE_RE = re.compile(r"<!DOCTYPE[^>]*>", re.IGNORECASE)
_SCAFFOLD_TAG_RE = re.compile(r"</?(?:html|head|body)\b[^>]*>", re.IGNORECASE)
_HEAD_ONLY_RE = re.compile(r"<title\b[^>]*>.*?</title\s*>|<meta\b[^>]*>", re.IGNORECASE | re.DOTALL)


@dataclass
class PageParts:
    """What a template page contributes to a composed document."""
    content: str
    styles: List[str] = field(default_factory=list)
    stylesheet_links: List[str] = field(default_factory=list)


def _href_of(link_tag: str) -> Optional[str]:
    match = _HREF_RE.search(link_tag)
    if not match:
        return None
    return next((group for group in match.groups() if group), None)


def extract_page_parts(markup) -> PageParts:
    """Split markup into body content, style text and stylesheet links.

    Documents: body inner HTML plus the text of every <style> element (head and body), style
    elements removed from the content. Fragments: <style> blocks pulled out by pattern, stray
    doctype/html/head/body tags unwrapped."""
    shape = classify_markup(markup)

    if isinstance(shape, CompleteDocument):
        soup = parse_markup(shape)
        styles = []
        for style in soup.find_all("style"):
            text = style.get_text().strip()
            if text:
                styles.append(text)
            style.decompose()
        links = []
        for link in soup.find_all("link"):
            rel = link.get("rel") or []
            if "stylesheet" in [r.lower() for r in rel] and link.get("href"):
                links.append(link["href"])
        body = soup.body
        content = body.decode_contents().strip() if body is not None else ""
        return PageParts(content=content, styles=styles, stylesheet_links=links)

    source = shape.source.strip()
    styles = [block.strip() for block in _STYLE_BLOCK_RE.findall(source) if block.strip()]
    content = _STYLE_BLOCK_RE.sub("", source)

    links = []
    for link_tag in _STYLESHEET_LINK_RE.findall(content):
        href = _href_of(link_tag)
        if href:
            links.append(href)
    content = _STYLESHEET_LINK_RE.sub("", content)

    if _DOCTYPE_RE.search(content) or _SCAFFOLD_TAG_RE.search(content):
        content = _DOCTYPE_RE.sub("", content)
        content = _HEAD_ONLY_RE.sub("", content)
        content = _SCAFFOLD_TAG_RE.sub("", content)

    return PageParts(content=content.strip(), styles=styles, stylesheet_links=links)


def _dedupe(items: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


class PageComposer:
    """Composes preview pages and combined export documents.

    Parameters:
        page_width / page_height: sheet size, A4 by default
        font_links: web font stylesheets linked from every generated document
        export_page_numbers: keep the print-only page number badge in export documents
        lang: lang attribute of generated documents"""

    def __init__(
        self,
        page_width: str = "210mm",
        page_height: str = "297mm",
        font_links: Optional[List[str]] = None,
        export_page_numbers: bool = False,
        lang: str = "en",
    ):
        self.page_width = page_width
        self.page_height = page_height
        self.font_links = list(font_links or [])
        self.export_page_numbers = export_page_numbers
        self.lang = lang

    @classmethod
    def from_settings(cls, config) -> "PageComposer":
        return cls(
            page_width=config.PAGE_WIDTH,
            page_height=config.PAGE_HEIGHT,
            font_links=list(config.FONT_LINKS),
            export_page_numbers=config.EXPORT_PAGE_NUMBERS,
            lang=config.DOCUMENT_LANG,
        )

    # ======== Style sections ========

    def _universal_fixes(self, page_id: str, scoped: bool) -> str:
        prefix = f"{page_selector(page_id)} " if scoped else ""
        wrapper = f"{page_selector(page_id)}.unified-page" if scoped else ".unified-page"
        return (
            f"{prefix}input[type=\"file\"],\n"
            f"{prefix}.image-input,\n"
            f"{prefix}.edit-indicator,\n"
            f"{prefix}[data-editable].selected {{\n"
            "    display: none !important;\n"
            "}\n"
            f"{wrapper} {{\n"
            "    overflow: visible !important;\n"
            "}"
        )

    @staticmethod
    def _print_optimizations() -> str:
        return (
            "@media print {\n"
            "    * {\n"
            "        -webkit-print-color-adjust: exact !important;\n"
            "        print-color-adjust: exact !important;\n"
            "    }\n"
            "    .unified-page {\n"
            "        box-shadow: none !important;\n"
            "        margin: 0 !important;\n"
            "    }\n"
            "}"
        )

    @staticmethod
    def _page_number_styles(page_id: str) -> str:
        badge = f"{page_selector(page_id)} > .page-number"
        return (
            f"{badge} {{\n"
            "    position: absolute;\n"
            "    top: 10px;\n"
            "    right: 10px;\n"
            "    font-size: 12px;\n"
            "    color: #666;\n"
            "    z-index: 9999;\n"
            "    background: rgba(255,255,255,0.8);\n"
            "    padding: 2px 6px;\n"
            "    border-radius: 3px;\n"
            "    display: none !important;\n"
            "}\n"
            "@media print {\n"
            f"    {badge} {{\n"
            "        display: block !important;\n"
            "    }\n"
            "}"
        )

    def _sheet_style(self, include_page_break: bool, export: bool) -> str:
        page_break = "page-break-after: always;" if include_page_break else "page-break-after: avoid;"
        if export:
            return (
                f"width: {self.page_width}; height: {self.page_height}; margin: 0; {page_break} "
                "position: relative; background: white; overflow: visible;"
            )
        return (
            f"width: {self.page_width}; min-height: {self.page_height}; margin: 20px auto; {page_break} "
            "position: relative; box-shadow: 0 0 10px rgba(0,0,0,0.1); background: white; overflow: visible;"
        )

    # ======== Single page ========

    def wrap_page(
        self,
        page_id: str,
        parts: PageParts,
        page_number: int = 1,
        multi_page: bool = False,
        include_page_break: bool = False,
        export: bool = False,
    ) -> str:
        """Place extracted page parts in the self-contained A4 wrapper."""
        if multi_page:
            style_sections = [scope_css(style, page_id) for style in parts.styles]
        else:
            style_sections = list(parts.styles)
        style_sections.append(self._universal_fixes(page_id, scoped=multi_page))
        style_sections.append(self._print_optimizations())
        style_sections.append(self._page_number_styles(page_id))

        show_badge = not export or self.export_page_numbers
        badge = f'<div class="page-number">{page_number}</div>' if show_badge else ""
        safe_id = html.escape(page_id, quote=True)

        return (
            f'<div class="unified-page {html.escape(page_class(page_id), quote=True)}" data-page-id="{safe_id}" '
            f'style="{self._sheet_style(include_page_break, export)}">\n'
            f"<style>\n{chr(10).join(style_sections)}\n</style>\n"
            f"{parts.content}\n"
            f"{badge}\n"
            "</div>"
        )

    def missing_template_page(self, page: Page, page_number: int = 1, include_page_break: bool = False) -> str:
        """Visible placeholder for a page whose template copy is gone."""
        page_break = "page-break-after: always;" if include_page_break else "page-break-after: avoid;"
        safe_id = html.escape(page.id, quote=True)
        return (
            f'<div class="unified-page page-error" data-page-id="{safe_id}" style="'
            f"width: {self.page_width}; min-height: {self.page_height}; margin: 20px auto; {page_break} "
            "position: relative; background: white; display: flex; align-items: center; "
            'justify-content: center; color: #d32f2f;">\n'
            "<div>\n"
            "<h2>Template Missing</h2>\n"
            f"<p>Page {page_number} ({safe_id}) could not be rendered.</p>\n"
            f"<p>Template &quot;{html.escape(page.template_id)}&quot; is not part of this project.</p>\n"
            "</div>\n"
            "</div>"
        )

    def render_page_markup(self, page: Page, project: Project, overlay: Any, export: bool = False) -> Optional[str]:
        """Template copy markup with the page overlay applied; None when the copy is missing."""
        template_copy = project.get_template_copy(page)
        if template_copy is None:
            logger.error(
                f"Template copy not found for page {page.id} (templateId: {page.template_id}); "
                f"available: {list(project.template_copies)}"
            )
            return None
        patched = apply_overlay(template_copy.markup.strip(), overlay)
        if export:
            patched = clean_overlay_markers(patched)
        return patched

    def compose_page(
        self,
        page: Page,
        project: Project,
        overlay: Any = None,
        page_number: int = 1,
        multi_page: bool = False,
        include_page_break: bool = False,
        export: bool = False,
    ) -> str:
        patched = self.render_page_markup(page, project, overlay, export=export)
        if patched is None:
            return self.missing_template_page(page, page_number, include_page_break)
        parts = extract_page_parts(patched)
        return self.wrap_page(
            page.id,
            parts,
            page_number=page_number,
            multi_page=multi_page,
            include_page_break=include_page_break,
            export=export,
        )

    # ======== Documents ========

    def _document_head(self, title: str, extra_links: Iterable[str] = ()) -> str:
        links = _dedupe(list(self.font_links) + list(extra_links))
        link_tags = "\n".join(
            f'    <link href="{html.escape(href, quote=True)}" rel="stylesheet">' for href in links
        )
        preconnects = "\n".join(f"    {tag}" for tag in FONT_PRECONNECTS) if links else ""
        return (
            "<head>\n"
            '    <meta charset="UTF-8">\n'
            '    <meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
            f"    <title>{html.escape(title)}</title>\n"
            + (preconnects + "\n" if preconnects else "")
            + (link_tags + "\n" if link_tags else "")
            + "    <style>\n"
            "        @page { size: A4; margin: 0 }\n"
            "        body { margin: 0; padding: 0; background: #f5f5f5; }\n"
            "        @media print { body { background: white !important; } }\n"
            "    </style>\n"
            "</head>"
        )

    def compose_document(
        self,
        project: Project,
        overlays: Optional[Mapping[str, Any]] = None,
        export: bool = True,
    ) -> str:
        """Combine every page of the project, in order, into one complete HTML document.

        Parameters:
            project: project with pages and template copies
            overlays: page id -> overlay; falls back to project.overlay_data
            export: export mode (fixed sheets, markers stripped, badge per EXPORT_PAGE_NUMBERS)

        Return:
            str: combined document handed unchanged to the PDF exporter"""
        if not project.pages:
            raise ValueError("No pages to compose")

        overlays = project.overlay_data if overlays is None else overlays
        pages = sorted(project.pages, key=lambda p: p.position)
        multi_page = len(pages) > 1
        blocks: List[str] = []
        links: List[str] = []

        for index, page in enumerate(pages):
            include_break = index < len(pages) - 1
            try:
                patched = self.render_page_markup(page, project, overlays.get(page.id), export=export)
                if patched is None:
                    blocks.append(self.missing_template_page(page, index + 1, include_break))
                    continue
                parts = extract_page_parts(patched)
                links.extend(parts.stylesheet_links)
                blocks.append(self.wrap_page(
                    page.id,
                    parts,
                    page_number=index + 1,
                    multi_page=multi_page,
                    include_page_break=include_break,
                    export=export,
                ))
            except Exception as exc:
                logger.exception(f"Page {page.id} could not be composed, rendering placeholder: {exc}")
                blocks.append(self.missing_template_page(page, index + 1, include_break))

        logger.info(f"Composed {len(blocks)} pages for '{project.metadata.title}' (export={export})")
        return (
            "<!DOCTYPE html>\n"
            f'<html lang="{html.escape(self.lang, quote=True)}">\n'
            f"{self._document_head(f'{project.metadata.title} - Document', links)}\n"
            "<body>\n"
            + "\n".join(blocks)
            + "\n</body>\n</html>"
        )

    def render_preview_document(self, page: Page, project: Project, overlay: Any = None) -> str:
        """Complete, self-contained document for an isolated preview surface (iframe srcdoc).

        Complete template documents are returned patched as they are; fragments get a minimal
        document with the configured font links around them."""
        patched = self.render_page_markup(page, project, overlay)
        if patched is None:
            body = self.missing_template_page(page)
            links: List[str] = []
        else:
            shape = classify_markup(patched)
            if isinstance(shape, CompleteDocument):
                return shape.source
            parts = extract_page_parts(shape)
            styles = "\n".join(parts.styles)
            body = (f"<style>\n{styles}\n</style>\n" if styles else "") + parts.content
            links = parts.stylesheet_links

        return (
            "<!DOCTYPE html>\n"
            f'<html lang="{html.escape(self.lang, quote=True)}">\n'
            f"{self._document_head(f'{project.metadata.title} - Preview', links)}\n"
            f"<body>\n{body}\n</body>\n</html>"
        )


__all__ = ["PageComposer", "PageParts", "extract_page_parts"]
