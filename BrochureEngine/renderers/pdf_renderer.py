"""PDF Exporter - hand the combined brochure document to WeasyPrint.

The composed HTML is passed through unchanged; A4 sizing and page breaks are already part of the
document produced by the Page Composer."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional
from loguru import logger
from BrochureEngine.utils.dependency_check import (
    prepare_pango_environment,
    check_pango_available,
)

# Before importing WeasyPrint, add the Homebrew (macOS) or GTK runtime (Windows) library folders
# so pango/cairo can be found
_added_lib_path = prepare_pango_environment()
if _added_lib_path:
    logger.debug(f"Native library path has been automatically added: {_added_lib_path}")

try:
    from weasyprint import HTML
    from weasyprint.text.fonts import FontConfiguration
    WEASYPRINT_AVAILABLE = True
    PDF_DEP_STATUS = "OK"
except (ImportError, OSError) as e:
    WEASYPRINT_AVAILABLE = False
    HTML = None
    FontConfiguration = None
    try:
        _, dep_message = check_pango_available()
    except Exception:
        dep_message = None

    if isinstance(e, OSError):
        PDF_DEP_STATUS = dep_message or (
            "PDF export dependencies are missing (system libraries are not installed or environment variables are not set),"
            "PDF export will not be available. Preview and HTML export are not affected."
        )
    else:
        PDF_DEP_STATUS = dep_message or "WeasyPrint is not installed, the PDF export function will not be available"
    logger.warning(PDF_DEP_STATUS)

RETRY_GUIDANCE = (
    "The project and its edits are unchanged. Check the export folder is writable and that the "
    "PDF dependencies are installed (python -m BrochureEngine.utils.dependency_check), then export again."
)


class PDFExportError(RuntimeError):
    """PDF hand-off failed; carries guidance the user can act on before retrying."""

    def __init__(self, message: str, retry_guidance: str = RETRY_GUIDANCE):
        super().__init__(message)
        self.retry_guidance = retry_guidance

    def to_dict(self):
        return {"error": str(self), "retryGuidance": self.retry_guidance}


class PDFExporter:
    """PDF exporter based on WeasyPrint

    - Renders the combined brochure HTML exactly as composed
    - Keeps the CSS of every page, including @page A4 sizing
    - Relative image paths resolve against base_url"""

    def __init__(
        self,
        base_url: str | Path | None = None,
        html_factory: Optional[Callable[..., Any]] = None,
    ):
        """Initialize the exporter

        Parameters:
            base_url: folder that relative asset URLs are resolved against
            html_factory: callable building the renderable document, WeasyPrint's HTML by default"""
        self.base_url = str(base_url or Path.cwd())
        if html_factory is None:
            if not WEASYPRINT_AVAILABLE:
                raise PDFExportError(PDF_DEP_STATUS)
            html_factory = HTML
        self.html_factory = html_factory

    @staticmethod
    def is_available() -> bool:
        return WEASYPRINT_AVAILABLE

    def _write_kwargs(self):
        kwargs = {"presentational_hints": True}
        if FontConfiguration is not None and self.html_factory is HTML:
            kwargs["font_config"] = FontConfiguration()
        return kwargs

    def render_to_pdf(self, html_content: str, output_path: str | Path) -> Path:
        """Render the combined document to a PDF file

        Parameters:
            html_content: combined brochure document
            output_path: PDF output path

        Return:
            Path: generated PDF file path"""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Start generating PDF: {output_path}")

        try:
            html_doc = self.html_factory(string=html_content, base_url=self.base_url)
            html_doc.write_pdf(output_path, **self._write_kwargs())
        except Exception as e:
            logger.error(f"PDF generation failed: {e}")
            raise PDFExportError(f"PDF generation failed: {e}") from e

        logger.info(f"✓ PDF generated successfully: {output_path}")
        return output_path

    def render_to_bytes(self, html_content: str) -> bytes:
        """Render the combined document to a PDF byte stream"""
        try:
            html_doc = self.html_factory(string=html_content, base_url=self.base_url)
            return html_doc.write_pdf(**self._write_kwargs())
        except Exception as e:
            logger.error(f"PDF generation failed: {e}")
            raise PDFExportError(f"PDF generation failed: {e}") from e


__all__ = ["PDFExporter", "PDFExportError", "WEASYPRINT_AVAILABLE", "PDF_DEP_STATUS"]
