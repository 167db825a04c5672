#!/usr/bin/env python
"""Brochure Engine command line export

Exports a saved project without the editing front end.
Main process:
1. Load the project (.3bt) and relink missing template copies from the template library
2. Compose the combined document from the untouched template sources plus the stored overlays
3. Save the HTML and, when WeasyPrint and Pango are available, the PDF to Exports/PDF/<date>-<name>/

How to use:
    python export_brochure.py PROJECT [options]

Options:
    --name NAME      export name (default: project title)
    --skip-pdf       only write the HTML document
    --preview        compose in preview mode (page shadows, visible page numbers)
    --verbose        show detailed logs
    --help           display help information"""

import argparse
import sys
from pathlib import Path

from loguru import logger

from BrochureEngine.core.project_session import create_session
from BrochureEngine.core.project_storage import ProjectStorage, ProjectStorageError
from BrochureEngine.renderers.pdf_renderer import PDFExportError
from BrochureEngine.utils.config import settings, print_config


def setup_logger(verbose: bool = False):
    """Set log configuration"""
    logger.remove()  # Remove default processor
    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level="DEBUG" if verbose else "INFO"
    )


def check_dependencies() -> bool:
    """Check the PDF export system dependencies; HTML export works without them."""
    logger.info("=" * 70)
    logger.info("Step 1/3: Check PDF dependencies")
    logger.info("=" * 70)

    from BrochureEngine.utils.dependency_check import check_pango_available
    available, message = check_pango_available()
    if available:
        logger.success("✓ PDF dependencies detected, PDF will be generated")
    else:
        logger.warning("⚠ PDF dependencies missing, only HTML will be generated")
        logger.debug(message)
    return available


def parse_arguments():
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="Brochure Engine command line export - compose a saved project into HTML/PDF",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Example:
  python export_brochure.py Projects/Spring-Catalogue.3bt
  python export_brochure.py Spring-Catalogue --name "Spring 2026" --skip-pdf --verbose
        """
    )
    parser.add_argument('project', type=str, help='project file, or project name inside the projects folder')
    parser.add_argument('--name', type=str, default=None, help='export name (default: project title)')
    parser.add_argument('--skip-pdf', action='store_true', help='skip PDF generation even when supported')
    parser.add_argument('--preview', action='store_true', help='compose in preview mode instead of export mode')
    parser.add_argument('--verbose', action='store_true', help='show detailed logs')
    return parser.parse_args()


def main():
    """main function"""
    args = parse_arguments()
    setup_logger(verbose=args.verbose)
    if args.verbose:
        print_config(settings)

    pdf_available = check_dependencies() and settings.ENABLE_PDF_EXPORT and not args.skip_pdf
    if args.skip_pdf:
        logger.info("If the user specifies --skip-pdf, PDF generation will be skipped")

    session = create_session(settings)
    session.auto_save.enabled = False
    project_file = Path(args.project)
    if project_file.is_file():
        # Load straight from the given path, exports still go to the configured folder
        session.storage = ProjectStorage(project_file.parent, settings.exports_path, extension=project_file.suffix or settings.PROJECT_EXTENSION)

    logger.info("=" * 70)
    logger.info("Step 2/3: Load project")
    logger.info("=" * 70)
    try:
        project = session.load_project(project_file.name)
    except ProjectStorageError as exc:
        logger.error(f"❌ {exc}")
        sys.exit(1)
    logger.info(f"Project: {project.title} ({len(project.pages)} pages)")
    if not project.pages:
        logger.error("❌ The project has no pages to export")
        sys.exit(1)

    logger.info("=" * 70)
    logger.info("Step 3/3: Compose and save")
    logger.info("=" * 70)
    export_name = args.name or project.title
    if pdf_available and not args.preview:
        try:
            result = session.export_pdf(export_name)
        except PDFExportError as exc:
            logger.error(f"❌ {exc}")
            logger.info(exc.retry_guidance)
            sys.exit(1)
        logger.success(f"✓ PDF saved: {result['path']}")
        if result.get('htmlPath'):
            logger.success(f"✓ HTML saved: {result['htmlPath']}")
    else:
        html = session.compose_document(export=not args.preview)
        target = session.storage.export_target(export_name, kind="HTML")
        html_path = session.storage.write_export_html(target, html)
        logger.success(f"✓ HTML saved: {html_path}")

    logger.info("=" * 70)
    logger.success("✓ Export completed!")


if __name__ == "__main__":
    main()
