"""Brochure Engine Flask interface.

This module provides the HTTP entry for the editing front end and is responsible for:
1. Initialize the ProjectSession (template library, storage, composer) once per process;
2. Project and page management, overlay edits and click-to-edit actions;
3. Preview documents, editable selector lists and HTML/PDF export."""

import threading
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, Response, jsonify, request
from loguru import logger

from .core.overlay_store import CONTAINERS, IMAGES, SECTIONS, TEXT
from .core.project_session import NoActiveProjectError, PageNotFoundError, ProjectSession, create_session
from .core.project_storage import ProjectStorageError
from .core.template_library import TemplateNotFoundError
from .editors import EditorSelectionError, ElementEditor
from .renderers.pdf_renderer import PDFExportError
from .utils.config import settings


# Create Blueprint
brochure_bp = Blueprint('brochure_engine', __name__)

# global variables
session: Optional[ProjectSession] = None
# Shared with the session: HTTP requests and the auto-save timer never interleave project mutations
task_lock = threading.RLock()

OVERLAY_SETTERS = {
    TEXT: 'set_text_overlay',
    IMAGES: 'set_image_overlay',
    CONTAINERS: 'set_container_overlay',
    SECTIONS: 'set_section_overlay',
}


def initialize_brochure_engine(config=None) -> bool:
    """Initialize Brochure Engine.

    Build the session singleton so the API can accept requests right after startup.

    Return:
        bool: Return True if initialization is successful, False if exception occurs."""
    global session
    try:
        session = create_session(config or settings, lock=task_lock)
        logger.info(f"Brochure Engine initialized successfully ({len(session.library)} template pages)")

        # Detecting PDF generation dependencies (Pango)
        try:
            from .utils.dependency_check import log_dependency_status
            log_dependency_status()
        except Exception as dep_err:
            logger.warning(f"Dependency check failed: {dep_err}")

        return True
    except Exception as e:
        logger.exception(f"Brochure Engine initialization failed: {str(e)}")
        return False


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        logger.warning("Received non-object JSON payload, original content ignored")
        data = {}
    return data


def _not_initialized():
    return jsonify({
        'success': False,
        'error': 'Brochure Engine not initialized'
    }), 500


def _client_error(exc: Exception) -> Optional[Tuple[Response, int]]:
    """Map expected domain errors to 4xx responses; None for anything unexpected."""
    if isinstance(exc, NoActiveProjectError):
        return jsonify({'success': False, 'error': str(exc)}), 409
    if isinstance(exc, PageNotFoundError):
        return jsonify({'success': False, 'error': f'Page not found: {exc.args[0]}'}), 404
    if isinstance(exc, TemplateNotFoundError):
        return jsonify({'success': False, 'error': f'Template not found: {exc.args[0]}'}), 404
    if isinstance(exc, (EditorSelectionError, ValueError)):
        return jsonify({'success': False, 'error': str(exc)}), 400
    return None


def _handle_error(exc: Exception, action: str):
    response = _client_error(exc)
    if response is not None:
        logger.warning(f"{action} rejected: {exc}")
        return response
    logger.exception(f"{action} failed: {str(exc)}")
    return jsonify({
        'success': False,
        'error': str(exc)
    }), 500


# ======== Status and templates ========

@brochure_bp.route('/status', methods=['GET'])
def get_status():
    """Get Brochure Engine status, including the open project and auto-save state."""
    try:
        if not session:
            return jsonify({'success': True, 'initialized': False})
        return jsonify({
            'success': True,
            'initialized': True,
            **session.status()
        })
    except Exception as e:
        logger.exception(f"Failed to obtain Brochure Engine status: {str(e)}")
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@brochure_bp.route('/templates', methods=['GET'])
def get_templates():
    """List template pages grouped by template, plus the category list."""
    if not session:
        return _not_initialized()
    try:
        return jsonify({
            'success': True,
            'templates': session.library.unique_templates(),
            'pages': [template.to_dict(include_content=False) for template in session.library.templates],
            'categories': session.library.categories(),
        })
    except Exception as e:
        return _handle_error(e, 'Template listing')


@brochure_bp.route('/templates/reload', methods=['POST'])
def reload_templates():
    if not session:
        return _not_initialized()
    try:
        with task_lock:
            templates = session.library.load()
        return jsonify({'success': True, 'count': len(templates)})
    except Exception as e:
        return _handle_error(e, 'Template reload')


# ======== Projects ========

@brochure_bp.route('/project', methods=['GET'])
def get_project():
    if not session:
        return _not_initialized()
    try:
        with task_lock:
            project = session.require_project()
            session.sync_overlays()
            data = project.to_dict()
        return jsonify({'success': True, 'project': data, 'filename': session.filename})
    except Exception as e:
        return _handle_error(e, 'Project read')


@brochure_bp.route('/project', methods=['POST'])
def create_project():
    """Create a new project.

    Request body:
        title: project title (required).
        client / status: optional metadata.
        baseTemplate: template whose pages pre-populate the project (optional)."""
    if not session:
        return _not_initialized()
    try:
        data = _json_body()
        title = (data.get('title') or '').strip()
        if not title:
            return jsonify({'success': False, 'error': 'Project title is required'}), 400
        project = session.create_project(
            title,
            client=data.get('client', ''),
            status=data.get('status', 'draft'),
            base_template=data.get('baseTemplate') or None,
        )
        return jsonify({'success': True, 'project': project.summary()})
    except Exception as e:
        return _handle_error(e, 'Project creation')


@brochure_bp.route('/projects', methods=['GET'])
def list_projects():
    if not session:
        return _not_initialized()
    try:
        return jsonify({'success': True, 'projects': session.list_projects()})
    except Exception as e:
        return _handle_error(e, 'Project listing')


@brochure_bp.route('/project/load', methods=['POST'])
def load_project():
    if not session:
        return _not_initialized()
    try:
        filename = _json_body().get('filename')
        if not filename:
            return jsonify({'success': False, 'error': 'filename is required'}), 400
        project = session.load_project(filename)
        return jsonify({'success': True, 'project': project.summary(), 'filename': session.filename})
    except ProjectStorageError as e:
        logger.warning(f"Project load failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 404
    except Exception as e:
        return _handle_error(e, 'Project load')


@brochure_bp.route('/project/save', methods=['POST'])
def save_project():
    if not session:
        return _not_initialized()
    try:
        path = session.save_project()
        return jsonify({'success': True, 'path': str(path), 'filename': path.name})
    except Exception as e:
        return _handle_error(e, 'Project save')


@brochure_bp.route('/projects/<filename>', methods=['DELETE'])
def delete_project(filename: str):
    if not session:
        return _not_initialized()
    try:
        if not session.delete_project(filename):
            return jsonify({'success': False, 'error': f'Project not found: {filename}'}), 404
        return jsonify({'success': True})
    except Exception as e:
        return _handle_error(e, 'Project deletion')


# ======== Pages ========

@brochure_bp.route('/pages', methods=['POST'])
def add_page():
    """Add pages to the project.

    Request body:
        templateId: add one template page, or
        templateName: add every page of a template."""
    if not session:
        return _not_initialized()
    try:
        data = _json_body()
        if data.get('templateId'):
            pages = [session.add_page(data['templateId'])]
        elif data.get('templateName'):
            pages = session.add_template_pages(data['templateName'])
        else:
            return jsonify({'success': False, 'error': 'templateId or templateName is required'}), 400
        return jsonify({'success': True, 'pages': [page.to_dict() for page in pages]})
    except Exception as e:
        return _handle_error(e, 'Page addition')


@brochure_bp.route('/pages/<page_id>/move', methods=['POST'])
def move_page(page_id: str):
    """Move a page by direction ("up"/"down") or to a 0-based index."""
    if not session:
        return _not_initialized()
    try:
        data = _json_body()
        session.require_page(page_id)
        direction = data.get('direction')
        if direction == 'up':
            moved = session.move_page_up(page_id)
        elif direction == 'down':
            moved = session.move_page_down(page_id)
        elif 'index' in data:
            moved = session.move_page(page_id, int(data['index']))
        else:
            return jsonify({'success': False, 'error': 'direction or index is required'}), 400
        pages = [page.to_dict() for page in session.require_project().pages]
        return jsonify({'success': True, 'moved': moved, 'pages': pages})
    except Exception as e:
        return _handle_error(e, 'Page move')


@brochure_bp.route('/pages/reorder', methods=['POST'])
def reorder_pages():
    if not session:
        return _not_initialized()
    try:
        order = _json_body().get('order')
        if not isinstance(order, list):
            return jsonify({'success': False, 'error': 'order must be a list of page ids'}), 400
        pages = session.reorder_pages(order)
        return jsonify({'success': True, 'pages': [page.to_dict() for page in pages]})
    except Exception as e:
        return _handle_error(e, 'Page reorder')


@brochure_bp.route('/pages/<page_id>/duplicate', methods=['POST'])
def duplicate_page(page_id: str):
    if not session:
        return _not_initialized()
    try:
        page = session.duplicate_page(page_id)
        return jsonify({'success': True, 'page': page.to_dict()})
    except Exception as e:
        return _handle_error(e, 'Page duplication')


@brochure_bp.route('/pages/<page_id>', methods=['DELETE'])
def delete_page(page_id: str):
    if not session:
        return _not_initialized()
    try:
        page = session.delete_page(page_id)
        return jsonify({'success': True, 'deletedPage': page.to_dict()})
    except Exception as e:
        return _handle_error(e, 'Page deletion')


@brochure_bp.route('/pages/<page_id>/preview', methods=['GET'])
def preview_page(page_id: str):
    """Self-contained preview document, ready for an iframe srcdoc."""
    if not session:
        return _not_initialized()
    try:
        html = session.preview_page(page_id)
        return Response(html, mimetype='text/html')
    except Exception as e:
        return _handle_error(e, 'Page preview')


@brochure_bp.route('/pages/<page_id>/selectors', methods=['GET'])
def get_selectors(page_id: str):
    if not session:
        return _not_initialized()
    try:
        return jsonify({'success': True, 'selectors': session.editable_selectors(page_id)})
    except Exception as e:
        return _handle_error(e, 'Selector listing')


@brochure_bp.route('/pages/<page_id>/export-template', methods=['POST'])
def export_page_as_template(page_id: str):
    if not session:
        return _not_initialized()
    try:
        data = _json_body()
        name = (data.get('name') or '').strip()
        if not name:
            return jsonify({'success': False, 'error': 'Template name is required'}), 400
        result = session.export_page_as_template(page_id, name, data.get('metadata') or {})
        return jsonify({'success': True, **result})
    except Exception as e:
        return _handle_error(e, 'Template export')


# ======== Overlays ========

@brochure_bp.route('/pages/<page_id>/overlay', methods=['GET'])
def get_overlay(page_id: str):
    if not session:
        return _not_initialized()
    try:
        session.require_page(page_id)
        return jsonify({'success': True, 'overlay': session.overlays.get_overlay(page_id).to_dict()})
    except Exception as e:
        return _handle_error(e, 'Overlay read')


@brochure_bp.route('/pages/<page_id>/overlay', methods=['POST'])
def set_overlay(page_id: str):
    """Store one overlay entry.

    Request body:
        category: text / images (string value) or containers / sections (property object).
        selector: CSS selector the entry is keyed by.
        value: new text, image URL or style properties."""
    if not session:
        return _not_initialized()
    try:
        data = _json_body()
        category = data.get('category')
        selector = data.get('selector')
        value = data.get('value')
        if category not in OVERLAY_SETTERS:
            return jsonify({'success': False, 'error': f'Unknown overlay category: {category}'}), 400
        if not selector:
            return jsonify({'success': False, 'error': 'selector is required'}), 400
        if category in (CONTAINERS, SECTIONS) and not isinstance(value, dict):
            return jsonify({'success': False, 'error': f'{category} overlays take an object of style properties'}), 400
        if category in (TEXT, IMAGES) and not isinstance(value, str):
            return jsonify({'success': False, 'error': f'{category} overlays take a string value'}), 400

        with task_lock:
            session.require_page(page_id)
            getattr(session.overlays, OVERLAY_SETTERS[category])(page_id, selector, value)
        return jsonify({'success': True, 'overlay': session.overlays.get_overlay(page_id).to_dict()})
    except Exception as e:
        return _handle_error(e, 'Overlay update')


@brochure_bp.route('/pages/<page_id>/overlay', methods=['DELETE'])
def remove_overlay(page_id: str):
    if not session:
        return _not_initialized()
    try:
        data = _json_body()
        with task_lock:
            session.require_page(page_id)
            removed = session.overlays.remove_overlay(page_id, data.get('category'), data.get('selector'))
        return jsonify({'success': True, 'removed': removed})
    except Exception as e:
        return _handle_error(e, 'Overlay removal')


@brochure_bp.route('/pages/<page_id>/overlay/clear', methods=['POST'])
def clear_overlay(page_id: str):
    if not session:
        return _not_initialized()
    try:
        with task_lock:
            session.require_page(page_id)
            session.overlays.clear_page_overlays(page_id)
        return jsonify({'success': True})
    except Exception as e:
        return _handle_error(e, 'Overlay reset')


@brochure_bp.route('/pages/<page_id>/edit', methods=['POST'])
def edit_element(page_id: str):
    """Click-to-edit: detect the component under target and run an editor action on it.

    Request body:
        target: selector of the clicked element on the live page.
        action: set-text / replace-image / move-container / resize-container /
            adjust-section-height / move-section / reset; omitted to only inspect.
        args: positional arguments for the action (optional)."""
    if not session:
        return _not_initialized()
    try:
        data = _json_body()
        target = data.get('target')
        if not target:
            return jsonify({'success': False, 'error': 'target is required'}), 400
        args = data.get('args') or []
        if not isinstance(args, list):
            args = [args]

        with task_lock:
            editor = ElementEditor(
                session.overlays,
                page_id,
                session.live_markup(page_id),
                page_height=session.composer.page_height,
                source=session.source_markup(page_id),
            )
            selection = editor.select(target)
            result = editor.perform(data['action'], *args) if data.get('action') else None
            selection['overlay'] = editor.active.current_overlay()
        return jsonify({'success': True, 'selection': selection, 'result': result})
    except Exception as e:
        return _handle_error(e, 'Element edit')


# ======== Export ========

@brochure_bp.route('/export/html', methods=['GET'])
def export_html():
    """Return the combined document exactly as it would be handed to the PDF engine."""
    if not session:
        return _not_initialized()
    try:
        export = request.args.get('export', 'true').lower() != 'false'
        html = session.compose_document(export=export)
        return Response(html, mimetype='text/html')
    except Exception as e:
        return _handle_error(e, 'HTML export')


@brochure_bp.route('/export/pdf', methods=['POST'])
def export_pdf():
    """Export the project to PDF.

    Request body:
        name: export name, the project title by default."""
    if not session:
        return _not_initialized()
    if not settings.ENABLE_PDF_EXPORT:
        return jsonify({'success': False, 'error': 'PDF export is disabled'}), 403
    try:
        # Detecting Pango dependencies
        from .utils.dependency_check import check_pango_available
        pango_available, pango_message = check_pango_available()
        if not pango_available:
            return jsonify({
                'success': False,
                'error': 'PDF export unavailable: missing system dependencies',
                'system_message': pango_message
            }), 503

        result = session.export_pdf(_json_body().get('name'))
        return jsonify({'success': True, **result})
    except PDFExportError as e:
        logger.error(f"PDF export failed: {e}")
        return jsonify({'success': False, **e.to_dict()}), 500
    except Exception as e:
        return _handle_error(e, 'PDF export')


@brochure_bp.errorhandler(404)
def not_found(error):
    """404 fallback handling: uniformly returns JSON structure."""
    logger.exception(f"API endpoint does not exist: {str(error)}")
    return jsonify({
        'success': False,
        'error': 'API endpoint does not exist'
    }), 404


@brochure_bp.errorhandler(500)
def internal_error(error):
    """500 fallback handling: captures uncaught exceptions."""
    logger.exception(f"Internal server error: {str(error)}")
    return jsonify({
        'success': False,
        'error': 'Internal server error'
    }), 500
