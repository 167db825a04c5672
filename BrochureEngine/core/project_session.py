"""Project session: the single active editing context.

Owns the current project, the overlay store and the collaborators around them (template library,
project storage, page composer, PDF exporter, auto-save). Page operations keep positions 1..n
contiguous; duplicating a page copies its overlay, deleting a page drops it. Overlays live in the
store while editing and are written back into ``project.overlay_data`` whenever the project is
saved or composed."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from ..renderers.overlay_applier import apply_overlay, clean_overlay_markers
from ..renderers.page_composer import PageComposer
from ..renderers.pdf_renderer import PDFExporter, PDFExportError
from ..state.project import Page, Project, ProjectMetadata, TemplateCopy, new_page_id
from .autosave import AutoSave
from .event_bus import EventBus, Events
from .overlay_store import OverlayChange, OverlayStore
from .project_storage import ProjectStorage, ProjectStorageError
from .selector_resolver import collect_editable_selectors
from .template_library import TemplateLibrary, TemplateNotFoundError


class NoActiveProjectError(RuntimeError):
    """An operation needs a project but none is open."""


class PageNotFoundError(KeyError):
    """The page id is not part of the current project."""


class ProjectSession:
    """Single active project with its overlay store.

    Parameters:
        library: template library the pages are created from
        storage: project/export file storage
        composer: page composer, default settings when omitted
        event_bus: shared bus; a private one is created when omitted
        pdf_exporter_factory: builds the PDF exporter on demand
        auto_save_delay / auto_save_enabled: debounce settings
        lock: lock shared with the HTTP layer, guarding project mutations and saves"""

    def __init__(
        self,
        library: TemplateLibrary,
        storage: ProjectStorage,
        composer: PageComposer | None = None,
        event_bus: EventBus | None = None,
        pdf_exporter_factory: Optional[Callable[[], PDFExporter]] = None,
        auto_save_delay: float = 30.0,
        auto_save_enabled: bool = False,
        keep_export_html: bool = True,
        lock: Any = None,
    ):
        self.library = library
        self.storage = storage
        self.composer = composer or PageComposer()
        self.event_bus = event_bus or EventBus()
        self.overlays = OverlayStore(self.event_bus)
        self.pdf_exporter_factory = pdf_exporter_factory or (
            lambda: PDFExporter(base_url=self.library.templates_dir)
        )
        self.keep_export_html = keep_export_html
        self.lock = lock or threading.RLock()
        self.project: Optional[Project] = None
        self.filename: Optional[str] = None
        self.is_dirty = False
        self.overlays.subscribe(self._on_overlay_change)
        self.auto_save = AutoSave(
            self._auto_save,
            event_bus=self.event_bus,
            delay=auto_save_delay,
            enabled=auto_save_enabled,
        )

    # ======== State helpers ========

    def require_project(self) -> Project:
        if self.project is None:
            raise NoActiveProjectError("Please create or open a project first")
        return self.project

    def require_page(self, page_id: str) -> Page:
        page = self.require_project().get_page(page_id)
        if page is None:
            raise PageNotFoundError(page_id)
        return page

    def _mark_dirty(self):
        self.is_dirty = True
        if self.project is not None:
            self.project.touch()

    def _on_overlay_change(self, change: OverlayChange):
        if self.project is not None and change.kind != "loaded":
            self._mark_dirty()

    def sync_overlays(self) -> Dict[str, Any]:
        """Write the overlay store back into the project, limited to pages that still exist."""
        project = self.require_project()
        page_ids = {page.id for page in project.pages}
        project.overlay_data = {
            page_id: overlay
            for page_id, overlay in self.overlays.get_all_overlays().items()
            if page_id in page_ids
        }
        return project.overlay_data

    # ======== Project lifecycle ========

    def create_project(
        self,
        title: str,
        client: str = "",
        status: str = "draft",
        base_template: Optional[str] = None,
    ) -> Project:
        """Start a new project, pre-populated with every page of base_template when given."""
        with self.lock:
            self.auto_save.cancel()
            self.project = Project(metadata=ProjectMetadata(
                title=title or "Untitled",
                client=client or "",
                status=status or "draft",
                base_template=base_template,
            ))
            self.filename = None
            self.overlays.load_overlays({})
            if base_template:
                self._add_template_pages(base_template)
            self.is_dirty = True
        logger.info(f"Project created: {self.project.metadata.title} ({len(self.project.pages)} pages)")
        self.event_bus.emit(Events.PROJECT_CREATED, self.project)
        return self.project

    def load_project(self, filename: str) -> Project:
        with self.lock:
            self.auto_save.cancel()
            project = self.storage.load(filename)
            self.project = project
            self.filename = self.storage.project_path(filename).name
            self.overlays.load_overlays(project.overlay_data)
            self.is_dirty = False
            self.repair_missing_template_copies()
        self.event_bus.emit(Events.PROJECT_LOADED, project)
        return project

    def close_project(self):
        with self.lock:
            self.auto_save.cancel()
            self.project = None
            self.filename = None
            self.is_dirty = False
            self.overlays.load_overlays({})

    def save_project(self, auto: bool = False) -> Optional[Path]:
        """Persist the project.

        User saves raise ProjectStorageError/NoActiveProjectError; auto saves log and return None."""
        try:
            with self.lock:
                project = self.require_project()
                self.sync_overlays()
                path = self.storage.save(project, self.filename)
                self.filename = path.name
                self.is_dirty = False
        except (ProjectStorageError, NoActiveProjectError) as exc:
            if auto:
                logger.error(f"Auto-save failed: {exc}")
                return None
            raise

        self.event_bus.emit(Events.PROJECT_SAVED, {"path": str(path), "filename": path.name, "autoSave": auto})
        return path

    def _auto_save(self) -> bool:
        if self.project is None or not self.is_dirty:
            return False
        return self.save_project(auto=True) is not None

    def list_projects(self) -> List[Dict[str, object]]:
        return [record.to_dict() for record in self.storage.list_projects()]

    def delete_project(self, filename: str) -> bool:
        with self.lock:
            deleted = self.storage.delete(filename)
            if deleted and self.filename == self.storage.project_path(filename).name:
                self.filename = None
                self.is_dirty = True
        return deleted

    # ======== Pages ========

    def _ensure_template_copy(self, project: Project, template) -> None:
        if template.id not in project.template_copies:
            project.template_copies[template.id] = TemplateCopy.from_template(template)

    def _add_template_pages(self, template_name: str) -> List[Page]:
        project = self.require_project()
        templates = self.library.pages_of(template_name)
        if not templates:
            raise TemplateNotFoundError(template_name)
        added = []
        for template in templates:
            self._ensure_template_copy(project, template)
            page = Page(
                id=new_page_id(),
                template_id=template.id,
                template=template.template,
                filename=template.filename,
                position=len(project.pages) + 1,
            )
            project.pages.append(page)
            added.append(page)
        return added

    def add_template_pages(self, template_name: str) -> List[Page]:
        """Append every page of a template to the project."""
        with self.lock:
            added = self._add_template_pages(template_name)
            self._mark_dirty()
        for page in added:
            self.event_bus.emit(Events.PAGE_ADDED, {"page": page})
        return added

    def add_page(self, template_id: str) -> Page:
        """Append one template page; its template copy is created on first use."""
        with self.lock:
            project = self.require_project()
            template = self.library.get(template_id)
            if template is None:
                logger.error(f"Template not found for ID: {template_id}")
                raise TemplateNotFoundError(template_id)
            self._ensure_template_copy(project, template)
            page = Page(
                id=new_page_id(),
                template_id=template.id,
                template=template.template,
                filename=template.filename,
                position=len(project.pages) + 1,
            )
            project.pages.append(page)
            self._mark_dirty()
        logger.info(f'Added "{template.name}" to project ({len(project.pages)} pages)')
        self.event_bus.emit(Events.PAGE_ADDED, {"page": page, "template": template})
        return page

    def move_page(self, page_id: str, new_index: int) -> bool:
        """Move a page to a 0-based index; out-of-range targets are ignored."""
        with self.lock:
            project = self.require_project()
            index = project.page_index(page_id)
            if index == -1 or new_index < 0 or new_index >= len(project.pages) or new_index == index:
                return False
            page = project.pages.pop(index)
            project.pages.insert(new_index, page)
            project.renumber_pages()
            self._mark_dirty()
        self.event_bus.emit(Events.PAGE_MOVED, {"pageId": page_id, "oldIndex": index, "newIndex": new_index})
        return True

    def move_page_up(self, page_id: str) -> bool:
        index = self.require_project().page_index(page_id)
        return index > 0 and self.move_page(page_id, index - 1)

    def move_page_down(self, page_id: str) -> bool:
        index = self.require_project().page_index(page_id)
        return index >= 0 and self.move_page(page_id, index + 1)

    def reorder_pages(self, order: List[str]) -> List[Page]:
        """Apply a new page order; unknown ids are ignored and unlisted pages keep their relative order at the end."""
        with self.lock:
            project = self.require_project()
            by_id = {page.id: page for page in project.pages}
            reordered = [by_id.pop(page_id) for page_id in order if page_id in by_id]
            reordered.extend(page for page in project.pages if page.id in by_id)
            project.pages = reordered
            project.renumber_pages()
            self._mark_dirty()
        self.event_bus.emit(Events.PAGE_MOVED, {"reorder": True, "order": [p.id for p in reordered]})
        return reordered

    def duplicate_page(self, page_id: str) -> Page:
        """Insert a copy right after the page, with an independent copy of its overlay."""
        with self.lock:
            project = self.require_project()
            original = self.require_page(page_id)
            index = project.page_index(page_id)
            duplicate = Page(
                id=new_page_id(),
                template_id=original.template_id,
                template=original.template,
                filename=original.filename,
            )
            project.pages.insert(index + 1, duplicate)
            project.renumber_pages()
            self.overlays.copy_page_overlays(page_id, duplicate.id)
            self._mark_dirty()
        self.event_bus.emit(Events.PAGE_DUPLICATED, {"originalPageId": page_id, "newPage": duplicate})
        return duplicate

    def delete_page(self, page_id: str) -> Page:
        with self.lock:
            project = self.require_project()
            page = self.require_page(page_id)
            project.pages.remove(page)
            project.renumber_pages()
            self.overlays.drop_page(page_id)
            project.overlay_data.pop(page_id, None)
            self._mark_dirty()
        self.event_bus.emit(Events.PAGE_REMOVED, {"pageId": page_id, "deletedPage": page})
        return page

    def repair_missing_template_copies(self) -> int:
        """Relink pages whose template copy is missing: exact id, then filename, then id containment.

        Return:
            int: number of repaired template copies"""
        project = self.require_project()
        repaired = 0
        for page in project.orphaned_pages():
            if page.template_id in project.template_copies:
                continue
            template = self.library.find_for_page(page.template_id, page.filename)
            if template is None:
                logger.warning(f"Could not find matching template for page {page.id} with templateId: {page.template_id}")
                continue
            project.template_copies[page.template_id] = TemplateCopy.from_template(template)
            logger.info(f'Repaired template copy for "{page.template_id}" using template "{template.name}"')
            repaired += 1

        if repaired:
            self._mark_dirty()
            self.event_bus.emit(Events.PROJECT_DIRTY, True)
            self.event_bus.emit(Events.TEMPLATE_COPIES_REPAIRED, {"count": repaired})
        return repaired

    # ======== Rendering ========

    def source_markup(self, page_id: str) -> str:
        """Untouched template copy markup of a page, empty when the copy is missing."""
        project = self.require_project()
        template_copy = project.get_template_copy(self.require_page(page_id))
        return template_copy.markup if template_copy is not None else ""

    def live_markup(self, page_id: str) -> str:
        """Template copy markup with the current overlay applied; what editors select against."""
        project = self.require_project()
        page = self.require_page(page_id)
        template_copy = project.get_template_copy(page)
        if template_copy is None:
            return ""
        return apply_overlay(template_copy.markup, self.overlays.get_overlay(page_id))

    def editable_selectors(self, page_id: str) -> Dict[str, List[Dict[str, Any]]]:
        project = self.require_project()
        page = self.require_page(page_id)
        template_copy = project.get_template_copy(page)
        if template_copy is None:
            return {"text": [], "images": [], "containers": [], "sections": []}
        return collect_editable_selectors(template_copy.markup)

    def preview_page(self, page_id: str) -> str:
        """Self-contained document for an isolated preview surface."""
        project = self.require_project()
        page = self.require_page(page_id)
        return self.composer.render_preview_document(page, project, self.overlays.get_overlay(page_id))

    def compose_document(self, export: bool = True) -> str:
        with self.lock:
            project = self.require_project()
            overlays = self.sync_overlays()
            return self.composer.compose_document(project, overlays, export=export)

    def export_pdf(self, name: Optional[str] = None) -> Dict[str, Any]:
        """Compose the export document and hand it to the PDF exporter.

        Return:
            dict: path, directory, filename and (when kept) htmlPath of the export"""
        project = self.require_project()
        html_content = self.compose_document(export=True)
        export_name = name or project.metadata.title
        try:
            target = self.storage.export_target(export_name)
            html_path = self.storage.write_export_html(target, html_content) if self.keep_export_html else None
            exporter = self.pdf_exporter_factory()
            pdf_path = exporter.render_to_pdf(html_content, target.pdf_path)
        except PDFExportError as exc:
            logger.error(f"PDF export failed for '{export_name}': {exc}")
            self.event_bus.emit(Events.EXPORT_FAILED, exc.to_dict())
            raise
        except (ProjectStorageError, OSError) as exc:
            error = PDFExportError(f"Export failed: {exc}")
            logger.error(f"PDF export failed for '{export_name}': {error}")
            self.event_bus.emit(Events.EXPORT_FAILED, error.to_dict())
            raise error from exc

        result = {
            "path": str(pdf_path),
            "directory": str(target.directory),
            "filename": pdf_path.name,
            "htmlPath": str(html_path) if html_path else None,
        }
        self.event_bus.emit(Events.EXPORT_COMPLETED, result)
        return result

    def export_page_as_template(self, page_id: str, page_name: str, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
        """Save the edited page (overlay applied, markers stripped) as a new single-page template."""
        project = self.require_project()
        page = self.require_page(page_id)
        if project.get_template_copy(page) is None:
            raise TemplateNotFoundError(page.template_id)
        html = clean_overlay_markers(self.live_markup(page_id))
        meta = {"name": page_name, "category": "general", "version": "1.0", "pages": [f"{page_name}.html"]}
        meta.update(metadata or {})
        target_root = self.storage.exports_dir / "Templates"
        return self.library.write_template(target_root, page_name, html, meta)

    def status(self) -> Dict[str, Any]:
        project = self.project
        return {
            "hasProject": project is not None,
            "project": project.summary() if project else None,
            "filename": self.filename,
            "isDirty": self.is_dirty,
            "templates": len(self.library),
            "autoSave": self.auto_save.stats(),
        }


def create_session(config=None, event_bus: EventBus | None = None, lock: Any = None) -> ProjectSession:
    """Convenience function for building a session from configuration.

    Args:
        config: Settings instance, the global settings when omitted
        event_bus: shared bus, optional
        lock: lock shared with the caller (the Flask interface passes its task lock)

    Returns:
        ProjectSession with the template library already loaded"""
    if config is None:
        from ..utils.config import settings as config

    event_bus = event_bus or EventBus()
    library = TemplateLibrary(config.templates_path, event_bus=event_bus)
    library.load()
    storage = ProjectStorage(config.projects_path, config.exports_path, extension=config.PROJECT_EXTENSION)
    return ProjectSession(
        library,
        storage,
        composer=PageComposer.from_settings(config),
        event_bus=event_bus,
        auto_save_delay=config.AUTO_SAVE_DELAY,
        auto_save_enabled=config.AUTO_SAVE_ENABLED,
        keep_export_html=config.KEEP_EXPORT_HTML,
        lock=lock,
    )


__all__ = ["ProjectSession", "NoActiveProjectError", "PageNotFoundError", "create_session"]
