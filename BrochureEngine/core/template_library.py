"""Template library loader.

Two folder layouts are recognised under the templates root:

    Templates/<template>/pages/*.html             (+ optional metadata.json)
    Templates/<category>/<template>/pages/*.html  (category taken from the folder)

Every HTML file becomes one Template record with id "<template>-<file stem>"; template sources
are read once and never modified afterwards."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from ..state.project import Template
from .event_bus import EventBus, Events

DEFAULT_CATEGORY = "general"

_PAGE_PREFIX_RE = re.compile(r"^page-\d+-")


class TemplateNotFoundError(KeyError):
    """Requested template id is not part of the loaded library."""


class TemplateLibrary:
    """In-memory index of every template page found on disk."""

    def __init__(self, templates_dir: str | Path, event_bus: EventBus | None = None):
        self.templates_dir = Path(templates_dir)
        self.event_bus = event_bus
        self._templates: List[Template] = []

    # ======== Loading ========

    def load(self) -> List[Template]:
        """Rescan the templates folder; a missing folder yields an empty library."""
        templates: List[Template] = []
        if not self.templates_dir.exists():
            logger.warning(f"Templates folder does not exist: {self.templates_dir}")
            self._templates = templates
            return templates

        for entry in sorted(self.templates_dir.iterdir()):
            if entry.name.startswith(".") or not entry.is_dir():
                continue
            if (entry / "pages").is_dir():
                templates.extend(self._load_template(entry.name, entry))
                continue
            # category folder: templates live one level deeper
            for template_dir in sorted(entry.iterdir()):
                if template_dir.name.startswith(".") or not template_dir.is_dir():
                    continue
                templates.extend(self._load_template(template_dir.name, template_dir, category=entry.name))

        self._templates = templates
        logger.info(f"Loaded {len(templates)} template pages from {self.templates_dir}")
        if self.event_bus is not None:
            self.event_bus.emit(Events.TEMPLATES_LOADED, templates)
        return templates

    def _read_metadata(self, template_name: str, template_dir: Path, category: Optional[str]) -> Dict[str, object]:
        metadata: Dict[str, object] = {
            "name": template_name,
            "category": category or DEFAULT_CATEGORY,
            "version": "1.0",
            "pages": [],
        }
        metadata_path = template_dir / "metadata.json"
        if metadata_path.exists():
            try:
                loaded = json.loads(metadata_path.read_text(encoding="utf-8"))
                if isinstance(loaded, dict):
                    metadata.update(loaded)
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning(f"Invalid metadata for template {template_name}: {exc}")
        if category:
            metadata["category"] = category
        return metadata

    def _load_template(self, template_name: str, template_dir: Path, category: Optional[str] = None) -> List[Template]:
        pages_dir = template_dir / "pages"
        if not pages_dir.is_dir():
            return []

        metadata = self._read_metadata(template_name, template_dir, category)
        pages: List[Template] = []
        for page_file in sorted(pages_dir.glob("*.html")):
            try:
                content = page_file.read_text(encoding="utf-8")
            except OSError as exc:
                logger.warning(f"Error loading page {page_file.name} from template {template_name}: {exc}")
                continue
            stem = page_file.stem
            pages.append(Template(
                id=f"{template_name}-{stem}",
                name=_PAGE_PREFIX_RE.sub("", stem),
                filename=page_file.name,
                template=template_name,
                content=content,
                category=str(metadata.get("category") or DEFAULT_CATEGORY),
                metadata=metadata,
                path=str(page_file),
            ))
        return pages

    # ======== Queries ========

    @property
    def templates(self) -> List[Template]:
        return list(self._templates)

    def __len__(self) -> int:
        return len(self._templates)

    def get(self, template_id: str) -> Optional[Template]:
        for template in self._templates:
            if template.id == template_id:
                return template
        return None

    def require(self, template_id: str) -> Template:
        template = self.get(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    def pages_of(self, template_name: str) -> List[Template]:
        """Every page of one template, in file order."""
        return [t for t in self._templates if t.template == template_name]

    def by_category(self) -> Dict[str, List[Template]]:
        categories: Dict[str, List[Template]] = {}
        for template in self._templates:
            categories.setdefault(template.category or DEFAULT_CATEGORY, []).append(template)
        return categories

    def categories(self) -> List[str]:
        return sorted(self.by_category())

    def unique_templates(self) -> Dict[str, Dict[str, object]]:
        """Template name -> metadata, one entry per template folder."""
        unique: Dict[str, Dict[str, object]] = {}
        for template in self._templates:
            unique.setdefault(template.template, template.metadata)
        return unique

    def find_for_page(self, template_id: str, filename: str = "") -> Optional[Template]:
        """Best match for an orphaned page: exact id, then filename, then id containment."""
        exact = self.get(template_id)
        if exact is not None:
            return exact
        if filename:
            for template in self._templates:
                if template.filename == filename:
                    return template
        if template_id:
            for template in self._templates:
                if template_id in template.id or template.id in template_id:
                    return template
        return None

    # ======== Export as template ========

    @staticmethod
    def write_template(target_root: str | Path, page_name: str, html: str, metadata: Dict[str, object]) -> Dict[str, str]:
        """Store one page as a reusable single-page template folder.

        Return:
            dict: path, htmlPath and metadataPath of the written files"""
        safe_name = re.sub(r"[^\w\s-]", "", page_name).strip() or "page"
        template_dir = Path(target_root) / safe_name
        pages_dir = template_dir / "pages"
        pages_dir.mkdir(parents=True, exist_ok=True)

        html_path = pages_dir / f"{safe_name}.html"
        html_path.write_text(html, encoding="utf-8")
        metadata_path = template_dir / "metadata.json"
        metadata_path.write_text(json.dumps(metadata, ensure_ascii=False, indent=2), encoding="utf-8")

        logger.info(f"Page exported as template: {template_dir}")
        return {"path": str(template_dir), "htmlPath": str(html_path), "metadataPath": str(metadata_path)}


__all__ = ["TemplateLibrary", "TemplateNotFoundError", "DEFAULT_CATEGORY"]
