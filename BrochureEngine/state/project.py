"""Brochure Engine project model
Data structures for templates, project pages and the persisted .3bt project file"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

PROJECT_FORMAT_VERSION = "2.0"

_UNSAFE_NAME_RE = re.compile(r"[^a-zA-Z0-9\-_]")


def now_iso() -> str:
    return datetime.now().isoformat()


def new_page_id() -> str:
    """Fresh page identifier; page ids also end up in CSS class names."""
    return f"page-{uuid.uuid4().hex[:12]}"


def safe_file_stem(name: str, fallback: str = "untitled") -> str:
    """Replace every character outside [a-zA-Z0-9-_] with '-' so a title can be used as a file name."""
    stem = _UNSAFE_NAME_RE.sub("-", (name or "").strip())
    return stem or fallback


@dataclass
class Template:
    """One page of a template in the library."""
    id: str                              # "<template>-<file stem>"
    name: str                            # display name, "page-<n>-" prefix stripped
    filename: str                        # e.g. page-1-cover.html
    template: str                        # template (folder) name
    content: str = ""                    # immutable template source
    category: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    path: str = ""

    def to_dict(self, include_content: bool = True) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "filename": self.filename,
            "template": self.template,
            "category": self.category,
            "metadata": self.metadata,
        }
        if include_content:
            data["content"] = self.content
        return data


@dataclass
class TemplateCopy:
    """Per-project working copy of a template page.

    modified_html is the markup every render starts from; the overlay engine never writes it."""
    original_source: str = ""
    modified_html: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_template(cls, template: Template) -> "TemplateCopy":
        return cls(
            original_source=template.content,
            modified_html=template.content,
            metadata=dict(template.metadata or {}),
        )

    @property
    def markup(self) -> str:
        return self.modified_html or self.original_source

    def to_dict(self) -> Dict[str, Any]:
        return {
            "originalSource": self.original_source,
            "modifiedHtml": self.modified_html,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TemplateCopy":
        data = data or {}
        original = data.get("originalSource") or data.get("html") or ""
        return cls(
            original_source=original,
            modified_html=data.get("modifiedHtml") or original,
            metadata=data.get("metadata") or {},
        )


@dataclass
class Page:
    """A page of the project, pointing at exactly one template copy."""
    id: str
    template_id: str
    template: str = ""
    filename: str = ""
    position: int = 1                    # 1-based, kept contiguous

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "templateId": self.template_id,
            "template": self.template,
            "filename": self.filename,
            "position": self.position,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Page":
        return cls(
            id=str(data.get("id") or new_page_id()),
            template_id=str(data.get("templateId") or ""),
            template=data.get("template") or "",
            filename=data.get("filename") or "",
            position=int(data.get("position") or 1),
        )


@dataclass
class ProjectMetadata:
    """Project header shown in the project list"""
    title: str = "Untitled"
    client: str = ""
    status: str = "draft"
    base_template: Optional[str] = None
    created: str = field(default_factory=now_iso)
    modified: str = field(default_factory=now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "client": self.client,
            "status": self.status,
            "baseTemplate": self.base_template,
            "created": self.created,
            "modified": self.modified,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectMetadata":
        data = data or {}
        created = data.get("created") or now_iso()
        return cls(
            title=data.get("title") or "Untitled",
            client=data.get("client") or "",
            status=data.get("status") or "draft",
            base_template=data.get("baseTemplate"),
            created=created,
            modified=data.get("modified") or created,
        )


@dataclass
class Project:
    """Project state shared between the session, storage and the Flask layer."""
    metadata: ProjectMetadata = field(default_factory=ProjectMetadata)
    pages: List[Page] = field(default_factory=list)
    template_copies: Dict[str, TemplateCopy] = field(default_factory=dict)
    overlay_data: Dict[str, Any] = field(default_factory=dict)
    version: str = PROJECT_FORMAT_VERSION

    @property
    def title(self) -> str:
        return self.metadata.title

    @property
    def file_stem(self) -> str:
        return safe_file_stem(self.metadata.title)

    def touch(self):
        """Refresh the modification timestamp."""
        self.metadata.modified = now_iso()

    def get_page(self, page_id: str) -> Optional[Page]:
        for page in self.pages:
            if page.id == page_id:
                return page
        return None

    def page_index(self, page_id: str) -> int:
        for index, page in enumerate(self.pages):
            if page.id == page_id:
                return index
        return -1

    def get_template_copy(self, page: Page) -> Optional[TemplateCopy]:
        return self.template_copies.get(page.template_id)

    def renumber_pages(self):
        """Make positions 1..n follow list order."""
        for index, page in enumerate(self.pages, start=1):
            page.position = index

    def orphaned_pages(self) -> List[Page]:
        """Pages whose template copy is missing."""
        return [page for page in self.pages if page.template_id not in self.template_copies]

    def to_dict(self) -> Dict[str, Any]:
        """Persisted .3bt form"""
        return {
            "version": self.version,
            "metadata": self.metadata.to_dict(),
            "pages": [page.to_dict() for page in self.pages],
            "templateCopies": {tid: copy.to_dict() for tid, copy in self.template_copies.items()},
            "overlayData": self.overlay_data,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        pages = [Page.from_dict(p) for p in (data.get("pages") or []) if isinstance(p, dict)]
        pages.sort(key=lambda p: p.position)
        project = cls(
            metadata=ProjectMetadata.from_dict(data.get("metadata") or {}),
            pages=pages,
            template_copies={
                str(tid): TemplateCopy.from_dict(copy)
                for tid, copy in (data.get("templateCopies") or {}).items()
                if isinstance(copy, dict)
            },
            overlay_data=dict(data.get("overlayData") or {}),
            version=str(data.get("version") or PROJECT_FORMAT_VERSION),
        )
        project.renumber_pages()
        return project

    def summary(self) -> Dict[str, Any]:
        """Small dict for listings and status responses."""
        return {
            "title": self.metadata.title,
            "client": self.metadata.client,
            "status": self.metadata.status,
            "pageCount": len(self.pages),
            "modified": self.metadata.modified,
        }
