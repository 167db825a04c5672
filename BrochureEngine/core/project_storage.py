"""Project (.3bt) persistence and export folder management.

Projects are stored as indented JSON under the projects folder, one file per project named after
the sanitised title. Exports get a dated folder holding the PDF and the exact HTML handed to the
PDF engine."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from ..state.project import Project

_EXPORT_NAME_RE = re.compile(r"[^\w\s-]")


class ProjectStorageError(RuntimeError):
    """Reading or writing a project file failed."""


@dataclass
class ProjectRecord:
    """Project list entry.

    Built from the file on disk without keeping the full project in memory."""

    filename: str
    title: str
    client: str = ""
    status: str = "draft"
    pages: int = 0
    modified: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, object]:
        return {
            "filename": self.filename,
            "title": self.title,
            "client": self.client,
            "status": self.status,
            "pages": self.pages,
            "modified": self.modified,
        }


@dataclass
class ExportTarget:
    """Files of one export run."""

    directory: Path
    name: str

    @property
    def pdf_path(self) -> Path:
        return self.directory / f"{self.name}.pdf"

    @property
    def html_path(self) -> Path:
        return self.directory / f"{self.name}.html"


class ProjectStorage:
    """Project file reader/writer.

    Responsible for:
        - writing projects as `<safe title>.3bt` and reading them back;
        - listing the projects folder, newest first;
        - creating dated export folders."""

    def __init__(self, projects_dir: str | Path, exports_dir: str | Path, extension: str = ".3bt"):
        """Create the storage.

        Args:
            projects_dir: folder holding project files
            exports_dir: root of the export folders
            extension: project file extension"""
        self.projects_dir = Path(projects_dir)
        self.exports_dir = Path(exports_dir)
        self.extension = extension if extension.startswith(".") else f".{extension}"

    # ======== Projects ========

    def project_path(self, filename: str) -> Path:
        """Resolve a project file name inside the projects folder, refusing path traversal."""
        name = Path(filename).name
        if not name.endswith(self.extension):
            name = f"{name}{self.extension}"
        return self.projects_dir / name

    def save(self, project: Project, filename: Optional[str] = None) -> Path:
        """Write the project, refreshing its modification time.

        Return:
            Path: written project file"""
        project.touch()
        path = self.project_path(filename or project.file_stem)
        try:
            self.projects_dir.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_name(path.name + ".tmp")
            tmp_path.write_text(
                json.dumps(project.to_dict(), ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            tmp_path.replace(path)
        except OSError as exc:
            logger.error(f"Failed to save project {path.name}: {exc}")
            raise ProjectStorageError(f"Failed to save project: {exc}") from exc

        logger.info(f"Project saved: {path.name}")
        return path

    def load(self, filename: str) -> Project:
        path = self.project_path(filename)
        if not path.exists():
            raise ProjectStorageError(f'Project file "{path.name}" not found')
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.error(f"Failed to load project {path.name}: {exc}")
            raise ProjectStorageError(f"Failed to load project: {exc}") from exc
        if not isinstance(data, dict):
            raise ProjectStorageError(f"Failed to load project: {path.name} is not a project file")

        logger.info(f"Project loaded: {path.name}")
        return Project.from_dict(data)

    def list_projects(self) -> List[ProjectRecord]:
        """Every readable project, newest first; unreadable files are skipped with a warning."""
        records: List[ProjectRecord] = []
        if not self.projects_dir.exists():
            return records

        for path in self.projects_dir.glob(f"*{self.extension}"):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                metadata = data.get("metadata") or {}
                records.append(ProjectRecord(
                    filename=path.name,
                    title=metadata.get("title") or "Untitled",
                    client=metadata.get("client") or "",
                    status=metadata.get("status") or "draft",
                    pages=len(data.get("pages") or []),
                    modified=datetime.fromtimestamp(path.stat().st_mtime).isoformat(),
                ))
            except (OSError, json.JSONDecodeError, AttributeError) as exc:
                logger.warning(f"Error reading project {path.name}: {exc}")

        records.sort(key=lambda r: r.modified, reverse=True)
        return records

    def delete(self, filename: str) -> bool:
        """Delete a project file and its lock file; False when there was nothing to delete."""
        path = self.project_path(filename)
        if not path.exists():
            return False
        try:
            path.unlink()
            lock_path = path.with_name(path.name + ".lock")
            if lock_path.exists():
                lock_path.unlink()
        except OSError as exc:
            raise ProjectStorageError(f"Failed to delete project: {exc}") from exc
        logger.info(f"Project deleted: {path.name}")
        return True

    # ======== Exports ========

    @staticmethod
    def safe_export_name(name: str) -> str:
        return _EXPORT_NAME_RE.sub("", name or "").strip() or "brochure"

    def export_target(self, name: str, kind: str = "PDF", day: Optional[datetime] = None) -> ExportTarget:
        """Create `Exports/<kind>/<YYYY-MM-DD>-<safe name>/` and return its file names."""
        safe_name = self.safe_export_name(name)
        stamp = (day or datetime.now()).strftime("%Y-%m-%d")
        directory = self.exports_dir / kind / f"{stamp}-{safe_name}"
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ProjectStorageError(f"Cannot create export folder {directory}: {exc}") from exc
        return ExportTarget(directory=directory, name=safe_name)

    def write_export_html(self, target: ExportTarget, html: str) -> Path:
        target.html_path.write_text(html, encoding="utf-8")
        logger.info(f"Export HTML saved to: {target.html_path}")
        return target.html_path


__all__ = ["ProjectStorage", "ProjectStorageError", "ProjectRecord", "ExportTarget"]
