"""Test the project session in BrochureEngine/core/project_session.py

Covers:
1. Project lifecycle: create, save, close, load, list, delete
2. Page operations keep positions contiguous and carry overlays along
3. Template copy repair and export (PDF hand-off, page as template)"""

import json
import shutil
import sys
import tempfile
from datetime import datetime
from pathlib import Path

import pytest

# Add project root directory to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from BrochureEngine.core.event_bus import Events
from BrochureEngine.core.project_session import NoActiveProjectError, PageNotFoundError, ProjectSession
from BrochureEngine.core.project_storage import ProjectStorage, ProjectStorageError
from BrochureEngine.core.template_library import TemplateLibrary, TemplateNotFoundError
from BrochureEngine.renderers.pdf_renderer import PDFExporter, PDFExportError
from BrochureEngine.state.project import Project, TemplateCopy, safe_file_stem
from tests import brochure_test_data as test_data


class FakeHTML:
    """Stands in for weasyprint.HTML: records the document and writes a stub PDF."""

    documents = []

    def __init__(self, string=None, base_url=None):
        self.string = string
        FakeHTML.documents.append(string)

    def write_pdf(self, target=None, **kwargs):
        data = b"%PDF-1.7 stub"
        if target is None:
            return data
        Path(target).write_bytes(data)
        return None


class BrokenHTML(FakeHTML):
    def write_pdf(self, target=None, **kwargs):
        raise RuntimeError("cairo surface error")


class SessionTestCase:
    """Temporary template library, projects and exports folders per test."""

    def setup_method(self):
        """Initialization before each test method"""
        self.root = Path(tempfile.mkdtemp())
        test_data.write_library(self.root / "Templates")
        self.library = TemplateLibrary(self.root / "Templates")
        self.library.load()
        self.storage = ProjectStorage(self.root / "Projects", self.root / "Exports")
        FakeHTML.documents = []
        self.session = ProjectSession(
            self.library,
            self.storage,
            pdf_exporter_factory=lambda: PDFExporter(html_factory=FakeHTML),
        )

    def teardown_method(self):
        self.session.auto_save.detach()
        shutil.rmtree(self.root, ignore_errors=True)


class TestProjectLifecycle(SessionTestCase):
    """Test create/save/load/list/delete"""

    def test_create_with_base_template(self):
        project = self.session.create_project("Spring Catalogue", base_template="spring")
        assert [page.template_id for page in project.pages] == ["spring-page-1-cover", "spring-page-2-products"]
        assert [page.position for page in project.pages] == [1, 2]
        assert set(project.template_copies) == {"spring-page-1-cover", "spring-page-2-products"}
        assert self.session.is_dirty

    def test_create_with_unknown_base_template(self):
        with pytest.raises(TemplateNotFoundError):
            self.session.create_project("Broken", base_template="autumn")

    def test_operations_need_a_project(self):
        with pytest.raises(NoActiveProjectError):
            self.session.add_page("minimal-page-1-hero")
        with pytest.raises(NoActiveProjectError):
            self.session.save_project()
        assert self.session.save_project(auto=True) is None

    def test_save_close_load_round_trip(self):
        self.session.create_project("Spring Catalogue", base_template="spring")
        cover = self.session.project.pages[0]
        self.session.overlays.set_text_overlay(cover.id, ".title", "Summer Catalogue")
        self.session.overlays.set_container_overlay(cover.id, "#hero", {"padding": "4mm"})

        path = self.session.save_project()
        assert path.name == "Spring-Catalogue.3bt"
        assert not self.session.is_dirty
        before = self.session.compose_document()

        self.session.close_project()
        assert self.session.project is None

        project = self.session.load_project("Spring-Catalogue.3bt")
        assert self.session.filename == "Spring-Catalogue.3bt"
        assert not self.session.is_dirty
        assert project.overlay_data[cover.id]["text"] == {".title": "Summer Catalogue"}
        assert self.session.compose_document() == before
        assert "Summer Catalogue" in before

    def test_saved_file_layout(self):
        self.session.create_project("Spring Catalogue", client="Acme", base_template="spring")
        path = self.session.save_project()
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["version"] == "2.0"
        assert data["metadata"]["client"] == "Acme"
        assert data["metadata"]["baseTemplate"] == "spring"
        assert set(data["templateCopies"]["spring-page-1-cover"]) == {"originalSource", "modifiedHtml", "metadata"}

    def test_overlay_edits_mark_dirty(self):
        self.session.create_project("Spring", base_template="spring")
        self.session.save_project()
        page_id = self.session.project.pages[0].id
        self.session.overlays.set_text_overlay(page_id, ".title", "New")
        assert self.session.is_dirty

    def test_load_missing_project(self):
        with pytest.raises(ProjectStorageError):
            self.session.load_project("nothing-here.3bt")

    def test_auto_save_failure_is_silent(self):
        self.session.create_project("Spring", base_template="spring")
        self.session.storage.projects_dir = self.root / "blocked"
        (self.root / "blocked").write_text("not a folder", encoding="utf-8")
        assert self.session.save_project(auto=True) is None
        with pytest.raises(ProjectStorageError):
            self.session.save_project()

    def test_list_and_delete_projects(self):
        self.session.create_project("First", base_template="minimal")
        self.session.save_project()
        self.session.create_project("Second", base_template="spring")
        self.session.save_project()

        projects = {entry["filename"]: entry for entry in self.session.list_projects()}
        assert set(projects) == {"First.3bt", "Second.3bt"}
        assert projects["Second.3bt"]["pages"] == 2

        assert self.session.delete_project("First.3bt") is True
        assert self.session.delete_project("First.3bt") is False
        assert [entry["filename"] for entry in self.session.list_projects()] == ["Second.3bt"]

    def test_deleting_open_project_forgets_filename(self):
        self.session.create_project("Spring", base_template="spring")
        self.session.save_project()
        self.session.delete_project("Spring.3bt")
        assert self.session.filename is None
        assert self.session.is_dirty

    def test_status(self):
        status = self.session.status()
        assert status["hasProject"] is False
        self.session.create_project("Spring", base_template="spring")
        status = self.session.status()
        assert status["project"]["pageCount"] == 2
        assert status["templates"] == 3


class TestPageOperations(SessionTestCase):
    """Test adding, moving, duplicating and deleting pages"""

    def setup_method(self):
        super().setup_method()
        self.session.create_project("Spring", base_template="spring")

    def page_ids(self):
        return [page.id for page in self.session.project.pages]

    def assert_contiguous(self):
        assert [page.position for page in self.session.project.pages] == list(
            range(1, len(self.session.project.pages) + 1)
        )

    def test_add_page(self):
        page = self.session.add_page("minimal-page-1-hero")
        assert page.position == 3
        assert page.template == "minimal"
        assert "minimal-page-1-hero" in self.session.project.template_copies

    def test_add_unknown_page(self):
        with pytest.raises(TemplateNotFoundError):
            self.session.add_page("minimal-page-9-missing")

    def test_add_template_pages_shares_template_copies(self):
        added = self.session.add_template_pages("spring")
        assert len(added) == 2
        assert len(self.session.project.pages) == 4
        assert len(self.session.project.template_copies) == 2
        self.assert_contiguous()

    def test_duplicate_copies_overlay_independently(self):
        first, second = self.page_ids()
        self.session.overlays.set_text_overlay(first, ".title", "Original")
        duplicate = self.session.duplicate_page(first)

        assert self.page_ids() == [first, duplicate.id, second]
        assert duplicate.template_id == "spring-page-1-cover"
        self.assert_contiguous()

        self.session.overlays.set_text_overlay(duplicate.id, ".title", "Copy")
        assert self.session.overlays.get_overlay(first).text[".title"] == "Original"
        assert self.session.overlays.get_overlay(duplicate.id).text[".title"] == "Copy"

    def test_delete_drops_overlay(self):
        first, second = self.page_ids()
        self.session.overlays.set_text_overlay(first, ".title", "Gone")
        self.session.delete_page(first)

        assert self.page_ids() == [second]
        assert self.session.project.pages[0].position == 1
        assert first not in self.session.overlays.get_all_overlays()
        assert first not in self.session.sync_overlays()

    def test_delete_unknown_page(self):
        with pytest.raises(PageNotFoundError):
            self.session.delete_page("page-missing")

    def test_move_page(self):
        first, second = self.page_ids()
        assert self.session.move_page_down(first) is True
        assert self.page_ids() == [second, first]
        assert self.session.move_page_down(first) is False
        assert self.session.move_page_up(first) is True
        assert self.session.move_page(first, 5) is False
        assert self.page_ids() == [first, second]
        self.assert_contiguous()

    def test_reorder_pages(self):
        extra = self.session.add_page("minimal-page-1-hero")
        first, second, third = self.page_ids()
        self.session.reorder_pages([third, "unknown", first])
        assert self.page_ids() == [third, first, second]
        assert extra.position == 1
        self.assert_contiguous()

    def test_page_events(self):
        received = []
        self.session.event_bus.on(Events.PAGE_DUPLICATED, received.append)
        self.session.duplicate_page(self.page_ids()[0])
        assert len(received) == 1
        assert received[0]["originalPageId"] == self.page_ids()[0]


class TestRendering(SessionTestCase):
    """Test live markup, selectors, previews and exports"""

    def setup_method(self):
        super().setup_method()
        self.session.create_project("Spring", base_template="spring")
        self.cover, self.products = [page.id for page in self.session.project.pages]

    def test_live_markup_applies_overlay(self):
        self.session.overlays.set_text_overlay(self.products, ".title", "Range")
        assert "Range" in self.session.live_markup(self.products)
        template_copy = self.session.project.template_copies["spring-page-2-products"]
        assert "Range" not in template_copy.modified_html

    def test_editable_selectors(self):
        selectors = self.session.editable_selectors(self.cover)
        assert [entry["selector"] for entry in selectors["sections"]] == [".page-header", "footer:nth-of-type(1)"]
        assert len(selectors["images"]) == 1

    def test_preview_page(self):
        html = self.session.preview_page(self.products)
        assert "<title>Spring - Preview</title>" in html

    def test_composed_pages_are_scoped(self):
        html = self.session.compose_document()
        assert f".page-{self.cover} .title{{color:red}}" in html
        assert f".page-{self.products} .title{{color:red}}" in html

    def test_export_pdf(self):
        completed = []
        self.session.event_bus.on(Events.EXPORT_COMPLETED, completed.append)
        self.session.overlays.set_text_overlay(self.cover, ".title", "Exported")

        result = self.session.export_pdf()

        pdf_path = Path(result["path"])
        assert pdf_path.read_bytes().startswith(b"%PDF")
        assert pdf_path.name == "Spring.pdf"
        assert pdf_path.parent.parent == self.root / "Exports" / "PDF"
        html = Path(result["htmlPath"]).read_text(encoding="utf-8")
        assert FakeHTML.documents == [html]
        assert "Exported" in html
        assert "data-overlay-" not in html
        assert completed == [result]

    def test_export_failure_keeps_project(self):
        failures = []
        self.session.event_bus.on(Events.EXPORT_FAILED, failures.append)
        self.session.pdf_exporter_factory = lambda: PDFExporter(html_factory=BrokenHTML)
        self.session.overlays.set_text_overlay(self.cover, ".title", "Kept")

        with pytest.raises(PDFExportError) as excinfo:
            self.session.export_pdf("Broken")

        assert "cairo surface error" in str(excinfo.value)
        assert excinfo.value.retry_guidance
        assert failures and failures[0]["retryGuidance"]
        assert self.session.overlays.get_overlay(self.cover).text == {".title": "Kept"}

    def test_export_page_as_template(self):
        self.session.overlays.set_text_overlay(self.products, ".title", "Bestsellers")
        result = self.session.export_page_as_template(self.products, "Bestsellers")

        html = Path(result["htmlPath"]).read_text(encoding="utf-8")
        assert "Bestsellers" in html
        assert "data-overlay-" not in html
        metadata = json.loads(Path(result["metadataPath"]).read_text(encoding="utf-8"))
        assert metadata["pages"] == ["Bestsellers.html"]


class TestTemplateCopyRepair(SessionTestCase):
    """Pages whose template copy went missing are relinked on load"""

    def test_repair_by_filename(self):
        self.session.create_project("Spring", base_template="spring")
        page = self.session.project.pages[1]
        page.template_id = "renamed-products"
        self.session.project.template_copies.pop("spring-page-2-products")
        self.session.save_project()

        project = self.session.load_project("Spring.3bt")
        assert "renamed-products" in project.template_copies
        assert project.template_copies["renamed-products"].original_source == test_data.PRODUCT_FRAGMENT
        assert self.session.is_dirty

    def test_unrepairable_page_renders_placeholder(self):
        self.session.create_project("Spring", base_template="spring")
        page = self.session.project.pages[1]
        page.template_id = "nowhere"
        page.filename = "nowhere.html"
        assert self.session.repair_missing_template_copies() == 0
        assert "Template Missing" in self.session.compose_document()


class TestProjectModel:
    """Test the persisted project model helpers"""

    def test_from_dict_sorts_and_renumbers(self):
        project = Project.from_dict({
            "metadata": {"title": "Spring"},
            "pages": [
                {"id": "b", "templateId": "t", "position": 7},
                {"id": "a", "templateId": "t", "position": 2},
            ],
        })
        assert [(page.id, page.position) for page in project.pages] == [("a", 1), ("b", 2)]

    def test_legacy_template_copy(self):
        copy = TemplateCopy.from_dict({"html": "<p>Old</p>"})
        assert copy.original_source == "<p>Old</p>"
        assert copy.markup == "<p>Old</p>"

    def test_safe_file_stem(self):
        assert safe_file_stem("Spring Catalogue / 2024") == "Spring-Catalogue---2024"
        assert safe_file_stem("") == "untitled"


class TestLibraryAndStorage:
    """Test template discovery and export folders"""

    def setup_method(self):
        self.root = Path(tempfile.mkdtemp())
        test_data.write_library(self.root / "Templates")
        self.library = TemplateLibrary(self.root / "Templates")
        self.library.load()

    def teardown_method(self):
        shutil.rmtree(self.root, ignore_errors=True)

    def test_templates(self):
        cover = self.library.require("spring-page-1-cover")
        assert cover.name == "cover"
        assert cover.category == "catalogue"
        assert self.library.categories() == ["catalogue", "general"]
        assert [t.id for t in self.library.pages_of("minimal")] == ["minimal-page-1-hero"]

    def test_missing_template(self):
        assert self.library.get("nope") is None
        with pytest.raises(TemplateNotFoundError):
            self.library.require("nope")

    def test_missing_folder(self):
        library = TemplateLibrary(self.root / "absent")
        assert library.load() == []

    def test_export_target(self):
        storage = ProjectStorage(self.root / "Projects", self.root / "Exports")
        target = storage.export_target("Spring: Final!", day=datetime(2024, 3, 9))
        assert target.directory == self.root / "Exports" / "PDF" / "2024-03-09-Spring Final"
        assert target.pdf_path.name == "Spring Final.pdf"
        assert target.directory.is_dir()
