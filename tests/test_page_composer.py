"""Test page composition in BrochureEngine/renderers/page_composer.py

Covers:
1. Extraction of content, styles and stylesheet links from documents and fragments
2. Page wrapping, page breaks and the page number badge
3. Scoping isolation between pages of one combined document
4. Missing template placeholder and preview documents"""

import sys
from pathlib import Path

import pytest

# Add project root directory to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from BrochureEngine.renderers.page_composer import PageComposer, extract_page_parts
from BrochureEngine.state.project import Page, Project, ProjectMetadata, TemplateCopy
from tests import brochure_test_data as test_data


def make_project(pages, title="Spring"):
    """Build a project from (page id, markup) pairs, one template copy per page."""
    project = Project(metadata=ProjectMetadata(title=title))
    for position, (page_id, markup) in enumerate(pages, start=1):
        template_id = f"tpl-{page_id}"
        if markup is not None:
            project.template_copies[template_id] = TemplateCopy(original_source=markup, modified_html=markup)
        project.pages.append(Page(id=page_id, template_id=template_id, position=position))
    return project


class TestExtractPageParts:
    """Test splitting markup into content, styles and links"""

    def test_complete_document(self):
        parts = extract_page_parts(test_data.COMPLETE_DOCUMENT)
        assert parts.styles == [".title{color:red}"]
        assert parts.stylesheet_links == ["https://fonts.example.com/cover.css"]
        assert parts.content.startswith('<header class="page-header">')
        assert "<style" not in parts.content
        assert "<body" not in parts.content

    def test_fragment(self):
        parts = extract_page_parts(test_data.PRODUCT_FRAGMENT)
        assert parts.styles == [".title{color:red}"]
        assert parts.content.startswith('<section class="products">')
        assert parts.stylesheet_links == []

    def test_fragment_with_stray_scaffolding(self):
        parts = extract_page_parts(
            '<html><head><title>x</title><link rel="stylesheet" href="a.css"></head><body><p>Body</p></body></html>'
        )
        assert parts.content == "<p>Body</p>"
        assert parts.stylesheet_links == ["a.css"]


class TestPageComposer:
    """Test wrapping and combined documents"""

    def setup_method(self):
        """Initialization before each test method"""
        self.composer = PageComposer(font_links=["https://fonts.example.com/base.css"])

    def test_single_page_is_not_scoped(self):
        project = make_project([("A", test_data.PRODUCT_FRAGMENT)])
        html = self.composer.compose_document(project)
        assert ".title{color:red}" in html
        assert ".page-A .title{color:red}" not in html
        assert "page-break-after: avoid;" in html
        assert "page-break-after: always;" not in html

    def test_multi_page_scoping_isolation(self):
        project = make_project([("A", test_data.PRODUCT_FRAGMENT), ("B", test_data.PRODUCT_FRAGMENT)])
        html = self.composer.compose_document(project)
        assert ".page-A .title{color:red}" in html
        assert ".page-B .title{color:red}" in html
        # every occurrence of the rule is a scoped one
        assert html.count(".title{color:red}") == 2

    def test_page_breaks(self):
        project = make_project([
            ("A", test_data.PRODUCT_FRAGMENT),
            ("B", test_data.HERO_FRAGMENT),
            ("C", test_data.SECTION_FRAGMENT),
        ])
        html = self.composer.compose_document(project)
        assert html.count("page-break-after: always;") == 2
        assert html.count("page-break-after: avoid;") == 1
        last_page = html.index('data-page-id="C"')
        assert "page-break-after: avoid;" in html[last_page:]

    def test_pages_follow_position(self):
        project = make_project([("A", test_data.HERO_FRAGMENT), ("B", test_data.SECTION_FRAGMENT)])
        project.pages[0].position = 2
        project.pages[1].position = 1
        html = self.composer.compose_document(project)
        assert html.index('data-page-id="B"') < html.index('data-page-id="A"')

    def test_export_hides_page_number_badge(self):
        project = make_project([("A", test_data.HERO_FRAGMENT)])
        assert '<div class="page-number">1</div>' not in self.composer.compose_document(project, export=True)
        assert '<div class="page-number">1</div>' in self.composer.compose_document(project, export=False)

        composer = PageComposer(export_page_numbers=True)
        assert '<div class="page-number">1</div>' in composer.compose_document(project, export=True)

    def test_export_strips_markers(self):
        project = make_project([("A", test_data.PRODUCT_FRAGMENT)])
        overlays = {"A": {"text": {".title": "Edited"}}}
        exported = self.composer.compose_document(project, overlays, export=True)
        previewed = self.composer.compose_document(project, overlays, export=False)
        assert "Edited" in exported
        assert "data-overlay-" not in exported
        assert 'data-overlay-text="true"' in previewed

    def test_overlays_fall_back_to_project_data(self):
        project = make_project([("A", test_data.PRODUCT_FRAGMENT)])
        project.overlay_data = {"A": {"text": {".title": "Stored"}}}
        assert "Stored" in self.composer.compose_document(project)

    def test_document_head(self):
        project = make_project([("A", test_data.COMPLETE_DOCUMENT)])
        html = self.composer.compose_document(project)
        assert html.startswith("<!DOCTYPE html>")
        assert "<title>Spring - Document</title>" in html
        assert "@page { size: A4; margin: 0 }" in html
        assert 'href="https://fonts.example.com/base.css"' in html
        assert 'href="https://fonts.example.com/cover.css"' in html

    def test_missing_template_placeholder(self):
        project = make_project([("A", test_data.HERO_FRAGMENT), ("B", None)])
        html = self.composer.compose_document(project)
        assert "Template Missing" in html
        assert 'data-page-id="A"' in html
        assert 'class="unified-page page-error" data-page-id="B"' in html

    def test_empty_project(self):
        with pytest.raises(ValueError):
            self.composer.compose_document(make_project([]))

    def test_composition_is_repeatable(self):
        project = make_project([("A", test_data.PRODUCT_FRAGMENT), ("B", test_data.COMPLETE_DOCUMENT)])
        overlays = {"A": {"images": {".card": "new.jpg"}}}
        first = self.composer.compose_document(project, overlays)
        second = self.composer.compose_document(project, overlays)
        assert first == second
        assert project.template_copies["tpl-A"].modified_html == test_data.PRODUCT_FRAGMENT


class TestPreviewDocument:
    """Test the isolated preview document"""

    def setup_method(self):
        self.composer = PageComposer()

    def test_complete_document_is_returned_patched(self):
        project = make_project([("A", test_data.COMPLETE_DOCUMENT)])
        html = self.composer.render_preview_document(project.pages[0], project, {"text": {".title": "Preview"}})
        assert html.startswith("<!DOCTYPE html>")
        assert "<title>Cover</title>" in html
        assert "Preview" in html

    def test_fragment_is_wrapped(self):
        project = make_project([("A", test_data.PRODUCT_FRAGMENT)])
        html = self.composer.render_preview_document(project.pages[0], project)
        assert "<title>Spring - Preview</title>" in html
        assert "<style>\n.title{color:red}\n</style>" in html
        assert '<section class="products">' in html

    def test_missing_template(self):
        project = make_project([("A", None)])
        html = self.composer.render_preview_document(project.pages[0], project)
        assert "Template Missing" in html
