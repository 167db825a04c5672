"""Test the editors in BrochureEngine/editors/

Covers:
1. Selection, overlay writes and reset for text and image editors
2. Container moves/resizes in fixed steps with minimum sizes
3. Section height clamping and order moves
4. Component detection and action routing in ElementEditor"""

import sys
from pathlib import Path

import pytest

# Add project root directory to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from BrochureEngine.core.markup import parse_markup
from BrochureEngine.core.overlay_store import OverlayStore
from BrochureEngine.editors import (
    ContainerEditor,
    EditorSelectionError,
    ElementEditor,
    ImageEditor,
    SectionEditor,
    TextEditor,
)
from BrochureEngine.editors.base_editor import css_length_to_px, format_px
from BrochureEngine.renderers.overlay_applier import apply_overlay
from tests import brochure_test_data as test_data


class TestTextEditor:
    """Test text selection and replacement"""

    def setup_method(self):
        """Initialization before each test method"""
        self.store = OverlayStore()
        self.editor = TextEditor(self.store, "A", test_data.HERO_FRAGMENT)

    def test_select_by_node(self):
        second_link = self.editor.document.find_all("a")[1]
        assert self.editor.select(second_link) == "a:nth-child(2)"
        assert self.editor.current_text() == "More"

    def test_apply_text(self):
        self.editor.select("a[href='#more']")
        self.editor.apply_text("Later")
        assert self.store.get_overlay("A").text == {"a:nth-child(2)": "Later"}
        assert self.editor.element.get_text() == "Later"
        assert self.editor.current_text() == "Later"

        rendered = parse_markup(apply_overlay(test_data.HERO_FRAGMENT, self.store.get_overlay("A")))
        assert [a.get_text() for a in rendered.find_all("a")] == ["Buy", "Later"]

    def test_reset(self):
        self.editor.select("a[href='#more']")
        self.editor.apply_text("Later")
        assert self.editor.reset() is True
        assert self.store.get_overlay("A").text == {}
        assert self.editor.element.get_text() == "More"

    def test_nothing_selected(self):
        with pytest.raises(EditorSelectionError):
            self.editor.apply_text("x")

    def test_no_match(self):
        with pytest.raises(EditorSelectionError):
            self.editor.select(".missing")


class TestResetFromSource:
    """Reset on a live page that already carries the overlay shows the template source again"""

    SOURCE = '<div class="page"><p class="t">Original</p><main class="content" style="color: red"><p>Body</p></main></div>'

    def setup_method(self):
        self.store = OverlayStore()

    def live(self):
        return apply_overlay(self.SOURCE, self.store.get_overlay("A"))

    def test_text_reset_restores_source_text(self):
        self.store.set_text_overlay("A", ".t", "Hello")
        editor = TextEditor(self.store, "A", self.live(), source=self.SOURCE)
        editor.select(".t")
        assert editor.element.get_text() == "Hello"

        assert editor.reset() is True
        assert self.store.get_overlay("A").text == {}
        assert editor.element.get_text() == "Original"

    def test_container_reset_keeps_source_style(self):
        self.store.set_container_overlay("A", ".content", {"padding": "10px"})
        editor = ElementEditor(self.store, "A", self.live(), source=self.SOURCE)
        editor.select("main")
        assert "padding" in editor.active.live_style()

        editor.perform("reset")
        assert editor.active.element["style"] == "color: red"

    def test_reset_keeps_other_entries(self):
        self.store.set_text_overlay("A", ".t", "Hello")
        self.store.set_container_overlay("A", ".content", {"padding": "4px"})
        editor = TextEditor(self.store, "A", self.live(), source=self.SOURCE)
        editor.select(".t")
        editor.reset()
        assert self.store.get_overlay("A").containers == {".content": {"padding": "4px"}}
        assert editor.element.get_text() == "Original"

    def test_without_source_falls_back_to_selection_state(self):
        self.store.set_text_overlay("A", ".t", "Hello")
        editor = TextEditor(self.store, "A", self.live())
        editor.select(".t")
        editor.reset()
        assert editor.element.get_text() == "Hello"


class TestImageEditor:
    """Test image source replacement"""

    def setup_method(self):
        self.store = OverlayStore()
        self.editor = ImageEditor(self.store, "A", test_data.PRODUCT_FRAGMENT)

    def test_replace_only_selected_image(self):
        first_image = self.editor.document.find("img")
        selector = self.editor.select(first_image)
        assert self.editor.current_src() == "a.jpg"

        assert self.editor.replace_image("c.jpg") == selector
        rendered = parse_markup(apply_overlay(test_data.PRODUCT_FRAGMENT, self.store.get_overlay("A")))
        assert [img["src"] for img in rendered.find_all("img")] == ["c.jpg", "b.jpg"]

    def test_empty_source_rejected(self):
        self.editor.select(self.editor.document.find("img"))
        with pytest.raises(EditorSelectionError):
            self.editor.replace_image("")

    def test_non_image_rejected(self):
        with pytest.raises(EditorSelectionError):
            self.editor.select(".title")

    def test_reset_restores_src(self):
        self.editor.select(self.editor.document.find("img"))
        self.editor.replace_image("c.jpg")
        self.editor.reset()
        assert self.editor.element["src"] == "a.jpg"
        assert self.store.get_overlay("A").images == {}


class TestContainerEditor:
    """Test moves and resizes"""

    def setup_method(self):
        self.store = OverlayStore()
        self.editor = ContainerEditor(self.store, "A", test_data.SECTION_FRAGMENT)
        self.selector = self.editor.select(".box")

    def stored(self):
        return self.store.get_overlay("A").containers[self.selector]

    def test_selector(self):
        assert self.selector == ".box"

    def test_moves_accumulate(self):
        assert self.editor.move("right") == "translate(10px, 0px)"
        assert self.editor.move("down") == "translate(10px, 10px)"
        assert self.stored() == {"transform": "translate(10px, 10px)"}
        assert self.editor.live_style()["transform"] == "translate(10px, 10px)"

    def test_unknown_direction(self):
        with pytest.raises(EditorSelectionError):
            self.editor.move("sideways")
        with pytest.raises(EditorSelectionError):
            self.editor.resize("bigger")

    def test_resize_steps_and_minimum(self):
        assert self.editor.resize("wider") == {"width": "70px"}
        assert self.editor.resize("narrower") == {"width": "50px"}
        assert self.editor.resize("narrower") == {"width": "50px"}
        assert self.editor.resize("shorter", current_height=30) == {"height": "20px", "width": "50px"}
        assert self.stored() == {"width": "50px", "height": "20px"}

    def test_resize_keeps_other_properties(self):
        self.editor.move("left")
        self.editor.resize("taller", current_width=300, current_height=100)
        assert self.stored() == {"transform": "translate(-10px, 0px)", "height": "120px", "width": "300px"}

    def test_sections_are_not_containers(self):
        with pytest.raises(EditorSelectionError):
            self.editor.select("header")


class TestSectionEditor:
    """Test header/footer height and order"""

    def setup_method(self):
        self.store = OverlayStore()
        self.editor = SectionEditor(self.store, "A", test_data.SECTION_FRAGMENT)
        self.selector = self.editor.select("footer")

    def test_selection(self):
        assert self.selector == ".page-footer"
        assert self.editor.section_type() == "footer"

    def test_height_is_clamped(self):
        assert self.editor.max_height == 449.0
        assert self.editor.adjust_height(30) == "50px"
        assert self.editor.adjust_height(-100) == "20px"
        assert self.editor.adjust_height(5000) == "449px"
        assert self.store.get_overlay("A").sections[self.selector] == {"height": "449px"}

    def test_measured_height(self):
        assert self.editor.adjust_height(10, current_height=100) == "110px"
        assert self.editor.current_height() == 110.0

    def test_custom_page_height(self):
        editor = SectionEditor(self.store, "A", test_data.SECTION_FRAGMENT, page_height="500px")
        editor.select("header")
        assert editor.max_height == 200.0
        assert editor.adjust_height(1000) == "200px"

    def test_move_order(self):
        assert self.editor.move_order("down") == 1
        assert self.editor.move_order("up") == 0
        assert self.editor.move_order("up") == -1
        assert self.store.get_overlay("A").sections[self.selector] == {"order": "-1"}
        with pytest.raises(EditorSelectionError):
            self.editor.move_order("left")


class TestElementEditor:
    """Test component detection and routing"""

    def setup_method(self):
        self.store = OverlayStore()
        self.editor = ElementEditor(self.store, "A", test_data.SECTION_FRAGMENT)

    def test_detection(self):
        assert self.editor.select("h1")["component"] == "text"
        assert self.editor.select("main")["component"] == "container"
        assert self.editor.select("header")["component"] == "section"

        editor = ElementEditor(self.store, "B", test_data.COMPLETE_DOCUMENT)
        selection = editor.select("img")
        assert selection["component"] == "image"
        assert selection["pageId"] == "B"

    def test_element_inside_section_routes_to_section(self):
        kind, element = self.editor.detect(parse_markup("<footer><div><img src='x.jpg'></div></footer>").find("div"))
        assert kind == "section"
        assert element.name == "footer"

    def test_perform(self):
        selection = self.editor.select("main")
        assert selection["selector"] == ".content"
        assert self.editor.perform("move-container", "left") == "translate(-10px, 0px)"
        assert self.store.get_overlay("A").containers == {".content": {"transform": "translate(-10px, 0px)"}}

    def test_perform_reset(self):
        self.editor.select("header")
        self.editor.perform("adjust-section-height", 40)
        assert self.editor.perform("reset") is True
        assert self.store.get_overlay("A").sections == {}

    def test_action_must_match_component(self):
        self.editor.select("main")
        with pytest.raises(EditorSelectionError):
            self.editor.perform("set-text", "Hello")
        with pytest.raises(EditorSelectionError):
            self.editor.perform("explode")

    def test_not_a_component(self):
        editor = ElementEditor(self.store, "C", test_data.DATA_ATTRIBUTE_FRAGMENT)
        with pytest.raises(EditorSelectionError):
            editor.select("ul")
        assert editor.active is None

    def test_nothing_selected(self):
        with pytest.raises(EditorSelectionError):
            self.editor.perform("move-container", "up")


class TestLengthHelpers:
    """Test unit conversion used by the editors"""

    def test_css_length_to_px(self):
        assert css_length_to_px("120px") == 120.0
        assert css_length_to_px("25.4mm") == pytest.approx(96.0)
        assert css_length_to_px("auto") is None
        assert css_length_to_px(None) is None

    def test_format_px(self):
        assert format_px(50.0) == "50px"
        assert format_px(12.25) == "12.2px"
