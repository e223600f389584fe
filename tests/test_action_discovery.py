"""Tests for element discovery and candidate-action generation."""

from waggen.action_discovery import (
    ActionDiscovery,
    attributes_for,
    is_visible,
    label_for,
    selector_for,
)
from waggen.knowledge import ActionType, ElementType, InteractiveElement, PageSnapshot


def raw(tag="button", attrs=None, text="", **extra):
    data = {
        "tag": tag,
        "display": "block",
        "visibility": "visible",
        "opacity": "1",
        "width": 10,
        "height": 10,
        "attrs": attrs or {},
        "text": text,
        "labelFor": "",
        "parentText": "",
        "href": "",
        "inputType": "",
    }
    data.update(extra)
    return data


class TestVisibility:
    """Hidden, transparent and zero-sized elements are not offered."""

    def test_visible_element(self):
        assert is_visible(raw())

    def test_display_none(self):
        assert not is_visible(raw(display="none"))

    def test_visibility_hidden(self):
        assert not is_visible(raw(visibility="hidden"))

    def test_zero_opacity(self):
        assert not is_visible(raw(opacity="0"))

    def test_zero_size(self):
        assert not is_visible(raw(width=0))
        assert not is_visible(raw(height=0))


class TestSelectors:
    """Selector priority: test id, id, name, nth-of-type."""

    def test_test_id_wins(self):
        r = raw(attrs={"data-testid": "add", "id": "x", "name": "n"})
        assert selector_for(r, ElementType.BUTTON, 0) == '[data-testid="add"]'

    def test_id_before_name(self):
        r = raw(tag="input", attrs={"id": "email", "name": "mail"})
        assert selector_for(r, ElementType.INPUT, 0) == "#email"

    def test_name(self):
        r = raw(tag="input", attrs={"name": "mail"})
        assert selector_for(r, ElementType.INPUT, 2) == '[name="mail"]'

    def test_links_ignore_name(self):
        r = raw(tag="a", attrs={"name": "top"})
        assert selector_for(r, ElementType.LINK, 1) == "a:nth-of-type(2)"

    def test_nth_of_type_uses_button_tag(self):
        r = raw(tag="DIV")
        assert selector_for(r, ElementType.BUTTON, 0) == "div:nth-of-type(1)"

    def test_nth_of_type_checkbox(self):
        r = raw(tag="input")
        assert selector_for(r, ElementType.CHECKBOX, 3) == 'input[type="checkbox"]:nth-of-type(4)'


class TestLabels:
    def test_button_prefers_aria_label(self):
        r = raw(attrs={"aria-label": "Delete"}, text="x")
        assert label_for(r, ElementType.BUTTON) == "Delete"

    def test_button_text_is_trimmed_and_truncated(self):
        r = raw(text="  " + "a" * 80 + "  ")
        assert label_for(r, ElementType.BUTTON) == "a" * 50

    def test_button_fallback(self):
        assert label_for(raw(), ElementType.BUTTON) == "Unknown"

    def test_link_falls_back_to_href(self):
        r = raw(tag="a", href="/about")
        assert label_for(r, ElementType.LINK) == "/about"

    def test_input_chain(self):
        r = raw(tag="input", attrs={"placeholder": "What needs to be done?", "name": "todo"})
        assert label_for(r, ElementType.INPUT) == "What needs to be done?"
        r = raw(tag="input", labelFor="Email", attrs={"placeholder": "p"})
        assert label_for(r, ElementType.INPUT) == "Email"

    def test_checkbox_uses_parent_text(self):
        r = raw(tag="input", parentText="Buy milk")
        assert label_for(r, ElementType.CHECKBOX) == "Buy milk"
        assert label_for(raw(tag="input"), ElementType.CHECKBOX) == "Checkbox"

    def test_select_fallback(self):
        assert label_for(raw(tag="select"), ElementType.SELECT) == "Select"


class TestAttributes:
    def test_empty_checked_is_kept_for_checkboxes(self):
        r = raw(tag="input", attrs={"type": "checkbox", "checked": "", "title": "t"})
        assert attributes_for(r, ElementType.CHECKBOX) == {"type": "checkbox", "checked": ""}

    def test_empty_values_dropped_elsewhere(self):
        r = raw(attrs={"id": "", "class": "btn"})
        assert attributes_for(r, ElementType.BUTTON) == {"class": "btn"}


class TestDiscover:
    """Discovery walks element types in a fixed order and skips invisible ones."""

    def test_discover(self):
        snapshot = PageSnapshot(
            url="http://localhost:3000/",
            candidates={
                "select": [raw(tag="select", attrs={"name": "sort"})],
                "button": [raw(text="Add"), raw(text="Hidden", display="none")],
                "input": [raw(tag="input", attrs={"id": "new", "type": "email"})],
            },
        )
        elements = ActionDiscovery().discover(snapshot)

        assert [e.type for e in elements] == [ElementType.BUTTON, ElementType.INPUT, ElementType.SELECT]
        assert elements[0].label == "Add"
        assert elements[0].tag_name == "button"
        assert elements[1].selector == "#new"


class TestActions:
    def element(self, element_type, **attributes):
        return InteractiveElement("#el", element_type, "Label", "x", dict(attributes))

    def test_click_for_buttons_and_links(self):
        discovery = ActionDiscovery()
        for element_type in (ElementType.BUTTON, ElementType.LINK):
            (action,) = discovery.actions_for(self.element(element_type))
            assert action.type == ActionType.CLICK
            assert action.value is None

    def test_input_value_by_type(self):
        (action,) = ActionDiscovery().actions_for(self.element(ElementType.INPUT, type="email"))
        assert action.type == ActionType.INPUT
        assert action.value == "test@example.com"

    def test_unknown_input_type_falls_back_to_text(self):
        (action,) = ActionDiscovery().actions_for(self.element(ElementType.INPUT, type="color"))
        assert action.value == "Test item"
        (action,) = ActionDiscovery().actions_for(self.element(ElementType.INPUT))
        assert action.value == "Test item"

    def test_custom_values(self):
        discovery = ActionDiscovery({"text": "hello"})
        (action,) = discovery.actions_for(self.element(ElementType.INPUT, type="email"))
        assert action.value == "hello"

    def test_checkbox_and_select(self):
        discovery = ActionDiscovery()
        (check,) = discovery.actions_for(self.element(ElementType.CHECKBOX))
        (select,) = discovery.actions_for(self.element(ElementType.SELECT))
        assert check.type == ActionType.CHECK
        assert select.type == ActionType.SELECT
        assert select.value == "1"

    def test_action_key(self):
        (action,) = ActionDiscovery().actions_for(self.element(ElementType.SELECT))
        assert action.key == "select:#el:1"
        assert action.describe() == 'select("Label")'
