"""
Element tree, HTML parsing and serialization.
"""

import pytest
from fasthtml.common import Div, Span

from interactivity.dom import Element, Fragment, as_tree, parse_html


class TestElement:

    def test_fasthtml_style_construction(self):
        button = Element("button", "Toggle", {"class": "btn"}, data_wp_on__click="actions.toggle")
        assert button.attrs == {"class": "btn", "data-wp-on--click": "actions.toggle"}
        assert button.render() == '<button class="btn" data-wp-on--click="actions.toggle">Toggle</button>'

    def test_boolean_attributes(self):
        el = Element("input", type="checkbox", checked=True, disabled=False)
        assert el.render() == '<input type="checkbox" checked>'

    def test_void_elements_reject_children(self):
        with pytest.raises(RuntimeError):
            Element("br", "text")

    def test_classes(self):
        el = Element("div", cls="a b")
        el.add_class("c")
        el.add_class("a")
        el.remove_class("b")
        assert el.class_list == ["a", "c"]
        el.remove_class("a")
        el.remove_class("c")
        assert "class" not in el.attrs

    def test_styles(self):
        el = Element("div", style="color: red; background: url(a;b)")
        assert el.style == {"color": "red", "background": "url(a;b)"}
        el.set_style("color", None)
        el.set_style("width", "10px")
        assert el.attrs["style"] == "background: url(a;b); width: 10px"

    def test_text_content_replaces_children(self):
        el = Element("p", Element("b", "old"), " text")
        assert el.text_content == "old text"
        el.text_content = "<new>"
        assert el.render() == "<p>&lt;new&gt;</p>"

    def test_append_reparents(self):
        child = Element("span")
        first, second = Element("div", child), Element("div")
        second.append(child)
        assert first.children == []
        assert child.parent is second

    def test_removal_observers(self):
        removed = []
        child = Element("span")
        root = Element("div", Element("section", child))
        root.observe_removals(removed.append)
        child.remove()
        assert removed == [child]
        assert child.parent is None

    def test_traversal_is_pre_order(self):
        tree = Element("a", Element("b", Element("c")), Element("d"))
        assert [el.tag for el in tree.iter()] == ["a", "b", "c", "d"]


class TestParsing:

    @pytest.mark.parametrize("markup", [
        '<p class="a">Hi <b>there</b></p><br>',
        '<!DOCTYPE html><html><head><title>x</title></head><body><div id="a"></div></body></html>',
        '<ul><li>1 &amp; 2</li><!-- note --><li data-x="&quot;q&quot;">3</li></ul>',
        '<script>if (a < b && c) {}</script>',
    ])
    def test_untouched_markup_round_trips(self, markup):
        assert parse_html(markup).render().lower() == markup.lower()

    def test_first_duplicate_attribute_wins(self):
        el = parse_html('<div id="a" id="b"></div>').children[0]
        assert el.attrs == {"id": "a"}

    def test_stray_end_tags_are_ignored(self):
        assert parse_html("<div>a</span></div>").render() == "<div>a</div>"

    def test_unclosed_elements_are_closed(self):
        assert parse_html("<div><p>a").render() == "<div><p>a</p></div>"

    def test_as_tree_accepts_components(self):
        tree = as_tree(Div(Span("hi"), id="x"))
        assert isinstance(tree, Fragment)
        assert tree.get_element_by_id("x").text_content.strip() == "hi"

    def test_as_tree_keeps_existing_elements(self):
        el = Element("div")
        assert as_tree(el) is el

    def test_as_tree_rejects_other_types(self):
        with pytest.raises(TypeError):
            as_tree(42)
