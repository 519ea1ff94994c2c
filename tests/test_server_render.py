"""
Server-mode directive processing.

One synchronous pass per request: state and context are resolved, presentation
directives are applied and client-only directives are left in the markup for
the runtime.
"""

import logging

import pytest

from interactivity.core.errors import DuplicateInitError
from interactivity.dom import parse_html
from interactivity.processing import DirectiveProcessor, RenderMode, render


def element(html: str, element_id: str):
    return parse_html(html).get_element_by_id(element_id)


class TestAccordion:

    def test_closed_panel_is_hidden(self, server_store, accordion_markup):
        server_store.set_state("accordion", isOpen=False, title="FAQ")
        html = render(accordion_markup, server_store)

        assert '<div id="panel" data-wp-bind--hidden="!state.isOpen" hidden>Panel</div>' in html
        assert element(html, "title").text_content == "FAQ"
        assert 'aria-expanded="false"' in html

    def test_open_panel_is_visible(self, server_store, accordion_markup):
        server_store.set_state("accordion", isOpen=True)
        html = render(accordion_markup, server_store)
        assert not element(html, "panel").has_attribute("hidden")
        assert 'aria-expanded="true"' in html

    def test_client_only_directives_stay_in_markup(self, server_store, accordion_markup):
        server_store.set_state("accordion", isOpen=False)
        html = render(accordion_markup, server_store)
        assert 'data-wp-on--click="actions.toggle"' in html

    def test_falsy_values_remove_bound_attributes(self, server_store):
        server_store.set_state("cart", count=0, label="")
        markup = (
            '<div data-wp-interactive="cart">'
            '<p id="p" hidden title="x" data-wp-bind--hidden="state.count" data-wp-bind--title="state.label"></p></div>'
        )
        p = element(render(markup, server_store), "p")
        assert not p.has_attribute("hidden")
        assert not p.has_attribute("title")


class TestScoping:

    def test_sibling_context_frames(self, server_store):
        markup = (
            '<ul data-wp-interactive="list">'
            '<li data-wp-context=\'{"itemName": "A"}\'><span id="a" data-wp-text="context.itemName"></span></li>'
            '<li data-wp-context=\'{"itemName": "B"}\'><span id="b" data-wp-text="itemName"></span></li>'
            '<li><span id="c" data-wp-text="context.itemName">stale</span></li>'
            '</ul>'
        )
        html = render(markup, server_store)
        assert element(html, "a").text_content == "A"
        assert element(html, "b").text_content == "B"
        assert element(html, "c").text_content == ""

    def test_nested_frames_shallow_merge(self, server_store):
        markup = (
            '<div data-wp-interactive="app" data-wp-context=\'{"theme": "dark", "size": 1}\'>'
            '<div data-wp-context=\'{"size": 2}\'>'
            '<i id="theme" data-wp-text="context.theme"></i><i id="size" data-wp-text="context.size"></i>'
            '</div></div>'
        )
        html = render(markup, server_store)
        assert element(html, "theme").text_content == "dark"
        assert element(html, "size").text_content == "2"

    def test_nested_roots_switch_namespace(self, server_store):
        server_store.set_state("outer", label="outer")
        server_store.set_state("inner", label="inner")
        markup = (
            '<div data-wp-interactive="outer"><b id="o" data-wp-text="state.label"></b>'
            '<div data-wp-interactive=\'{"namespace": "inner"}\'><b id="i" data-wp-text="state.label"></b>'
            '<b id="x" data-wp-text="outer::state.label"></b></div>'
            '<b id="o2" data-wp-text="state.label"></b></div>'
        )
        html = render(markup, server_store)
        assert element(html, "o").text_content == "outer"
        assert element(html, "i").text_content == "inner"
        assert element(html, "x").text_content == "outer"
        assert element(html, "o2").text_content == "outer"

    def test_directives_outside_roots_are_ignored(self, server_store):
        server_store.set_state("counter", count=1)
        markup = '<span data-wp-text="state.count">0</span>'
        assert render(markup, server_store) == markup


class TestRobustness:

    def test_unknown_directive_is_left_untouched(self, server_store):
        markup = '<div data-wp-interactive="x"><p data-wp-foo="state.bar" class="keep">text</p></div>'
        assert render(markup, server_store) == markup

    def test_malformed_expression_disables_one_binding(self, server_store, caplog):
        server_store.set_state("counter", count=3)
        markup = (
            '<div data-wp-interactive="counter">'
            '<span id="bad" data-wp-text="state.count +">old</span>'
            '<span id="good" data-wp-text="state.count">old</span>'
            '</div>'
        )
        with caplog.at_level(logging.WARNING, logger="interactivity"):
            html = render(markup, server_store)

        assert element(html, "bad").text_content == "old"
        assert element(html, "good").text_content == "3"
        assert any("data-wp-text" in record.getMessage() for record in caplog.records)

    def test_missing_state_renders_empty(self, server_store):
        markup = '<div data-wp-interactive="x"><span id="s" data-wp-text="state.nothing.here">old</span></div>'
        assert element(render(markup, server_store), "s").text_content == ""

    def test_hidden_parent_still_processes_children(self, server_store):
        server_store.set_state("x", show=False, label="child")
        markup = (
            '<div data-wp-interactive="x"><section data-wp-bind--hidden="!state.show">'
            '<span id="s" data-wp-text="state.label"></span></section></div>'
        )
        assert element(render(markup, server_store), "s").text_content == "child"

    def test_handler_errors_do_not_abort_rendering(self, server_store, caplog):
        from interactivity.directives import default_registry

        registry = default_registry()

        @registry.directive("explode")
        def explode(element, value, modifier):
            raise RuntimeError("boom")

        server_store.set_state("x", label="ok")
        markup = (
            '<div data-wp-interactive="x"><i data-wp-explode="state.label"></i>'
            '<span id="s" data-wp-text="state.label"></span></div>'
        )
        with caplog.at_level(logging.WARNING, logger="interactivity"):
            html = render(markup, server_store, registry)
        assert element(html, "s").text_content == "ok"
        assert any("boom" in record.getMessage() for record in caplog.records)

    def test_duplicate_init_from_a_computed_value_is_fatal(self, server_store):
        server_store.set_state("x", broken=lambda: server_store.set_state("x", again=True))
        markup = '<div data-wp-interactive="x"><span data-wp-text="state.broken"></span></div>'
        with pytest.raises(DuplicateInitError):
            render(markup, server_store)


class TestDeterminism:

    def test_document_then_declaration_order(self, server_store):
        markup = (
            '<div data-wp-interactive="x" data-wp-class--root="state.a">'
            '<p data-wp-class--p="state.a" data-wp-bind--title="state.b"><b data-wp-text="state.c"></b></p>'
            '<p data-wp-class--last="state.d"></p></div>'
        )
        bindings = DirectiveProcessor(server_store).process(markup)
        assert [b.attribute.attribute for b in bindings] == [
            "data-wp-class--root", "data-wp-class--p", "data-wp-bind--title", "data-wp-text", "data-wp-class--last",
        ]
        assert [b.order for b in bindings] == sorted(b.order for b in bindings)

    def test_same_input_same_output(self, accordion_markup):
        from interactivity.core.store import ServerStore

        outputs = set()
        for _ in range(3):
            store = ServerStore()
            store.set_state("accordion", isOpen=False, title="FAQ")
            outputs.add(render(accordion_markup, store))
        assert len(outputs) == 1

    def test_computed_values(self, server_store):
        state = server_store.state("cart")
        server_store.set_state("cart", items=[{"price": 3}, {"price": 4}],
                               total=lambda: sum(item["price"] for item in state.items))
        markup = '<div data-wp-interactive="cart"><span id="t" data-wp-text="state.total"></span></div>'
        assert element(render(markup, server_store), "t").text_content == "7"

    def test_computed_values_are_fresh_after_render(self, server_store):
        calls = []
        server_store.set_state("ns", value=lambda: calls.append(1) or len(calls))
        markup = '<div data-wp-interactive="ns"><span id="v" data-wp-text="state.value"></span></div>'

        assert element(render(markup, server_store), "v").text_content == "1"
        assert server_store.get_state("ns", "value") == 2
        assert calls == [1, 1]

    def test_text_replaces_nested_markup(self, server_store):
        server_store.set_state("x", a="outer", c="inner")
        markup = (
            '<div data-wp-interactive="x">'
            '<p id="p" data-wp-text="state.a"><b data-wp-text="state.c"></b></p></div>'
        )
        bindings = DirectiveProcessor(server_store).process(markup)
        assert [b.attribute.attribute for b in bindings] == ["data-wp-text"]

        html = render(markup, server_store)
        assert element(html, "p").text_content == "outer"
        assert "<b" not in html

    def test_server_mode_creates_no_subscriptions(self, server_store, accordion_markup):
        processor = DirectiveProcessor(server_store, mode=RenderMode.SERVER)
        processor.process(accordion_markup)
        assert len(processor.dependencies) == 0
