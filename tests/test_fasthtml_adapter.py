"""
FastHTML / Starlette integration: request-scoped stores, response
post-processing and component helpers.
"""

import json
from types import SimpleNamespace

import pytest
from fasthtml.common import FastHTML, P, Span
from starlette.responses import JSONResponse
from starlette.testclient import TestClient

from interactivity.adapters.fasthtml import Interactive, configure_app, get_store, runtime_script, wp
from interactivity.config import PAYLOAD_SCRIPT_ID
from interactivity.core.errors import DuplicateInitError
from interactivity.dom import as_tree, parse_html
from interactivity.hydration import extract_payload, parse_payload


@pytest.fixture
def app():
    app = FastHTML(secret_key="test-secret")

    @app.route("/counter")
    def counter(request):
        get_store(request).set_state("counter", count=3)
        return Interactive("counter", Span(**{"data-wp-text": "state.count"}, id="count"))

    @app.route("/plain")
    def plain():
        return P("no directives here", id="plain")

    @app.route("/twice")
    def twice(request):
        store = get_store(request)
        store.set_state("counter", count=1)
        store.set_state("counter", count=2)
        return P("unreachable")

    @app.route("/api")
    def api():
        return JSONResponse({"ok": True})

    configure_app(app, scripts=["/static/interactivity.js"])
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


class TestMiddleware:

    def test_interactive_page_is_server_rendered(self, client):
        response = client.get("/counter")
        assert response.status_code == 200

        tree = parse_html(response.text)
        assert tree.get_element_by_id("count").text_content == "3"

    def test_payload_is_embedded(self, client):
        tree = parse_html(client.get("/counter").text)
        payload = parse_payload(extract_payload(tree, PAYLOAD_SCRIPT_ID))
        assert payload.state == {"counter": {"count": 3}}

    def test_runtime_script_is_referenced(self, client):
        tree = parse_html(client.get("/counter").text)
        modules = tree.find_all(lambda el: el.tag == "script" and el.get_attribute("type") == "module")
        assert "/static/interactivity.js" in [el.get_attribute("src") for el in modules]

    def test_content_length_matches_the_new_body(self, client):
        response = client.get("/counter")
        assert int(response.headers["content-length"]) == len(response.content)

    def test_pages_without_roots_are_untouched(self, client):
        response = client.get("/plain")
        assert PAYLOAD_SCRIPT_ID not in response.text
        assert "/static/interactivity.js" not in response.text
        assert parse_html(response.text).get_element_by_id("plain").text_content == "no directives here"

    def test_non_html_responses_pass_through(self, client):
        assert client.get("/api").json() == {"ok": True}

    def test_duplicate_init_is_fatal(self, client):
        with pytest.raises(DuplicateInitError):
            client.get("/twice")

    def test_each_request_gets_its_own_store(self, client):
        assert client.get("/counter").status_code == 200
        assert client.get("/counter").status_code == 200


class TestHelpers:

    def test_get_store_requires_middleware(self):
        request = SimpleNamespace(state=SimpleNamespace())
        with pytest.raises(RuntimeError):
            get_store(request)

    def test_directive_attribute_names(self):
        assert wp("text") == "data-wp-text"
        assert wp("on", "click") == "data-wp-on--click"
        assert wp("bind", "aria-expanded") == "data-wp-bind--aria-expanded"

    def test_interactive_component(self):
        component = Interactive("todo", P("x"), context={"filter": "all"}, id="todos")
        root = as_tree(component).get_element_by_id("todos")

        assert root.get_attribute("data-wp-interactive") == "todo"
        assert json.loads(root.get_attribute("data-wp-context")) == {"filter": "all"}

    def test_runtime_script(self):
        script = as_tree(runtime_script("/rt.js")).find(lambda el: el.tag == "script")
        assert script.attrs["src"] == "/rt.js"
        assert script.attrs["type"] == "module"
