"""
FastHTML Web Adapter

Server-side half of the integration. The middleware gives every request its
own ServerStore, then post-processes HTML responses: directives are applied,
the hydration payload is embedded and, when the page has an interactive root,
the client runtime scripts are referenced.

```python
from fasthtml.common import fast_app, Button, Span
from interactivity.adapters.fasthtml import configure_app, get_store, Interactive

app, rt = fast_app()
configure_app(app, scripts=["/static/interactivity.js"])

@rt("/")
def index(request):
    get_store(request).set_state("counter", count=0)
    return Interactive("counter", Span(**{"data-wp-text": "state.count"}))
```
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from fasthtml.common import Div, Script
from starlette.applications import Starlette
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from ..config import InteractivityConfig, get_config
from ..core.store import ServerStore
from ..directives.registry import DIRECTIVE_PREFIX, INTERACTIVE_ATTRIBUTE, DirectiveRegistry
from ..dom import Element, parse_html
from ..hydration import has_interactive_root, inject_payload, needs_client_runtime
from ..processing.processor import DirectiveProcessor, RenderMode

logger = logging.getLogger(__name__)

STATE_ATTRIBUTE = "interactivity"


class InteractivityMiddleware(BaseHTTPMiddleware):

    def __init__(self, app: ASGIApp, registry: DirectiveRegistry = None,
                 config: InteractivityConfig = None, scripts: Iterable[str] = ()) -> None:
        super().__init__(app)
        self.registry = registry
        self.config = config
        self.scripts: List[str] = list(scripts)

    async def dispatch(self, request: Request, call_next):
        store = ServerStore(self.config or get_config())
        setattr(request.state, STATE_ATTRIBUTE, store)

        response = await call_next(request)
        if not response.headers.get("content-type", "").startswith("text/html"):
            return response

        body = b"".join([chunk async for chunk in response.body_iterator])
        html = self.render_page(body.decode(response.charset or "utf-8"), store)
        return self._rebuild(response, html.encode("utf-8"))

    def render_page(self, html: str, store: ServerStore) -> str:
        """Apply directives, embed the payload and reference the runtime"""
        tree = parse_html(html)
        if not has_interactive_root(tree):
            return html

        bindings = DirectiveProcessor(store, self.registry, RenderMode.SERVER).process(tree)
        logger.debug(f"Server-rendered {len(bindings)} bindings for {len(store.namespaces)} namespaces")
        inject_payload(tree, store)
        if needs_client_runtime(tree, self.scripts):
            body = tree.find(lambda el: el.tag == "body")
            body = body if body is not None else tree
            for src in self.scripts:
                body.append(Element("script", src=src, type="module"))
        return tree.render()

    @staticmethod
    def _rebuild(response: Response, content: bytes) -> Response:
        rebuilt = Response(content, status_code=response.status_code, background=getattr(response, "background", None))
        length = [h for h in rebuilt.raw_headers if h[0] == b"content-length"]
        rebuilt.raw_headers = [h for h in response.raw_headers if h[0].lower() != b"content-length"] + length
        return rebuilt


def get_store(request: Request) -> ServerStore:
    """The request's ServerStore (requires InteractivityMiddleware)"""
    store = getattr(request.state, STATE_ATTRIBUTE, None)
    if store is None:
        raise RuntimeError("InteractivityMiddleware is not installed; call configure_app(app) first")
    return store


def configure_app(app: Starlette, registry: DirectiveRegistry = None,
                  config: InteractivityConfig = None, scripts: Iterable[str] = ()):
    """
    Configure a FastHTML (or any Starlette) app for server-rendered directives.

    Args:
        app: FastHTML app instance
        registry: Directive registry; the built-ins when omitted
        config: Configuration; the global configuration when omitted
        scripts: Client runtime module URLs referenced on interactive pages

    Returns:
        The configured app instance
    """
    app.add_middleware(InteractivityMiddleware, registry=registry, config=config, scripts=list(scripts))
    return app


def wp(directive: str, modifier: str = None) -> str:
    """Attribute name for a directive: wp("on", "click") -> 'data-wp-on--click'"""
    return f"{DIRECTIVE_PREFIX}{directive}--{modifier}" if modifier else f"{DIRECTIVE_PREFIX}{directive}"


def Interactive(namespace: str, *children, context: Optional[Dict[str, Any]] = None, **attrs):
    """Div that opens an interactive root for `namespace`"""
    directives = {INTERACTIVE_ATTRIBUTE: namespace}
    if context is not None:
        directives[wp("context")] = json.dumps(context)
    return Div(*children, **directives, **attrs)


def runtime_script(src: str):
    return Script(src=src, type="module")


__all__ = [
    "InteractivityMiddleware", "get_store", "configure_app", "wp", "Interactive", "runtime_script",
]
