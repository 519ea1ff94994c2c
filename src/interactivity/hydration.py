"""
Hydration Bridge

Server side: serialize the request store's client-visible state into a JSON
payload embedded in the page. Client side: read that payload back and merge it
into the client store before any client code initializes state.

Payload shape:

    {"state": {"<namespace>": {"<key>": <value>, ...}, ...},
     "config": {"<namespace>": {...}}}          # only when config was set
"""

import json
import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_core import to_jsonable_python

from .config import PAYLOAD_SCRIPT_ID
from .core.errors import PayloadError
from .core.store import ClientStore, Store
from .dom import Element
from .directives.registry import INTERACTIVE_ATTRIBUTE

logger = logging.getLogger(__name__)


class HydrationPayload(BaseModel):
    """Validated transport payload. Missing namespaces default to empty objects."""
    model_config = ConfigDict(extra="ignore")

    state: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    config: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    @field_validator("state", "config", mode="before")
    @classmethod
    def _empty_namespaces(cls, value):
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return {ns: ({} if values is None else values) for ns, values in value.items()}
        return value


def serialize(store: Store) -> str:
    """JSON payload of every namespace's client-visible values"""
    data: Dict[str, Any] = {"state": to_jsonable_python(store.snapshot(client_only=True))}
    configured = store.configured_namespaces
    if configured:
        data["config"] = to_jsonable_python(configured)
    return json.dumps(data, ensure_ascii=False)


def parse_payload(payload: Union[str, bytes, Mapping[str, Any], HydrationPayload]) -> HydrationPayload:
    """
    Validate a payload.

    Raises:
        PayloadError: if the payload is not valid JSON of the expected shape
    """
    if isinstance(payload, HydrationPayload):
        return payload
    try:
        if isinstance(payload, Mapping):
            return HydrationPayload.model_validate(payload)
        return HydrationPayload.model_validate_json(payload or "{}")
    except ValidationError as e:
        raise PayloadError(f"Invalid hydration payload: {e}") from e


def hydrate(payload: Union[str, bytes, Mapping[str, Any], HydrationPayload],
            store: Optional[ClientStore] = None) -> ClientStore:
    """Merge a server payload into a client store (created when not given)"""
    parsed = parse_payload(payload)
    store = store if store is not None else ClientStore()
    store.hydrate(parsed.state)
    for namespace, values in parsed.config.items():
        store.set_config(namespace, values)
    logger.debug(f"Hydrated {len(parsed.state)} namespaces")
    return store


def _script_safe(text: str) -> str:
    # These characters only occur inside JSON strings, where \u escapes decode identically
    return text.replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


def payload_script(store: Store, script_id: str = None) -> Element:
    """<script type="application/json"> element carrying the payload"""
    script_id = script_id or store.config.payload_script_id
    return Element("script", _script_safe(serialize(store)), type="application/json", id=script_id)


def _find_script(tree: Element, script_id: str) -> Optional[Element]:
    return tree.find(lambda el: el.tag == "script" and el.get_attribute("id") == script_id)


def extract_payload(tree: Element, script_id: str = PAYLOAD_SCRIPT_ID) -> Optional[str]:
    """Payload text embedded in a page, or None"""
    script = _find_script(tree, script_id)
    return script.text_content if script is not None else None


def inject_payload(tree: Element, store: Store, script_id: str = None) -> Element:
    """Add (or replace) the payload script at the end of <body>, or of the tree"""
    script_id = script_id or store.config.payload_script_id
    existing = _find_script(tree, script_id)
    if existing is not None:
        existing.remove()

    script = payload_script(store, script_id)
    body = tree.find(lambda el: el.tag == "body")
    (body if body is not None else tree).append(script)
    return script


def has_interactive_root(tree: Element) -> bool:
    return tree.find(lambda el: INTERACTIVE_ATTRIBUTE in el.attrs) is not None


def needs_client_runtime(tree: Element, scripts: Iterable[Any]) -> bool:
    """The runtime loads only with at least one Interactive Root and one client script"""
    return has_interactive_root(tree) and any(scripts)


__all__ = [
    "HydrationPayload", "serialize", "parse_payload", "hydrate",
    "payload_script", "extract_payload", "inject_payload",
    "has_interactive_root", "needs_client_runtime",
]
