"""
Directive Registry

Maps directive names to handlers. Attributes follow the external naming
contract `data-wp-<directive>` / `data-wp-<directive>--<modifier>`; that
prefix is fixed, not configurable.

A handler is called as `handler(element, value, modifier)`:

    registry = default_registry()

    @registry.directive("title")
    def set_title(element, value, modifier):
        element.set_attribute("title", value or None)
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

DIRECTIVE_PREFIX = "data-wp-"
# Handled by the processor itself, never through the registry
STRUCTURAL_DIRECTIVES = ("interactive", "context")
INTERACTIVE_ATTRIBUTE = DIRECTIVE_PREFIX + "interactive"

_NAME_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_ATTRIBUTE_RE = re.compile(r"^data-wp-(?P<name>[a-z0-9]+(?:-[a-z0-9]+)*)(?:--(?P<modifier>.+))?$")

Handler = Callable[[Any, Any, Optional[str]], Any]


@dataclass(frozen=True)
class DirectiveAttribute:
    """One directive attribute found on an element"""
    attribute: str
    name: str
    modifier: Optional[str]
    value: str


def parse_directive_attribute(attribute: str, value: str = "") -> Optional[DirectiveAttribute]:
    """Split `data-wp-on--click` into ('on', 'click'); None for non-directive attributes"""
    match = _ATTRIBUTE_RE.match(attribute)
    if not match:
        return None
    return DirectiveAttribute(attribute, match.group("name"), match.group("modifier"), value)


def directive_attributes(attrs: Dict[str, str]) -> List[DirectiveAttribute]:
    """Directive attributes in declaration order"""
    found = []
    for attribute, value in attrs.items():
        parsed = parse_directive_attribute(attribute, value)
        if parsed is not None:
            found.append(parsed)
    return found


@dataclass(frozen=True)
class DirectiveEntry:
    """
    A registered directive.

    client_only: the handler is a no-op during server rendering
    callable_value: the expression names an action or callback; the handler
        receives a ready-to-call function instead of a resolved value
    once: the handler runs on the first application only, never on re-runs
    """
    name: str
    handler: Handler
    client_only: bool = False
    callable_value: bool = False
    once: bool = False


class DirectiveRegistry:
    """Name -> handler mapping. Unknown names are simply not found."""

    def __init__(self):
        self._entries: Dict[str, DirectiveEntry] = {}

    def register(self, name: str, handler: Handler, *, client_only: bool = False,
                 callable_value: bool = False, once: bool = False) -> DirectiveEntry:
        if not _NAME_RE.match(name):
            raise ValueError(f"Invalid directive name: {name!r}")
        if name in STRUCTURAL_DIRECTIVES:
            raise ValueError(f"'{name}' is a structural directive and cannot be re-registered")
        if name in self._entries:
            logger.debug(f"Replacing handler for directive '{name}'")

        entry = DirectiveEntry(name, handler, client_only, callable_value, once)
        self._entries[name] = entry
        return entry

    def directive(self, name: str, **options):
        """Decorator form of register()"""
        def decorator(handler: Handler) -> Handler:
            self.register(name, handler, **options)
            return handler
        return decorator

    def unregister(self, name: str) -> None:
        self._entries.pop(name, None)

    def get(self, name: str) -> Optional[DirectiveEntry]:
        return self._entries.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._entries)

    def copy(self) -> 'DirectiveRegistry':
        clone = DirectiveRegistry()
        clone._entries = dict(self._entries)
        return clone


def default_registry() -> DirectiveRegistry:
    """A fresh registry with every built-in directive"""
    from .builtin import register_builtins

    registry = DirectiveRegistry()
    register_builtins(registry)
    return registry


__all__ = [
    "DIRECTIVE_PREFIX", "STRUCTURAL_DIRECTIVES", "INTERACTIVE_ATTRIBUTE", "Handler",
    "DirectiveAttribute", "parse_directive_attribute", "directive_attributes",
    "DirectiveEntry", "DirectiveRegistry", "default_registry",
]
