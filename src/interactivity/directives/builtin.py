"""
Built-in directives

bind, text, class and style mutate presentation; on, init and watch are
client-only and receive a callable that runs an action or callback.
"""

import json
import logging
from typing import Any, Optional

from ..core.store import Undefined
from ..dom import Element

logger = logging.getLogger(__name__)

_STRINGLY_BOOLEAN_PREFIXES = ("aria-", "data-")


def stringify(value: Any) -> str:
    """Render a state value the way it should appear in markup"""
    if value is Undefined or value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _is_absent(value: Any) -> bool:
    return value is Undefined or value is None or value is False


def bind_attribute(element: Element, value: Any, modifier: Optional[str]) -> None:
    """data-wp-bind--<attr>: set, clear or remove an attribute"""
    if not modifier:
        logger.warning(f"data-wp-bind on <{element.tag}> needs an attribute name")
        return

    stringly = modifier.startswith(_STRINGLY_BOOLEAN_PREFIXES)
    if stringly and value is False:
        element.attrs[modifier] = "false"
    elif not value:
        element.remove_attribute(modifier)
    elif value is True:
        element.attrs[modifier] = "true" if stringly else ""
    else:
        element.attrs[modifier] = stringify(value)


def text_content(element: Element, value: Any, modifier: Optional[str]) -> None:
    """data-wp-text: replace the element's content with the value"""
    element.text_content = stringify(value)


def class_toggle(element: Element, value: Any, modifier: Optional[str]) -> None:
    """data-wp-class--<name>: add the class when truthy"""
    if not modifier:
        logger.warning(f"data-wp-class on <{element.tag}> needs a class name")
        return
    if value:
        element.add_class(modifier)
    else:
        element.remove_class(modifier)


def style_property(element: Element, value: Any, modifier: Optional[str]) -> None:
    """data-wp-style--<property>: set or remove one CSS property"""
    if not modifier:
        logger.warning(f"data-wp-style on <{element.tag}> needs a property name")
        return
    element.set_style(modifier, None if _is_absent(value) else stringify(value))


def event_listener(element: Element, callback: Any, modifier: Optional[str]) -> None:
    """data-wp-on--<event>: run an action when the event fires"""
    if not modifier:
        logger.warning(f"data-wp-on on <{element.tag}> needs an event name")
        return
    element.add_event_listener(modifier, callback)


def run_once(element: Element, callback: Any, modifier: Optional[str]) -> None:
    """data-wp-init: run a callback when the element is hydrated"""
    callback()


def run_watch(element: Element, callback: Any, modifier: Optional[str]) -> None:
    """data-wp-watch: run a callback now and again whenever what it read changes"""
    callback()


def register_builtins(registry) -> None:
    registry.register("bind", bind_attribute)
    registry.register("text", text_content)
    registry.register("class", class_toggle)
    registry.register("style", style_property)
    registry.register("on", event_listener, client_only=True, callable_value=True)
    registry.register("init", run_once, client_only=True, callable_value=True, once=True)
    registry.register("watch", run_watch, client_only=True, callable_value=True)


__all__ = [
    "stringify", "bind_attribute", "text_content", "class_toggle", "style_property",
    "event_listener", "run_once", "run_watch", "register_builtins",
]
