"""
Interactivity DOM

Mutable element tree shared by server rendering and the client runtime.
"""

from .node import VOID_TAGS, Event, Node, Text, Raw, Element, Fragment, attrmap
from .parser import parse_html, as_tree

__all__ = [
    "VOID_TAGS", "Event", "Node", "Text", "Raw", "Element", "Fragment", "attrmap",
    "parse_html", "as_tree",
]
