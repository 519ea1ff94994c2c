"""
Markup parsing

Builds an element tree from HTML text, or from FastHTML/fastcore components.
The parser is forgiving: stray end tags are ignored and unclosed elements are
closed at the end of input, so malformed host markup never aborts rendering.
"""

from html.parser import HTMLParser
from typing import Any, List, Optional, Tuple

from fastcore.xml import FT, to_xml

from .node import VOID_TAGS, Element, Fragment, Raw, Text


class TreeBuilder(HTMLParser):
    """HTMLParser that assembles `Element` nodes under a `Fragment`"""

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.root = Fragment()
        self._stack: List[Element] = [self.root]

    @property
    def current(self) -> Element:
        return self._stack[-1]

    def _element(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> Element:
        element = Element(tag)
        for name, value in attrs:
            # First occurrence wins, as in browsers
            if name not in element.attrs:
                element.attrs[name] = value if value is not None else ""
        return element

    def handle_starttag(self, tag, attrs):
        element = self._element(tag, attrs)
        self.current.append(element)
        if tag not in VOID_TAGS:
            self._stack.append(element)

    def handle_startendtag(self, tag, attrs):
        self.current.append(self._element(tag, attrs))

    def handle_endtag(self, tag):
        for index in range(len(self._stack) - 1, 0, -1):
            if self._stack[index].tag == tag:
                del self._stack[index:]
                return

    def handle_data(self, data):
        self.current.append(Text(data))

    def handle_comment(self, data):
        self.current.append(Raw(f"<!--{data}-->"))

    def handle_decl(self, decl):
        self.current.append(Raw(f"<!{decl}>"))

    def unknown_decl(self, data):
        self.current.append(Raw(f"<![{data}]>"))

    def handle_pi(self, data):
        self.current.append(Raw(f"<?{data}>"))


def parse_html(markup: str) -> Fragment:
    """Parse HTML text into a Fragment"""
    builder = TreeBuilder()
    builder.feed(markup)
    builder.close()
    return builder.root


def as_tree(source: Any) -> Element:
    """
    Coerce markup, a FastHTML component or an existing tree into an Element.

    Existing elements are returned as-is (the caller owns mutation).
    """
    if isinstance(source, Element):
        return source
    if isinstance(source, (FT, tuple, list)):
        return parse_html(to_xml(source))
    if isinstance(source, bytes):
        return parse_html(source.decode("utf-8"))
    if isinstance(source, str):
        return parse_html(source)
    raise TypeError(f"Cannot build an element tree from {type(source).__name__}")


__all__ = ["TreeBuilder", "parse_html", "as_tree"]
