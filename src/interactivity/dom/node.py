"""
Element Tree

A small mutable DOM: elements with ordered attributes, text and raw nodes,
event listeners and removal notifications. The server serializes it back to
markup; the client runtime treats the same objects as live nodes.

Elements can be built the same way as FastHTML components:

    Element("div", {"data-wp-interactive": "accordion"},
            Element("button", "Toggle", data_wp_on__click="actions.toggle"),
            cls="panel")
"""

import json
import re
from dataclasses import dataclass, field
from html import escape
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from fastcore.basics import partition, risinstance

self_closing_tags = ['Area', 'Base', 'Br', 'Col', 'Embed', 'Hr', 'Img', 'Input', 'Link', 'Meta',
                     'Param', 'Source', 'Track', 'Wbr']
VOID_TAGS = frozenset(t.lower() for t in self_closing_tags)
RAW_TEXT_TAGS = frozenset({"script", "style"})

_specials = set('@.-!~:[](){}$%^&*+=|/?<>,`')
_style_sep = re.compile(r";(?![^(]*\))")


def attrmap(o: str) -> str:
    """Map a Python keyword argument to an HTML attribute name (`data_wp_on__click` -> `data-wp-on--click`)"""
    if _specials & set(o): return o
    o = dict(htmlClass='class', cls='class', _class='class', klass='class',
             _for='for', fr='for', htmlFor='for').get(o, o)
    return o if o == '_' else o.lstrip('_').replace('_', '-')


def attr_value(value: Any) -> Optional[str]:
    """Normalize an attribute value; None means 'omit the attribute'"""
    if value is False or value is None:
        return None
    if value is True:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


@dataclass
class Event:
    """Event passed to listeners"""
    type: str
    target: Optional['Element'] = None
    detail: Any = None
    current_target: Optional['Element'] = None
    default_prevented: bool = field(default=False, compare=False)

    def prevent_default(self) -> None:
        self.default_prevented = True


class Node:
    """Base for everything that can live in an element's children"""

    parent: Optional['Element'] = None

    def remove(self) -> None:
        """Detach this node from its parent"""
        if self.parent is not None:
            self.parent.remove_child(self)

    def root(self) -> 'Node':
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def ancestors(self) -> Iterator['Element']:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def render(self) -> str:
        raise NotImplementedError

    def __str__(self):
        return self.render()

    def _repr_html_(self):
        return self.render()


class Text(Node):
    def __init__(self, data: str):
        self.data = data

    def render(self) -> str:
        if self.parent is not None and self.parent.tag in RAW_TEXT_TAGS:
            return self.data
        return escape(self.data, quote=False)

    def __repr__(self):
        return f"Text({self.data!r})"


class Raw(Node):
    """Markup emitted verbatim (comments, doctypes, pre-rendered HTML)"""

    def __init__(self, markup: str):
        self.markup = markup

    def render(self) -> str:
        return self.markup

    def __repr__(self):
        return f"Raw({self.markup!r})"


class Element(Node):
    """An HTML element with ordered attributes and children."""

    def __init__(self, tag: str, *args, **kwargs):
        ds, children = partition(args, risinstance(Mapping))
        attrs = {}
        for d in ds: attrs.update(d)
        attrs.update({attrmap(k): v for k, v in kwargs.items()})

        self.tag = tag.lower()
        self.attrs: Dict[str, str] = {}
        self.children: List[Node] = []
        self._listeners: Dict[str, List[Callable]] = {}
        self._removal_observers: List[Callable[['Node'], None]] = []

        for name, value in attrs.items():
            self.set_attribute(name, value)

        if children and self.tag in VOID_TAGS:
            raise RuntimeError(f"{self.tag} element cannot have child elements because it represents self closing html tag.")
        for child in children:
            self.append(child)

    # --- attributes -------------------------------------------------------

    def get_attribute(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attrs.get(name, default)

    def has_attribute(self, name: str) -> bool:
        return name in self.attrs

    def set_attribute(self, name: str, value: Any) -> None:
        """Set an attribute; False and None remove it, True sets it empty"""
        normalized = attr_value(value)
        if normalized is None:
            self.attrs.pop(name, None)
        else:
            self.attrs[name] = normalized

    def remove_attribute(self, name: str) -> None:
        self.attrs.pop(name, None)

    @property
    def id(self) -> Optional[str]:
        return self.attrs.get("id")

    # --- classes and styles -----------------------------------------------

    @property
    def class_list(self) -> List[str]:
        return self.attrs.get("class", "").split()

    def has_class(self, name: str) -> bool:
        return name in self.class_list

    def add_class(self, name: str) -> None:
        classes = self.class_list
        if name not in classes:
            self.attrs["class"] = " ".join(classes + [name])

    def remove_class(self, name: str) -> None:
        classes = self.class_list
        if name in classes:
            remaining = [c for c in classes if c != name]
            if remaining:
                self.attrs["class"] = " ".join(remaining)
            else:
                self.attrs.pop("class", None)

    @property
    def style(self) -> Dict[str, str]:
        result = {}
        for declaration in _style_sep.split(self.attrs.get("style", "")):
            prop, sep, value = declaration.partition(":")
            if sep and prop.strip():
                result[prop.strip()] = value.strip()
        return result

    def set_style(self, prop: str, value: Any) -> None:
        """Set one CSS property; None, False or empty values remove it"""
        styles = self.style
        if value is None or value is False or value == "":
            styles.pop(prop, None)
        else:
            styles[prop] = str(value)
        if styles:
            self.attrs["style"] = "; ".join(f"{k}: {v}" for k, v in styles.items())
        else:
            self.attrs.pop("style", None)

    # --- children ---------------------------------------------------------

    def append(self, child: Any) -> Node:
        if isinstance(child, (list, tuple)):
            for c in child: self.append(c)
            return self
        if not isinstance(child, Node):
            child = Text(str(child))
        if child.parent is not None:
            child.parent.remove_child(child)
        child.parent = self
        self.children.append(child)
        return child

    def remove_child(self, child: Node) -> None:
        self.children.remove(child)
        child.parent = None
        root = self.root()
        for observer in list(getattr(root, "_removal_observers", ())):
            observer(child)

    def observe_removals(self, observer: Callable[[Node], None]) -> None:
        """Call `observer(node)` whenever a node is detached anywhere below this root"""
        self._removal_observers.append(observer)

    @property
    def text_content(self) -> str:
        return "".join(node.data for node in self.walk() if isinstance(node, Text))

    @text_content.setter
    def text_content(self, value: str) -> None:
        for child in list(self.children):
            self.remove_child(child)
        if value:
            self.append(Text(value))

    # --- traversal --------------------------------------------------------

    def walk(self) -> Iterator[Node]:
        """Every node below (and including) this element, pre-order"""
        yield self
        for child in list(self.children):
            if isinstance(child, Element):
                yield from child.walk()
            else:
                yield child

    def iter(self) -> Iterator['Element']:
        """Every element below (and including) this element, pre-order"""
        for node in self.walk():
            if isinstance(node, Element):
                yield node

    def find(self, predicate: Callable[['Element'], bool]) -> Optional['Element']:
        return next((el for el in self.iter() if predicate(el)), None)

    def find_all(self, predicate: Callable[['Element'], bool]) -> List['Element']:
        return [el for el in self.iter() if predicate(el)]

    def get_element_by_id(self, element_id: str) -> Optional['Element']:
        return self.find(lambda el: el.attrs.get("id") == element_id)

    def contains(self, node: Node) -> bool:
        return node is self or any(a is self for a in node.ancestors())

    # --- events -----------------------------------------------------------

    def add_event_listener(self, event_type: str, listener: Callable) -> None:
        listeners = self._listeners.setdefault(event_type, [])
        if listener not in listeners:
            listeners.append(listener)

    def remove_event_listener(self, event_type: str, listener: Callable) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def listeners(self, event_type: str) -> List[Callable]:
        return list(self._listeners.get(event_type, ()))

    def clear_listeners(self) -> None:
        self._listeners.clear()

    # --- rendering --------------------------------------------------------

    def render_attrs(self) -> str:
        return "".join(
            f" {name}" if value == "" else f' {name}="{escape(value, quote=True)}"'
            for name, value in self.attrs.items()
        )

    def render(self) -> str:
        if self.tag in VOID_TAGS:
            return f"<{self.tag}{self.render_attrs()}>"
        inner = "".join(child.render() for child in self.children)
        return f"<{self.tag}{self.render_attrs()}>{inner}</{self.tag}>"

    def __repr__(self):
        return f"<Element {self.tag}{self.render_attrs()}>"


class Fragment(Element):
    """Root container for a parsed document or snippet; renders only its children"""

    def __init__(self, *children):
        super().__init__("#fragment", *children)

    def render(self) -> str:
        return "".join(child.render() for child in self.children)

    def __repr__(self):
        return f"<Fragment children={len(self.children)}>"


__all__ = [
    "VOID_TAGS", "RAW_TEXT_TAGS", "attrmap", "attr_value",
    "Event", "Node", "Text", "Raw", "Element", "Fragment",
]
