"""
Context Scope Chain

Context frames attach values to an element's subtree. A frame inherits from
the nearest ancestor frame with shallow-merge semantics: its own keys shadow
the parent's, every other parent key stays visible. Lookups only ever walk
towards the root, so sibling subtrees never see each other's frames.
"""

import itertools
import logging
from collections import ChainMap
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .errors import UnresolvedReferenceError
from .signals import DependencyTracker, SignalEmitter, context_key
from .store import Namespace, Undefined, split_path, step

logger = logging.getLogger(__name__)

_frame_ids = itertools.count(1)


class ContextFrame:
    """Values scoped to one element's subtree."""

    def __init__(self, element: Any, values: Mapping[str, Any], parent: Optional['ContextFrame'] = None):
        self.id = next(_frame_ids)
        self.element = element
        self.own: Dict[str, Any] = dict(values)
        self.parent = parent

    def chain(self) -> Iterator['ContextFrame']:
        """This frame, then every ancestor frame"""
        frame = self
        while frame is not None:
            yield frame
            frame = frame.parent

    @property
    def values(self) -> ChainMap:
        return ChainMap(*(frame.own for frame in self.chain()))

    def __repr__(self):
        return f"ContextFrame(id={self.id}, own={self.own!r})"


class ContextChain:
    """All context frames of one tree, looked up by element."""

    def __init__(self, tracker: DependencyTracker = None, signals: SignalEmitter = None):
        self.tracker = tracker or DependencyTracker()
        self.signals = signals or SignalEmitter()
        self._frames: Dict[int, ContextFrame] = {}

    def __len__(self) -> int:
        return len(self._frames)

    def push_context(self, element: Any, values: Mapping[str, Any]) -> ContextFrame:
        """
        Create the frame for `element`'s subtree.

        Re-pushing an element that already owns a frame keeps the existing
        frame, so client-side mutations survive a re-walk.
        """
        existing = self._frames.get(id(element))
        if existing is not None:
            return existing

        parent = self.frame_for(getattr(element, "parent", None))
        frame = ContextFrame(element, values, parent)
        self._frames[id(element)] = frame
        return frame

    def frame_for(self, element: Any) -> Optional[ContextFrame]:
        """Nearest frame at or above `element`"""
        while element is not None:
            frame = self._frames.get(id(element))
            if frame is not None and frame.element is element:
                return frame
            element = getattr(element, "parent", None)
        return None

    def frames_at(self, element: Any) -> List[ContextFrame]:
        frame = self.frame_for(element)
        return list(frame.chain()) if frame else []

    def resolve(self, identifier: str, at_element: Any, namespace_state: Any = None,
                namespace: str = None) -> Any:
        """
        Resolve a bare identifier: context frames innermost-first, then the namespace.

        Raises:
            UnresolvedReferenceError: if no frame and no namespace value defines it
        """
        for frame in self.frames_at(at_element):
            self.tracker.record(context_key(frame.id, (identifier,)))
            if identifier in frame.own:
                return frame.own[identifier]

        if isinstance(namespace_state, Namespace):
            value = namespace_state.get((identifier,))
            if identifier in namespace_state:
                return value
        elif isinstance(namespace_state, Mapping) and identifier in namespace_state:
            return namespace_state[identifier]

        raise UnresolvedReferenceError(identifier, namespace)

    def lookup(self, element: Any, path: Iterable[str]) -> Any:
        """Tracked `context.*` lookup; missing values give Undefined"""
        path = split_path(path)
        if not path:
            return Undefined
        for frame in self.frames_at(element):
            self.tracker.record(context_key(frame.id, path))
            if path[0] in frame.own:
                value = frame.own[path[0]]
                for segment in path[1:]:
                    value = step(value, segment)
                return value
        return Undefined

    def assign(self, element: Any, path: Iterable[str], value: Any) -> None:
        """
        Write a context value from client code.

        The write lands in the frame that owns the top-level key, or in the
        innermost frame when no frame defines it yet.
        """
        path = split_path(path)
        frames = self.frames_at(element)
        if not frames:
            raise UnresolvedReferenceError(".".join(path))

        owner = next((f for f in frames if path[0] in f.own), frames[0])
        container: Any = owner.own
        for segment in path[:-1]:
            container = step(container, segment)
            if container is Undefined:
                raise UnresolvedReferenceError(".".join(path))

        last = path[-1]
        if isinstance(container, list):
            old = container[int(last)]
            container[int(last)] = value
        elif isinstance(container, dict):
            old = container.get(last, Undefined)
            container[last] = value
        else:
            old = getattr(container, last, Undefined)
            setattr(container, last, value)

        if old is Undefined or old != value:
            self.signals.notify(context_key(owner.id, path))

    def discard(self, elements: Iterable[Any]) -> int:
        """Drop frames owned by removed elements"""
        removed = 0
        for element in elements:
            frame = self._frames.get(id(element))
            if frame is not None and frame.element is element:
                del self._frames[id(element)]
                removed += 1
        return removed

    def proxy(self, element: Any) -> 'ContextProxy':
        return ContextProxy(self, element)


class ContextProxy:
    """Attribute-style, tracked access to the context visible at one element."""
    __slots__ = ("_chain", "_element", "_path")

    def __init__(self, chain: ContextChain, element: Any, path: Tuple[str, ...] = ()):
        object.__setattr__(self, "_chain", chain)
        object.__setattr__(self, "_element", element)
        object.__setattr__(self, "_path", path)

    @property
    def value(self) -> Any:
        if not self._path:
            frame = self._chain.frame_for(self._element)
            return dict(frame.values) if frame else {}
        return self._chain.lookup(self._element, self._path)

    def _wrap(self, name: str) -> Any:
        path = self._path + (name,)
        value = self._chain.lookup(self._element, path)
        if isinstance(value, (dict, list)):
            return ContextProxy(self._chain, self._element, path)
        return value

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        return self._wrap(name)

    def __setattr__(self, name: str, value: Any) -> None:
        self._chain.assign(self._element, self._path + (name,), value)

    def __getitem__(self, key) -> Any:
        return self._wrap(str(key))

    def __setitem__(self, key, value) -> None:
        self._chain.assign(self._element, self._path + (str(key),), value)

    def __iter__(self):
        return iter(self.value)

    def __len__(self) -> int:
        return len(self.value)

    def __bool__(self) -> bool:
        return bool(self.value)

    def __eq__(self, other) -> bool:
        if isinstance(other, ContextProxy):
            other = other.value
        return self.value == other

    __hash__ = None

    def __repr__(self):
        return f"ContextProxy({'.'.join(self._path) or '<root>'}={self.value!r})"


__all__ = ["ContextFrame", "ContextChain", "ContextProxy"]
