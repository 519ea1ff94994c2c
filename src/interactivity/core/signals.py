"""
Dependency Tracking - Fine-grained Reactivity

🔄 Per-key dependency tracking:
Every read of a state or context value during a binding's evaluation is
recorded as a signal key. When a key changes, only the bindings whose recorded
keys overlap it are re-run.

A signal key is a tuple `(scope, owner, path)`:
- `("state", "accordion", ("isOpen",))` for namespace values
- `("context", 7, ("item", "name"))` for context frame values (owner is the frame id)

Two keys overlap when scope and owner match and one path is a prefix of the
other, so replacing `state.user` re-runs a binding that read `state.user.name`.
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Hashable, Iterable, Iterator, List, Set, Tuple

logger = logging.getLogger(__name__)

SignalKey = Tuple[str, Hashable, Tuple[str, ...]]


def state_key(namespace: str, path: Iterable[str]) -> SignalKey:
    return ("state", namespace, tuple(path))


def context_key(frame_id: int, path: Iterable[str]) -> SignalKey:
    return ("context", frame_id, tuple(path))


def keys_overlap(a: SignalKey, b: SignalKey) -> bool:
    """True when a change to one key can affect a read of the other"""
    if a[0] != b[0] or a[1] != b[1]:
        return False
    short, long = (a[2], b[2]) if len(a[2]) <= len(b[2]) else (b[2], a[2])
    return long[:len(short)] == short


class DependencyTracker:
    """
    Records signal reads while evaluations are in progress.

    Collectors nest: a computed accessor evaluated inside a binding reports
    its reads to the binding as well.
    """

    def __init__(self):
        self._collectors: List[Set[SignalKey]] = []

    @property
    def active(self) -> bool:
        return bool(self._collectors)

    @contextmanager
    def track(self) -> Iterator[Set[SignalKey]]:
        """Collect every key read inside the block"""
        keys: Set[SignalKey] = set()
        self._collectors.append(keys)
        try:
            yield keys
        finally:
            self._collectors.pop()

    def record(self, key: SignalKey) -> None:
        for collector in self._collectors:
            collector.add(key)

    def replay(self, keys: Iterable[SignalKey]) -> None:
        """Report previously captured reads (used for cached computed values)"""
        for key in keys:
            self.record(key)


class SignalRegistry:
    """
    Registry of subscribers keyed by the signals they depend on.

    Subscribers are indexed by `(scope, owner, first path segment)` so a change
    only has to be compared against subscribers that can possibly overlap it.
    """

    def __init__(self):
        self._subscriptions: Dict[Any, Set[SignalKey]] = {}
        self._index: Dict[Tuple[str, Hashable, str], Set[Any]] = {}

    def subscribe(self, subscriber: Any, keys: Iterable[SignalKey]) -> None:
        """Replace the dependencies recorded for `subscriber`"""
        self.unsubscribe(subscriber)
        keys = set(keys)
        self._subscriptions[subscriber] = keys
        for key in keys:
            self._index.setdefault(self._bucket(key), set()).add(subscriber)

    def unsubscribe(self, subscriber: Any) -> None:
        keys = self._subscriptions.pop(subscriber, set())
        for key in keys:
            bucket = self._index.get(self._bucket(key))
            if bucket is not None:
                bucket.discard(subscriber)
                if not bucket:
                    del self._index[self._bucket(key)]

    def dependencies(self, subscriber: Any) -> Set[SignalKey]:
        return set(self._subscriptions.get(subscriber, ()))

    def dependents(self, changed: Iterable[SignalKey]) -> Set[Any]:
        """All subscribers with at least one key overlapping a changed key"""
        found = set()
        for key in changed:
            for subscriber in self._index.get(self._bucket(key), ()):
                if subscriber in found:
                    continue
                if any(keys_overlap(key, dep) for dep in self._subscriptions[subscriber]):
                    found.add(subscriber)
        return found

    def __contains__(self, subscriber: Any) -> bool:
        return subscriber in self._subscriptions

    def __len__(self) -> int:
        return len(self._subscriptions)

    @staticmethod
    def _bucket(key: SignalKey) -> Tuple[str, Hashable, str]:
        scope, owner, path = key
        return (scope, owner, path[0] if path else "")


class SignalEmitter:
    """Minimal change-notification fan-out shared by the store and context chain"""

    def __init__(self):
        self._listeners: List[Callable[[SignalKey], None]] = []

    def subscribe(self, listener: Callable[[SignalKey], None]) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[SignalKey], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def notify(self, key: SignalKey) -> None:
        logger.debug(f"Signal changed: {key}")
        for listener in list(self._listeners):
            listener(key)


__all__ = [
    "SignalKey", "state_key", "context_key", "keys_overlap",
    "DependencyTracker", "SignalRegistry", "SignalEmitter",
]
