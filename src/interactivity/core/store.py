"""
State Store - Namespaced Reactive State

📦 Request-scoped state:
A store holds named namespaces of plain values and computed accessors. The
server creates one `ServerStore` per request and passes it explicitly through
rendering; the client keeps one `ClientStore` for the page, hydrated from the
server payload.

Example:
    store = ServerStore()
    state = store.state("cart")
    store.set_state("cart", {
        "items": [{"price": 3}, {"price": 4}],
        "total": lambda: sum(i["price"] for i in state.items),
        "apiKey": server_only("secret"),
    })
    store.get_state("cart", "total")   # 7, evaluated lazily
"""

import copy
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from pydantic import BaseModel

from ..config import InteractivityConfig, get_config
from .errors import DuplicateInitError, HydrationConflictError
from .signals import DependencyTracker, SignalEmitter, state_key

logger = logging.getLogger(__name__)

Path = Union[str, Iterable[str]]


class _UndefinedType:
    """Falsy marker for values that do not exist. Directives render it as empty."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "Undefined"

    def __str__(self):
        return ""

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


Undefined = _UndefinedType()
_MISSING = object()


class ServerOnly:
    """Wraps a value that must never be serialized to the client"""
    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value


class ClientVisible:
    """Marks a value for serialization when state is private by default"""
    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value


def server_only(value: Any) -> ServerOnly:
    return ServerOnly(value)


def client_visible(value: Any) -> ClientVisible:
    return ClientVisible(value)


def is_computed(value: Any) -> bool:
    """Computed accessors are zero-argument callables stored as state values"""
    return callable(value) and not isinstance(value, type)


def split_path(path: Path) -> Tuple[str, ...]:
    if path is None:
        return ()
    if isinstance(path, str):
        return tuple(p for p in path.split(".") if p)
    return tuple(str(p) for p in path)


def step(container: Any, segment: str) -> Any:
    """Take one path segment into a value, returning Undefined when it does not exist"""
    if container is Undefined or container is None:
        return Undefined
    if isinstance(container, StateProxy):
        container = container.value
    if isinstance(container, Mapping):
        return container[segment] if segment in container else Undefined
    if isinstance(container, (list, tuple)):
        if segment.isdigit() and int(segment) < len(container):
            return container[int(segment)]
        return Undefined
    if segment.startswith("_") or isinstance(container, (str, bytes, int, float, bool)):
        return Undefined
    return getattr(container, segment, Undefined)


def _unwrap(value: Any) -> Tuple[Any, Optional[str]]:
    if isinstance(value, ServerOnly):
        return value.value, "private"
    if isinstance(value, ClientVisible):
        return value.value, "public"
    return value, None


class Namespace:
    """One named state bucket. All reads and writes go through the owning store."""

    def __init__(self, name: str, store: 'Store'):
        self.name = name
        self.initialized = False
        self._store = store
        self._values: Dict[str, Any] = {}
        self._private: Set[str] = set()
        self._public: Set[str] = set()

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def keys(self):
        return self._values.keys()

    def raw(self, key: str, default: Any = Undefined) -> Any:
        """Stored value without evaluating computed accessors"""
        return self._values.get(key, default)

    def is_private(self, key: str) -> bool:
        return key in self._private

    def merge(self, values: Mapping[str, Any]) -> List[str]:
        """Merge top-level fields, returning the keys whose value changed"""
        changed = []
        for key, wrapped in values.items():
            value, visibility = _unwrap(wrapped)
            if visibility == "private":
                self._private.add(key)
                self._public.discard(key)
            elif visibility == "public":
                self._public.add(key)
                self._private.discard(key)

            old = self._values.get(key, _MISSING)
            self._values[key] = value
            if old is _MISSING or old is not value and old != value:
                changed.append(key)
        return changed

    def get(self, path: Path) -> Any:
        path = split_path(path)
        if not path:
            return Undefined
        self._store.tracker.record(state_key(self.name, path))

        current: Any = self._values
        for index, segment in enumerate(path):
            current = step(current, segment)
            if current is Undefined:
                return Undefined
            if is_computed(current):
                current = self._store._evaluate_computed(self.name, path[:index + 1], current)
        return current

    def write(self, path: Path, value: Any) -> None:
        path = split_path(path)
        if len(path) == 1:
            if self.merge({path[0]: value}):
                self._store._changed(state_key(self.name, path))
            return

        container: Any = self._values
        for segment in path[:-1]:
            container = step(container, segment)
            if container is Undefined:
                raise KeyError(f"{self.name}.{'.'.join(path)}")

        last = path[-1]
        if isinstance(container, dict):
            old = container.get(last, _MISSING)
            container[last] = value
        elif isinstance(container, list):
            old = container[int(last)]
            container[int(last)] = value
        else:
            old = getattr(container, last, _MISSING)
            setattr(container, last, value)

        if old is _MISSING or old != value:
            self._store._changed(state_key(self.name, path))

    def snapshot(self, client_only: bool = True) -> Dict[str, Any]:
        expose_default = self._store.config.expose_state_by_default
        result = {}
        for key, value in self._values.items():
            if is_computed(value):
                continue
            if client_only:
                if key in self._private:
                    continue
                if not expose_default and key not in self._public:
                    continue
            result[key] = value
        return copy.deepcopy(result)

    def proxy(self) -> 'StateProxy':
        return StateProxy(self)

    def __repr__(self):
        return f"Namespace({self.name!r}, keys={list(self._values)})"


class StateProxy:
    """
    Attribute-style access to a namespace for actions and computed accessors.

    Reads are tracked and resolve computed accessors; writes notify the store.
    Nested dicts and lists come back as proxies so `state.user.name = "x"`
    reports the full changed path.
    """
    __slots__ = ("_namespace", "_path")

    def __init__(self, namespace: Namespace, path: Tuple[str, ...] = ()):
        object.__setattr__(self, "_namespace", namespace)
        object.__setattr__(self, "_path", path)

    @property
    def value(self) -> Any:
        """The underlying value (the whole namespace dict at the top level)"""
        if not self._path:
            return self._namespace._values
        return self._namespace.get(self._path)

    def _wrap(self, name: str) -> Any:
        path = self._path + (name,)
        value = self._namespace.get(path)
        if isinstance(value, (dict, list)):
            return StateProxy(self._namespace, path)
        return value

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        return self._wrap(name)

    def __setattr__(self, name: str, value: Any) -> None:
        self._namespace.write(self._path + (name,), value)

    def __getitem__(self, key) -> Any:
        return self._wrap(str(key))

    def __setitem__(self, key, value) -> None:
        self._namespace.write(self._path + (str(key),), value)

    def __iter__(self):
        return iter(self.value)

    def __len__(self) -> int:
        return len(self.value)

    def __contains__(self, item) -> bool:
        return item in self.value

    def __bool__(self) -> bool:
        return bool(self.value)

    def __eq__(self, other) -> bool:
        if isinstance(other, StateProxy):
            other = other.value
        return self.value == other

    __hash__ = None

    def __repr__(self):
        where = ".".join((self._namespace.name,) + self._path)
        return f"StateProxy({where}={self.value!r})"


class Store:
    """Base store shared by the server and client variants."""

    mode = "base"

    def __init__(self, config: InteractivityConfig = None):
        self.config = config or get_config()
        self.tracker = DependencyTracker()
        self.signals = SignalEmitter()
        self._namespaces: Dict[str, Namespace] = {}
        self._actions: Dict[str, Dict[str, Any]] = {}
        self._callbacks: Dict[str, Dict[str, Any]] = {}
        self._namespace_config: Dict[str, Dict[str, Any]] = {}
        self._computed_cache: Dict[Tuple[str, Tuple[str, ...]], Tuple[Any, frozenset]] = {}
        self._in_pass = False

    # --- namespaces -------------------------------------------------------

    def namespace(self, name: str) -> Namespace:
        if name not in self._namespaces:
            self._namespaces[name] = Namespace(name, self)
        return self._namespaces[name]

    @property
    def namespaces(self) -> List[str]:
        return list(self._namespaces)

    def __contains__(self, name: str) -> bool:
        return name in self._namespaces

    def state(self, namespace: str) -> StateProxy:
        """Proxy for a namespace without initializing it"""
        return self.namespace(namespace).proxy()

    def set_state(self, namespace: str, partial: Union[Mapping[str, Any], BaseModel, None] = None,
                  *, merge: bool = False, **fields) -> StateProxy:
        """
        Merge fields into a namespace, creating it if absent.

        Args:
            namespace: Namespace name
            partial: Mapping or pydantic model of fields to merge
            merge: Explicit superset merge (client only, allows overwriting hydrated keys)
            **fields: Additional fields to merge

        Returns:
            StateProxy for the namespace
        """
        values = self._coerce(partial)
        values.update(fields)
        ns = self.namespace(namespace)
        self._check_merge(ns, values, merge)
        changed = ns.merge(values)
        ns.initialized = True
        for key in changed:
            self._changed(state_key(namespace, (key,)))
        return ns.proxy()

    def get_state(self, namespace: str, path: Path = ()) -> Any:
        """Resolve a dot-path in a namespace. Missing segments give Undefined."""
        if namespace not in self._namespaces:
            return Undefined
        path = split_path(path)
        if not path:
            return self._namespaces[namespace].proxy()
        return self._namespaces[namespace].get(path)

    def _check_merge(self, ns: Namespace, values: Dict[str, Any], merge: bool) -> None:
        pass

    @staticmethod
    def _coerce(partial) -> Dict[str, Any]:
        if partial is None:
            return {}
        if isinstance(partial, BaseModel):
            return dict(partial.model_dump(exclude=set(type(partial).model_computed_fields)))
        if isinstance(partial, Mapping):
            return dict(partial)
        raise TypeError(f"State must be a mapping or pydantic model, got {type(partial).__name__}")

    # --- actions, callbacks, config ---------------------------------------

    def set_actions(self, namespace: str, actions: Mapping[str, Any] = None, **more) -> None:
        self._register_callables(self._actions, namespace, {**(actions or {}), **more})

    def set_callbacks(self, namespace: str, callbacks: Mapping[str, Any] = None, **more) -> None:
        self._register_callables(self._callbacks, namespace, {**(callbacks or {}), **more})

    @staticmethod
    def _register_callables(target: Dict[str, Dict[str, Any]], namespace: str, functions: Mapping[str, Any]):
        for name, fn in functions.items():
            if not callable(fn) and not isinstance(fn, Mapping):
                raise TypeError(f"{namespace}.{name} must be callable, got {type(fn).__name__}")
        target.setdefault(namespace, {}).update(functions)

    def action(self, namespace: str, path: Path) -> Any:
        return self._find_callable(self._actions, namespace, path)

    def callback(self, namespace: str, path: Path) -> Any:
        return self._find_callable(self._callbacks, namespace, path)

    @staticmethod
    def _find_callable(source: Dict[str, Dict[str, Any]], namespace: str, path: Path) -> Any:
        current: Any = source.get(namespace, Undefined)
        for segment in split_path(path):
            current = step(current, segment)
        return current if callable(current) else Undefined

    def set_config(self, namespace: str, config: Mapping[str, Any] = None, **more) -> None:
        self._namespace_config.setdefault(namespace, {}).update({**(config or {}), **more})

    def namespace_config(self, namespace: str) -> Dict[str, Any]:
        return dict(self._namespace_config.get(namespace, {}))

    @property
    def configured_namespaces(self) -> Dict[str, Dict[str, Any]]:
        return {ns: dict(values) for ns, values in self._namespace_config.items()}

    # --- passes and change notification -----------------------------------

    def begin_pass(self) -> None:
        """Start a processing pass; computed values are cached only within one pass"""
        self._computed_cache.clear()
        self._in_pass = True

    def end_pass(self) -> None:
        self._computed_cache.clear()
        self._in_pass = False

    def _evaluate_computed(self, namespace: str, path: Tuple[str, ...], fn: Callable[[], Any]) -> Any:
        cache_key = (namespace, path)
        cached = self._computed_cache.get(cache_key)
        if cached is not None:
            value, deps = cached
            self.tracker.replay(deps)
            return value

        with self.tracker.track() as deps:
            value = fn()
        if isinstance(value, StateProxy):
            value = value.value
        if self._in_pass:
            self._computed_cache[cache_key] = (value, frozenset(deps))
        return value

    def _changed(self, key) -> None:
        self._computed_cache.clear()
        self.signals.notify(key)

    def snapshot(self, client_only: bool = True) -> Dict[str, Dict[str, Any]]:
        """Plain-value copy of every namespace, restricted to client-visible keys by default"""
        return {name: ns.snapshot(client_only) for name, ns in self._namespaces.items()}

    def __repr__(self):
        return f"{self.__class__.__name__}(namespaces={self.namespaces})"


class ServerStore(Store):
    """
    Request-scoped server store.

    Server state is write-once per request: initializing the same namespace
    twice raises DuplicateInitError.
    """

    mode = "server"

    def _check_merge(self, ns: Namespace, values: Dict[str, Any], merge: bool) -> None:
        if ns.initialized:
            raise DuplicateInitError(ns.name)


class ClientStore(Store):
    """
    Page-lifetime client store.

    Hydrated server values are merged first. Later client `set_state` calls may
    add keys freely but only overwrite a hydrated key with `merge=True`.
    """

    mode = "client"

    def __init__(self, config: InteractivityConfig = None):
        super().__init__(config)
        self._hydrated: Dict[str, Set[str]] = {}
        self._client_keys: Dict[str, Set[str]] = {}

    def hydrate(self, state: Mapping[str, Mapping[str, Any]]) -> None:
        """Merge server-provided state. Values set by client code are never silently replaced."""
        for namespace, values in state.items():
            ns = self.namespace(namespace)
            client_keys = self._client_keys.get(namespace, set())
            for key, value in values.items():
                if key in client_keys and ns.raw(key) != value:
                    logger.error(f"Hydration of '{namespace}.{key}' conflicts with client state")
                    raise HydrationConflictError(namespace, key, value, ns.raw(key))

            changed = ns.merge(copy.deepcopy(dict(values)))
            self._hydrated.setdefault(namespace, set()).update(values.keys())
            for key in changed:
                self._changed(state_key(namespace, (key,)))
        logger.debug(f"Hydrated namespaces: {list(state)}")

    def hydrated_keys(self, namespace: str) -> Set[str]:
        return set(self._hydrated.get(namespace, ()))

    def _check_merge(self, ns: Namespace, values: Dict[str, Any], merge: bool) -> None:
        hydrated = self._hydrated.get(ns.name, set())
        if not merge:
            for key, wrapped in values.items():
                if key not in hydrated:
                    continue
                value, _ = _unwrap(wrapped)
                current = ns.raw(key)
                if current is value or current == value:
                    continue
                logger.error(f"Client state for '{ns.name}.{key}' would overwrite a hydrated value")
                raise HydrationConflictError(ns.name, key, current, value)
        self._client_keys.setdefault(ns.name, set()).update(values.keys())


__all__ = [
    "Undefined", "ServerOnly", "ClientVisible", "server_only", "client_visible",
    "is_computed", "split_path", "step", "Namespace", "StateProxy",
    "Store", "ServerStore", "ClientStore",
]
