"""
Directive Processor

Walks an element tree depth-first, pre-order. At each Interactive Root
(`data-wp-interactive`) it switches the active namespace; below a root every
directive attribute becomes a Binding that is resolved and applied.

Server mode applies bindings once and serializes the tree. Client mode also
attaches listeners and records which state and context keys each binding
read, so `rerun()` can re-apply exactly the bindings a change affects.
"""

import functools
import itertools
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional, Set

from ..core.context import ContextChain, ContextProxy
from ..core.errors import (
    DuplicateInitError, ExpressionError, HydrationConflictError, UnresolvedReferenceError,
)
from ..core.expressions import Expression, parse_expression
from ..core.signals import SignalKey, SignalRegistry
from ..core.store import StateProxy, Store, Undefined, step
from ..directives.registry import (
    INTERACTIVE_ATTRIBUTE, STRUCTURAL_DIRECTIVES, DirectiveAttribute, DirectiveEntry, DirectiveRegistry,
    default_registry, directive_attributes,
)
from ..dom import Element, Event, Node, as_tree

logger = logging.getLogger(__name__)

# Errors that indicate programmer mistakes and must never be swallowed by a binding
_FATAL_ERRORS = (DuplicateInitError, HydrationConflictError)


class RenderMode(Enum):
    SERVER = "server"
    CLIENT = "client"


@dataclass(eq=False)
class InteractiveRoot:
    """Element that owns the namespace used by unqualified lookups below it"""
    element: Element
    namespace: str
    parent: Optional['InteractiveRoot'] = None


@dataclass(eq=False)
class Binding:
    """One directive on one element, resolved against one namespace"""
    element: Element
    entry: DirectiveEntry
    attribute: DirectiveAttribute
    expression: Expression
    namespace: str
    order: int
    callback: Optional[Callable] = field(default=None, repr=False)
    runs: int = 0
    active: bool = True

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def modifier(self) -> Optional[str]:
        return self.attribute.modifier

    def __repr__(self):
        return f"Binding({self.attribute.attribute}={self.expression.source!r} on <{self.element.tag}>)"


@dataclass
class ActionContext:
    """
    What an action or callback receives.

    Actions mutate `state` and `context`; the runtime turns those writes into
    targeted re-renders.
    """
    store: Store
    contexts: ContextChain
    namespace: str
    element: Element
    event: Optional[Event] = None

    @property
    def state(self) -> StateProxy:
        return self.store.state(self.namespace)

    @property
    def context(self) -> ContextProxy:
        return self.contexts.proxy(self.element)

    def get_state(self, namespace: str) -> StateProxy:
        return self.store.state(namespace)

    def get_config(self, namespace: str = None):
        return self.store.namespace_config(namespace or self.namespace)


ActionRunner = Callable[[Binding, Callable, Optional[Event]], Any]


class DirectiveProcessor:
    """Applies registered directives to an element tree against one store."""

    def __init__(self, store: Store, registry: DirectiveRegistry = None,
                 mode: RenderMode = RenderMode.SERVER, contexts: ContextChain = None,
                 action_runner: ActionRunner = None):
        self.store = store
        self.registry = registry or default_registry()
        self.mode = mode
        self.contexts = contexts or ContextChain(store.tracker, store.signals)
        self.action_runner = action_runner or self._run_directly
        self.dependencies = SignalRegistry()
        self.roots: List[InteractiveRoot] = []
        self.bindings: List[Binding] = []
        self._processed: Set[Element] = set()
        self._sequence = itertools.count()

    @property
    def tracking(self) -> bool:
        return self.mode is RenderMode.CLIENT

    # --- walking ----------------------------------------------------------

    def process(self, source: Any) -> List[Binding]:
        """Process a tree (or subtree) and return the bindings it created"""
        tree = as_tree(source)
        created: List[Binding] = []
        self.store.begin_pass()
        try:
            self._walk(tree, self._root_above(tree), created)
        finally:
            self.store.end_pass()
        logger.debug(f"Processed {len(created)} bindings in {self.mode.value} mode")
        return created

    def render(self, source: Any) -> str:
        """Server pass: apply every directive and serialize the result"""
        tree = as_tree(source)
        self.process(tree)
        return tree.render()

    def _walk(self, node: Node, root: Optional[InteractiveRoot], created: List[Binding]) -> None:
        if not isinstance(node, Element):
            return

        element = node
        if element in self._processed:
            root = next((r for r in self.roots if r.element is element), root)
        else:
            self._processed.add(element)
            if INTERACTIVE_ATTRIBUTE in element.attrs:
                root = self._open_root(element, root)
            if root is not None:
                self._apply_element(element, root.namespace, created)

        # Directives never prune: descendants are always visited
        for child in list(element.children):
            self._walk(child, root, created)

    def _open_root(self, element: Element, parent: Optional[InteractiveRoot]) -> Optional[InteractiveRoot]:
        namespace = self._parse_namespace(element.attrs[INTERACTIVE_ATTRIBUTE])
        if namespace is None:
            namespace = parent.namespace if parent else None
        if namespace is None:
            logger.warning(f"<{element.tag} {INTERACTIVE_ATTRIBUTE}> has no namespace; skipping subtree directives")
            return parent

        root = InteractiveRoot(element, namespace, parent)
        self.roots.append(root)
        return root

    @staticmethod
    def _parse_namespace(value: str) -> Optional[str]:
        value = (value or "").strip()
        if not value:
            return None
        if value.startswith("{"):
            try:
                data = json.loads(value)
            except json.JSONDecodeError:
                logger.warning(f"Malformed {INTERACTIVE_ATTRIBUTE} value: {value!r}")
                return None
            namespace = data.get("namespace") if isinstance(data, dict) else None
            return namespace if isinstance(namespace, str) and namespace else None
        return value

    def _root_above(self, element: Element) -> Optional[InteractiveRoot]:
        """Root owning an already-processed ancestor (used when mounting subtrees)"""
        for ancestor in element.ancestors():
            for root in reversed(self.roots):
                if root.element is ancestor:
                    return root
        return None

    def _apply_element(self, element: Element, namespace: str, created: List[Binding]) -> None:
        attributes = directive_attributes(element.attrs)

        for attribute in attributes:
            if attribute.name == "context":
                self._push_context(element, attribute)

        for attribute in attributes:
            if attribute.name in STRUCTURAL_DIRECTIVES:
                continue
            binding = self._bind(element, attribute, namespace)
            if binding is not None:
                created.append(binding)

    def _push_context(self, element: Element, attribute: DirectiveAttribute) -> None:
        raw = attribute.value.strip()
        if "::" in raw and not raw.startswith("{"):
            raw = raw.split("::", 1)[1]
        try:
            values = json.loads(raw) if raw else {}
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring malformed {attribute.attribute} on <{element.tag}>: {e}")
            return
        if not isinstance(values, dict):
            logger.warning(f"Ignoring {attribute.attribute} on <{element.tag}>: expected a JSON object")
            return
        self.contexts.push_context(element, values)

    def _bind(self, element: Element, attribute: DirectiveAttribute, namespace: str) -> Optional[Binding]:
        entry = self.registry.get(attribute.name)
        if entry is None:
            logger.debug(f"Ignoring unknown directive {attribute.attribute}")
            return None
        if entry.client_only and self.mode is RenderMode.SERVER:
            return None

        try:
            expression = parse_expression(attribute.value)
        except ExpressionError as e:
            logger.warning(f"Disabled {attribute.attribute} on <{element.tag}>: {e}")
            return None

        binding = Binding(element, entry, attribute, expression, namespace, next(self._sequence))
        self.bindings.append(binding)
        self.apply(binding)
        return binding

    # --- evaluation -------------------------------------------------------

    def apply(self, binding: Binding) -> bool:
        """Resolve and run one binding, recording its dependencies in client mode"""
        if not binding.active:
            return False
        if binding.entry.once and binding.runs:
            return True

        with self.store.tracker.track() as deps:
            try:
                value = self._value_for(binding)
                binding.entry.handler(binding.element, value, binding.modifier)
                binding.runs += 1
                ok = True
            except UnresolvedReferenceError as e:
                logger.debug(f"No value for {binding!r}: {e}")
                ok = False
            except _FATAL_ERRORS:
                raise
            except Exception as e:
                logger.warning(f"Directive {binding!r} failed: {e}", exc_info=self.store.config.debug)
                ok = False

        if self.tracking and not binding.entry.once:
            self.dependencies.subscribe(binding, deps)
        return ok

    def _value_for(self, binding: Binding) -> Any:
        expression = binding.expression
        namespace = expression.namespace or binding.namespace

        if binding.entry.callable_value:
            # Fail early when the action does not exist; resolved again on each call
            self._resolve_callable(expression, namespace, binding.element)
            if binding.callback is None:
                binding.callback = functools.partial(self._invoke, binding)
            return binding.callback

        value = self.resolve(expression, binding.element, namespace)
        if expression.negations:
            value = not value if expression.negated else bool(value)
        return value

    def resolve(self, expression: Expression, element: Element, namespace: str) -> Any:
        """Value of an expression (without negation) at `element`"""
        root, path = expression.root, expression.path

        if root == "state":
            return self.store.namespace(namespace).get(path)
        if root == "context":
            return self.contexts.lookup(element, path)
        if root == "actions":
            return self.store.action(namespace, path)
        if root == "callbacks":
            return self.store.callback(namespace, path)

        try:
            value = self.contexts.resolve(path[0], element, self.store.namespace(namespace), namespace)
        except UnresolvedReferenceError:
            return Undefined
        for segment in path[1:]:
            value = step(value, segment)
        return value

    def _resolve_callable(self, expression: Expression, namespace: str, element: Element) -> Callable:
        if expression.root is None:
            fn = self.store.action(namespace, expression.path) or self.store.callback(namespace, expression.path)
        else:
            fn = self.resolve(expression, element, namespace)
        if not callable(fn):
            raise UnresolvedReferenceError(expression.source, namespace)
        return fn

    def _invoke(self, binding: Binding, event: Optional[Event] = None) -> Any:
        namespace = binding.expression.namespace or binding.namespace
        fn = self._resolve_callable(binding.expression, namespace, binding.element)
        return self.action_runner(binding, fn, event)

    def action_context(self, binding: Binding, event: Optional[Event] = None) -> ActionContext:
        namespace = binding.expression.namespace or binding.namespace
        return ActionContext(self.store, self.contexts, namespace, binding.element, event)

    def _run_directly(self, binding: Binding, fn: Callable, event: Optional[Event]) -> Any:
        return fn(self.action_context(binding, event))

    # --- client-side maintenance -----------------------------------------

    def rerun(self, changed: Iterable[SignalKey]) -> List[Binding]:
        """Re-apply only the bindings whose dependencies overlap the changed keys"""
        affected = sorted(self.dependencies.dependents(changed), key=lambda b: b.order)
        if not affected:
            return []
        self.store.begin_pass()
        try:
            for binding in affected:
                self.apply(binding)
        finally:
            self.store.end_pass()
        logger.debug(f"Re-ran {len(affected)} bindings")
        return affected

    def teardown(self, node: Node) -> int:
        """Forget roots, bindings and context frames under a removed node"""
        if not isinstance(node, Element):
            return 0
        removed = set(node.iter())

        dropped = [b for b in self.bindings if b.element in removed]
        for binding in dropped:
            binding.active = False
            self.dependencies.unsubscribe(binding)
        self.bindings = [b for b in self.bindings if b.element not in removed]
        self.roots = [r for r in self.roots if r.element not in removed]
        self._processed -= removed
        self.contexts.discard(removed)
        for element in removed:
            element.clear_listeners()

        logger.debug(f"Tore down {len(dropped)} bindings under <{node.tag}>")
        return len(dropped)

    def bindings_for(self, element: Element) -> List[Binding]:
        return [b for b in self.bindings if b.element is element]


def render(source: Any, store: Store, registry: DirectiveRegistry = None) -> str:
    """Server-render markup or a component tree against a request store"""
    return DirectiveProcessor(store, registry, RenderMode.SERVER).render(source)


__all__ = [
    "INTERACTIVE_ATTRIBUTE", "RenderMode", "InteractiveRoot", "Binding", "ActionContext",
    "DirectiveProcessor", "render",
]
