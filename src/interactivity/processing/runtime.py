"""
Client Runtime

Adopts server-rendered markup as a live tree, hydrates the client store from
the embedded payload and attaches behaviour. Nothing the server rendered is
replaced: directives mutate the existing nodes in place.

Example:
    runtime = ClientRuntime.from_markup(html)
    runtime.store.set_actions("accordion", toggle=lambda ctx: setattr(ctx.state, "isOpen", not ctx.state.isOpen))
    runtime.start()
    await runtime.dispatch(button, "click")

Action execution is serialized: listeners run one at a time under a lock and
changed keys are flushed before the next event is handled.
"""

import asyncio
import inspect
import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, Set

from ..config import InteractivityConfig
from ..core.signals import SignalKey
from ..core.store import ClientStore
from ..directives.registry import DirectiveRegistry
from ..dom import Element, Event, Node, as_tree
from ..hydration import extract_payload, hydrate
from .processor import Binding, DirectiveProcessor, RenderMode

logger = logging.getLogger(__name__)


class ClientRuntime:
    """Live-mode processor bound to one document and one client store."""

    def __init__(self, document: Any, store: ClientStore = None, registry: DirectiveRegistry = None,
                 config: InteractivityConfig = None):
        self.document: Element = as_tree(document)
        self.store = store if store is not None else ClientStore(config)
        self.config = self.store.config
        self.processor = DirectiveProcessor(
            self.store, registry, RenderMode.CLIENT, action_runner=self._run_action
        )
        self.last_flush: List[Binding] = []

        self._lock = asyncio.Lock()
        self._pending: List[SignalKey] = []
        self._batch_depth = 0
        self._started = False
        self._tasks: Set[asyncio.Task] = set()

        self.store.signals.subscribe(self._on_change)
        self.document.observe_removals(self._on_removed)

    @classmethod
    def from_markup(cls, markup: Any, registry: DirectiveRegistry = None,
                    config: InteractivityConfig = None) -> 'ClientRuntime':
        """Parse a server-rendered page and hydrate state from its payload script"""
        document = as_tree(markup)
        store = ClientStore(config)
        payload = extract_payload(document, store.config.payload_script_id)
        if payload is not None:
            hydrate(payload, store)
        else:
            logger.debug("No hydration payload found; starting with an empty store")
        return cls(document, store, registry)

    @property
    def started(self) -> bool:
        return self._started

    @property
    def bindings(self) -> List[Binding]:
        return list(self.processor.bindings)

    def start(self) -> List[Binding]:
        """Process the document in live mode (once)"""
        if self._started:
            return []
        self._started = True
        self._pending.clear()
        with self.batch():
            bindings = self.processor.process(self.document)
        logger.debug(f"Hydrated {len(bindings)} bindings across {len(self.processor.roots)} interactive roots")
        return bindings

    def mount(self, element: Element) -> List[Binding]:
        """Process a subtree inserted after start()"""
        with self.batch():
            return self.processor.process(element)

    def stop(self) -> None:
        self.store.signals.unsubscribe(self._on_change)
        for task in list(self._tasks):
            task.cancel()

    # --- change propagation ----------------------------------------------

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Defer re-rendering until the outermost batch exits"""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                self.flush()

    def _on_change(self, key: SignalKey) -> None:
        self._pending.append(key)
        if self._started and self._batch_depth == 0:
            self.flush()

    def flush(self) -> List[Binding]:
        """Re-run bindings affected by pending changes until state settles"""
        if not self._started:
            return []

        rerun: List[Binding] = []
        iterations = 0
        while self._pending:
            if iterations >= self.config.max_flush_iterations:
                logger.error(f"State did not settle after {iterations} flushes; dropping {len(self._pending)} changes")
                self._pending.clear()
                break
            changed, self._pending = self._pending, []
            self._batch_depth += 1
            try:
                rerun.extend(self.processor.rerun(changed))
            finally:
                self._batch_depth -= 1
            iterations += 1

        self.last_flush = rerun
        return rerun

    def _on_removed(self, node: Node) -> None:
        self.processor.teardown(node)

    # --- actions and events ----------------------------------------------

    def _run_action(self, binding: Binding, fn: Callable, event: Optional[Event]) -> Any:
        context = self.processor.action_context(binding, event)
        result = fn(context)
        if event is None and inspect.isawaitable(result):
            # init/watch callbacks: no dispatch() is awaiting them
            return self._schedule(result)
        return result

    def _schedule(self, awaitable) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Async callback needs a running event loop; it was not run")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return None
        task = loop.create_task(self._serialized(awaitable))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _serialized(self, awaitable) -> Any:
        async with self._lock:
            result = await awaitable
            self.flush()
            return result

    async def dispatch(self, element: Element, event_type: str, detail: Any = None,
                       bubbles: bool = True) -> Event:
        """
        Fire an event at `element`.

        Listeners on the element (and its ancestors when bubbling) run one at
        a time; async actions are awaited before the next listener starts.
        """
        event = Event(event_type, target=element, detail=detail)
        targets = [element] + (list(element.ancestors()) if bubbles else [])

        async with self._lock:
            for target in targets:
                event.current_target = target
                for listener in target.listeners(event_type):
                    with self.batch():
                        result = listener(event)
                    if inspect.isawaitable(result):
                        await result
                        self.flush()
        return event

    async def settle(self) -> None:
        """Wait for scheduled async callbacks to finish"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def __repr__(self):
        return f"ClientRuntime(roots={len(self.processor.roots)}, bindings={len(self.processor.bindings)})"


__all__ = ["ClientRuntime"]
