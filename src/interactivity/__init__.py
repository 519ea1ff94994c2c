"""
Interactivity - Directive-driven reactive rendering for FastHTML

Declarative `data-wp-*` directives bound to a namespaced, context-scoped state
store. The same markup is rendered once on the server and then adopted by the
client runtime, which re-runs only the bindings a state change affects.
"""

from .core import (
    InteractivityError, DuplicateInitError, UnresolvedReferenceError,
    HydrationConflictError, ExpressionError, PayloadError,
    Undefined, server_only, client_visible,
    Store, ServerStore, ClientStore, StateProxy,
    ContextChain, parse_expression,
)
from .config import (
    Environment, LoggingConfig, InteractivityConfig,
    configure_logging, set_config, get_config,
)
from .dom import Element, Fragment, Event, parse_html, as_tree
from .directives import DirectiveRegistry, default_registry
from .processing import RenderMode, Binding, ActionContext, DirectiveProcessor, ClientRuntime, render
from .hydration import serialize, parse_payload, hydrate, payload_script, extract_payload, inject_payload

# Web integration lives in .adapters.fasthtml and is imported explicitly

__version__ = "0.1.0"

__all__ = [
    # Errors
    'InteractivityError',
    'DuplicateInitError',
    'UnresolvedReferenceError',
    'HydrationConflictError',
    'ExpressionError',
    'PayloadError',

    # State
    'Undefined',
    'server_only',
    'client_visible',
    'Store',
    'ServerStore',
    'ClientStore',
    'StateProxy',
    'ContextChain',
    'parse_expression',

    # Configuration
    'Environment',
    'LoggingConfig',
    'InteractivityConfig',
    'configure_logging',
    'set_config',
    'get_config',

    # Element tree
    'Element',
    'Fragment',
    'Event',
    'parse_html',
    'as_tree',

    # Directives and processing
    'DirectiveRegistry',
    'default_registry',
    'RenderMode',
    'Binding',
    'ActionContext',
    'DirectiveProcessor',
    'ClientRuntime',
    'render',

    # Hydration
    'serialize',
    'parse_payload',
    'hydrate',
    'payload_script',
    'extract_payload',
    'inject_payload',
]
