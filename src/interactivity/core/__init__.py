"""
Interactivity Core Module

State, context, expressions and dependency tracking. No web framework or
markup concerns live here.
"""

from .errors import (
    InteractivityError, DuplicateInitError, UnresolvedReferenceError,
    HydrationConflictError, ExpressionError, PayloadError,
)
from .expressions import Expression, parse_expression
from .signals import DependencyTracker, SignalRegistry, SignalEmitter, keys_overlap
from .store import (
    Undefined, server_only, client_visible, Namespace, StateProxy,
    Store, ServerStore, ClientStore,
)
from .context import ContextFrame, ContextChain, ContextProxy

__all__ = [
    "InteractivityError", "DuplicateInitError", "UnresolvedReferenceError",
    "HydrationConflictError", "ExpressionError", "PayloadError",
    "Expression", "parse_expression",
    "DependencyTracker", "SignalRegistry", "SignalEmitter", "keys_overlap",
    "Undefined", "server_only", "client_visible", "Namespace", "StateProxy",
    "Store", "ServerStore", "ClientStore",
    "ContextFrame", "ContextChain", "ContextProxy",
]
