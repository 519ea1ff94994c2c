"""
Processing

Directive processor (server and client modes) and the client runtime.
"""

from .processor import (
    INTERACTIVE_ATTRIBUTE, RenderMode, InteractiveRoot, Binding, ActionContext,
    DirectiveProcessor, render,
)
from .runtime import ClientRuntime

__all__ = [
    "INTERACTIVE_ATTRIBUTE", "RenderMode", "InteractiveRoot", "Binding", "ActionContext",
    "DirectiveProcessor", "render", "ClientRuntime",
]
