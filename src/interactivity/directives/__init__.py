"""
Directives

Registry of `data-wp-*` directive handlers and the built-in set.
"""

from .registry import (
    DIRECTIVE_PREFIX, DirectiveAttribute, DirectiveEntry, DirectiveRegistry,
    parse_directive_attribute, directive_attributes, default_registry,
)
from .builtin import stringify, register_builtins

__all__ = [
    "DIRECTIVE_PREFIX", "DirectiveAttribute", "DirectiveEntry", "DirectiveRegistry",
    "parse_directive_attribute", "directive_attributes", "default_registry",
    "stringify", "register_builtins",
]
