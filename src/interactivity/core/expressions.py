"""
Directive Expressions

Directive values are a deliberately tiny language: a dot-path rooted at
`state`, `context`, `actions` or `callbacks` (or a bare identifier), optionally
prefixed by `namespace::` and by any number of `!` negations.

    !state.isOpen
    context.item.name
    otherPlugin::actions.toggle
    itemName

Nothing else is evaluated. There are no calls, operators or literals.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

from .errors import ExpressionError

ROOTS = ("state", "context", "actions", "callbacks")

_SEGMENT = r"[A-Za-z_$][\w$]*|\d+"
_EXPRESSION_RE = re.compile(
    r"^(?P<neg>!*)\s*"
    r"(?:(?P<ns>[\w@/\-]+)::)?"
    rf"(?P<path>(?:{_SEGMENT})(?:\.(?:{_SEGMENT}))*)$"
)


@dataclass(frozen=True)
class Expression:
    """Parsed directive expression."""
    source: str
    root: Optional[str]
    path: Tuple[str, ...]
    negations: int = 0
    namespace: Optional[str] = None

    @property
    def negated(self) -> bool:
        return self.negations % 2 == 1

    @property
    def dotted(self) -> str:
        return ".".join(self.path)

    def __str__(self):
        return self.source


@lru_cache(maxsize=1024)
def parse_expression(source: str) -> Expression:
    """
    Parse a directive expression.

    Raises:
        ExpressionError: if the source is empty or not a plain dot-path
    """
    if source is None or not source.strip():
        raise ExpressionError(source or "", "empty expression")

    match = _EXPRESSION_RE.match(source.strip())
    if not match:
        raise ExpressionError(source)

    segments = tuple(match.group("path").split("."))
    if segments[0].isdigit():
        raise ExpressionError(source, "expression cannot start with an index")

    root = None
    if segments[0] in ROOTS:
        root, segments = segments[0], segments[1:]
        if not segments:
            raise ExpressionError(source, f"'{root}' needs a property path")

    return Expression(
        source=source,
        root=root,
        path=segments,
        negations=len(match.group("neg")),
        namespace=match.group("ns"),
    )


__all__ = ["ROOTS", "Expression", "parse_expression"]
