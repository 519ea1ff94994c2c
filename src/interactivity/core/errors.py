"""
Interactivity Errors

Only store initialization and hydration conflicts are programmer errors that
should surface loudly. Everything else is recovered from while rendering.
"""


class InteractivityError(Exception):
    """Base class for all interactivity errors"""
    pass


class DuplicateInitError(InteractivityError, RuntimeError):
    """Server state for a namespace was initialized twice in one request"""

    def __init__(self, namespace: str):
        self.namespace = namespace
        super().__init__(f"Server state for namespace '{namespace}' was already initialized in this request")


class UnresolvedReferenceError(InteractivityError, LookupError):
    """Identifier is absent from every context frame and from the active namespace"""

    def __init__(self, identifier: str, namespace: str = None):
        self.identifier = identifier
        self.namespace = namespace
        where = f" or namespace '{namespace}'" if namespace else ""
        super().__init__(f"'{identifier}' is not defined in any context frame{where}")


class HydrationConflictError(InteractivityError, ValueError):
    """Client initialization tried to overwrite a server-provided key"""

    def __init__(self, namespace: str, key: str, server_value=None, client_value=None):
        self.namespace = namespace
        self.key = key
        self.server_value = server_value
        self.client_value = client_value
        super().__init__(
            f"Client state for '{namespace}.{key}' conflicts with the hydrated server value "
            f"({server_value!r} != {client_value!r}); pass merge=True to overwrite it"
        )


class ExpressionError(InteractivityError, ValueError):
    """Directive expression could not be parsed"""

    def __init__(self, source: str, reason: str = "malformed expression"):
        self.source = source
        self.reason = reason
        super().__init__(f"{reason}: {source!r}")


class PayloadError(InteractivityError, ValueError):
    """Hydration payload is not a valid JSON document of the expected shape"""
    pass


__all__ = [
    "InteractivityError", "DuplicateInitError", "UnresolvedReferenceError",
    "HydrationConflictError", "ExpressionError", "PayloadError",
]
