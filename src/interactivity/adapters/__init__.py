"""
Web framework adapters.
"""

from .fasthtml import InteractivityMiddleware, get_store, configure_app, wp, Interactive, runtime_script

__all__ = ["InteractivityMiddleware", "get_store", "configure_app", "wp", "Interactive", "runtime_script"]
