"""Keystone - composition root for a FastAPI server with a Vite frontend.

The process entry point is :func:`keystone.bootstrap.bootstrap`, which wires
aliases, middleware, the development asset bridge, discovered route handlers
and static assets onto one FastAPI app and starts listening.
"""

__version__ = "0.1.0"


# Lazy imports keep `import keystone` free of the web stack
def __getattr__(name: str):
    """Lazy import module components."""
    if name in ("Application", "Stage"):
        from . import application
        return getattr(application, name)
    if name == "bootstrap":
        from .bootstrap import bootstrap
        return bootstrap
    if name in ("Settings", "ExecutionMode"):
        from .core import config
        return getattr(config, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "__version__",
    "Application",
    "Stage",
    "bootstrap",
    "Settings",
    "ExecutionMode",
]
