"""HTTP layer collaborators wired together by :class:`keystone.Application`.

- ``middleware``: adapter that hosts call-next and ASGI middleware
- ``dev_bridge``: forwards Vite dev-server paths outside production
- ``context``: back-reference from the FastAPI app to the application
- ``handlers``: router discovery in ``src/server/handlers``
- ``assets``: ``/assets`` mount and the production client bundle
- ``stylesheets``: inline built CSS into rendered pages
"""

from .context import APPLICATION_STATE_KEY, resolve_application
from .middleware import MiddlewareChain

__all__ = [
    "APPLICATION_STATE_KEY",
    "MiddlewareChain",
    "resolve_application",
]
