"""Static asset registration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from starlette.exceptions import HTTPException
from starlette.staticfiles import StaticFiles
from starlette.types import ASGIApp, Receive, Scope, Send

from ..core.paths import AppPaths
from ..util.log import Log
from .middleware import MiddlewareChain

log = Log.create({"service": "server.assets"})

ASSETS_PREFIX = "/assets"
FALLTHROUGH_STATUS = {404, 405}


class StaticFallthrough:
    """Serve files from ``directory`` and pass everything else on.

    Unlike a mounted ``StaticFiles`` app, a miss is not a 404: the request
    continues to the wrapped app, so route handlers still answer paths that
    are not files in the bundle.
    """

    def __init__(self, app: ASGIApp, directory: str | Path, html: bool = False) -> None:
        self.app = app
        self.static = StaticFiles(directory=str(directory), html=html, check_dir=False)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("method") not in ("GET", "HEAD"):
            await self.app(scope, receive, send)
            return

        try:
            response = await self.static.get_response(self.static.get_path(scope), scope)
        except HTTPException as exc:
            if exc.status_code not in FALLTHROUGH_STATUS:
                raise
            await self.app(scope, receive, send)
            return
        await response(scope, receive, send)


def register_static_assets(
    web: Any,
    chain: MiddlewareChain,
    paths: AppPaths,
    *,
    production: bool,
) -> dict[str, bool]:
    """Register the ``/assets`` mount and, in production, the client bundle.

    The two registrations are independent. A missing ``assets`` directory is
    skipped silently.

    Returns:
        Which of ``assets`` and ``bundle`` were registered
    """
    registered = {"assets": False, "bundle": False}

    if paths.assets.is_dir():
        web.mount(ASSETS_PREFIX, StaticFiles(directory=str(paths.assets)), name="assets")
        registered["assets"] = True
        log.debug("static assets mounted", {"prefix": ASSETS_PREFIX, "directory": str(paths.assets)})
    else:
        log.debug("static assets skipped", {"directory": str(paths.assets)})

    if production:
        bundle = paths.dist_client
        chain.use_asgi(lambda app: StaticFallthrough(app, bundle, html=False))
        registered["bundle"] = True
        log.debug("client bundle registered", {"directory": str(bundle)})

    return registered
