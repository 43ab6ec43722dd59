"""Pure ASGI middleware for the Keystone server.

:class:`MiddlewareAdapter` is the single middleware added to the FastAPI app
at bootstrap. It runs every request through a :class:`MiddlewareChain` that
can keep growing after the app is built, which Starlette's own
``add_middleware`` does not allow. The chain accepts two kinds of entries:

- call-next style ``async def dispatch(request, call_next)`` functions, the
  older Starlette contract, adapted through ``BaseHTTPMiddleware``;
- pure ASGI middleware factories ``factory(app) -> app``.
"""

from __future__ import annotations

import secrets
import time
from collections.abc import Awaitable, Callable
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..util.log import Log

access = Log.create({"service": "server.access"})

Dispatch = Callable[[Request, RequestResponseEndpoint], Awaitable[Response]]
MiddlewareFactory = Callable[[ASGIApp], ASGIApp]


def _header(scope: Scope, name: bytes) -> str | None:
    for key, val in scope.get("headers", []):
        if key == name:
            return val.decode("latin-1")
    return None


def _client_ip(scope: Scope) -> str | None:
    client = scope.get("client")
    return client[0] if client else None


class MiddlewareChain:
    """Ordered, mutable list of middleware entries.

    Entries run in registration order: the first one registered sees the
    request first.
    """

    def __init__(self) -> None:
        self._entries: list[tuple[str, Any]] = []
        self.version = 0

    def use(self, dispatch: Dispatch) -> None:
        """Register a call-next style middleware function."""
        self._entries.append(("dispatch", dispatch))
        self.version += 1

    def use_asgi(self, factory: MiddlewareFactory) -> None:
        """Register a pure ASGI middleware factory."""
        self._entries.append(("asgi", factory))
        self.version += 1

    def __len__(self) -> int:
        return len(self._entries)

    def build(self, app: ASGIApp) -> ASGIApp:
        for kind, entry in reversed(self._entries):
            if kind == "dispatch":
                app = BaseHTTPMiddleware(app, dispatch=entry)
            else:
                app = entry(app)
        return app


class MiddlewareAdapter:
    """Runs HTTP requests through a :class:`MiddlewareChain`."""

    def __init__(self, app: ASGIApp, chain: MiddlewareChain) -> None:
        self.app = app
        self.chain = chain
        self._built: ASGIApp = app
        self._version = 0

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if self._version != self.chain.version:
            self._built = self.chain.build(self.app)
            self._version = self.chain.version
        await self._built(scope, receive, send)


class AccessLogMiddleware:
    """Generates request IDs, logs access, injects X-Request-ID header."""

    def __init__(self, app: ASGIApp, enabled: bool = True) -> None:
        self.app = app
        self.enabled = enabled

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        rid = _header(scope, b"x-request-id") or secrets.token_hex(8)
        scope.setdefault("state", {})["request_id"] = rid

        path = scope.get("path", "")
        method = scope.get("method", "")
        begin = time.perf_counter()
        status = 500

        async def inject(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", rid.encode()))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, inject)
        except Exception as exc:
            if self.enabled:
                access.error("request failed", {
                    "request_id": rid,
                    "method": method,
                    "path": path,
                    "client_ip": _client_ip(scope),
                    "duration_ms": int((time.perf_counter() - begin) * 1000),
                    "error": str(exc),
                })
            raise

        if not self.enabled:
            return
        access.info("request", {
            "request_id": rid,
            "method": method,
            "path": path,
            "status": status,
            "client_ip": _client_ip(scope),
            "duration_ms": int((time.perf_counter() - begin) * 1000),
        })


def register_middleware_adapter(web: Any) -> MiddlewareChain:
    """Add the adapter to ``web`` and return the chain it delegates to.

    Must run before the app serves its first request.
    """
    existing = getattr(web.state, "middleware", None)
    if isinstance(existing, MiddlewareChain):
        return existing
    chain = MiddlewareChain()
    web.add_middleware(MiddlewareAdapter, chain=chain)
    web.state.middleware = chain
    return chain
