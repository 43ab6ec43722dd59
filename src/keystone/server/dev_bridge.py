"""Development asset bridge.

Outside production the browser loads modules straight from the Vite dev
server, which compiles them on request. Vite runs in middleware mode next to
this process; the bridge forwards the paths Vite owns to it and lets every
other request through to the FastAPI app.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Optional

import httpx
from starlette.types import ASGIApp, Receive, Scope, Send

from ..util.log import Log

log = Log.create({"service": "dev_bridge"})

# Paths served by the Vite dev server in middleware mode
DEV_SERVER_PREFIXES = (
    "/@vite/",
    "/@id/",
    "/@fs/",
    "/@react-refresh",
    "/src/",
    "/node_modules/",
    "/__vite_ping",
)

HOP_BY_HOP = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

QUIET_LEVELS = {"error", "silent"}

# Served by every running Vite dev server
READY_PATH = "/@vite/client"
READY_TIMEOUT_SECONDS = 10.0


async def _read_body(receive: Receive) -> bytes:
    chunks: list[bytes] = []
    more = True
    while more:
        message = await receive()
        chunks.append(message.get("body", b""))
        more = message.get("more_body", False)
    return b"".join(chunks)


class DevAssetBridge:
    """Forwards dev-server paths to a running Vite instance.

    Attributes:
        root: Application root the dev server compiles from
        server_url: Base URL of the Vite dev server
        log_level: ``info`` logs each forwarded request, ``error`` only failures
    """

    def __init__(
        self,
        *,
        root: Path,
        server_url: str,
        log_level: str = "info",
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.root = Path(root)
        self.server_url = server_url.rstrip("/")
        self.log_level = log_level
        self._client = client

    @property
    def verbose(self) -> bool:
        return self.log_level not in QUIET_LEVELS

    async def start(self) -> None:
        """Open the upstream client and check that the dev server answers.

        Raises:
            httpx.HTTPError: If the dev server is unreachable or rejects
                the readiness request
        """
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=None)

        url = self.server_url + READY_PATH
        try:
            response = await self._client.get(url, timeout=READY_TIMEOUT_SECONDS)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            log.error("dev server not reachable", {"url": url, "error": str(exc)})
            await self.close()
            raise

        if self.verbose:
            log.info("dev asset bridge ready", {"root": str(self.root), "server_url": self.server_url})

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def handles(self, path: str) -> bool:
        return path.startswith(DEV_SERVER_PREFIXES)

    def middleware(self, app: ASGIApp) -> ASGIApp:
        """ASGI middleware factory for the server's middleware chain."""
        bridge = self

        async def dev_bridge_middleware(scope: Scope, receive: Receive, send: Send) -> None:
            if scope["type"] != "http" or not bridge.handles(scope.get("path", "")):
                await app(scope, receive, send)
                return
            await bridge.forward(scope, receive, send)

        return dev_bridge_middleware

    async def forward(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self._client is None:
            raise RuntimeError("Dev asset bridge is not started")

        url = self.server_url + scope.get("path", "")
        query = (scope.get("query_string") or b"").decode("latin-1")
        if query:
            url = f"{url}?{query}"
        headers = [
            (key.decode("latin-1"), value.decode("latin-1"))
            for key, value in scope.get("headers", [])
            if key.lower() != b"host"
        ]
        body = await _read_body(receive)
        request = self._client.build_request(scope["method"], url, headers=headers, content=body)

        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            log.error("dev server request failed", {"url": url, "error": str(exc)})
            message = f"Dev asset server unavailable at {self.server_url}".encode()
            await send({
                "type": "http.response.start",
                "status": 502,
                "headers": [
                    (b"content-type", b"text/plain; charset=utf-8"),
                    (b"content-length", str(len(message)).encode()),
                ],
            })
            await send({"type": "http.response.body", "body": message})
            return

        try:
            await send({
                "type": "http.response.start",
                "status": response.status_code,
                "headers": [
                    (key.encode("latin-1"), value.encode("latin-1"))
                    for key, value in response.headers.multi_items()
                    if key not in HOP_BY_HOP
                ],
            })
            async for chunk in response.aiter_raw():
                await send({"type": "http.response.body", "body": chunk, "more_body": True})
            await send({"type": "http.response.body", "body": b""})
        finally:
            await response.aclose()

        if self.verbose:
            log.info("forwarded", {"method": scope["method"], "path": scope.get("path"), "status": response.status_code})


BridgeFactory = Callable[..., Awaitable[DevAssetBridge]]


async def create_dev_bridge(
    *,
    root: Path,
    server_url: str,
    log_level: str = "info",
) -> DevAssetBridge:
    """Create and start a middleware-mode bridge rooted at ``root``."""
    bridge = DevAssetBridge(root=root, server_url=server_url, log_level=log_level)
    await bridge.start()
    return bridge
