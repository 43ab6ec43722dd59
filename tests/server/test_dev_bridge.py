from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from pathlib import Path

import httpx
import pytest
from fastapi import FastAPI

from keystone.server.dev_bridge import READY_PATH, DevAssetBridge, create_dev_bridge
from keystone.server.middleware import register_middleware_adapter

DEV_SERVER = "http://vite.local:5173"

Handler = Callable[[httpx.Request], httpx.Response]


class _ChunkedBody(httpx.AsyncByteStream):
    """Upstream body that is streamed, not preloaded."""

    def __init__(self, *chunks: bytes) -> None:
        self.chunks = chunks

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            yield chunk


def _upstream(handler: Handler) -> httpx.AsyncClient:
    """Mock dev server that answers the readiness request and defers the rest."""

    def dispatch(request: httpx.Request) -> httpx.Response:
        if request.url.path == READY_PATH:
            return httpx.Response(200, text="// vite client")
        return handler(request)

    return httpx.AsyncClient(transport=httpx.MockTransport(dispatch))


def _web(bridge: DevAssetBridge) -> FastAPI:
    web = FastAPI()
    chain = register_middleware_adapter(web)
    chain.use_asgi(bridge.middleware)

    @web.get("/api/ping")
    async def ping() -> dict[str, bool]:
        return {"ok": True}

    return web


def _client(web: FastAPI) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=web), base_url="http://testserver")


@pytest.mark.anyio
async def test_dev_server_paths_are_forwarded(tmp_path: Path) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            headers={"content-type": "application/javascript"},
            stream=_ChunkedBody(b"export ", b"default 1"),
        )

    bridge = DevAssetBridge(root=tmp_path, server_url=DEV_SERVER, log_level="error", client=_upstream(handler))
    await bridge.start()

    async with _client(_web(bridge)) as client:
        response = await client.get("/src/main.ts", params={"t": "1"})

    await bridge.close()

    assert response.status_code == 200
    assert response.text == "export default 1"
    assert response.headers["content-type"] == "application/javascript"
    assert len(seen) == 1
    assert str(seen[0].url) == f"{DEV_SERVER}/src/main.ts?t=1"
    assert seen[0].headers["host"] == "vite.local:5173"


@pytest.mark.anyio
async def test_other_paths_reach_the_app(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected upstream call: {request.url}")

    bridge = DevAssetBridge(root=tmp_path, server_url=DEV_SERVER, client=_upstream(handler))
    await bridge.start()

    async with _client(_web(bridge)) as client:
        response = await client.get("/api/ping")

    await bridge.close()

    assert response.json() == {"ok": True}


@pytest.mark.anyio
async def test_unreachable_dev_server_answers_bad_gateway(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    bridge = DevAssetBridge(root=tmp_path, server_url=DEV_SERVER, log_level="error", client=_upstream(handler))
    await bridge.start()

    async with _client(_web(bridge)) as client:
        response = await client.get("/src/main.ts")

    await bridge.close()

    assert response.status_code == 502
    assert DEV_SERVER in response.text


@pytest.mark.anyio
async def test_start_fails_when_dev_server_is_down(tmp_path: Path) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("All connection attempts failed", request=request)

    upstream = httpx.AsyncClient(transport=httpx.MockTransport(refuse))
    bridge = DevAssetBridge(root=tmp_path, server_url=DEV_SERVER, log_level="error", client=upstream)

    with pytest.raises(httpx.ConnectError):
        await bridge.start()

    assert upstream.is_closed


@pytest.mark.anyio
async def test_start_fails_when_dev_server_rejects_readiness(tmp_path: Path) -> None:
    upstream = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
    bridge = DevAssetBridge(root=tmp_path, server_url=DEV_SERVER, log_level="error", client=upstream)

    with pytest.raises(httpx.HTTPStatusError):
        await bridge.start()

    with pytest.raises(RuntimeError, match="not started"):
        await bridge.forward({"type": "http", "method": "GET", "path": "/src/x.ts", "headers": []}, None, None)  # type: ignore[arg-type]


@pytest.mark.anyio
async def test_create_dev_bridge_propagates_unreachable_server() -> None:
    # Nothing listens on port 1
    with pytest.raises(httpx.HTTPError):
        await create_dev_bridge(root=Path("."), server_url="http://127.0.0.1:1", log_level="error")


def test_quiet_levels_and_prefixes(tmp_path: Path) -> None:
    bridge = DevAssetBridge(root=tmp_path, server_url=DEV_SERVER + "/", log_level="error")

    assert bridge.server_url == DEV_SERVER
    assert bridge.verbose is False
    assert bridge.handles("/@vite/client")
    assert bridge.handles("/node_modules/.vite/deps/react.js")
    assert not bridge.handles("/api/users")
    assert not bridge.handles("/assets/logo.png")


@pytest.mark.anyio
async def test_forward_before_start_is_an_error(tmp_path: Path) -> None:
    bridge = DevAssetBridge(root=tmp_path, server_url=DEV_SERVER)

    async def receive():  # type: ignore[no-untyped-def]
        return {"type": "http.request", "body": b""}

    async def send(message):  # type: ignore[no-untyped-def]
        return None

    with pytest.raises(RuntimeError, match="not started"):
        await bridge.forward({"type": "http", "method": "GET", "path": "/src/x.ts", "headers": []}, receive, send)
