"""Composition root for the Keystone HTTP server.

An :class:`Application` owns one FastAPI app and wires its collaborators
onto it as an ordered pipeline of named :class:`Stage` objects:

1. ``aliases``     register ``@root``/``@client``/``@server``/``@shared``
2. ``middleware``  add the middleware adapter
3. ``dev_bridge``  splice the Vite dev bridge in (not in production)
4. ``context``     expose the application on ``app.state``
5. ``handlers``    include routers discovered in ``src/server/handlers``
6. ``static``      mount ``/assets`` and, in production, the client bundle
7. ``listen``      start uvicorn (not in test mode)

Each stage is awaited before the next starts. A failing stage is logged and
its exception propagates unchanged; nothing is rolled back.

Example:
    from keystone import Application, Settings

    application = Application(Settings.from_env())
    await application.initialize()
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

import uvicorn
from fastapi import FastAPI
from rich.console import Console

from .core.aliases import AliasRegistry
from .core.config import ExecutionMode, Settings
from .core.paths import AppPaths
from .errors import AlreadyRunningError, ListenError, StageOrderError
from .server.assets import register_static_assets
from .server.context import decorate_app
from .server.dev_bridge import BridgeFactory, DevAssetBridge, create_dev_bridge
from .server.errors import register_error_handlers
from .server.handlers import discover_handlers
from .server.middleware import AccessLogMiddleware, MiddlewareChain, register_middleware_adapter
from .server.stylesheets import collect_stylesheets
from .util.log import Log

log = Log.create({"service": "application"})
console = Console()

LISTEN_POLL_SECONDS = 0.05


@dataclass(frozen=True)
class Stage:
    """One named bootstrap step.

    Attributes:
        name: Stage identifier, recorded in ``completed_stages``
        run: Coroutine function performing the step
        requires: Stages that must have completed first
        enabled: False when the current mode skips this stage
        skip_reason: Logged when the stage is skipped
    """
    name: str
    run: Callable[[], Awaitable[None]]
    requires: tuple[str, ...] = ()
    enabled: bool = True
    skip_reason: Optional[str] = None


class Application:
    """Owns the FastAPI app and the dev asset bridge for one server process."""

    def __init__(
        self,
        settings: Settings,
        *,
        bridge_factory: BridgeFactory = create_dev_bridge,
    ) -> None:
        self.settings = settings
        self.paths = AppPaths(settings.root)
        self.asset_directory: Path = self.paths.assets
        self.completed_stages: List[str] = []
        self.skipped_stages: List[str] = []

        self._bridge_factory = bridge_factory
        self._dev_bridge: Optional[DevAssetBridge] = None
        self._chain: Optional[MiddlewareChain] = None
        self._server: Optional[uvicorn.Server] = None
        self._serve_task: Optional[asyncio.Task[None]] = None
        self._running = False
        self._port: Optional[int] = None
        self._host: Optional[str] = None

        docs = None if settings.is_production else "/docs"
        self._web = FastAPI(title="Keystone", docs_url=docs, redoc_url=None)
        register_error_handlers(self._web, expose_details=not settings.is_production)

    # Mode

    @property
    def mode(self) -> ExecutionMode:
        return self.settings.mode

    @property
    def is_production(self) -> bool:
        return self.settings.is_production

    @property
    def is_test(self) -> bool:
        return self.settings.is_test

    # Handles

    @property
    def web(self) -> FastAPI:
        return self._web

    @property
    def dev_bridge(self) -> Optional[DevAssetBridge]:
        return self._dev_bridge

    @property
    def middleware(self) -> MiddlewareChain:
        if self._chain is None:
            raise StageOrderError("middleware consumer", ["middleware"])
        return self._chain

    @property
    def running(self) -> bool:
        return self._running

    @property
    def port(self) -> Optional[int]:
        return self._port

    @property
    def host(self) -> Optional[str]:
        return self._host

    def resolve(self, path: str | Path = ".") -> Path:
        return self.paths.resolve(path)

    # Pipeline

    def stages(self) -> List[Stage]:
        return [
            Stage("aliases", self.register_aliases),
            Stage("middleware", self.register_middleware),
            Stage(
                "dev_bridge",
                self.start_dev_bridge,
                requires=("middleware",),
                enabled=not self.is_production,
                skip_reason="production",
            ),
            Stage("context", self.register_context),
            Stage("handlers", self.register_handlers, requires=("aliases",)),
            Stage("static", self.register_static, requires=("middleware",)),
            Stage("listen", self.listen, enabled=not self.is_test, skip_reason="test"),
        ]

    async def initialize(self) -> "Application":
        """Run every stage in order."""
        log.info("bootstrapping", {"mode": self.mode.value, "root": str(self.paths.root)})
        for stage in self.stages():
            await self.run_stage(stage)
        return self

    async def run_stage(self, stage: Stage) -> None:
        if not stage.enabled:
            self.skipped_stages.append(stage.name)
            log.info("stage skipped", {"stage": stage.name, "reason": stage.skip_reason})
            return

        missing = [name for name in stage.requires if name not in self.completed_stages]
        if missing:
            raise StageOrderError(stage.name, missing)

        with log.time("stage", {"stage": stage.name}):
            await stage.run()
        self.completed_stages.append(stage.name)

    async def register_aliases(self) -> None:
        AliasRegistry.register_defaults(self.paths)

    async def register_middleware(self) -> None:
        self._chain = register_middleware_adapter(self._web)
        # Outermost, around the adapter
        self._web.add_middleware(AccessLogMiddleware, enabled=self.mode == ExecutionMode.DEVELOPMENT)

    async def start_dev_bridge(self) -> None:
        self._dev_bridge = await self._bridge_factory(
            root=self.paths.root,
            server_url=self.settings.dev_server_url,
            log_level="error" if self.is_test else "info",
        )
        self.middleware.use_asgi(self._dev_bridge.middleware)

    async def register_context(self) -> None:
        decorate_app(self._web, self)

    async def register_handlers(self) -> None:
        modules = discover_handlers(self._web, self.paths.handlers)
        log.info("handlers loaded", {"count": len(modules)})

    async def register_static(self) -> None:
        register_static_assets(
            self._web,
            self.middleware,
            self.paths,
            production=self.is_production,
        )

    # Lifecycle

    async def _serve(self, server: uvicorn.Server) -> None:
        try:
            await server.serve()
        except SystemExit as exc:
            # uvicorn exits the process when it cannot bind
            raise ListenError(server.config.host, server.config.port, exc) from exc

    async def listen(self, port: Optional[int] = None, host: Optional[str] = None) -> None:
        """Bind and start serving in the background.

        Args:
            port: Port to listen on, ``settings.port`` by default
            host: Interface to bind, ``settings.host`` by default

        Raises:
            AlreadyRunningError: If this instance is serving or starting to
            ListenError: If uvicorn stops before it reports being started
        """
        if self._running or self._server is not None:
            raise AlreadyRunningError(self._port)

        self._port = int(port if port is not None else self.settings.port)
        self._host = host or self.settings.host

        config = uvicorn.Config(self._web, host=self._host, port=self._port, log_level="warning")
        server = uvicorn.Server(config)
        self._server = server
        task = asyncio.create_task(self._serve(server))
        self._serve_task = task

        while not server.started:
            if task.done():
                self._server = None
                self._serve_task = None
                error = None if task.cancelled() else task.exception()
                if isinstance(error, ListenError):
                    raise error
                raise ListenError(self._host, self._port, error)
            await asyncio.sleep(LISTEN_POLL_SECONDS)

        self._running = True
        console.print(f"App is listening on port: {self._port}", highlight=False)
        log.info("listening", {"host": self._host, "port": self._port})

    async def shutdown(self) -> None:
        """Stop serving and close the dev bridge.

        ``running`` stays set: a shut down application cannot listen again.
        """
        if self._server is not None:
            log.info("stopping server", {"port": self._port})
            self._server.should_exit = True
            if self._serve_task is not None:
                results = await asyncio.gather(self._serve_task, return_exceptions=True)
                errors = [str(item) for item in results if isinstance(item, BaseException)]
                if errors:
                    log.warn("server stopped with errors", {"errors": errors})
        if self._dev_bridge is not None:
            await self._dev_bridge.close()

    # Rendering support

    async def get_stylesheets(self) -> Optional[str]:
        """Inline ``dist/assets/*.css`` for server-rendered pages.

        Returns ``None`` when nothing has been built yet.
        """
        return await collect_stylesheets(self.paths.dist_assets)
