"""Serve command - bootstrap the application and block until interrupted."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from rich.console import Console

from ...bootstrap import bootstrap
from ...util.log import Log

log = Log.create({"service": "cli.serve"})
console = Console()


async def _wait_forever() -> None:
    await asyncio.Future()


async def serve(*, wait: Callable[[], Awaitable[None]] | None = None) -> None:
    application = await bootstrap()
    if not application.running:
        log.info("not listening", {"mode": application.mode.value})

    block = wait or _wait_forever
    try:
        await block()
    finally:
        await application.shutdown()
        log.info("server stopped", {"port": application.port})


def serve_command() -> None:
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        console.print("\nStopping Keystone...")
