"""Process entry point: build the application once and start it.

``await bootstrap()`` is the only call a process needs. The first call
resolves :class:`Settings` from the environment, constructs the
:class:`Application` and runs its stages; every later call returns that same
instance without running anything again. Concurrent first calls wait for the
one already in progress.

If a stage fails the instance is kept as it is, partially initialised, and
later calls return it unchanged. Restart the process to recover.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

from .application import Application
from .core.config import Settings
from .server.dev_bridge import BridgeFactory, create_dev_bridge
from .util.log import Log, LogFormat, LogLevel

log = Log.create({"service": "bootstrap"})


def configure_logging(settings: Settings) -> None:
    Log.configure(
        level=LogLevel.parse(settings.log_level) if settings.log_level else None,
        format=LogFormat.parse(settings.log_format) if settings.log_format else None,
    )


class Bootstrap:
    """One-shot latch holding the process-wide application."""

    _instance: Optional[Application] = None
    _lock: Optional[asyncio.Lock] = None

    @classmethod
    async def run(
        cls,
        settings: Optional[Settings] = None,
        *,
        root: Optional[Path] = None,
        bridge_factory: BridgeFactory = create_dev_bridge,
    ) -> Application:
        if cls._lock is None:
            cls._lock = asyncio.Lock()
        async with cls._lock:
            if cls._instance is None:
                if settings is None:
                    settings = Settings.from_env(**({"root": root} if root is not None else {}))
                configure_logging(settings)
                cls._instance = Application(settings, bridge_factory=bridge_factory)
                await cls._instance.initialize()
            else:
                log.debug("bootstrap already done", {"mode": cls._instance.mode.value})
        return cls._instance

    @classmethod
    def instance(cls) -> Optional[Application]:
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Forget the current instance. Tests only; nothing is shut down."""
        cls._instance = None
        cls._lock = None


async def bootstrap(
    settings: Optional[Settings] = None,
    *,
    root: Optional[Path] = None,
    bridge_factory: BridgeFactory = create_dev_bridge,
) -> Application:
    """Return the process-wide :class:`Application`, creating it on first call.

    Args:
        settings: Use these instead of reading the environment
        root: Application root when ``settings`` is not given
        bridge_factory: Builds the dev asset bridge outside production
    """
    return await Bootstrap.run(settings, root=root, bridge_factory=bridge_factory)
