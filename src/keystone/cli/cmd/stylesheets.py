"""Stylesheets command - print the inline style markup for the built client."""

from __future__ import annotations

import asyncio
from typing import Optional

from ...core.config import Settings
from ...core.paths import AppPaths
from ...server.stylesheets import collect_stylesheets


async def render_stylesheets(settings: Settings) -> Optional[str]:
    return await collect_stylesheets(AppPaths(settings.root).dist_assets)


def stylesheets_command() -> Optional[str]:
    return asyncio.run(render_stylesheets(Settings.from_env()))
