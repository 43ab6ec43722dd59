"""Inline built stylesheets into server-rendered HTML."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Optional

STYLESHEET_SUFFIX = ".css"


def style_tag(content: str) -> str:
    return f'<style type="text/css">{content}</style>'


async def collect_stylesheets(directory: Path) -> Optional[str]:
    """Return every ``.css`` file in ``directory`` wrapped in a style tag.

    Files keep the order the directory listing returns them in. Returns
    ``None`` when ``directory`` does not exist; read errors propagate.
    """
    if not directory.is_dir():
        return None

    names = await asyncio.to_thread(os.listdir, directory)
    blocks: list[str] = []
    for name in names:
        if not name.endswith(STYLESHEET_SUFFIX):
            continue
        content = await asyncio.to_thread((directory / name).read_text, encoding="utf-8")
        blocks.append(style_tag(content))
    return "\n".join(blocks)
