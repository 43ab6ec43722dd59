"""Route handler discovery.

Every module under the handlers directory, subdirectories included, whose
file name matches :data:`HANDLER_MASK` is imported, and each ``APIRouter`` it
defines at module level is included into the app::

    # src/server/handlers/users_handler.py
    from fastapi import APIRouter, Depends
    from keystone.server.context import resolve_application

    router = APIRouter(prefix="/users")

    @router.get("/")
    async def list_users(app=Depends(resolve_application)) -> list[str]:
        ...
"""

from __future__ import annotations

import importlib
import importlib.util
import re
import sys
from pathlib import Path
from types import ModuleType
from typing import Any

from fastapi import APIRouter

from ..core.aliases import AliasRegistry
from ..util.log import Log

log = Log.create({"service": "server.handlers"})

HANDLER_MASK = re.compile(r"_handler\.py$")


def handler_files(directory: Path, mask: re.Pattern[str] = HANDLER_MASK) -> list[Path]:
    """List handler files under ``directory`` and its subdirectories, sorted by path.

    Raises:
        FileNotFoundError: If ``directory`` does not exist
    """
    if not directory.is_dir():
        raise FileNotFoundError(f"Handler directory not found: {directory}")
    return sorted(p for p in directory.rglob("*") if p.is_file() and mask.search(p.name))


def _fallback_name(directory: Path, path: Path) -> str:
    relative = path.relative_to(directory).with_suffix("")
    stem = "_".join(relative.parts).replace(".", "_").replace("-", "_")
    return f"_keystone_handler_{stem}"


def _import_handler(directory: Path, path: Path) -> ModuleType:
    dotted = AliasRegistry.module_name_for(path)
    if dotted is not None:
        return importlib.import_module(dotted)

    name = _fallback_name(directory, path)
    if name in sys.modules:
        return sys.modules[name]
    spec = importlib.util.spec_from_file_location(name, str(path))
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load handler module from {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        del sys.modules[name]
        raise
    return module


def module_routers(module: ModuleType) -> list[APIRouter]:
    seen: set[int] = set()
    routers: list[APIRouter] = []
    for value in vars(module).values():
        if isinstance(value, APIRouter) and id(value) not in seen:
            seen.add(id(value))
            routers.append(value)
    return routers


def discover_handlers(web: Any, directory: Path, mask: re.Pattern[str] = HANDLER_MASK) -> list[str]:
    """Include every router found under ``directory`` into ``web``.

    Returns:
        Module names that contributed at least one router
    """
    importlib.invalidate_caches()
    loaded: list[str] = []
    for path in handler_files(directory, mask):
        module = _import_handler(directory, path)
        routers = module_routers(module)
        if not routers:
            log.warn("handler module defines no router", {"module": module.__name__, "path": str(path)})
            continue
        for router in routers:
            web.include_router(router)
        loaded.append(module.__name__)
        log.debug("handler registered", {"module": module.__name__, "routers": len(routers)})
    return loaded
