"""Symbolic import roots for application code.

Handler and shared modules import each other through four fixed roots
instead of relative paths::

    from shared.models import User        # @shared -> <root>/src/shared
    from server.services import billing   # @server -> <root>/src/server

Python identifiers cannot start with ``@``, so ``@shared`` is importable as
``shared``. The mapping is process-wide: an :class:`AliasFinder` sits at the
front of ``sys.meta_path`` and answers only for the registered top-level names;
submodules are then found through the package ``__path__`` as usual.
"""

from __future__ import annotations

import importlib.abc
import importlib.machinery
import importlib.util
import sys
from pathlib import Path
from typing import Dict, Optional

from ..errors import AliasConflictError
from ..util.log import Log
from .paths import AppPaths

log = Log.create({"service": "aliases"})

# alias -> path relative to the application root
DEFAULT_ALIASES: Dict[str, str] = {
    "@root": ".",
    "@client": "src/client",
    "@server": "src/server",
    "@shared": "src/shared",
}


def import_name(alias: str) -> str:
    """Return the importable module name for ``alias`` (``@shared`` -> ``shared``)."""
    name = alias.lstrip("@")
    if not name.isidentifier():
        raise ValueError(f"invalid alias: {alias}")
    return name


class AliasFinder(importlib.abc.MetaPathFinder):
    """Meta path finder that maps top-level module names to directories."""

    def __init__(self) -> None:
        self.targets: Dict[str, Path] = {}

    def find_spec(self, fullname, path=None, target=None):
        directory = self.targets.get(fullname)
        if directory is None:
            return None

        init = directory / "__init__.py"
        if init.is_file():
            return importlib.util.spec_from_file_location(
                fullname,
                init,
                submodule_search_locations=[str(directory)],
            )
        # No __init__.py: behave like a namespace package
        spec = importlib.machinery.ModuleSpec(fullname, None, is_package=True)
        spec.submodule_search_locations = [str(directory)]
        return spec


class AliasRegistry:
    """Process-wide alias registration."""

    _finder: Optional[AliasFinder] = None
    _aliases: Dict[str, Path] = {}

    @classmethod
    def _install(cls) -> AliasFinder:
        if cls._finder is None:
            cls._finder = AliasFinder()
        if cls._finder not in sys.meta_path:
            sys.meta_path.insert(0, cls._finder)
        return cls._finder

    @classmethod
    def add_alias(cls, alias: str, target: str | Path) -> Path:
        """Register ``alias`` for the ``target`` directory.

        Registering the same alias again with the same target is a no-op.

        Raises:
            AliasConflictError: If the alias already points somewhere else
        """
        name = import_name(alias)
        resolved = Path(target).resolve()
        current = cls._aliases.get(alias)
        if current is not None:
            if current == resolved:
                return resolved
            raise AliasConflictError(alias, str(current), str(resolved))

        finder = cls._install()
        finder.targets[name] = resolved
        cls._aliases[alias] = resolved
        log.debug("alias registered", {"alias": alias, "module": name, "target": str(resolved)})
        return resolved

    @classmethod
    def register_defaults(cls, paths: AppPaths) -> Dict[str, Path]:
        """Register ``@root``, ``@client``, ``@server`` and ``@shared`` under ``paths.root``."""
        return {
            alias: cls.add_alias(alias, paths.resolve(relative))
            for alias, relative in DEFAULT_ALIASES.items()
        }

    @classmethod
    def is_registered(cls, alias: str) -> bool:
        return alias in cls._aliases

    @classmethod
    def registered(cls) -> Dict[str, Path]:
        return dict(cls._aliases)

    @classmethod
    def module_name_for(cls, path: Path) -> Optional[str]:
        """Return the dotted alias module name for a file or directory, if any.

        The most specific alias wins, so ``<root>/src/server/handlers`` maps to
        ``server.handlers`` rather than ``root.src.server.handlers``.
        """
        resolved = Path(path).resolve()
        best: Optional[tuple[int, str]] = None
        for alias, directory in cls._aliases.items():
            try:
                rel = resolved.relative_to(directory)
            except ValueError:
                continue
            parts = list(rel.with_suffix("").parts) if resolved.suffix == ".py" else list(rel.parts)
            if not all(part.isidentifier() for part in parts):
                continue
            depth = len(directory.parts)
            if best is None or depth > best[0]:
                best = (depth, ".".join([import_name(alias), *parts]))
        return best[1] if best else None

    @classmethod
    def uninstall(cls) -> None:
        """Drop every alias and forget modules imported through them."""
        names = set(cls._finder.targets) if cls._finder else set()
        if cls._finder is not None and cls._finder in sys.meta_path:
            sys.meta_path.remove(cls._finder)
        cls._finder = None
        cls._aliases = {}
        for module in list(sys.modules):
            if module.split(".", 1)[0] in names:
                del sys.modules[module]
