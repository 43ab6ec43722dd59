"""Filesystem layout of a Keystone application root."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


def resolve(root: str | Path, path: str | Path = ".") -> Path:
    """Resolve ``path`` against the application root into an absolute path."""
    return (Path(root) / path).resolve()


@dataclass(frozen=True)
class AppPaths:
    """Fixed directories the server reads from, relative to one root.

    Attributes:
        root: Absolute application root directory
    """

    root: Path

    def __post_init__(self) -> None:
        object.__setattr__(self, "root", Path(self.root).resolve())

    def resolve(self, path: str | Path = ".") -> Path:
        return resolve(self.root, path)

    @property
    def assets(self) -> Path:
        """Pre-built assets served under ``/assets/``."""
        return self.resolve("assets")

    @property
    def dist_assets(self) -> Path:
        """Built CSS/JS output of the client bundle."""
        return self.resolve("dist/assets")

    @property
    def dist_client(self) -> Path:
        """Full client bundle served in production."""
        return self.resolve("dist/client")

    @property
    def handlers(self) -> Path:
        """Directory scanned for route handler modules."""
        return self.resolve("src/server/handlers")

    @property
    def client(self) -> Path:
        return self.resolve("src/client")

    @property
    def server(self) -> Path:
        return self.resolve("src/server")

    @property
    def shared(self) -> Path:
        return self.resolve("src/shared")
