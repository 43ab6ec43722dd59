from collections.abc import Iterator
from pathlib import Path

import pytest

from keystone.bootstrap import Bootstrap
from keystone.core.aliases import AliasRegistry
from keystone.core.config import Settings


@pytest.fixture(autouse=True)
def _process_state_teardown() -> Iterator[None]:
    yield
    Bootstrap.reset()
    AliasRegistry.uninstall()


@pytest.fixture
def app_root(tmp_path: Path) -> Path:
    """Minimal application root with an empty handlers directory."""
    (tmp_path / "src" / "server" / "handlers").mkdir(parents=True)
    return tmp_path


@pytest.fixture
def test_settings(app_root: Path) -> Settings:
    return Settings(root=app_root, node_env="test")


class FakeBridge:
    """Stand-in for the dev asset bridge that records what happened to it."""

    def __init__(self) -> None:
        self.wrapped = 0
        self.closed = False

    def middleware(self, app):  # type: ignore[no-untyped-def]
        self.wrapped += 1
        return app

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_bridge() -> FakeBridge:
    return FakeBridge()


@pytest.fixture
def bridge_factory(fake_bridge: FakeBridge):  # type: ignore[no-untyped-def]
    calls: list[dict[str, object]] = []

    async def factory(**kwargs: object) -> FakeBridge:
        calls.append(kwargs)
        return fake_bridge

    factory.calls = calls  # type: ignore[attr-defined]
    return factory


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
