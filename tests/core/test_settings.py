from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from keystone.core.config import DEFAULT_HOST, DEFAULT_PORT, ExecutionMode, Settings
from keystone.core.paths import AppPaths, resolve
from keystone.errors import SettingsError


def test_defaults_when_environment_is_empty(tmp_path: Path) -> None:
    settings = Settings.from_env({}, root=tmp_path)

    assert settings.port == DEFAULT_PORT == 7456
    assert settings.host == DEFAULT_HOST == "0.0.0.0"
    assert settings.mode is ExecutionMode.DEVELOPMENT
    assert settings.is_production is False
    assert settings.is_test is False


def test_reads_port_host_and_root() -> None:
    settings = Settings.from_env({"PORT": "8123", "HOST": "127.0.0.1", "KEYSTONE_ROOT": "/srv/app"})

    assert settings.port == 8123
    assert settings.host == "127.0.0.1"
    assert settings.root == Path("/srv/app")


@pytest.mark.parametrize(
    ("environ", "production", "test", "mode"),
    [
        ({"NODE_ENV": "production"}, True, False, ExecutionMode.PRODUCTION),
        ({"NODE_ENV": "test"}, False, True, ExecutionMode.TEST),
        ({"VITE_TEST_BUILD": "1"}, False, True, ExecutionMode.TEST),
        ({"NODE_ENV": "development"}, False, False, ExecutionMode.DEVELOPMENT),
        ({"NODE_ENV": "Production"}, False, False, ExecutionMode.DEVELOPMENT),
        ({"NODE_ENV": "production", "VITE_TEST_BUILD": "true"}, True, True, ExecutionMode.PRODUCTION),
    ],
)
def test_mode_classification(environ, production, test, mode) -> None:  # type: ignore[no-untyped-def]
    settings = Settings.from_env(environ)

    assert settings.is_production is production
    assert settings.is_test is test
    assert settings.mode is mode


def test_test_build_flag_counts_any_non_empty_value() -> None:
    assert Settings.from_env({"VITE_TEST_BUILD": "0"}).is_test is True
    assert Settings.from_env({"VITE_TEST_BUILD": ""}).is_test is False


def test_overrides_win_over_environment() -> None:
    settings = Settings.from_env({"PORT": "9000"}, port=9100)
    assert settings.port == 9100


@pytest.mark.parametrize("port", ["http", "0", "70000"])
def test_invalid_port_raises_settings_error(port: str) -> None:
    with pytest.raises(SettingsError):
        Settings.from_env({"PORT": port})


def test_settings_are_frozen() -> None:
    settings = Settings.from_env({})
    with pytest.raises(ValidationError):
        settings.port = 1  # type: ignore[misc]


def test_resolve_is_rooted_at_application_directory(tmp_path: Path) -> None:
    assert resolve(tmp_path, "src/client") == (tmp_path / "src" / "client").resolve()
    assert resolve(tmp_path) == tmp_path.resolve()


def test_app_paths_layout(tmp_path: Path) -> None:
    paths = AppPaths(tmp_path)

    assert paths.assets == tmp_path.resolve() / "assets"
    assert paths.dist_assets == tmp_path.resolve() / "dist" / "assets"
    assert paths.dist_client == tmp_path.resolve() / "dist" / "client"
    assert paths.handlers == tmp_path.resolve() / "src" / "server" / "handlers"
