"""Process configuration resolved once from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import SettingsError

DEFAULT_PORT = 7456
DEFAULT_HOST = "0.0.0.0"
DEFAULT_DEV_SERVER_URL = "http://localhost:5173"

# Shared with the frontend toolchain
MODE_ENV = "NODE_ENV"
TEST_BUILD_ENV = "VITE_TEST_BUILD"

PRODUCTION = "production"
TEST = "test"


class ExecutionMode(str, Enum):
    """Which bootstrap stages run.

    PRODUCTION skips the dev asset bridge and serves the built client bundle.
    TEST runs every registration stage but never binds a socket.
    DEVELOPMENT runs everything, including the dev asset bridge.
    """

    PRODUCTION = "production"
    TEST = "test"
    DEVELOPMENT = "development"


class Settings(BaseModel):
    """Immutable server configuration.

    Build it with :meth:`from_env` at process start and pass it down; nothing
    downstream reads the environment again.
    """

    model_config = ConfigDict(frozen=True)

    root: Path = Field(default_factory=Path.cwd)
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    host: str = DEFAULT_HOST
    node_env: str | None = None
    test_build: bool = False
    dev_server_url: str = DEFAULT_DEV_SERVER_URL
    log_level: str | None = None
    log_format: str | None = None

    @property
    def is_production(self) -> bool:
        return self.node_env == PRODUCTION

    @property
    def is_test(self) -> bool:
        return self.node_env == TEST or self.test_build

    @property
    def mode(self) -> ExecutionMode:
        if self.is_production:
            return ExecutionMode.PRODUCTION
        if self.is_test:
            return ExecutionMode.TEST
        return ExecutionMode.DEVELOPMENT

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: object) -> "Settings":
        """Read settings from ``environ`` (``os.environ`` by default).

        Empty variables count as unset. Keyword overrides win over the
        environment.

        Raises:
            SettingsError: If a value fails validation (e.g. a non-numeric PORT)
        """
        env = os.environ if environ is None else environ

        def value(key: str) -> str | None:
            text = str(env.get(key) or "").strip()
            return text or None

        data: dict[str, object] = {
            "node_env": value(MODE_ENV),
            "test_build": bool(env.get(TEST_BUILD_ENV)),
        }
        for field, key in (
            ("root", "KEYSTONE_ROOT"),
            ("port", "PORT"),
            ("host", "HOST"),
            ("dev_server_url", "VITE_DEV_SERVER_URL"),
            ("log_level", "KEYSTONE_LOG_LEVEL"),
            ("log_format", "KEYSTONE_LOG_FORMAT"),
        ):
            found = value(key)
            if found is not None:
                data[field] = found
        data.update(overrides)

        try:
            return cls(**data)
        except ValidationError as error:
            raise SettingsError(f"Invalid server configuration: {error}") from error
