"""Exception hierarchy for the composition root."""

from __future__ import annotations


class KeystoneError(Exception):
    """Base class for errors raised by Keystone itself."""


class AlreadyRunningError(KeystoneError):
    """Raised when ``listen`` is called on an instance that is already serving."""

    def __init__(self, port: int | None) -> None:
        self.port = port
        super().__init__(f"Application is already running on port: {port}")


class ListenError(KeystoneError):
    """Raised when the HTTP server stops before it reports being started."""

    def __init__(self, host: str, port: int, cause: BaseException | None = None) -> None:
        self.host = host
        self.port = port
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Server failed to listen on {host}:{port}{detail}")


class StageOrderError(KeystoneError):
    """Raised when a bootstrap stage runs before the stages it depends on."""

    def __init__(self, stage: str, missing: list[str]) -> None:
        self.stage = stage
        self.missing = missing
        super().__init__(f"Stage '{stage}' requires {', '.join(missing)} to complete first")


class AliasConflictError(KeystoneError):
    """Raised when an alias is registered twice with different targets."""

    def __init__(self, alias: str, current: str, requested: str) -> None:
        self.alias = alias
        self.current = current
        self.requested = requested
        super().__init__(f"Alias '{alias}' already points to {current}, refusing {requested}")


class SettingsError(KeystoneError):
    """Raised when environment configuration cannot be validated."""
