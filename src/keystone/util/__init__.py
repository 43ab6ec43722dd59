"""Utility helpers."""

from .log import Log, LogFormat, LogLevel, Logger

__all__ = ["Log", "LogFormat", "LogLevel", "Logger"]
