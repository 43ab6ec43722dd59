"""Pydantic schemas for the FastAPI transport layer."""

from __future__ import annotations

from pydantic import BaseModel


class ErrorInfo(BaseModel):
    code: str
    message: str
    details: dict[str, object] | list[object] | str | None = None


class ErrorResponse(BaseModel):
    error: ErrorInfo
