"""Exception handlers installed on every Keystone app.

Unhandled route errors become an :class:`ErrorResponse` with status 500.
Production responses omit the exception text; it is always logged.
"""

from __future__ import annotations

import traceback

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..util.log import Log
from .schemas import ErrorInfo, ErrorResponse

log = Log.create({"service": "server.errors"})


def error_response(
    status_code: int,
    code: str,
    message: str,
    *,
    details: dict[str, object] | list[object] | str | None = None,
    request_id: str | None = None,
) -> JSONResponse:
    body = ErrorResponse(error=ErrorInfo(code=code, message=message, details=details))
    response = JSONResponse(body.model_dump(exclude_none=True), status_code=status_code)
    if request_id:
        response.headers["X-Request-ID"] = request_id
    return response


def request_id_of(request: Request) -> str | None:
    value = getattr(request.state, "request_id", None)
    return value if isinstance(value, str) and value else None


def register_error_handlers(web: FastAPI, *, expose_details: bool = True) -> None:
    """Install JSON error handlers on ``web``.

    Args:
        web: The application to decorate
        expose_details: Include exception text and validation errors in responses
    """

    @web.exception_handler(RequestValidationError)
    async def on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(
            422,
            "validation_error",
            "Request validation failed",
            details={"errors": jsonable_encoder(exc.errors())} if expose_details else None,
            request_id=request_id_of(request),
        )

    @web.exception_handler(Exception)
    async def on_unhandled(request: Request, exc: Exception) -> JSONResponse:
        rid = request_id_of(request)
        log.error("handler failed", {
            "request_id": rid,
            "method": request.method,
            "path": request.url.path,
            "error": exc,
            "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        })
        return error_response(
            500,
            "internal_error",
            "Internal server error",
            details={"error": str(exc)} if expose_details else None,
            request_id=rid,
        )
