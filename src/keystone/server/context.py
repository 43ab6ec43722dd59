"""Back-reference from the FastAPI app to its owning application."""

from __future__ import annotations

import weakref
from typing import TYPE_CHECKING, Any

from fastapi import Request

if TYPE_CHECKING:
    from ..application import Application

APPLICATION_STATE_KEY = "application"


def decorate_app(web: Any, application: "Application") -> None:
    """Expose ``application`` to handlers as ``request.app.state.application``.

    The app only holds a weak proxy; the application owns the app, not the
    other way round.
    """
    setattr(web.state, APPLICATION_STATE_KEY, weakref.proxy(application))


def application_of(web: Any) -> "Application":
    try:
        return getattr(web.state, APPLICATION_STATE_KEY)
    except AttributeError as exc:
        raise RuntimeError("Application context is not initialized") from exc


def resolve_application(request: Request) -> "Application":
    """FastAPI dependency returning the application serving ``request``."""
    return application_of(request.app)
