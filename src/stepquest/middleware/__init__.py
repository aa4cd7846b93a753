"""Middleware registration."""

from fastapi import FastAPI

from stepquest.middleware.error_handler import setup_error_handlers
from stepquest.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI) -> None:
    """Register error handlers and the request-id middleware.

    Logging is configured by the process entry point, not here.
    """
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
