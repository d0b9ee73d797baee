"""Middleware registration."""

from fastapi import FastAPI

from bossraid.config import Settings
from bossraid.middleware.error_handler import setup_error_handlers
from bossraid.middleware.logging import setup_logging
from bossraid.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure logging, register error handlers and the request-id middleware."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
