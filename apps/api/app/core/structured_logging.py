"""Structured logging helpers."""

import logging
from typing import Any

from app.core.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for the API process."""
    level_name = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )


def build_log_context(
    *,
    client_id: int | None = None,
    app_id: str | None = None,
    user_id: int | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict with only the provided fields."""
    context: dict[str, Any] = {}
    if client_id is not None:
        context["client_id"] = client_id
    if app_id:
        context["app_id"] = app_id
    if user_id is not None:
        context["user_id"] = user_id
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
