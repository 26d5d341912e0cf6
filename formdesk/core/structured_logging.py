"""Structured logging helpers (PII-safe: identifiers only, never answers)."""

import logging
from typing import Any

from formdesk.core.request_context import get_request_id


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def build_log_context(
    *,
    user_id: str | None = None,
    form_id: str | None = None,
    submission_id: str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict.

    The current request id is included when one is bound.
    """
    request_id = request_id or get_request_id()
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = user_id
    if form_id:
        context["form_id"] = form_id
    if submission_id:
        context["submission_id"] = submission_id
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
