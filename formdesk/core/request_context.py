"""Per-request identifier used to correlate log lines."""

import uuid
from contextvars import ContextVar, Token


REQUEST_ID_HEADER = "X-Request-ID"

_REQUEST_ID: ContextVar[str | None] = ContextVar("request_id", default=None)


def start_request_context(incoming_id: str | None) -> Token:
    """Bind the caller's request id (or a fresh one) and return context token."""
    request_id = (incoming_id or "").strip()[:128] or uuid.uuid4().hex
    return _REQUEST_ID.set(request_id)


def reset_request_context(token: Token) -> None:
    _REQUEST_ID.reset(token)


def get_request_id() -> str | None:
    return _REQUEST_ID.get()
