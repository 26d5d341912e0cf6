"""Tests for log context helpers."""

from formdesk.core.request_context import (
    get_request_id,
    reset_request_context,
    start_request_context,
)
from formdesk.core.structured_logging import build_log_context


def test_empty_values_are_dropped():
    assert build_log_context(user_id=None, form_id="f-1", submission_id="") == {"form_id": "f-1"}


def test_bound_request_id_is_included():
    token = start_request_context("abc-123")
    try:
        assert build_log_context(form_id="f-1") == {"form_id": "f-1", "request_id": "abc-123"}
        assert build_log_context(request_id="explicit")["request_id"] == "explicit"
    finally:
        reset_request_context(token)
    assert get_request_id() is None


def test_missing_request_id_is_generated():
    token = start_request_context("   ")
    try:
        request_id = get_request_id()
        assert request_id
        assert len(request_id) == 32
    finally:
        reset_request_context(token)
