"""Tests for the form acceptance gate."""

import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from formdesk.services.errors import AccessDeniedError, SchemaNotFoundError
from formdesk.services.form_acceptance import check_acceptance, is_accepting


NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


def _form(**overrides):
    values = dict(
        is_active=True,
        allow_multiple_submissions=False,
        require_login=False,
        confirmation_message="Thanks!",
        redirect_url=None,
        submission_limit=0,
        start_date=None,
        end_date=None,
        total_submissions=0,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_missing_form_is_not_found():
    with pytest.raises(SchemaNotFoundError) as exc:
        check_acceptance(None, now=NOW)
    assert str(exc.value) == "Form not found or inactive"


def test_inactive_form_is_not_found():
    with pytest.raises(SchemaNotFoundError):
        check_acceptance(_form(is_active=False), now=NOW)
    assert not is_accepting(_form(is_active=False), NOW)


def test_login_required_without_identity():
    with pytest.raises(AccessDeniedError) as exc:
        check_acceptance(_form(require_login=True), now=NOW)
    assert exc.value.reason == AccessDeniedError.LOGIN_REQUIRED
    assert str(exc.value) == "Login required to submit this form"


def test_login_required_with_identity_passes():
    settings = check_acceptance(_form(require_login=True), submitter_id=uuid.uuid4(), now=NOW)
    assert settings.confirmation_message == "Thanks!"


def test_duplicate_submission_rejected_for_authenticated_user():
    with pytest.raises(AccessDeniedError) as exc:
        check_acceptance(_form(), submitter_id=uuid.uuid4(), now=NOW, has_prior_submission=True)
    assert exc.value.reason == AccessDeniedError.ALREADY_SUBMITTED
    assert str(exc.value) == "You have already submitted this form"


def test_duplicates_allowed_when_multiple_submissions_enabled():
    check_acceptance(
        _form(allow_multiple_submissions=True),
        submitter_id=uuid.uuid4(),
        now=NOW,
        has_prior_submission=True,
    )


def test_anonymous_submitter_is_never_a_duplicate():
    check_acceptance(_form(), now=NOW, has_prior_submission=True)


def test_not_yet_open():
    form = _form(start_date=NOW + timedelta(days=1))
    with pytest.raises(AccessDeniedError) as exc:
        check_acceptance(form, now=NOW)
    assert exc.value.reason == AccessDeniedError.NOT_YET_OPEN
    assert not is_accepting(form, NOW)


def test_closed_after_end_date():
    form = _form(end_date=NOW - timedelta(seconds=1))
    with pytest.raises(AccessDeniedError) as exc:
        check_acceptance(form, now=NOW)
    assert exc.value.reason == AccessDeniedError.CLOSED
    assert str(exc.value) == "This form is no longer accepting submissions"


def test_window_bounds_are_inclusive():
    form = _form(start_date=NOW, end_date=NOW)
    check_acceptance(form, now=NOW)
    assert is_accepting(form, NOW)


def test_naive_dates_are_treated_as_utc():
    form = _form(end_date=datetime(2026, 6, 15, 11, 0))
    assert not is_accepting(form, NOW)


def test_limit_reached():
    form = _form(submission_limit=3, total_submissions=3)
    with pytest.raises(AccessDeniedError) as exc:
        check_acceptance(form, now=NOW)
    assert exc.value.reason == AccessDeniedError.LIMIT_REACHED
    assert str(exc.value) == "This form has reached its submission limit"
    assert not is_accepting(form, NOW)


def test_under_limit_accepts():
    form = _form(submission_limit=3, total_submissions=2)
    check_acceptance(form, now=NOW)
    assert is_accepting(form, NOW)


def test_login_checked_before_window_and_limit():
    form = _form(
        require_login=True,
        end_date=NOW - timedelta(days=1),
        submission_limit=1,
        total_submissions=1,
    )
    with pytest.raises(AccessDeniedError) as exc:
        check_acceptance(form, now=NOW)
    assert exc.value.reason == AccessDeniedError.LOGIN_REQUIRED


def test_duplicate_checked_before_window():
    form = _form(start_date=NOW + timedelta(days=1))
    with pytest.raises(AccessDeniedError) as exc:
        check_acceptance(form, submitter_id=uuid.uuid4(), now=NOW, has_prior_submission=True)
    assert exc.value.reason == AccessDeniedError.ALREADY_SUBMITTED
