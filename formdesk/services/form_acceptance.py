"""Form acceptance gate: may this submitter submit to this form right now?"""

from __future__ import annotations

from datetime import datetime, timezone

from formdesk.services.errors import AccessDeniedError, SchemaNotFoundError
from formdesk.services.field_schema import FormSettings


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def limit_reached_error() -> AccessDeniedError:
    return AccessDeniedError(
        AccessDeniedError.LIMIT_REACHED, "This form has reached its submission limit"
    )


def already_submitted_error() -> AccessDeniedError:
    return AccessDeniedError(
        AccessDeniedError.ALREADY_SUBMITTED, "You have already submitted this form"
    )


def limit_reached(settings: FormSettings, total_submissions: int) -> bool:
    return settings.submission_limit > 0 and (total_submissions or 0) >= settings.submission_limit


def is_accepting(form, now: datetime) -> bool:
    """True when the form is active, inside its window, and under its limit."""
    if form is None or not form.is_active:
        return False
    settings = FormSettings.from_model(form)
    now = _as_utc(now)
    if settings.start_date and now < _as_utc(settings.start_date):
        return False
    if settings.end_date and now > _as_utc(settings.end_date):
        return False
    return not limit_reached(settings, form.total_submissions)


def check_acceptance(
    form,
    *,
    submitter_id=None,
    now: datetime,
    has_prior_submission: bool = False,
) -> FormSettings:
    """
    Run the acceptance checks in order and raise on the first failure.

    Order: existence/active, login, duplicate, not-yet-open, closed, limit.
    Anonymous submitters are never treated as duplicates.

    Raises:
        SchemaNotFoundError: form missing or inactive
        AccessDeniedError: any other refusal (see ``reason``)
    """
    if form is None or not form.is_active:
        raise SchemaNotFoundError()

    settings = FormSettings.from_model(form)
    now = _as_utc(now)

    if settings.require_login and submitter_id is None:
        raise AccessDeniedError(
            AccessDeniedError.LOGIN_REQUIRED, "Login required to submit this form"
        )
    if (
        not settings.allow_multiple_submissions
        and submitter_id is not None
        and has_prior_submission
    ):
        raise already_submitted_error()
    if settings.start_date and now < _as_utc(settings.start_date):
        raise AccessDeniedError(
            AccessDeniedError.NOT_YET_OPEN, "This form is not yet open for submissions"
        )
    if settings.end_date and now > _as_utc(settings.end_date):
        raise AccessDeniedError(
            AccessDeniedError.CLOSED, "This form is no longer accepting submissions"
        )
    if limit_reached(settings, form.total_submissions):
        raise limit_reached_error()
    return settings
