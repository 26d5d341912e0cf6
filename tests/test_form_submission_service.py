"""Tests for submission persistence, review, and edits."""

import io
import os
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from formdesk.db.models import Form, FormSubmission
from formdesk.services import form_service, form_submission_service
from formdesk.services.errors import (
    AccessDeniedError,
    InvalidTransitionError,
    PersistenceFailureError,
    SchemaNotFoundError,
    SubmissionValidationError,
)
from formdesk.services.form_submission_service import (
    IncomingFile,
    RequestMetadata,
    UploadPolicy,
)
from formdesk.services.submission_validation import UploadedFile


def _comment_form(make_form, **settings):
    return make_form(
        fields=[
            {
                "name": "comment",
                "label": "Comment",
                "type": "text",
                "validation": {"required": True, "min_length": 3},
            }
        ],
        **settings,
    )


def _submit(db, file_store, form, submitter=None, answers=None, now=None, **kwargs):
    submission, _ = form_submission_service.create_submission(
        db,
        file_store,
        form.id,
        submitter,
        answers if answers is not None else {"comment": "hello"},
        now=now,
        **kwargs,
    )
    return submission


def _form_row(db, form_id) -> Form:
    db.expire_all()
    return db.get(Form, form_id)


# =============================================================================
# Create
# =============================================================================

def test_create_submission_persists_and_updates_stats(db, file_store, make_form, regular_user, now):
    form = _comment_form(make_form)

    submission = _submit(
        db,
        file_store,
        form,
        regular_user,
        now=now,
        metadata=RequestMetadata(ip_address="10.0.0.1", user_agent="pytest", completion_time=42),
    )

    assert submission.status == "pending"
    assert submission.submission_data == {"comment": "hello"}
    assert submission.submitted_by == regular_user.id
    assert submission.ip_address == "10.0.0.1"
    assert submission.completion_time == 42
    assert [f["name"] for f in submission.schema_snapshot] == ["comment"]

    refreshed = _form_row(db, form.id)
    assert refreshed.total_submissions == 1
    assert refreshed.unique_submitters == 1
    assert refreshed.last_submission_at == now


def test_validation_failure_raises_with_all_messages(db, file_store, make_form, regular_user):
    form = _comment_form(make_form)

    with pytest.raises(SubmissionValidationError) as exc:
        _submit(db, file_store, form, regular_user, answers={"comment": "hi"})

    assert exc.value.errors == ["Comment must be at least 3 characters"]
    assert exc.value.field_errors == {"comment": ["Comment must be at least 3 characters"]}
    assert _form_row(db, form.id).total_submissions == 0


def test_login_required_checked_before_validation(db, file_store, make_form):
    form = _comment_form(make_form, require_login=True)
    with pytest.raises(AccessDeniedError) as exc:
        _submit(db, file_store, form, None, answers={})
    assert exc.value.reason == AccessDeniedError.LOGIN_REQUIRED


def test_inactive_form_is_not_found(db, file_store, make_form):
    form = _comment_form(make_form, require_login=False)
    form_service.deactivate_form(db, form)
    with pytest.raises(SchemaNotFoundError):
        _submit(db, file_store, form)


def test_second_submission_rejected_when_multiple_disallowed(db, file_store, make_form, regular_user):
    form = _comment_form(make_form)
    _submit(db, file_store, form, regular_user)

    with pytest.raises(AccessDeniedError) as exc:
        _submit(db, file_store, form, regular_user)

    assert exc.value.reason == AccessDeniedError.ALREADY_SUBMITTED
    assert _form_row(db, form.id).total_submissions == 1


def test_dedupe_constraint_catches_race(db, file_store, make_form, regular_user, monkeypatch):
    form = _comment_form(make_form)
    _submit(db, file_store, form, regular_user)

    # Simulate a concurrent request that read the form before the first insert
    monkeypatch.setattr(form_submission_service, "has_prior_submission", lambda *a: False)
    with pytest.raises(AccessDeniedError) as exc:
        _submit(db, file_store, form, regular_user)

    assert exc.value.reason == AccessDeniedError.ALREADY_SUBMITTED
    assert _form_row(db, form.id).total_submissions == 1


def test_integrity_error_without_dedupe_key_is_persistence_failure(db, file_store, make_form, monkeypatch):
    form = _comment_form(make_form, require_login=False, allow_multiple_submissions=True)

    def failing_flush(*args, **kwargs):
        raise IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed"))

    monkeypatch.setattr(db, "flush", failing_flush)
    with pytest.raises(PersistenceFailureError, match="Failed to save submission"):
        _submit(db, file_store, form)
    monkeypatch.undo()

    assert _form_row(db, form.id).total_submissions == 0


def test_multiple_submissions_allowed(db, file_store, make_form, regular_user):
    form = _comment_form(make_form, allow_multiple_submissions=True)
    _submit(db, file_store, form, regular_user)
    _submit(db, file_store, form, regular_user)

    refreshed = _form_row(db, form.id)
    assert refreshed.total_submissions == 2
    assert refreshed.unique_submitters == 1


def test_anonymous_submissions_are_not_deduplicated(db, file_store, make_form):
    form = _comment_form(make_form, require_login=False)
    _submit(db, file_store, form)
    _submit(db, file_store, form)
    assert _form_row(db, form.id).total_submissions == 2


def test_submission_limit_enforced(db, file_store, make_form):
    form = _comment_form(make_form, require_login=False, submission_limit=2)
    _submit(db, file_store, form)
    _submit(db, file_store, form)

    with pytest.raises(AccessDeniedError) as exc:
        _submit(db, file_store, form)

    assert exc.value.reason == AccessDeniedError.LIMIT_REACHED
    assert _form_row(db, form.id).total_submissions == 2


def test_conditional_counter_rejects_stale_read(db, file_store, make_form, monkeypatch):
    form = _comment_form(make_form, require_login=False, submission_limit=1)
    _submit(db, file_store, form)

    # The gate sees a stale count of zero; the write must still refuse
    monkeypatch.setattr(
        "formdesk.services.form_submission_service.check_acceptance",
        lambda form, **kwargs: form_submission_service.FormSettings.from_model(form),
    )
    with pytest.raises(AccessDeniedError) as exc:
        _submit(db, file_store, form)

    assert exc.value.reason == AccessDeniedError.LIMIT_REACHED
    db.expire_all()
    assert db.query(FormSubmission).count() == 1


def test_closed_form_rejected(db, file_store, make_form, now):
    form = _comment_form(make_form, require_login=False, end_date=now - timedelta(days=1))
    with pytest.raises(AccessDeniedError) as exc:
        _submit(db, file_store, form, now=now)
    assert exc.value.reason == AccessDeniedError.CLOSED


# =============================================================================
# Files
# =============================================================================

def _file_form(make_form):
    return make_form(
        fields=[
            {
                "name": "resume",
                "label": "Resume",
                "type": "file",
                "validation": {"required": True, "file_types": ["pdf"]},
            }
        ],
        require_login=False,
    )


def _incoming(name="cv.pdf", content=b"%PDF-1.4 test", mime="application/pdf", field="resume"):
    return IncomingFile(
        descriptor=UploadedFile(
            field_name=field, original_name=name, size=len(content), mime_type=mime, position=0
        ),
        stream=io.BytesIO(content),
    )


def test_files_are_stored_with_submission(db, file_store, make_form, settings):
    form = _file_form(make_form)

    submission = _submit(db, file_store, form, answers={}, files=[_incoming()])

    assert submission.submission_data == {"resume": "cv.pdf"}
    assert len(submission.files) == 1
    stored = submission.files[0]
    assert stored.original_name == "cv.pdf"
    assert stored.checksum_sha256
    assert file_store.read(stored.stored_name) == b"%PDF-1.4 test"


def test_upload_policy_rejects_disallowed_mime(db, file_store, make_form):
    form = _file_form(make_form)
    policy = UploadPolicy(max_files=5, max_file_size=1024, allowed_mime_types={"image/png"})

    with pytest.raises(SubmissionValidationError) as exc:
        _submit(db, file_store, form, answers={}, files=[_incoming()], upload_policy=policy)

    assert exc.value.errors[0] == "cv.pdf: file type application/pdf is not allowed"


def test_delete_submission_removes_files_and_refreshes_stats(db, file_store, make_form, settings):
    form = _file_form(make_form)
    submission = _submit(db, file_store, form, answers={}, files=[_incoming()])
    stored_name = submission.files[0].stored_name
    path = os.path.join(settings.LOCAL_STORAGE_PATH, stored_name)
    assert os.path.exists(path)

    form_submission_service.delete_submission(db, file_store, submission)

    assert not os.path.exists(path)
    assert form_submission_service.get_submission(db, submission.id) is None
    refreshed = _form_row(db, form.id)
    assert refreshed.total_submissions == 0
    assert refreshed.last_submission_at is None


# =============================================================================
# Review
# =============================================================================

def test_status_transitions(db, file_store, make_form):
    form = _comment_form(make_form, require_login=False)
    submission = _submit(db, file_store, form)

    form_submission_service.update_submission_status(db, submission, "approved", None)
    assert submission.status == "approved"

    with pytest.raises(InvalidTransitionError, match="Cannot change status from approved to pending"):
        form_submission_service.update_submission_status(db, submission, "pending", None)

    form_submission_service.update_submission_status(db, submission, "archived", None)
    form_submission_service.update_submission_status(db, submission, "pending", None)
    assert submission.status == "pending"


def test_notes_are_appended(db, file_store, make_form, admin_user):
    form = _comment_form(make_form, require_login=False)
    submission = _submit(db, file_store, form)

    form_submission_service.add_note(db, submission, "  Looks good ", admin_user.id)
    form_submission_service.add_note(db, submission, "Follow up", admin_user.id)

    assert sorted(n.content for n in submission.notes) == ["Follow up", "Looks good"]
    assert all(n.author.id == admin_user.id for n in submission.notes)

    with pytest.raises(ValueError):
        form_submission_service.add_note(db, submission, "   ", admin_user.id)


def test_answer_edit_records_history(db, file_store, make_form, admin_user, now):
    form = _comment_form(make_form, require_login=False)
    submission = _submit(db, file_store, form)

    form_submission_service.update_submission_answers(
        db, submission, [{"field_name": "comment", "value": "much better"}], admin_user.id, now=now
    )

    assert submission.submission_data == {"comment": "much better"}
    assert submission.is_edited is True
    assert submission.edit_history == [
        {
            "edited_at": now.isoformat(),
            "edited_by": str(admin_user.id),
            "changes": {"comment": {"old": "hello", "new": "much better"}},
        }
    ]


def test_answer_edit_validates_against_snapshot(db, file_store, make_form, admin_user):
    form = _comment_form(make_form, require_login=False)
    submission = _submit(db, file_store, form)

    # A later schema change must not affect how the old submission is validated
    form_service.update_form(
        db, form, user_id=None, fields=[{"name": "comment", "label": "Comment", "type": "text"}]
    )

    with pytest.raises(SubmissionValidationError) as exc:
        form_submission_service.update_submission_answers(
            db, submission, [{"field_name": "comment", "value": "no"}], admin_user.id
        )
    assert exc.value.errors == ["Comment must be at least 3 characters"]

    with pytest.raises(ValueError, match="Unknown field"):
        form_submission_service.update_submission_answers(
            db, submission, [{"field_name": "missing", "value": "x"}], admin_user.id
        )


def test_submission_fields_fall_back_to_all_versions(db, file_store, make_form):
    form = _comment_form(make_form, require_login=False)
    submission = _submit(db, file_store, form)
    submission.schema_snapshot = None
    db.commit()

    specs = form_submission_service.submission_fields(db, submission)
    assert [s.name for s in specs] == ["comment"]
