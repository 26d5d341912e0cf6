"""Form submission service: acceptance, validation, atomic persistence, review."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, BinaryIO

from sqlalchemy import exists, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from formdesk.core.structured_logging import build_log_context
from formdesk.db.enums import FieldType, FormSubmissionStatus
from formdesk.db.models import (
    Form,
    FormSubmission,
    FormSubmissionFile,
    FormSubmissionNote,
    User,
)
from formdesk.services import form_service
from formdesk.services.errors import (
    InvalidTransitionError,
    PersistenceFailureError,
    SchemaNotFoundError,
    SubmissionValidationError,
)
from formdesk.services.field_schema import FieldSpec, FormSettings
from formdesk.services.file_store import FileStore, build_storage_key, calculate_checksum
from formdesk.services.form_acceptance import (
    already_submitted_error,
    check_acceptance,
    limit_reached_error,
)
from formdesk.services.submission_validation import (
    UploadedFile,
    validate_field,
    validate_submission,
)
from formdesk.utils.pagination import PaginationParams, paginate_select

logger = logging.getLogger(__name__)


# Allowed review transitions: current status -> reachable statuses
STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    FormSubmissionStatus.PENDING.value: frozenset(
        {
            FormSubmissionStatus.APPROVED.value,
            FormSubmissionStatus.REJECTED.value,
            FormSubmissionStatus.ARCHIVED.value,
        }
    ),
    FormSubmissionStatus.APPROVED.value: frozenset({FormSubmissionStatus.ARCHIVED.value}),
    FormSubmissionStatus.REJECTED.value: frozenset({FormSubmissionStatus.ARCHIVED.value}),
    FormSubmissionStatus.ARCHIVED.value: frozenset({FormSubmissionStatus.PENDING.value}),
}

SORTABLE_COLUMNS = {
    "submitted_at": FormSubmission.submitted_at,
    "status": FormSubmission.status,
    "completion_time": FormSubmission.completion_time,
}


@dataclass
class IncomingFile:
    """An uploaded file: its descriptor plus a readable stream."""

    descriptor: UploadedFile
    stream: BinaryIO


@dataclass
class RequestMetadata:
    ip_address: str | None = None
    user_agent: str | None = None
    referrer: str | None = None
    completion_time: int | None = None


@dataclass
class UploadPolicy:
    """Request-wide upload limits applied before per-field checks."""

    max_files: int
    max_file_size: int
    allowed_mime_types: set[str]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _check_upload_policy(uploads: list[UploadedFile], policy: UploadPolicy | None) -> list[str]:
    if policy is None:
        return []
    errors = []
    if len(uploads) > policy.max_files:
        errors.append(f"Too many files. Maximum {policy.max_files} files per submission")
    for upload in uploads:
        mime = (upload.mime_type or "").lower()
        if policy.allowed_mime_types and mime not in policy.allowed_mime_types:
            errors.append(f"{upload.original_name}: file type {mime or 'unknown'} is not allowed")
        if upload.size > policy.max_file_size:
            limit_mb = round(policy.max_file_size / (1024 * 1024), 2)
            errors.append(f"{upload.original_name}: file exceeds the {limit_mb:g} MB upload limit")
    return errors


def has_prior_submission(db: Session, form_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    return bool(
        db.scalar(
            select(
                exists().where(
                    FormSubmission.form_id == form_id,
                    FormSubmission.submitted_by == user_id,
                )
            )
        )
    )


def _refresh_unique_submitters(db: Session, form_id: uuid.UUID) -> None:
    unique = (
        select(func.count(func.distinct(FormSubmission.submitted_by)))
        .where(FormSubmission.form_id == form_id)
        .scalar_subquery()
    )
    db.execute(
        update(Form)
        .where(Form.id == form_id)
        .values(unique_submitters=unique)
        .execution_options(synchronize_session=False)
    )


def _store_files(
    file_store: FileStore,
    form_id: uuid.UUID,
    accepted: list[UploadedFile],
    incoming: list[IncomingFile],
    stored_keys: list[str],
) -> list[FormSubmissionFile]:
    streams = {f.descriptor.position: f.stream for f in incoming}
    rows = []
    for index, descriptor in enumerate(accepted):
        stream = streams[descriptor.position]
        storage_key = build_storage_key(form_id, descriptor.original_name)
        checksum = calculate_checksum(stream)
        file_store.store(storage_key, stream)
        stored_keys.append(storage_key)
        rows.append(
            FormSubmissionFile(
                position=index,
                field_name=descriptor.field_name,
                original_name=descriptor.original_name,
                stored_name=storage_key,
                size=descriptor.size,
                mime_type=descriptor.mime_type,
                checksum_sha256=checksum,
            )
        )
    return rows


def create_submission(
    db: Session,
    file_store: FileStore,
    form_id: uuid.UUID,
    submitter: User | None,
    answers: Any,
    files: list[IncomingFile] | None = None,
    metadata: RequestMetadata | None = None,
    upload_policy: UploadPolicy | None = None,
    now: datetime | None = None,
) -> tuple[FormSubmission, FormSettings]:
    """
    Accept, validate, and persist one submission.

    The acceptance gate runs on the form as read; the limit and duplicate
    rules are then enforced again by the write itself (conditional counter
    update and the ``(form_id, dedupe_key)`` unique constraint), so two
    concurrent requests cannot both get through.

    Raises:
        SchemaNotFoundError, AccessDeniedError, SubmissionValidationError,
        PersistenceFailureError
    """
    now = now or _now()
    files = files or []
    metadata = metadata or RequestMetadata()
    submitter_id = submitter.id if submitter else None
    log_context = build_log_context(
        user_id=str(submitter_id) if submitter_id else None, form_id=str(form_id)
    )

    form = form_service.get_form(db, form_id)
    prior = False
    if form is not None and submitter_id is not None and not form.allow_multiple_submissions:
        prior = has_prior_submission(db, form.id, submitter_id)
    settings = check_acceptance(
        form, submitter_id=submitter_id, now=now, has_prior_submission=prior
    )

    specs = form_service.active_field_specs(db, form.id)
    descriptors = [f.descriptor for f in files]
    result = validate_submission(specs, answers, descriptors)
    policy_errors = _check_upload_policy(descriptors, upload_policy)
    if policy_errors or not result.valid:
        logger.info(
            "form_submission_rejected",
            extra={**log_context, "error_count": len(policy_errors) + len(result.errors)},
        )
        raise SubmissionValidationError(policy_errors + result.errors, result.field_errors)
    if result.ignored_uploads:
        logger.info(
            "form_submission_uploads_ignored",
            extra={**log_context, "count": len(result.ignored_uploads)},
        )

    dedupe_key = None
    if submitter_id is not None and not settings.allow_multiple_submissions:
        dedupe_key = str(submitter_id)

    stored_keys: list[str] = []
    try:
        file_rows = _store_files(file_store, form.id, result.files, files, stored_keys)

        bumped = db.execute(
            update(Form)
            .where(
                Form.id == form.id,
                Form.is_active.is_(True),
                or_(
                    Form.submission_limit == 0,
                    Form.total_submissions < Form.submission_limit,
                ),
            )
            .values(
                total_submissions=Form.total_submissions + 1,
                last_submission_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if bumped.rowcount == 0:
            still_active = db.scalar(select(Form.is_active).where(Form.id == form.id))
            if not still_active:
                raise SchemaNotFoundError()
            raise limit_reached_error()

        submission = FormSubmission(
            form_id=form.id,
            submitted_by=submitter_id,
            dedupe_key=dedupe_key,
            status=FormSubmissionStatus.PENDING.value,
            submission_data=result.data,
            schema_snapshot=[spec.to_snapshot() for spec in specs],
            ip_address=metadata.ip_address,
            user_agent=(metadata.user_agent or "")[:512] or None,
            referrer=(metadata.referrer or "")[:2048] or None,
            completion_time=metadata.completion_time,
            is_edited=False,
            edit_history=[],
            submitted_at=now,
            files=file_rows,
        )
        db.add(submission)
        db.flush()
        _refresh_unique_submitters(db, form.id)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        file_store.delete_many(stored_keys)
        if dedupe_key is None:
            # Only the dedupe constraint can signal a duplicate
            logger.exception("form_submission_persist_failed", extra=log_context)
            raise PersistenceFailureError("Failed to save submission") from exc
        logger.info("form_submission_duplicate", extra=log_context)
        raise already_submitted_error() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        file_store.delete_many(stored_keys)
        logger.exception("form_submission_persist_failed", extra=log_context)
        raise PersistenceFailureError("Failed to save submission") from exc
    except Exception:
        db.rollback()
        file_store.delete_many(stored_keys)
        raise

    db.refresh(submission)
    logger.info(
        "form_submission_created",
        extra={**log_context, "submission_id": str(submission.id), "file_count": len(file_rows)},
    )
    return submission, settings


# =============================================================================
# Queries
# =============================================================================

def get_submission(db: Session, submission_id: uuid.UUID) -> FormSubmission | None:
    return db.get(FormSubmission, submission_id)


def list_form_submissions(
    db: Session,
    form_id: uuid.UUID,
    pagination: PaginationParams,
    status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    sort_by: str = "submitted_at",
    sort_order: str = "desc",
) -> tuple[list[FormSubmission], int]:
    if sort_by not in SORTABLE_COLUMNS:
        raise ValueError(f"sort_by must be one of: {', '.join(SORTABLE_COLUMNS)}")
    if sort_order not in ("asc", "desc"):
        raise ValueError("sort_order must be 'asc' or 'desc'")
    if status and status not in STATUS_TRANSITIONS:
        raise ValueError(f"Unknown status: {status}")

    stmt = select(FormSubmission).where(FormSubmission.form_id == form_id)
    if status:
        stmt = stmt.where(FormSubmission.status == status)
    if start_date:
        stmt = stmt.where(FormSubmission.submitted_at >= start_date)
    if end_date:
        stmt = stmt.where(FormSubmission.submitted_at <= end_date)
    column = SORTABLE_COLUMNS[sort_by]
    stmt = stmt.order_by(column.asc() if sort_order == "asc" else column.desc(), FormSubmission.id)
    return paginate_select(db, stmt, pagination)


def list_user_submissions(
    db: Session, user_id: uuid.UUID, pagination: PaginationParams
) -> tuple[list[FormSubmission], int]:
    stmt = (
        select(FormSubmission)
        .where(FormSubmission.submitted_by == user_id)
        .order_by(FormSubmission.submitted_at.desc(), FormSubmission.id)
    )
    return paginate_select(db, stmt, pagination)


def list_all_form_submissions(db: Session, form_id: uuid.UUID) -> list[FormSubmission]:
    """Every submission of a form, oldest first (export order)."""
    return list(
        db.scalars(
            select(FormSubmission)
            .where(FormSubmission.form_id == form_id)
            .order_by(FormSubmission.submitted_at, FormSubmission.id)
        )
    )


def submission_fields(db: Session, submission: FormSubmission) -> list[FieldSpec]:
    """Fields to render a submission with: its snapshot, else every field version."""
    if submission.schema_snapshot:
        specs = [FieldSpec.from_snapshot(item) for item in submission.schema_snapshot]
    else:
        specs = [
            FieldSpec.from_model(f)
            for f in form_service.list_fields(db, submission.form_id, include_inactive=True)
        ]
    return sorted(specs, key=lambda s: s.order)


# =============================================================================
# Review
# =============================================================================

def update_submission_status(
    db: Session,
    submission: FormSubmission,
    status: str,
    user_id: uuid.UUID | None,
) -> FormSubmission:
    allowed = STATUS_TRANSITIONS.get(submission.status, frozenset())
    if status not in allowed:
        raise InvalidTransitionError(
            f"Cannot change status from {submission.status} to {status}"
        )
    previous = submission.status
    submission.status = status
    db.commit()
    db.refresh(submission)
    logger.info(
        "form_submission_status_changed",
        extra={
            **build_log_context(
                user_id=str(user_id) if user_id else None,
                form_id=str(submission.form_id),
                submission_id=str(submission.id),
            ),
            "from_status": previous,
            "to_status": status,
        },
    )
    return submission


def add_note(
    db: Session,
    submission: FormSubmission,
    content: str,
    user_id: uuid.UUID | None,
) -> FormSubmissionNote:
    content = content.strip()
    if not content:
        raise ValueError("Note content is required")
    note = FormSubmissionNote(submission_id=submission.id, content=content, created_by=user_id)
    db.add(note)
    db.commit()
    db.refresh(note)
    db.refresh(submission)
    return note


def update_submission_answers(
    db: Session,
    submission: FormSubmission,
    updates: list[dict],
    user_id: uuid.UUID | None,
    now: datetime | None = None,
) -> FormSubmission:
    """
    Edit individual answers, validating each new value against the field
    version the submission was made with. Records old/new values in the
    edit history.
    """
    specs = {spec.name: spec for spec in submission_fields(db, submission)}
    data = dict(submission.submission_data or {})
    changes: dict[str, dict[str, Any]] = {}
    errors: list[str] = []
    field_errors: dict[str, list[str]] = {}

    for item in updates:
        name = str(item.get("field_name") or "").lower()
        spec = specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown field: {name}")
        if spec.field_type == FieldType.FILE:
            raise ValueError(f"File answers cannot be edited: {name}")
        result = validate_field(spec, item.get("value"))
        if result.errors:
            errors.extend(result.errors)
            field_errors[name] = list(result.errors)
            continue
        old_value = data.get(name)
        new_value = result.value if result.has_value else None
        if old_value == new_value:
            continue
        changes[name] = {"old": old_value, "new": new_value}
        if result.has_value:
            data[name] = new_value
        else:
            data.pop(name, None)

    if errors:
        raise SubmissionValidationError(errors, field_errors)
    if not changes:
        return submission

    submission.submission_data = data
    flag_modified(submission, "submission_data")
    history = list(submission.edit_history or [])
    history.append(
        {
            "edited_at": (now or _now()).isoformat(),
            "edited_by": str(user_id) if user_id else None,
            "changes": changes,
        }
    )
    submission.edit_history = history
    flag_modified(submission, "edit_history")
    submission.is_edited = True
    db.commit()
    db.refresh(submission)
    logger.info(
        "form_submission_answers_updated",
        extra={
            **build_log_context(
                user_id=str(user_id) if user_id else None,
                form_id=str(submission.form_id),
                submission_id=str(submission.id),
            ),
            "changed_fields": len(changes),
        },
    )
    return submission


def delete_submission(
    db: Session,
    file_store: FileStore,
    submission: FormSubmission,
    user_id: uuid.UUID | None = None,
) -> None:
    """Hard delete a submission, its files, and notes; refresh form stats."""
    form_id = submission.form_id
    submission_id = submission.id
    storage_keys = [f.stored_name for f in submission.files]
    db.delete(submission)
    db.flush()
    form_service.refresh_form_stats(db, form_id)
    db.commit()
    file_store.delete_many(storage_keys)
    logger.info(
        "form_submission_deleted",
        extra=build_log_context(
            user_id=str(user_id) if user_id else None,
            form_id=str(form_id),
            submission_id=str(submission_id),
        ),
    )
