"""Submission endpoints: public submit plus admin review.

Paths are mixed: /forms/{id}/submit, /forms/{id}/submissions and
/submissions/{id}.
"""

import json
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from sqlalchemy.orm import Session

from formdesk.core.config import Settings
from formdesk.core.deps import (
    get_current_user,
    get_db,
    get_file_store,
    get_optional_user,
    get_settings,
    require_admin,
    require_csrf_header,
)
from formdesk.core.http_errors import to_http_exception
from formdesk.core.rate_limit import PUBLIC_SUBMIT_LIMIT, limiter
from formdesk.db.models import FormSubmission, User
from formdesk.schemas.forms import FormFieldOption
from formdesk.schemas.submissions import (
    FormSubmissionCreated,
    FormSubmissionFileRead,
    FormSubmissionListResponse,
    FormSubmissionRead,
    SubmissionAnswersUpdate,
    SubmissionEditRead,
    SubmissionFieldRead,
    SubmissionMetadataRead,
    SubmissionNoteCreate,
    SubmissionNoteRead,
    SubmissionStatusUpdate,
    SubmitterRead,
)
from formdesk.services import form_service, form_submission_service
from formdesk.services.errors import FormServiceError
from formdesk.services.file_store import FileStore
from formdesk.services.form_submission_service import RequestMetadata, UploadPolicy
from formdesk.utils.file_upload import build_incoming_files, parse_file_field_keys
from formdesk.utils.pagination import PaginationParams, get_pagination

router = APIRouter(tags=["submissions"])


def _submission_read(
    db: Session,
    submission: FormSubmission,
    include_fields: bool = False,
    include_notes: bool = True,
) -> FormSubmissionRead:
    submitter = submission.submitter
    fields = []
    if include_fields:
        fields = [
            SubmissionFieldRead(
                id=spec.id,
                name=spec.name,
                label=spec.label,
                type=spec.field_type.value,
                options=[FormFieldOption(label=o.label, value=o.value) for o in spec.options],
                order=spec.order,
                is_active=spec.is_active,
            )
            for spec in form_submission_service.submission_fields(db, submission)
        ]
    return FormSubmissionRead(
        id=submission.id,
        form_id=submission.form_id,
        form_title=submission.form.title if submission.form else None,
        status=submission.status,
        submission_data=submission.submission_data or {},
        submitted_by=(
            SubmitterRead(
                id=submitter.id,
                first_name=submitter.first_name,
                last_name=submitter.last_name,
                email=submitter.email,
            )
            if submitter
            else None
        ),
        metadata=SubmissionMetadataRead(
            ip_address=submission.ip_address,
            user_agent=submission.user_agent,
            referrer=submission.referrer,
            submitted_at=submission.submitted_at,
            completion_time=submission.completion_time,
            is_edited=submission.is_edited,
            edit_history=[
                SubmissionEditRead.model_validate(entry)
                for entry in submission.edit_history or []
            ],
        ),
        files=[
            FormSubmissionFileRead(
                id=f.id,
                field_name=f.field_name,
                original_name=f.original_name,
                size=f.size,
                mime_type=f.mime_type,
            )
            for f in submission.files
        ],
        notes=(
            [
                SubmissionNoteRead(
                    id=n.id,
                    content=n.content,
                    created_by=n.created_by,
                    author_name=n.author.display_name if n.author else None,
                    created_at=n.created_at,
                )
                for n in submission.notes
            ]
            if include_notes
            else []
        ),
        fields=fields,
    )


def _list_response(
    db: Session,
    items: list[FormSubmission],
    total: int,
    pagination: PaginationParams,
    include_notes: bool = True,
) -> FormSubmissionListResponse:
    return FormSubmissionListResponse(
        items=[_submission_read(db, s, include_notes=include_notes) for s in items],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=pagination.page_count(total),
    )


def _get_submission_or_404(db: Session, submission_id: UUID) -> FormSubmission:
    submission = form_submission_service.get_submission(db, submission_id)
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")
    return submission


# =============================================================================
# Public submit
# =============================================================================


@router.post("/forms/{form_id}/submit", response_model=FormSubmissionCreated, status_code=201)
@limiter.limit(PUBLIC_SUBMIT_LIMIT)
async def submit_form(
    form_id: UUID,
    request: Request,
    answers: str = Form(...),
    files: list[UploadFile] | None = File(default=None),
    file_field_keys: str | None = Form(default=None),
    completion_time: int | None = Form(default=None, ge=0),
    user: User | None = Depends(get_optional_user),
    settings: Settings = Depends(get_settings),
    file_store: FileStore = Depends(get_file_store),
    db: Session = Depends(get_db),
):
    """
    Submit a form.

    ``answers`` is a JSON object keyed by field name. Uploaded ``files`` are
    paired by position with ``file_field_keys``, a JSON list of field names.
    """
    try:
        answers_data = json.loads(answers)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail="Invalid answers JSON") from exc

    files = files or []
    try:
        field_keys = parse_file_field_keys(file_field_keys, len(files))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    incoming = await build_incoming_files(files, field_keys)

    try:
        submission, form_settings = form_submission_service.create_submission(
            db=db,
            file_store=file_store,
            form_id=form_id,
            submitter=user,
            answers=answers_data,
            files=incoming,
            metadata=RequestMetadata(
                ip_address=request.client.host if request.client else None,
                user_agent=request.headers.get("user-agent"),
                referrer=request.headers.get("referer"),
                completion_time=completion_time,
            ),
            upload_policy=UploadPolicy(
                max_files=settings.MAX_UPLOAD_FILES,
                max_file_size=settings.MAX_UPLOAD_FILE_SIZE_BYTES,
                allowed_mime_types=settings.allowed_upload_mime_types,
            ),
        )
    except FormServiceError as exc:
        raise to_http_exception(exc) from exc

    return FormSubmissionCreated(
        id=submission.id,
        status=submission.status,
        submitted_at=submission.submitted_at,
        confirmation_message=form_settings.confirmation_message,
        redirect_url=form_settings.redirect_url,
    )


# =============================================================================
# Listing
# =============================================================================


@router.get("/forms/{form_id}/submissions", response_model=FormSubmissionListResponse)
def list_form_submissions(
    form_id: UUID,
    status: str | None = Query(None),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    sort_by: str = Query("submitted_at"),
    sort_order: str = Query("desc"),
    pagination: PaginationParams = Depends(get_pagination),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    form = form_service.get_form(db, form_id)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found")
    try:
        items, total = form_submission_service.list_form_submissions(
            db,
            form.id,
            pagination,
            status=status,
            start_date=start_date,
            end_date=end_date,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _list_response(db, items, total, pagination)


@router.get("/submissions/mine", response_model=FormSubmissionListResponse)
def list_my_submissions(
    pagination: PaginationParams = Depends(get_pagination),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = form_submission_service.list_user_submissions(db, user.id, pagination)
    return _list_response(db, items, total, pagination, include_notes=False)


# =============================================================================
# Single submission
# =============================================================================


@router.get("/submissions/{submission_id}", response_model=FormSubmissionRead)
def get_submission(
    submission_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Admins see any submission; other users only their own (without notes)."""
    submission = _get_submission_or_404(db, submission_id)
    if not user.is_admin and submission.submitted_by != user.id:
        raise HTTPException(status_code=403, detail="Not allowed to view this submission")
    return _submission_read(db, submission, include_fields=True, include_notes=user.is_admin)


@router.delete(
    "/submissions/{submission_id}",
    dependencies=[Depends(require_csrf_header)],
)
def delete_submission(
    submission_id: UUID,
    user: User = Depends(require_admin),
    file_store: FileStore = Depends(get_file_store),
    db: Session = Depends(get_db),
):
    submission = _get_submission_or_404(db, submission_id)
    form_submission_service.delete_submission(db, file_store, submission, user.id)
    return {"message": "Submission deleted successfully"}


@router.patch(
    "/submissions/{submission_id}/status",
    response_model=FormSubmissionRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_submission_status(
    submission_id: UUID,
    body: SubmissionStatusUpdate,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    submission = _get_submission_or_404(db, submission_id)
    try:
        submission = form_submission_service.update_submission_status(
            db, submission, body.status.value, user.id
        )
    except FormServiceError as exc:
        raise to_http_exception(exc) from exc
    return _submission_read(db, submission, include_fields=True)


@router.post(
    "/submissions/{submission_id}/notes",
    response_model=FormSubmissionRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def add_submission_note(
    submission_id: UUID,
    body: SubmissionNoteCreate,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    submission = _get_submission_or_404(db, submission_id)
    try:
        form_submission_service.add_note(db, submission, body.content, user.id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _submission_read(db, submission, include_fields=True)


@router.patch(
    "/submissions/{submission_id}/answers",
    response_model=FormSubmissionRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_submission_answers(
    submission_id: UUID,
    body: SubmissionAnswersUpdate,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Edit individual answers; each value is re-validated against its field."""
    submission = _get_submission_or_404(db, submission_id)
    try:
        submission = form_submission_service.update_submission_answers(
            db=db,
            submission=submission,
            updates=[u.model_dump() for u in body.updates],
            user_id=user.id,
        )
    except FormServiceError as exc:
        raise to_http_exception(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _submission_read(db, submission, include_fields=True)
