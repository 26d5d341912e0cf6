"""Form builder endpoints: discovery for everyone, management for admins."""

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from formdesk.core.deps import (
    get_db,
    get_optional_user,
    require_admin,
    require_csrf_header,
)
from formdesk.db.models import Form, FormField, User
from formdesk.schemas.forms import (
    FormAppearance,
    FormCreate,
    FormFieldLayout,
    FormFieldOption,
    FormFieldRead,
    FormFieldValidation,
    FormListResponse,
    FormRead,
    FormSettingsSchema,
    FormStats,
    FormSummary,
    FormUpdate,
)
from formdesk.services import form_service
from formdesk.services.form_acceptance import is_accepting
from formdesk.utils.pagination import PaginationParams, get_pagination

router = APIRouter(prefix="/forms", tags=["forms"])


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _field_read(field: FormField) -> FormFieldRead:
    return FormFieldRead(
        id=field.id,
        field_key=field.field_key,
        version=field.version,
        name=field.name,
        label=field.label,
        type=field.field_type,
        placeholder=field.placeholder,
        help_text=field.help_text,
        default_value=field.default_value,
        options=[FormFieldOption.model_validate(o) for o in field.options or []],
        validation=FormFieldValidation.model_validate(field.validation or {}),
        layout=FormFieldLayout.model_validate(field.layout or {}),
        order=field.order,
        is_active=field.is_active,
        created_at=field.created_at,
    )


def _stats(form: Form, average_completion_time: float | None = None) -> FormStats:
    return FormStats(
        total_submissions=form.total_submissions,
        unique_submitters=form.unique_submitters,
        last_submission_at=form.last_submission_at,
        average_completion_time=average_completion_time,
    )


def _form_summary(form: Form, field_count: int, now: datetime) -> FormSummary:
    return FormSummary(
        id=form.id,
        title=form.title,
        description=form.description,
        is_active=form.is_active,
        is_accepting=is_accepting(form, now),
        field_count=field_count,
        stats=_stats(form),
        created_at=form.created_at,
        updated_at=form.updated_at,
    )


def _form_read(db: Session, form: Form) -> FormRead:
    fields = form_service.list_fields(db, form.id)
    return FormRead(
        id=form.id,
        title=form.title,
        description=form.description,
        is_active=form.is_active,
        is_accepting=is_accepting(form, _now()),
        field_count=len(fields),
        stats=_stats(form, form_service.average_completion_time(db, form.id)),
        created_at=form.created_at,
        updated_at=form.updated_at,
        created_by=form.created_by,
        settings=FormSettingsSchema(
            allow_multiple_submissions=form.allow_multiple_submissions,
            require_login=form.require_login,
            confirmation_message=form.confirmation_message,
            redirect_url=form.redirect_url,
            submission_limit=form.submission_limit,
            start_date=form.start_date,
            end_date=form.end_date,
        ),
        appearance=FormAppearance.model_validate(form.appearance or {}),
        fields=[_field_read(f) for f in fields],
    )


def _get_form_or_404(db: Session, form_id: UUID) -> Form:
    form = form_service.get_form(db, form_id)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found")
    return form


# =============================================================================
# Discovery
# =============================================================================


@router.get("", response_model=FormListResponse)
def list_forms(
    search: str | None = Query(None, max_length=200),
    active_only: str = Query("true", description="true, false, or all (admins only)"),
    pagination: PaginationParams = Depends(get_pagination),
    user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """List forms, newest first. Non-admins only ever see active forms."""
    if not (user and user.is_admin):
        active_only = "true"
    try:
        forms, total = form_service.list_forms(db, pagination, search, active_only)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    counts = form_service.active_field_counts(db, [f.id for f in forms])
    now = _now()
    return FormListResponse(
        items=[_form_summary(f, counts.get(f.id, 0), now) for f in forms],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=pagination.page_count(total),
    )


@router.get("/{form_id}", response_model=FormRead)
def get_form(
    form_id: UUID,
    user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Form with its active fields. Inactive forms are visible to admins only."""
    form = form_service.get_form(db, form_id)
    if not form or (not form.is_active and not (user and user.is_admin)):
        raise HTTPException(status_code=404, detail="Form not found or inactive")
    return _form_read(db, form)


# =============================================================================
# Management (Admin)
# =============================================================================


@router.post(
    "",
    response_model=FormRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_form(
    body: FormCreate,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        form = form_service.create_form(
            db=db,
            user_id=user.id,
            title=body.title,
            description=body.description,
            settings=body.settings.model_dump(),
            appearance=body.appearance.model_dump(mode="json"),
            fields=[f.model_dump(mode="json") for f in body.fields],
        )
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _form_read(db, form)


@router.patch(
    "/{form_id}",
    response_model=FormRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_form(
    form_id: UUID,
    body: FormUpdate,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(db, form_id)
    try:
        form = form_service.update_form(
            db=db,
            form=form,
            user_id=user.id,
            title=body.title,
            description=body.description,
            is_active=body.is_active,
            settings=body.settings.model_dump(exclude_unset=True) if body.settings else None,
            appearance=(
                body.appearance.model_dump(mode="json", exclude_unset=True)
                if body.appearance
                else None
            ),
            fields=[f.model_dump(mode="json") for f in body.fields] if body.fields else None,
        )
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _form_read(db, form)


@router.post(
    "/{form_id}/toggle-status",
    response_model=FormRead,
    dependencies=[Depends(require_csrf_header)],
)
def toggle_form_status(
    form_id: UUID,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(db, form_id)
    form = form_service.toggle_form_status(db, form, user.id)
    return _form_read(db, form)


@router.delete(
    "/{form_id}",
    dependencies=[Depends(require_csrf_header)],
)
def delete_form(
    form_id: UUID,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Soft delete: the form and all of its fields become inactive."""
    form = _get_form_or_404(db, form_id)
    form_service.deactivate_form(db, form, user.id)
    return {"message": "Form deleted successfully"}


@router.get("/{form_id}/fields", response_model=list[FormFieldRead])
def list_form_fields(
    form_id: UUID,
    include_inactive: bool = Query(False, description="Include every past field version"),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(db, form_id)
    fields = form_service.list_fields(db, form.id, include_inactive=include_inactive)
    return [_field_read(f) for f in fields]
