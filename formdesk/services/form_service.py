"""Form service for definitions, settings, and versioned fields."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from formdesk.core.structured_logging import build_log_context
from formdesk.db.enums import FieldType
from formdesk.db.models import Form, FormField, FormSubmission
from formdesk.services.field_schema import FieldSpec, ordered_active
from formdesk.utils.pagination import PaginationParams, paginate_select

logger = logging.getLogger(__name__)


SETTINGS_KEYS = (
    "allow_multiple_submissions",
    "require_login",
    "confirmation_message",
    "redirect_url",
    "submission_limit",
    "start_date",
    "end_date",
)

# Columns that make up a field definition; a change to any of them is a new version.
FIELD_DEFINITION_KEYS = (
    "name",
    "label",
    "field_type",
    "placeholder",
    "help_text",
    "default_value",
    "options",
    "validation",
    "layout",
    "order",
)

ACTIVE_FILTERS = ("true", "false", "all")


def _normalize_dt(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_uuid(value: Any) -> uuid.UUID | None:
    if value is None or value == "":
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


# =============================================================================
# Queries
# =============================================================================

def get_form(db: Session, form_id: uuid.UUID) -> Form | None:
    return db.get(Form, form_id)


def get_active_form(db: Session, form_id: uuid.UUID) -> Form | None:
    form = db.get(Form, form_id)
    if not form or not form.is_active:
        return None
    return form


def list_forms(
    db: Session,
    pagination: PaginationParams,
    search: str | None = None,
    active_filter: str = "true",
) -> tuple[list[Form], int]:
    """List forms newest first, filtered by title search and active flag."""
    if active_filter not in ACTIVE_FILTERS:
        raise ValueError(f"active_only must be one of: {', '.join(ACTIVE_FILTERS)}")
    stmt = select(Form)
    if active_filter == "true":
        stmt = stmt.where(Form.is_active.is_(True))
    elif active_filter == "false":
        stmt = stmt.where(Form.is_active.is_(False))
    if search and search.strip():
        term = search.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        stmt = stmt.where(Form.title.ilike(f"%{term}%", escape="\\"))
    stmt = stmt.order_by(Form.created_at.desc(), Form.id)
    return paginate_select(db, stmt, pagination)


def list_fields(
    db: Session, form_id: uuid.UUID, include_inactive: bool = False
) -> list[FormField]:
    stmt = select(FormField).where(FormField.form_id == form_id)
    if not include_inactive:
        stmt = stmt.where(FormField.is_active.is_(True))
    stmt = stmt.order_by(FormField.order, FormField.created_at, FormField.version)
    return list(db.scalars(stmt))


def active_field_specs(db: Session, form_id: uuid.UUID) -> list[FieldSpec]:
    return ordered_active(FieldSpec.from_model(f) for f in list_fields(db, form_id))


def active_field_counts(db: Session, form_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
    if not form_ids:
        return {}
    rows = db.execute(
        select(FormField.form_id, func.count(FormField.id))
        .where(FormField.form_id.in_(form_ids), FormField.is_active.is_(True))
        .group_by(FormField.form_id)
    ).all()
    return {form_id: count for form_id, count in rows}


def average_completion_time(db: Session, form_id: uuid.UUID) -> float | None:
    value = db.scalar(
        select(func.avg(FormSubmission.completion_time)).where(
            FormSubmission.form_id == form_id,
            FormSubmission.completion_time.is_not(None),
        )
    )
    return round(float(value), 2) if value is not None else None


# =============================================================================
# Field versioning
# =============================================================================

def _field_definition(data: dict, index: int) -> dict[str, Any]:
    order = data.get("order")
    return {
        "name": str(data["name"]).lower(),
        "label": data["label"],
        "field_type": FieldType(data.get("type") or data.get("field_type")).value,
        "placeholder": data.get("placeholder"),
        "help_text": data.get("help_text"),
        "default_value": data.get("default_value"),
        "options": [
            {"label": str(o["label"]), "value": str(o["value"])} for o in data.get("options") or []
        ],
        "validation": dict(data.get("validation") or {}),
        "layout": dict(data.get("layout") or {}),
        "order": index if order is None else int(order),
    }


def _same_definition(row: FormField, definition: dict[str, Any]) -> bool:
    return all(getattr(row, key) == definition[key] for key in FIELD_DEFINITION_KEYS)


def replace_fields(db: Session, form: Form, incoming: list[dict]) -> list[FormField]:
    """
    Replace the form's active field set with ``incoming``.

    Every existing field version is deactivated. An incoming field whose
    ``id`` references one of this form's versions continues that logical
    field: the referenced row is reactivated when unchanged, otherwise a new
    version is added under the same ``field_key``. Fields without a usable
    reference are created with a fresh key.
    """
    definitions = [_field_definition(data, index) for index, data in enumerate(incoming)]
    names = [d["name"] for d in definitions]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate field name: {', '.join(duplicates)}")

    existing = list(db.scalars(select(FormField).where(FormField.form_id == form.id)))
    by_id = {row.id: row for row in existing}
    latest_version: dict[uuid.UUID, int] = {}
    for row in existing:
        latest_version[row.field_key] = max(latest_version.get(row.field_key, 0), row.version)
        row.is_active = False

    claimed: set[uuid.UUID] = set()
    active: list[FormField] = []
    for data, definition in zip(incoming, definitions):
        ref = _parse_uuid(data.get("id"))
        current = by_id.get(ref) if ref else None
        if ref and current is None:
            logger.info(
                "form_field_reference_unknown",
                extra=build_log_context(form_id=str(form.id)),
            )
        if current is not None and current.field_key in claimed:
            current = None

        if current is None:
            row = FormField(
                form_id=form.id,
                field_key=uuid.uuid4(),
                version=1,
                is_active=True,
                **definition,
            )
            db.add(row)
        elif _same_definition(current, definition):
            current.is_active = True
            row = current
        else:
            version = latest_version[current.field_key] + 1
            latest_version[current.field_key] = version
            row = FormField(
                form_id=form.id,
                field_key=current.field_key,
                version=version,
                is_active=True,
                **definition,
            )
            db.add(row)
        if current is not None:
            claimed.add(current.field_key)
        active.append(row)

    db.flush()
    return active


# =============================================================================
# Mutations
# =============================================================================

def _apply_settings(form: Form, settings: dict[str, Any]) -> None:
    for key in SETTINGS_KEYS:
        if key not in settings:
            continue
        value = settings[key]
        if key in ("start_date", "end_date"):
            value = _normalize_dt(value)
        elif key == "submission_limit":
            value = int(value or 0)
        elif key in ("allow_multiple_submissions", "require_login"):
            if value is None:
                continue
            value = bool(value)
        elif key == "confirmation_message" and value is None:
            continue
        setattr(form, key, value)
    start = _normalize_dt(form.start_date)
    end = _normalize_dt(form.end_date)
    if start and end and start > end:
        raise ValueError("start_date must be before end_date")


def create_form(
    db: Session,
    user_id: uuid.UUID | None,
    title: str,
    description: str | None = None,
    settings: dict[str, Any] | None = None,
    appearance: dict[str, Any] | None = None,
    fields: list[dict] | None = None,
) -> Form:
    """Create a form with its initial field set."""
    form = Form(
        title=title,
        description=description,
        is_active=True,
        created_by=user_id,
        appearance=dict(appearance or {}),
        total_submissions=0,
        unique_submitters=0,
    )
    _apply_settings(form, settings or {})
    db.add(form)
    db.flush()
    if fields:
        replace_fields(db, form, fields)
    db.commit()
    db.refresh(form)
    logger.info(
        "form_created",
        extra=build_log_context(user_id=str(user_id) if user_id else None, form_id=str(form.id)),
    )
    return form


def update_form(
    db: Session,
    form: Form,
    user_id: uuid.UUID | None,
    title: str | None = None,
    description: str | None = None,
    is_active: bool | None = None,
    settings: dict[str, Any] | None = None,
    appearance: dict[str, Any] | None = None,
    fields: list[dict] | None = None,
) -> Form:
    """
    Partially update a form.

    Settings and appearance are merged key by key. A non-empty ``fields``
    list replaces the active field set; ``None`` or ``[]`` leaves it alone.
    """
    if title is not None:
        form.title = title
    if description is not None:
        form.description = description or None
    if is_active is not None:
        form.is_active = is_active
    if settings:
        _apply_settings(form, settings)
    if appearance:
        form.appearance = {**(form.appearance or {}), **appearance}
    if fields:
        replace_fields(db, form, fields)
    db.commit()
    db.refresh(form)
    logger.info(
        "form_updated",
        extra=build_log_context(user_id=str(user_id) if user_id else None, form_id=str(form.id)),
    )
    return form


def toggle_form_status(db: Session, form: Form, user_id: uuid.UUID | None = None) -> Form:
    form.is_active = not form.is_active
    db.commit()
    db.refresh(form)
    logger.info(
        "form_status_toggled",
        extra={
            **build_log_context(user_id=str(user_id) if user_id else None, form_id=str(form.id)),
            "is_active": form.is_active,
        },
    )
    return form


def deactivate_form(db: Session, form: Form, user_id: uuid.UUID | None = None) -> Form:
    """Soft delete: the form and every field version become inactive."""
    form.is_active = False
    db.execute(
        update(FormField)
        .where(FormField.form_id == form.id)
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(form)
    logger.info(
        "form_deleted",
        extra=build_log_context(user_id=str(user_id) if user_id else None, form_id=str(form.id)),
    )
    return form


def refresh_form_stats(db: Session, form_id: uuid.UUID) -> None:
    """Recompute submission stats from the submissions table (no commit)."""
    total, unique, last = db.execute(
        select(
            func.count(FormSubmission.id),
            func.count(func.distinct(FormSubmission.submitted_by)),
            func.max(FormSubmission.submitted_at),
        ).where(FormSubmission.form_id == form_id)
    ).one()
    db.execute(
        update(Form)
        .where(Form.id == form_id)
        .values(total_submissions=total, unique_submitters=unique, last_submission_at=last)
        .execution_options(synchronize_session=False)
    )
