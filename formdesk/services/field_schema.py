"""Structured field and form-settings records.

These are the plain-data views of form definitions that the validation
engine, the acceptance gate, and the export projector work on. They carry
no database session and can be built from ORM rows, from a submission's
schema snapshot, or directly in tests.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from formdesk.db.enums import OPTION_FIELD_TYPES, FieldType
from formdesk.db.models import DEFAULT_CONFIRMATION_MESSAGE


DEFAULT_MAX_FILE_SIZE = 5 * 1024 * 1024  # 5 MB
MIN_FILE_SIZE_LIMIT = 1024  # 1 KB
MAX_FILE_SIZE_LIMIT = 10 * 1024 * 1024  # 10 MB
MAX_FILE_COUNT_LIMIT = 10

# MIME types accepted for each declared file extension
FILE_TYPE_MIME_TYPES: dict[str, frozenset[str]] = {
    "jpg": frozenset({"image/jpeg"}),
    "jpeg": frozenset({"image/jpeg"}),
    "png": frozenset({"image/png"}),
    "gif": frozenset({"image/gif"}),
    "pdf": frozenset({"application/pdf"}),
    "doc": frozenset({"application/msword"}),
    "docx": frozenset(
        {"application/vnd.openxmlformats-officedocument.wordprocessingml.document"}
    ),
    "txt": frozenset({"text/plain"}),
    "xls": frozenset({"application/vnd.ms-excel"}),
    "xlsx": frozenset(
        {"application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"}
    ),
}


def _opt_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    return int(value)


def _opt_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    return float(value)


@dataclass(frozen=True)
class FieldOption:
    label: str
    value: str


@dataclass(frozen=True)
class FieldRules:
    """Validation rules of a field, with documented defaults."""

    required: bool = False
    min_length: int | None = None
    max_length: int | None = None
    min: float | None = None
    max: float | None = None
    pattern: str | None = None
    pattern_message: str | None = None
    file_types: tuple[str, ...] = ()
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    min_file_count: int = 0
    max_file_count: int = 1

    @classmethod
    def from_dict(cls, data: dict | None) -> "FieldRules":
        data = data or {}
        return cls(
            required=bool(data.get("required", False)),
            min_length=_opt_int(data.get("min_length")),
            max_length=_opt_int(data.get("max_length")),
            min=_opt_float(data.get("min")),
            max=_opt_float(data.get("max")),
            pattern=data.get("pattern") or None,
            pattern_message=data.get("pattern_message") or None,
            file_types=tuple(str(t).lower() for t in data.get("file_types") or ()),
            max_file_size=_opt_int(data.get("max_file_size")) or DEFAULT_MAX_FILE_SIZE,
            min_file_count=_opt_int(data.get("min_file_count")) or 0,
            max_file_count=_opt_int(data.get("max_file_count")) or 1,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "required": self.required,
            "min_length": self.min_length,
            "max_length": self.max_length,
            "min": self.min,
            "max": self.max,
            "pattern": self.pattern,
            "pattern_message": self.pattern_message,
            "file_types": list(self.file_types),
            "max_file_size": self.max_file_size,
            "min_file_count": self.min_file_count,
            "max_file_count": self.max_file_count,
        }

    @property
    def allowed_mime_types(self) -> frozenset[str]:
        mimes: set[str] = set()
        for file_type in self.file_types:
            mimes |= FILE_TYPE_MIME_TYPES.get(file_type, frozenset())
        return frozenset(mimes)


@dataclass(frozen=True)
class FieldSpec:
    """One field version as seen by validation and export."""

    name: str
    label: str
    field_type: FieldType
    options: tuple[FieldOption, ...] = ()
    rules: FieldRules = field(default_factory=FieldRules)
    order: int = 0
    is_active: bool = True
    id: uuid.UUID | None = None
    field_key: uuid.UUID | None = None
    version: int = 1

    @property
    def option_values(self) -> frozenset[str]:
        return frozenset(option.value for option in self.options)

    @property
    def is_option_field(self) -> bool:
        return self.field_type in OPTION_FIELD_TYPES

    @classmethod
    def from_model(cls, model) -> "FieldSpec":
        """Build from a FormField row."""
        return cls(
            name=model.name,
            label=model.label,
            field_type=FieldType(model.field_type),
            options=tuple(
                FieldOption(label=str(o.get("label", "")), value=str(o.get("value", "")))
                for o in model.options or []
            ),
            rules=FieldRules.from_dict(model.validation),
            order=model.order or 0,
            is_active=bool(model.is_active),
            id=model.id,
            field_key=model.field_key,
            version=model.version or 1,
        )

    @classmethod
    def from_snapshot(cls, data: dict) -> "FieldSpec":
        """Build from one entry of a submission's schema snapshot."""
        return cls(
            name=data["name"],
            label=data.get("label") or data["name"],
            field_type=FieldType(data["type"]),
            options=tuple(
                FieldOption(label=str(o.get("label", "")), value=str(o.get("value", "")))
                for o in data.get("options") or []
            ),
            rules=FieldRules.from_dict(data.get("validation")),
            order=int(data.get("order") or 0),
            is_active=bool(data.get("is_active", True)),
            id=uuid.UUID(data["id"]) if data.get("id") else None,
            field_key=uuid.UUID(data["field_key"]) if data.get("field_key") else None,
            version=int(data.get("version") or 1),
        )

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "id": str(self.id) if self.id else None,
            "field_key": str(self.field_key) if self.field_key else None,
            "version": self.version,
            "name": self.name,
            "label": self.label,
            "type": self.field_type.value,
            "options": [{"label": o.label, "value": o.value} for o in self.options],
            "validation": self.rules.to_dict(),
            "order": self.order,
            "is_active": self.is_active,
        }


def ordered_active(fields) -> list[FieldSpec]:
    """Active fields sorted by ``order`` (stable for equal orders)."""
    return sorted((f for f in fields if f.is_active), key=lambda f: f.order)


@dataclass(frozen=True)
class FormSettings:
    """Form-level submission settings, with documented defaults."""

    allow_multiple_submissions: bool = False
    require_login: bool = True
    confirmation_message: str = DEFAULT_CONFIRMATION_MESSAGE
    redirect_url: str | None = None
    submission_limit: int = 0  # 0 = unlimited
    start_date: datetime | None = None
    end_date: datetime | None = None

    @classmethod
    def from_model(cls, form) -> "FormSettings":
        return cls(
            allow_multiple_submissions=bool(form.allow_multiple_submissions),
            require_login=form.require_login is not False,
            confirmation_message=form.confirmation_message or DEFAULT_CONFIRMATION_MESSAGE,
            redirect_url=form.redirect_url,
            submission_limit=form.submission_limit or 0,
            start_date=form.start_date,
            end_date=form.end_date,
        )
