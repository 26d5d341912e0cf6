"""Schemas for forms and their fields."""

import re
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from formdesk.db.enums import OPTION_FIELD_TYPES, FieldType, FieldWidth, FileType, FormTheme
from formdesk.db.models import DEFAULT_CONFIRMATION_MESSAGE
from formdesk.services.field_schema import (
    DEFAULT_MAX_FILE_SIZE,
    MAX_FILE_COUNT_LIMIT,
    MAX_FILE_SIZE_LIMIT,
    MIN_FILE_SIZE_LIMIT,
)


FIELD_NAME_PATTERN = r"^[A-Za-z0-9_]+$"
HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class FormFieldOption(BaseModel):
    label: str = Field(..., min_length=1, max_length=200)
    value: str = Field(..., min_length=1, max_length=200)


class FormFieldValidation(BaseModel):
    required: bool = False
    min_length: int | None = Field(None, ge=0)
    max_length: int | None = Field(None, ge=0)
    min: float | None = None
    max: float | None = None
    pattern: str | None = Field(None, max_length=500)
    pattern_message: str | None = Field(None, max_length=200)
    file_types: list[FileType] = Field(default_factory=list)
    max_file_size: int = Field(DEFAULT_MAX_FILE_SIZE, ge=MIN_FILE_SIZE_LIMIT, le=MAX_FILE_SIZE_LIMIT)
    min_file_count: int = Field(0, ge=0, le=MAX_FILE_COUNT_LIMIT)
    max_file_count: int = Field(1, ge=1, le=MAX_FILE_COUNT_LIMIT)

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str | None) -> str | None:
        """Reject patterns that do not compile."""
        if v is None or v == "":
            return None
        try:
            re.compile(v)
        except re.error as exc:
            raise ValueError(f"Invalid pattern: {exc}") from exc
        return v

    @model_validator(mode="after")
    def _validate_ranges(self):
        if self.min_length is not None and self.max_length is not None:
            if self.min_length > self.max_length:
                raise ValueError("min_length cannot be greater than max_length")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("min cannot be greater than max")
        if self.min_file_count > self.max_file_count:
            raise ValueError("min_file_count cannot be greater than max_file_count")
        return self


class FormFieldLayout(BaseModel):
    width: FieldWidth = FieldWidth.FULL
    show_label: bool = True
    css_class: str | None = Field(None, max_length=100)


class FormFieldInput(BaseModel):
    """Field definition sent by the form builder.

    ``id`` references an existing field version of the same form; sending it
    keeps the logical field (a new version is recorded). Omit it to create a
    new field.
    """

    id: UUID | None = None
    name: str = Field(..., min_length=1, max_length=100, pattern=FIELD_NAME_PATTERN)
    label: str = Field(..., min_length=1, max_length=100)
    type: FieldType
    placeholder: str | None = Field(None, max_length=100)
    help_text: str | None = Field(None, max_length=200)
    default_value: Any = None
    options: list[FormFieldOption] = Field(default_factory=list)
    validation: FormFieldValidation = Field(default_factory=FormFieldValidation)
    layout: FormFieldLayout = Field(default_factory=FormFieldLayout)
    order: int | None = Field(None, ge=0)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        return v.lower()

    @field_validator("label")
    @classmethod
    def strip_label(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Label is required")
        return v

    @model_validator(mode="after")
    def _validate_options(self):
        if self.type in OPTION_FIELD_TYPES and not self.options:
            raise ValueError(f"{self.type.value} fields must have at least one option")
        return self


def _check_unique_names(fields: list[FormFieldInput] | None) -> None:
    if not fields:
        return
    seen: set[str] = set()
    for f in fields:
        if f.name in seen:
            raise ValueError(f"Duplicate field name: {f.name}")
        seen.add(f.name)


class FormSettingsSchema(BaseModel):
    allow_multiple_submissions: bool = False
    require_login: bool = True
    confirmation_message: str = Field(DEFAULT_CONFIRMATION_MESSAGE, max_length=1000)
    redirect_url: str | None = Field(None, max_length=2048)
    submission_limit: int = Field(0, ge=0)
    start_date: datetime | None = None
    end_date: datetime | None = None

    @model_validator(mode="after")
    def _validate_window(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be before end_date")
        return self


class FormSettingsUpdate(BaseModel):
    """Partial settings; only the provided keys are changed."""

    allow_multiple_submissions: bool | None = None
    require_login: bool | None = None
    confirmation_message: str | None = Field(None, max_length=1000)
    redirect_url: str | None = Field(None, max_length=2048)
    submission_limit: int | None = Field(None, ge=0)
    start_date: datetime | None = None
    end_date: datetime | None = None


class FormAppearance(BaseModel):
    theme: FormTheme = FormTheme.LIGHT
    primary_color: str = Field("#3b82f6", pattern=HEX_COLOR_PATTERN)
    background_color: str = Field("#ffffff", pattern=HEX_COLOR_PATTERN)
    submit_button_text: str = Field("Submit", min_length=1, max_length=50)


class FormAppearanceUpdate(BaseModel):
    theme: FormTheme | None = None
    primary_color: str | None = Field(None, pattern=HEX_COLOR_PATTERN)
    background_color: str | None = Field(None, pattern=HEX_COLOR_PATTERN)
    submit_button_text: str | None = Field(None, min_length=1, max_length=50)


class FormCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=1000)
    settings: FormSettingsSchema = Field(default_factory=FormSettingsSchema)
    appearance: FormAppearance = Field(default_factory=FormAppearance)
    fields: list[FormFieldInput] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_fields(self):
        _check_unique_names(self.fields)
        return self


class FormUpdate(BaseModel):
    """Partial update. ``fields`` replaces the active field set when non-empty."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=1000)
    is_active: bool | None = None
    settings: FormSettingsUpdate | None = None
    appearance: FormAppearanceUpdate | None = None
    fields: list[FormFieldInput] | None = None

    @model_validator(mode="after")
    def _validate_fields(self):
        _check_unique_names(self.fields)
        return self


class FormFieldRead(BaseModel):
    id: UUID
    field_key: UUID
    version: int
    name: str
    label: str
    type: FieldType
    placeholder: str | None = None
    help_text: str | None = None
    default_value: Any = None
    options: list[FormFieldOption]
    validation: FormFieldValidation
    layout: FormFieldLayout
    order: int
    is_active: bool
    created_at: datetime


class FormStats(BaseModel):
    total_submissions: int
    unique_submitters: int
    last_submission_at: datetime | None = None
    average_completion_time: float | None = None


class FormSummary(BaseModel):
    id: UUID
    title: str
    description: str | None = None
    is_active: bool
    is_accepting: bool
    field_count: int
    stats: FormStats
    created_at: datetime
    updated_at: datetime


class FormRead(FormSummary):
    created_by: UUID | None = None
    settings: FormSettingsSchema
    appearance: FormAppearance
    fields: list[FormFieldRead]


class FormListResponse(BaseModel):
    items: list[FormSummary]
    total: int
    page: int
    per_page: int
    pages: int
