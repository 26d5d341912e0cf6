"""Schemas for form submissions."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from formdesk.db.enums import FormSubmissionStatus
from formdesk.schemas.forms import FormFieldOption


class SubmitterRead(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    email: EmailStr


class FormSubmissionFileRead(BaseModel):
    id: UUID
    field_name: str
    original_name: str
    size: int
    mime_type: str


class SubmissionNoteRead(BaseModel):
    id: UUID
    content: str
    created_by: UUID | None = None
    author_name: str | None = None
    created_at: datetime


class SubmissionEditRead(BaseModel):
    edited_at: datetime
    edited_by: UUID | None = None
    changes: dict[str, dict[str, Any]]


class SubmissionMetadataRead(BaseModel):
    ip_address: str | None = None
    user_agent: str | None = None
    referrer: str | None = None
    submitted_at: datetime
    completion_time: int | None = None
    is_edited: bool
    edit_history: list[SubmissionEditRead]


class SubmissionFieldRead(BaseModel):
    """Field as it was when the submission was made."""

    id: UUID | None = None
    name: str
    label: str
    type: str
    options: list[FormFieldOption] = Field(default_factory=list)
    order: int
    is_active: bool


class FormSubmissionRead(BaseModel):
    id: UUID
    form_id: UUID
    form_title: str | None = None
    status: FormSubmissionStatus
    submission_data: dict[str, Any]
    submitted_by: SubmitterRead | None = None
    metadata: SubmissionMetadataRead
    files: list[FormSubmissionFileRead]
    notes: list[SubmissionNoteRead]
    fields: list[SubmissionFieldRead] = Field(default_factory=list)


class FormSubmissionListResponse(BaseModel):
    items: list[FormSubmissionRead]
    total: int
    page: int
    per_page: int
    pages: int


class FormSubmissionCreated(BaseModel):
    """Response to a successful public submission."""

    id: UUID
    status: FormSubmissionStatus
    submitted_at: datetime
    confirmation_message: str
    redirect_url: str | None = None


class SubmissionStatusUpdate(BaseModel):
    status: FormSubmissionStatus


class SubmissionNoteCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class SubmissionAnswerUpdate(BaseModel):
    """Single field update in a submission."""

    field_name: str = Field(..., min_length=1, max_length=100)
    value: Any = None


class SubmissionAnswersUpdate(BaseModel):
    """Batch update for submission answers."""

    updates: list[SubmissionAnswerUpdate] = Field(..., min_length=1)
