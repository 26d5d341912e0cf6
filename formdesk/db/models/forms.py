"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from formdesk.db.base import Base
from formdesk.db.enums import FormSubmissionStatus
from formdesk.db.types import JsonType, utc_now

if TYPE_CHECKING:
    from formdesk.db.models import User


DEFAULT_CONFIRMATION_MESSAGE = "Thank you for your submission!"


class Form(Base):
    """Form definition: settings, appearance, and submission statistics.

    Forms are never hard-deleted; deletion clears ``is_active`` on the form
    and on every field.
    """

    __tablename__ = "forms"
    __table_args__ = (
        Index("idx_forms_active", "is_active"),
        Index("idx_forms_created_by", "created_by"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Settings
    allow_multiple_submissions: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    require_login: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    confirmation_message: Mapped[str] = mapped_column(
        Text, default=DEFAULT_CONFIRMATION_MESSAGE, nullable=False
    )
    redirect_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    submission_limit: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # 0 = unlimited
    start_date: Mapped[datetime | None] = mapped_column(nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(nullable=True)

    # Appearance (theme, colors, button text)
    appearance: Mapped[dict] = mapped_column(JsonType, default=dict, nullable=False)

    # Stats
    total_submissions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unique_submitters: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_submission_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    creator: Mapped["User | None"] = relationship()
    fields: Mapped[list["FormField"]] = relationship(
        back_populates="form",
        order_by="FormField.order",
    )


class FormField(Base):
    """One immutable version of a form field.

    ``field_key`` identifies the logical field across versions. Editing a
    field deactivates the current row and adds a new row with the same key
    and ``version + 1``; submissions keep pointing at the version they saw.
    """

    __tablename__ = "form_fields"
    __table_args__ = (
        UniqueConstraint("field_key", "version", name="uq_form_fields_key_version"),
        Index("idx_form_fields_form_active", "form_id", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    form_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("forms.id", ondelete="CASCADE"), nullable=False
    )
    field_key: Mapped[uuid.UUID] = mapped_column(Uuid, default=uuid.uuid4, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    field_type: Mapped[str] = mapped_column(String(20), nullable=False)
    placeholder: Mapped[str | None] = mapped_column(String(100), nullable=True)
    help_text: Mapped[str | None] = mapped_column(String(200), nullable=True)
    default_value: Mapped[Any] = mapped_column(JsonType, nullable=True)
    options: Mapped[list] = mapped_column(JsonType, default=list, nullable=False)
    validation: Mapped[dict] = mapped_column(JsonType, default=dict, nullable=False)
    layout: Mapped[dict] = mapped_column(JsonType, default=dict, nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    form: Mapped["Form"] = relationship(back_populates="fields")


class FormSubmission(Base):
    """A validated submission of a form.

    ``dedupe_key`` holds the submitter id when the form disallows multiple
    submissions, so the unique constraint rejects a second row for the same
    user. It is NULL otherwise and NULLs never collide.
    """

    __tablename__ = "form_submissions"
    __table_args__ = (
        UniqueConstraint("form_id", "dedupe_key", name="uq_form_submissions_dedupe"),
        Index("idx_form_submissions_form_submitted", "form_id", "submitted_at"),
        Index("idx_form_submissions_submitted_by", "submitted_by"),
        Index("idx_form_submissions_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    form_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("forms.id", ondelete="CASCADE"), nullable=False
    )
    submitted_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    dedupe_key: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=FormSubmissionStatus.PENDING.value, nullable=False
    )

    submission_data: Mapped[dict] = mapped_column(JsonType, default=dict, nullable=False)
    # Field versions active at submission time
    schema_snapshot: Mapped[list | None] = mapped_column(JsonType, nullable=True)

    # Metadata
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    referrer: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    completion_time: Mapped[int | None] = mapped_column(Integer, nullable=True)  # seconds
    is_edited: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    edit_history: Mapped[list] = mapped_column(JsonType, default=list, nullable=False)

    submitted_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    form: Mapped["Form"] = relationship()
    submitter: Mapped["User | None"] = relationship()
    files: Mapped[list["FormSubmissionFile"]] = relationship(
        back_populates="submission",
        order_by="FormSubmissionFile.position",
        cascade="all, delete-orphan",
    )
    notes: Mapped[list["FormSubmissionNote"]] = relationship(
        back_populates="submission",
        order_by="FormSubmissionNote.created_at",
        cascade="all, delete-orphan",
    )


class FormSubmissionFile(Base):
    """File uploaded as part of a submission."""

    __tablename__ = "form_submission_files"
    __table_args__ = (Index("idx_form_submission_files_submission", "submission_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    submission_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("form_submissions.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    field_name: Mapped[str] = mapped_column(String(100), nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    stored_name: Mapped[str] = mapped_column(String(512), nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    checksum_sha256: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    submission: Mapped["FormSubmission"] = relationship(back_populates="files")


class FormSubmissionNote(Base):
    """Append-only reviewer note on a submission."""

    __tablename__ = "form_submission_notes"
    __table_args__ = (Index("idx_form_submission_notes_submission", "submission_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    submission_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("form_submissions.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    submission: Mapped["FormSubmission"] = relationship(back_populates="notes")
    author: Mapped["User | None"] = relationship()
