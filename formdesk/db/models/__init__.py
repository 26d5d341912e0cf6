"""SQLAlchemy ORM models."""

from formdesk.db.models.auth import User
from formdesk.db.models.forms import (
    DEFAULT_CONFIRMATION_MESSAGE,
    Form,
    FormField,
    FormSubmission,
    FormSubmissionFile,
    FormSubmissionNote,
)

__all__ = [
    "User",
    "Form",
    "FormField",
    "FormSubmission",
    "FormSubmissionFile",
    "FormSubmissionNote",
    "DEFAULT_CONFIRMATION_MESSAGE",
]
