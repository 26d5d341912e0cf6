"""Enum definitions for application constants."""

from formdesk.db.enums.auth import Role
from formdesk.db.enums.forms import (
    OPTION_FIELD_TYPES,
    TEXT_FIELD_TYPES,
    FieldType,
    FieldWidth,
    FileType,
    FormSubmissionStatus,
    FormTheme,
)

__all__ = [
    "Role",
    "FieldType",
    "FieldWidth",
    "FileType",
    "FormSubmissionStatus",
    "FormTheme",
    "OPTION_FIELD_TYPES",
    "TEXT_FIELD_TYPES",
]
