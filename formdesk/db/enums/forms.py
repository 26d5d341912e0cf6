"""Form-related enums."""

from enum import Enum


class FieldType(str, Enum):
    """Input type of a form field."""

    TEXT = "text"
    NUMBER = "number"
    EMAIL = "email"
    TEXTAREA = "textarea"
    DROPDOWN = "dropdown"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    FILE = "file"


OPTION_FIELD_TYPES = frozenset({FieldType.DROPDOWN, FieldType.CHECKBOX, FieldType.RADIO})
TEXT_FIELD_TYPES = frozenset({FieldType.TEXT, FieldType.TEXTAREA})


class FormSubmissionStatus(str, Enum):
    """Review status of a submission."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ARCHIVED = "archived"


class FormTheme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    AUTO = "auto"


class FieldWidth(str, Enum):
    FULL = "full"
    HALF = "half"
    THIRD = "third"
    QUARTER = "quarter"


class FileType(str, Enum):
    """File extensions a file field may accept."""

    JPG = "jpg"
    JPEG = "jpeg"
    PNG = "png"
    GIF = "gif"
    PDF = "pdf"
    DOC = "doc"
    DOCX = "docx"
    TXT = "txt"
    XLS = "xls"
    XLSX = "xlsx"
