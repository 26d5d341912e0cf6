"""Submission validation engine.

Pure functions: given field specs and a raw payload, return the validated
values and every error message, in field order. No I/O, no clock.
"""

from __future__ import annotations

import math
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from formdesk.db.enums import FieldType
from formdesk.services.field_schema import FieldSpec, ordered_active


EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

_MISSING = object()


@dataclass(frozen=True)
class UploadedFile:
    """Descriptor of one uploaded file; content stays with the caller."""

    field_name: str
    original_name: str
    size: int
    mime_type: str
    position: int = 0

    @property
    def extension(self) -> str:
        return os.path.splitext(self.original_name or "")[1].lstrip(".").lower()


@dataclass
class FieldResult:
    value: Any = None
    has_value: bool = False
    errors: list[str] = field(default_factory=list)
    files: list[UploadedFile] = field(default_factory=list)


@dataclass
class ValidationResult:
    data: dict[str, Any] = field(default_factory=dict)
    files: list[UploadedFile] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    field_errors: dict[str, list[str]] = field(default_factory=dict)
    ignored_uploads: list[UploadedFile] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def _format_number(value: float | int) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _is_empty(spec: FieldSpec, value: Any) -> bool:
    if value is None or value is _MISSING or value == "":
        return True
    # An empty selection only means "no answer" for multi-choice fields
    return spec.field_type == FieldType.CHECKBOX and value == []


def _option_text(value: Any) -> str | None:
    """Submitted option as text; JSON numbers match their string option values."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _format_number(value)
    return None


def coerce_number(raw: Any) -> int | float | None:
    """Coerce a submitted value to a finite number, or None if it is not one."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        number = raw
    elif isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    if number.is_integer():
        return int(number)
    return number


def _check_number(spec: FieldSpec, raw: Any) -> FieldResult:
    number = coerce_number(raw)
    if number is None:
        return FieldResult(errors=[f"{spec.label} must be a valid number"])
    errors = []
    rules = spec.rules
    if rules.min is not None and number < rules.min:
        errors.append(f"{spec.label} must be at least {_format_number(rules.min)}")
    if rules.max is not None and number > rules.max:
        errors.append(f"{spec.label} must be at most {_format_number(rules.max)}")
    if errors:
        return FieldResult(errors=errors)
    return FieldResult(value=number, has_value=True)


def _check_email(spec: FieldSpec, raw: Any) -> FieldResult:
    if not isinstance(raw, str) or not EMAIL_PATTERN.fullmatch(raw):
        return FieldResult(errors=[f"{spec.label} must be a valid email address"])
    return FieldResult(value=raw, has_value=True)


def _check_text(spec: FieldSpec, raw: Any) -> FieldResult:
    if not isinstance(raw, str):
        return FieldResult(errors=[f"{spec.label} must be text"])
    rules = spec.rules
    if rules.min_length is not None and len(raw) < rules.min_length:
        return FieldResult(errors=[f"{spec.label} must be at least {rules.min_length} characters"])
    if rules.max_length is not None and len(raw) > rules.max_length:
        return FieldResult(errors=[f"{spec.label} must be at most {rules.max_length} characters"])
    if rules.pattern:
        try:
            matched = re.search(rules.pattern, raw) is not None
        except re.error:
            matched = False
        if not matched:
            return FieldResult(errors=[rules.pattern_message or f"{spec.label} format is invalid"])
    return FieldResult(value=raw, has_value=True)


def _option_error(spec: FieldSpec) -> FieldResult:
    return FieldResult(errors=[f"{spec.label} must be one of the available options"])


def _check_choice(spec: FieldSpec, raw: Any) -> FieldResult:
    value = _option_text(raw)
    if value is None or value not in spec.option_values:
        return _option_error(spec)
    return FieldResult(value=value, has_value=True)


def _check_checkbox(spec: FieldSpec, raw: Any) -> FieldResult:
    items = raw if isinstance(raw, list) else [raw]
    allowed = spec.option_values
    values = []
    for item in items:
        value = _option_text(item)
        if value is None or value not in allowed:
            return _option_error(spec)
        values.append(value)
    return FieldResult(value=values, has_value=True)


_TYPE_CHECKS = {
    FieldType.NUMBER: _check_number,
    FieldType.EMAIL: _check_email,
    FieldType.TEXT: _check_text,
    FieldType.TEXTAREA: _check_text,
    FieldType.DROPDOWN: _check_choice,
    FieldType.RADIO: _check_choice,
    FieldType.CHECKBOX: _check_checkbox,
}


def validate_field(spec: FieldSpec, raw: Any = _MISSING) -> FieldResult:
    """Validate one non-file field value. Stops at the first failing rule."""
    if _is_empty(spec, raw):
        if spec.rules.required:
            return FieldResult(errors=[f"{spec.label} is required"])
        if raw is None or raw is _MISSING:
            return FieldResult()
        # Optional and explicitly empty: kept as submitted
        return FieldResult(value=raw, has_value=True)

    check = _TYPE_CHECKS.get(spec.field_type)
    if check is None:
        return FieldResult()
    return check(spec, raw)


def _plural(count: int) -> str:
    return "file" if count == 1 else "files"


def validate_file_field(spec: FieldSpec, uploads: list[UploadedFile]) -> FieldResult:
    """Check a file field's uploads against its count, type, and size rules."""
    rules = spec.rules
    if not uploads:
        if rules.required:
            return FieldResult(errors=[f"{spec.label} is required"])
        return FieldResult()

    errors: list[str] = []
    count = len(uploads)
    if count < rules.min_file_count:
        errors.append(
            f"{spec.label} requires at least {rules.min_file_count} {_plural(rules.min_file_count)}"
        )
    if count > rules.max_file_count:
        errors.append(
            f"{spec.label} allows at most {rules.max_file_count} {_plural(rules.max_file_count)}"
        )

    allowed_mimes = rules.allowed_mime_types
    for upload in uploads:
        if rules.file_types and not (
            upload.extension in rules.file_types
            or (upload.mime_type or "").lower() in allowed_mimes
        ):
            errors.append(
                f"{spec.label}: file type not allowed. "
                f"Allowed types: {', '.join(rules.file_types)}"
            )
        if upload.size > rules.max_file_size:
            limit_mb = _format_number(round(rules.max_file_size / (1024 * 1024), 2))
            errors.append(f"{spec.label}: file size must be less than {limit_mb} MB")

    if errors:
        return FieldResult(errors=errors)

    names = [u.original_name for u in uploads]
    return FieldResult(
        value=names[0] if len(names) == 1 else names,
        has_value=True,
        files=list(uploads),
    )


def validate_files(
    specs: list[FieldSpec], uploads: list[UploadedFile]
) -> tuple[dict[str, FieldResult], list[UploadedFile]]:
    """Group uploads by file field and check each group.

    Returns per-field results for every active file field, plus the uploads
    that did not name an active file field.
    """
    file_fields = {s.name: s for s in ordered_active(specs) if s.field_type == FieldType.FILE}
    grouped: dict[str, list[UploadedFile]] = {name: [] for name in file_fields}
    ignored: list[UploadedFile] = []
    for upload in uploads:
        if upload.field_name in grouped:
            grouped[upload.field_name].append(upload)
        else:
            ignored.append(upload)
    results = {name: validate_file_field(spec, grouped[name]) for name, spec in file_fields.items()}
    return results, ignored


def validate_submission(
    specs: list[FieldSpec],
    payload: Any,
    uploads: list[UploadedFile] | None = None,
) -> ValidationResult:
    """Validate a whole submission against the active fields, in order.

    Errors are aggregated across fields; within a field evaluation stops at
    the first failing rule.
    """
    result = ValidationResult()
    if not isinstance(payload, Mapping):
        result.errors.append("Submission data must be an object")
        return result

    file_results, result.ignored_uploads = validate_files(specs, uploads or [])

    for spec in ordered_active(specs):
        if spec.field_type == FieldType.FILE:
            field_result = file_results[spec.name]
        else:
            field_result = validate_field(spec, payload.get(spec.name, _MISSING))

        if field_result.errors:
            result.errors.extend(field_result.errors)
            result.field_errors[spec.name] = list(field_result.errors)
            continue
        if field_result.has_value:
            result.data[spec.name] = field_result.value
            result.files.extend(field_result.files)

    return result
