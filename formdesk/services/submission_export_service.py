"""Submission export: flatten submissions into rows, render as CSV or XLSX."""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from sqlalchemy.orm import Session

from formdesk.core.structured_logging import build_log_context
from formdesk.db.models import Form
from formdesk.services import form_service, form_submission_service
from formdesk.services.field_schema import FieldSpec, ordered_active

logger = logging.getLogger(__name__)


LEADING_HEADERS = ("Submission ID", "Submitted At", "Submitted By")
SUBMITTED_AT_FORMAT = "%d/%m/%Y %H:%M"
CSV_DANGEROUS_PREFIXES = ("=", "+", "-", "@")
EXPORT_FORMATS = {
    "csv": "text/csv; charset=utf-8",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}
MAX_COLUMN_WIDTH = 50


@dataclass
class ExportTable:
    headers: list[str]
    rows: list[list[str]] = field(default_factory=list)


def format_submitter(user) -> str:
    if user is None:
        return "Anonymous"
    name = f"{user.first_name or ''} {user.last_name or ''}".strip()
    return f"{name} ({user.email})" if name else f"({user.email})"


def format_submitted_at(value: datetime | None) -> str:
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(SUBMITTED_AT_FORMAT)


def format_cell(value: Any) -> str:
    """Render one answer as text: lists joined with ', ', missing as ''."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ", ".join(format_cell(item) for item in value)
    return str(value)


def project_submissions(fields: Iterable[FieldSpec], submissions: Iterable) -> ExportTable:
    """
    Flatten submissions into an ExportTable.

    Columns are the three leading columns followed by every active field's
    label in ``order``. Deterministic: the same inputs give the same rows.
    """
    columns = ordered_active(fields)
    table = ExportTable(headers=[*LEADING_HEADERS, *(spec.label for spec in columns)])
    for submission in submissions:
        data = submission.submission_data or {}
        table.rows.append(
            [
                str(submission.id),
                format_submitted_at(submission.submitted_at),
                format_submitter(submission.submitter),
                *(format_cell(data.get(spec.name)) for spec in columns),
            ]
        )
    return table


# =============================================================================
# Sinks
# =============================================================================

def _csv_safe(value: str) -> str:
    if value and value.startswith(CSV_DANGEROUS_PREFIXES):
        return f"'{value}"
    return value


def _write_csv(headers: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([_csv_safe(h) for h in headers])
    for row in rows:
        writer.writerow([_csv_safe(value) for value in row])
    return output.getvalue()


def write_csv(table: ExportTable) -> str:
    return _write_csv(table.headers, table.rows)


def write_xlsx(table: ExportTable, sheet_title: str = "Submissions") -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill("solid", fgColor="3B82F6")
    widths = [len(h) for h in table.headers]

    for ci, header in enumerate(table.headers, 1):
        cell = ws.cell(row=1, column=ci)
        cell.value = header
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center")

    for ri, row in enumerate(table.rows, 2):
        for ci, value in enumerate(row, 1):
            cell = ws.cell(row=ri, column=ci)
            cell.value = ILLEGAL_CHARACTERS_RE.sub("", value)
            # Answers are data, never formulas
            cell.data_type = "s"
            widths[ci - 1] = max(widths[ci - 1], len(value))

    for ci, width in enumerate(widths, 1):
        ws.column_dimensions[get_column_letter(ci)].width = min(width + 2, MAX_COLUMN_WIDTH)
    ws.freeze_panes = "A2"

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


# =============================================================================
# Service
# =============================================================================

@dataclass
class ExportFile:
    content: bytes
    media_type: str
    filename: str


def export_form_submissions(
    db: Session,
    form: Form,
    export_format: str,
    user_id=None,
    now: datetime | None = None,
) -> ExportFile:
    """Export every submission of a form using the form's active fields."""
    if export_format not in EXPORT_FORMATS:
        raise ValueError(f"format must be one of: {', '.join(EXPORT_FORMATS)}")

    fields = [
        FieldSpec.from_model(f) for f in form_service.list_fields(db, form.id)
    ]
    submissions = form_submission_service.list_all_form_submissions(db, form.id)
    table = project_submissions(fields, submissions)

    if export_format == "csv":
        content = write_csv(table).encode("utf-8")
    else:
        content = write_xlsx(table)

    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d%H%M%S")
    logger.info(
        "form_submissions_exported",
        extra={
            **build_log_context(
                user_id=str(user_id) if user_id else None, form_id=str(form.id)
            ),
            "format": export_format,
            "row_count": len(table.rows),
        },
    )
    return ExportFile(
        content=content,
        media_type=EXPORT_FORMATS[export_format],
        filename=f"submissions_{form.id}_{stamp}.{export_format}",
    )
