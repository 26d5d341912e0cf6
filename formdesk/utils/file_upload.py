"""Helpers for turning multipart uploads into submission files."""

from __future__ import annotations

import json
from os import SEEK_END

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from formdesk.services.form_submission_service import IncomingFile
from formdesk.services.submission_validation import UploadedFile


async def get_upload_file_size(file: UploadFile) -> int:
    """Read size from the underlying file object without loading into memory."""

    def _get_size() -> int:
        stream = file.file
        original_pos = stream.tell()
        try:
            stream.seek(0, SEEK_END)
            return stream.tell()
        finally:
            stream.seek(original_pos)

    return await run_in_threadpool(_get_size)


def parse_file_field_keys(raw: str | None, file_count: int) -> list[str]:
    """
    Parse the JSON list naming the field each uploaded file belongs to.

    Raises:
        ValueError: payload is not a list of strings, or its length does not
            match the number of uploaded files
    """
    if not raw:
        if file_count:
            raise ValueError("file_field_keys is required when files are uploaded")
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("Invalid file_field_keys payload") from exc
    if not isinstance(parsed, list) or not all(isinstance(k, str) for k in parsed):
        raise ValueError("Invalid file_field_keys payload")
    if len(parsed) != file_count:
        raise ValueError("file_field_keys must name one field per uploaded file")
    return [k.strip().lower() for k in parsed]


async def build_incoming_files(
    files: list[UploadFile], field_keys: list[str]
) -> list[IncomingFile]:
    incoming = []
    for position, (upload, field_name) in enumerate(zip(files, field_keys)):
        size = await get_upload_file_size(upload)
        incoming.append(
            IncomingFile(
                descriptor=UploadedFile(
                    field_name=field_name,
                    original_name=upload.filename or "upload",
                    size=size,
                    mime_type=(upload.content_type or "application/octet-stream").lower(),
                    position=position,
                ),
                stream=upload.file,
            )
        )
    return incoming
