"""Storage backend for submission uploads (local disk or S3)."""

from __future__ import annotations

import hashlib
import logging
import os
import re
import uuid
from typing import BinaryIO

from botocore.exceptions import ClientError

from formdesk.core.config import Settings
from formdesk.services.storage_client import get_s3_client

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def calculate_checksum(file: BinaryIO) -> str:
    """Calculate SHA-256 checksum of file."""
    sha256 = hashlib.sha256()
    file.seek(0)
    for chunk in iter(lambda: file.read(8192), b""):
        sha256.update(chunk)
    file.seek(0)
    return sha256.hexdigest()


def build_storage_key(form_id: uuid.UUID, filename: str) -> str:
    """Unique storage key; the original name is kept only as a suffix."""
    safe_name = _UNSAFE_FILENAME_CHARS.sub("_", os.path.basename(filename or "")) or "upload"
    return f"submissions/{form_id}/{uuid.uuid4().hex}_{safe_name[-100:]}"


class FileStore:
    """Stores and removes uploaded files on the configured backend."""

    def __init__(self, settings: Settings):
        self.backend = settings.STORAGE_BACKEND
        self.local_path = settings.LOCAL_STORAGE_PATH
        self.bucket = settings.S3_BUCKET
        self._settings = settings
        self._s3 = None

    def _client(self):
        if self._s3 is None:
            self._s3 = get_s3_client(self._settings)
        return self._s3

    def _local_file(self, storage_key: str) -> str:
        root = os.path.abspath(self.local_path)
        path = os.path.abspath(os.path.join(root, storage_key))
        if not path.startswith(root + os.sep):
            raise ValueError("Invalid storage key")
        return path

    def store(self, storage_key: str, file: BinaryIO) -> None:
        """Store file to configured backend."""
        file.seek(0)
        if self.backend == "s3":
            self._client().upload_fileobj(file, self.bucket, storage_key)
            return
        path = self._local_file(storage_key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            for chunk in iter(lambda: file.read(8192), b""):
                f.write(chunk)

    def read(self, storage_key: str) -> bytes:
        if self.backend == "s3":
            response = self._client().get_object(Bucket=self.bucket, Key=storage_key)
            return response["Body"].read()
        with open(self._local_file(storage_key), "rb") as f:
            return f.read()

    def delete(self, storage_key: str) -> None:
        """Delete file from storage. Missing files are ignored."""
        if self.backend == "s3":
            try:
                self._client().delete_object(Bucket=self.bucket, Key=storage_key)
            except ClientError:
                logger.warning(
                    "submission_file_delete_failed",
                    extra={"storage_key": storage_key},
                    exc_info=True,
                )
            return
        path = self._local_file(storage_key)
        if os.path.exists(path):
            os.remove(path)

    def delete_many(self, storage_keys: list[str]) -> None:
        for key in storage_keys:
            self.delete(key)
