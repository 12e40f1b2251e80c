# backend/sagadb/apps/certificates/storage.py

"""
Local file storage for certificate uploads.

Files live under STORAGE_PATH as "<trainee_profile_id>/<uuid><ext>"; the
database only ever stores that relative path.
"""

from __future__ import annotations

import logging
import mimetypes
import os
from pathlib import Path
from typing import BinaryIO, Optional, Tuple
import uuid

from sagadb.apps.policy.errors import PayloadTooLarge, ValidationFailed

logger = logging.getLogger(__name__)

STORAGE_PATH = Path(os.getenv("STORAGE_PATH", "storage")).resolve()
CERTIFICATE_MAX_BYTES = int(os.getenv("CERTIFICATE_MAX_BYTES", str(10 * 1024 * 1024)) or "0")

ALLOWED_EXTENSIONS = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}
_EXT_BY_MIME = {"application/pdf": ".pdf", "image/png": ".png", "image/jpeg": ".jpg"}

_CHUNK_SIZE = 1024 * 1024


def resolve_extension(filename: Optional[str], content_type: Optional[str]) -> str:
    ext = Path(filename or "").suffix.lower()
    if not ext and content_type:
        ext = _EXT_BY_MIME.get(content_type.split(";")[0].strip().lower(), "")
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationFailed("File type not allowed. Allowed: PDF, PNG, JPG, JPEG")
    return ext


def guess_mime_type(ext: str, content_type: Optional[str]) -> str:
    if content_type and content_type != "application/octet-stream":
        return content_type
    return ALLOWED_EXTENSIONS.get(ext) or mimetypes.types_map.get(ext, "application/octet-stream")


def absolute_path(relative_path: str) -> Path:
    resolved = (STORAGE_PATH / relative_path).resolve()
    if STORAGE_PATH not in resolved.parents:
        raise ValidationFailed("Invalid file path")
    return resolved


def save_upload(trainee_profile_id: str, ext: str, source: BinaryIO) -> Tuple[str, int]:
    """Stream `source` to disk. Returns (relative path, size in bytes)."""
    relative_path = f"{trainee_profile_id}/{uuid.uuid4()}{ext}"
    dest_path = absolute_path(relative_path)
    dest_path.parent.mkdir(parents=True, exist_ok=True)

    total = 0
    try:
        with dest_path.open("wb") as out:
            while True:
                chunk = source.read(_CHUNK_SIZE)
                if not chunk:
                    break
                total += len(chunk)
                if CERTIFICATE_MAX_BYTES and total > CERTIFICATE_MAX_BYTES:
                    raise PayloadTooLarge()
                out.write(chunk)
    except Exception:
        delete_if_exists(relative_path)
        raise
    if total == 0:
        delete_if_exists(relative_path)
        raise ValidationFailed("Uploaded file is empty")
    return relative_path, total


def delete_if_exists(relative_path: Optional[str]) -> bool:
    if not relative_path:
        return False
    try:
        path = absolute_path(relative_path)
        if path.exists():
            path.unlink()
            return True
    except (OSError, ValidationFailed):
        logger.warning("Failed to delete stored file", extra={"file_path": relative_path})
    return False
