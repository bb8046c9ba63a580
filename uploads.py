"""
Disk storage for uploaded files.

Validation (extension, MIME type, header bytes, size) happens before
anything is written. Stored names follow ``<field>-<millis>-<random><ext>``.
"""

from __future__ import annotations

import logging
import os
import secrets
import time
from dataclasses import dataclass
from pathlib import Path

from flask import current_app
from werkzeug.datastructures import FileStorage

from helpers import ApiError

logger = logging.getLogger(__name__)

# extension → accepted MIME types
ATTACHMENT_TYPES: dict[str, set[str]] = {
    ".jpeg": {"image/jpeg"},
    ".jpg": {"image/jpeg"},
    ".png": {"image/png"},
    ".gif": {"image/gif"},
    ".pdf": {"application/pdf"},
    ".doc": {"application/msword"},
    ".docx": {"application/vnd.openxmlformats-officedocument.wordprocessingml.document"},
    ".txt": {"text/plain"},
    ".mp4": {"video/mp4"},
    ".mp3": {"audio/mpeg", "audio/mp3"},
    ".zip": {"application/zip", "application/x-zip-compressed"},
}

CONTENT_TYPES: dict[str, set[str]] = {
    ".jpeg": {"image/jpeg"},
    ".jpg": {"image/jpeg"},
    ".png": {"image/png"},
    ".gif": {"image/gif"},
    ".pdf": {"application/pdf"},
    ".doc": {"application/msword"},
    ".docx": {"application/vnd.openxmlformats-officedocument.wordprocessingml.document"},
    ".ppt": {"application/vnd.ms-powerpoint"},
    ".pptx": {"application/vnd.openxmlformats-officedocument.presentationml.presentation"},
}

# Magic byte signatures for file header validation
_MAGIC_BYTES = {
    ".pdf": b"%PDF",
    ".png": b"\x89PNG",
    ".jpg": b"\xff\xd8\xff",
    ".jpeg": b"\xff\xd8\xff",
    ".gif": b"GIF8",
    ".zip": b"PK",
    ".docx": b"PK",
    ".pptx": b"PK",
}

# Some clients send this for everything; fall back to the extension check alone
_GENERIC_MIME = "application/octet-stream"


@dataclass
class StoredFile:
    filename: str
    original_name: str
    path: str
    mime_type: str
    size: int

    def remove(self) -> None:
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass


def _validate_file_header(file_storage: FileStorage, ext: str) -> bool:
    """Check file header magic bytes match the claimed extension."""
    expected = _MAGIC_BYTES.get(ext)
    if not expected:
        return True
    header = file_storage.stream.read(len(expected))
    file_storage.stream.seek(0)
    return header.startswith(expected)


def _stream_size(file_storage: FileStorage) -> int:
    stream = file_storage.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def upload_dir(subdir: str = "") -> Path:
    root = Path(current_app.config["UPLOAD_FOLDER"])
    target = root / subdir if subdir else root
    target.mkdir(parents=True, exist_ok=True)
    return target


def save_upload(
    file_storage: FileStorage | None,
    allowed: dict[str, set[str]] = ATTACHMENT_TYPES,
    subdir: str = "",
    field: str = "file",
) -> StoredFile:
    """Validate and store an uploaded file, returning where it landed."""
    if file_storage is None or not file_storage.filename:
        raise ApiError("No file uploaded", 400)

    original_name = os.path.basename(file_storage.filename)
    ext = Path(original_name).suffix.lower()
    if ext not in allowed:
        names = ", ".join(sorted(e.lstrip(".") for e in allowed))
        raise ApiError(f"Invalid file type. Allowed types: {names}", 400)

    mime_type = (file_storage.mimetype or _GENERIC_MIME).lower()
    if mime_type != _GENERIC_MIME and mime_type not in allowed[ext]:
        raise ApiError("File type does not match its extension.", 400)
    if mime_type == _GENERIC_MIME:
        mime_type = sorted(allowed[ext])[0]

    max_size = current_app.config.get("MAX_FILE_SIZE", 10 * 1024 * 1024)
    size = _stream_size(file_storage)
    if size > max_size:
        raise ApiError(f"File too large. Maximum size is {max_size // (1024 * 1024)}MB.", 400)
    if size == 0:
        raise ApiError("Uploaded file is empty", 400)

    if not _validate_file_header(file_storage, ext):
        raise ApiError("File content does not match its extension.", 400)

    filename = f"{field}-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"
    path = upload_dir(subdir) / filename
    file_storage.save(str(path))
    logger.info("Stored upload %s (%d bytes) as %s", original_name, size, filename)
    return StoredFile(filename, original_name, str(path), mime_type, size)


def delete_stored(path: str) -> bool:
    """Remove a stored file; False when it was already gone."""
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        logger.warning("Stored file missing on delete: %s", path)
        return False
