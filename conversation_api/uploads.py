"""
Upload intake for recorded audio.

The multipart `audio` field is streamed to a request-scoped file under the
upload directory. Only MP3 uploads are accepted and the size is capped; a
rejected upload never leaves a partial file behind.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from logging_setup import Component, get_logger

from .errors import UnsupportedAudioError, UploadTooLargeError

ALLOWED_MIME_TYPES = frozenset({"audio/mp3", "audio/mpeg"})
CHUNK_SIZE = 64 * 1024

logger = get_logger(Component.UPLOADS)


@dataclass(frozen=True)
class StoredUpload:
    """An uploaded audio file on disk, owned by a single request."""

    path: Path
    original_name: str
    content_type: Optional[str]
    size: int


def is_mp3(filename: Optional[str], content_type: Optional[str]) -> bool:
    if content_type in ALLOWED_MIME_TYPES:
        return True
    return Path(filename or "").suffix.lower() == ".mp3"


def _safe_name(filename: Optional[str]) -> str:
    # Drop any client-supplied directory components
    name = Path(filename or "").name
    return name or "audio.mp3"


async def save_upload(upload: UploadFile, upload_dir: str | Path, max_bytes: int) -> StoredUpload:
    """
    Stream an UploadFile to `<upload_dir>/<epoch-ms>-<name>`.

    Raises:
        UnsupportedAudioError: not an MP3 by MIME type or extension
        UploadTooLargeError: more than max_bytes were sent
    """
    if not is_mp3(upload.filename, upload.content_type):
        logger.warning(
            "Rejected upload with unsupported type",
            upload_name=upload.filename,
            content_type=upload.content_type,
        )
        raise UnsupportedAudioError()

    directory = Path(upload_dir)
    directory.mkdir(parents=True, exist_ok=True)
    original_name = _safe_name(upload.filename)
    path = directory / f"{int(time.time() * 1000)}-{original_name}"

    size = 0
    try:
        with open(path, "wb") as out:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise UploadTooLargeError()
                out.write(chunk)
    except Exception:
        remove_upload(path)
        raise
    finally:
        await upload.close()

    logger.debug("Upload stored", path=str(path), size=size, content_type=upload.content_type)
    return StoredUpload(path=path, original_name=original_name, content_type=upload.content_type, size=size)


def remove_upload(path: Path) -> bool:
    """
    Delete an uploaded file if it still exists.

    Safe to call repeatedly; returns True only when a file was removed.
    """
    if not path.exists():
        return False
    path.unlink()
    return True
