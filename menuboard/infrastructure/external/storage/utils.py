"""Upload helpers: file validation, storage key generation, retry with backoff."""

from __future__ import annotations

import asyncio
import os
import re
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import TypeVar

from menuboard.infrastructure.exceptions import (
    EMPTY_FILE,
    FILE_TOO_LARGE,
    INVALID_EXTENSION,
    INVALID_MIME_TYPE,
    UploadException,
)
from menuboard.infrastructure.external.storage.models import (
    BatchDeleteResult,
    DeleteResult,
    FailedDelete,
    UploadConfig,
    UploadFile,
)
from menuboard.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

APPWRITE_KEY_MAX_LENGTH = 36

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9_-]")
_DANGEROUS_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')

_MIME_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".csv": "text/csv",
    ".json": "application/json",
    ".svg": "image/svg+xml",
    ".mp4": "video/mp4",
    ".mp3": "audio/mpeg",
}

_DOCUMENT_MIME_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "text/plain",
        "text/csv",
    }
)


def get_extension(file_name: str) -> str:
    """Return the lowercased extension including the dot ('' if none)."""
    return os.path.splitext(file_name)[1].lower()


def validate_file(file: UploadFile, config: UploadConfig) -> None:
    """Check a file against the upload policy.

    Checks run in a fixed order (size, MIME type, extension, emptiness) so
    the reported code is deterministic when several rules are violated.

    Raises:
        UploadException: FILE_TOO_LARGE, INVALID_MIME_TYPE, INVALID_EXTENSION
            or EMPTY_FILE.
    """
    if file.size > config.max_file_size:
        raise UploadException(
            f"File size {file.size} exceeds maximum allowed size {config.max_file_size}",
            FILE_TOO_LARGE,
        )
    if file.mime_type not in config.allowed_mime_types:
        raise UploadException(
            f"MIME type {file.mime_type} is not allowed", INVALID_MIME_TYPE
        )
    ext = get_extension(file.original_name)
    if ext not in config.allowed_extensions:
        raise UploadException(f"File extension {ext} is not allowed", INVALID_EXTENSION)
    if file.size == 0:
        raise UploadException("Empty files are not allowed", EMPTY_FILE)


def generate_file_key(original_name: str, prefix: str | None = None) -> str:
    """Build a unique, URL- and filesystem-safe key for a file.

    Format: ``{sanitized_base}_{epoch_ms}_{8 hex}{ext}``, optionally under
    ``prefix/``.
    """
    base, ext = os.path.splitext(os.path.basename(original_name))
    sanitized = _UNSAFE_KEY_CHARS.sub("_", base)
    timestamp = int(time.time() * 1000)
    suffix = uuid.uuid4().hex[:8]
    file_name = f"{sanitized}_{timestamp}_{suffix}{ext}"
    return f"{prefix}/{file_name}" if prefix else file_name


def generate_appwrite_file_key(original_name: str | None = None) -> str:
    """Build an Appwrite file id: at most 36 chars of [a-zA-Z0-9._-].

    Keeps the (alphanumeric) extension when it fits within 36 chars,
    otherwise returns the bare 32-char uuid.
    """
    uid = uuid.uuid4().hex
    if original_name:
        ext = re.sub(r"[^a-zA-Z0-9]", "", get_extension(original_name))
        if ext and len(uid) + len(ext) + 1 <= APPWRITE_KEY_MAX_LENGTH:
            return f"{uid[: APPWRITE_KEY_MAX_LENGTH - len(ext) - 1]}.{ext}"
    return uid[:32]


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
) -> T:
    """Await operation() up to max_retries times with exponential backoff.

    Waits base_delay * 2**(attempt - 1) seconds after each failed attempt
    (no jitter). Re-raises the last error once attempts are exhausted.
    """
    last_error: Exception | None = None
    for attempt in range(1, max_retries + 1):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            if attempt == max_retries:
                break
            wait = base_delay * 2 ** (attempt - 1)
            logger.debug(
                "Attempt %d/%d failed (%s); retrying in %.2fs",
                attempt,
                max_retries,
                e,
                wait,
            )
            await asyncio.sleep(wait)
    if last_error is None:
        raise ValueError("max_retries must be at least 1")
    raise last_error


def sanitize_file_name(file_name: str) -> str:
    """Replace path/shell-dangerous characters and whitespace; lowercase."""
    name = _DANGEROUS_FILENAME_CHARS.sub("_", file_name)
    name = re.sub(r"\s+", "_", name)
    name = re.sub(r"_{2,}", "_", name)
    return name.lower()


def get_mime_type_from_extension(extension: str) -> str:
    return _MIME_TYPES.get(extension.lower(), "application/octet-stream")


def format_file_size(size: int) -> str:
    """Human readable size, e.g. 1536 -> '1.5 KB'."""
    units = ["Bytes", "KB", "MB", "GB", "TB"]
    if size == 0:
        return "0 Bytes"
    i = 0
    while size >= 1024 ** (i + 1) and i < len(units) - 1:
        i += 1
    value = round(size / 1024**i, 2)
    return f"{value:g} {units[i]}"


def is_image_file(mime_type: str) -> bool:
    return mime_type.startswith("image/")


def is_video_file(mime_type: str) -> bool:
    return mime_type.startswith("video/")


def is_document_file(mime_type: str) -> bool:
    return mime_type in _DOCUMENT_MIME_TYPES


async def delete_in_batches(
    delete: Callable[[str], Awaitable[DeleteResult]],
    keys: list[str],
    batch_size: int,
    delay: float = 0.0,
) -> BatchDeleteResult:
    """Delete keys in fixed-size chunks.

    Deletes inside a chunk run concurrently; chunks run one after another,
    pausing delay seconds between them. Failures are reported per key.
    """
    result = BatchDeleteResult()
    for start in range(0, len(keys), batch_size):
        batch = keys[start : start + batch_size]
        outcomes = await asyncio.gather(
            *(delete(key) for key in batch), return_exceptions=True
        )
        for key, outcome in zip(batch, outcomes):
            if isinstance(outcome, BaseException):
                result.failed.append(FailedDelete(key=key, error=str(outcome)))
            elif outcome.success:
                result.successful.append(key)
            else:
                result.failed.append(
                    FailedDelete(key=key, error=outcome.error or "Unknown error")
                )
        if delay and start + batch_size < len(keys):
            await asyncio.sleep(delay)
    return result
