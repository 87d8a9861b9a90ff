"""Local filesystem upload provider with path validation."""

from __future__ import annotations

import asyncio
import os
from datetime import timedelta
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from menuboard.infrastructure.exceptions import (
    ACCESS_DENIED,
    DIRECTORY_ERROR,
    UPLOAD_FAILED,
    UploadException,
)
from menuboard.infrastructure.external.storage.models import (
    CleanupResult,
    DeleteResult,
    LocalProviderConfig,
    StorageInfo,
    UploadConfig,
    UploadError,
    UploadFile,
    UploadResult,
)
from menuboard.infrastructure.external.storage.utils import generate_file_key, validate_file
from menuboard.shared.telemetry.logging import get_logger
from menuboard.shared.utils.datetime import from_timestamp_utc, utc_now

logger = get_logger(__name__)


class LocalProvider:
    """Stores uploads under upload_dir and serves them from base_url.

    Keys may be nested (``menus/42/dish.png``); parent directories are created
    on upload and empty ones pruned on delete. Keys resolving outside
    upload_dir are rejected.
    """

    name = "local"

    def __init__(self, config: LocalProviderConfig) -> None:
        """Initialize and ensure the upload directory exists.

        Raises:
            UploadException: DIRECTORY_ERROR if the directory cannot be created.
        """
        self.config = config
        self.upload_dir = Path(config.upload_dir).resolve()
        self.base_url = config.base_url.rstrip("/")
        try:
            if not self.upload_dir.exists():
                self.upload_dir.mkdir(parents=True, exist_ok=True, mode=0o755)
                logger.info("Created upload directory: %s", self.upload_dir)
        except OSError as e:
            logger.error("Failed to create upload directory %s: %s", self.upload_dir, e)
            raise UploadException(
                f"Failed to create upload directory: {config.upload_dir}",
                DIRECTORY_ERROR,
                self.name,
            ) from e
        if not self.upload_dir.is_dir():
            raise UploadException(
                f"Upload path is not a directory: {config.upload_dir}",
                DIRECTORY_ERROR,
                self.name,
            )

    def _get_full_path(self, key: str) -> Path:
        """Resolve key under upload_dir. Raises ACCESS_DENIED on traversal."""
        full_path = (self.upload_dir / key).resolve()
        try:
            full_path.relative_to(self.upload_dir)
        except ValueError as e:
            raise UploadException(
                f"Key escapes upload directory: {key}", ACCESS_DENIED, self.name
            ) from e
        return full_path

    def _generate_url(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    async def upload(
        self, file: UploadFile, config: UploadConfig
    ) -> UploadResult | UploadError:
        """Validate and write file to disk."""
        try:
            validate_file(file, config)
            key = file.key or generate_file_key(file.original_name)
            target_path = self._get_full_path(key)
            target_path.parent.mkdir(parents=True, exist_ok=True)

            async with aiofiles.open(target_path, "wb") as f:
                await f.write(file.buffer)
            stat = await aiofiles.os.stat(target_path)

            url = self._generate_url(key)
            logger.info(
                "File uploaded to local storage: key=%s original_name=%s size=%d",
                key,
                file.original_name,
                file.size,
            )
            return UploadResult(
                url=url,
                key=key,
                original_name=file.original_name,
                size=file.size,
                mime_type=file.mime_type,
                provider=self.name,
                metadata={
                    "path": str(target_path),
                    "created_at": from_timestamp_utc(stat.st_ctime).isoformat(),
                    "modified_at": from_timestamp_utc(stat.st_mtime).isoformat(),
                },
            )
        except UploadException as e:
            logger.warning("Local upload rejected: %s (%s)", e.message, e.code)
            return UploadError(error=e.message, code=e.code, provider=self.name)
        except Exception as e:
            logger.error("Local upload failed: %s", e)
            return UploadError(error=str(e), code=UPLOAD_FAILED, provider=self.name)

    async def delete(self, key: str) -> DeleteResult:
        """Delete file and prune empty parent directories."""
        try:
            file_path = self._get_full_path(key)
            if not file_path.is_file():
                return DeleteResult(
                    success=False, key=key, provider=self.name, error="File not found"
                )
            await aiofiles.os.remove(file_path)
            parent = file_path.parent
            while parent != self.upload_dir:
                try:
                    if any(parent.iterdir()):
                        break
                    parent.rmdir()
                    parent = parent.parent
                except OSError:
                    break
            logger.info("File deleted from local storage: key=%s", key)
            return DeleteResult(success=True, key=key, provider=self.name)
        except Exception as e:
            logger.error("Local delete failed for %s: %s", key, e)
            message = e.message if isinstance(e, UploadException) else str(e)
            return DeleteResult(success=False, key=key, provider=self.name, error=message)

    async def get_url(self, key: str) -> str:
        return self._generate_url(key)

    async def exists(self, key: str) -> bool:
        try:
            return self._get_full_path(key).is_file()
        except Exception:
            return False

    async def get_metadata(self, key: str) -> dict[str, Any] | None:
        """Return size, timestamps and path; None when missing."""
        try:
            file_path = self._get_full_path(key)
            stat = await aiofiles.os.stat(file_path)
        except Exception:
            return None
        return {
            "size": stat.st_size,
            "created_at": from_timestamp_utc(stat.st_ctime).isoformat(),
            "modified_at": from_timestamp_utc(stat.st_mtime).isoformat(),
            "is_file": file_path.is_file(),
            "path": str(file_path),
        }

    async def cleanup(self, older_than_days: int = 30) -> CleanupResult:
        """Delete files last modified more than older_than_days ago.

        Best-effort: per-file failures are collected, not raised.
        """
        cutoff = utc_now() - timedelta(days=older_than_days)
        deleted_count = 0
        errors: list[str] = []
        for path in await asyncio.to_thread(self._list_files, self.upload_dir):
            try:
                stat = await aiofiles.os.stat(path)
                if from_timestamp_utc(stat.st_mtime) < cutoff:
                    await aiofiles.os.remove(path)
                    deleted_count += 1
            except OSError as e:
                errors.append(f"Failed to process {path}: {e}")
        logger.info("Cleanup completed: deleted=%d errors=%d", deleted_count, len(errors))
        return CleanupResult(deleted_count=deleted_count, errors=errors)

    async def get_storage_info(self) -> StorageInfo:
        """Count files and total bytes under upload_dir (unreadable files skipped)."""
        total_files = 0
        total_size = 0
        for path in await asyncio.to_thread(self._list_files, self.upload_dir):
            try:
                stat = await aiofiles.os.stat(path)
            except OSError:
                continue
            total_files += 1
            total_size += stat.st_size
        return StorageInfo(total_files=total_files, total_size=total_size)

    def _list_files(self, directory: Path) -> list[Path]:
        """Recursively list regular files; unreadable directories are skipped."""
        files: list[Path] = []
        try:
            with os.scandir(directory) as entries:
                for entry in entries:
                    if entry.is_dir(follow_symlinks=False):
                        files.extend(self._list_files(Path(entry.path)))
                    else:
                        files.append(Path(entry.path))
        except OSError as e:
            logger.warning("Failed to list files in %s: %s", directory, e)
        return files
