"""Appwrite Storage upload provider (REST API via httpx).

Files live in a bucket under a project:
``{endpoint}/v1/storage/buckets/{bucket_id}/files/{file_id}``. Every request
carries X-Appwrite-Project and X-Appwrite-Key. File ids are limited to 36
chars, so keys come from generate_appwrite_file_key.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import urlencode

import httpx

from menuboard.infrastructure.exceptions import (
    BUCKET_NOT_FOUND,
    FILE_EXISTS,
    FILE_TOO_LARGE,
    UNAUTHORIZED,
    UPLOAD_FAILED,
    UploadException,
)
from menuboard.infrastructure.external.storage.models import (
    AppwriteProviderConfig,
    BatchDeleteResult,
    DeleteResult,
    FileListing,
    RemoteFile,
    UploadConfig,
    UploadError,
    UploadFile,
    UploadResult,
)
from menuboard.infrastructure.external.storage.utils import (
    delete_in_batches,
    generate_appwrite_file_key,
    validate_file,
    with_retry,
)
from menuboard.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

ANONYMOUS_READ = 'read("any")'


class AppwriteRequestError(Exception):
    """Non-success Appwrite API response."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"Appwrite request failed: {status_code} - {message}")
        self.status_code = status_code


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("message") or response.reason_phrase
    except (ValueError, AttributeError):
        return response.reason_phrase or "Unknown error"


class AppwriteProvider:
    """Appwrite bucket storage: multipart upload, public read, rate-limited batch delete."""

    name = "appwrite"

    # Appwrite rate limits: small chunks with a pause between them.
    BATCH_SIZE = 5
    BATCH_DELAY = 1.0

    def __init__(
        self,
        config: AppwriteProviderConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.base_url = (
            f"{config.endpoint.rstrip('/')}/v1/storage/buckets/{config.bucket_id}"
        )
        self._shared_http = http_client

    @asynccontextmanager
    async def _http_cm(self):
        """Yield shared HTTP client or a short-lived one."""
        if self._shared_http is not None:
            yield self._shared_http
            return
        async with httpx.AsyncClient(timeout=30.0) as client:
            yield client

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "X-Appwrite-Project": self.config.project_id,
            "X-Appwrite-Key": self.config.api_key,
        }

    def _classify(self, error: Exception) -> tuple[str, str]:
        status = getattr(error, "status_code", None)
        if status == 401:
            return UNAUTHORIZED, "Invalid Appwrite API key or insufficient permissions"
        if status == 404:
            return BUCKET_NOT_FOUND, f"Appwrite bucket '{self.config.bucket_id}' not found"
        if status == 413:
            return FILE_TOO_LARGE, "File size exceeds Appwrite limits"
        if status == 409:
            return FILE_EXISTS, "File with this ID already exists"
        return UPLOAD_FAILED, str(error) or "Unknown error occurred"

    async def upload(
        self, file: UploadFile, config: UploadConfig
    ) -> UploadResult | UploadError:
        """Validate and POST the file as multipart form data, readable by anyone."""
        try:
            validate_file(file, config)
            file_id = file.key or generate_appwrite_file_key(file.original_name)

            async def _post() -> dict[str, Any]:
                async with self._http_cm() as client:
                    response = await client.post(
                        f"{self.base_url}/files",
                        headers=self._headers,
                        data={"fileId": file_id, "permissions[]": [ANONYMOUS_READ]},
                        files={"file": (file.original_name, file.buffer, file.mime_type)},
                    )
                if not response.is_success:
                    raise AppwriteRequestError(response.status_code, _error_message(response))
                return response.json()

            created = await with_retry(_post, 3, self.config.retry_base_delay)
            url = await self.get_url(file_id)
            logger.info(
                "File uploaded to Appwrite: bucket=%s file_id=%s size=%d",
                self.config.bucket_id,
                file_id,
                file.size,
            )
            return UploadResult(
                url=url,
                key=file_id,
                original_name=file.original_name,
                size=file.size,
                mime_type=file.mime_type,
                provider=self.name,
                metadata={
                    "bucket_id": self.config.bucket_id,
                    "project_id": self.config.project_id,
                    "appwrite_file_id": created.get("$id"),
                    "uploaded_at": created.get("$createdAt"),
                },
            )
        except UploadException as e:
            logger.warning("Appwrite upload rejected: %s (%s)", e.message, e.code)
            return UploadError(error=e.message, code=e.code, provider=self.name)
        except Exception as e:
            logger.error("Appwrite upload failed: %s", e)
            code, message = self._classify(e)
            return UploadError(error=message, code=code, provider=self.name)

    async def delete(self, key: str) -> DeleteResult:
        """Delete file after confirming it exists; 404 on DELETE counts as done."""
        try:
            if not await self.exists(key):
                return DeleteResult(
                    success=False, key=key, provider=self.name, error="File not found"
                )

            async def _delete() -> None:
                async with self._http_cm() as client:
                    response = await client.delete(
                        f"{self.base_url}/files/{key}", headers=self._headers
                    )
                if not response.is_success and response.status_code != 404:
                    raise AppwriteRequestError(response.status_code, _error_message(response))

            await with_retry(_delete, 3, self.config.retry_base_delay)
            logger.info("File deleted from Appwrite: bucket=%s key=%s", self.config.bucket_id, key)
            return DeleteResult(success=True, key=key, provider=self.name)
        except Exception as e:
            logger.error("Appwrite delete failed for %s: %s", key, e)
            return DeleteResult(success=False, key=key, provider=self.name, error=str(e))

    async def get_url(self, key: str) -> str:
        if self.config.cdn_url:
            return f"{self.config.cdn_url.rstrip('/')}/files/{key}/view"
        return f"{self.base_url}/files/{key}/view?project={self.config.project_id}"

    async def _get_file(self, key: str) -> httpx.Response:
        async with self._http_cm() as client:
            return await client.get(f"{self.base_url}/files/{key}", headers=self._headers)

    async def exists(self, key: str) -> bool:
        try:
            response = await self._get_file(key)
            return response.is_success
        except Exception as e:
            logger.warning("Error checking if Appwrite file exists: %s: %s", key, e)
            return False

    async def get_metadata(self, key: str) -> dict[str, Any] | None:
        try:
            response = await self._get_file(key)
            if not response.is_success:
                return None
            data = response.json()
        except Exception as e:
            logger.warning("Failed to get Appwrite metadata for %s: %s", key, e)
            return None
        return {
            "id": data.get("$id"),
            "name": data.get("name"),
            "signature": data.get("signature"),
            "mime_type": data.get("mimeType"),
            "size_original": data.get("sizeOriginal"),
            "chunks_total": data.get("chunksTotal"),
            "chunks_uploaded": data.get("chunksUploaded"),
            "created_at": data.get("$createdAt"),
            "updated_at": data.get("$updatedAt"),
            "permissions": data.get("$permissions"),
        }

    async def get_download_url(self, key: str) -> str:
        return f"{self.base_url}/files/{key}/download?project={self.config.project_id}"

    async def get_preview_url(
        self,
        key: str,
        width: int | None = None,
        height: int | None = None,
        quality: int | None = None,
    ) -> str:
        """Image preview URL with optional resize/quality parameters."""
        params: dict[str, Any] = {"project": self.config.project_id}
        if width:
            params["width"] = width
        if height:
            params["height"] = height
        if quality:
            params["quality"] = quality
        return f"{self.base_url}/files/{key}/preview?{urlencode(params)}"

    async def delete_multiple(self, keys: list[str]) -> BatchDeleteResult:
        """Delete in chunks of BATCH_SIZE with BATCH_DELAY seconds between chunks."""
        return await delete_in_batches(self.delete, keys, self.BATCH_SIZE, self.BATCH_DELAY)

    async def list_files(self, limit: int = 25, offset: int = 0) -> FileListing:
        """One page of bucket files; empty listing on failure."""
        try:
            async with self._http_cm() as client:
                response = await client.get(
                    f"{self.base_url}/files",
                    headers=self._headers,
                    params={"limit": limit, "offset": offset},
                )
            if not response.is_success:
                raise AppwriteRequestError(response.status_code, _error_message(response))
            data = response.json()
        except Exception as e:
            logger.error("Failed to list Appwrite files: %s", e)
            return FileListing(files=[], total=0)
        return FileListing(
            files=[
                RemoteFile(
                    id=item.get("$id", ""),
                    name=item.get("name", ""),
                    size=item.get("sizeOriginal", 0),
                    mime_type=item.get("mimeType", ""),
                    created_at=item.get("$createdAt"),
                )
                for item in data.get("files", [])
            ],
            total=data.get("total", 0),
        )

    async def update_permissions(self, key: str, permissions: list[str]) -> bool:
        try:
            async with self._http_cm() as client:
                response = await client.put(
                    f"{self.base_url}/files/{key}",
                    headers=self._headers,
                    json={"permissions": permissions},
                )
            return response.is_success
        except Exception as e:
            logger.error("Failed to update permissions for %s: %s", key, e)
            return False
