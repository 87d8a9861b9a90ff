"""AWS S3 upload provider over plain HTTPS with Signature Version 2.

Used when boto3 is not installed. Requests are signed with HMAC-SHA1 over
the canonical string:

    METHOD\\nContent-MD5\\nContent-Type\\nDate\\n<x-amz-* headers><resource>

where each canonical x-amz-* header is ``name:value\\n`` (lowercased name,
sorted) and resource is ``/bucket/key``.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
import xml.etree.ElementTree as ET
from contextlib import asynccontextmanager
from email.utils import formatdate
from typing import Any
from urllib.parse import quote, urlencode

import httpx

from menuboard.infrastructure.exceptions import (
    PRESIGNED_URL_FAILED,
    UPLOAD_FAILED,
    URL_GENERATION_FAILED,
    UploadException,
)
from menuboard.infrastructure.external.storage.models import (
    AWSS3ProviderConfig,
    DeleteResult,
    UploadConfig,
    UploadError,
    UploadFile,
    UploadResult,
)
from menuboard.infrastructure.external.storage.s3_common import (
    S3ProviderMixin,
    S3ResponseError,
    classify_s3_error,
)
from menuboard.infrastructure.external.storage.utils import (
    generate_file_key,
    validate_file,
    with_retry,
)
from menuboard.shared.telemetry.logging import get_logger
from menuboard.shared.utils.datetime import utc_now

logger = get_logger(__name__)


def _parse_error(response: httpx.Response) -> S3ResponseError:
    """Build S3ResponseError from an S3 XML error body (Code/Message)."""
    code: str | None = None
    message = response.reason_phrase
    try:
        root = ET.fromstring(response.content)
        code = root.findtext("Code")
        message = root.findtext("Message") or message
    except ET.ParseError:
        pass
    return S3ResponseError(response.status_code, code, message)


class AWSS3SignedProvider(S3ProviderMixin):
    """S3 storage using httpx and hand-built SigV2 signatures."""

    name = "aws-s3-fallback"

    def __init__(
        self,
        config: AWSS3ProviderConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.host = f"{config.bucket}.s3.{config.region}.amazonaws.com"
        self._shared_http = http_client

    @asynccontextmanager
    async def _http_cm(self):
        """Yield shared HTTP client or a short-lived one."""
        if self._shared_http is not None:
            yield self._shared_http
            return
        async with httpx.AsyncClient(timeout=30.0) as client:
            yield client

    def _encoded_key(self, key: str) -> str:
        return quote(key, safe="/")

    def _resource(self, key: str) -> str:
        return f"/{self.config.bucket}/{self._encoded_key(key)}"

    def _object_url(self, key: str) -> str:
        return f"https://{self.host}/{self._encoded_key(key)}"

    def _sign(self, string_to_sign: str) -> str:
        digest = hmac.new(
            self.config.secret_access_key.encode(),
            string_to_sign.encode(),
            hashlib.sha1,
        ).digest()
        return base64.b64encode(digest).decode()

    @staticmethod
    def string_to_sign(
        method: str,
        content_md5: str,
        content_type: str,
        date_or_expires: str,
        amz_headers: dict[str, str],
        resource: str,
    ) -> str:
        canonical_amz = "".join(
            f"{name}:{value.strip()}\n"
            for name, value in sorted((k.lower(), v) for k, v in amz_headers.items())
        )
        return (
            f"{method}\n{content_md5}\n{content_type}\n{date_or_expires}\n"
            f"{canonical_amz}{resource}"
        )

    def _amz_headers(self, method: str) -> dict[str, str]:
        headers: dict[str, str] = {}
        if method == "PUT":
            if self.config.public_read:
                headers["x-amz-acl"] = "public-read"
            if self.config.storage_class:
                headers["x-amz-storage-class"] = self.config.storage_class
        return headers

    def _signed_headers(
        self,
        method: str,
        key: str,
        body: bytes | None = None,
        content_type: str | None = None,
    ) -> dict[str, str]:
        """Date, content and x-amz-* headers plus the SigV2 Authorization header."""
        headers: dict[str, str] = {"Date": formatdate(usegmt=True)}
        content_md5 = ""
        if body is not None:
            content_md5 = base64.b64encode(hashlib.md5(body).digest()).decode()
            headers["Content-MD5"] = content_md5
        if content_type:
            headers["Content-Type"] = content_type
        amz = self._amz_headers(method)
        headers.update(amz)
        signature = self._sign(
            self.string_to_sign(
                method,
                content_md5,
                content_type or "",
                headers["Date"],
                amz,
                self._resource(key),
            )
        )
        headers["Authorization"] = f"AWS {self.config.access_key_id}:{signature}"
        return headers

    def _presigned_url(
        self,
        method: str,
        key: str,
        expires_in: int,
        content_type: str = "",
        amz_headers: dict[str, str] | None = None,
    ) -> str:
        expires = str(int(time.time()) + expires_in)
        signature = self._sign(
            self.string_to_sign(
                method, "", content_type, expires, amz_headers or {}, self._resource(key)
            )
        )
        query = urlencode(
            {
                "AWSAccessKeyId": self.config.access_key_id,
                "Expires": expires,
                "Signature": signature,
            }
        )
        return f"{self._object_url(key)}?{query}"

    async def _request(
        self,
        method: str,
        key: str,
        body: bytes | None = None,
        content_type: str | None = None,
    ) -> httpx.Response:
        headers = self._signed_headers(method, key, body, content_type)
        async with self._http_cm() as client:
            return await client.request(
                method, self._object_url(key), headers=headers, content=body
            )

    async def upload(
        self, file: UploadFile, config: UploadConfig
    ) -> UploadResult | UploadError:
        """Validate and PUT the object with a signed request, retrying failures."""
        try:
            validate_file(file, config)
            key = file.key or generate_file_key(file.original_name)

            async def _put() -> None:
                response = await self._request("PUT", key, file.buffer, file.mime_type)
                if not response.is_success:
                    raise _parse_error(response)

            await with_retry(_put, 3, self.config.retry_base_delay)
            url = await self.get_url(key)
            logger.info(
                "File uploaded to S3 (signed): bucket=%s key=%s size=%d",
                self.config.bucket,
                key,
                file.size,
            )
            return UploadResult(
                url=url,
                key=key,
                original_name=file.original_name,
                size=file.size,
                mime_type=file.mime_type,
                provider=self.name,
                metadata=self._upload_metadata(utc_now().isoformat()),
            )
        except UploadException as e:
            logger.warning("S3 signed upload rejected: %s (%s)", e.message, e.code)
            return UploadError(error=e.message, code=e.code, provider=self.name)
        except S3ResponseError as e:
            logger.error("S3 signed upload failed: %s", e)
            code, message = classify_s3_error(e.code, self.config.bucket, str(e))
            return UploadError(error=message, code=code, provider=self.name)
        except Exception as e:
            logger.error("S3 signed upload failed: %s", e)
            return UploadError(
                error=str(e) or "Unknown error occurred",
                code=UPLOAD_FAILED,
                provider=self.name,
            )

    async def delete(self, key: str) -> DeleteResult:
        """Delete object after confirming it exists; 404 on DELETE counts as done."""
        try:
            if not await self.exists(key):
                return DeleteResult(
                    success=False, key=key, provider=self.name, error="File not found"
                )

            async def _delete() -> None:
                response = await self._request("DELETE", key)
                if not response.is_success and response.status_code != 404:
                    raise _parse_error(response)

            await with_retry(_delete, 3, self.config.retry_base_delay)
            logger.info("File deleted from S3 (signed): bucket=%s key=%s", self.config.bucket, key)
            return DeleteResult(success=True, key=key, provider=self.name)
        except Exception as e:
            logger.error("S3 signed delete failed for %s: %s", key, e)
            return DeleteResult(success=False, key=key, provider=self.name, error=str(e))

    async def _presign_get(self, key: str, expires_in: int) -> str:
        try:
            return self._presigned_url("GET", key, expires_in)
        except Exception as e:
            logger.error("Failed to generate signed URL for %s: %s", key, e)
            raise UploadException(
                "Failed to generate file URL", URL_GENERATION_FAILED, self.name
            ) from e

    async def exists(self, key: str) -> bool:
        try:
            response = await self._request("HEAD", key)
            return response.is_success
        except Exception as e:
            logger.warning("Error checking if S3 object exists: %s: %s", key, e)
            return False

    async def get_metadata(self, key: str) -> dict[str, Any] | None:
        try:
            response = await self._request("HEAD", key)
        except Exception as e:
            logger.warning("Failed to get S3 metadata for %s: %s", key, e)
            return None
        if not response.is_success:
            return None
        return {
            "size": int(response.headers.get("content-length", "0")),
            "content_type": response.headers.get("content-type"),
            "last_modified": response.headers.get("last-modified"),
            "etag": response.headers.get("etag"),
            "storage_class": response.headers.get("x-amz-storage-class"),
        }

    async def generate_presigned_upload_url(
        self, key: str, content_type: str, expires_in: int = 3600
    ) -> str:
        """Presigned PUT URL. The uploader must send the same Content-Type and
        x-amz-acl header (when public_read) that were signed.

        Raises:
            UploadException: PRESIGNED_URL_FAILED.
        """
        amz = {"x-amz-acl": "public-read"} if self.config.public_read else {}
        try:
            return self._presigned_url("PUT", key, expires_in, content_type, amz)
        except Exception as e:
            logger.error("Failed to generate presigned upload URL for %s: %s", key, e)
            raise UploadException(
                "Failed to generate presigned upload URL", PRESIGNED_URL_FAILED, self.name
            ) from e
