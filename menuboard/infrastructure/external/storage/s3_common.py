"""Behaviour shared by the boto3 and hand-signed S3 providers.

Both variants map S3 fault codes to the same upload error codes and
resolve URLs the same way: CDN override, then public bucket URL, then a
presigned GET valid for one hour.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from menuboard.infrastructure.exceptions import (
    ACCESS_DENIED,
    BUCKET_NOT_FOUND,
    INVALID_CREDENTIALS,
    INVALID_SIGNATURE,
    UPLOAD_FAILED,
)
from menuboard.infrastructure.external.storage.models import (
    AWSS3ProviderConfig,
    BatchDeleteResult,
    DeleteResult,
)
from menuboard.infrastructure.external.storage.utils import delete_in_batches

SIGNED_URL_EXPIRY_SECONDS = 3600

_S3_FAULTS: dict[str, tuple[str, str]] = {
    "NoSuchBucket": (BUCKET_NOT_FOUND, "S3 bucket '{bucket}' does not exist"),
    "AccessDenied": (ACCESS_DENIED, "Access denied to S3 bucket"),
    "InvalidAccessKeyId": (INVALID_CREDENTIALS, "Invalid AWS credentials"),
    "SignatureDoesNotMatch": (INVALID_SIGNATURE, "AWS signature mismatch"),
}


class S3ResponseError(Exception):
    """Non-success S3 REST response (fault code parsed from the XML body)."""

    def __init__(self, status_code: int, code: str | None, message: str) -> None:
        super().__init__(f"S3 request failed: {status_code} {code or ''} - {message}".strip())
        self.status_code = status_code
        self.code = code


def classify_s3_error(fault_code: str | None, bucket: str, fallback_message: str) -> tuple[str, str]:
    """Return (upload error code, message) for an S3 fault code."""
    if fault_code in _S3_FAULTS:
        code, template = _S3_FAULTS[fault_code]
        return code, template.format(bucket=bucket)
    return UPLOAD_FAILED, fallback_message or "Unknown error occurred"


def public_object_url(config: AWSS3ProviderConfig, key: str) -> str:
    return f"https://{config.bucket}.s3.{config.region}.amazonaws.com/{key}"


class S3ProviderMixin(ABC):
    """URL resolution and batch delete on top of a provider's presign/delete."""

    BATCH_SIZE = 10

    config: AWSS3ProviderConfig

    @abstractmethod
    async def _presign_get(self, key: str, expires_in: int) -> str:
        """Presigned GET URL valid for expires_in seconds."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> DeleteResult:
        ...

    async def get_url(self, key: str) -> str:
        """CDN URL, public bucket URL, or a one-hour presigned GET URL."""
        if self.config.cdn_url:
            return f"{self.config.cdn_url.rstrip('/')}/{key}"
        if self.config.public_read:
            return public_object_url(self.config, key)
        return await self._presign_get(key, SIGNED_URL_EXPIRY_SECONDS)

    async def delete_multiple(self, keys: list[str]) -> BatchDeleteResult:
        """Delete keys in chunks of BATCH_SIZE; per-key success/failure."""
        return await delete_in_batches(self.delete, keys, self.BATCH_SIZE)

    def _upload_metadata(self, uploaded_at: str) -> dict[str, Any]:
        return {
            "bucket": self.config.bucket,
            "region": self.config.region,
            "storage_class": self.config.storage_class,
            "uploaded_at": uploaded_at,
        }
