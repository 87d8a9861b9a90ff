"""AWS S3 upload provider backed by boto3.

Uses boto3 (sync) via asyncio.to_thread for the async API. Importing this
module fails with ImportError when boto3 is not installed; ProviderFactory
then falls back to AWSS3SignedProvider.
"""

from __future__ import annotations

import asyncio
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from menuboard.infrastructure.exceptions import (
    PRESIGNED_URL_FAILED,
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


def _client_error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class AWSS3Provider(S3ProviderMixin):
    """S3 storage through the boto3 client: uploads, presigned URLs, batch delete."""

    name = "aws-s3"

    def __init__(self, config: AWSS3ProviderConfig, client: Any | None = None) -> None:
        """Initialize S3 client.

        Args:
            config: Bucket, region, credentials and URL options.
            client: Optional pre-built boto3 S3 client (tests, shared sessions).
        """
        self.config = config
        self._client = client or boto3.client(
            "s3",
            region_name=config.region,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
        )

    async def upload(
        self, file: UploadFile, config: UploadConfig
    ) -> UploadResult | UploadError:
        """Validate and PUT the object, retrying transport failures."""
        try:
            validate_file(file, config)
            key = file.key or generate_file_key(file.original_name)
            uploaded_at = utc_now().isoformat()
            params: dict[str, Any] = {
                "Bucket": self.config.bucket,
                "Key": key,
                "Body": file.buffer,
                "ContentType": file.mime_type,
                "ContentLength": file.size,
                "StorageClass": self.config.storage_class,
                "Metadata": {
                    "original-name": file.original_name,
                    "uploaded-at": uploaded_at,
                },
            }
            if self.config.public_read:
                params["ACL"] = "public-read"

            await with_retry(
                lambda: asyncio.to_thread(self._client.put_object, **params),
                3,
                self.config.retry_base_delay,
            )
            url = await self.get_url(key)
            logger.info(
                "File uploaded to S3: bucket=%s key=%s size=%d",
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
                metadata=self._upload_metadata(uploaded_at),
            )
        except UploadException as e:
            logger.warning("S3 upload rejected: %s (%s)", e.message, e.code)
            return UploadError(error=e.message, code=e.code, provider=self.name)
        except ClientError as e:
            logger.error("S3 upload failed: %s", e)
            code, message = classify_s3_error(
                _client_error_code(e), self.config.bucket, str(e)
            )
            return UploadError(error=message, code=code, provider=self.name)
        except Exception as e:
            logger.error("S3 upload failed: %s", e)
            code, message = classify_s3_error(None, self.config.bucket, str(e))
            return UploadError(error=message, code=code, provider=self.name)

    async def delete(self, key: str) -> DeleteResult:
        """Delete object after confirming it exists."""
        try:
            if not await self.exists(key):
                return DeleteResult(
                    success=False, key=key, provider=self.name, error="File not found"
                )
            await with_retry(
                lambda: asyncio.to_thread(
                    self._client.delete_object, Bucket=self.config.bucket, Key=key
                ),
                3,
                self.config.retry_base_delay,
            )
            logger.info("File deleted from S3: bucket=%s key=%s", self.config.bucket, key)
            return DeleteResult(success=True, key=key, provider=self.name)
        except Exception as e:
            logger.error("S3 delete failed for %s: %s", key, e)
            return DeleteResult(success=False, key=key, provider=self.name, error=str(e))

    async def _presign_get(self, key: str, expires_in: int) -> str:
        try:
            return await asyncio.to_thread(
                self._client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.config.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to generate signed URL for %s: %s", key, e)
            raise UploadException(
                "Failed to generate file URL", URL_GENERATION_FAILED, self.name
            ) from e

    async def exists(self, key: str) -> bool:
        """HEAD the object. Any error other than 404 is logged and treated as missing."""
        try:
            await asyncio.to_thread(
                self._client.head_object, Bucket=self.config.bucket, Key=key
            )
            return True
        except ClientError as e:
            status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            if _client_error_code(e) in ("404", "NotFound", "NoSuchKey") or status == 404:
                return False
            logger.warning("Error checking if S3 object exists: %s: %s", key, e)
            return False
        except Exception as e:
            logger.warning("Error checking if S3 object exists: %s: %s", key, e)
            return False

    async def get_metadata(self, key: str) -> dict[str, Any] | None:
        try:
            head = await asyncio.to_thread(
                self._client.head_object, Bucket=self.config.bucket, Key=key
            )
        except Exception as e:
            logger.warning("Failed to get S3 metadata for %s: %s", key, e)
            return None
        last_modified = head.get("LastModified")
        return {
            "size": head.get("ContentLength"),
            "content_type": head.get("ContentType"),
            "last_modified": last_modified.isoformat() if last_modified else None,
            "etag": head.get("ETag"),
            "storage_class": head.get("StorageClass"),
            "metadata": head.get("Metadata") or {},
            "server_side_encryption": head.get("ServerSideEncryption"),
        }

    async def generate_presigned_upload_url(
        self, key: str, content_type: str, expires_in: int = 3600
    ) -> str:
        """Presigned PUT URL for direct browser uploads.

        Raises:
            UploadException: PRESIGNED_URL_FAILED.
        """
        params: dict[str, Any] = {
            "Bucket": self.config.bucket,
            "Key": key,
            "ContentType": content_type,
        }
        if self.config.public_read:
            params["ACL"] = "public-read"
        try:
            return await asyncio.to_thread(
                self._client.generate_presigned_url,
                "put_object",
                Params=params,
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to generate presigned upload URL for %s: %s", key, e)
            raise UploadException(
                "Failed to generate presigned upload URL", PRESIGNED_URL_FAILED, self.name
            ) from e

    async def copy_object(self, source_key: str, destination_key: str) -> bool:
        try:
            await asyncio.to_thread(
                self._client.copy_object,
                Bucket=self.config.bucket,
                CopySource={"Bucket": self.config.bucket, "Key": source_key},
                Key=destination_key,
            )
            return True
        except Exception as e:
            logger.error(
                "Failed to copy S3 object from %s to %s: %s", source_key, destination_key, e
            )
            return False
