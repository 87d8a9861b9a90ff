"""Upload provider protocol (DIP). Implementations: LocalProvider, AWSS3Provider,
AWSS3SignedProvider, AppwriteProvider.

Only the five core operations are shared; presign, batch delete and listing
helpers live on the concrete providers.
"""

from typing import Any, Protocol

from menuboard.infrastructure.external.storage.models import (
    DeleteResult,
    UploadConfig,
    UploadError,
    UploadFile,
    UploadResult,
)


class UploadProvider(Protocol):
    """Protocol for upload storage backends (local disk, S3, Appwrite)."""

    name: str

    async def upload(
        self, file: UploadFile, config: UploadConfig
    ) -> UploadResult | UploadError:
        """Validate and store file. Returns UploadError instead of raising."""
        ...

    async def delete(self, key: str) -> DeleteResult:
        """Delete file. Not-found is reported without calling the delete transport."""
        ...

    async def get_url(self, key: str) -> str:
        """Return the public, CDN or signed URL for key (may hit the network)."""
        ...

    async def exists(self, key: str) -> bool:
        """Return True if key exists; transport errors degrade to False."""
        ...

    async def get_metadata(self, key: str) -> dict[str, Any] | None:
        """Return metadata without downloading; None on any failure."""
        ...
