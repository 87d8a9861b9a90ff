"""Upload storage: local filesystem, AWS S3 and Appwrite providers.

ProviderFactory builds providers from menuboard.core.config. Implementations
are loaded lazily inside ProviderFactory.create_provider() so that:
- local and appwrite only require aiofiles/httpx (main dependencies).
- aws-s3 loads boto3 when installed (pip install .[storage]); without it
  the hand-signed HTTP provider is used.

Implementations satisfy UploadProvider (upload, delete, get_url, exists,
get_metadata).
"""

from menuboard.infrastructure.external.storage.factory import ProviderFactory
from menuboard.infrastructure.external.storage.protocol import UploadProvider

__all__ = [
    "ProviderFactory",
    "UploadProvider",
]
