"""Upload data structures (provider-agnostic).

All values are transient: persisting resulting URLs/keys is the caller's job.
Success and failure are discriminated by the ``success`` flag; a provider
returns exactly one of UploadResult / UploadError per operation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from menuboard.shared.enums import ProviderType


@dataclass(frozen=True)
class UploadFile:
    """Inbound file payload. Created per request; consumed once."""

    buffer: bytes
    original_name: str
    mime_type: str
    size: int
    key: str | None = None  # optional custom key/path


@dataclass(frozen=True)
class UploadConfig:
    """Upload policy: size limit and MIME/extension allow-lists."""

    max_file_size: int
    allowed_mime_types: frozenset[str]
    allowed_extensions: frozenset[str]


@dataclass
class UploadResult:
    """Successful upload."""

    url: str
    key: str
    original_name: str
    size: int
    mime_type: str
    provider: str
    metadata: dict[str, Any] = field(default_factory=dict)
    success: bool = True


@dataclass
class UploadError:
    """Failed upload (structured, never raised)."""

    error: str
    code: str
    provider: str
    success: bool = False


@dataclass
class DeleteResult:
    """Outcome of a single delete."""

    success: bool
    key: str
    provider: str
    error: str | None = None


@dataclass
class FailedDelete:
    key: str
    error: str


@dataclass
class BatchDeleteResult:
    """Per-key outcome of a provider-level batch delete."""

    successful: list[str] = field(default_factory=list)
    failed: list[FailedDelete] = field(default_factory=list)


@dataclass
class HealthStatus:
    healthy: bool
    error: str | None = None


@dataclass
class StorageInfo:
    total_files: int
    total_size: int


@dataclass
class CleanupResult:
    deleted_count: int
    errors: list[str] = field(default_factory=list)


@dataclass
class RemoteFile:
    """File entry returned by provider listings."""

    id: str
    name: str
    size: int
    mime_type: str
    created_at: str | None = None


@dataclass
class FileListing:
    files: list[RemoteFile]
    total: int


@dataclass
class ProviderConfig:
    """Registered provider entry: enabled flag plus raw connection settings."""

    type: ProviderType
    enabled: bool
    config: dict[str, Any] = field(default_factory=dict)


@dataclass
class UploadServiceConfig:
    """Service configuration: primary/fallback selection, providers, policy."""

    default_provider: ProviderType
    fallback_provider: ProviderType
    providers: dict[ProviderType, ProviderConfig]
    upload: UploadConfig


@dataclass
class LocalProviderConfig:
    upload_dir: str
    base_url: str
    public_path: str | None = None


@dataclass
class AWSS3ProviderConfig:
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str
    cdn_url: str | None = None
    public_read: bool = False
    storage_class: str = "STANDARD"  # STANDARD, STANDARD_IA, INTELLIGENT_TIERING, GLACIER, ...
    retry_base_delay: float = 1.0


@dataclass
class AppwriteProviderConfig:
    endpoint: str
    project_id: str
    api_key: str
    bucket_id: str
    cdn_url: str | None = None
    retry_base_delay: float = 1.0
