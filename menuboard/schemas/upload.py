"""Upload API schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from menuboard.schemas.health import ProviderHealth
from menuboard.shared.enums import ProviderType


class UploadResultResponse(BaseModel):
    """Response for POST /uploads (and successful batch entries)."""

    model_config = ConfigDict(from_attributes=True)

    success: bool = True
    url: str
    key: str
    original_name: str
    size: int
    mime_type: str
    provider: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class UploadErrorResponse(BaseModel):
    """Failed batch entry."""

    model_config = ConfigDict(from_attributes=True)

    success: bool = False
    error: str
    code: str
    provider: str


class BatchUploadResponse(BaseModel):
    """Response for POST /uploads/batch: per-file results plus counts."""

    total: int
    successful: int
    failed: int
    results: list[UploadResultResponse | UploadErrorResponse]


class DeleteResultResponse(BaseModel):
    """Response for DELETE /uploads."""

    model_config = ConfigDict(from_attributes=True)

    success: bool
    key: str
    provider: str
    error: str | None = None


class FileUrlResponse(BaseModel):
    key: str
    url: str


class FileExistsResponse(BaseModel):
    key: str
    exists: bool


class FileMetadataResponse(BaseModel):
    key: str
    metadata: dict[str, Any]


class UploadPolicy(BaseModel):
    """Upload size and type policy."""

    max_file_size: int = Field(..., gt=0)
    allowed_mime_types: list[str] = Field(..., min_length=1)
    allowed_extensions: list[str] = Field(..., min_length=1)


class UploadConfigResponse(BaseModel):
    """Response for GET /uploads/config."""

    default_provider: ProviderType
    fallback_provider: ProviderType
    upload: UploadPolicy
    available_providers: list[ProviderType]
    health: dict[str, ProviderHealth]


class UploadConfigUpdateRequest(BaseModel):
    """Request body for PUT /uploads/config. Omitted fields are left unchanged."""

    default_provider: ProviderType | None = None
    fallback_provider: ProviderType | None = None
    upload_config: UploadPolicy | None = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str
