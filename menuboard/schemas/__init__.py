"""Pydantic request/response schemas for the API."""

from menuboard.schemas.health import HealthResponse, ProviderHealthResponse
from menuboard.schemas.upload import (
    BatchUploadResponse,
    DeleteResultResponse,
    UploadConfigResponse,
    UploadConfigUpdateRequest,
    UploadErrorResponse,
    UploadResultResponse,
)

__all__ = [
    "BatchUploadResponse",
    "DeleteResultResponse",
    "HealthResponse",
    "ProviderHealthResponse",
    "UploadConfigResponse",
    "UploadConfigUpdateRequest",
    "UploadErrorResponse",
    "UploadResultResponse",
]
