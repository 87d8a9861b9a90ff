"""Application services: upload orchestration with provider failover."""

from menuboard.application.services.upload_service import (
    UploadService,
    get_upload_service,
    reset_upload_service,
)

__all__ = [
    "UploadService",
    "get_upload_service",
    "reset_upload_service",
]
