"""Application layer: upload orchestration services.

Depends on the storage provider protocol, not on concrete providers;
ProviderFactory (infrastructure) supplies the implementations.
"""

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
