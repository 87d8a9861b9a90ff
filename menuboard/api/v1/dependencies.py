"""Presentation-layer dependency injection (composition root).

Routes depend on these providers, not on infrastructure directly. Tests
swap the upload service with app.dependency_overrides.
"""

from __future__ import annotations

from menuboard.application.services.upload_service import UploadService, get_upload_service
from menuboard.core.config import Settings, get_settings


def get_upload_service_dep() -> UploadService:
    """Process-wide UploadService (built from settings on first use)."""
    return get_upload_service()


def get_settings_dep() -> Settings:
    return get_settings()
