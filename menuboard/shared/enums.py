"""Shared enumerations for the menuboard application."""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class ProviderType(_ValuesMixin, str, Enum):
    """Storage backend identifier; key into the provider registry."""

    LOCAL = "local"
    AWS_S3 = "aws-s3"
    GCS = "gcs"
    CLOUDINARY = "cloudinary"
    AZURE = "azure"
    APPWRITE = "appwrite"
