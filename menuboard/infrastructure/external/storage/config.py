"""Upload service configuration: defaults from Settings and per-provider validation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from menuboard.infrastructure.exceptions import (
    INVALID_CONFIG,
    UNKNOWN_PROVIDER,
    UploadException,
)
from menuboard.infrastructure.external.storage.models import (
    ProviderConfig,
    UploadConfig,
    UploadServiceConfig,
)
from menuboard.shared.enums import ProviderType

if TYPE_CHECKING:
    from menuboard.core.config import Settings

# Field groups per provider; an inner tuple means "at least one of".
_REQUIRED_FIELDS: dict[ProviderType, tuple[str | tuple[str, ...], ...]] = {
    ProviderType.LOCAL: ("upload_dir", "base_url"),
    ProviderType.AWS_S3: ("region", "bucket", "access_key_id", "secret_access_key"),
    ProviderType.GCS: ("project_id", "bucket_name", ("key_filename", "credentials")),
    ProviderType.CLOUDINARY: ("cloud_name", "api_key", "api_secret"),
    ProviderType.AZURE: ("account_name", "account_key", "container_name"),
    ProviderType.APPWRITE: ("endpoint", "project_id", "api_key", "bucket_id"),
}


def to_provider_type(value: str | ProviderType) -> ProviderType:
    """Coerce a provider name to ProviderType.

    Raises:
        UploadException: UNKNOWN_PROVIDER for unrecognised names.
    """
    try:
        return ProviderType(value)
    except ValueError as e:
        raise UploadException(f"Unknown provider type: {value}", UNKNOWN_PROVIDER) from e


def missing_provider_fields(provider_type: ProviderType, config: dict[str, Any]) -> list[str]:
    """Return the required fields absent (or empty) in config."""
    missing: list[str] = []
    for requirement in _REQUIRED_FIELDS.get(provider_type, ()):
        options = requirement if isinstance(requirement, tuple) else (requirement,)
        if not any(config.get(name) for name in options):
            missing.append("|".join(options))
    return missing


def validate_provider_config(provider_type: ProviderType, config: dict[str, Any]) -> bool:
    return provider_type in _REQUIRED_FIELDS and not missing_provider_fields(
        provider_type, config
    )


def get_provider_config(
    provider_type: ProviderType,
    providers: dict[ProviderType, ProviderConfig],
) -> ProviderConfig:
    """Return the enabled, complete config for provider_type.

    Raises:
        UploadException: INVALID_CONFIG when not configured, disabled or
            missing required fields.
    """
    entry = providers.get(provider_type)
    if entry is None:
        raise UploadException(
            f"Provider {provider_type.value} not configured", INVALID_CONFIG, provider_type.value
        )
    if not entry.enabled:
        raise UploadException(
            f"Provider {provider_type.value} is disabled", INVALID_CONFIG, provider_type.value
        )
    missing = missing_provider_fields(provider_type, entry.config)
    if missing:
        raise UploadException(
            f"Provider {provider_type.value} configuration is invalid; missing: {', '.join(missing)}",
            INVALID_CONFIG,
            provider_type.value,
        )
    return entry


def build_upload_service_config(settings: Settings | None = None) -> UploadServiceConfig:
    """Default UploadServiceConfig from application settings.

    Args:
        settings: Application settings; if None, uses get_settings().
    """
    from menuboard.core.config import get_settings

    s = settings or get_settings()
    secret_key = s.aws_secret_access_key.get_secret_value() if s.aws_secret_access_key else None
    appwrite_key = s.appwrite_api_key.get_secret_value() if s.appwrite_api_key else None

    providers = {
        ProviderType.LOCAL: ProviderConfig(
            type=ProviderType.LOCAL,
            enabled=s.upload_local_enabled,
            config={
                "upload_dir": s.upload_local_dir,
                "base_url": s.upload_local_base_url,
                "public_path": s.upload_local_public_path,
            },
        ),
        ProviderType.AWS_S3: ProviderConfig(
            type=ProviderType.AWS_S3,
            enabled=s.upload_aws_enabled,
            config={
                "region": s.aws_region,
                "bucket": s.aws_s3_bucket,
                "access_key_id": s.aws_access_key_id,
                "secret_access_key": secret_key,
                "cdn_url": s.aws_cloudfront_url,
                "public_read": s.aws_s3_public_read,
                "storage_class": s.aws_s3_storage_class,
                "retry_base_delay": s.upload_retry_base_delay,
            },
        ),
        ProviderType.APPWRITE: ProviderConfig(
            type=ProviderType.APPWRITE,
            enabled=s.upload_appwrite_enabled,
            config={
                "endpoint": s.appwrite_endpoint,
                "project_id": s.appwrite_project_id,
                "api_key": appwrite_key,
                "bucket_id": s.appwrite_bucket_id,
                "cdn_url": s.appwrite_cdn_url,
                "retry_base_delay": s.upload_retry_base_delay,
            },
        ),
    }
    return UploadServiceConfig(
        default_provider=ProviderType(s.upload_default_provider),
        fallback_provider=ProviderType(s.upload_fallback_provider),
        providers=providers,
        upload=UploadConfig(
            max_file_size=s.upload_max_file_size,
            allowed_mime_types=s.allowed_mime_types,
            allowed_extensions=s.allowed_extensions,
        ),
    )
