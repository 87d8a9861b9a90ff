"""Application configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Upload provider fields mirror the deployment
environment variables (UPLOAD_*, AWS_*, APPWRITE_*); per-provider required
fields are checked when the provider is constructed, not here.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from menuboard.shared.enums import ProviderType

_DEFAULT_MIME_TYPES = (
    "image/jpeg,image/png,image/gif,image/webp,"
    "application/pdf,text/plain,text/csv,application/json"
)
_DEFAULT_EXTENSIONS = ".jpg,.jpeg,.png,.gif,.webp,.pdf,.txt,.csv,.json"


class Settings(BaseSettings):
    """Application settings loaded from environment and .env."""

    # App
    app_name: str = "menuboard"
    app_version: str = "1.0.0"
    debug: bool = False

    # CORS
    allowed_origins: str = "http://localhost:3000,http://localhost:8080"

    # Request handling
    request_id_header: str = "X-Request-ID"
    # Whole multipart body; a batch carries several files.
    max_request_size: int = 50 * 1024 * 1024  # 50MB
    upload_batch_max_files: int = 10
    # Serve local uploads from upload_local_base_url (StaticFiles)
    upload_serve_local: bool = True

    # Upload service
    upload_default_provider: str = ProviderType.LOCAL.value
    upload_fallback_provider: str = ProviderType.LOCAL.value
    upload_max_file_size: int = 10 * 1024 * 1024  # 10MB
    upload_allowed_mime_types: str = _DEFAULT_MIME_TYPES
    upload_allowed_extensions: str = _DEFAULT_EXTENSIONS
    # Base delay (seconds) for provider retry backoff: 1s, 2s between 3 attempts.
    upload_retry_base_delay: float = 1.0

    # Local provider
    upload_local_enabled: bool = True
    upload_local_dir: str = "./uploads"
    upload_local_base_url: str = "/uploads"
    upload_local_public_path: str = "/public/uploads"

    # AWS S3 provider
    upload_aws_enabled: bool = False
    aws_region: str = "us-east-1"
    aws_s3_bucket: str | None = None
    aws_access_key_id: str | None = None
    aws_secret_access_key: SecretStr | None = None
    aws_cloudfront_url: str | None = None
    aws_s3_public_read: bool = True
    aws_s3_storage_class: str = "STANDARD"

    # Appwrite provider
    upload_appwrite_enabled: bool = False
    appwrite_endpoint: str | None = None
    appwrite_project_id: str | None = None
    appwrite_api_key: SecretStr | None = None
    appwrite_bucket_id: str = "default"
    appwrite_cdn_url: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_upload_providers(self) -> "Settings":
        """Reject unknown default/fallback provider names at load time."""
        known = ProviderType.values()
        for field_name in ("upload_default_provider", "upload_fallback_provider"):
            value = getattr(self, field_name)
            if value not in known:
                raise ValueError(
                    f"Invalid {field_name} '{value}'. Must be one of: {', '.join(known)}"
                )
        if self.upload_max_file_size <= 0:
            raise ValueError("UPLOAD_MAX_FILE_SIZE must be a positive number of bytes")
        if self.max_request_size < self.upload_max_file_size:
            raise ValueError("MAX_REQUEST_SIZE must be at least UPLOAD_MAX_FILE_SIZE")
        return self

    @property
    def allowed_mime_types(self) -> frozenset[str]:
        """Parsed UPLOAD_ALLOWED_MIME_TYPES."""
        return _split_csv(self.upload_allowed_mime_types)

    @property
    def allowed_extensions(self) -> frozenset[str]:
        """Parsed UPLOAD_ALLOWED_EXTENSIONS (lowercase, leading dot)."""
        return frozenset(
            ext if ext.startswith(".") else f".{ext}"
            for ext in (e.lower() for e in _split_csv(self.upload_allowed_extensions))
        )


def _split_csv(value: str) -> frozenset[str]:
    return frozenset(part.strip() for part in value.split(",") if part.strip())


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars so the next
    get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()
