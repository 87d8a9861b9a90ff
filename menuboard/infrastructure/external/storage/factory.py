"""Upload provider factory: builds and caches one provider instance per type.

Implementations are imported lazily inside _build() so that:
- local and appwrite only need aiofiles/httpx (main dependencies);
- aws-s3 uses boto3 when installed (``pip install .[storage]``) and otherwise
  falls back to the hand-signed AWSS3SignedProvider.

Cached instances live until clear_cache().
"""

from __future__ import annotations

import dataclasses
from typing import Any, ClassVar

from menuboard.infrastructure.exceptions import (
    INVALID_CONFIG,
    UNKNOWN_PROVIDER,
    UploadException,
)
from menuboard.infrastructure.external.storage.config import (
    build_upload_service_config,
    get_provider_config,
    to_provider_type,
)
from menuboard.infrastructure.external.storage.models import (
    AppwriteProviderConfig,
    AWSS3ProviderConfig,
    HealthStatus,
    LocalProviderConfig,
    ProviderConfig,
)
from menuboard.infrastructure.external.storage.protocol import UploadProvider
from menuboard.shared.enums import ProviderType
from menuboard.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

HEALTH_CHECK_KEY = "__health_check_test__"


def _typed_config(config_cls: type, raw: dict[str, Any]) -> Any:
    """Build a provider config dataclass from raw settings (unset keys use defaults)."""
    names = {f.name for f in dataclasses.fields(config_cls)}
    return config_cls(**{k: v for k, v in raw.items() if k in names and v is not None})


class ProviderFactory:
    """Process-wide registry of upload providers keyed by ProviderType."""

    _instances: ClassVar[dict[ProviderType, UploadProvider]] = {}

    @classmethod
    def create_provider(
        cls,
        provider_type: ProviderType | str,
        providers: dict[ProviderType, ProviderConfig] | None = None,
    ) -> UploadProvider:
        """Return the cached provider for provider_type, building it on first use.

        Args:
            provider_type: Provider to build.
            providers: Provider configs; if None, built from get_settings().

        Raises:
            UploadException: UNKNOWN_PROVIDER for unsupported types,
                INVALID_CONFIG when the config is missing, disabled or incomplete.
        """
        ptype = to_provider_type(provider_type)
        cached = cls._instances.get(ptype)
        if cached is not None:
            return cached

        try:
            if providers is None:
                providers = build_upload_service_config().providers
            entry = get_provider_config(ptype, providers)
            provider = cls._build(ptype, entry.config)
        except UploadException as e:
            logger.error("Failed to create provider %s: %s (%s)", ptype.value, e.message, e.code)
            raise

        cls._instances[ptype] = provider
        logger.info("Initialized provider: %s (%s)", ptype.value, provider.name)
        return provider

    @classmethod
    def _build(cls, ptype: ProviderType, raw: dict[str, Any]) -> UploadProvider:
        try:
            if ptype == ProviderType.LOCAL:
                from menuboard.infrastructure.external.storage.local_storage import (
                    LocalProvider,
                )

                return LocalProvider(_typed_config(LocalProviderConfig, raw))
            if ptype == ProviderType.AWS_S3:
                return cls._build_aws_s3(_typed_config(AWSS3ProviderConfig, raw))
            if ptype == ProviderType.APPWRITE:
                from menuboard.infrastructure.external.storage.appwrite_storage import (
                    AppwriteProvider,
                )

                return AppwriteProvider(_typed_config(AppwriteProviderConfig, raw))
        except UploadException:
            raise
        except Exception as e:
            raise UploadException(
                f"Invalid {ptype.value} provider configuration: {e}",
                INVALID_CONFIG,
                ptype.value,
            ) from e
        # gcs, cloudinary, azure: config slots exist, no implementation yet
        raise UploadException(f"Unknown provider type: {ptype.value}", UNKNOWN_PROVIDER)

    @staticmethod
    def _build_aws_s3(config: AWSS3ProviderConfig) -> UploadProvider:
        """boto3-backed provider when importable, otherwise the hand-signed one."""
        try:
            from menuboard.infrastructure.external.storage.s3_storage import AWSS3Provider
        except ImportError:
            logger.warning("AWS S3 SDK (boto3) not available, using signed HTTP fallback")
            from menuboard.infrastructure.external.storage.s3_signed_storage import (
                AWSS3SignedProvider,
            )

            return AWSS3SignedProvider(config)
        return AWSS3Provider(config)

    @classmethod
    def get_available_providers(
        cls, providers: dict[ProviderType, ProviderConfig] | None = None
    ) -> list[ProviderType]:
        """Provider types that construct successfully; failures count as unavailable."""
        available: list[ProviderType] = []
        for ptype in ProviderType:
            try:
                cls.create_provider(ptype, providers)
                available.append(ptype)
            except UploadException as e:
                logger.debug("Provider %s is not available: %s", ptype.value, e.message)
        return available

    @classmethod
    async def health_check(
        cls,
        provider_type: ProviderType | str,
        providers: dict[ProviderType, ProviderConfig] | None = None,
    ) -> HealthStatus:
        """Probe a provider with exists() on a sentinel key.

        Any completed call is healthy regardless of the boolean result; an
        exception (construction or transport) is unhealthy.
        """
        try:
            provider = cls.create_provider(provider_type, providers)
            await provider.exists(HEALTH_CHECK_KEY)
            return HealthStatus(healthy=True)
        except Exception as e:
            message = e.message if isinstance(e, UploadException) else str(e)
            return HealthStatus(healthy=False, error=message or "Unknown error")

    @classmethod
    def register_provider(cls, provider_type: ProviderType, provider: UploadProvider) -> None:
        """Put a ready-made provider instance in the registry."""
        cls._instances[provider_type] = provider
        logger.info("Registered provider instance: %s", provider_type.value)

    @classmethod
    def get_cached_provider(cls, provider_type: ProviderType) -> UploadProvider | None:
        return cls._instances.get(provider_type)

    @classmethod
    def clear_cache(cls) -> None:
        cls._instances.clear()
        logger.info("Provider cache cleared")
