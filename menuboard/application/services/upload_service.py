"""Upload application service: primary/fallback orchestration over upload providers.

Providers are resolved lazily through ProviderFactory on first use. Each
provider retries its own transport calls; this service adds a second layer
by failing over from the primary to the fallback provider.
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from typing import Any

from menuboard.infrastructure.exceptions import (
    BATCH_UPLOAD_FAILED,
    PROVIDER_INITIALIZATION_FAILED,
    UploadException,
)
from menuboard.infrastructure.external.storage.config import (
    build_upload_service_config,
    to_provider_type,
)
from menuboard.infrastructure.external.storage.factory import ProviderFactory
from menuboard.infrastructure.external.storage.models import (
    DeleteResult,
    HealthStatus,
    UploadError,
    UploadFile,
    UploadResult,
    UploadServiceConfig,
)
from menuboard.infrastructure.external.storage.protocol import UploadProvider
from menuboard.shared.enums import ProviderType
from menuboard.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


def _provider_label(provider: ProviderType | str) -> str:
    return provider.value if isinstance(provider, ProviderType) else str(provider)


class UploadService:
    """Upload/delete/URL operations with lazy provider resolution and failover.

    State: providers are unresolved until the first operation. Resolution
    builds the default provider; if that fails and a distinct fallback is
    configured, the fallback is promoted to primary. If nothing can be
    built, operations fail with PROVIDER_INITIALIZATION_FAILED.
    """

    def __init__(self, config: UploadServiceConfig | None = None, **overrides: Any) -> None:
        base = config or build_upload_service_config()
        self._config = dataclasses.replace(base, **overrides) if overrides else base
        self._primary: UploadProvider | None = None
        self._fallback: UploadProvider | None = None
        self._fallback_promoted = False

    @property
    def primary_provider(self) -> UploadProvider | None:
        return self._primary

    @property
    def fallback_provider(self) -> UploadProvider | None:
        return self._fallback

    def _reset_providers(self) -> None:
        self._primary = None
        self._fallback = None
        self._fallback_promoted = False

    def ensure_providers_initialized(self) -> UploadProvider:
        """Resolve primary (and optional fallback) providers; return the primary.

        Synchronous, so check-and-set cannot interleave with other tasks. A
        fallback that could not be built is retried on every call until it
        succeeds, unless it was promoted to primary.

        Raises:
            UploadException: PROVIDER_INITIALIZATION_FAILED when neither the
                default nor the fallback provider can be built.
        """
        if self._primary is None:
            self._primary = self._build_primary()
        if self._fallback is None and not self._fallback_promoted:
            self._build_fallback()
        return self._primary

    def _build_primary(self) -> UploadProvider:
        cfg = self._config
        try:
            primary = ProviderFactory.create_provider(cfg.default_provider, cfg.providers)
        except UploadException as e:
            logger.error(
                "Failed to initialize primary provider %s: %s",
                cfg.default_provider.value,
                e.message,
            )
            if cfg.fallback_provider != cfg.default_provider:
                try:
                    promoted = ProviderFactory.create_provider(
                        cfg.fallback_provider, cfg.providers
                    )
                except UploadException as fallback_error:
                    logger.error(
                        "Failed to initialize fallback provider %s: %s",
                        cfg.fallback_provider.value,
                        fallback_error.message,
                    )
                else:
                    logger.warning(
                        "Using fallback provider %s as primary", cfg.fallback_provider.value
                    )
                    self._fallback_promoted = True
                    return promoted
            raise UploadException(
                "No upload provider could be initialized", PROVIDER_INITIALIZATION_FAILED
            ) from e
        logger.info("Primary upload provider initialized: %s", primary.name)
        return primary

    def _build_fallback(self) -> None:
        cfg = self._config
        if cfg.fallback_provider == cfg.default_provider:
            return
        try:
            self._fallback = ProviderFactory.create_provider(cfg.fallback_provider, cfg.providers)
        except UploadException as e:
            logger.warning(
                "Fallback provider %s unavailable: %s", cfg.fallback_provider.value, e.message
            )
        else:
            logger.info("Fallback upload provider initialized: %s", self._fallback.name)

    def _resolve(self, provider: ProviderType | str) -> UploadProvider:
        return ProviderFactory.create_provider(provider, self._config.providers)

    async def upload(self, file: UploadFile) -> UploadResult:
        """Upload via the primary provider, failing over to the fallback.

        Raises:
            UploadException: PROVIDER_INITIALIZATION_FAILED, or the primary
                provider's error code/message when primary and fallback both fail.
        """
        primary = self.ensure_providers_initialized()
        started = time.perf_counter()
        logger.info(
            "Upload started: name=%s size=%d provider=%s",
            file.original_name,
            file.size,
            primary.name,
        )

        result = await primary.upload(file, self._config.upload)
        if result.success:
            logger.info(
                "Upload completed: key=%s provider=%s duration_ms=%d",
                result.key,
                result.provider,
                (time.perf_counter() - started) * 1000,
            )
            return result

        logger.warning(
            "Primary provider %s failed: %s (%s)", primary.name, result.error, result.code
        )
        if self._fallback is not None:
            fallback_result = await self._fallback.upload(file, self._config.upload)
            if fallback_result.success:
                logger.info(
                    "Upload completed via fallback: key=%s provider=%s duration_ms=%d",
                    fallback_result.key,
                    fallback_result.provider,
                    (time.perf_counter() - started) * 1000,
                )
                return fallback_result
            logger.error(
                "Fallback provider %s failed: %s (%s)",
                self._fallback.name,
                fallback_result.error,
                fallback_result.code,
            )

        raise UploadException(result.error, result.code, result.provider)

    async def delete(self, key: str, provider: ProviderType | str | None = None) -> DeleteResult:
        """Delete key. Never raises.

        With an explicit provider only that provider is used. Otherwise the
        primary is tried, then the fallback; if both fail the primary's
        result is returned.
        """
        if provider is not None:
            logger.info("Starting file deletion: key=%s provider=%s", key, _provider_label(provider))
            try:
                target = self._resolve(provider)
            except UploadException as e:
                logger.error("Delete failed for %s: %s", key, e.message)
                return DeleteResult(
                    success=False, key=key, provider=_provider_label(provider), error=e.message
                )
            return self._log_delete(await target.delete(key))

        try:
            primary = self.ensure_providers_initialized()
        except UploadException as e:
            logger.error("Delete failed for %s: %s", key, e.message)
            return DeleteResult(
                success=False,
                key=key,
                provider=self._config.default_provider.value,
                error=e.message,
            )

        logger.info("Starting file deletion: key=%s provider=%s", key, primary.name)
        result = await primary.delete(key)
        if result.success or self._fallback is None:
            return self._log_delete(result)
        logger.warning(
            "Primary delete failed for %s on %s: %s; trying fallback",
            key,
            primary.name,
            result.error,
        )
        fallback_result = await self._fallback.delete(key)
        return self._log_delete(fallback_result if fallback_result.success else result)

    @staticmethod
    def _log_delete(result: DeleteResult) -> DeleteResult:
        if result.success:
            logger.info("File deleted: key=%s provider=%s", result.key, result.provider)
        else:
            logger.warning(
                "File deletion failed: key=%s provider=%s error=%s",
                result.key,
                result.provider,
                result.error,
            )
        return result

    async def get_url(self, key: str, provider: ProviderType | str | None = None) -> str:
        """URL from the given provider or the primary; never the fallback.

        Raises:
            UploadException: when the provider cannot be built or cannot produce a URL.
        """
        try:
            target = (
                self._resolve(provider)
                if provider is not None
                else self.ensure_providers_initialized()
            )
            logger.debug("Resolving URL: key=%s provider=%s", key, target.name)
            url = await target.get_url(key)
        except UploadException as e:
            logger.error("URL generation failed for %s: %s (%s)", key, e.message, e.code)
            raise
        logger.debug("URL resolved: key=%s provider=%s", key, target.name)
        return url

    async def exists(self, key: str, provider: ProviderType | str | None = None) -> bool:
        """True if key exists on the given provider, else on primary then fallback."""
        try:
            if provider is not None:
                target = self._resolve(provider)
                logger.debug("Checking existence: key=%s provider=%s", key, target.name)
                found = await target.exists(key)
                logger.debug("Existence check: key=%s provider=%s found=%s", key, target.name, found)
                return found
            primary = self.ensure_providers_initialized()
        except UploadException as e:
            logger.warning("exists(%s) unavailable: %s", key, e.message)
            return False
        logger.debug("Checking existence: key=%s provider=%s", key, primary.name)
        if await primary.exists(key):
            logger.debug("Existence check: key=%s provider=%s found=True", key, primary.name)
            return True
        if self._fallback is not None:
            found = await self._fallback.exists(key)
            logger.debug(
                "Existence check: key=%s provider=%s found=%s", key, self._fallback.name, found
            )
            return found
        logger.debug("Existence check: key=%s provider=%s found=False", key, primary.name)
        return False

    async def get_metadata(
        self, key: str, provider: ProviderType | str | None = None
    ) -> dict[str, Any] | None:
        try:
            if provider is not None:
                return await self._resolve(provider).get_metadata(key)
            primary = self.ensure_providers_initialized()
        except UploadException as e:
            logger.warning("get_metadata(%s) unavailable: %s", key, e.message)
            return None
        metadata = await primary.get_metadata(key)
        if metadata is None and self._fallback is not None:
            metadata = await self._fallback.get_metadata(key)
        return metadata

    def _batch_provider_name(self) -> str:
        return self._primary.name if self._primary is not None else "unknown"

    async def upload_multiple(self, files: list[UploadFile]) -> list[UploadResult | UploadError]:
        """Upload files concurrently; failures become UploadError entries (never raises)."""
        logger.info("Starting batch upload of %d files", len(files))
        outcomes = await asyncio.gather(
            *(self.upload(file) for file in files), return_exceptions=True
        )
        results: list[UploadResult | UploadError] = []
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Batch upload failed for file %d: %s", index, outcome)
                message = outcome.message if isinstance(outcome, UploadException) else str(outcome)
                results.append(
                    UploadError(
                        error=message or "Upload failed",
                        code=BATCH_UPLOAD_FAILED,
                        provider=self._batch_provider_name(),
                    )
                )
            else:
                results.append(outcome)
        return results

    async def delete_multiple(self, keys: list[str]) -> list[DeleteResult]:
        """Delete keys concurrently; one DeleteResult per key, in order."""
        logger.info("Starting batch delete of %d files", len(keys))
        outcomes = await asyncio.gather(*(self.delete(key) for key in keys), return_exceptions=True)
        results: list[DeleteResult] = []
        for key, outcome in zip(keys, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Batch delete failed for key %s: %s", key, outcome)
                results.append(
                    DeleteResult(
                        success=False,
                        key=key,
                        provider=self._batch_provider_name(),
                        error=str(outcome) or "Delete failed",
                    )
                )
            else:
                results.append(outcome)
        return results

    def switch_provider(self, new_provider: ProviderType | str) -> None:
        """Make new_provider the default after checking it can be built.

        Raises:
            UploadException: from ProviderFactory; the config is left unchanged.
        """
        ptype = to_provider_type(new_provider)
        try:
            self._resolve(ptype)
        except UploadException:
            logger.error("Failed to switch to provider: %s", ptype.value)
            raise
        self._config = dataclasses.replace(self._config, default_provider=ptype)
        self._reset_providers()
        logger.info("Provider switched to: %s", ptype.value)

    def update_config(self, **changes: Any) -> None:
        """Merge changes into the config (fields of UploadServiceConfig).

        Changing default/fallback provider drops the resolved providers;
        changing ``providers`` also clears the factory cache.
        """
        for name in ("default_provider", "fallback_provider"):
            if name in changes:
                changes[name] = to_provider_type(changes[name])
        self._config = dataclasses.replace(self._config, **changes)
        if {"default_provider", "fallback_provider", "providers"} & changes.keys():
            self._reset_providers()
        if "providers" in changes:
            ProviderFactory.clear_cache()
        logger.info("Upload service configuration updated: %s", sorted(changes))

    def get_config(self) -> UploadServiceConfig:
        """Shallow copy of the current configuration."""
        return dataclasses.replace(self._config, providers=dict(self._config.providers))

    def get_available_providers(self) -> list[ProviderType]:
        return ProviderFactory.get_available_providers(self._config.providers)

    async def get_provider_health(self) -> dict[str, HealthStatus]:
        """Health of every available provider, checked concurrently."""
        available = self.get_available_providers()
        statuses = await asyncio.gather(
            *(ProviderFactory.health_check(p, self._config.providers) for p in available)
        )
        return {p.value: status for p, status in zip(available, statuses)}


_upload_service: UploadService | None = None


def get_upload_service(config: UploadServiceConfig | None = None, **overrides: Any) -> UploadService:
    """Process-wide UploadService, created on first call.

    Arguments only apply to that first call.
    """
    global _upload_service
    if _upload_service is None:
        _upload_service = UploadService(config, **overrides)
    return _upload_service


def reset_upload_service() -> None:
    """Drop the shared service and the provider cache (tests, config reloads)."""
    global _upload_service
    _upload_service = None
    ProviderFactory.clear_cache()
