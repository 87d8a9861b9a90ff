"""Unit tests for UploadService: failover, degradation, batch ops, reconfiguration."""

import logging
from pathlib import Path

import pytest

from menuboard.application.services.upload_service import (
    UploadService,
    get_upload_service,
    reset_upload_service,
)
from menuboard.infrastructure.exceptions import (
    BATCH_UPLOAD_FAILED,
    BUCKET_NOT_FOUND,
    INVALID_CONFIG,
    INVALID_MIME_TYPE,
    PROVIDER_INITIALIZATION_FAILED,
    UNAUTHORIZED,
    UploadException,
)
from menuboard.infrastructure.external.storage.factory import ProviderFactory
from menuboard.infrastructure.external.storage.models import (
    DeleteResult,
    ProviderConfig,
    UploadError,
    UploadResult,
    UploadServiceConfig,
)
from menuboard.shared.enums import ProviderType

SERVICE_LOGGER = "menuboard.application.services.upload_service"


def _ok(provider: str, key: str = "k.png") -> UploadResult:
    return UploadResult(
        url=f"https://{provider}.example/{key}",
        key=key,
        original_name="menu.png",
        size=72,
        mime_type="image/png",
        provider=provider,
    )


def _fail(provider: str, code: str, error: str = "failed") -> UploadError:
    return UploadError(error=error, code=code, provider=provider)


@pytest.fixture
def service_config(upload_config) -> UploadServiceConfig:
    """Primary aws-s3, fallback appwrite; neither configured (tests register mocks)."""
    return UploadServiceConfig(
        default_provider=ProviderType.AWS_S3,
        fallback_provider=ProviderType.APPWRITE,
        providers={},
        upload=upload_config,
    )


@pytest.fixture
def primary(make_provider):
    provider = make_provider("aws-s3")
    ProviderFactory.register_provider(ProviderType.AWS_S3, provider)
    return provider


@pytest.fixture
def fallback(make_provider):
    provider = make_provider("appwrite")
    ProviderFactory.register_provider(ProviderType.APPWRITE, provider)
    return provider


class TestInitialization:
    def test_lazy_until_first_use(self, service_config, primary, fallback) -> None:
        service = UploadService(service_config)
        assert service.primary_provider is None
        assert service.ensure_providers_initialized() is primary
        assert service.primary_provider is primary
        assert service.fallback_provider is fallback

    def test_fallback_promoted_when_primary_fails(self, service_config, fallback) -> None:
        service = UploadService(service_config)
        assert service.ensure_providers_initialized() is fallback
        assert service.fallback_provider is None

    def test_nothing_available(self, service_config) -> None:
        service = UploadService(service_config)
        with pytest.raises(UploadException) as exc_info:
            service.ensure_providers_initialized()
        assert exc_info.value.code == PROVIDER_INITIALIZATION_FAILED

    def test_same_default_and_fallback_has_no_fallback(self, service_config, primary) -> None:
        service = UploadService(service_config, fallback_provider=ProviderType.AWS_S3)
        service.ensure_providers_initialized()
        assert service.fallback_provider is None

    def test_missing_fallback_is_not_fatal(self, service_config, primary) -> None:
        service = UploadService(service_config)
        assert service.ensure_providers_initialized() is primary
        assert service.fallback_provider is None

    def test_fallback_retried_after_failed_build(
        self, service_config, primary, make_provider
    ) -> None:
        service = UploadService(service_config)
        service.ensure_providers_initialized()
        assert service.fallback_provider is None

        late_fallback = make_provider("appwrite")
        ProviderFactory.register_provider(ProviderType.APPWRITE, late_fallback)

        assert service.ensure_providers_initialized() is primary
        assert service.fallback_provider is late_fallback

    def test_promoted_fallback_is_not_also_fallback(self, service_config, fallback) -> None:
        service = UploadService(service_config)
        service.ensure_providers_initialized()
        assert service.ensure_providers_initialized() is fallback
        assert service.fallback_provider is None


class TestUpload:
    async def test_primary_success_skips_fallback(
        self, service_config, primary, fallback, make_file
    ) -> None:
        primary.upload.return_value = _ok("aws-s3")
        service = UploadService(service_config)

        result = await service.upload(make_file())

        assert result.provider == "aws-s3"
        fallback.upload.assert_not_awaited()

    async def test_fails_over_to_fallback(
        self, service_config, primary, fallback, make_file, upload_config
    ) -> None:
        primary.upload.return_value = _fail("aws-s3", BUCKET_NOT_FOUND)
        fallback.upload.return_value = _ok("appwrite")
        service = UploadService(service_config)
        file = make_file()

        result = await service.upload(file)

        assert result.provider == "appwrite"
        fallback.upload.assert_awaited_once_with(file, upload_config)

    async def test_both_fail_raises_primary_error(
        self, service_config, primary, fallback, make_file
    ) -> None:
        primary.upload.return_value = _fail("aws-s3", BUCKET_NOT_FOUND, "bucket gone")
        fallback.upload.return_value = _fail("appwrite", UNAUTHORIZED, "bad key")
        service = UploadService(service_config)

        with pytest.raises(UploadException) as exc_info:
            await service.upload(make_file())

        assert exc_info.value.code == BUCKET_NOT_FOUND
        assert exc_info.value.message == "bucket gone"
        assert exc_info.value.provider == "aws-s3"

    async def test_no_fallback_raises_primary_error(
        self, service_config, primary, make_file
    ) -> None:
        primary.upload.return_value = _fail("aws-s3", INVALID_MIME_TYPE)
        service = UploadService(service_config)
        with pytest.raises(UploadException) as exc_info:
            await service.upload(make_file())
        assert exc_info.value.code == INVALID_MIME_TYPE

    async def test_initialization_failure_raises(self, service_config, make_file) -> None:
        service = UploadService(service_config)
        with pytest.raises(UploadException) as exc_info:
            await service.upload(make_file())
        assert exc_info.value.code == PROVIDER_INITIALIZATION_FAILED


class TestDelete:
    async def test_explicit_provider_only(self, service_config, primary, fallback) -> None:
        fallback.delete.return_value = DeleteResult(False, "a", "appwrite", "File not found")
        service = UploadService(service_config)

        result = await service.delete("a", provider="appwrite")

        assert result.error == "File not found"
        primary.delete.assert_not_awaited()

    async def test_explicit_provider_that_cannot_be_built(self, service_config) -> None:
        service = UploadService(service_config)
        result = await service.delete("a", provider="cloudinary")
        assert result.success is False
        assert result.provider == "cloudinary"
        assert "not configured" in result.error

    async def test_falls_back_when_primary_fails(self, service_config, primary, fallback) -> None:
        primary.delete.return_value = DeleteResult(False, "a", "aws-s3", "File not found")
        fallback.delete.return_value = DeleteResult(True, "a", "appwrite")
        service = UploadService(service_config)

        result = await service.delete("a")

        assert result.success is True
        assert result.provider == "appwrite"

    async def test_returns_primary_result_when_both_fail(
        self, service_config, primary, fallback
    ) -> None:
        primary.delete.return_value = DeleteResult(False, "a", "aws-s3", "primary error")
        fallback.delete.return_value = DeleteResult(False, "a", "appwrite", "fallback error")
        service = UploadService(service_config)

        result = await service.delete("a")

        assert result.provider == "aws-s3"
        assert result.error == "primary error"

    async def test_logs_start_and_outcome(self, service_config, primary, fallback, caplog) -> None:
        primary.delete.return_value = DeleteResult(True, "menus/a.png", "aws-s3")
        service = UploadService(service_config)

        with caplog.at_level(logging.INFO, logger=SERVICE_LOGGER):
            await service.delete("menus/a.png")

        messages = [r.getMessage() for r in caplog.records]
        assert "Starting file deletion: key=menus/a.png provider=aws-s3" in messages
        assert "File deleted: key=menus/a.png provider=aws-s3" in messages

    async def test_logs_failed_outcome(self, service_config, primary, caplog) -> None:
        primary.delete.return_value = DeleteResult(False, "a", "aws-s3", "File not found")
        service = UploadService(service_config)

        with caplog.at_level(logging.INFO, logger=SERVICE_LOGGER):
            await service.delete("a")

        failures = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert failures[-1].getMessage() == (
            "File deletion failed: key=a provider=aws-s3 error=File not found"
        )

    async def test_initialization_failure_is_reported(self, service_config) -> None:
        service = UploadService(service_config)
        result = await service.delete("a")
        assert result.success is False
        assert result.provider == "aws-s3"

    async def test_delete_multiple_reports_exceptions(self, service_config, primary) -> None:
        primary.delete.side_effect = [DeleteResult(True, "a", "aws-s3"), RuntimeError("reset")]
        service = UploadService(service_config)

        results = await service.delete_multiple(["a", "b"])

        assert [r.success for r in results] == [True, False]
        assert results[1].key == "b"
        assert results[1].error == "reset"
        assert results[1].provider == "aws-s3"


class TestLookups:
    async def test_get_url_never_uses_fallback(self, service_config, primary, fallback) -> None:
        primary.get_url.side_effect = UploadException("no url", "URL_GENERATION_FAILED")
        service = UploadService(service_config)

        with pytest.raises(UploadException):
            await service.get_url("a")
        fallback.get_url.assert_not_awaited()

    async def test_get_url_with_explicit_provider(self, service_config, primary, fallback) -> None:
        service = UploadService(service_config)
        assert await service.get_url("a", provider="appwrite") == "https://appwrite.example/file"

    async def test_exists_checks_fallback(self, service_config, primary, fallback) -> None:
        fallback.exists.return_value = True
        service = UploadService(service_config)
        assert await service.exists("a") is True
        primary.exists.assert_awaited_once_with("a")

    async def test_get_url_failure_is_logged(self, service_config, primary, caplog) -> None:
        primary.get_url.side_effect = UploadException("no url", "URL_GENERATION_FAILED")
        service = UploadService(service_config)

        with caplog.at_level(logging.DEBUG, logger=SERVICE_LOGGER), pytest.raises(UploadException):
            await service.get_url("a")

        assert "URL generation failed for a: no url (URL_GENERATION_FAILED)" in [
            r.getMessage() for r in caplog.records
        ]

    async def test_exists_logs_provider_and_result(
        self, service_config, primary, fallback, caplog
    ) -> None:
        primary.exists.return_value = True
        service = UploadService(service_config)

        with caplog.at_level(logging.DEBUG, logger=SERVICE_LOGGER):
            await service.exists("a")

        messages = [r.getMessage() for r in caplog.records]
        assert "Checking existence: key=a provider=aws-s3" in messages
        assert "Existence check: key=a provider=aws-s3 found=True" in messages

    async def test_exists_degrades_when_unavailable(self, service_config) -> None:
        service = UploadService(service_config)
        assert await service.exists("a") is False
        assert await service.exists("a", provider="gcs") is False

    async def test_get_metadata_checks_fallback(self, service_config, primary, fallback) -> None:
        fallback.get_metadata.return_value = {"size": 1}
        service = UploadService(service_config)
        assert await service.get_metadata("a") == {"size": 1}

    async def test_get_metadata_degrades_when_unavailable(self, service_config) -> None:
        service = UploadService(service_config)
        assert await service.get_metadata("a") is None


class TestUploadMultiple:
    async def test_mixed_results(self, service_config, primary, make_file) -> None:
        primary.upload.side_effect = [
            _ok("aws-s3", "a.png"),
            _fail("aws-s3", BUCKET_NOT_FOUND, "bucket gone"),
        ]
        service = UploadService(service_config)

        results = await service.upload_multiple([make_file(), make_file()])

        assert results[0].success is True
        assert isinstance(results[1], UploadError)
        assert results[1].code == BATCH_UPLOAD_FAILED
        assert results[1].error == "bucket gone"
        assert results[1].provider == "aws-s3"

    async def test_member_exception_does_not_escape(self, service_config, primary, make_file) -> None:
        primary.upload.side_effect = [
            _ok("aws-s3", "a.png"),
            RuntimeError("socket closed"),
            _fail("aws-s3", INVALID_MIME_TYPE),
        ]
        service = UploadService(service_config)

        results = await service.upload_multiple([make_file(), make_file(), make_file()])

        assert len(results) == 3
        assert results[0].success is True
        assert results[1].code == BATCH_UPLOAD_FAILED
        assert results[1].error == "socket closed"
        assert results[2].code == BATCH_UPLOAD_FAILED

    async def test_initialization_failure_labels_unknown(self, service_config, make_file) -> None:
        service = UploadService(service_config)
        results = await service.upload_multiple([make_file()])
        assert results[0].code == BATCH_UPLOAD_FAILED
        assert results[0].provider == "unknown"

    async def test_empty_batch(self, service_config) -> None:
        assert await UploadService(service_config).upload_multiple([]) == []


class TestReconfiguration:
    def test_switch_provider_failure_leaves_config(self, service_config, primary) -> None:
        service = UploadService(service_config)
        service.ensure_providers_initialized()

        with pytest.raises(UploadException) as exc_info:
            service.switch_provider("appwrite")

        assert exc_info.value.code == INVALID_CONFIG
        assert service.get_config().default_provider == ProviderType.AWS_S3
        assert service.primary_provider is primary

    async def test_switch_provider(self, service_config, primary, fallback, make_file) -> None:
        fallback.upload.return_value = _ok("appwrite")
        service = UploadService(service_config)
        service.ensure_providers_initialized()

        service.switch_provider("appwrite")

        assert service.get_config().default_provider == ProviderType.APPWRITE
        assert service.primary_provider is None
        assert (await service.upload(make_file())).provider == "appwrite"

    async def test_broken_default_is_not_masked_by_previous_provider(
        self, service_config, primary, make_file
    ) -> None:
        primary.upload.return_value = _ok("aws-s3")
        service = UploadService(service_config)
        await service.upload(make_file())

        service.update_config(default_provider="cloudinary", fallback_provider="cloudinary")

        with pytest.raises(UploadException) as exc_info:
            await service.upload(make_file())
        assert exc_info.value.code == PROVIDER_INITIALIZATION_FAILED

    async def test_broken_default_promotes_fallback(
        self, service_config, primary, fallback, make_file
    ) -> None:
        fallback.upload.return_value = _ok("appwrite")
        service = UploadService(service_config)
        service.ensure_providers_initialized()

        service.update_config(default_provider="cloudinary")

        assert (await service.upload(make_file())).provider == "appwrite"
        primary.upload.assert_not_awaited()

    def test_update_config_resets_providers(self, service_config, primary, fallback) -> None:
        service = UploadService(service_config)
        service.ensure_providers_initialized()

        service.update_config(fallback_provider="aws-s3")

        assert service.get_config().fallback_provider == ProviderType.AWS_S3
        assert service.primary_provider is None
        assert ProviderFactory.get_cached_provider(ProviderType.AWS_S3) is primary

    def test_update_providers_clears_factory_cache(self, service_config, primary) -> None:
        service = UploadService(service_config)
        service.update_config(providers={})
        assert ProviderFactory.get_cached_provider(ProviderType.AWS_S3) is None

    def test_update_policy_keeps_providers(self, service_config, primary, upload_config) -> None:
        service = UploadService(service_config)
        service.ensure_providers_initialized()
        service.update_config(upload=upload_config)
        assert service.primary_provider is primary

    def test_get_config_is_a_copy(self, service_config) -> None:
        service = UploadService(service_config)
        service.get_config().providers[ProviderType.GCS] = ProviderConfig(ProviderType.GCS, True)
        assert ProviderType.GCS not in service.get_config().providers


async def test_provider_health(service_config, primary, fallback) -> None:
    fallback.exists.side_effect = ConnectionError("down")
    service = UploadService(service_config)

    health = await service.get_provider_health()

    assert health["aws-s3"].healthy is True
    assert health["appwrite"].healthy is False
    assert health["appwrite"].error == "down"


def test_singleton_and_reset() -> None:
    service = get_upload_service()
    assert get_upload_service() is service
    reset_upload_service()
    assert get_upload_service() is not service


async def test_local_round_trip_from_settings(tmp_path: Path, make_file) -> None:
    service = get_upload_service()

    result = await service.upload(make_file(name="dish.png"))

    assert result.provider == "local"
    assert (tmp_path / "uploads" / result.key).read_bytes() == make_file().buffer
    assert await service.exists(result.key) is True
    assert (await service.delete(result.key)).success is True
    assert await service.exists(result.key) is False
