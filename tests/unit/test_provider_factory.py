"""Unit tests for ProviderFactory: caching, config checks, AWS fallback, health."""

import sys

import pytest

from menuboard.infrastructure.exceptions import (
    INVALID_CONFIG,
    UNKNOWN_PROVIDER,
    UploadException,
)
from menuboard.infrastructure.external.storage.factory import HEALTH_CHECK_KEY, ProviderFactory
from menuboard.infrastructure.external.storage.local_storage import LocalProvider
from menuboard.infrastructure.external.storage.models import ProviderConfig
from menuboard.infrastructure.external.storage.s3_signed_storage import AWSS3SignedProvider
from menuboard.shared.enums import ProviderType

S3_MODULE = "menuboard.infrastructure.external.storage.s3_storage"

AWS_FIELDS = {
    "region": "eu-west-1",
    "bucket": "menus",
    "access_key_id": "AKIDEXAMPLE",
    "secret_access_key": "secret",
}


@pytest.fixture
def providers(tmp_path) -> dict[ProviderType, ProviderConfig]:
    return {
        ProviderType.LOCAL: ProviderConfig(
            type=ProviderType.LOCAL,
            enabled=True,
            config={"upload_dir": str(tmp_path / "files"), "base_url": "/files"},
        ),
        ProviderType.AWS_S3: ProviderConfig(
            type=ProviderType.AWS_S3, enabled=True, config=dict(AWS_FIELDS)
        ),
        ProviderType.APPWRITE: ProviderConfig(
            type=ProviderType.APPWRITE, enabled=False, config={}
        ),
    }


class TestCreateProvider:
    def test_returns_cached_instance(self, providers) -> None:
        first = ProviderFactory.create_provider(ProviderType.LOCAL, providers)
        second = ProviderFactory.create_provider("local", providers)
        assert isinstance(first, LocalProvider)
        assert first is second

    def test_uses_settings_when_no_providers_given(self) -> None:
        provider = ProviderFactory.create_provider(ProviderType.LOCAL)
        assert provider.name == "local"

    def test_unknown_type(self, providers) -> None:
        with pytest.raises(UploadException) as exc_info:
            ProviderFactory.create_provider("ftp", providers)
        assert exc_info.value.code == UNKNOWN_PROVIDER

    def test_not_configured(self, providers) -> None:
        del providers[ProviderType.LOCAL]
        with pytest.raises(UploadException) as exc_info:
            ProviderFactory.create_provider(ProviderType.LOCAL, providers)
        assert exc_info.value.code == INVALID_CONFIG
        assert "not configured" in exc_info.value.message

    def test_disabled(self, providers) -> None:
        with pytest.raises(UploadException) as exc_info:
            ProviderFactory.create_provider(ProviderType.APPWRITE, providers)
        assert exc_info.value.code == INVALID_CONFIG
        assert "disabled" in exc_info.value.message

    def test_missing_required_fields(self, providers) -> None:
        providers[ProviderType.AWS_S3].config.pop("bucket")
        with pytest.raises(UploadException) as exc_info:
            ProviderFactory.create_provider(ProviderType.AWS_S3, providers)
        assert exc_info.value.code == INVALID_CONFIG
        assert "bucket" in exc_info.value.message

    def test_failure_is_not_cached(self, providers) -> None:
        providers[ProviderType.AWS_S3].config.pop("bucket")
        with pytest.raises(UploadException):
            ProviderFactory.create_provider(ProviderType.AWS_S3, providers)
        assert ProviderFactory.get_cached_provider(ProviderType.AWS_S3) is None

    def test_configured_type_without_implementation(self, providers) -> None:
        providers[ProviderType.GCS] = ProviderConfig(
            type=ProviderType.GCS,
            enabled=True,
            config={"project_id": "p", "bucket_name": "b", "credentials": {"k": "v"}},
        )
        with pytest.raises(UploadException) as exc_info:
            ProviderFactory.create_provider(ProviderType.GCS, providers)
        assert exc_info.value.code == UNKNOWN_PROVIDER

    def test_provider_construction_error_passes_through(self, providers, tmp_path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        providers[ProviderType.LOCAL].config["upload_dir"] = str(blocker)
        with pytest.raises(UploadException) as exc_info:
            ProviderFactory.create_provider(ProviderType.LOCAL, providers)
        # LocalProvider's own UploadException passes through untouched
        assert exc_info.value.code == "DIRECTORY_ERROR"


class TestAWSConstruction:
    def test_signed_fallback_without_sdk(self, providers, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setitem(sys.modules, S3_MODULE, None)

        provider = ProviderFactory.create_provider(ProviderType.AWS_S3, providers)

        assert isinstance(provider, AWSS3SignedProvider)
        assert provider.name == "aws-s3-fallback"

    def test_sdk_provider_when_available(self, providers) -> None:
        pytest.importorskip("boto3")
        from menuboard.infrastructure.external.storage.s3_storage import AWSS3Provider

        provider = ProviderFactory.create_provider(ProviderType.AWS_S3, providers)

        assert isinstance(provider, AWSS3Provider)
        assert provider.name == "aws-s3"


def test_get_available_providers(providers, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setitem(sys.modules, S3_MODULE, None)
    available = ProviderFactory.get_available_providers(providers)
    assert available == [ProviderType.LOCAL, ProviderType.AWS_S3]


class TestHealthCheck:
    async def test_healthy_when_exists_completes(self, make_provider) -> None:
        provider = make_provider("local")
        ProviderFactory.register_provider(ProviderType.LOCAL, provider)

        status = await ProviderFactory.health_check(ProviderType.LOCAL)

        assert status.healthy is True
        assert status.error is None
        provider.exists.assert_awaited_once_with(HEALTH_CHECK_KEY)

    async def test_unhealthy_when_probe_raises(self, make_provider) -> None:
        provider = make_provider("appwrite")
        provider.exists.side_effect = ConnectionError("connection refused")
        ProviderFactory.register_provider(ProviderType.APPWRITE, provider)

        status = await ProviderFactory.health_check(ProviderType.APPWRITE)

        assert status.healthy is False
        assert status.error == "connection refused"

    async def test_unhealthy_when_not_configured(self, providers) -> None:
        status = await ProviderFactory.health_check(ProviderType.APPWRITE, providers)
        assert status.healthy is False
        assert "disabled" in status.error


def test_clear_cache_forces_rebuild(providers) -> None:
    first = ProviderFactory.create_provider(ProviderType.LOCAL, providers)
    ProviderFactory.clear_cache()
    assert ProviderFactory.get_cached_provider(ProviderType.LOCAL) is None
    assert ProviderFactory.create_provider(ProviderType.LOCAL, providers) is not first


def test_register_provider_short_circuits_construction(make_provider) -> None:
    provider = make_provider("gcs")
    ProviderFactory.register_provider(ProviderType.GCS, provider)
    assert ProviderFactory.create_provider("gcs") is provider
