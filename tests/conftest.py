"""Pytest configuration and fixtures for menuboard.

Every test gets its own local upload directory and a fresh settings
cache, upload service singleton and provider registry. HTTP tests build
the app with create_app() after the environment is in place.
"""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from menuboard.application.services.upload_service import reset_upload_service
from menuboard.core.config import get_settings
from menuboard.core.limiter import limiter
from menuboard.infrastructure.external.storage.models import (
    LocalProviderConfig,
    UploadConfig,
    UploadFile,
)
from menuboard.main import create_app

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture(autouse=True)
def isolated_upload_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Point local storage at tmp_path, disable remote providers, zero retry delay."""
    monkeypatch.setenv("UPLOAD_LOCAL_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("UPLOAD_DEFAULT_PROVIDER", "local")
    monkeypatch.setenv("UPLOAD_FALLBACK_PROVIDER", "local")
    monkeypatch.setenv("UPLOAD_AWS_ENABLED", "false")
    monkeypatch.setenv("UPLOAD_APPWRITE_ENABLED", "false")
    monkeypatch.setenv("UPLOAD_RETRY_BASE_DELAY", "0")
    get_settings.cache_clear()
    reset_upload_service()
    limiter.reset()
    yield
    reset_upload_service()
    get_settings.cache_clear()


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client against a freshly built FastAPI app (ASGI)."""
    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def upload_config() -> UploadConfig:
    return UploadConfig(
        max_file_size=1024,
        allowed_mime_types=frozenset({"image/png", "image/jpeg", "text/plain"}),
        allowed_extensions=frozenset({".png", ".jpg", ".jpeg", ".txt"}),
    )


@pytest.fixture
def make_file() -> Callable[..., UploadFile]:
    """Build an UploadFile; size follows the buffer unless given."""

    def _make(
        name: str = "menu.png",
        data: bytes = PNG_BYTES,
        mime_type: str = "image/png",
        size: int | None = None,
        key: str | None = None,
    ) -> UploadFile:
        return UploadFile(
            buffer=data,
            original_name=name,
            mime_type=mime_type,
            size=len(data) if size is None else size,
            key=key,
        )

    return _make


@pytest.fixture
def local_config(tmp_path) -> LocalProviderConfig:
    return LocalProviderConfig(upload_dir=str(tmp_path / "store"), base_url="/uploads")


@pytest.fixture
def make_provider() -> Callable[[str], MagicMock]:
    """Mock provider with AsyncMock operations (defaults: not found / no metadata)."""

    def _make(name: str) -> MagicMock:
        provider = MagicMock()
        provider.name = name
        provider.upload = AsyncMock()
        provider.delete = AsyncMock()
        provider.get_url = AsyncMock(return_value=f"https://{name}.example/file")
        provider.exists = AsyncMock(return_value=False)
        provider.get_metadata = AsyncMock(return_value=None)
        return provider

    return _make
