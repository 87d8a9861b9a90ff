"""Upload API: thin routes delegating to UploadService.

Total upload failures raise UploadException and are turned into JSON by
the exception handlers; every other operation returns its structured result.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile

from menuboard.api.v1.dependencies import get_settings_dep, get_upload_service_dep
from menuboard.application.services.upload_service import UploadService
from menuboard.core.config import Settings
from menuboard.core.limiter import limit_reads, limit_upload, limit_writes
from menuboard.domain.exceptions import ResourceNotFoundException, ValidationException
from menuboard.infrastructure.external.storage.models import UploadConfig
from menuboard.infrastructure.external.storage.models import UploadFile as FilePayload
from menuboard.infrastructure.external.storage.utils import (
    get_extension,
    get_mime_type_from_extension,
)
from menuboard.schemas.health import ProviderHealth
from menuboard.schemas.upload import (
    BatchUploadResponse,
    DeleteResultResponse,
    FileExistsResponse,
    FileMetadataResponse,
    FileUrlResponse,
    MessageResponse,
    UploadConfigResponse,
    UploadConfigUpdateRequest,
    UploadErrorResponse,
    UploadPolicy,
    UploadResultResponse,
)
from menuboard.shared.enums import ProviderType

router = APIRouter()

KeyQuery = Annotated[str, Query(min_length=1, description="Storage key")]
ProviderQuery = Annotated[ProviderType | None, Query(description="Target provider")]


async def _to_payload(file: UploadFile, key: str | None = None) -> FilePayload:
    """Read an incoming multipart file into the storage payload."""
    if not file.filename:
        raise ValidationException("Filename required", field="file")
    data = await file.read()
    mime_type = file.content_type or get_mime_type_from_extension(get_extension(file.filename))
    return FilePayload(
        buffer=data,
        original_name=file.filename,
        mime_type=mime_type,
        size=len(data),
        key=key or None,
    )


@router.post("", response_model=UploadResultResponse, status_code=201)
@limit_upload
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    key: str | None = Form(None),
    service: UploadService = Depends(get_upload_service_dep),
):
    """Upload one file to the primary provider (fallback on failure)."""
    payload = await _to_payload(file, key)
    result = await service.upload(payload)
    return UploadResultResponse.model_validate(result)


@router.post("/batch", response_model=BatchUploadResponse)
@limit_upload
async def upload_batch(
    request: Request,
    files: list[UploadFile] | None = File(None),
    service: UploadService = Depends(get_upload_service_dep),
    settings: Settings = Depends(get_settings_dep),
):
    """Upload several files concurrently; failures are reported per file."""
    if not files:
        raise ValidationException("No files provided", field="files")
    if len(files) > settings.upload_batch_max_files:
        raise ValidationException(
            f"At most {settings.upload_batch_max_files} files per batch", field="files"
        )
    payloads = [await _to_payload(f) for f in files]
    results = await service.upload_multiple(payloads)
    items: list[UploadResultResponse | UploadErrorResponse] = [
        UploadResultResponse.model_validate(r) if r.success else UploadErrorResponse.model_validate(r)
        for r in results
    ]
    successful = sum(1 for r in results if r.success)
    return BatchUploadResponse(
        total=len(results),
        successful=successful,
        failed=len(results) - successful,
        results=items,
    )


@router.delete("", response_model=DeleteResultResponse)
@limit_writes
async def delete_file(
    request: Request,
    key: KeyQuery,
    provider: ProviderQuery = None,
    service: UploadService = Depends(get_upload_service_dep),
):
    """Delete a file (explicit provider, or primary then fallback)."""
    result = await service.delete(key, provider)
    return DeleteResultResponse.model_validate(result)


@router.get("/url", response_model=FileUrlResponse)
@limit_reads
async def get_file_url(
    request: Request,
    key: KeyQuery,
    provider: ProviderQuery = None,
    service: UploadService = Depends(get_upload_service_dep),
):
    return FileUrlResponse(key=key, url=await service.get_url(key, provider))


@router.get("/exists", response_model=FileExistsResponse)
@limit_reads
async def file_exists(
    request: Request,
    key: KeyQuery,
    provider: ProviderQuery = None,
    service: UploadService = Depends(get_upload_service_dep),
):
    return FileExistsResponse(key=key, exists=await service.exists(key, provider))


@router.get(
    "/metadata",
    response_model=FileMetadataResponse,
    responses={404: {"description": "File not found on any provider"}},
)
@limit_reads
async def file_metadata(
    request: Request,
    key: KeyQuery,
    provider: ProviderQuery = None,
    service: UploadService = Depends(get_upload_service_dep),
):
    metadata = await service.get_metadata(key, provider)
    if metadata is None:
        raise ResourceNotFoundException("file", key)
    return FileMetadataResponse(key=key, metadata=metadata)


@router.get("/config", response_model=UploadConfigResponse)
async def get_upload_config(service: UploadService = Depends(get_upload_service_dep)):
    """Current providers and policy, available providers and their health."""
    config = service.get_config()
    health = await service.get_provider_health()
    return UploadConfigResponse(
        default_provider=config.default_provider,
        fallback_provider=config.fallback_provider,
        upload=UploadPolicy(
            max_file_size=config.upload.max_file_size,
            allowed_mime_types=sorted(config.upload.allowed_mime_types),
            allowed_extensions=sorted(config.upload.allowed_extensions),
        ),
        available_providers=[ProviderType(name) for name in health],
        health={name: ProviderHealth(healthy=s.healthy, error=s.error) for name, s in health.items()},
    )


@router.put("/config", response_model=MessageResponse)
@limit_writes
async def update_upload_config(
    request: Request,
    body: UploadConfigUpdateRequest,
    service: UploadService = Depends(get_upload_service_dep),
):
    """Switch the default provider (validated first) and/or update fallback and policy."""
    if body.default_provider is not None:
        service.switch_provider(body.default_provider)
    changes: dict = {}
    if body.fallback_provider is not None:
        changes["fallback_provider"] = body.fallback_provider
    if body.upload_config is not None:
        policy = body.upload_config
        changes["upload"] = UploadConfig(
            max_file_size=policy.max_file_size,
            allowed_mime_types=frozenset(policy.allowed_mime_types),
            allowed_extensions=frozenset(
                ext.lower() if ext.startswith(".") else f".{ext.lower()}"
                for ext in policy.allowed_extensions
            ),
        )
    if changes:
        service.update_config(**changes)
    return MessageResponse(message="Configuration updated successfully")
