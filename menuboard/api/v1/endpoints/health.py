"""Health check endpoints: process liveness and upload provider health."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from menuboard.api.v1.dependencies import get_upload_service_dep
from menuboard.application.services.upload_service import UploadService
from menuboard.schemas.health import (
    HealthResponse,
    ProviderHealth,
    ProviderHealthResponse,
)

router = APIRouter()


@router.get("", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Return simple ok status for liveness."""
    return HealthResponse()


@router.get(
    "/providers",
    response_model=ProviderHealthResponse,
    responses={503: {"description": "No provider available or one is unhealthy", "model": ProviderHealthResponse}},
)
async def provider_health(
    service: UploadService = Depends(get_upload_service_dep),
) -> ProviderHealthResponse | JSONResponse:
    """Probe every available upload provider.

    Returns 200 when at least one provider is available and all of them are
    healthy; otherwise 503 with the per-provider detail.
    """
    statuses = await service.get_provider_health()
    body = ProviderHealthResponse(
        providers={
            name: ProviderHealth(healthy=s.healthy, error=s.error) for name, s in statuses.items()
        }
    )
    if statuses and all(s.healthy for s in statuses.values()):
        return body
    body.status = "degraded"
    return JSONResponse(status_code=503, content=body.model_dump())
