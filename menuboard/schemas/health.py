"""Health check API schemas."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for GET /health (liveness)."""

    status: str = Field(default="ok", description="Service status")


class ProviderHealth(BaseModel):
    healthy: bool
    error: str | None = None


class ProviderHealthResponse(BaseModel):
    """Response for GET /health/providers (200 when every provider is healthy, else 503)."""

    status: str = Field(default="ok", description="'ok' or 'degraded'")
    providers: dict[str, ProviderHealth] = Field(default_factory=dict)
