"""API v1 router aggregation.

Includes all endpoint modules with consistent prefix and tags. All routes
use dependencies from menuboard.api.v1.dependencies.
"""

from fastapi import APIRouter

from menuboard.api.v1.endpoints import health, uploads

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(uploads.router, prefix="/uploads", tags=["uploads"])
