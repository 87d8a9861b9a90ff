"""Application lifespan: startup and shutdown.

Single place for startup/shutdown logic. Used by main.py; no business
logic here, only wiring of logging and the upload service.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from menuboard.application.services.upload_service import (
    get_upload_service,
    reset_upload_service,
)
from menuboard.infrastructure.exceptions import UploadException
from menuboard.shared.telemetry.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup: logging, then resolve upload providers so configuration errors
    show up in the boot log. A provider failure does not stop the app;
    upload routes report it per request. Shutdown: drop the service and the
    provider cache.
    """
    # ---- Startup ----
    setup_logging()
    service = get_upload_service()
    try:
        service.ensure_providers_initialized()
        logger.info("Upload providers ready: %s", [p.value for p in service.get_available_providers()])
    except UploadException as e:
        logger.error("Upload providers unavailable at startup: %s (%s)", e.message, e.code)

    yield

    # ---- Shutdown ----
    reset_upload_service()
    logger.info("Upload service reset")
