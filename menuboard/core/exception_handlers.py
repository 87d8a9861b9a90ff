"""Centralized exception handlers for the FastAPI app.

Register with register_exception_handlers(app). Maps domain, upload and
framework exceptions to HTTP responses.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from menuboard.core.config import get_settings
from menuboard.domain.exceptions import MenuboardException
from menuboard.infrastructure.exceptions import (
    ACCESS_DENIED,
    CONFIGURATION_CODES,
    FILE_EXISTS,
    FILE_TOO_LARGE,
    UNKNOWN_PROVIDER,
    VALIDATION_CODES,
    UploadException,
)

logger = logging.getLogger(__name__)

# Map error_code to HTTP status when it is not implied by its group
_ERROR_CODE_STATUS: dict[str, int] = {
    "VALIDATION_ERROR": 400,
    "RESOURCE_NOT_FOUND": 404,
    FILE_TOO_LARGE: 413,
    UNKNOWN_PROVIDER: 400,
    ACCESS_DENIED: 403,
    FILE_EXISTS: 409,
}


def status_for_upload_code(code: str) -> int:
    """HTTP status for an upload error code.

    Caller input problems are 4xx, missing/broken configuration 503, and
    failures of the storage backend itself 502.
    """
    if code in _ERROR_CODE_STATUS:
        return _ERROR_CODE_STATUS[code]
    if code in VALIDATION_CODES:
        return 400
    if code in CONFIGURATION_CODES:
        return 503
    return 502


def _upload_exception_handler(request: Request, exc: UploadException) -> JSONResponse:
    """Return JSON from UploadException.to_dict() with a status derived from its code."""
    status = status_for_upload_code(exc.code)
    if status >= 500:
        logger.error("Upload request failed: %s (%s)", exc.message, exc.code)
    return JSONResponse(status_code=status, content=exc.to_dict())


def _menuboard_exception_handler(
    request: Request, exc: MenuboardException
) -> JSONResponse:
    """Return JSON from MenuboardException.to_dict() with appropriate status code."""
    status = _ERROR_CODE_STATUS.get(exc.error_code, 400)
    return JSONResponse(status_code=status, content=exc.to_dict())


def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return 422 with validation error details."""
    return JSONResponse(
        status_code=422,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """exc.errors() without non-serializable ctx values (e.g. raised ValueError)."""
    errors = []
    for err in exc.errors():
        item = {k: v for k, v in err.items() if k not in ("ctx", "input")}
        errors.append(item)
    return errors


def _http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Return JSON for Starlette HTTP exceptions (status + detail)."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "HTTP_ERROR", "message": exc.detail},
    )


def _generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return 500; include detail only when debug is True."""
    logger.exception("Unhandled exception: %s", exc)
    settings = get_settings()
    detail: Any = str(exc) if settings.debug else "Internal server error"
    return JSONResponse(
        status_code=500,
        content={"error": "INTERNAL_ERROR", "message": detail},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app.

    Call once after creating the app. Handlers: UploadException,
    MenuboardException (and other subclasses), RequestValidationError,
    StarletteHTTPException, generic Exception.
    """
    app.add_exception_handler(UploadException, _upload_exception_handler)
    app.add_exception_handler(MenuboardException, _menuboard_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _generic_exception_handler)
