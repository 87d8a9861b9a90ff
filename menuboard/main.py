"""FastAPI application entry point.

Wiring only: lifespan, exception handlers, middleware, routers, and the
static mount for locally stored uploads. See menuboard.core.lifespan and
menuboard.core.exception_handlers.

Settings are loaded inside create_app() so that tests can set env (and
clear the get_settings cache) before calling create_app().
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from menuboard.api.v1.router import api_router
from menuboard.core.config import get_settings
from menuboard.core.exception_handlers import register_exception_handlers
from menuboard.core.lifespan import create_lifespan
from menuboard.core.limiter import limiter
from menuboard.middleware import RequestIDMiddleware, RequestSizeLimitMiddleware


def create_app() -> FastAPI:
    """Build and return the FastAPI application. Settings are resolved here (deferred from import)."""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=create_lifespan,
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    register_exception_handlers(app)

    # Middleware: last added = outermost. Outer to inner: size limit, request ID, CORS.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.allowed_origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware, header_name=settings.request_id_header)
    app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_size)

    app.include_router(api_router, prefix="/api/v1")

    mount_path = settings.upload_local_base_url.rstrip("/")
    if settings.upload_serve_local and settings.upload_local_enabled and mount_path.startswith("/"):
        app.mount(
            mount_path,
            StaticFiles(directory=settings.upload_local_dir, check_dir=False),
            name="uploads",
        )

    return app


app = create_app()
