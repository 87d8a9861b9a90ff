"""Request ID middleware.

Generates or forwards X-Request-ID, exposes it to log records through
menuboard.shared.context and echoes it on the response.
Client-provided values are sanitized (length + character set) to prevent log injection.
Uses raw ASGI (no BaseHTTPMiddleware) so upload bodies stream through untouched.
"""

import re
import uuid
from typing import Callable

from menuboard.shared.context import reset_request_id, set_request_id

REQUEST_ID_MAX_LENGTH = 64
_REQUEST_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


def get_header(scope: dict, name: str) -> str | None:
    """Return first header value for name (case-insensitive). Headers are (bytes, bytes)."""
    want = name.lower().encode()
    for k, v in scope.get("headers", []):
        if k.lower() == want:
            return v.decode("utf-8", errors="replace")
    return None


def sanitize_request_id(raw: str | None) -> str:
    """Return raw (stripped) if safe for logs, otherwise a fresh uuid4 hex."""
    value = (raw or "").strip()
    if not value or len(value) > REQUEST_ID_MAX_LENGTH or not _REQUEST_ID_PATTERN.match(value):
        return uuid.uuid4().hex
    return value


class RequestIDMiddleware:
    """Add or forward a request ID on each HTTP request and response."""

    def __init__(self, app: Callable, header_name: str = "X-Request-ID") -> None:
        self.app = app
        self.header_name = header_name

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = sanitize_request_id(get_header(scope, self.header_name))
        scope.setdefault("state", {})["request_id"] = request_id
        header = (self.header_name.lower().encode(), request_id.encode())

        async def send_with_id(message: dict) -> None:
            if message["type"] == "http.response.start":
                message["headers"] = [*message.get("headers", []), header]
            await send(message)

        token = set_request_id(request_id)
        try:
            await self.app(scope, receive, send_with_id)
        finally:
            reset_request_id(token)
