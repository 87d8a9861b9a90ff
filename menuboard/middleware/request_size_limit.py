"""Request body size limit middleware.

Rejects upload requests whose body exceeds settings.max_request_size before
the multipart parser spools them. Content-Length is checked up front;
bodies without one (chunked) are buffered up to the limit, then replayed
to the app, so the 413 is sent before any parsing starts.
Uses raw ASGI (no BaseHTTPMiddleware).
"""

import json
from typing import Any, Callable

from menuboard.middleware.request_id import get_header
from menuboard.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


async def send_413(send: Callable, max_bytes: int, actual: int | None = None) -> None:
    """Send 413 with the same JSON shape as the exception handlers."""
    details: dict[str, Any] = {"max_bytes": max_bytes}
    if actual is not None:
        details["received_bytes"] = actual
    body = json.dumps(
        {
            "error": "REQUEST_TOO_LARGE",
            "message": f"Request body must be at most {max_bytes} bytes",
            "details": details,
        }
    ).encode()
    await send(
        {
            "type": "http.response.start",
            "status": 413,
            "headers": [
                (b"content-type", b"application/json"),
                (b"content-length", str(len(body)).encode()),
            ],
        }
    )
    await send({"type": "http.response.body", "body": body, "more_body": False})


class RequestSizeLimitMiddleware:
    """Reject POST/PUT/PATCH bodies larger than max_bytes with 413."""

    def __init__(self, app: Callable, max_bytes: int) -> None:
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http" or scope.get("method") not in _BODY_METHODS:
            await self.app(scope, receive, send)
            return

        declared = get_header(scope, "content-length")
        if declared is not None:
            try:
                length = int(declared)
            except ValueError:
                length = None
            if length is not None and length > self.max_bytes:
                logger.warning(
                    "Rejected %s %s: body %d bytes exceeds %d",
                    scope.get("method"),
                    scope.get("path"),
                    length,
                    self.max_bytes,
                )
                await send_413(send, self.max_bytes, length)
                return
            await self.app(scope, receive, send)
            return

        received = 0
        chunks: list[bytes] = []
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                return
            if message["type"] != "http.request":
                continue
            body = message.get("body", b"")
            received += len(body)
            if received > self.max_bytes:
                logger.warning(
                    "Rejected streamed %s %s after %d bytes",
                    scope.get("method"),
                    scope.get("path"),
                    received,
                )
                await send_413(send, self.max_bytes, received)
                return
            chunks.append(body)
            if not message.get("more_body", False):
                break

        await self.app(scope, ReplayReceive(chunks, receive), send)


class ReplayReceive:
    """Replay buffered body chunks, then defer to the server's receive."""

    def __init__(self, chunks: list[bytes], receive: Callable) -> None:
        self._chunks = chunks
        self._index = 0
        self._receive = receive

    async def __call__(self) -> dict:
        if self._index < len(self._chunks):
            body = self._chunks[self._index]
            self._index += 1
            return {
                "type": "http.request",
                "body": body,
                "more_body": self._index < len(self._chunks),
            }
        # body fully replayed; later calls wait for disconnect
        return await self._receive()
