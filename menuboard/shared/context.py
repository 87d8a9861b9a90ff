"""Request context management using contextvars.

Async-safe storage for request-scoped data. The request ID set by
RequestIDMiddleware is read back by the logging filter so every log line
emitted while handling a request carries it.

Usage:
    token = set_request_id("abc123")
    request_id = get_request_id()
    reset_request_id(token)
"""

from contextvars import ContextVar, Token

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(request_id: str | None) -> Token:
    """Set the request ID for the current task; returns a token for reset."""
    return _request_id.set(request_id)


def get_request_id() -> str | None:
    return _request_id.get()


def reset_request_id(token: Token) -> None:
    _request_id.reset(token)
