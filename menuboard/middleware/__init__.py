"""HTTP middleware: request size limit, request ID.

Applied in main app; order matters (first added = outermost).
Import and use from menuboard.main.
"""

from menuboard.middleware.request_id import RequestIDMiddleware
from menuboard.middleware.request_size_limit import RequestSizeLimitMiddleware

__all__ = [
    "RequestIDMiddleware",
    "RequestSizeLimitMiddleware",
]
