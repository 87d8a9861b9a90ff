"""Infrastructure exceptions for upload storage operations.

UploadException extends MenuboardException so presentation can map
upload failures to HTTP responses consistently. The code attribute
carries one of the upload error codes below.
"""

from menuboard.domain.exceptions import MenuboardException

# Validation (caller input, detected before any transport I/O, never retried)
FILE_TOO_LARGE = "FILE_TOO_LARGE"
INVALID_MIME_TYPE = "INVALID_MIME_TYPE"
INVALID_EXTENSION = "INVALID_EXTENSION"
EMPTY_FILE = "EMPTY_FILE"

# Configuration (fatal at construction)
INVALID_CONFIG = "INVALID_CONFIG"
UNKNOWN_PROVIDER = "UNKNOWN_PROVIDER"
PROVIDER_INITIALIZATION_FAILED = "PROVIDER_INITIALIZATION_FAILED"

# Transport / provider specific
BUCKET_NOT_FOUND = "BUCKET_NOT_FOUND"
ACCESS_DENIED = "ACCESS_DENIED"
INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
INVALID_SIGNATURE = "INVALID_SIGNATURE"
UNAUTHORIZED = "UNAUTHORIZED"
FILE_EXISTS = "FILE_EXISTS"
DIRECTORY_ERROR = "DIRECTORY_ERROR"
UPLOAD_FAILED = "UPLOAD_FAILED"

# URL derivation
URL_GENERATION_FAILED = "URL_GENERATION_FAILED"
PRESIGNED_URL_FAILED = "PRESIGNED_URL_FAILED"

# Batch
BATCH_UPLOAD_FAILED = "BATCH_UPLOAD_FAILED"

VALIDATION_CODES = frozenset(
    {FILE_TOO_LARGE, INVALID_MIME_TYPE, INVALID_EXTENSION, EMPTY_FILE}
)
CONFIGURATION_CODES = frozenset(
    {INVALID_CONFIG, UNKNOWN_PROVIDER, PROVIDER_INITIALIZATION_FAILED}
)


class UploadException(MenuboardException):
    """Upload, delete or configuration failure carrying an upload error code."""

    def __init__(
        self,
        message: str,
        code: str = UPLOAD_FAILED,
        provider: str | None = None,
    ) -> None:
        details = {"provider": provider} if provider else {}
        super().__init__(message, code, details)
        self.provider = provider

    @property
    def code(self) -> str:
        """Upload error code (same as error_code)."""
        return self.error_code
