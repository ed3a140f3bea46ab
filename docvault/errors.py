"""Error taxonomy for DocVault.

Services raise these; ``docvault.api`` renders them as ``{"error": message}``
with the status code carried by the exception.
"""

from fastapi import status


class DocVaultError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(DocVaultError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class UnsupportedFileTypeError(ValidationError):
    default_message = "Unsupported file type"


class PayloadTooLargeError(DocVaultError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_message = "File too large"


class AuthenticationError(DocVaultError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication failed"


class TokenExpiredError(DocVaultError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Token expired"


class InvalidTokenError(DocVaultError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Invalid token"


class AuthorizationError(DocVaultError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class NotFoundError(DocVaultError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConflictError(DocVaultError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class ExtractionError(DocVaultError):
    """Text extraction or DOCX conversion failed."""
    default_message = "Failed to process PDF"


class UpstreamError(DocVaultError):
    """An external service (LLM, object storage) failed."""
    default_message = "Upstream service error"


class ServiceUnavailableError(DocVaultError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Service unavailable"


class InternalError(DocVaultError):
    default_message = "Internal server error"
