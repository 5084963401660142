"""
Shared error types for the Eiga rooms service.

Only collaborator failures (backend, metadata API) and request validation are
meant to reach clients. Cache store failures are raised by store
implementations as ``CacheStoreError`` and absorbed by the cache manager.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class EigaException(Exception):
    """Base exception for the service."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(EigaException):
    """Invalid request parameters."""

    status_code = 422

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(EigaException):
    """Requested entity does not exist upstream."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class ExternalServiceError(EigaException):
    """External service errors."""

    status_code = 502

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)
        self.service = service


class BackendError(ExternalServiceError):
    """Supabase (PostgREST) request failed."""

    def __init__(self, message: str = "Backend request failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("backend", message, details)


class MetadataServiceError(ExternalServiceError):
    """TMDB request failed."""

    def __init__(self, message: str = "Metadata request failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("tmdb", message, details)


class CacheStoreError(EigaException):
    """Persistent key-value store operation failed."""

    status_code = 503

    def __init__(self, operation: str, message: str = "Cache store error", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_STORE_ERROR", f"{operation}: {message}", details)
        self.operation = operation
