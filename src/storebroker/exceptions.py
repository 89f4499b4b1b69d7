"""
Exception classes for storebroker-client.
"""

from typing import Any, Dict, Optional


class StoreBrokerError(Exception):
    """
    Base exception class for Store submission API errors.

    Carries enough context to correlate a failure with the remote service:
    the operation being attempted, the product/flight/submission ids involved,
    the HTTP status code, the parsed service error payload and the
    ``MS-CorrelationId`` header when the service returned one.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_payload: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        operation: Optional[str] = None,
        identifiers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_payload = error_payload or {}
        self.correlation_id = correlation_id
        self.operation = operation
        self.identifiers = dict(identifiers or {})

    def __str__(self) -> str:
        parts = []
        if self.operation:
            parts.append(f"{self.operation} failed")
        if self.identifiers:
            ids = ", ".join(f"{k}={v}" for k, v in self.identifiers.items() if v)
            if ids:
                parts.append(f"[{ids}]")
        parts.append(self.message)
        if self.correlation_id:
            parts.append(f"(MS-CorrelationId: {self.correlation_id})")
        return " ".join(parts)


class AuthenticationError(StoreBrokerError):
    """Raised when authentication fails."""

    pass


class PermissionError(StoreBrokerError):
    """Raised when insufficient permissions for operation."""

    pass


class NotFoundError(StoreBrokerError):
    """Raised when requested resource is not found."""

    pass


class ConflictError(StoreBrokerError):
    """Raised when the service rejects a stale revision token or a conflicting submission."""

    pass


class RateLimitError(StoreBrokerError):
    """Raised when rate limits are exceeded."""

    pass


class ServerError(StoreBrokerError):
    """Raised when server returns 5xx error."""

    pass


class ValidationError(StoreBrokerError):
    """Raised when caller-supplied data is inconsistent or invalid."""

    pass


class SubmissionStateError(StoreBrokerError):
    """Raised when a submission is not in the state an operation requires."""

    pass


class UploadError(StoreBrokerError):
    """Raised when a package or media asset cannot be uploaded."""

    pass
