"""
Error types for ocxp_client.

Every error raised by the client carries an error code, an HTTP status code
(0 for network-level failures) and optional details for logging.
"""
from enum import Enum
from typing import Any, Dict, List, Optional


class OCXPErrorCode(str, Enum):
    """Error codes for programmatic handling."""
    NETWORK_ERROR = "NETWORK_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    CONFLICT = "CONFLICT"
    TIMEOUT = "TIMEOUT"
    SERVER_ERROR = "SERVER_ERROR"
    UNKNOWN = "UNKNOWN"


class OCXPError(Exception):
    """Base error for all ocxp_client errors."""

    def __init__(
        self,
        message: str,
        code: OCXPErrorCode = OCXPErrorCode.UNKNOWN,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        self.request_id = request_id
        self.cause = cause
        # Error payload as received from the server, if any
        self.payload: Any = None
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to a dict for logging/serialization."""
        return {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code.value,
            "status_code": self.status_code,
            "details": self.details,
            "request_id": self.request_id,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"code={self.code.value}, status_code={self.status_code})"
        )


class OCXPNetworkError(OCXPError):
    """Network-level error: no HTTP response was obtained."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, OCXPErrorCode.NETWORK_ERROR, 0, details, request_id, cause)


class OCXPValidationError(OCXPError):
    """Request or response validation failed."""

    def __init__(
        self,
        message: str,
        validation_errors: Optional[Dict[str, List[str]]] = None,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        merged = {**(details or {}), "validation_errors": validation_errors}
        super().__init__(
            message, OCXPErrorCode.VALIDATION_ERROR, 400, merged, request_id, cause
        )
        self.validation_errors = validation_errors


class OCXPAuthError(OCXPError):
    """Authentication or authorization failed."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
        status_code: int = 401,
    ):
        super().__init__(message, OCXPErrorCode.AUTH_ERROR, status_code, details, request_id, cause)


class OCXPNotFoundError(OCXPError):
    """Resource not found."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        merged = {**(details or {}), "path": path}
        super().__init__(message, OCXPErrorCode.NOT_FOUND, 404, merged, request_id, cause)
        self.path = path


class OCXPRateLimitError(OCXPError):
    """Rate limit exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        merged = {**(details or {}), "retry_after": retry_after}
        super().__init__(message, OCXPErrorCode.RATE_LIMITED, 429, merged, request_id, cause)
        self.retry_after = retry_after


class OCXPConflictError(OCXPError):
    """Conflict, e.g. etag mismatch or concurrent modification."""

    def __init__(
        self,
        message: str,
        expected_etag: Optional[str] = None,
        actual_etag: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        merged = {
            **(details or {}),
            "expected_etag": expected_etag,
            "actual_etag": actual_etag,
        }
        super().__init__(message, OCXPErrorCode.CONFLICT, 409, merged, request_id, cause)
        self.expected_etag = expected_etag
        self.actual_etag = actual_etag


class OCXPTimeoutError(OCXPError):
    """Operation timed out."""

    def __init__(
        self,
        message: str = "Operation timed out",
        timeout_ms: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        merged = {**(details or {}), "timeout_ms": timeout_ms}
        super().__init__(message, OCXPErrorCode.TIMEOUT, 408, merged, request_id, cause)
        self.timeout_ms = timeout_ms


class ConfigurationError(OCXPError, ValueError):
    """Unsupported client configuration, e.g. a nested value in a primitive slot."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, OCXPErrorCode.VALIDATION_ERROR, 0, details)


class SseStreamError(OCXPError):
    """SSE connection or stream failure. Reported to on_sse_error, never raised."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        code = OCXPErrorCode.NETWORK_ERROR if status_code == 0 else OCXPErrorCode.SERVER_ERROR
        super().__init__(message, code, status_code, details, cause=cause)


class WebSocketConnectionError(OCXPNetworkError):
    """WebSocket connection could not be established."""


class WebSocketTimeoutError(OCXPTimeoutError):
    """WebSocket did not open within the connection timeout."""


def map_http_error(
    status_code: int,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
    path: Optional[str] = None,
    retry_after: Optional[float] = None,
) -> OCXPError:
    """Map an HTTP status code to the matching error class."""
    if status_code == 400:
        return OCXPValidationError(message, details=details, request_id=request_id)
    if status_code in (401, 403):
        return OCXPAuthError(
            message, details=details, request_id=request_id, status_code=status_code
        )
    if status_code == 404:
        return OCXPNotFoundError(message, path, details=details, request_id=request_id)
    if status_code == 408:
        return OCXPTimeoutError(message, details=details, request_id=request_id)
    if status_code == 409:
        return OCXPConflictError(message, details=details, request_id=request_id)
    if status_code == 429:
        return OCXPRateLimitError(
            message, retry_after, details=details, request_id=request_id
        )
    if status_code >= 500:
        return OCXPError(
            message, OCXPErrorCode.SERVER_ERROR, status_code, details, request_id
        )
    return OCXPError(message, OCXPErrorCode.UNKNOWN, status_code, details, request_id)
