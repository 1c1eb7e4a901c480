"""
Error taxonomy for the Geo API client.

Every failure a caller can observe on a PendingResult is a GeoApiError.
Subclasses of RetryableError are retried by the dispatcher; everything
else completes the PendingResult immediately.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ApiStatus(Enum):
    """Status codes returned in the `status` field of service responses."""
    OK = "OK"
    INVALID_REQUEST = "INVALID_REQUEST"
    MAX_ELEMENTS_EXCEEDED = "MAX_ELEMENTS_EXCEEDED"
    MAX_WAYPOINTS_EXCEEDED = "MAX_WAYPOINTS_EXCEEDED"
    NOT_FOUND = "NOT_FOUND"
    OVER_QUERY_LIMIT = "OVER_QUERY_LIMIT"
    OVER_DAILY_LIMIT = "OVER_DAILY_LIMIT"
    REQUEST_DENIED = "REQUEST_DENIED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    ZERO_RESULTS = "ZERO_RESULTS"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "ApiStatus":
        """Map a raw status string to a member; unrecognised strings become UNKNOWN_ERROR."""
        try:
            return cls(raw)
        except ValueError:
            return cls.UNKNOWN_ERROR


@dataclass(frozen=True)
class ApiError:
    """A classified failure: status code plus the service's message, if any."""
    status: ApiStatus
    message: Optional[str] = None
    raw_status: Optional[str] = None

    @classmethod
    def from_status(cls, raw_status: Optional[str], message: Optional[str] = None) -> "ApiError":
        return cls(status=ApiStatus.parse(raw_status), message=message, raw_status=raw_status)


class GeoApiError(Exception):
    """Base exception for the Geo API client."""

    def __init__(self, message: Optional[str] = None, status: Optional[ApiStatus] = None):
        super().__init__(message or (status.value if status else self.__class__.__name__))
        self.message = message
        self.status = status


class LocalValidationError(GeoApiError):
    """Request parameters are malformed; raised before any network attempt."""

    def __init__(self, message: str):
        super().__init__(message, ApiStatus.INVALID_REQUEST)


class RetryableError(GeoApiError):
    """Transient failure; eligible for retry with backoff."""
    pass


class TransportError(RetryableError):
    """Connection failure, timeout, or transient HTTP server status."""

    def __init__(self, message: str, http_status: Optional[int] = None):
        super().__init__(message)
        self.http_status = http_status


class RateLimitedError(RetryableError):
    """Local limiter timed out, or the service reported OVER_QUERY_LIMIT."""

    def __init__(self, message: Optional[str] = None, local: bool = False):
        super().__init__(message, None if local else ApiStatus.OVER_QUERY_LIMIT)
        self.local = local


class ServerError(RetryableError):
    """The service reported UNKNOWN_ERROR; the request may succeed if retried."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, ApiStatus.UNKNOWN_ERROR)


class RemoteApplicationError(GeoApiError):
    """Terminal status reported by the service (request denied, invalid request, ...)."""

    def __init__(self, status: ApiStatus, message: Optional[str] = None):
        super().__init__(message, status)

    def __str__(self) -> str:
        if self.message:
            return f"{self.status.value}: {self.message}"
        return self.status.value


class HttpError(GeoApiError):
    """Non-retryable, non-success HTTP status."""

    def __init__(self, http_status: int, message: Optional[str] = None):
        super().__init__(message or f"HTTP {http_status}")
        self.http_status = http_status


class RequestFailedError(GeoApiError):
    """The request could not be sent and resending will not help (bad URL, redirect loop)."""
    pass


class DecodeError(GeoApiError):
    """Payload or encoded polyline could not be decoded."""
    pass


class RequestCancelledError(GeoApiError):
    """The request was cancelled before it reached a result."""
    pass


class RetryExhaustedError(GeoApiError):
    """Retry budget elapsed; `cause` is the last error observed."""

    def __init__(self, cause: GeoApiError, attempts: int):
        super().__init__(cause.message, cause.status)
        self.cause = cause
        self.attempts = attempts

    def __str__(self) -> str:
        return f"Retries exhausted after {self.attempts} attempt(s): {self.cause}"


_TERMINAL_STATUSES = {
    ApiStatus.INVALID_REQUEST,
    ApiStatus.MAX_ELEMENTS_EXCEEDED,
    ApiStatus.MAX_WAYPOINTS_EXCEEDED,
    ApiStatus.NOT_FOUND,
    ApiStatus.OVER_DAILY_LIMIT,
    ApiStatus.REQUEST_DENIED,
    ApiStatus.ZERO_RESULTS,
}


def error_from_api_error(error: ApiError, retry_over_query_limit: bool = True) -> GeoApiError:
    """
    Convert a classified failure into the matching exception.
    
    Args:
        error: Failure extracted by the response classifier
        retry_over_query_limit: When False, OVER_QUERY_LIMIT is terminal
        
    Returns:
        GeoApiError subclass instance (not raised)
    """
    if error.status == ApiStatus.OVER_QUERY_LIMIT:
        if retry_over_query_limit:
            return RateLimitedError(error.message)
        return RemoteApplicationError(error.status, error.message)
    if error.status in _TERMINAL_STATUSES:
        return RemoteApplicationError(error.status, error.message)
    if error.status == ApiStatus.UNKNOWN_ERROR:
        message = error.message
        if error.raw_status and error.raw_status != ApiStatus.UNKNOWN_ERROR.value:
            message = f"Unexpected status {error.raw_status}" + (f": {message}" if message else "")
        return ServerError(message)
    # OK never reaches here through the classifier
    return GeoApiError(error.message, error.status)
