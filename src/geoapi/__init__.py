"""
Geo API module: request dispatch for the geospatial web services.

This module provides functionality for:
- Building and signing request URLs
- Rate limiting requests shared across threads
- Retrying transient failures with jittered exponential backoff
- Classifying JSON payloads into typed results or typed errors
- Returning PendingResult handles that can be awaited, observed or cancelled

Main classes:
- GeoApiContext: Dispatcher shared by all endpoint calls
- GeoApiConfig: Dispatcher tuning
- PendingResult: Asynchronous result handle
- TokenBucketRateLimiter: Thread-safe rate limiter
- SingularResponse / MultiResponse: Response shapes

Errors:
- GeoApiError and its subclasses, see geoapi_errors
"""

from .geoapi_config import GeoApiConfig
from .geoapi_context import GeoApiContext
from .geoapi_errors import (
    ApiError,
    ApiStatus,
    DecodeError,
    GeoApiError,
    HttpError,
    LocalValidationError,
    RateLimitedError,
    RemoteApplicationError,
    RequestCancelledError,
    RequestFailedError,
    RetryableError,
    RetryExhaustedError,
    ServerError,
    TransportError,
)
from .geoapi_pending import PendingResult, PendingState
from .geoapi_rate_limiter import TokenBucketRateLimiter
from .geoapi_response import Failure, MultiResponse, ResponseShape, SingularResponse, Success
from .geoapi_transport import RequestsTransport, Transport

__all__ = [
    # Main classes
    "GeoApiContext",
    "GeoApiConfig",
    "PendingResult",
    "PendingState",
    "TokenBucketRateLimiter",
    "RequestsTransport",
    "Transport",
    
    # Classification
    "ResponseShape",
    "SingularResponse",
    "MultiResponse",
    "Success",
    "Failure",
    "ApiError",
    "ApiStatus",
    
    # Errors
    "GeoApiError",
    "LocalValidationError",
    "RetryableError",
    "TransportError",
    "RateLimitedError",
    "ServerError",
    "RemoteApplicationError",
    "HttpError",
    "DecodeError",
    "RequestCancelledError",
    "RequestFailedError",
    "RetryExhaustedError",
]

__version__ = "1.0.0"
