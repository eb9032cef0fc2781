"""Authenticated HTTP transport."""

from bearer_client.errors import (
    ApiError,
    ApiErrorCategory,
    AuthenticationError,
    PermissionError,
    RateLimitError,
    RefreshFailedError,
    RetryExhaustedError,
)

from .client import ApiClient, ApiClientConfig, RequestTelemetryEvent, build_http_client
from .requests import AUTHORIZATION_HEADER, RequestContext

__all__ = [
    "ApiClient",
    "ApiClientConfig",
    "ApiError",
    "ApiErrorCategory",
    "AuthenticationError",
    "AUTHORIZATION_HEADER",
    "PermissionError",
    "RateLimitError",
    "RefreshFailedError",
    "RequestContext",
    "RequestTelemetryEvent",
    "RetryExhaustedError",
    "build_http_client",
]
