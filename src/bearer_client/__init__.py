"""Authenticated HTTP transport with single-flight credential refresh."""

from bearer_client.auth import (
    AuthSession,
    Credential,
    CredentialStore,
    RefreshCoordinator,
    RefreshOutcome,
)
from bearer_client.bootstrap import ClientServices, build_services
from bearer_client.errors import (
    ApiError,
    AuthenticationError,
    RefreshFailedError,
    RetryExhaustedError,
)
from bearer_client.transport import ApiClient, ApiClientConfig

__version__ = "0.1.0"

__all__ = [
    "ApiClient",
    "ApiClientConfig",
    "ApiError",
    "AuthSession",
    "AuthenticationError",
    "ClientServices",
    "Credential",
    "CredentialStore",
    "RefreshCoordinator",
    "RefreshFailedError",
    "RefreshOutcome",
    "RetryExhaustedError",
    "build_services",
    "__version__",
]
