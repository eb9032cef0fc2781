from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ApiErrorCategory(str, Enum):
    AUTHENTICATION = "authentication"
    PERMISSION = "permission"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    SERVER = "server"
    UNKNOWN = "unknown"


@dataclass(slots=True, eq=False)
class ApiError(Exception):
    message: str
    category: ApiErrorCategory = ApiErrorCategory.UNKNOWN
    status_code: int | None = None
    code: str | None = None
    retry_after: str | None = None
    inner_error: Exception | None = None
    request_method: str | None = None
    request_url: str | None = None
    response_body: str | None = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message

    @property
    def recovery_suggestion(self) -> str | None:
        if self.category is ApiErrorCategory.AUTHENTICATION:
            return "Sign in again; the stored credential could not be renewed."
        if self.category is ApiErrorCategory.PERMISSION:
            return "The signed-in account is not allowed to perform this operation."
        if self.category is ApiErrorCategory.RATE_LIMIT:
            if self.retry_after:
                return f"The server throttled the request. Retry after {self.retry_after} seconds."
            return "The server throttled the request. Wait before retrying."
        if self.category is ApiErrorCategory.NETWORK:
            return "Check your internet connection and try again."
        if self.category is ApiErrorCategory.CONFLICT:
            return "The operation conflicts with existing data. Reload and verify the latest state."
        if self.category is ApiErrorCategory.VALIDATION:
            return "The request payload is invalid. Review fields and try again."
        if self.category is ApiErrorCategory.SERVER:
            return "The server failed to process the request. Try again later."
        return None

    @property
    def is_retriable(self) -> bool:
        if self.category in {ApiErrorCategory.RATE_LIMIT, ApiErrorCategory.NETWORK}:
            return True
        if self.status_code and 500 <= self.status_code <= 599:
            return True
        return False


class AuthenticationError(ApiError):
    """The server rejected a request with a 401-class response."""

    def __init__(
        self,
        message: str = "Authentication failed",
        *,
        status_code: int | None = 401,
        response_body: str | None = None,
    ) -> None:
        super().__init__(
            message=message,
            category=ApiErrorCategory.AUTHENTICATION,
            status_code=status_code,
            response_body=response_body,
        )


class RetryExhaustedError(AuthenticationError):
    """A request was rejected again after its single credential refresh and retry."""

    def __init__(
        self,
        message: str = "Request rejected after refreshing the credential",
        *,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message, status_code=401, response_body=response_body)


class RefreshFailedError(ApiError):
    """The refresh endpoint did not yield a usable credential."""

    def __init__(
        self,
        message: str = "Credential refresh failed",
        *,
        status_code: int | None = None,
        inner_error: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            category=ApiErrorCategory.AUTHENTICATION,
            status_code=status_code,
            inner_error=inner_error,
        )


class PermissionError(ApiError):
    def __init__(
        self,
        message: str = "Insufficient permissions",
        *,
        response_body: str | None = None,
    ) -> None:
        super().__init__(
            message=message,
            category=ApiErrorCategory.PERMISSION,
            status_code=403,
            response_body=response_body,
        )


class RateLimitError(ApiError):
    def __init__(
        self,
        message: str = "Rate limited",
        retry_after: str | None = None,
        *,
        response_body: str | None = None,
    ) -> None:
        super().__init__(
            message=message,
            category=ApiErrorCategory.RATE_LIMIT,
            status_code=429,
            retry_after=retry_after,
            response_body=response_body,
        )


__all__ = [
    "ApiError",
    "ApiErrorCategory",
    "AuthenticationError",
    "PermissionError",
    "RateLimitError",
    "RefreshFailedError",
    "RetryExhaustedError",
]
