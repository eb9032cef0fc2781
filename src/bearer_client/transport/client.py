from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

import httpx
from httpx._client import USE_CLIENT_DEFAULT

from bearer_client.auth.credential_store import CredentialStore
from bearer_client.auth.refresh import RefreshCoordinator
from bearer_client.config.settings import DEFAULT_REQUEST_TIMEOUT
from bearer_client.errors import (
    ApiError,
    ApiErrorCategory,
    AuthenticationError,
    PermissionError,
    RateLimitError,
    RetryExhaustedError,
)
from bearer_client.transport.requests import RequestContext
from bearer_client.utils import (
    CancellationToken,
    await_with_cancellation,
    get_logger,
    sanitize_response_body,
)


logger = get_logger(__name__)

DEFAULT_HEADERS: dict[str, str] = {"Content-Type": "application/json"}


@dataclass(slots=True)
class RequestTelemetryEvent:
    method: str
    url: str
    status_code: int | None
    duration_ms: float
    retried: bool
    category: ApiErrorCategory | None
    success: bool


@dataclass(slots=True)
class ApiClientConfig:
    base_url: str
    timeout: float | None = DEFAULT_REQUEST_TIMEOUT
    user_agent: str = "bearer-client"
    default_headers: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_HEADERS),
    )
    enable_telemetry: bool = True
    telemetry_callback: Callable[[RequestTelemetryEvent], None] | None = None


def build_http_client(config: ApiClientConfig) -> httpx.AsyncClient:
    """Create the shared transport for a base address and default timeout."""
    headers = {"User-Agent": config.user_agent, **dict(config.default_headers)}
    return httpx.AsyncClient(
        base_url=config.base_url,
        headers=headers,
        timeout=httpx.Timeout(config.timeout),
    )


def _error_details(response: httpx.Response) -> tuple[str | None, str | None]:
    try:
        body = response.json()
    except ValueError:
        return None, None
    if not isinstance(body, dict):
        return None, None

    error_info = body.get("error")
    if isinstance(error_info, dict):
        message = error_info.get("message")
        code = error_info.get("code")
    else:
        message = body.get("message") or body.get("title") or error_info
        code = body.get("code")
    return (
        message if isinstance(message, str) else None,
        code if isinstance(code, str) else None,
    )


def _map_response_to_error(response: httpx.Response) -> ApiError:
    status = response.status_code
    excerpt = sanitize_response_body(response.text) if response.text else None
    message, code = _error_details(response)
    message = message or f"Request failed with status {status}"

    if status == 401:
        return AuthenticationError(message, response_body=excerpt)
    if status == 403:
        return PermissionError(message, response_body=excerpt)
    if status == 429:
        return RateLimitError(
            message,
            retry_after=response.headers.get("Retry-After"),
            response_body=excerpt,
        )

    category = ApiErrorCategory.UNKNOWN
    if 500 <= status <= 599:
        category = ApiErrorCategory.SERVER
    elif status == 409:
        category = ApiErrorCategory.CONFLICT
    elif status in {400, 404, 422}:
        category = ApiErrorCategory.VALIDATION

    return ApiError(
        message=message,
        category=category,
        status_code=status,
        code=code,
        retry_after=response.headers.get("Retry-After"),
        response_body=excerpt,
    )


class ApiClient:
    """Authentication-aware HTTP client.

    Each call attaches the stored bearer credential, renews it first when it
    has expired, and on a 401 renews and resends the same request once.
    Callers only ever see the final response or a single :class:`ApiError`.

    Without a ``coordinator`` the client still attaches whatever credential is
    stored but never renews it.
    """

    def __init__(
        self,
        config: ApiClientConfig,
        store: CredentialStore,
        coordinator: RefreshCoordinator | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._coordinator = coordinator
        self._owns_http_client = http_client is None
        self._http_client = http_client
        self._telemetry_callback = (
            (config.telemetry_callback or self._default_telemetry_callback)
            if config.enable_telemetry
            else None
        )

    @property
    def config(self) -> ApiClientConfig:
        return self._config

    @property
    def coordinator(self) -> RefreshCoordinator | None:
        return self._coordinator

    async def request(
        self,
        method: str,
        url: str,
        body: Any | None = None,
        *,
        params: dict[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        content: bytes | None = None,
        timeout: float | None = None,
        cancellation_token: CancellationToken | None = None,
    ) -> httpx.Response:
        context = RequestContext(
            method=method,
            url=url,
            body=body,
            headers=dict(headers or {}),
            params=params,
            content=content,
            timeout=timeout,
        )
        return await await_with_cancellation(self._execute(context), cancellation_token)

    async def request_json(
        self,
        method: str,
        url: str,
        body: Any | None = None,
        **options: Any,
    ) -> Any:
        response = await self.request(method, url, body, **options)
        if not response.content:
            return None
        return response.json()

    async def get(self, url: str, **options: Any) -> httpx.Response:
        return await self.request("GET", url, **options)

    async def post(self, url: str, body: Any | None = None, **options: Any) -> httpx.Response:
        return await self.request("POST", url, body, **options)

    async def put(self, url: str, body: Any | None = None, **options: Any) -> httpx.Response:
        return await self.request("PUT", url, body, **options)

    async def patch(self, url: str, body: Any | None = None, **options: Any) -> httpx.Response:
        return await self.request("PATCH", url, body, **options)

    async def delete(self, url: str, **options: Any) -> httpx.Response:
        return await self.request("DELETE", url, **options)

    async def close(self) -> None:
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------- Pipeline

    async def _execute(self, context: RequestContext) -> httpx.Response:
        start = time.perf_counter()
        try:
            await self._authorize(context)
            response = await self._dispatch(context)
            if response.is_error:
                raise _map_response_to_error(response)
        except ApiError as exc:
            self._record_failure(context, exc, start)
            raise

        self._publish_telemetry(
            context,
            duration=time.perf_counter() - start,
            status_code=response.status_code,
            success=True,
            category=None,
        )
        return response

    async def _authorize(self, context: RequestContext) -> None:
        credential = self._store.get()
        if (
            credential is not None
            and self._coordinator is not None
            and self._store.is_expired(credential)
        ):
            logger.debug(
                "Stored credential expired; refreshing before send",
                method=context.method,
                url=context.url,
            )
            outcome = await self._coordinator.refresh()
            credential = self._store.get() if outcome.success else None
        context.attach(credential)

    async def _dispatch(self, context: RequestContext) -> httpx.Response:
        while True:
            response = await self._send(context)
            if response.status_code != 401 or not context.authenticated:
                return response
            if context.retried:
                logger.warning(
                    "Credential rejected again after refresh",
                    method=context.method,
                    url=context.url,
                )
                raise RetryExhaustedError(
                    response_body=sanitize_response_body(response.text) or None,
                )
            context.mark_retried()
            if not await self._recover(context):
                return response

    async def _recover(self, context: RequestContext) -> bool:
        if self._coordinator is None:
            return False
        logger.info(
            "Server rejected credential; refreshing before retry",
            method=context.method,
            url=context.url,
        )
        outcome = await self._coordinator.refresh()
        if not outcome.success:
            return False
        credential = self._store.get()
        if credential is None:
            return False
        context.attach(credential)
        return True

    async def _send(self, context: RequestContext) -> httpx.Response:
        client = self._get_http_client()
        request = client.build_request(
            context.method,
            context.url,
            params=context.params,
            json=context.body if context.content is None else None,
            content=context.content,
            headers=context.headers,
            timeout=USE_CLIENT_DEFAULT if context.timeout is None else context.timeout,
        )
        try:
            return await client.send(request)
        except httpx.TimeoutException as exc:
            raise ApiError(
                message=f"Timed out calling {context.method} {context.url}",
                category=ApiErrorCategory.NETWORK,
                inner_error=exc,
            ) from exc
        except httpx.RequestError as exc:
            raise ApiError(
                message=f"Network error calling {context.method} {context.url}: {exc}",
                category=ApiErrorCategory.NETWORK,
                inner_error=exc,
            ) from exc

    # ------------------------------------------------------------- Internals

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = build_http_client(self._config)
            self._owns_http_client = True
        return self._http_client

    def _record_failure(self, context: RequestContext, error: ApiError, start: float) -> None:
        error.request_method = error.request_method or context.method
        error.request_url = error.request_url or context.url
        logger.warning(
            "API request failed",
            method=context.method,
            url=context.url,
            status_code=error.status_code,
            category=error.category.value,
            retried=context.retried,
            body=error.response_body,
            hint=error.recovery_suggestion,
        )
        self._publish_telemetry(
            context,
            duration=time.perf_counter() - start,
            status_code=error.status_code,
            success=False,
            category=error.category,
        )

    def _publish_telemetry(
        self,
        context: RequestContext,
        *,
        duration: float,
        status_code: int | None,
        success: bool,
        category: ApiErrorCategory | None,
    ) -> None:
        if not self._telemetry_callback:
            return
        event = RequestTelemetryEvent(
            method=context.method,
            url=context.url,
            status_code=status_code,
            duration_ms=duration * 1000,
            retried=context.retried,
            category=category,
            success=success,
        )
        try:
            self._telemetry_callback(event)
        except Exception:  # noqa: BLE001 - telemetry shouldn't break requests
            logger.warning("Telemetry callback raised an exception", exc_info=True)

    @staticmethod
    def _default_telemetry_callback(event: RequestTelemetryEvent) -> None:
        logger.debug(
            "API request",
            method=event.method,
            url=event.url,
            status_code=event.status_code,
            duration_ms=round(event.duration_ms, 2),
            retried=event.retried,
            success=event.success,
            category=event.category.value if event.category else None,
        )


__all__ = [
    "ApiClient",
    "ApiClientConfig",
    "RequestTelemetryEvent",
    "build_http_client",
]
