from __future__ import annotations

from typing import Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bearer_client.errors import RefreshFailedError
from bearer_client.utils import get_logger


logger = get_logger(__name__)


@runtime_checkable
class RefreshEndpoint(Protocol):
    """Network operation that exchanges ambient session state for a new token."""

    async def fetch_credential(self) -> str: ...


class RefreshPayload(BaseModel):
    """Body returned by the refresh endpoint."""

    model_config = ConfigDict(extra="ignore", frozen=True, str_strip_whitespace=True)

    token: str = Field(min_length=1)


class HttpRefreshEndpoint:
    """POSTs an empty JSON object to the refresh URL and reads ``token`` back.

    The request relies on cookies held by ``client``; pass the same
    ``httpx.AsyncClient`` used for login so the session cookie is sent.
    """

    def __init__(self, client: httpx.AsyncClient, url: str) -> None:
        self._client = client
        self._url = url

    @property
    def url(self) -> str:
        return self._url

    async def fetch_credential(self) -> str:
        try:
            response = await self._client.post(self._url, json={})
        except httpx.HTTPError as exc:
            raise RefreshFailedError(
                f"Network error contacting refresh endpoint: {exc}",
                inner_error=exc,
            ) from exc

        if not response.is_success:
            raise RefreshFailedError(
                f"Refresh endpoint returned status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = RefreshPayload.model_validate(response.json())
        except ValueError as exc:
            # ValidationError subclasses ValueError, as does a JSON decode failure.
            detail = "missing token" if isinstance(exc, ValidationError) else "invalid JSON"
            raise RefreshFailedError(
                f"Refresh response rejected: {detail}",
                status_code=response.status_code,
                inner_error=exc,
            ) from exc

        logger.debug("Refresh endpoint issued a credential", url=self._url)
        return payload.token


__all__ = ["HttpRefreshEndpoint", "RefreshEndpoint", "RefreshPayload"]
