from __future__ import annotations

import httpx
import pytest

from bearer_client.auth import HttpRefreshEndpoint, RefreshCoordinator
from bearer_client.errors import RefreshFailedError

from tests.factories import REFRESH_URL, make_credential, make_store, make_token


@pytest.mark.asyncio
async def test_returns_token_from_json_body(respx_mock) -> None:
    token = make_token()
    route = respx_mock.post(REFRESH_URL).mock(
        return_value=httpx.Response(200, json={"token": f"  {token} ", "user": {"id": 1}}),
    )

    async with httpx.AsyncClient(cookies={"refreshToken": "cookie-value"}) as client:
        result = await HttpRefreshEndpoint(client, REFRESH_URL).fetch_credential()

    assert result == token
    request = route.calls.last.request
    assert request.content == b"{}"
    assert "refreshToken=cookie-value" in request.headers["Cookie"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"message": "refresh token expired"}),
        httpx.Response(500, text="oops"),
        httpx.Response(200, json={}),
        httpx.Response(200, json={"token": ""}),
        httpx.Response(200, json={"token": None}),
        httpx.Response(200, json=["token"]),
        httpx.Response(200, text="<html>login</html>"),
    ],
)
async def test_non_success_shapes_raise_refresh_failed(respx_mock, response) -> None:
    respx_mock.post(REFRESH_URL).mock(return_value=response)

    async with httpx.AsyncClient() as client:
        with pytest.raises(RefreshFailedError):
            await HttpRefreshEndpoint(client, REFRESH_URL).fetch_credential()


@pytest.mark.asyncio
async def test_transport_error_raises_refresh_failed(respx_mock) -> None:
    respx_mock.post(REFRESH_URL).mock(side_effect=httpx.ConnectError("refused"))

    async with httpx.AsyncClient() as client:
        with pytest.raises(RefreshFailedError) as excinfo:
            await HttpRefreshEndpoint(client, REFRESH_URL).fetch_credential()

    assert isinstance(excinfo.value.inner_error, httpx.ConnectError)


@pytest.mark.asyncio
async def test_coordinator_clears_store_when_endpoint_rejects(respx_mock) -> None:
    respx_mock.post(REFRESH_URL).mock(return_value=httpx.Response(401))
    store = make_store(make_credential(expires_in=-10))

    async with httpx.AsyncClient() as client:
        coordinator = RefreshCoordinator(store, HttpRefreshEndpoint(client, REFRESH_URL))
        outcome = await coordinator.refresh()

    assert not outcome.success
    assert store.get() is None
