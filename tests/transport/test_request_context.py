from __future__ import annotations

import pytest

from bearer_client.transport.requests import AUTHORIZATION_HEADER, RequestContext

from tests.factories import make_credential


def test_method_is_normalised_and_headers_copied() -> None:
    headers = {"X-Trace": "1"}
    context = RequestContext(method="post", url="/api/items", headers=headers)

    context.attach(make_credential())

    assert context.method == "POST"
    assert "Authorization" not in headers


def test_attach_replaces_any_existing_authorization() -> None:
    credential = make_credential()
    context = RequestContext(
        method="GET",
        url="/api/items",
        headers={"authorization": "Bearer stale", "AUTHORIZATION": "Bearer older"},
    )

    context.attach(credential)

    assert context.headers == {AUTHORIZATION_HEADER: f"Bearer {credential.raw_value}"}
    assert context.authenticated


def test_attach_none_strips_header() -> None:
    context = RequestContext(method="GET", url="/api/items")
    context.attach(make_credential())

    context.attach(None)

    assert AUTHORIZATION_HEADER not in context.headers
    assert not context.authenticated


def test_retry_flag_flips_only_once() -> None:
    context = RequestContext(method="GET", url="/api/items")

    context.mark_retried()
    assert context.retried

    with pytest.raises(RuntimeError):
        context.mark_retried()
