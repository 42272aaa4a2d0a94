"""Unit tests for familycal.core.http_client."""

import pytest

from familycal.api.middleware.correlation_id import get_request_id, request_id_var
from familycal.core.http_client import close_all_clients, get_request_headers, get_shared_client

pytestmark = pytest.mark.unit


def test_get_request_headers_outside_request_then_no_request_id() -> None:
    headers = get_request_headers()
    assert "X-Request-ID" not in headers
    assert headers["Accept"] == "application/json"


def test_get_request_headers_inside_request_then_propagates_id() -> None:
    token = request_id_var.set("req-42")
    try:
        assert get_request_id() == "req-42"
        assert get_request_headers()["X-Request-ID"] == "req-42"
    finally:
        request_id_var.reset(token)


async def test_shared_client_reused_until_closed() -> None:
    first = await get_shared_client("event_store")
    assert await get_shared_client("event_store") is first

    await close_all_clients()

    assert first.is_closed
    assert await get_shared_client("event_store") is not first
