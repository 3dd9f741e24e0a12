"""Tests for CloudflareClient — envelope handling, pagination, error mapping."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from pydantic import SecretStr

from fleetwatch.cloud.client import CloudflareClient
from fleetwatch.cloud.exceptions import CloudApiError, CloudConnectionError, CloudParseError
from fleetwatch.core.config import CloudflareConfig

# ── Helpers ─────────────────────────────────────────────────────


def _cfg(**overrides: object) -> CloudflareConfig:
    defaults: dict[str, object] = {
        "account_id": "acct",
        "api_token": SecretStr("tok"),
        "page_size": 2,
    }
    defaults.update(overrides)
    return CloudflareConfig(**defaults)  # type: ignore[arg-type]


def _mock_response(
    data: Any,
    status_code: int = 200,
    method: str = "GET",
) -> httpx.Response:
    """Build a mock httpx.Response."""
    return httpx.Response(
        status_code=status_code,
        json=data,
        request=httpx.Request(method, "https://api.cloudflare.com/client/v4/x"),
    )


def _envelope(result: Any, **extra: Any) -> dict[str, Any]:
    return {"success": True, "errors": [], "messages": [], "result": result, **extra}


# ── Lifecycle ───────────────────────────────────────────────────


class TestLifecycle:
    async def test_connect_sets_auth_header(self) -> None:
        client = CloudflareClient(_cfg())
        await client.connect()
        try:
            assert client.connected
            assert client._http is not None
            assert client._http.headers["Authorization"] == "Bearer tok"
        finally:
            await client.close()
        assert not client.connected

    async def test_context_manager(self) -> None:
        async with CloudflareClient(_cfg()) as client:
            assert client.connected
        assert not client.connected

    async def test_not_connected_raises(self) -> None:
        client = CloudflareClient(_cfg())
        with pytest.raises(CloudConnectionError):
            await client.get("/accounts/acct/workers/scripts")

    async def test_injected_client_not_closed(self) -> None:
        http = httpx.AsyncClient()
        client = CloudflareClient(_cfg(), http=http)
        await client.close()
        assert not http.is_closed
        await http.aclose()


# ── REST ────────────────────────────────────────────────────────


class TestRest:
    async def test_get_unwraps_result(self) -> None:
        async with CloudflareClient(_cfg()) as client:
            with patch.object(client._http, "request", new_callable=AsyncMock) as mock_req:  # type: ignore[union-attr]
                mock_req.return_value = _mock_response(_envelope([{"id": "w1"}]))
                result = await client.get("/accounts/acct/workers/scripts")
        assert result == [{"id": "w1"}]

    async def test_unsuccessful_envelope_raises(self) -> None:
        body = {"success": False, "errors": [{"code": 10000, "message": "Authentication error"}]}
        async with CloudflareClient(_cfg()) as client:
            with patch.object(client._http, "request", new_callable=AsyncMock) as mock_req:  # type: ignore[union-attr]
                mock_req.return_value = _mock_response(body)
                with pytest.raises(CloudApiError, match="Authentication error"):
                    await client.get("/x")

    async def test_http_error_carries_status(self) -> None:
        async with CloudflareClient(_cfg()) as client:
            with patch.object(client._http, "request", new_callable=AsyncMock) as mock_req:  # type: ignore[union-attr]
                mock_req.return_value = _mock_response({"errors": []}, status_code=403)
                with pytest.raises(CloudApiError) as exc_info:
                    await client.get("/x")
        assert exc_info.value.status == 403

    async def test_transport_error(self) -> None:
        async with CloudflareClient(_cfg()) as client:
            with patch.object(client._http, "request", new_callable=AsyncMock) as mock_req:  # type: ignore[union-attr]
                mock_req.side_effect = httpx.ConnectError("connection refused")
                with pytest.raises(CloudConnectionError):
                    await client.get("/x")

    async def test_timeout(self) -> None:
        async with CloudflareClient(_cfg()) as client:
            with patch.object(client._http, "request", new_callable=AsyncMock) as mock_req:  # type: ignore[union-attr]
                mock_req.side_effect = httpx.ReadTimeout("slow")
                with pytest.raises(CloudConnectionError, match="timed out"):
                    await client.get("/x")

    async def test_invalid_json(self) -> None:
        response = httpx.Response(
            status_code=200,
            text="<html>oops</html>",
            request=httpx.Request("GET", "https://api.cloudflare.com/client/v4/x"),
        )
        async with CloudflareClient(_cfg()) as client:
            with patch.object(client._http, "request", new_callable=AsyncMock) as mock_req:  # type: ignore[union-attr]
                mock_req.return_value = response
                with pytest.raises(CloudParseError):
                    await client.get("/x")

    async def test_post_sends_json(self) -> None:
        async with CloudflareClient(_cfg()) as client:
            with patch.object(client._http, "request", new_callable=AsyncMock) as mock_req:  # type: ignore[union-attr]
                mock_req.return_value = _mock_response(_envelope([{"results": []}]), method="POST")
                await client.post("/q", {"sql": "SELECT 1"})
        args, kwargs = mock_req.call_args
        assert args == ("POST", "/q")
        assert kwargs["json"] == {"sql": "SELECT 1"}


class TestPagination:
    async def test_follows_total_pages(self) -> None:
        pages = [
            _mock_response(_envelope([{"id": 1}, {"id": 2}], result_info={"page": 1, "total_pages": 2})),
            _mock_response(_envelope([{"id": 3}], result_info={"page": 2, "total_pages": 2})),
        ]
        async with CloudflareClient(_cfg()) as client:
            with patch.object(client._http, "request", new_callable=AsyncMock) as mock_req:  # type: ignore[union-attr]
                mock_req.side_effect = pages
                items = await client.get_paginated("/list")
        assert [i["id"] for i in items] == [1, 2, 3]
        assert mock_req.call_count == 2
        assert mock_req.call_args_list[1].kwargs["params"]["page"] == 2

    async def test_short_page_stops_without_total(self) -> None:
        async with CloudflareClient(_cfg()) as client:
            with patch.object(client._http, "request", new_callable=AsyncMock) as mock_req:  # type: ignore[union-attr]
                mock_req.return_value = _mock_response(_envelope([{"id": 1}]))
                items = await client.get_paginated("/list")
        assert items == [{"id": 1}]
        assert mock_req.call_count == 1

    async def test_empty_listing(self) -> None:
        async with CloudflareClient(_cfg()) as client:
            with patch.object(client._http, "request", new_callable=AsyncMock) as mock_req:  # type: ignore[union-attr]
                mock_req.return_value = _mock_response(_envelope([], result_info={"total_pages": 0}))
                items = await client.get_paginated("/list")
        assert items == []


class TestGraphql:
    async def test_returns_data(self) -> None:
        async with CloudflareClient(_cfg()) as client:
            with patch.object(client._http, "request", new_callable=AsyncMock) as mock_req:  # type: ignore[union-attr]
                mock_req.return_value = _mock_response(
                    {"data": {"viewer": {"accounts": []}}, "errors": None}, method="POST"
                )
                data = await client.graphql("query {}", {"accountTag": "acct"})
        assert data == {"viewer": {"accounts": []}}
        args, kwargs = mock_req.call_args
        assert args[1] == client._config.graphql_url
        assert kwargs["json"]["variables"] == {"accountTag": "acct"}

    async def test_errors_raise(self) -> None:
        async with CloudflareClient(_cfg()) as client:
            with patch.object(client._http, "request", new_callable=AsyncMock) as mock_req:  # type: ignore[union-attr]
                mock_req.return_value = _mock_response(
                    {"data": None, "errors": [{"message": "unknown field"}]}, method="POST"
                )
                with pytest.raises(CloudApiError, match="unknown field"):
                    await client.graphql("query {}")

    async def test_missing_data_raises(self) -> None:
        async with CloudflareClient(_cfg()) as client:
            with patch.object(client._http, "request", new_callable=AsyncMock) as mock_req:  # type: ignore[union-attr]
                mock_req.return_value = _mock_response({"errors": []}, method="POST")
                with pytest.raises(CloudParseError):
                    await client.graphql("query {}")
