"""Async client for the Cloudflare REST and GraphQL analytics APIs."""

from __future__ import annotations

from types import TracebackType
from typing import Any

import httpx
import structlog

from fleetwatch.cloud.exceptions import (
    CloudApiError,
    CloudConnectionError,
    CloudParseError,
)
from fleetwatch.core.config import CloudflareConfig, get_settings

logger = structlog.stdlib.get_logger()

_BODY_SNIPPET = 200


def _error_messages(body: dict[str, Any]) -> str:
    """Join the ``errors[].message`` entries of an API envelope."""
    errors = body.get("errors") or []
    messages = [
        str(e.get("message", e)) if isinstance(e, dict) else str(e)
        for e in errors
    ]
    return "; ".join(messages) or "unknown error"


class CloudflareClient:
    """Thin authenticated wrapper around ``httpx.AsyncClient``.

    Usage::

        async with CloudflareClient() as client:
            scripts = await client.get(f"/accounts/{client.account_id}/workers/scripts")
            data = await client.graphql(query, {"accountTag": client.account_id})
    """

    def __init__(
        self,
        config: CloudflareConfig | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or get_settings().cloudflare
        self._http = http
        self._owns_http = http is None

    @property
    def account_id(self) -> str:
        return self._config.account_id

    @property
    def connected(self) -> bool:
        return self._http is not None and not self._http.is_closed

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        if self.connected:
            return
        token = self._config.api_token.get_secret_value()
        self._http = httpx.AsyncClient(
            base_url=self._config.api_base,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(self._config.timeout_secs),
        )
        self._owns_http = True
        logger.info("cloudflare_client_connected", account_id=self.account_id)

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._http is not None and self._owns_http:
            await self._http.aclose()
        self._http = None

    async def __aenter__(self) -> CloudflareClient:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ── REST ────────────────────────────────────────────────────

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET *path* and return the unwrapped ``result`` field."""
        body = await self._request("GET", path, params=params)
        return body.get("result")

    async def get_envelope(
        self, path: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """GET *path* and return the full response envelope."""
        return await self._request("GET", path, params=params)

    async def post(self, path: str, payload: dict[str, Any]) -> Any:
        """POST JSON to *path* and return the unwrapped ``result`` field."""
        body = await self._request("POST", path, json=payload)
        return body.get("result")

    async def get_paginated(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        per_page: int | None = None,
    ) -> list[Any]:
        """Collect every page of a page-numbered list endpoint."""
        size = per_page or self._config.page_size
        items: list[Any] = []
        page = 1
        while True:
            query = {**(params or {}), "page": page, "per_page": size}
            body = await self._request("GET", path, params=query)
            result = body.get("result") or []
            if not isinstance(result, list):
                raise CloudParseError(f"Expected a list from {path}, got {type(result).__name__}")
            items.extend(result)

            info = body.get("result_info") or {}
            total_pages = info.get("total_pages")
            if total_pages is not None:
                if page >= int(total_pages):
                    break
            elif len(result) < size:
                break
            page += 1
        return items

    # ── GraphQL ─────────────────────────────────────────────────

    async def graphql(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run an analytics query and return its ``data`` object."""
        payload = {"query": query, "variables": variables or {}}
        body = await self._send("POST", self._config.graphql_url, json=payload)
        if body.get("errors"):
            raise CloudApiError(
                f"GraphQL error: {_error_messages(body)}",
                status=200,
                body=str(body.get("errors"))[:_BODY_SNIPPET],
            )
        data = body.get("data")
        if not isinstance(data, dict):
            raise CloudParseError("GraphQL response has no data object")
        return data

    # ── Internal ────────────────────────────────────────────────

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        body = await self._send(method, path, **kwargs)
        if body.get("success") is False:
            raise CloudApiError(
                f"Cloudflare API error: {_error_messages(body)}",
                status=200,
                body=str(body.get("errors"))[:_BODY_SNIPPET],
            )
        return body

    async def _send(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        if self._http is None:
            raise CloudConnectionError("HTTP client not connected")

        try:
            response = await self._http.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            snippet = exc.response.text[:_BODY_SNIPPET]
            raise CloudApiError(
                f"Cloudflare API returned {status}: {snippet}",
                status=status,
                body=snippet,
            ) from exc
        except httpx.TimeoutException as exc:
            raise CloudConnectionError(f"Cloudflare API timed out: {method} {url}") from exc
        except httpx.HTTPError as exc:
            raise CloudConnectionError(f"Cloudflare API request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise CloudParseError(
                f"Cloudflare API returned invalid JSON: {response.text[:_BODY_SNIPPET]}"
            ) from exc

        if not isinstance(body, dict):
            raise CloudParseError(f"Unexpected response body type {type(body).__name__}")
        return body
