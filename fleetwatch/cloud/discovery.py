"""Resource discovery — lists account resources and normalises them to Assets."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from fleetwatch.cloud.client import CloudflareClient
from fleetwatch.cloud.exceptions import CloudApiError, CloudError, DiscoveryError
from fleetwatch.core.types import Asset, AssetType

logger = structlog.stdlib.get_logger()

_R2_PAGE_SIZE = 1000


def derive_project_name(name: str, presets: Mapping[str, str] | None = None) -> str:
    """Derive the project an asset belongs to from its name.

    A preset prefix matches when it equals the name or is followed by ``-``
    in it; the longest matching prefix wins and its tag is returned.
    Otherwise the first ``-`` separated segment is used, or the whole name
    when it contains no ``-``.
    """
    if presets:
        best: str | None = None
        for prefix in presets:
            if not prefix:
                continue
            if name == prefix or name.startswith(prefix + "-"):
                if best is None or len(prefix) > len(best):
                    best = prefix
        if best is not None:
            return presets[best]

    head, sep, _ = name.partition("-")
    return head if sep and head else name


def group_by_project(assets: Iterable[Asset]) -> dict[str, list[Asset]]:
    """Group assets by their project name, preserving input order."""
    projects: dict[str, list[Asset]] = {}
    for asset in assets:
        projects.setdefault(asset.project_name or "unknown", []).append(asset)
    return projects


def _str_field(raw: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = raw.get(key)
        if value:
            return str(value)
    return ""


class ResourceDiscovery:
    """Enumerates the account's resources, one resource type per call.

    Usage::

        discovery = ResourceDiscovery(client, presets={"kiamichi-biz": "kiamichi"})
        workers = await discovery.discover(AssetType.FUNCTION)
        assets, errors = await discovery.discover_all()
    """

    def __init__(
        self,
        client: CloudflareClient,
        presets: Mapping[str, str] | None = None,
    ) -> None:
        self._client = client
        self._presets = dict(presets or {})

    async def discover(self, resource_type: AssetType) -> list[Asset]:
        """List every asset of *resource_type*.

        Raises:
            DiscoveryError: the listing failed or its body was malformed.
        """
        try:
            raw_items = await self._list(resource_type)
            return [self._to_asset(resource_type, raw) for raw in raw_items]
        except CloudError as exc:
            status = exc.status if isinstance(exc, CloudApiError) else None
            raise DiscoveryError(resource_type.value, str(exc), status=status) from exc
        except (KeyError, TypeError, AttributeError) as exc:
            raise DiscoveryError(
                resource_type.value, f"malformed listing: {exc!r}"
            ) from exc

    async def discover_all(
        self, resource_types: Iterable[AssetType] | None = None
    ) -> tuple[list[Asset], dict[AssetType, DiscoveryError]]:
        """Discover several resource types concurrently.

        A failing type is logged and reported in the returned error map; the
        other types are unaffected. Unexpected exceptions are wrapped in
        :class:`DiscoveryError` so one broken listing cannot abort the cycle.
        """
        types = list(resource_types or AssetType)
        results = await asyncio.gather(
            *(self.discover(t) for t in types),
            return_exceptions=True,
        )

        assets: list[Asset] = []
        errors: dict[AssetType, DiscoveryError] = {}
        for resource_type, result in zip(types, results, strict=True):
            if isinstance(result, Exception) and not isinstance(result, DiscoveryError):
                logger.error(
                    "discovery_unexpected_error",
                    resource_type=resource_type.value,
                    exc_info=result,
                )
                result = DiscoveryError(resource_type.value, repr(result))
            if isinstance(result, DiscoveryError):
                errors[resource_type] = result
                logger.warning(
                    "discovery_failed",
                    resource_type=resource_type.value,
                    status=result.status,
                    error=str(result),
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                assets.extend(result)

        logger.info(
            "discovery_complete",
            assets=len(assets),
            failed_types=[t.value for t in errors],
        )
        return assets, errors

    # ── Listing per resource type ───────────────────────────────

    async def _list(self, resource_type: AssetType) -> list[dict[str, Any]]:
        account = self._client.account_id
        if resource_type is AssetType.FUNCTION:
            result = await self._client.get(f"/accounts/{account}/workers/scripts")
            return self._as_list(result)
        if resource_type is AssetType.BUCKET:
            return await self._list_r2_buckets()
        if resource_type is AssetType.RELATIONAL_DB:
            return await self._client.get_paginated(f"/accounts/{account}/d1/database")
        if resource_type is AssetType.KV_NAMESPACE:
            return await self._client.get_paginated(
                f"/accounts/{account}/storage/kv/namespaces"
            )
        if resource_type is AssetType.ACTOR_NAMESPACE:
            return await self._client.get_paginated(
                f"/accounts/{account}/workers/durable_objects/namespaces"
            )
        raise ValueError(f"Unsupported resource type: {resource_type}")

    async def _list_r2_buckets(self) -> list[dict[str, Any]]:
        """R2 paginates by cursor rather than page number."""
        path = f"/accounts/{self._client.account_id}/r2/buckets"
        buckets: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {"per_page": _R2_PAGE_SIZE}
            if cursor:
                params["cursor"] = cursor
            body = await self._client.get_envelope(path, params=params)
            result = body.get("result") or {}
            page = result.get("buckets") or []
            buckets.extend(self._as_list(page))
            cursor = (body.get("result_info") or {}).get("cursor")
            if not cursor or not page:
                break
        return buckets

    @staticmethod
    def _as_list(result: Any) -> list[dict[str, Any]]:
        if result is None:
            return []
        if not isinstance(result, list):
            raise TypeError(f"expected a list, got {type(result).__name__}")
        return result

    # ── Normalisation ───────────────────────────────────────────

    def _to_asset(self, resource_type: AssetType, raw: dict[str, Any]) -> Asset:
        project_source: str | None = None
        if resource_type is AssetType.FUNCTION:
            # Scripts are addressed by name; the API calls it "id".
            provider_id = str(raw["id"])
            name = provider_id
            created = _str_field(raw, "created_on")
        elif resource_type is AssetType.BUCKET:
            provider_id = str(raw["name"])
            name = provider_id
            created = _str_field(raw, "creation_date")
        elif resource_type is AssetType.RELATIONAL_DB:
            provider_id = str(raw["uuid"])
            name = str(raw["name"])
            created = _str_field(raw, "created_at")
        elif resource_type is AssetType.KV_NAMESPACE:
            provider_id = str(raw["id"])
            name = str(raw.get("title") or provider_id)
            created = ""
        else:
            provider_id = str(raw["id"])
            name = _str_field(raw, "name", "class") or provider_id
            created = ""
            # Namespaces belong to the project of the script that hosts them.
            project_source = _str_field(raw, "script") or None

        return Asset(
            id=Asset.make_id(resource_type, provider_id),
            provider_id=provider_id,
            name=name,
            type=resource_type,
            project_name=derive_project_name(project_source or name, self._presets),
            created_at=created,
        )
