"""MetricsCollector — per-asset usage metrics from the analytics APIs.

Each asset type maps to one collection routine:

- function: requests, errors, CPU time, p99 latency and derived error rate
- bucket: object count, stored bytes, Class A / Class B operations
- relational-db: queries, average / slow query time, rows, size, tables
- kv-namespace: operation counts by kind, key count, stored bytes
- actor-namespace: requests, errors, error rate, active time
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from fleetwatch.cloud import queries
from fleetwatch.cloud.client import CloudflareClient
from fleetwatch.cloud.exceptions import CloudError, CollectionError
from fleetwatch.core.config import CollectorConfig, get_settings
from fleetwatch.core.types import Asset, AssetType, Metric

logger = structlog.stdlib.get_logger()

# Storage gauges are only sampled a few times a day.
_STORAGE_LOOKBACK = timedelta(days=1)

_LIST_TABLES_SQL = (
    "SELECT name FROM sqlite_master WHERE type = 'table' "
    "AND name NOT LIKE 'sqlite_%' AND name NOT LIKE '_cf_%'"
)


@dataclass(frozen=True)
class CollectionWindow:
    """Analytics time range covered by one collection cycle."""

    start: datetime
    end: datetime

    @classmethod
    def ending_at(cls, timestamp_ms: int, interval_secs: float) -> CollectionWindow:
        end = datetime.fromtimestamp(timestamp_ms / 1000.0, tz=UTC)
        return cls(start=end - timedelta(seconds=interval_secs), end=end)

    @property
    def start_iso(self) -> str:
        return _iso(self.start)

    @property
    def end_iso(self) -> str:
        return _iso(self.end)


def _iso(dt: datetime) -> str:
    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def error_rate(errors: float, requests: float) -> float:
    """``errors / (errors + requests)``, defined as 0 when both are 0."""
    denominator = errors + requests
    if denominator <= 0:
        return 0.0
    return errors / denominator


def _account_node(data: dict[str, Any]) -> dict[str, Any]:
    accounts = (data.get("viewer") or {}).get("accounts") or []
    if not accounts:
        return {}
    node = accounts[0]
    return node if isinstance(node, dict) else {}


def _sum_field(rows: list[dict[str, Any]] | None, group: str, field: str) -> float:
    total = 0.0
    for row in rows or []:
        value = (row.get(group) or {}).get(field)
        if value is not None:
            total += float(value)
    return total


def _max_field(rows: list[dict[str, Any]] | None, group: str, field: str) -> float:
    values = [
        float(v)
        for row in rows or []
        if (v := (row.get(group) or {}).get(field)) is not None
    ]
    return max(values) if values else 0.0


def _sum_by_action(rows: list[dict[str, Any]] | None) -> dict[str, float]:
    totals: dict[str, float] = {}
    for row in rows or []:
        action = str((row.get("dimensions") or {}).get("actionType", ""))
        requests = float((row.get("sum") or {}).get("requests") or 0)
        totals[action] = totals.get(action, 0.0) + requests
    return totals


class MetricsCollector:
    """Fetches usage metrics for one asset at a time.

    The collector holds no state between calls; it only reads from the
    provider. Failures surface as :class:`CollectionError` and isolation
    across assets is the caller's concern.

    Usage::

        collector = MetricsCollector(client)
        window = CollectionWindow.ending_at(now_ms, interval_secs=300)
        metrics = await collector.collect(asset, window)
    """

    def __init__(
        self,
        client: CloudflareClient,
        config: CollectorConfig | None = None,
    ) -> None:
        self._client = client
        self._config = config or get_settings().collector

    async def collect(self, asset: Asset, window: CollectionWindow) -> dict[str, float]:
        """Return the metrics mapping for *asset* over *window*.

        Raises:
            CollectionError: any upstream failure or unexpected body shape.
        """
        try:
            if asset.type is AssetType.FUNCTION:
                return await self._collect_function(asset, window)
            if asset.type is AssetType.BUCKET:
                return await self._collect_bucket(asset, window)
            if asset.type is AssetType.RELATIONAL_DB:
                return await self._collect_database(asset, window)
            if asset.type is AssetType.KV_NAMESPACE:
                return await self._collect_kv(asset, window)
            if asset.type is AssetType.ACTOR_NAMESPACE:
                return await self._collect_actor(asset, window)
        except CloudError as exc:
            raise CollectionError(asset.id, str(exc)) from exc
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise CollectionError(asset.id, f"unexpected analytics shape: {exc!r}") from exc
        raise CollectionError(asset.id, f"no collector for asset type {asset.type}")

    def _variables(self, window: CollectionWindow, **extra: Any) -> dict[str, Any]:
        return {
            "accountTag": self._client.account_id,
            "start": window.start_iso,
            "end": window.end_iso,
            **extra,
        }

    # ── Per asset type ──────────────────────────────────────────

    async def _collect_function(
        self, asset: Asset, window: CollectionWindow
    ) -> dict[str, float]:
        data = await self._client.graphql(
            queries.WORKER_METRICS,
            self._variables(window, scriptName=asset.provider_id),
        )
        rows = _account_node(data).get("workersInvocationsAdaptive")
        requests = _sum_field(rows, "sum", "requests")
        errors = _sum_field(rows, "sum", "errors")
        cpu_us = _sum_field(rows, "sum", "cpuTimeUs")
        wall_p99_us = _max_field(rows, "quantiles", "wallTimeP99")
        return {
            Metric.REQUESTS: requests,
            Metric.ERRORS: errors,
            Metric.CPU_TIME_MS: cpu_us / 1000.0,
            Metric.LATENCY_MS: wall_p99_us / 1000.0,
            Metric.ERROR_RATE: error_rate(errors, requests),
        }

    async def _collect_bucket(self, asset: Asset, window: CollectionWindow) -> dict[str, float]:
        data = await self._client.graphql(
            queries.R2_METRICS,
            self._variables(
                window,
                bucketName=asset.provider_id,
                storageStart=_iso(window.end - _STORAGE_LOOKBACK),
            ),
        )
        node = _account_node(data)
        storage = node.get("storage")
        by_action = _sum_by_action(node.get("operations"))
        return {
            Metric.OBJECT_COUNT: _max_field(storage, "max", "objectCount"),
            Metric.STORAGE_BYTES: (
                _max_field(storage, "max", "payloadSize")
                + _max_field(storage, "max", "metadataSize")
            ),
            Metric.CLASS_A_OPS: sum(
                v for k, v in by_action.items() if k in queries.R2_CLASS_A_ACTIONS
            ),
            Metric.CLASS_B_OPS: sum(
                v for k, v in by_action.items() if k in queries.R2_CLASS_B_ACTIONS
            ),
        }

    async def _collect_database(
        self, asset: Asset, window: CollectionWindow
    ) -> dict[str, float]:
        data = await self._client.graphql(
            queries.D1_METRICS,
            self._variables(
                window,
                databaseId=asset.provider_id,
                slowMs=self._config.slow_query_ms,
            ),
        )
        node = _account_node(data)
        usage = node.get("usage")
        queries_total = _sum_field(usage, "sum", "readQueries") + _sum_field(
            usage, "sum", "writeQueries"
        )
        batch_ms = _sum_field(usage, "sum", "queryBatchTimeMs")
        slow = sum(float(row.get("count") or 0) for row in node.get("slow") or [])

        details = await self._client.get(
            f"/accounts/{self._client.account_id}/d1/database/{asset.provider_id}"
        ) or {}

        metrics: dict[str, float] = {
            Metric.QUERIES: queries_total,
            Metric.AVG_QUERY_MS: batch_ms / queries_total if queries_total else 0.0,
            Metric.SLOW_QUERIES: slow,
            Metric.ROWS_READ: _sum_field(usage, "sum", "rowsRead"),
            Metric.ROWS_WRITTEN: _sum_field(usage, "sum", "rowsWritten"),
            Metric.STORAGE_BYTES: float(details.get("file_size") or 0),
            Metric.TABLE_COUNT: float(details.get("num_tables") or 0),
        }

        if self._config.count_d1_rows:
            try:
                metrics[Metric.ROW_COUNT] = await self._count_rows(asset.provider_id)
            except (CloudError, KeyError, TypeError, ValueError) as exc:
                # Size and query metrics are still valid without a row count.
                logger.warning("d1_row_count_failed", asset_id=asset.id, error=str(exc))

        return metrics

    async def _count_rows(self, database_id: str) -> float:
        path = f"/accounts/{self._client.account_id}/d1/database/{database_id}/query"
        tables = self._query_rows(await self._client.post(path, {"sql": _LIST_TABLES_SQL}))
        names = [str(row["name"]) for row in tables]
        if not names:
            return 0.0

        counts = " + ".join(
            '(SELECT COUNT(*) FROM "{}")'.format(name.replace('"', '""')) for name in names
        )
        rows = self._query_rows(
            await self._client.post(path, {"sql": f"SELECT {counts} AS row_count"})
        )
        return float(rows[0]["row_count"]) if rows else 0.0

    @staticmethod
    def _query_rows(result: Any) -> list[dict[str, Any]]:
        """Extract ``results`` from a D1 query response (one entry per statement)."""
        if not isinstance(result, list) or not result:
            return []
        first = result[0]
        rows = first.get("results") if isinstance(first, dict) else None
        return rows if isinstance(rows, list) else []

    async def _collect_kv(self, asset: Asset, window: CollectionWindow) -> dict[str, float]:
        data = await self._client.graphql(
            queries.KV_METRICS,
            self._variables(
                window,
                namespaceId=asset.provider_id,
                storageStart=(window.end - _STORAGE_LOOKBACK).date().isoformat(),
            ),
        )
        node = _account_node(data)
        by_action = _sum_by_action(node.get("operations"))
        storage = node.get("storage")
        return {
            Metric.READS: by_action.get("read", 0.0),
            Metric.WRITES: by_action.get("write", 0.0),
            Metric.DELETES: by_action.get("delete", 0.0),
            Metric.LISTS: by_action.get("list", 0.0),
            Metric.KEY_COUNT: _max_field(storage, "max", "keyCount"),
            Metric.STORAGE_BYTES: _max_field(storage, "max", "byteCount"),
        }

    async def _collect_actor(self, asset: Asset, window: CollectionWindow) -> dict[str, float]:
        data = await self._client.graphql(
            queries.DURABLE_OBJECT_METRICS,
            self._variables(window, namespaceId=asset.provider_id),
        )
        node = _account_node(data)
        invocations = node.get("invocations")
        requests = _sum_field(invocations, "sum", "requests")
        errors = _sum_field(invocations, "sum", "errors")
        active_us = _sum_field(node.get("periodic"), "sum", "activeTime")
        return {
            Metric.REQUESTS: requests,
            Metric.ERRORS: errors,
            Metric.ERROR_RATE: error_rate(errors, requests),
            Metric.ACTIVE_TIME_MS: active_us / 1000.0,
        }
