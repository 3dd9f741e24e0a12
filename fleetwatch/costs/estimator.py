"""Cost estimation and forecasting from stored snapshots.

Usage is derived from snapshots in two ways:

- counters (requests, operations, rows, CPU/active time) are summed over
  every snapshot in the timeframe, since each snapshot covers one
  collection window;
- gauges (stored bytes) take the latest value per asset.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from decimal import ROUND_HALF_UP, Decimal

from fleetwatch.core.types import AssetType, CostBreakdown, Forecast, Metric, Snapshot
from fleetwatch.costs.pricing import PricingTable

CENTS = Decimal("0.01")

_BYTES_PER_GB = Decimal("1000000000")
_MS_PER_HOUR = Decimal("3600000")
# Durable Objects bill duration per GB-hour at a fixed 128 MB per instance.
_ACTOR_MEMORY_GB = Decimal("0.128")

_FORECAST_LOW = Decimal("0.9")
_FORECAST_HIGH = Decimal("1.1")

_COUNTERS: dict[AssetType, tuple[str, ...]] = {
    AssetType.FUNCTION: (Metric.REQUESTS, Metric.CPU_TIME_MS),
    AssetType.BUCKET: (Metric.CLASS_A_OPS, Metric.CLASS_B_OPS),
    AssetType.RELATIONAL_DB: (Metric.ROWS_READ, Metric.ROWS_WRITTEN),
    AssetType.KV_NAMESPACE: (Metric.READS, Metric.WRITES, Metric.DELETES, Metric.LISTS),
    AssetType.ACTOR_NAMESPACE: (Metric.REQUESTS, Metric.ACTIVE_TIME_MS),
}

_STORAGE_BILLED: frozenset[AssetType] = frozenset({AssetType.BUCKET, AssetType.KV_NAMESPACE})


def to_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def _decimal(value: float | int | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


# ── Pure estimation ─────────────────────────────────────────────


def estimate(
    resource_type: AssetType,
    usage: Mapping[str, float | int | Decimal],
    pricing: PricingTable,
) -> Decimal:
    """Cost in USD of *usage* for one resource type, rounded to cents."""
    total = Decimal("0")
    for item in pricing.for_type(resource_type).line_items:
        amount = usage.get(item.usage_key)
        if amount is None:
            continue
        total += item.cost(_decimal(amount))
    return to_cents(total)


def forecast(current: Decimal, previous: Decimal) -> Forecast:
    """Next-period forecast from the current and previous period totals.

    ``trend = current / previous`` and ``estimate = current * trend``, with a
    ±10 % interval. A zero *previous* period gives a flat forecast.
    """
    current = _decimal(current)
    previous = _decimal(previous)
    if previous == 0:
        projected = current
        trend_percent = 0
    else:
        trend = current / previous
        projected = current * trend
        trend_percent = round((trend - 1) * 100)

    projected = to_cents(projected)
    return Forecast(
        estimate=projected,
        low=to_cents(projected * _FORECAST_LOW),
        high=to_cents(projected * _FORECAST_HIGH),
        trend_percent=int(trend_percent),
    )


# ── Usage from snapshots ────────────────────────────────────────


def usage_from_snapshots(
    asset_type: AssetType,
    snapshots_by_asset: Mapping[str, Sequence[Snapshot]],
) -> dict[str, Decimal]:
    """Aggregate billing units for every asset of *asset_type*."""
    counters = _COUNTERS.get(asset_type, ())
    usage: dict[str, Decimal] = {str(name): Decimal("0") for name in counters}
    storage_bytes = Decimal("0")

    for snapshots in snapshots_by_asset.values():
        latest_storage: float | None = None
        for snapshot in snapshots:
            if snapshot.asset_type is not asset_type:
                continue
            for name in counters:
                value = snapshot.metrics.get(str(name))
                if value is not None:
                    usage[str(name)] += _decimal(value)
            value = snapshot.metrics.get(Metric.STORAGE_BYTES.value)
            if value is not None:
                latest_storage = value
        if latest_storage is not None:
            storage_bytes += _decimal(latest_storage)

    if asset_type in _STORAGE_BILLED:
        usage["storage_gb"] = storage_bytes / _BYTES_PER_GB
    if asset_type is AssetType.ACTOR_NAMESPACE:
        hours = usage.get(Metric.ACTIVE_TIME_MS.value, Decimal("0")) / _MS_PER_HOUR
        usage["gb_hours"] = hours * _ACTOR_MEMORY_GB
    return usage


def cost_breakdown(
    snapshots: Iterable[Snapshot],
    pricing: PricingTable,
    timeframe: str = "all",
) -> CostBreakdown:
    """Cost per resource type plus total for a set of snapshots."""
    grouped: dict[AssetType, dict[str, list[Snapshot]]] = {}
    for snapshot in snapshots:
        by_asset = grouped.setdefault(snapshot.asset_type, {})
        by_asset.setdefault(snapshot.asset_id, []).append(snapshot)

    by_type: dict[AssetType, Decimal] = {}
    for asset_type in AssetType:
        usage = usage_from_snapshots(asset_type, grouped.get(asset_type, {}))
        by_type[asset_type] = estimate(asset_type, usage, pricing)

    return CostBreakdown(
        timeframe=timeframe,
        by_type=by_type,
        total=to_cents(sum(by_type.values(), Decimal("0"))),
    )
