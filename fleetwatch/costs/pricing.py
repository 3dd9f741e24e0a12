"""Pluggable pricing table with published-rate defaults."""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from fleetwatch.core.types import AssetType

_MILLION = Decimal("1000000")


class LineItem(BaseModel):
    """One billable usage dimension: ``max(0, usage - free) / unit_size * rate``."""

    usage_key: str
    free_allowance: Decimal = Decimal("0")
    unit_size: Decimal = Field(default=Decimal("1"), gt=0)
    rate: Decimal = Decimal("0")

    def cost(self, usage: Decimal) -> Decimal:
        billable = max(Decimal("0"), usage - self.free_allowance)
        return billable / self.unit_size * self.rate


class ResourcePricing(BaseModel):
    """Line items billed for one resource type."""

    line_items: list[LineItem] = Field(default_factory=list)

    def item(self, usage_key: str) -> LineItem | None:
        for item in self.line_items:
            if item.usage_key == usage_key:
                return item
        return None


class PricingTable(BaseModel):
    """Pricing per resource type; missing types cost nothing."""

    resources: dict[AssetType, ResourcePricing] = Field(default_factory=dict)

    def for_type(self, asset_type: AssetType) -> ResourcePricing:
        return self.resources.get(asset_type, ResourcePricing())

    def with_overrides(self, overrides: Mapping[str, Any]) -> PricingTable:
        """Return a copy with *overrides* merged in.

        *overrides* maps resource type to ``{usage_key: {field: value}}``;
        fields of an existing line item are replaced, unknown usage keys
        add a new line item.

        Raises:
            ValueError: an override names an unknown resource type.
        """
        resources = {k: v.model_copy(deep=True) for k, v in self.resources.items()}
        for type_key, items in overrides.items():
            asset_type = AssetType(type_key)
            pricing = resources.setdefault(asset_type, ResourcePricing())
            for usage_key, fields in (items or {}).items():
                existing = pricing.item(usage_key)
                merged = {**(existing.model_dump() if existing else {}), **fields}
                merged["usage_key"] = usage_key
                item = LineItem.model_validate(merged)
                if existing is None:
                    pricing.line_items.append(item)
                else:
                    pricing.line_items[pricing.line_items.index(existing)] = item
        return PricingTable(resources=resources)


def _item(usage_key: str, rate: str, free: str | int = 0, unit: Decimal = _MILLION) -> LineItem:
    return LineItem(
        usage_key=usage_key,
        free_allowance=Decimal(free),
        unit_size=unit,
        rate=Decimal(rate),
    )


def default_pricing() -> PricingTable:
    """Workers Paid plan rates in USD per billing unit."""
    one = Decimal("1")
    return PricingTable(
        resources={
            AssetType.FUNCTION: ResourcePricing(
                line_items=[
                    _item("requests", "0.30", free=10_000_000),
                    _item("cpu_time_ms", "0.02"),
                ]
            ),
            AssetType.BUCKET: ResourcePricing(
                line_items=[
                    _item("storage_gb", "0.015", free=10, unit=one),
                    _item("class_a_ops", "4.50", free=1_000_000),
                    _item("class_b_ops", "0.36", free=10_000_000),
                ]
            ),
            AssetType.RELATIONAL_DB: ResourcePricing(
                line_items=[
                    _item("rows_read", "0.001", free=5_000_000),
                    _item("rows_written", "1.00", free=100_000),
                ]
            ),
            AssetType.KV_NAMESPACE: ResourcePricing(
                line_items=[
                    _item("reads", "0.50", free=100_000),
                    _item("writes", "5.00", free=1_000),
                    _item("deletes", "5.00", free=1_000),
                    _item("lists", "5.00", free=1_000),
                    _item("storage_gb", "0.50", unit=one),
                ]
            ),
            AssetType.ACTOR_NAMESPACE: ResourcePricing(
                line_items=[
                    _item("requests", "0.15"),
                    _item("gb_hours", "12.50", unit=one),
                ]
            ),
        }
    )


def load_pricing(overrides: Mapping[str, Any] | None = None) -> PricingTable:
    """Default pricing with optional configuration overrides applied."""
    table = default_pricing()
    if overrides:
        table = table.with_overrides(overrides)
    return table
