"""Cost estimation: pricing table, usage aggregation and forecasting."""

from fleetwatch.costs.estimator import (
    cost_breakdown,
    estimate,
    forecast,
    to_cents,
    usage_from_snapshots,
)
from fleetwatch.costs.pricing import (
    LineItem,
    PricingTable,
    ResourcePricing,
    default_pricing,
    load_pricing,
)

__all__ = [
    "LineItem",
    "PricingTable",
    "ResourcePricing",
    "cost_breakdown",
    "default_pricing",
    "estimate",
    "forecast",
    "load_pricing",
    "to_cents",
    "usage_from_snapshots",
]
