"""Core module — config, types, logging."""

from fleetwatch.core.config import Settings, get_settings, load_settings, reset_settings
from fleetwatch.core.logging import setup_logging
from fleetwatch.core.types import (
    Alert,
    AlertRule,
    Asset,
    AssetHealth,
    AssetType,
    ChannelKind,
    Condition,
    CostBreakdown,
    Forecast,
    HealthStatus,
    HealthThreshold,
    Metric,
    Severity,
    Snapshot,
    UptimeWindows,
)

__all__ = [
    "Alert",
    "AlertRule",
    "Asset",
    "AssetHealth",
    "AssetType",
    "ChannelKind",
    "Condition",
    "CostBreakdown",
    "Forecast",
    "HealthStatus",
    "HealthThreshold",
    "Metric",
    "Settings",
    "Severity",
    "Snapshot",
    "UptimeWindows",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
