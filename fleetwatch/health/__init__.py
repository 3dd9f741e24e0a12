"""Snapshot storage, uptime and health classification."""

from fleetwatch.health.evaluator import HealthEvaluator
from fleetwatch.health.exceptions import AssetNotFoundError, HealthError
from fleetwatch.health.store import SnapshotStore, uptime

__all__ = [
    "AssetNotFoundError",
    "HealthError",
    "HealthEvaluator",
    "SnapshotStore",
    "uptime",
]
