"""HealthEvaluator — classifies collected metrics into a HealthStatus."""

from __future__ import annotations

from collections.abc import Mapping

from fleetwatch.core.config import HealthConfig, get_settings
from fleetwatch.core.types import Asset, AssetType, HealthStatus, Snapshot


class HealthEvaluator:
    """Stateless classifier driven by the configured degraded thresholds.

    - ``down`` when collection failed for the asset.
    - ``degraded`` when any applicable threshold holds.
    - ``healthy`` otherwise.
    """

    def __init__(self, config: HealthConfig | None = None) -> None:
        self._config = config or get_settings().health

    def classify(
        self,
        asset_type: AssetType,
        metrics: Mapping[str, float],
        collection_failed: bool = False,
    ) -> HealthStatus:
        if collection_failed:
            return HealthStatus.DOWN

        for rule in self._config.degraded_when:
            if not rule.applies_to(asset_type):
                continue
            value = metrics.get(rule.metric.value)
            if value is not None and rule.condition.holds(value, rule.threshold):
                return HealthStatus.DEGRADED

        return HealthStatus.HEALTHY

    def build_snapshot(
        self,
        asset: Asset,
        timestamp: int,
        metrics: Mapping[str, float] | None = None,
        error: str | None = None,
    ) -> Snapshot:
        """Compose the immutable snapshot for one asset in one cycle."""
        values = {str(k): float(v) for k, v in (metrics or {}).items()}
        return Snapshot(
            asset_id=asset.id,
            asset_type=asset.type,
            project_name=asset.project_name,
            timestamp=timestamp,
            metrics=values,
            status=self.classify(asset.type, values, collection_failed=error is not None),
            error=error,
        )
