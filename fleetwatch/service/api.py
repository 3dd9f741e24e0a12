"""FleetService — read/query and admin operations over the monitor state.

Queries never trigger collection: they read the snapshot store, the last
cycle's working set, the alert ledger and the pricing table.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from fleetwatch.alerts.factory import AlertStack
from fleetwatch.cloud.discovery import group_by_project
from fleetwatch.core.timeframes import timeframe_cutoff
from fleetwatch.core.types import (
    Alert,
    AlertRule,
    Asset,
    AssetHealth,
    AssetType,
    CostBreakdown,
    Forecast,
    HealthStatus,
    Severity,
    Snapshot,
)
from fleetwatch.costs.estimator import cost_breakdown, forecast
from fleetwatch.costs.pricing import PricingTable, default_pricing
from fleetwatch.health.exceptions import AssetNotFoundError
from fleetwatch.health.store import SnapshotStore, uptime
from fleetwatch.service.cycle import MonitorCycle, now_ms

_DAY_MS = 24 * 3_600_000
FORECAST_PERIOD_MS = 30 * _DAY_MS


class Overview(BaseModel):
    """Assets of the latest cycle grouped by resource type."""

    timestamp: int | None = None
    project: str | None = None
    assets: dict[AssetType, list[Asset]] = Field(default_factory=dict)
    statuses: dict[str, HealthStatus] = Field(default_factory=dict)
    projects: list[str] = Field(default_factory=list)
    discovery_errors: dict[AssetType, str] = Field(default_factory=dict)

    @property
    def counts(self) -> dict[AssetType, int]:
        return {t: len(items) for t, items in self.assets.items()}

    @property
    def partial(self) -> bool:
        return bool(self.discovery_errors)


class AssetHistory(BaseModel):
    """Ordered snapshots for one asset with their uptime."""

    asset_id: str
    snapshots: list[Snapshot]
    uptime: float


class AlertsView(BaseModel):
    """Currently active alerts plus recent alert history."""

    active: list[Alert] = Field(default_factory=list)
    recent: list[Alert] = Field(default_factory=list)


class FleetService:
    """Query and admin facade used by the HTTP / CLI layer.

    Usage::

        service = FleetService(store, alert_stack, pricing, cycle=cycle)
        overview = service.get_overview(project="kiamichi")
        health = service.get_asset_health("kiamichi-biz-worker")
    """

    def __init__(
        self,
        store: SnapshotStore,
        alerts: AlertStack,
        pricing: PricingTable | None = None,
        cycle: MonitorCycle | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._alerts = alerts
        self._pricing = pricing or default_pricing()
        self._cycle = cycle
        self._clock = clock

    # ── Inventory & health ──────────────────────────────────────

    def get_overview(self, project: str | None = None) -> Overview:
        report = self._cycle.last_report if self._cycle is not None else None
        if report is None:
            return Overview(project=project)

        by_project = group_by_project(report.assets)
        selected = by_project.get(project, []) if project else report.assets

        grouped: dict[AssetType, list[Asset]] = {}
        for asset in selected:
            grouped.setdefault(asset.type, []).append(asset)

        latest = self._store.latest_all()
        statuses = {a.id: latest[a.id].status for a in selected if a.id in latest}

        return Overview(
            timestamp=report.timestamp,
            project=project,
            assets=grouped,
            statuses=statuses,
            projects=sorted(by_project),
            discovery_errors=dict(report.discovery_errors),
        )

    def get_asset_health(self, asset_id: str) -> AssetHealth:
        """Latest status and 24h / 7d / 30d uptime for *asset_id*.

        Raises:
            AssetNotFoundError: no snapshots exist for the asset.
        """
        latest = self._store.latest(asset_id)
        if latest is None:
            raise AssetNotFoundError(asset_id)
        return AssetHealth(
            asset_id=asset_id,
            asset_type=latest.asset_type,
            project_name=latest.project_name,
            status=latest.status,
            uptime=self._store.uptime_windows(asset_id, self._clock()),
            last_check=latest.timestamp,
            error=latest.error,
        )

    def get_history(self, asset_id: str, limit: int = 100) -> AssetHistory:
        """Most recent *limit* snapshots, oldest first.

        Raises:
            AssetNotFoundError: no snapshots exist for the asset.
        """
        if self._store.latest(asset_id) is None:
            raise AssetNotFoundError(asset_id)
        snapshots = self._store.history(asset_id, limit)
        return AssetHistory(asset_id=asset_id, snapshots=snapshots, uptime=uptime(snapshots))

    # ── Costs ───────────────────────────────────────────────────

    def get_costs(self, timeframe: str = "30d") -> CostBreakdown:
        """Cost per resource type for *timeframe* (unparseable means all time)."""
        cutoff = timeframe_cutoff(timeframe, self._clock())
        snapshots: list[Snapshot] = []
        for asset_id in self._store.asset_ids():
            if cutoff is None:
                snapshots.extend(self._store.history(asset_id))
            else:
                snapshots.extend(self._store.since(asset_id, cutoff))
        return cost_breakdown(snapshots, self._pricing, timeframe=timeframe)

    def get_forecast(self) -> Forecast:
        """Forecast the next 30 days from the last 30 days and the 30 before."""
        now = self._clock()
        current = self._period_total(now - FORECAST_PERIOD_MS, now + 1)
        previous = self._period_total(now - 2 * FORECAST_PERIOD_MS, now - FORECAST_PERIOD_MS)
        return forecast(current, previous)

    def _period_total(self, start_ms: int, end_ms: int) -> Decimal:
        snapshots: list[Snapshot] = []
        for asset_id in self._store.asset_ids():
            snapshots.extend(self._store.between(asset_id, start_ms, end_ms))
        return cost_breakdown(snapshots, self._pricing).total

    # ── Alerts ──────────────────────────────────────────────────

    def get_alerts(
        self,
        timeframe: str = "24h",
        severity: Severity | str | None = None,
    ) -> AlertsView:
        cutoff = timeframe_cutoff(timeframe, self._clock())
        return AlertsView(
            active=self._alerts.ledger.active(),
            recent=self._alerts.ledger.recent(since_ms=cutoff, severity=severity),
        )

    def get_alert_rules(self) -> list[AlertRule]:
        return self._alerts.rules.list_rules()

    def set_alert_rule(self, config: AlertRule | Mapping[str, Any]) -> AlertRule:
        """Validate and install an alert rule.

        Raises:
            RuleValidationError: *config* is not a valid rule.
        """
        return self._alerts.rules.set_rule(config)

    async def test_alert(self) -> dict[str, bool]:
        """Send a synthetic alert through every configured channel."""
        return await self._alerts.dispatcher.send_test_alert()
