"""MonitorCycle — one discovery → collection → store → alert pass."""

from __future__ import annotations

import asyncio
import time

import structlog
from pydantic import BaseModel, Field

from fleetwatch.alerts.engine import AlertEngine
from fleetwatch.cloud.collector import CollectionWindow, MetricsCollector
from fleetwatch.cloud.discovery import ResourceDiscovery
from fleetwatch.cloud.exceptions import CollectionError
from fleetwatch.core.config import Settings, get_settings
from fleetwatch.core.types import Alert, Asset, AssetType, HealthStatus, Snapshot
from fleetwatch.health.evaluator import HealthEvaluator
from fleetwatch.health.store import SnapshotStore

logger = structlog.stdlib.get_logger()


def now_ms() -> int:
    return int(time.time() * 1000)


class CycleReport(BaseModel):
    """Outcome of one monitor cycle; also the service's working set."""

    timestamp: int
    assets: list[Asset] = Field(default_factory=list)
    discovery_errors: dict[AssetType, str] = Field(default_factory=dict)
    snapshots: list[Snapshot] = Field(default_factory=list)
    alerts: list[Alert] = Field(default_factory=list)
    duration_secs: float = 0.0

    @property
    def failed_assets(self) -> list[str]:
        return [s.asset_id for s in self.snapshots if s.status is HealthStatus.DOWN]

    @property
    def partial(self) -> bool:
        """True when at least one resource type could not be listed."""
        return bool(self.discovery_errors)


class MonitorCycle:
    """Runs a single monitoring pass over the whole account.

    All snapshots written by one pass share one timestamp. Discovery
    failures are recovered per resource type and collection failures per
    asset; a failed asset is recorded as a ``down`` snapshot.
    """

    def __init__(
        self,
        discovery: ResourceDiscovery,
        collector: MetricsCollector,
        evaluator: HealthEvaluator,
        store: SnapshotStore,
        engine: AlertEngine,
        settings: Settings | None = None,
    ) -> None:
        self._discovery = discovery
        self._collector = collector
        self._evaluator = evaluator
        self._store = store
        self._engine = engine
        self._settings = settings or get_settings()
        self._last_report: CycleReport | None = None

    @property
    def last_report(self) -> CycleReport | None:
        return self._last_report

    async def run_once(self, timestamp: int | None = None) -> CycleReport:
        """Run one cycle stamped at *timestamp* (epoch ms, default now)."""
        ts = timestamp if timestamp is not None else now_ms()
        with structlog.contextvars.bound_contextvars(cycle_ts=ts):
            return await self._run(ts)

    async def _run(self, ts: int) -> CycleReport:
        started = time.monotonic()
        assets, errors = await self._discovery.discover_all(
            self._settings.discovery.resource_types
        )

        window = CollectionWindow.ending_at(ts, self._settings.scheduler.interval_secs)
        semaphore = asyncio.Semaphore(max(1, self._settings.collector.max_concurrency))
        snapshots = list(
            await asyncio.gather(
                *(self._collect_one(asset, ts, window, semaphore) for asset in assets)
            )
        )

        inserted = self._store.put_many(
            snapshots, max_retained=self._settings.store.max_snapshots_per_asset
        )
        alerts = await self._engine.evaluate_many(snapshots)

        report = CycleReport(
            timestamp=ts,
            assets=assets,
            discovery_errors={t: str(e) for t, e in errors.items()},
            snapshots=snapshots,
            alerts=alerts,
            duration_secs=round(time.monotonic() - started, 3),
        )
        self._last_report = report

        logger.info(
            "cycle_complete",
            assets=len(assets),
            snapshots_written=inserted,
            failed_assets=len(report.failed_assets),
            failed_types=[t.value for t in errors],
            alerts_fired=len(alerts),
            duration_secs=report.duration_secs,
        )
        return report

    async def _collect_one(
        self,
        asset: Asset,
        timestamp: int,
        window: CollectionWindow,
        semaphore: asyncio.Semaphore,
    ) -> Snapshot:
        timeout = self._settings.collector.call_timeout_secs
        async with semaphore:
            try:
                metrics = await asyncio.wait_for(
                    self._collector.collect(asset, window), timeout=timeout
                )
            except TimeoutError:
                error = CollectionError(asset.id, f"timed out after {timeout}s")
            except CollectionError as exc:
                error = exc
            else:
                return self._evaluator.build_snapshot(asset, timestamp, metrics)

        logger.warning(
            "collection_failed",
            asset_id=asset.id,
            asset_type=asset.type.value,
            error=str(error),
        )
        return self._evaluator.build_snapshot(asset, timestamp, error=str(error))
