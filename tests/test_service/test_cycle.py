"""Tests for MonitorCycle — one pass over discovery, collection, storage and alerts."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

import pytest

from fleetwatch.alerts.factory import create_alert_stack
from fleetwatch.cloud.collector import CollectionWindow
from fleetwatch.cloud.exceptions import CollectionError, DiscoveryError
from fleetwatch.core.config import CollectorConfig, Settings
from fleetwatch.core.types import Asset, AssetType, HealthStatus
from fleetwatch.health.evaluator import HealthEvaluator
from fleetwatch.health.store import SnapshotStore
from fleetwatch.service.api import FleetService
from fleetwatch.service.cycle import MonitorCycle

TS = 1_767_268_800_000  # 2026-01-01T12:00:00Z

# ── Helpers ─────────────────────────────────────────────────────


class FakeDiscovery:
    def __init__(
        self,
        assets: list[Asset],
        errors: dict[AssetType, DiscoveryError] | None = None,
    ) -> None:
        self._assets = assets
        self._errors = errors or {}

    async def discover_all(
        self, resource_types: Iterable[AssetType] | None = None
    ) -> tuple[list[Asset], dict[AssetType, DiscoveryError]]:
        return list(self._assets), dict(self._errors)


class FakeCollector:
    def __init__(
        self,
        metrics: dict[str, dict[str, float]],
        fail: Iterable[str] = (),
        hang: Iterable[str] = (),
    ) -> None:
        self._metrics = metrics
        self._fail = set(fail)
        self._hang = set(hang)
        self.windows: list[CollectionWindow] = []

    async def collect(self, asset: Asset, window: CollectionWindow) -> dict[str, float]:
        self.windows.append(window)
        if asset.id in self._fail:
            raise CollectionError(asset.id, "boom")
        if asset.id in self._hang:
            await asyncio.sleep(10)
        return dict(self._metrics.get(asset.id, {}))


def _asset(asset_id: str, asset_type: AssetType, project: str) -> Asset:
    return Asset(
        id=asset_id,
        provider_id=asset_id,
        name=f"{project}-{asset_id}",
        type=asset_type,
        project_name=project,
    )


FLEET = [
    _asset("w1", AssetType.FUNCTION, "blog"),
    _asset("w2", AssetType.FUNCTION, "blog"),
    _asset("media", AssetType.BUCKET, "media"),
    _asset("db1", AssetType.RELATIONAL_DB, "blog"),
]


def _setup(
    assets: list[Asset] = FLEET,
    metrics: dict[str, dict[str, float]] | None = None,
    errors: dict[AssetType, DiscoveryError] | None = None,
    fail: Iterable[str] = (),
    hang: Iterable[str] = (),
    **collector_cfg: object,
) -> tuple[MonitorCycle, SnapshotStore, FleetService, FakeCollector]:
    settings = Settings(collector=CollectorConfig(**collector_cfg))  # type: ignore[arg-type]
    store = SnapshotStore()
    stack = create_alert_stack(settings.alerts, store)
    collector = FakeCollector(metrics or {}, fail=fail, hang=hang)
    cycle = MonitorCycle(
        discovery=FakeDiscovery(assets, errors),  # type: ignore[arg-type]
        collector=collector,  # type: ignore[arg-type]
        evaluator=HealthEvaluator(settings.health),
        store=store,
        engine=stack.engine,
        settings=settings,
    )
    service = FleetService(store, stack, cycle=cycle, clock=lambda: TS)
    return cycle, store, service, collector


# ── Tests ───────────────────────────────────────────────────────


class TestRunOnce:
    async def test_one_snapshot_per_asset_same_timestamp(self) -> None:
        cycle, store, service, _ = _setup(metrics={"w1": {"requests": 100, "error_rate": 0.0}})
        report = await cycle.run_once(TS)

        assert len(report.snapshots) == 4
        assert {s.timestamp for s in report.snapshots} == {TS}
        assert store.count() == 4
        assert cycle.last_report is report
        assert not report.partial
        assert report.failed_assets == []

        overview = service.get_overview()
        assert overview.counts == {
            AssetType.FUNCTION: 2,
            AssetType.BUCKET: 1,
            AssetType.RELATIONAL_DB: 1,
        }
        assert overview.projects == ["blog", "media"]
        assert overview.statuses["w1"] is HealthStatus.HEALTHY

    async def test_project_filter(self) -> None:
        cycle, _, service, _ = _setup()
        await cycle.run_once(TS)
        overview = service.get_overview(project="blog")
        assert overview.counts == {AssetType.FUNCTION: 2, AssetType.RELATIONAL_DB: 1}
        assert service.get_overview(project="nope").assets == {}

    async def test_window_covers_interval(self) -> None:
        cycle, _, _, collector = _setup()
        await cycle.run_once(TS)
        window = collector.windows[0]
        assert window.end == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
        assert window.end - window.start == timedelta(seconds=300)

    async def test_same_timestamp_is_idempotent(self) -> None:
        cycle, store, _, _ = _setup()
        await cycle.run_once(TS)
        await cycle.run_once(TS)
        assert store.count() == 4


class TestFailures:
    async def test_failed_asset_recorded_down(self) -> None:
        cycle, store, _, _ = _setup(fail=["media"])
        report = await cycle.run_once(TS)

        assert report.failed_assets == ["media"]
        latest = store.latest("media")
        assert latest is not None
        assert latest.status is HealthStatus.DOWN
        assert latest.error == "media: boom"
        assert store.count() == 4

    async def test_timeout_recorded_down(self) -> None:
        cycle, store, _, _ = _setup(hang=["db1"], call_timeout_secs=0.05)
        report = await cycle.run_once(TS)

        assert report.failed_assets == ["db1"]
        latest = store.latest("db1")
        assert latest is not None
        assert "timed out" in (latest.error or "")

    async def test_discovery_error_gives_partial_data(self) -> None:
        errors = {AssetType.KV_NAMESPACE: DiscoveryError("kv-namespace", "HTTP 403", status=403)}
        cycle, _, service, _ = _setup(errors=errors)
        report = await cycle.run_once(TS)

        assert report.partial
        assert report.discovery_errors == {AssetType.KV_NAMESPACE: "kv-namespace: HTTP 403"}
        assert len(report.snapshots) == 4
        assert service.get_overview().partial

    async def test_cancelled_cycle_writes_nothing(self) -> None:
        cycle, store, _, _ = _setup(hang=["db1"], call_timeout_secs=30)
        task = asyncio.create_task(cycle.run_once(TS))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert store.count() == 0
        assert cycle.last_report is None


class TestAlerting:
    async def test_violation_fires_during_cycle(self) -> None:
        cycle, _, service, _ = _setup(metrics={"w1": {"error_rate": 0.2}})
        report = await cycle.run_once(TS)

        assert [a.asset_id for a in report.alerts] == ["w1"]
        assert len(service.get_alerts().active) == 1


class TestAssetIdentity:
    async def test_same_name_across_types_kept_apart(self) -> None:
        fleet = [
            Asset(
                id=Asset.make_id(AssetType.FUNCTION, "blog"),
                provider_id="blog",
                name="blog",
                type=AssetType.FUNCTION,
                project_name="blog",
            ),
            Asset(
                id=Asset.make_id(AssetType.BUCKET, "blog"),
                provider_id="blog",
                name="blog",
                type=AssetType.BUCKET,
                project_name="blog",
            ),
        ]
        cycle, store, _, _ = _setup(assets=fleet, fail=["bucket:blog"])
        report = await cycle.run_once(TS)

        assert len(report.snapshots) == 2
        assert store.count() == 2
        function_snap = store.latest("function:blog")
        bucket_snap = store.latest("bucket:blog")
        assert function_snap is not None and function_snap.status is HealthStatus.HEALTHY
        assert bucket_snap is not None and bucket_snap.status is HealthStatus.DOWN
