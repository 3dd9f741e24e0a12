"""Wiring of the complete monitor from settings."""

from __future__ import annotations

from dataclasses import dataclass

from fleetwatch.alerts.factory import AlertStack, create_alert_stack
from fleetwatch.cloud.client import CloudflareClient
from fleetwatch.cloud.collector import MetricsCollector
from fleetwatch.cloud.discovery import ResourceDiscovery
from fleetwatch.core.config import Settings
from fleetwatch.costs.pricing import load_pricing
from fleetwatch.health.evaluator import HealthEvaluator
from fleetwatch.health.store import SnapshotStore
from fleetwatch.service.api import FleetService
from fleetwatch.service.cycle import MonitorCycle
from fleetwatch.service.scheduler import MonitorScheduler


@dataclass
class FleetMonitor:
    """Every long-lived component of a running monitor."""

    client: CloudflareClient
    store: SnapshotStore
    alerts: AlertStack
    cycle: MonitorCycle
    scheduler: MonitorScheduler
    service: FleetService

    async def close(self) -> None:
        await self.scheduler.stop()
        await self.alerts.dispatcher.close()
        await self.client.close()


def build_monitor(settings: Settings, client: CloudflareClient | None = None) -> FleetMonitor:
    """Build the monitor around *client* (a new one from settings by default)."""
    client = client or CloudflareClient(settings.cloudflare)
    store = SnapshotStore()
    alerts = create_alert_stack(settings.alerts, store)

    cycle = MonitorCycle(
        discovery=ResourceDiscovery(client, presets=settings.discovery.project_presets),
        collector=MetricsCollector(client, settings.collector),
        evaluator=HealthEvaluator(settings.health),
        store=store,
        engine=alerts.engine,
        settings=settings,
    )
    scheduler = MonitorScheduler(
        cycle,
        interval_secs=settings.scheduler.interval_secs,
        run_on_start=settings.scheduler.run_on_start,
    )
    service = FleetService(
        store=store,
        alerts=alerts,
        pricing=load_pricing(settings.pricing),
        cycle=cycle,
    )
    return FleetMonitor(
        client=client,
        store=store,
        alerts=alerts,
        cycle=cycle,
        scheduler=scheduler,
        service=service,
    )
