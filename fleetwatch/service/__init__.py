"""Monitor cycle, scheduler and the query facade."""

from fleetwatch.service.api import AlertsView, AssetHistory, FleetService, Overview
from fleetwatch.service.app import FleetMonitor, build_monitor
from fleetwatch.service.cycle import CycleReport, MonitorCycle
from fleetwatch.service.scheduler import MonitorScheduler

__all__ = [
    "AlertsView",
    "AssetHistory",
    "CycleReport",
    "FleetMonitor",
    "FleetService",
    "MonitorCycle",
    "MonitorScheduler",
    "Overview",
    "build_monitor",
]
