#!/usr/bin/env python3
"""Service entrypoint — wires all components and runs the monitor loop.

Usage::

    # Run with default config
    python scripts/run.py

    # Custom config file
    python scripts/run.py --config config/settings.yaml

    # Override log level
    python scripts/run.py --log-level DEBUG

    # Poll every minute and send a test notification on startup
    python scripts/run.py --interval 60 --test-alert
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

import structlog

from fleetwatch.core.config import load_settings
from fleetwatch.core.logging import setup_logging
from fleetwatch.service.app import build_monitor
from fleetwatch.service.cycle import CycleReport

logger = structlog.get_logger(__name__)


def _log_report(report: CycleReport) -> None:
    logger.info(
        "cycle_summary",
        timestamp=report.timestamp,
        assets=len(report.assets),
        down=report.failed_assets,
        alerts=[a.id for a in report.alerts],
        partial=report.partial,
    )


async def run(args: argparse.Namespace) -> int:
    """Start the monitor and run until interrupted."""
    settings = load_settings(args.config)
    if args.interval is not None:
        settings.scheduler.interval_secs = args.interval
    setup_logging(level=args.log_level)

    if not settings.cloudflare.account_id or not settings.cloudflare.api_token.get_secret_value():
        logger.error("missing_credentials")
        print(
            "Cloudflare credentials missing. Set cloudflare.account_id and "
            "cloudflare.api_token in config/settings.yaml.",
            file=sys.stderr,
        )
        return 1

    logger.info(
        "monitor_starting",
        account_id=settings.cloudflare.account_id,
        interval_secs=settings.scheduler.interval_secs,
        resource_types=[t.value for t in settings.discovery.resource_types],
        rules=len(settings.alerts.rules),
        telegram=settings.alerts.telegram.enabled,
        discord=settings.alerts.discord.enabled,
    )

    monitor = build_monitor(settings)
    await monitor.client.connect()
    if args.test_alert:
        results = await monitor.service.test_alert()
        logger.info("test_alert_sent", results=results)

    monitor.scheduler.on_cycle(_log_report)
    await monitor.scheduler.start()

    # ── Wait for shutdown signal ─────────────────────────────────
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows: signal handlers not supported on ProactorEventLoop
            pass

    try:
        await stop_event.wait()
    except KeyboardInterrupt:
        logger.info("keyboard_interrupt")

    # ── Graceful shutdown ────────────────────────────────────────
    logger.info("monitor_shutting_down")
    await monitor.close()

    logger.info(
        "monitor_stopped",
        cycles=monitor.scheduler.cycle_count,
        cycle_errors=monitor.scheduler.error_count,
        snapshots=monitor.store.count(),
        active_alerts=len(monitor.alerts.ledger.active()),
    )
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Monitor Cloudflare account resources: health, alerts and costs.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between monitor cycles (overrides scheduler.interval_secs)",
    )
    parser.add_argument(
        "--test-alert",
        action="store_true",
        help="Send a test notification through every channel on startup",
    )
    args = parser.parse_args()

    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
