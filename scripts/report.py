#!/usr/bin/env python3
"""One-shot report CLI — run a single monitor cycle and print a summary.

Usage::

    # Full account, JSON summary on stdout
    python scripts/report.py

    # Restrict the overview to one project
    python scripts/report.py --project kiamichi

    # Cost timeframe for the breakdown
    python scripts/report.py --timeframe 7d

    # Human-readable table instead of JSON
    python scripts/report.py --table
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from decimal import Decimal
from typing import Any

from fleetwatch.core.config import load_settings
from fleetwatch.core.logging import setup_logging
from fleetwatch.service.app import build_monitor


def _decimal_default(obj: object) -> str:
    if isinstance(obj, Decimal):
        return str(obj)
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def _render_table(summary: dict[str, Any]) -> str:
    """Render the per-asset status list as an ASCII table."""
    lines: list[str] = []
    header = f"{'Type':<16}  {'Status':<9}  {'Project':<16}  Asset"
    lines.append(header)
    lines.append("-" * len(header))
    for row in summary["assets"]:
        lines.append(
            f"{row['type']:<16}  {row['status']:<9}  {row['project'][:16]:<16}  {row['id']}"
        )
    lines.append("")
    lines.append(f"Cost ({summary['costs']['timeframe']}): ${summary['costs']['total']}")
    lines.append(
        f"Forecast: ${summary['forecast']['estimate']} "
        f"({summary['forecast']['trend_percent']:+d}%)"
    )
    if summary["discovery_errors"]:
        lines.append("Partial data, failed types: " + ", ".join(summary["discovery_errors"]))
    return "\n".join(lines)


async def run_report(args: argparse.Namespace) -> int:
    """Execute one cycle and display the results."""
    settings = load_settings(args.config)
    setup_logging(level="WARNING")

    monitor = build_monitor(settings)
    try:
        await monitor.client.connect()
        report = await monitor.cycle.run_once()
    finally:
        await monitor.close()

    service = monitor.service
    overview = service.get_overview(project=args.project)
    costs = service.get_costs(args.timeframe)
    summary: dict[str, Any] = {
        "timestamp": report.timestamp,
        "projects": overview.projects,
        "counts": {t.value: n for t, n in overview.counts.items()},
        "assets": [
            {
                "id": asset.id,
                "type": asset.type.value,
                "project": asset.project_name,
                "status": overview.statuses.get(asset.id, "unknown"),
            }
            for assets in overview.assets.values()
            for asset in assets
        ],
        "discovery_errors": {t.value: msg for t, msg in overview.discovery_errors.items()},
        "alerts": [a.model_dump(mode="json") for a in report.alerts],
        "costs": costs.model_dump(mode="json"),
        "forecast": service.get_forecast().model_dump(mode="json"),
    }

    if args.table:
        print(_render_table(summary))
    else:
        print(json.dumps(summary, indent=2, default=_decimal_default))

    return 2 if report.failed_assets or report.partial else 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run one monitor cycle and print a fleet summary.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument("--project", default=None, help="Only show this project")
    parser.add_argument("--timeframe", default="30d", help="Cost timeframe, e.g. 24h, 7d, 1m")
    parser.add_argument("--table", action="store_true", help="Print a table instead of JSON")
    args = parser.parse_args()

    code = asyncio.run(run_report(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
