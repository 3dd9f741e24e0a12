"""Central alert dispatcher — routes alerts to their configured channel."""

from __future__ import annotations

import time
import uuid

import structlog

from fleetwatch.alerts.channels import LogChannel, NotificationChannel
from fleetwatch.alerts.exceptions import NotificationError
from fleetwatch.alerts.formatters import to_alert_message
from fleetwatch.core.logging import ALERT_LOGGER_NAME
from fleetwatch.core.types import Alert, ChannelKind, Condition, Severity

# Dedicated structured logger recording every fired / resolved alert.
alert_logger = structlog.get_logger(ALERT_LOGGER_NAME)

logger = structlog.get_logger(__name__)


class AlertDispatcher:
    """Routes alerts to notification channels by ``Alert.channel``.

    - Every fired or resolved alert is written to *alert_logger*.
    - An alert routed to a channel that is not configured falls back to
      the log channel.
    - A failing channel is logged; it never propagates to the caller.
    """

    def __init__(self, channels: list[NotificationChannel] | None = None) -> None:
        self._channels: dict[ChannelKind, NotificationChannel] = {}
        for ch in channels or []:
            self._channels[ch.kind] = ch
        self._channels.setdefault(ChannelKind.LOG, LogChannel())

    @property
    def channel_kinds(self) -> list[ChannelKind]:
        return list(self._channels)

    # ── Alert lifecycle records ─────────────────────────────────

    def record_fired(self, alert: Alert) -> None:
        self._log_alert("alert_fired", alert)

    def record_resolved(self, alert: Alert) -> None:
        self._log_alert("alert_resolved", alert)

    # ── Delivery ────────────────────────────────────────────────

    async def dispatch(self, alert: Alert) -> bool:
        """Deliver *alert* to its channel. Returns True when delivered."""
        channel = self._channels.get(alert.channel)
        if channel is None:
            logger.warning(
                "channel_not_configured",
                channel=alert.channel.value,
                alert_id=alert.id,
            )
            channel = self._channels[ChannelKind.LOG]
        return await self._deliver(channel, alert)

    async def send_test_alert(self) -> dict[str, bool]:
        """Send a synthetic info alert through every configured channel.

        Returns:
            Delivery result keyed by channel kind.
        """
        alert = Alert(
            id=uuid.uuid4().hex,
            timestamp=int(time.time() * 1000),
            asset_id="fleetwatch",
            metric="test",
            value=100.0,
            threshold=50.0,
            condition=Condition.GT,
            severity=Severity.INFO,
            message="Test alert - notifications are working",
            channel=ChannelKind.LOG,
        )
        results: dict[str, bool] = {}
        for kind, channel in self._channels.items():
            results[kind.value] = await self._deliver(channel, alert)
        return results

    # ── Internal ────────────────────────────────────────────────

    def _log_alert(self, event: str, alert: Alert) -> None:
        alert_logger.info(
            event,
            alert_id=alert.id,
            asset_id=alert.asset_id,
            metric=alert.metric,
            value=alert.value,
            threshold=alert.threshold,
            severity=alert.severity.value,
            channel=alert.channel.value,
            resolved_at=alert.resolved_at,
        )

    async def _deliver(self, channel: NotificationChannel, alert: Alert) -> bool:
        msg = to_alert_message(alert)
        try:
            return await channel.send(msg)
        except NotificationError as exc:
            logger.warning(
                "channel_delivery_failed",
                channel=channel.kind.value,
                alert_id=alert.id,
                status=exc.status,
                error=str(exc),
            )
        except Exception:
            logger.exception(
                "channel_dispatch_error",
                channel=channel.kind.value,
                alert_id=alert.id,
            )
        return False

    # ── Lifecycle ───────────────────────────────────────────────

    async def close(self) -> None:
        for ch in self._channels.values():
            try:
                await ch.close()
            except Exception:
                logger.exception("channel_close_error", channel=ch.kind.value)
