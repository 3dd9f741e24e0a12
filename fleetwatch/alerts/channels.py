"""Notification channels — log, Telegram and Discord delivery."""

from __future__ import annotations

import abc
from html import escape as html_escape
from typing import Any

import aiohttp
import structlog

from fleetwatch.alerts.exceptions import NotificationError
from fleetwatch.alerts.types import AlertMessage
from fleetwatch.core.config import DiscordConfig, TelegramConfig
from fleetwatch.core.types import ChannelKind, Severity

logger = structlog.get_logger(__name__)

# Discord embed colours keyed by severity.
_DISCORD_COLORS: dict[Severity, int] = {
    Severity.INFO: 0x3B82F6,      # blue
    Severity.WARNING: 0xF59E0B,   # amber
    Severity.CRITICAL: 0xEF4444,  # red
}
_RESOLVED_COLOR = 0x22C55E  # green

_BODY_SNIPPET = 200
DEFAULT_DELIVERY_TIMEOUT_SECS = 10.0


class NotificationChannel(abc.ABC):
    """Base class for alert delivery channels.

    ``send`` returns True on success and raises :class:`NotificationError`
    when delivery fails.
    """

    kind: ChannelKind

    @abc.abstractmethod
    async def send(self, msg: AlertMessage) -> bool:
        """Deliver an alert message."""

    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


class LogChannel(NotificationChannel):
    """Writes alerts to the structured log; always available."""

    kind = ChannelKind.LOG

    def __init__(self, logger_name: str = "alert_notifications") -> None:
        self._log = structlog.get_logger(logger_name)

    async def send(self, msg: AlertMessage) -> bool:
        self._log.warning(
            "alert_notification",
            severity=msg.severity.value,
            title=msg.title,
            body=msg.body,
            alert_id=msg.alert_id,
            **msg.fields,
        )
        return True


class _WebhookChannel(NotificationChannel):
    """Shared aiohttp session handling for webhook-style channels."""

    _ok_statuses: tuple[int, ...] = (200,)

    def __init__(self, timeout_secs: float = DEFAULT_DELIVERY_TIMEOUT_SECS) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout_secs)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _post(self, url: str, payload: dict[str, Any]) -> bool:
        try:
            session = self._get_session()
            async with session.post(url, json=payload) as resp:
                if resp.status in self._ok_statuses:
                    return True
                body = await resp.text()
        except aiohttp.ClientError as exc:
            raise NotificationError(self.kind.value, f"request failed: {exc}") from exc
        except TimeoutError as exc:
            raise NotificationError(self.kind.value, "request timed out") from exc

        raise NotificationError(
            self.kind.value,
            f"unexpected status {resp.status}: {body[:_BODY_SNIPPET]}",
            status=resp.status,
        )

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


class TelegramChannel(_WebhookChannel):
    """Delivers alerts via the Telegram Bot API (HTML parse mode)."""

    kind = ChannelKind.TELEGRAM

    def __init__(
        self,
        config: TelegramConfig,
        timeout_secs: float = DEFAULT_DELIVERY_TIMEOUT_SECS,
    ) -> None:
        super().__init__(timeout_secs)
        self._token = config.bot_token.get_secret_value()
        self._chat_id = config.chat_id

    async def send(self, msg: AlertMessage) -> bool:
        text_parts = [f"<b>[{msg.label}] {html_escape(msg.title)}</b>"]
        if msg.body:
            text_parts.append(html_escape(msg.body))
        if msg.fields:
            lines = [
                f"  <code>{html_escape(k)}</code>: {html_escape(v)}"
                for k, v in msg.fields.items()
            ]
            text_parts.append("\n".join(lines))

        url = f"https://api.telegram.org/bot{self._token}/sendMessage"
        payload = {
            "chat_id": self._chat_id,
            "text": "\n".join(text_parts),
            "parse_mode": "HTML",
        }
        return await self._post(url, payload)


class DiscordChannel(_WebhookChannel):
    """Delivers alerts via a Discord webhook with colour-coded embeds."""

    kind = ChannelKind.DISCORD
    _ok_statuses = (200, 204)

    def __init__(
        self,
        config: DiscordConfig,
        timeout_secs: float = DEFAULT_DELIVERY_TIMEOUT_SECS,
    ) -> None:
        super().__init__(timeout_secs)
        self._webhook_url = config.webhook_url.get_secret_value()

    async def send(self, msg: AlertMessage) -> bool:
        embed: dict[str, Any] = {
            "title": f"[{msg.label}] {msg.title}",
            "color": _DISCORD_COLORS.get(msg.severity, 0x95A5A6),
        }
        if msg.resolved:
            embed["color"] = _RESOLVED_COLOR
        if msg.body:
            embed["description"] = msg.body
        if msg.fields:
            embed["fields"] = [
                {"name": k, "value": v, "inline": True}
                for k, v in msg.fields.items()
            ]

        return await self._post(self._webhook_url, {"embeds": [embed]})
