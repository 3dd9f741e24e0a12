"""Tests for notification channels — HTTP mocking, error handling, session management."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from pydantic import SecretStr

from fleetwatch.alerts.channels import DiscordChannel, LogChannel, TelegramChannel
from fleetwatch.alerts.exceptions import NotificationError
from fleetwatch.alerts.types import AlertMessage
from fleetwatch.core.config import DiscordConfig, TelegramConfig
from fleetwatch.core.types import ChannelKind, Severity

# ── Helpers ─────────────────────────────────────────────────────


def _msg(**kw: object) -> AlertMessage:
    defaults: dict[str, object] = {
        "severity": Severity.INFO,
        "title": "TEST_TITLE",
        "body": "test body",
        "fields": {"key": "value"},
        "alert_id": "al-1",
        "timestamp": 1000.0,
    }
    defaults.update(kw)
    return AlertMessage(**defaults)  # type: ignore[arg-type]


def _tg_config(**kw: object) -> TelegramConfig:
    defaults: dict[str, object] = {
        "enabled": True,
        "bot_token": SecretStr("fake-token"),
        "chat_id": "12345",
    }
    defaults.update(kw)
    return TelegramConfig(**defaults)  # type: ignore[arg-type]


def _dc_config(**kw: object) -> DiscordConfig:
    defaults: dict[str, object] = {
        "enabled": True,
        "webhook_url": SecretStr("https://discord.com/api/webhooks/fake"),
    }
    defaults.update(kw)
    return DiscordConfig(**defaults)  # type: ignore[arg-type]


def _mock_response(status: int = 200, text: str = "ok") -> AsyncMock:
    resp = AsyncMock()
    resp.status = status
    resp.text = AsyncMock(return_value=text)
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=False)
    return resp


def _session(resp: AsyncMock | None = None, error: Exception | None = None) -> MagicMock:
    session = MagicMock()
    if error is not None:
        session.post = MagicMock(side_effect=error)
    else:
        session.post = MagicMock(return_value=resp)
    session.closed = False
    return session


# ── LogChannel ──────────────────────────────────────────────────


class TestLogChannel:
    async def test_always_succeeds(self) -> None:
        ch = LogChannel()
        assert ch.kind is ChannelKind.LOG
        assert await ch.send(_msg()) is True
        await ch.close()


# ── TelegramChannel ────────────────────────────────────────────


class TestTelegramChannel:
    async def test_send_success(self) -> None:
        ch = TelegramChannel(_tg_config())
        ch._session = _session(_mock_response(200))

        result = await ch.send(_msg())
        assert result is True
        ch._session.post.assert_called_once()
        call_args = ch._session.post.call_args
        assert "fake-token" in call_args[0][0]
        payload = call_args[1]["json"]
        assert payload["chat_id"] == "12345"
        assert payload["parse_mode"] == "HTML"

    async def test_send_failure_status_raises(self) -> None:
        ch = TelegramChannel(_tg_config())
        ch._session = _session(_mock_response(400, "bad request"))

        with pytest.raises(NotificationError) as exc_info:
            await ch.send(_msg())
        assert exc_info.value.channel == "telegram"
        assert exc_info.value.status == 400

    async def test_send_client_error_raises(self) -> None:
        ch = TelegramChannel(_tg_config())
        ch._session = _session(error=aiohttp.ClientConnectionError("refused"))

        with pytest.raises(NotificationError, match="request failed"):
            await ch.send(_msg())

    async def test_html_escaping(self) -> None:
        ch = TelegramChannel(_tg_config())
        ch._session = _session(_mock_response(200))

        await ch.send(_msg(title="<script>alert('xss')</script>", body="a & b"))
        payload = ch._session.post.call_args[1]["json"]
        assert "<script>" not in payload["text"]
        assert "&lt;script&gt;" in payload["text"]
        assert "&amp;" in payload["text"]

    async def test_severity_label_in_text(self) -> None:
        ch = TelegramChannel(_tg_config())
        ch._session = _session(_mock_response(200))

        await ch.send(_msg(severity=Severity.CRITICAL))
        payload = ch._session.post.call_args[1]["json"]
        assert "CRITICAL" in payload["text"]

    async def test_close_session(self) -> None:
        ch = TelegramChannel(_tg_config())
        mock_session = AsyncMock()
        mock_session.closed = False
        ch._session = mock_session

        await ch.close()
        mock_session.close.assert_awaited_once()

    async def test_close_when_no_session(self) -> None:
        ch = TelegramChannel(_tg_config())
        await ch.close()  # should not raise

    async def test_lazy_session_creation(self) -> None:
        ch = TelegramChannel(_tg_config())
        assert ch._session is None
        session = ch._get_session()
        assert session is not None
        await ch.close()


# ── DiscordChannel ──────────────────────────────────────────────


class TestDiscordChannel:
    async def test_send_success(self) -> None:
        ch = DiscordChannel(_dc_config())
        ch._session = _session(_mock_response(204))

        result = await ch.send(_msg())
        assert result is True
        call_args = ch._session.post.call_args
        assert call_args[0][0] == "https://discord.com/api/webhooks/fake"
        payload = call_args[1]["json"]
        assert len(payload["embeds"]) == 1
        embed = payload["embeds"][0]
        assert "TEST_TITLE" in embed["title"]
        assert embed["description"] == "test body"
        assert embed["fields"] == [{"name": "key", "value": "value", "inline": True}]

    async def test_colour_by_severity(self) -> None:
        ch = DiscordChannel(_dc_config())
        ch._session = _session(_mock_response(200))

        await ch.send(_msg(severity=Severity.CRITICAL))
        embed = ch._session.post.call_args[1]["json"]["embeds"][0]
        assert embed["color"] == 0xEF4444

    async def test_resolved_notice(self) -> None:
        ch = DiscordChannel(_dc_config())
        ch._session = _session(_mock_response(204))

        await ch.send(_msg(severity=Severity.CRITICAL, resolved=True))
        embed = ch._session.post.call_args[1]["json"]["embeds"][0]
        assert embed["title"].startswith("[RESOLVED]")
        assert embed["color"] == 0x22C55E

    async def test_send_failure_raises(self) -> None:
        ch = DiscordChannel(_dc_config())
        ch._session = _session(_mock_response(429, "rate limited"))

        with pytest.raises(NotificationError) as exc_info:
            await ch.send(_msg())
        assert exc_info.value.channel == "discord"
        assert exc_info.value.status == 429

    async def test_timeout_raises(self) -> None:
        ch = DiscordChannel(_dc_config())
        ch._session = _session(error=TimeoutError())

        with pytest.raises(NotificationError, match="timed out"):
            await ch.send(_msg())

    async def test_session_has_delivery_timeout(self) -> None:
        ch = DiscordChannel(_dc_config())
        session = ch._get_session()
        assert session.timeout.total == 10.0
        await ch.close()

    async def test_custom_delivery_timeout(self) -> None:
        ch = DiscordChannel(_dc_config(), timeout_secs=2.5)
        session = ch._get_session()
        assert session.timeout.total == 2.5
        await ch.close()
