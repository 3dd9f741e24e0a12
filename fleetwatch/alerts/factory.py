"""Convenience factory for wiring the alerting stack."""

from __future__ import annotations

from dataclasses import dataclass

from fleetwatch.alerts.channels import (
    DiscordChannel,
    LogChannel,
    NotificationChannel,
    TelegramChannel,
)
from fleetwatch.alerts.dispatcher import AlertDispatcher
from fleetwatch.alerts.engine import AlertEngine, AlertLedger
from fleetwatch.alerts.rules import RuleBook
from fleetwatch.core.config import AlertsConfig
from fleetwatch.health.store import SnapshotStore


@dataclass
class AlertStack:
    """The wired alerting components sharing one store and ledger."""

    engine: AlertEngine
    dispatcher: AlertDispatcher
    rules: RuleBook
    ledger: AlertLedger


def create_alert_stack(config: AlertsConfig, store: SnapshotStore) -> AlertStack:
    """Build channels, dispatcher, rule book, ledger and engine from config."""
    channels: list[NotificationChannel] = [LogChannel()]

    if config.telegram.enabled:
        channels.append(TelegramChannel(config.telegram, config.delivery_timeout_secs))

    if config.discord.enabled:
        channels.append(DiscordChannel(config.discord, config.delivery_timeout_secs))

    dispatcher = AlertDispatcher(channels=channels)
    rules = RuleBook(config.rules)
    ledger = AlertLedger(history_size=config.history_size)
    engine = AlertEngine(
        store=store,
        rules=rules,
        dispatcher=dispatcher,
        ledger=ledger,
        history_lookback=config.history_lookback,
        notify_resolved=config.notify_resolved,
    )
    return AlertStack(engine=engine, dispatcher=dispatcher, rules=rules, ledger=ledger)
