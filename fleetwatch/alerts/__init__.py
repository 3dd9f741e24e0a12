"""Alert rules, evaluation, formatting and notification delivery."""

from fleetwatch.alerts.channels import (
    DiscordChannel,
    LogChannel,
    NotificationChannel,
    TelegramChannel,
)
from fleetwatch.alerts.dispatcher import AlertDispatcher
from fleetwatch.alerts.engine import AlertEngine, AlertLedger
from fleetwatch.alerts.exceptions import AlertError, NotificationError, RuleValidationError
from fleetwatch.alerts.factory import AlertStack, create_alert_stack
from fleetwatch.alerts.formatters import compute_severity, format_message, format_value
from fleetwatch.alerts.rules import RuleBook
from fleetwatch.alerts.types import AlertMessage

__all__ = [
    "AlertDispatcher",
    "AlertEngine",
    "AlertError",
    "AlertLedger",
    "AlertMessage",
    "AlertStack",
    "DiscordChannel",
    "LogChannel",
    "NotificationChannel",
    "NotificationError",
    "RuleBook",
    "RuleValidationError",
    "TelegramChannel",
    "compute_severity",
    "create_alert_stack",
    "format_message",
    "format_value",
]
