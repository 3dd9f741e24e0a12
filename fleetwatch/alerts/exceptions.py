"""Exception hierarchy for alert rules and notification delivery."""

from __future__ import annotations

from typing import Any


class AlertError(Exception):
    """Base exception for the alerting subsystem."""


class NotificationError(AlertError):
    """A channel failed to deliver an alert."""

    def __init__(self, channel: str, message: str, status: int | None = None) -> None:
        super().__init__(f"{channel}: {message}")
        self.channel = channel
        self.status = status


class RuleValidationError(AlertError):
    """An alert rule definition was rejected."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []
