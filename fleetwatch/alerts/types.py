"""Channel-facing message type for the alerting subsystem."""

from __future__ import annotations

import time

from pydantic import BaseModel, Field

from fleetwatch.core.types import Severity


class AlertMessage(BaseModel):
    """One alert rendered for delivery, independent of any channel format."""

    severity: Severity
    title: str
    body: str = ""
    fields: dict[str, str] = Field(default_factory=dict)
    alert_id: str = ""
    asset_id: str = ""
    resolved: bool = False
    timestamp: float = Field(default_factory=time.time)  # epoch seconds

    @property
    def label(self) -> str:
        """Bracketed prefix shown by channels, e.g. ``CRITICAL`` or ``RESOLVED``."""
        return "RESOLVED" if self.resolved else self.severity.name
