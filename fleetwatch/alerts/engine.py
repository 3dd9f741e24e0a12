"""AlertEngine — threshold evaluation, sustained gating and deduplication.

The engine evaluates every freshly built snapshot against the effective
rules for its asset:

1. A rule whose metric is absent from the snapshot is skipped.
2. A violated rule fires immediately when ``sustained_seconds`` is 0, or once
   the unbroken run of violating snapshots ending at this one spans at least
   ``sustained_seconds`` (measured on snapshot timestamps).
3. While an unresolved alert exists for ``(asset_id, metric)`` no new alert
   is raised; the next non-violating evaluation resolves it and, unless
   disabled, sends a resolution notice on the rule's channel.

Fired alerts are recorded in the :class:`AlertLedger` before delivery.
"""

from __future__ import annotations

import threading
import uuid
from collections import deque
from collections.abc import Iterable

import structlog

from fleetwatch.alerts.dispatcher import AlertDispatcher
from fleetwatch.alerts.formatters import compute_severity, format_message
from fleetwatch.alerts.rules import RuleBook, resolve_effective
from fleetwatch.core.types import Alert, AlertRule, Severity, Snapshot
from fleetwatch.health.store import SnapshotStore

logger = structlog.get_logger(__name__)

AlertKey = tuple[str, str]


class AlertLedger:
    """Active alerts plus a bounded, append-only alert history."""

    def __init__(self, history_size: int = 10_000) -> None:
        self._active: dict[AlertKey, Alert] = {}
        self._history: deque[Alert] = deque(maxlen=history_size)
        self._lock = threading.Lock()

    def is_active(self, asset_id: str, metric: str) -> bool:
        with self._lock:
            return (asset_id, metric) in self._active

    def open(self, alert: Alert) -> bool:
        """Record *alert* as active. Returns False if one is already active."""
        key = (alert.asset_id, alert.metric)
        with self._lock:
            if key in self._active:
                return False
            self._active[key] = alert
            self._history.append(alert)
            return True

    def resolve(self, asset_id: str, metric: str, resolved_at: int) -> Alert | None:
        """Mark the active alert for the key resolved and return it."""
        with self._lock:
            alert = self._active.pop((asset_id, metric), None)
            if alert is None:
                return None
            alert.resolved = True
            alert.resolved_at = resolved_at
            return alert.model_copy()

    def active(self) -> list[Alert]:
        with self._lock:
            return [a.model_copy() for a in self._active.values()]

    def history(self) -> list[Alert]:
        with self._lock:
            return [a.model_copy() for a in self._history]

    def recent(
        self,
        since_ms: int | None = None,
        severity: Severity | str | None = None,
    ) -> list[Alert]:
        """History filtered by time and severity, newest first."""
        with self._lock:
            alerts = [
                a.model_copy()
                for a in self._history
                if (since_ms is None or a.timestamp >= since_ms)
                and (severity is None or a.severity == severity)
            ]
        alerts.sort(key=lambda a: a.timestamp, reverse=True)
        return alerts

    def clear(self) -> None:
        with self._lock:
            self._active.clear()
            self._history.clear()


class AlertEngine:
    """Evaluates snapshots against rules and dispatches new alerts.

    Usage::

        engine = AlertEngine(store, rules, dispatcher, ledger)
        fired = await engine.evaluate(snapshot)
    """

    def __init__(
        self,
        store: SnapshotStore,
        rules: RuleBook,
        dispatcher: AlertDispatcher,
        ledger: AlertLedger | None = None,
        history_lookback: int = 500,
        notify_resolved: bool = True,
    ) -> None:
        self._store = store
        self._rules = rules
        self._dispatcher = dispatcher
        self._ledger = ledger or AlertLedger()
        self._lookback = history_lookback
        self._notify_resolved = notify_resolved

    @property
    def ledger(self) -> AlertLedger:
        return self._ledger

    @property
    def rules(self) -> RuleBook:
        return self._rules

    async def evaluate(
        self,
        snapshot: Snapshot,
        rules: Iterable[AlertRule] | None = None,
    ) -> list[Alert]:
        """Evaluate *snapshot*, resolve recovered alerts and dispatch new ones.

        Returns:
            The alerts that fired for this snapshot.
        """
        if rules is None:
            applicable = self._rules.effective_for(snapshot.asset_id)
        else:
            applicable = resolve_effective(rules, snapshot.asset_id)

        fired: list[Alert] = []
        resolved: list[Alert] = []
        for rule in applicable:
            alert = self._check_rule(snapshot, rule, resolved)
            if alert is not None:
                fired.append(alert)

        for alert in fired:
            await self._dispatcher.dispatch(alert)
        if self._notify_resolved:
            for alert in resolved:
                await self._dispatcher.dispatch(alert)
        return fired

    async def evaluate_many(self, snapshots: Iterable[Snapshot]) -> list[Alert]:
        fired: list[Alert] = []
        for snapshot in snapshots:
            fired.extend(await self.evaluate(snapshot))
        return fired

    # ── Internal ────────────────────────────────────────────────

    def _check_rule(
        self,
        snapshot: Snapshot,
        rule: AlertRule,
        resolved_out: list[Alert],
    ) -> Alert | None:
        metric = rule.metric.value
        value = snapshot.metrics.get(metric)
        if value is None:
            return None

        if not rule.condition.holds(value, rule.threshold):
            resolved = self._ledger.resolve(snapshot.asset_id, metric, snapshot.timestamp)
            if resolved is not None:
                self._dispatcher.record_resolved(resolved)
                resolved_out.append(resolved)
            return None

        if self._ledger.is_active(snapshot.asset_id, metric):
            return None

        if rule.sustained_seconds > 0 and not self._sustained(snapshot, rule):
            logger.debug(
                "alert_pending_sustained",
                asset_id=snapshot.asset_id,
                metric=metric,
                sustained_seconds=rule.sustained_seconds,
            )
            return None

        alert = Alert(
            id=uuid.uuid4().hex,
            timestamp=snapshot.timestamp,
            asset_id=snapshot.asset_id,
            metric=metric,
            value=value,
            threshold=rule.threshold,
            condition=rule.condition,
            severity=compute_severity(value, rule.threshold, rule.condition),
            message=format_message(snapshot.asset_id, metric, value, rule.threshold),
            channel=rule.notification_channel,
        )
        if not self._ledger.open(alert):
            return None
        self._dispatcher.record_fired(alert)
        return alert

    def _sustained(self, snapshot: Snapshot, rule: AlertRule) -> bool:
        """True when the violation run ending at *snapshot* is long enough."""
        metric = rule.metric.value
        earliest = snapshot.timestamp
        for past in reversed(self._store.history(snapshot.asset_id, self._lookback)):
            if past.timestamp >= snapshot.timestamp:
                continue
            value = past.metrics.get(metric)
            if value is None or not rule.condition.holds(value, rule.threshold):
                break
            earliest = past.timestamp
        return snapshot.timestamp - earliest >= rule.sustained_seconds * 1000
