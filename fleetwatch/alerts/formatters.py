"""Pure functions for alert severity, message text and channel messages."""

from __future__ import annotations

from datetime import UTC, datetime

from fleetwatch.alerts.types import AlertMessage
from fleetwatch.core.types import Alert, Condition, Metric, Severity

# Metrics stored as a 0..1 fraction and shown as a percentage.
RATE_METRICS: frozenset[str] = frozenset({Metric.ERROR_RATE.value})

_CRITICAL_RATIO = 2.0
_WARNING_RATIO = 1.5

_CONDITION_WORDS: dict[Condition, str] = {
    Condition.GT: "above",
    Condition.LT: "below",
    Condition.EQ: "at",
}

# ── Message templates ───────────────────────────────────────────

_TEMPLATES: dict[str, str] = {
    Metric.ERROR_RATE.value: "High error rate on {asset}: {value} (threshold: {threshold})",
    Metric.LATENCY_MS.value: "Slow responses on {asset}: {value} (threshold: {threshold})",
    Metric.AVG_QUERY_MS.value: "Slow queries on {asset}: {value} (threshold: {threshold})",
    Metric.SLOW_QUERIES.value: "Slow query count on {asset}: {value} (threshold: {threshold})",
}
_DEFAULT_TEMPLATE = "Alert on {asset}: {metric} = {value} (threshold: {threshold})"

_UNITS: dict[str, str] = {
    Metric.LATENCY_MS.value: "ms",
    Metric.AVG_QUERY_MS.value: "ms",
    Metric.CPU_TIME_MS.value: "ms",
    Metric.ACTIVE_TIME_MS.value: "ms",
    Metric.STORAGE_BYTES.value: " B",
}


# ── Severity ────────────────────────────────────────────────────


def compute_severity(value: float, threshold: float, condition: Condition) -> Severity:
    """Severity from how far *value* is past *threshold*.

    The ratio is ``value / threshold`` (``threshold / value`` for ``lt``);
    ``>= 2`` is critical and ``>= 1.5`` is warning. With a zero
    denominator the alert is critical unless both sides are equal.
    """
    if condition is Condition.LT:
        numerator, denominator = threshold, value
    else:
        numerator, denominator = value, threshold

    if denominator == 0:
        return Severity.INFO if numerator == denominator else Severity.CRITICAL

    ratio = numerator / denominator
    if ratio >= _CRITICAL_RATIO:
        return Severity.CRITICAL
    if ratio >= _WARNING_RATIO:
        return Severity.WARNING
    return Severity.INFO


# ── Text ────────────────────────────────────────────────────────


def _trim(text: str) -> str:
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_value(metric: str, value: float) -> str:
    """Render a metric value for humans; rates become percentages."""
    if metric in RATE_METRICS:
        return f"{_trim(f'{value * 100:.2f}')}%"
    return f"{_trim(f'{value:.2f}')}{_UNITS.get(metric, '')}"


def format_message(
    asset_id: str,
    metric: str,
    value: float,
    threshold: float,
) -> str:
    """One-line alert text for *metric* on *asset_id*."""
    template = _TEMPLATES.get(metric, _DEFAULT_TEMPLATE)
    return template.format(
        asset=asset_id,
        metric=metric,
        value=format_value(metric, value),
        threshold=format_value(metric, threshold),
    )


def to_alert_message(alert: Alert) -> AlertMessage:
    """Convert an Alert into the channel-facing AlertMessage."""
    state = "RESOLVED" if alert.resolved else "FIRING"
    fields = {
        "asset": alert.asset_id,
        "metric": alert.metric,
        "value": format_value(alert.metric, alert.value),
        "threshold": (
            f"{_CONDITION_WORDS.get(alert.condition, alert.condition.value)} "
            f"{format_value(alert.metric, alert.threshold)}"
        ),
        "state": state,
        "time": datetime.fromtimestamp(alert.timestamp / 1000.0, tz=UTC).isoformat(),
    }
    return AlertMessage(
        severity=alert.severity,
        title=f"{alert.metric} on {alert.asset_id}",
        body=alert.message,
        fields=fields,
        alert_id=alert.id,
        asset_id=alert.asset_id,
        resolved=alert.resolved,
        timestamp=alert.timestamp / 1000.0,
    )
