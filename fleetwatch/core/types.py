"""Domain types shared across discovery, storage, health, alerting and costs."""

from __future__ import annotations

from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class AssetType(StrEnum):
    """Kinds of account resources the monitor knows how to discover."""

    FUNCTION = "function"  # Workers script
    BUCKET = "bucket"  # R2 bucket
    RELATIONAL_DB = "relational-db"  # D1 database
    KV_NAMESPACE = "kv-namespace"
    ACTOR_NAMESPACE = "actor-namespace"  # Durable Object namespace


class HealthStatus(StrEnum):
    """Per-snapshot health classification."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"


class Metric(StrEnum):
    """Every metric name a collector may emit."""

    REQUESTS = "requests"
    ERRORS = "errors"
    ERROR_RATE = "error_rate"
    CPU_TIME_MS = "cpu_time_ms"
    LATENCY_MS = "latency_ms"
    OBJECT_COUNT = "object_count"
    STORAGE_BYTES = "storage_bytes"
    CLASS_A_OPS = "class_a_ops"
    CLASS_B_OPS = "class_b_ops"
    QUERIES = "queries"
    AVG_QUERY_MS = "avg_query_ms"
    SLOW_QUERIES = "slow_queries"
    ROWS_READ = "rows_read"
    ROWS_WRITTEN = "rows_written"
    ROW_COUNT = "row_count"
    TABLE_COUNT = "table_count"
    READS = "reads"
    WRITES = "writes"
    DELETES = "deletes"
    LISTS = "lists"
    KEY_COUNT = "key_count"
    ACTIVE_TIME_MS = "active_time_ms"


class Condition(StrEnum):
    """Threshold comparison operator."""

    GT = "gt"
    LT = "lt"
    EQ = "eq"

    def holds(self, value: float, threshold: float) -> bool:
        """Return True when *value* violates *threshold* under this operator."""
        if self is Condition.GT:
            return value > threshold
        if self is Condition.LT:
            return value < threshold
        return value == threshold


class Severity(StrEnum):
    """Alert severity."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class ChannelKind(StrEnum):
    """Notification channel an alert rule routes to."""

    LOG = "log"
    DISCORD = "discord"
    TELEGRAM = "telegram"


# ── Assets & snapshots ─────────────────────────────────────────


class Asset(BaseModel):
    """A resource discovered in the account during the current cycle."""

    model_config = ConfigDict(frozen=True)

    id: str  # "<type>:<provider_id>", unique across resource types
    provider_id: str
    name: str
    type: AssetType
    project_name: str
    created_at: str = ""

    @classmethod
    def make_id(cls, asset_type: AssetType, provider_id: str) -> str:
        return f"{asset_type.value}:{provider_id}"


class Snapshot(BaseModel):
    """One measurement of one asset at one instant (immutable)."""

    model_config = ConfigDict(frozen=True)

    asset_id: str
    asset_type: AssetType
    project_name: str
    timestamp: int  # epoch milliseconds
    metrics: dict[str, float] = Field(default_factory=dict)
    status: HealthStatus = HealthStatus.HEALTHY
    error: str | None = None

    @property
    def key(self) -> tuple[str, int]:
        return (self.asset_id, self.timestamp)


# ── Thresholds, rules & alerts ─────────────────────────────────


class HealthThreshold(BaseModel):
    """A degraded-state condition, optionally scoped to some asset types."""

    metric: Metric
    condition: Condition = Condition.GT
    threshold: float
    asset_types: list[AssetType] | None = None

    def applies_to(self, asset_type: AssetType) -> bool:
        return self.asset_types is None or asset_type in self.asset_types


class AlertRule(BaseModel):
    """A threshold rule evaluated against every matching snapshot.

    ``target`` is an asset id, or ``"*"`` for every asset.
    """

    model_config = ConfigDict(extra="forbid")

    metric: Metric
    condition: Condition = Condition.GT
    threshold: float
    sustained_seconds: int = Field(default=0, ge=0)
    notification_channel: ChannelKind = ChannelKind.LOG
    target: str = Field(default="*", min_length=1)

    @property
    def key(self) -> tuple[str, str]:
        return (self.target, self.metric.value)

    def matches(self, asset_id: str) -> bool:
        return self.target == "*" or self.target == asset_id


class Alert(BaseModel):
    """One firing of an alert rule against one asset."""

    id: str
    timestamp: int  # epoch milliseconds
    asset_id: str
    metric: str
    value: float
    threshold: float
    condition: Condition = Condition.GT
    severity: Severity
    message: str
    channel: ChannelKind = ChannelKind.LOG
    resolved: bool = False
    resolved_at: int | None = None


# ── Query results ──────────────────────────────────────────────


class UptimeWindows(BaseModel):
    """Uptime percentages over the standard windows."""

    h24: float = 100.0
    d7: float = 100.0
    d30: float = 100.0


class AssetHealth(BaseModel):
    """Health summary for a single asset."""

    asset_id: str
    asset_type: AssetType
    project_name: str
    status: HealthStatus
    uptime: UptimeWindows
    last_check: int
    error: str | None = None


class CostBreakdown(BaseModel):
    """Cost per resource type for a timeframe, in USD."""

    timeframe: str
    by_type: dict[AssetType, Decimal] = Field(default_factory=dict)
    total: Decimal = Decimal("0")


class Forecast(BaseModel):
    """Linear next-period cost forecast."""

    estimate: Decimal
    low: Decimal
    high: Decimal
    trend_percent: int
