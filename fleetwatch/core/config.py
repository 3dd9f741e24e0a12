"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, SecretStr

from fleetwatch.core.types import (
    AlertRule,
    AssetType,
    ChannelKind,
    Condition,
    HealthThreshold,
    Metric,
)

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class CloudflareConfig(BaseModel):
    """Cloudflare REST / GraphQL API configuration."""

    api_base: str = "https://api.cloudflare.com/client/v4"
    graphql_url: str = "https://api.cloudflare.com/client/v4/graphql"
    account_id: str = ""
    api_token: SecretStr = SecretStr("")
    timeout_secs: float = 10.0
    page_size: int = 100


class DiscoveryConfig(BaseModel):
    """Which resource types to enumerate and how to name their projects."""

    resource_types: list[AssetType] = list(AssetType)
    # Known project prefix → canonical project tag.
    project_presets: dict[str, str] = {}


class CollectorConfig(BaseModel):
    """Per-asset metrics collection configuration."""

    max_concurrency: int = 8
    call_timeout_secs: float = 10.0
    slow_query_ms: float = 100.0
    count_d1_rows: bool = True


class StoreConfig(BaseModel):
    """Snapshot retention configuration."""

    max_snapshots_per_asset: int = 1000


def _default_health_thresholds() -> list[HealthThreshold]:
    return [
        HealthThreshold(
            metric=Metric.ERROR_RATE,
            condition=Condition.GT,
            threshold=0.05,
            asset_types=[AssetType.FUNCTION, AssetType.ACTOR_NAMESPACE],
        ),
        HealthThreshold(metric=Metric.LATENCY_MS, condition=Condition.GT, threshold=1000.0),
        HealthThreshold(
            metric=Metric.AVG_QUERY_MS,
            condition=Condition.GT,
            threshold=1000.0,
            asset_types=[AssetType.RELATIONAL_DB],
        ),
    ]


class HealthConfig(BaseModel):
    """Conditions under which a reachable asset counts as degraded."""

    degraded_when: list[HealthThreshold] = Field(default_factory=_default_health_thresholds)


class TelegramConfig(BaseModel):
    """Telegram bot notification configuration."""

    enabled: bool = False
    bot_token: SecretStr = SecretStr("")
    chat_id: str = ""


class DiscordConfig(BaseModel):
    """Discord webhook notification configuration."""

    enabled: bool = False
    webhook_url: SecretStr = SecretStr("")


def _default_alert_rules() -> list[AlertRule]:
    return [
        AlertRule(
            metric=Metric.ERROR_RATE,
            condition=Condition.GT,
            threshold=0.05,
            notification_channel=ChannelKind.LOG,
        ),
        AlertRule(
            metric=Metric.LATENCY_MS,
            condition=Condition.GT,
            threshold=1000.0,
            sustained_seconds=600,
            notification_channel=ChannelKind.LOG,
        ),
    ]


class AlertsConfig(BaseModel):
    """Alert rules, history bounds and notification channels."""

    rules: list[AlertRule] = Field(default_factory=_default_alert_rules)
    history_size: int = 10_000
    history_lookback: int = 500
    notify_resolved: bool = True
    # Total time allowed for one webhook delivery.
    delivery_timeout_secs: float = 10.0
    telegram: TelegramConfig = TelegramConfig()
    discord: DiscordConfig = DiscordConfig()


class SchedulerConfig(BaseModel):
    """Periodic monitor cycle configuration."""

    interval_secs: float = 300.0
    run_on_start: bool = True


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"
    # Optional JSON-lines file receiving every fired / resolved alert.
    alert_log_file: str | None = None


class Settings(BaseModel):
    """Root settings container."""

    cloudflare: CloudflareConfig = CloudflareConfig()
    discovery: DiscoveryConfig = DiscoveryConfig()
    collector: CollectorConfig = CollectorConfig()
    store: StoreConfig = StoreConfig()
    health: HealthConfig = HealthConfig()
    alerts: AlertsConfig = AlertsConfig()
    # Raw overrides merged into the default pricing table (see fleetwatch.costs).
    pricing: dict[str, Any] = {}
    scheduler: SchedulerConfig = SchedulerConfig()
    logging: LoggingConfig = LoggingConfig()


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
