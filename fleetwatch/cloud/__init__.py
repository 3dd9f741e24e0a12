"""Cloudflare API access: credentialed client, resource discovery, metrics collection."""

from fleetwatch.cloud.client import CloudflareClient
from fleetwatch.cloud.collector import CollectionWindow, MetricsCollector, error_rate
from fleetwatch.cloud.discovery import (
    ResourceDiscovery,
    derive_project_name,
    group_by_project,
)
from fleetwatch.cloud.exceptions import (
    CloudApiError,
    CloudConnectionError,
    CloudError,
    CloudParseError,
    CollectionError,
    DiscoveryError,
)

__all__ = [
    "CloudApiError",
    "CloudConnectionError",
    "CloudError",
    "CloudParseError",
    "CloudflareClient",
    "CollectionError",
    "CollectionWindow",
    "DiscoveryError",
    "MetricsCollector",
    "ResourceDiscovery",
    "derive_project_name",
    "error_rate",
    "group_by_project",
]
