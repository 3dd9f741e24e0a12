"""Exception hierarchy for the Cloudflare client, discovery and collection."""

from __future__ import annotations


class CloudError(Exception):
    """Base exception for all provider-facing errors."""


class CloudApiError(CloudError):
    """The API answered with a non-2xx status or an unsuccessful envelope."""

    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class CloudConnectionError(CloudError):
    """Transport failure or timeout talking to the API."""


class CloudParseError(CloudError):
    """The API returned a body that could not be decoded."""


class DiscoveryError(CloudError):
    """Listing one resource type failed."""

    def __init__(self, resource_type: str, message: str, status: int | None = None) -> None:
        super().__init__(f"{resource_type}: {message}")
        self.resource_type = resource_type
        self.status = status


class CollectionError(CloudError):
    """Fetching metrics for one asset failed."""

    def __init__(self, asset_id: str, message: str) -> None:
        super().__init__(f"{asset_id}: {message}")
        self.asset_id = asset_id
