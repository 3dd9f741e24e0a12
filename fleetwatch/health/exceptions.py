"""Exceptions raised by the snapshot store and health queries."""

from __future__ import annotations


class HealthError(Exception):
    """Base exception for health and history lookups."""


class AssetNotFoundError(HealthError):
    """No snapshots exist for the requested asset."""

    def __init__(self, asset_id: str) -> None:
        super().__init__(f"No snapshots recorded for asset {asset_id!r}")
        self.asset_id = asset_id
