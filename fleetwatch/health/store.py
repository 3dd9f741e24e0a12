"""SnapshotStore — in-memory per-asset time series with bounded retention."""

from __future__ import annotations

import bisect
import threading
from collections.abc import Iterable, Sequence

from fleetwatch.core.types import HealthStatus, Snapshot, UptimeWindows

_HOUR_MS = 3_600_000
_DAY_MS = 24 * _HOUR_MS

UPTIME_WINDOWS_MS: dict[str, int] = {
    "h24": _DAY_MS,
    "d7": 7 * _DAY_MS,
    "d30": 30 * _DAY_MS,
}


def uptime(snapshots: Sequence[Snapshot]) -> float:
    """Percentage of *snapshots* that are healthy; 100 for an empty series."""
    if not snapshots:
        return 100.0
    healthy = sum(1 for s in snapshots if s.status is HealthStatus.HEALTHY)
    return 100.0 * healthy / len(snapshots)


class SnapshotStore:
    """Timestamp-ordered snapshots keyed by asset id.

    Writes are idempotent on ``(asset_id, timestamp)``. Every public method
    takes the lock only long enough to mutate or copy out, so readers never
    wait on a running cycle.
    """

    def __init__(self) -> None:
        self._series: dict[str, list[Snapshot]] = {}
        self._timestamps: dict[str, list[int]] = {}
        self._lock = threading.Lock()

    # ── Writes ──────────────────────────────────────────────────

    def put(self, snapshot: Snapshot) -> bool:
        """Insert *snapshot*. Returns False when its key is already stored."""
        with self._lock:
            return self._insert(snapshot)

    def put_many(
        self, snapshots: Iterable[Snapshot], max_retained: int | None = None
    ) -> int:
        """Insert a batch, then prune every touched asset to *max_retained*.

        Returns:
            Number of snapshots actually inserted.
        """
        inserted = 0
        touched: set[str] = set()
        with self._lock:
            for snapshot in snapshots:
                if self._insert(snapshot):
                    inserted += 1
                    touched.add(snapshot.asset_id)
            if max_retained is not None:
                for asset_id in touched:
                    self._prune(asset_id, max_retained)
        return inserted

    def prune(self, asset_id: str, max_retained: int) -> int:
        """Delete the oldest snapshots beyond *max_retained*. Returns the count."""
        with self._lock:
            return self._prune(asset_id, max_retained)

    def clear(self) -> None:
        with self._lock:
            self._series.clear()
            self._timestamps.clear()

    # ── Reads ───────────────────────────────────────────────────

    def history(self, asset_id: str, limit: int | None = None) -> list[Snapshot]:
        """Most recent *limit* snapshots for *asset_id*, oldest first."""
        with self._lock:
            series = self._series.get(asset_id, [])
            if limit is None:
                return list(series)
            if limit <= 0:
                return []
            return series[-limit:]

    def since(self, asset_id: str, cutoff_ms: int) -> list[Snapshot]:
        """Snapshots for *asset_id* with ``timestamp >= cutoff_ms``."""
        with self._lock:
            timestamps = self._timestamps.get(asset_id)
            if not timestamps:
                return []
            start = bisect.bisect_left(timestamps, cutoff_ms)
            return self._series[asset_id][start:]

    def between(self, asset_id: str, start_ms: int, end_ms: int) -> list[Snapshot]:
        """Snapshots for *asset_id* with ``start_ms <= timestamp < end_ms``."""
        with self._lock:
            timestamps = self._timestamps.get(asset_id)
            if not timestamps:
                return []
            lo = bisect.bisect_left(timestamps, start_ms)
            hi = bisect.bisect_left(timestamps, end_ms)
            return self._series[asset_id][lo:hi]

    def latest(self, asset_id: str) -> Snapshot | None:
        with self._lock:
            series = self._series.get(asset_id)
            return series[-1] if series else None

    def latest_all(self) -> dict[str, Snapshot]:
        with self._lock:
            return {aid: series[-1] for aid, series in self._series.items() if series}

    def asset_ids(self) -> list[str]:
        with self._lock:
            return [aid for aid, series in self._series.items() if series]

    def count(self, asset_id: str | None = None) -> int:
        """Snapshot count for one asset, or across all assets."""
        with self._lock:
            if asset_id is not None:
                return len(self._series.get(asset_id, []))
            return sum(len(series) for series in self._series.values())

    def uptime_windows(self, asset_id: str, now_ms: int) -> UptimeWindows:
        """Uptime over the last 24h, 7d and 30d ending at *now_ms*."""
        return UptimeWindows(
            **{
                name: uptime(self.since(asset_id, now_ms - span))
                for name, span in UPTIME_WINDOWS_MS.items()
            }
        )

    # ── Internal (lock held) ────────────────────────────────────

    def _insert(self, snapshot: Snapshot) -> bool:
        series = self._series.setdefault(snapshot.asset_id, [])
        timestamps = self._timestamps.setdefault(snapshot.asset_id, [])

        # Fast path: in-order append.
        if not timestamps or snapshot.timestamp > timestamps[-1]:
            series.append(snapshot)
            timestamps.append(snapshot.timestamp)
            return True

        index = bisect.bisect_left(timestamps, snapshot.timestamp)
        if index < len(timestamps) and timestamps[index] == snapshot.timestamp:
            return False
        series.insert(index, snapshot)
        timestamps.insert(index, snapshot.timestamp)
        return True

    def _prune(self, asset_id: str, max_retained: int) -> int:
        series = self._series.get(asset_id)
        if not series:
            return 0
        excess = max(0, len(series) - max(0, max_retained))
        if excess:
            del series[:excess]
            del self._timestamps[asset_id][:excess]
        return excess
