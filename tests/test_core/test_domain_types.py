"""Tests for fleetwatch/core/types.py and fleetwatch/core/timeframes.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from fleetwatch.core.timeframes import parse_timeframe, timeframe_cutoff
from fleetwatch.core.types import (
    AlertRule,
    AssetType,
    Condition,
    HealthStatus,
    HealthThreshold,
    Metric,
    Snapshot,
)

_HOUR_MS = 3_600_000


class TestCondition:
    def test_gt(self) -> None:
        assert Condition.GT.holds(0.1, 0.05)
        assert not Condition.GT.holds(0.05, 0.05)

    def test_lt(self) -> None:
        assert Condition.LT.holds(1, 2)
        assert not Condition.LT.holds(2, 2)

    def test_eq(self) -> None:
        assert Condition.EQ.holds(3, 3)
        assert not Condition.EQ.holds(3, 4)


class TestSnapshot:
    def test_frozen(self) -> None:
        snap = Snapshot(
            asset_id="w1",
            asset_type=AssetType.FUNCTION,
            project_name="p",
            timestamp=1000,
        )
        with pytest.raises(ValidationError):
            snap.timestamp = 2000  # type: ignore[misc]

    def test_key_and_defaults(self) -> None:
        snap = Snapshot(
            asset_id="w1",
            asset_type=AssetType.FUNCTION,
            project_name="p",
            timestamp=1000,
        )
        assert snap.key == ("w1", 1000)
        assert snap.status is HealthStatus.HEALTHY
        assert snap.metrics == {}
        assert snap.error is None


class TestAlertRule:
    def test_defaults(self) -> None:
        rule = AlertRule(metric=Metric.ERROR_RATE, threshold=0.05)
        assert rule.condition is Condition.GT
        assert rule.sustained_seconds == 0
        assert rule.target == "*"
        assert rule.key == ("*", "error_rate")

    def test_matches(self) -> None:
        wildcard = AlertRule(metric=Metric.ERRORS, threshold=1)
        specific = AlertRule(metric=Metric.ERRORS, threshold=1, target="w1")
        assert wildcard.matches("anything")
        assert specific.matches("w1")
        assert not specific.matches("w2")

    def test_unknown_metric_rejected(self) -> None:
        with pytest.raises(ValidationError):
            AlertRule(metric="bogus", threshold=1)  # type: ignore[arg-type]

    def test_negative_sustained_rejected(self) -> None:
        with pytest.raises(ValidationError):
            AlertRule(metric=Metric.ERRORS, threshold=1, sustained_seconds=-1)


class TestHealthThreshold:
    def test_unscoped_applies_everywhere(self) -> None:
        t = HealthThreshold(metric=Metric.LATENCY_MS, threshold=1000)
        assert all(t.applies_to(at) for at in AssetType)

    def test_scoped(self) -> None:
        t = HealthThreshold(
            metric=Metric.AVG_QUERY_MS,
            threshold=1000,
            asset_types=[AssetType.RELATIONAL_DB],
        )
        assert t.applies_to(AssetType.RELATIONAL_DB)
        assert not t.applies_to(AssetType.FUNCTION)


class TestTimeframes:
    @pytest.mark.parametrize(
        ("timeframe", "expected"),
        [
            ("1h", _HOUR_MS),
            ("24h", 24 * _HOUR_MS),
            ("7d", 7 * 24 * _HOUR_MS),
            ("2w", 14 * 24 * _HOUR_MS),
            ("1m", 30 * 24 * _HOUR_MS),
        ],
    )
    def test_valid(self, timeframe: str, expected: int) -> None:
        assert parse_timeframe(timeframe) == expected

    @pytest.mark.parametrize("timeframe", ["", "all", "7", "d7", "1y", "-1d", None])
    def test_invalid_means_all_time(self, timeframe: str | None) -> None:
        assert parse_timeframe(timeframe) is None
        assert timeframe_cutoff(timeframe, 10_000) is None

    def test_cutoff(self) -> None:
        assert timeframe_cutoff("1h", 5 * _HOUR_MS) == 4 * _HOUR_MS
