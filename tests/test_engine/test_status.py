"""Tests for status summaries — uptime, overall verdict, unknown targets."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest

from pulsewatch.core.types import (
    CheckConfig,
    HistoryEntry,
    JsonExtract,
    MonitoringState,
    PriceTrackerConfig,
    PriceTrackerState,
    PriceWatchState,
    TargetState,
    TargetStatus,
)
from pulsewatch.engine.status import overall_status, status_summary, uptime_percent

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _check(**kw: Any) -> CheckConfig:
    defaults: dict[str, Any] = {"id": "api", "name": "API", "url": "https://api.example.com/health"}
    defaults.update(kw)
    return CheckConfig(**defaults)


def _history(*statuses: TargetStatus) -> list[HistoryEntry]:
    return [
        HistoryEntry(timestamp=T0 + timedelta(minutes=5 * i), status=s, response_time_ms=40)
        for i, s in enumerate(statuses)
    ]


class TestUptimePercent:
    def test_no_history(self) -> None:
        assert uptime_percent(None) is None
        assert uptime_percent(TargetState(id="api")) is None

    def test_share_of_healthy_entries(self) -> None:
        state = TargetState(id="api", history=_history(
            TargetStatus.HEALTHY, TargetStatus.HEALTHY, TargetStatus.DEGRADED,
        ))
        assert uptime_percent(state) == 66.67

    def test_all_healthy(self) -> None:
        state = TargetState(id="api", history=_history(TargetStatus.HEALTHY))
        assert uptime_percent(state) == 100.0


class TestOverallStatus:
    @pytest.mark.parametrize(
        ("statuses", "expected"),
        [
            ([], TargetStatus.HEALTHY),
            ([TargetStatus.HEALTHY, TargetStatus.UNKNOWN], TargetStatus.HEALTHY),
            ([TargetStatus.HEALTHY, TargetStatus.DEGRADED], TargetStatus.DEGRADED),
            ([TargetStatus.DEGRADED, TargetStatus.UNHEALTHY], TargetStatus.UNHEALTHY),
        ],
    )
    def test_worst_status_wins(self, statuses: list[TargetStatus], expected: TargetStatus) -> None:
        assert overall_status(statuses) == expected


class TestStatusSummary:
    def test_checks_in_config_order(self) -> None:
        state = MonitoringState(
            targets={
                "api": TargetState(
                    id="api",
                    status=TargetStatus.DEGRADED,
                    last_check=T0,
                    response_time_ms=120,
                    history=_history(TargetStatus.HEALTHY, TargetStatus.DEGRADED),
                ),
                "orphan": TargetState(id="orphan", status=TargetStatus.UNHEALTHY),
            },
            last_run=T0,
        )
        summary = status_summary(state, [_check(id="web", name="Web"), _check()])

        assert [t.id for t in summary.targets] == ["web", "api"]
        web, api = summary.targets
        assert web.status == TargetStatus.UNKNOWN
        assert web.uptime_percent is None
        assert api.status == TargetStatus.DEGRADED
        assert api.last_check == T0
        assert api.response_time_ms == 120
        assert api.uptime_percent == 50.0
        # State for targets no longer configured is ignored.
        assert summary.overall == TargetStatus.DEGRADED
        assert summary.last_run == T0

    def test_price_trackers(self) -> None:
        tracker = PriceTrackerConfig(
            id="laptop",
            name="Laptop",
            url="https://shop.example.com/api/laptop",
            extract=JsonExtract(path="price"),
        )
        state = PriceWatchState(targets={
            "laptop": PriceTrackerState(
                id="laptop",
                status=TargetStatus.UNHEALTHY,
                last_price=Decimal("99"),
                history=_history(TargetStatus.UNHEALTHY),
            ),
        })
        summary = status_summary(state, [tracker])
        assert summary.overall == TargetStatus.UNHEALTHY
        assert summary.targets[0].uptime_percent == 0.0
        assert summary.last_run is None

    def test_serialises_to_json(self) -> None:
        summary = status_summary(MonitoringState(last_run=T0), [_check()])
        data = summary.model_dump(mode="json")
        assert data["overall"] == "healthy"
        assert data["targets"][0]["status"] == "unknown"
        assert data["last_run"] == "2026-03-01T12:00:00Z"
