"""Tests for alert formatters — labels and per-kind fields."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from pulsewatch.alerts.formatters import alert_label, format_alert
from pulsewatch.core.types import (
    AlertPayload,
    AlertType,
    CheckConfig,
    JsonExtract,
    PriceTrackerConfig,
    PriceTrackerState,
    ProbeOutcome,
    TargetState,
    TargetStatus,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

CHECK = CheckConfig(id="api", name="API", url="https://api.example.com/health")
TRACKER = PriceTrackerConfig(
    id="laptop",
    name="Laptop",
    url="https://shop.example.com/laptop",
    extract=JsonExtract(path="price"),
)


def _payload(**kw: Any) -> AlertPayload:
    defaults: dict[str, Any] = {
        "type": AlertType.FAILURE,
        "target": CHECK,
        "state": TargetState(id="api", status=TargetStatus.UNHEALTHY),
        "outcome": ProbeOutcome(
            target_id="api", success=False, status_code=503, elapsed_ms=42,
            error="Expected status 200, got 503",
        ),
        "timestamp": NOW,
    }
    defaults.update(kw)
    return AlertPayload(**defaults)


def _fields(payload: AlertPayload) -> dict[str, str]:
    return {f.label: f.value for f in format_alert(payload).fields}


class TestLabels:
    def test_labels(self) -> None:
        assert alert_label(AlertType.FAILURE) == "DOWN"
        assert alert_label(AlertType.RECOVERY) == "RECOVERED"
        assert alert_label(AlertType.PCT_DROP) == "PRICE DROP"
        assert alert_label(AlertType.ERROR) == "PRICE ERROR"


class TestCheckAlerts:
    def test_failure(self) -> None:
        msg = format_alert(_payload())
        assert msg.title == "DOWN: API"
        assert msg.is_failure is True
        assert msg.url == "https://api.example.com/health"
        assert msg.timestamp == NOW
        assert _fields(_payload()) == {
            "Status": "unhealthy",
            "Response Time": "42ms",
            "HTTP Status": "503",
            "Error": "Expected status 200, got 503",
        }

    def test_error_field_is_long(self) -> None:
        error = [f for f in format_alert(_payload()).fields if f.label == "Error"][0]
        assert error.short is False

    def test_recovery(self) -> None:
        payload = _payload(
            type=AlertType.RECOVERY,
            state=TargetState(id="api", status=TargetStatus.HEALTHY),
            outcome=ProbeOutcome(target_id="api", success=True, status_code=200, elapsed_ms=80),
        )
        msg = format_alert(payload)
        assert msg.title == "RECOVERED: API"
        assert msg.is_failure is False
        assert "Error" not in _fields(payload)

    def test_timeout_has_no_http_status(self) -> None:
        payload = _payload(outcome=ProbeOutcome(
            target_id="api", success=False, elapsed_ms=10000, error="Timeout after 10000ms", timed_out=True,
        ))
        fields = _fields(payload)
        assert "HTTP Status" not in fields
        assert fields["Error"] == "Timeout after 10000ms"


class TestPriceAlerts:
    def _price_payload(self, **kw: Any) -> AlertPayload:
        defaults: dict[str, Any] = {
            "type": AlertType.PCT_DROP,
            "target": TRACKER,
            "state": PriceTrackerState(id="laptop", status=TargetStatus.HEALTHY),
            "outcome": ProbeOutcome(
                target_id="laptop", success=True, status_code=200, value=Decimal("1099"), elapsed_ms=300,
            ),
            "threshold": Decimal("10"),
            "baseline": Decimal("1299"),
            "change_pct": -15.396,
        }
        defaults.update(kw)
        return _payload(**defaults)

    def test_pct_drop(self) -> None:
        payload = self._price_payload()
        assert format_alert(payload).title == "PRICE DROP: Laptop"
        fields = _fields(payload)
        assert fields["Price"] == "1,099.00 NZD"
        assert fields["Threshold"] == "10%"
        assert fields["Baseline"] == "1,299.00 NZD"
        assert fields["Change"] == "-15.4%"

    def test_drop_below_threshold_is_money(self) -> None:
        payload = self._price_payload(type=AlertType.DROP_BELOW, threshold=Decimal("1100"))
        assert _fields(payload)["Threshold"] == "1,100.00 NZD"

    def test_error(self) -> None:
        payload = self._price_payload(
            type=AlertType.ERROR,
            outcome=ProbeOutcome(target_id="laptop", success=False, status_code=502, error="HTTP 502"),
            threshold=None,
            baseline=None,
            change_pct=None,
        )
        msg = format_alert(payload)
        assert msg.title == "PRICE ERROR: Laptop"
        assert msg.is_failure is True
        fields = _fields(payload)
        assert "Price" not in fields
        assert fields["Error"] == "HTTP 502"
