"""Pure functions that convert an AlertPayload into an AlertMessage."""

from __future__ import annotations

from decimal import Decimal

from pulsewatch.alerts.types import AlertField, AlertMessage
from pulsewatch.core.types import AlertPayload, AlertType, PriceTrackerConfig

_LABELS: dict[AlertType, str] = {
    AlertType.FAILURE: "DOWN",
    AlertType.RECOVERY: "RECOVERED",
    AlertType.ERROR: "PRICE ERROR",
    AlertType.DROP_BELOW: "PRICE BELOW",
    AlertType.RISE_ABOVE: "PRICE ABOVE",
    AlertType.PCT_DROP: "PRICE DROP",
    AlertType.PCT_RISE: "PRICE RISE",
}


def alert_label(alert_type: AlertType) -> str:
    return _LABELS.get(alert_type, alert_type.value.upper())


def _money(value: Decimal, currency: str) -> str:
    return f"{value:,.2f} {currency}"


def _check_fields(payload: AlertPayload) -> list[AlertField]:
    fields = [
        AlertField(label="Status", value=payload.state.status.value),
        AlertField(label="Response Time", value=f"{payload.outcome.elapsed_ms}ms"),
    ]
    if payload.outcome.status_code is not None:
        fields.append(AlertField(label="HTTP Status", value=str(payload.outcome.status_code)))
    if payload.outcome.error:
        fields.append(AlertField(label="Error", value=payload.outcome.error, short=False))
    return fields


def _price_fields(payload: AlertPayload, tracker: PriceTrackerConfig) -> list[AlertField]:
    fields: list[AlertField] = []
    if payload.outcome.value is not None:
        fields.append(AlertField(label="Price", value=_money(payload.outcome.value, tracker.currency)))
    if payload.threshold is not None:
        unit = "%" if payload.type in (AlertType.PCT_DROP, AlertType.PCT_RISE) else ""
        value = f"{payload.threshold}{unit}" if unit else _money(payload.threshold, tracker.currency)
        fields.append(AlertField(label="Threshold", value=value))
    if payload.baseline is not None:
        fields.append(AlertField(label="Baseline", value=_money(payload.baseline, tracker.currency)))
    if payload.change_pct is not None:
        fields.append(AlertField(label="Change", value=f"{payload.change_pct:+.1f}%"))
    fields.append(AlertField(label="Status", value=payload.state.status.value))
    fields.append(AlertField(label="Response Time", value=f"{payload.outcome.elapsed_ms}ms"))
    if payload.outcome.status_code is not None:
        fields.append(AlertField(label="HTTP Status", value=str(payload.outcome.status_code)))
    if payload.outcome.error:
        fields.append(AlertField(label="Error", value=payload.outcome.error, short=False))
    return fields


def format_alert(payload: AlertPayload) -> AlertMessage:
    """Convert an AlertPayload to an AlertMessage."""
    target = payload.target
    if isinstance(target, PriceTrackerConfig):
        fields = _price_fields(payload, target)
    else:
        fields = _check_fields(payload)

    return AlertMessage(
        label=alert_label(payload.type),
        target_name=target.name,
        url=target.url,
        is_failure=payload.is_failure,
        fields=fields,
        timestamp=payload.timestamp,
    )
