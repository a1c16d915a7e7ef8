"""Alert formatting, channels, and routing."""

from pulsewatch.alerts.channels import (
    EmailChannel,
    NotificationChannel,
    TelegramChannel,
    WebhookChannel,
)
from pulsewatch.alerts.exceptions import AlertError, ChannelConfigError
from pulsewatch.alerts.factory import ChannelFactory
from pulsewatch.alerts.formatters import alert_label, format_alert
from pulsewatch.alerts.router import AlertRouter, DispatchReport, route_matches, rule_matches
from pulsewatch.alerts.types import AlertField, AlertMessage

__all__ = [
    "AlertError",
    "AlertField",
    "AlertMessage",
    "AlertRouter",
    "ChannelConfigError",
    "ChannelFactory",
    "DispatchReport",
    "EmailChannel",
    "NotificationChannel",
    "TelegramChannel",
    "WebhookChannel",
    "alert_label",
    "format_alert",
    "route_matches",
    "rule_matches",
]
