"""Alerting exceptions."""

from __future__ import annotations


class AlertError(Exception):
    """Base exception for alerting errors."""


class ChannelConfigError(AlertError):
    """A channel is missing the credentials it needs to send."""
