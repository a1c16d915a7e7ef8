"""AlertRouter — selects channels for an alert and fans out concurrently."""

from __future__ import annotations

import asyncio
from typing import NamedTuple

import structlog

from pulsewatch.alerts.channels import NotificationChannel
from pulsewatch.alerts.factory import ChannelFactory
from pulsewatch.core.config import ChannelRoute
from pulsewatch.core.types import AlertPayload, AlertRule, AlertType, ChannelKind, TargetConfig

# Dedicated structured logger for routing decisions.
decision_logger = structlog.get_logger("decision_log")

logger = structlog.get_logger(__name__)


class DispatchReport(NamedTuple):
    """Which channels accepted the alert and which did not."""

    delivered: list[str]
    failed: list[str]

    @property
    def attempted(self) -> int:
        return len(self.delivered) + len(self.failed)


def rule_in_scope(rule: AlertRule, target: TargetConfig) -> bool:
    """Enabled and global, or scoped to the target or its group."""
    if not rule.enabled:
        return False
    return (
        rule.is_global
        or (rule.target_id is not None and rule.target_id == target.id)
        or (
            rule.group_id is not None
            and target.group_id is not None
            and rule.group_id == target.group_id
        )
    )


def rule_matches(rule: AlertRule, target: TargetConfig, alert_type: AlertType) -> bool:
    """Scope (global, target, or group) and failure/recovery flag must match."""
    if not rule_in_scope(rule, target):
        return False
    if alert_type == AlertType.RECOVERY:
        return rule.on_recovery
    return rule.on_failure


def route_matches(route: ChannelRoute, target: TargetConfig) -> bool:
    """Untagged routes get everything; tagged routes need a shared tag."""
    if not route.enabled:
        return False
    if not route.tags:
        return True
    if not target.tags:
        return False
    return any(tag in target.tags for tag in route.tags)


class AlertRouter:
    """Routes alert payloads to notification channels.

    - Every enabled rule in scope fires; there is no narrowest-wins.
    - Tag routes (pre-rule model) are matched alongside rules, except for
      channel kinds that an in-scope rule already governs: there the rule's
      failure/recovery flags decide.
    - A channel reached by several rules/routes is sent to once.
    - Channel sends run concurrently; one failing channel never affects
      the others or the caller.
    """

    def __init__(
        self,
        factory: ChannelFactory,
        routes: list[ChannelRoute] | None = None,
    ) -> None:
        self._factory = factory
        self._routes = routes if routes is not None else factory.legacy_routes()

    def select_channels(
        self,
        payload: AlertPayload,
        rules: list[AlertRule],
    ) -> list[NotificationChannel]:
        selected: list[NotificationChannel] = []
        seen: set[int] = set()

        def _add(channel: NotificationChannel | None) -> None:
            if channel is not None and id(channel) not in seen:
                seen.add(id(channel))
                selected.append(channel)

        ruled_kinds: set[ChannelKind] = set()
        for rule in rules:
            if not rule_in_scope(rule, payload.target):
                continue
            ruled_kinds.add(rule.channel)
            if rule_matches(rule, payload.target, payload.type):
                _add(self._factory.get(rule.channel, rule.config))

        for route in self._routes:
            if route.kind in ruled_kinds:
                continue
            if route_matches(route, payload.target):
                _add(self._factory.get(route.kind))

        return selected

    async def dispatch(self, payload: AlertPayload, rules: list[AlertRule]) -> DispatchReport:
        """Send *payload* to every matched channel and wait for all of them."""
        channels = self.select_channels(payload, rules)
        decision_logger.info(
            "decision",
            alert_type=payload.type.value,
            target_id=payload.target.id,
            target_name=payload.target.name,
            status=payload.state.status.value,
            channels=[ch.name for ch in channels],
        )
        if not channels:
            return DispatchReport(delivered=[], failed=[])

        results = await asyncio.gather(
            *(self._send_one(ch, payload) for ch in channels),
        )
        delivered = [ch.name for ch, ok in zip(channels, results) if ok]
        failed = [ch.name for ch, ok in zip(channels, results) if not ok]
        if failed:
            logger.warning(
                "alert_partially_delivered",
                target_id=payload.target.id,
                alert_type=payload.type.value,
                failed=failed,
            )
        return DispatchReport(delivered=delivered, failed=failed)

    async def _send_one(self, channel: NotificationChannel, payload: AlertPayload) -> bool:
        try:
            return await channel.send(payload)
        except Exception:
            logger.exception(
                "channel_dispatch_error",
                channel=channel.name,
                target_id=payload.target.id,
            )
            return False

    async def close(self) -> None:
        await self._factory.close()
