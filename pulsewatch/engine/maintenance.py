"""MaintenanceFilter — skip probes or suppress alerts during planned downtime."""

from __future__ import annotations

from datetime import datetime
from typing import NamedTuple

from pulsewatch.core.types import MaintenanceWindow, TargetConfig


class MaintenanceDecision(NamedTuple):
    """What active maintenance means for one target this cycle."""

    skip_execution: bool
    suppress_alerts: bool
    windows: tuple[MaintenanceWindow, ...] = ()


class MaintenanceFilter:
    """Matches windows to targets by direct target scope or group scope.

    Windows with neither a target nor a group never match.
    """

    def __init__(self, windows: list[MaintenanceWindow] | None = None) -> None:
        self._windows: list[MaintenanceWindow] = list(windows or [])

    @property
    def windows(self) -> list[MaintenanceWindow]:
        return list(self._windows)

    def applies_to(self, window: MaintenanceWindow, target: TargetConfig) -> bool:
        if window.target_id is not None and window.target_id == target.id:
            return True
        return (
            window.group_id is not None
            and target.group_id is not None
            and window.group_id == target.group_id
        )

    def active_windows(self, target: TargetConfig, now: datetime) -> list[MaintenanceWindow]:
        """Windows for *target* whose [starts_at, ends_at) contains *now*."""
        return [
            w for w in self._windows
            if self.applies_to(w, target) and w.contains(now)
        ]

    def decide(self, target: TargetConfig, now: datetime) -> MaintenanceDecision:
        active = self.active_windows(target, now)
        return MaintenanceDecision(
            skip_execution=any(w.skip_checks for w in active),
            suppress_alerts=any(w.suppress_alerts for w in active),
            windows=tuple(active),
        )
