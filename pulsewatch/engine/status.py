"""Status summary — per-target uptime and an overall health verdict."""

from __future__ import annotations

from collections.abc import Sequence

from pulsewatch.core.types import (
    MonitoringState,
    PriceWatchState,
    StatusSummary,
    TargetConfig,
    TargetState,
    TargetStatus,
    TargetStatusSummary,
)


def uptime_percent(state: TargetState | None) -> float | None:
    """Share of healthy entries in the rolling history, to two decimals.

    None when there is no history yet.
    """
    if state is None or not state.history:
        return None
    healthy = sum(1 for entry in state.history if entry.status == TargetStatus.HEALTHY)
    return round(healthy / len(state.history) * 100, 2)


def overall_status(statuses: Sequence[TargetStatus]) -> TargetStatus:
    """Unhealthy beats degraded; anything else counts as healthy."""
    if TargetStatus.UNHEALTHY in statuses:
        return TargetStatus.UNHEALTHY
    if TargetStatus.DEGRADED in statuses:
        return TargetStatus.DEGRADED
    return TargetStatus.HEALTHY


def status_summary(
    state: MonitoringState | PriceWatchState,
    targets: Sequence[TargetConfig],
) -> StatusSummary:
    """Summarise *targets* in configuration order from persisted *state*.

    Targets with no saved state are reported as ``unknown``.
    """
    rows: list[TargetStatusSummary] = []
    for target in targets:
        target_state = state.targets.get(target.id)
        rows.append(TargetStatusSummary(
            id=target.id,
            name=target.name,
            status=target_state.status if target_state else TargetStatus.UNKNOWN,
            last_check=target_state.last_check if target_state else None,
            response_time_ms=target_state.response_time_ms if target_state else None,
            uptime_percent=uptime_percent(target_state),
        ))
    return StatusSummary(
        overall=overall_status([row.status for row in rows]),
        targets=rows,
        last_run=state.last_run,
    )
