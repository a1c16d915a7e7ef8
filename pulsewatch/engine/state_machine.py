"""Health state machine — consecutive-failure hysteresis and alert intents.

Transitions::

    unknown   → healthy    (success)
    unknown   → degraded   (failure, below threshold)
    unknown   → unhealthy  (failure, threshold reached)   → FAILURE alert
    healthy   → degraded   (failure, below threshold)
    degraded  → unhealthy  (failure, threshold reached)   → FAILURE alert
    unhealthy → unhealthy  (still failing)                → no alert
    unhealthy → healthy    (success)                      → RECOVERY alert
    degraded  → healthy    (success)                      → no alert
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import NamedTuple, TypeVar

from pulsewatch.core.types import (
    AlertType,
    HISTORY_CAPACITY,
    HistoryEntry,
    ProbeOutcome,
    TargetState,
    TargetStatus,
)

StateT = TypeVar("StateT", bound=TargetState)


class Transition(NamedTuple):
    """New state plus at most one alert intent."""

    new_state: TargetState
    alert_type: AlertType | None


def compute_transition(
    state: StateT,
    outcome: ProbeOutcome,
    threshold: int,
    now: datetime,
) -> Transition:
    """Apply one judged outcome to *state* and return the transition.

    *state* is not modified. ``last_error`` is kept across a recovery so the
    last failure stays visible while healthy.
    """
    update: dict[str, object] = {
        "last_check": now,
        "response_time_ms": outcome.elapsed_ms,
    }
    if outcome.value is not None:
        update["last_response_value"] = outcome.value
    elif outcome.status_code is not None:
        update["last_response_value"] = Decimal(outcome.status_code)

    if outcome.success:
        update.update(
            status=TargetStatus.HEALTHY,
            consecutive_failures=0,
            last_success=now,
        )
        alert = AlertType.RECOVERY if state.status == TargetStatus.UNHEALTHY else None
        return Transition(state.model_copy(update=update, deep=True), alert)

    failures = state.consecutive_failures + 1
    update.update(consecutive_failures=failures, last_error=outcome.error)

    if failures >= threshold:
        update["status"] = TargetStatus.UNHEALTHY
        alert = None if state.status == TargetStatus.UNHEALTHY else AlertType.FAILURE
        return Transition(state.model_copy(update=update, deep=True), alert)

    update["status"] = TargetStatus.DEGRADED
    return Transition(state.model_copy(update=update, deep=True), None)


def append_history(
    state: TargetState,
    entry: HistoryEntry,
    capacity: int = HISTORY_CAPACITY,
) -> None:
    """Append *entry* in place, dropping the oldest entries past *capacity*."""
    state.history.append(entry)
    overflow = len(state.history) - capacity
    if overflow > 0:
        del state.history[:overflow]


def history_entry(state: TargetState, outcome: ProbeOutcome, now: datetime) -> HistoryEntry:
    """Build the history entry for the state resulting from *outcome*."""
    return HistoryEntry(
        timestamp=now,
        status=state.status,
        response_time_ms=outcome.elapsed_ms,
        error=outcome.error,
    )
