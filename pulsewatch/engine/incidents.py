"""IncidentTracker — opens, escalates, and resolves incidents on transitions."""

from __future__ import annotations

from datetime import datetime

import structlog

from pulsewatch.core.types import Incident, IncidentType, TargetStatus
from pulsewatch.storage.incidents import IncidentStore

logger = structlog.stdlib.get_logger()

_INCIDENT_STATUSES: dict[TargetStatus, IncidentType] = {
    TargetStatus.DEGRADED: IncidentType.DEGRADED,
    TargetStatus.UNHEALTHY: IncidentType.UNHEALTHY,
}


class IncidentTracker:
    """Keeps at most one open incident per target.

    - Entering degraded/unhealthy with no open incident opens one.
    - degraded → unhealthy escalates the open incident in place.
    - Returning to healthy resolves the open incident.
    """

    def __init__(self, store: IncidentStore) -> None:
        self._store = store

    @property
    def store(self) -> IncidentStore:
        return self._store

    def record(
        self,
        target_id: str,
        prior_status: TargetStatus,
        new_status: TargetStatus,
        error: str | None,
        now: datetime,
    ) -> Incident | None:
        """Update the ledger for one transition.

        Returns the incident that was opened, escalated, or resolved, or None
        if the ledger did not change.
        """
        open_incident = self._store.get_open(target_id)
        severity = _INCIDENT_STATUSES.get(new_status)

        if severity is not None:
            if open_incident is None:
                incident = self._store.add(Incident(
                    target_id=target_id,
                    type=severity,
                    started_at=now,
                    trigger_error=error,
                ))
                logger.info(
                    "incident_opened",
                    target_id=target_id,
                    incident_id=incident.id,
                    type=severity,
                    prior_status=prior_status,
                )
                return incident

            if (
                severity == IncidentType.UNHEALTHY
                and open_incident.type == IncidentType.DEGRADED
            ):
                escalated = open_incident.model_copy(update={"type": IncidentType.UNHEALTHY})
                self._store.update(escalated)
                logger.info(
                    "incident_escalated",
                    target_id=target_id,
                    incident_id=escalated.id,
                )
                return escalated
            return None

        if new_status == TargetStatus.HEALTHY and open_incident is not None:
            resolved = open_incident.model_copy(update={
                "resolved_at": now,
                "duration_s": int((now - open_incident.started_at).total_seconds()),
            })
            self._store.update(resolved)
            logger.info(
                "incident_resolved",
                target_id=target_id,
                incident_id=resolved.id,
                duration_s=resolved.duration_s,
            )
            return resolved

        return None
