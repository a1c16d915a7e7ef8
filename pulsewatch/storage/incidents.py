"""Incident ledger stores — in-memory and SQLite."""

from __future__ import annotations

import abc
import sqlite3
from datetime import datetime
from pathlib import Path

from pulsewatch.core.types import Incident, IncidentType


class IncidentStore(abc.ABC):
    """Persistence for incident rows."""

    @abc.abstractmethod
    def get_open(self, target_id: str) -> Incident | None:
        """Return the unresolved incident for *target_id*, if any."""

    @abc.abstractmethod
    def add(self, incident: Incident) -> Incident:
        """Insert a new incident and return it with its id assigned."""

    @abc.abstractmethod
    def update(self, incident: Incident) -> None:
        """Replace the stored row with the same id."""

    @abc.abstractmethod
    def list_for(self, target_id: str) -> list[Incident]:
        """All incidents for *target_id*, oldest first."""


class InMemoryIncidentStore(IncidentStore):
    """Dict-backed store, used in tests and single-process runs."""

    def __init__(self) -> None:
        self._rows: dict[int, Incident] = {}
        self._next_id = 1

    def get_open(self, target_id: str) -> Incident | None:
        for incident in self._rows.values():
            if incident.target_id == target_id and incident.is_open:
                return incident
        return None

    def add(self, incident: Incident) -> Incident:
        stored = incident.model_copy(update={"id": self._next_id})
        self._rows[self._next_id] = stored
        self._next_id += 1
        return stored

    def update(self, incident: Incident) -> None:
        if incident.id is None or incident.id not in self._rows:
            raise KeyError(f"Unknown incident id {incident.id}")
        self._rows[incident.id] = incident

    def list_for(self, target_id: str) -> list[Incident]:
        return [i for i in self._rows.values() if i.target_id == target_id]


_SCHEMA = """
CREATE TABLE IF NOT EXISTS incidents (
  id            INTEGER PRIMARY KEY AUTOINCREMENT,
  target_id     TEXT NOT NULL,
  type          TEXT NOT NULL,
  started_at    TEXT NOT NULL,
  resolved_at   TEXT,
  duration_s    INTEGER,
  trigger_error TEXT
);
CREATE INDEX IF NOT EXISTS idx_incidents_target ON incidents(target_id, started_at);
CREATE INDEX IF NOT EXISTS idx_incidents_open ON incidents(resolved_at) WHERE resolved_at IS NULL;
"""


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_incident(row: sqlite3.Row) -> Incident:
    return Incident(
        id=int(row["id"]),
        target_id=str(row["target_id"]),
        type=IncidentType(row["type"]),
        started_at=datetime.fromisoformat(row["started_at"]),
        resolved_at=_parse_ts(row["resolved_at"]),
        duration_s=row["duration_s"],
        trigger_error=row["trigger_error"],
    )


class SqliteIncidentStore(IncidentStore):
    """SQLite-backed incident ledger.

    Usage::

        store = SqliteIncidentStore("data/incidents.sqlite3")
        tracker = IncidentTracker(store)
    """

    def __init__(self, path: str | Path) -> None:
        p = str(path)
        if p != ":memory:":
            Path(p).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(p, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)

    def close(self) -> None:
        self._conn.close()

    def get_open(self, target_id: str) -> Incident | None:
        row = self._conn.execute(
            "SELECT * FROM incidents WHERE target_id = ? AND resolved_at IS NULL"
            " ORDER BY started_at DESC LIMIT 1",
            (target_id,),
        ).fetchone()
        return _row_to_incident(row) if row else None

    def add(self, incident: Incident) -> Incident:
        cur = self._conn.execute(
            "INSERT INTO incidents (target_id, type, started_at, resolved_at, duration_s, trigger_error)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            (
                incident.target_id,
                incident.type.value,
                incident.started_at.isoformat(),
                incident.resolved_at.isoformat() if incident.resolved_at else None,
                incident.duration_s,
                incident.trigger_error,
            ),
        )
        return incident.model_copy(update={"id": cur.lastrowid})

    def update(self, incident: Incident) -> None:
        if incident.id is None:
            raise KeyError("Cannot update an incident without an id")
        self._conn.execute(
            "UPDATE incidents SET type = ?, resolved_at = ?, duration_s = ?, trigger_error = ?"
            " WHERE id = ?",
            (
                incident.type.value,
                incident.resolved_at.isoformat() if incident.resolved_at else None,
                incident.duration_s,
                incident.trigger_error,
                incident.id,
            ),
        )

    def list_for(self, target_id: str) -> list[Incident]:
        rows = self._conn.execute(
            "SELECT * FROM incidents WHERE target_id = ? ORDER BY started_at, id",
            (target_id,),
        ).fetchall()
        return [_row_to_incident(r) for r in rows]
