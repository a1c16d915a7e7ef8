"""Price alert event ledger — in-memory and SQLite."""

from __future__ import annotations

import abc
import sqlite3
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from pulsewatch.core.types import AlertType, PriceAlertEvent


class PriceEventStore(abc.ABC):
    """Append-only persistence for triggered price alerts."""

    @abc.abstractmethod
    def add(self, event: PriceAlertEvent) -> PriceAlertEvent:
        """Insert *event* and return it with its id assigned."""

    @abc.abstractmethod
    def list_for(self, tracker_id: str, limit: int | None = None) -> list[PriceAlertEvent]:
        """Events for *tracker_id*, newest first."""


class InMemoryPriceEventStore(PriceEventStore):
    def __init__(self) -> None:
        self._rows: list[PriceAlertEvent] = []

    def add(self, event: PriceAlertEvent) -> PriceAlertEvent:
        stored = event.model_copy(update={"id": len(self._rows) + 1})
        self._rows.append(stored)
        return stored

    def list_for(self, tracker_id: str, limit: int | None = None) -> list[PriceAlertEvent]:
        rows = [e for e in reversed(self._rows) if e.tracker_id == tracker_id]
        return rows[:limit] if limit is not None else rows


_SCHEMA = """
CREATE TABLE IF NOT EXISTS price_alert_events (
  id          INTEGER PRIMARY KEY AUTOINCREMENT,
  tracker_id  TEXT NOT NULL,
  type        TEXT NOT NULL,
  price       TEXT,
  threshold   TEXT,
  message     TEXT,
  created_at  TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_price_events_tracker ON price_alert_events(tracker_id, created_at);
"""


def _decimal(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


def _row_to_event(row: sqlite3.Row) -> PriceAlertEvent:
    return PriceAlertEvent(
        id=int(row["id"]),
        tracker_id=str(row["tracker_id"]),
        type=AlertType(row["type"]),
        price=_decimal(row["price"]),
        threshold=_decimal(row["threshold"]),
        message=row["message"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class SqlitePriceEventStore(PriceEventStore):
    """SQLite-backed event ledger.

    Prices are stored as text so Decimal values round-trip exactly. The
    table can share a database file with the incident ledger.

    Usage::

        events = SqlitePriceEventStore("data/incidents.sqlite3")
        runner = PriceWatchRunner(..., events=events)
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

    def add(self, event: PriceAlertEvent) -> PriceAlertEvent:
        cur = self._conn.execute(
            "INSERT INTO price_alert_events (tracker_id, type, price, threshold, message, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            (
                event.tracker_id,
                event.type.value,
                str(event.price) if event.price is not None else None,
                str(event.threshold) if event.threshold is not None else None,
                event.message,
                event.created_at.isoformat(),
            ),
        )
        return event.model_copy(update={"id": cur.lastrowid})

    def list_for(self, tracker_id: str, limit: int | None = None) -> list[PriceAlertEvent]:
        sql = "SELECT * FROM price_alert_events WHERE tracker_id = ? ORDER BY created_at DESC, id DESC"
        params: tuple[object, ...] = (tracker_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (tracker_id, limit)
        return [_row_to_event(r) for r in self._conn.execute(sql, params).fetchall()]
