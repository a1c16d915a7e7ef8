"""Analytics sink — one append-only record per executed probe."""

from __future__ import annotations

import abc
import asyncio
from pathlib import Path

from pulsewatch.core.types import HistoryRecord


class HistorySink(abc.ABC):
    """Receives history records for long-range queries."""

    @abc.abstractmethod
    async def append(self, record: HistoryRecord) -> None:
        """Append one record."""


class NullHistorySink(HistorySink):
    """Discards records."""

    async def append(self, record: HistoryRecord) -> None:
        return None


class MemoryHistorySink(HistorySink):
    """Keeps records in a list."""

    def __init__(self) -> None:
        self.records: list[HistoryRecord] = []

    async def append(self, record: HistoryRecord) -> None:
        self.records.append(record)


class JsonlHistorySink(HistorySink):
    """Appends one JSON object per line to a file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def _write(self, line: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "a", encoding="utf-8") as f:
            f.write(line + "\n")

    async def append(self, record: HistoryRecord) -> None:
        await asyncio.to_thread(self._write, record.model_dump_json())
