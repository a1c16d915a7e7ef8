"""Hot-state persistence — whole-blob load and atomic replace-write."""

from __future__ import annotations

import abc
import asyncio
from pathlib import Path
from typing import Generic, TypeVar

import structlog
from pydantic import BaseModel

from pulsewatch.storage.exceptions import StateStoreError

logger = structlog.stdlib.get_logger()

StateT = TypeVar("StateT", bound=BaseModel)


class StateStore(abc.ABC, Generic[StateT]):
    """Loads and saves the whole hot-state structure."""

    @abc.abstractmethod
    async def load(self) -> StateT:
        """Return the last saved state, or an empty one if absent or corrupt."""

    @abc.abstractmethod
    async def save(self, state: StateT) -> None:
        """Overwrite the stored state.

        Raises:
            StateStoreError: If the write failed. Previously saved state is
                left intact.
        """


class JsonFileStateStore(StateStore[StateT]):
    """JSON file store; writes go to a temp file then replace the target.

    Usage::

        store = JsonFileStateStore("data/monitoring/state.json", MonitoringState)
        state = await store.load()
    """

    def __init__(self, path: str | Path, model: type[StateT]) -> None:
        self._path = Path(path)
        self._model = model

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> StateT:
        if not self._path.exists():
            return self._model()
        try:
            return self._model.model_validate_json(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("state_load_failed", path=str(self._path))
            return self._model()

    def _write(self, state: StateT) -> None:
        tmp = self._path.with_name(f"{self._path.name}.tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(state.model_dump_json(indent=2), encoding="utf-8")
            tmp.replace(self._path)
        except OSError as exc:
            raise StateStoreError(f"Failed to save state to {self._path}: {exc}") from exc

    async def load(self) -> StateT:
        return await asyncio.to_thread(self._read)

    async def save(self, state: StateT) -> None:
        await asyncio.to_thread(self._write, state)
