"""Tests for JsonFileStateStore — missing/corrupt files, atomic writes."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

import pytest

from pulsewatch.core.types import (
    AlertType,
    MonitoringState,
    PriceTrackerState,
    PriceWatchState,
    TargetState,
    TargetStatus,
)
from pulsewatch.storage.exceptions import StateStoreError
from pulsewatch.storage.state_store import JsonFileStateStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class TestLoad:
    async def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        store = JsonFileStateStore(tmp_path / "state.json", MonitoringState)
        state = await store.load()
        assert state.targets == {}
        assert state.last_run is None

    async def test_corrupt_file_is_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text("{not json")
        state = await JsonFileStateStore(path, MonitoringState).load()
        assert state == MonitoringState()

    async def test_wrong_shape_is_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text('{"targets": {"api": {"status": "sideways"}}}')
        state = await JsonFileStateStore(path, MonitoringState).load()
        assert state.targets == {}


class TestSave:
    async def test_round_trip(self, tmp_path: Path) -> None:
        store = JsonFileStateStore(tmp_path / "nested" / "state.json", MonitoringState)
        state = MonitoringState(
            targets={"api": TargetState(id="api", status=TargetStatus.DEGRADED, consecutive_failures=1)},
            last_run=NOW,
        )
        await store.save(state)
        loaded = await store.load()
        assert loaded == state

    async def test_price_state_round_trip(self, tmp_path: Path) -> None:
        store = JsonFileStateStore(tmp_path / "prices.json", PriceWatchState)
        state = PriceWatchState(targets={
            "laptop": PriceTrackerState(
                id="laptop",
                baseline=Decimal("1299.00"),
                last_price=Decimal("1099.00"),
                active_rules=[AlertType.PCT_DROP],
            ),
        })
        await store.save(state)
        loaded = await store.load()
        assert loaded.targets["laptop"].baseline == Decimal("1299.00")
        assert loaded.targets["laptop"].active_rules == [AlertType.PCT_DROP]

    async def test_no_temp_file_left(self, tmp_path: Path) -> None:
        store = JsonFileStateStore(tmp_path / "state.json", MonitoringState)
        await store.save(MonitoringState(last_run=NOW))
        assert sorted(p.name for p in tmp_path.iterdir()) == ["state.json"]

    async def test_failed_write_keeps_previous_state(self, tmp_path: Path) -> None:
        store = JsonFileStateStore(tmp_path / "state.json", MonitoringState)
        await store.save(MonitoringState(last_run=NOW))

        with patch("pathlib.Path.replace", side_effect=OSError("disk full")):
            with pytest.raises(StateStoreError, match="disk full"):
                await store.save(MonitoringState())

        assert (await store.load()).last_run == NOW
