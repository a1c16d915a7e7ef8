"""Tests for PriceWatchRunner — baselines, crossings, errors, intervals."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from pulsewatch.alerts.router import DispatchReport
from pulsewatch.core.types import (
    AlertType,
    JsonExtract,
    PriceTrackerConfig,
    PriceTrackerState,
    PriceWatchState,
    ProbeOutcome,
    TargetStatus,
)
from pulsewatch.engine.pricewatch import PriceWatchRunner
from pulsewatch.storage.config_source import StaticConfigSource
from pulsewatch.storage.price_events import InMemoryPriceEventStore
from pulsewatch.storage.state_store import JsonFileStateStore


# ── Helpers ─────────────────────────────────────────────────────


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kw: float) -> None:
        self.now += timedelta(**kw)


def _tracker(**kw: Any) -> PriceTrackerConfig:
    defaults: dict[str, Any] = {
        "id": "laptop",
        "name": "Laptop",
        "url": "https://shop.example.com/api/laptop",
        "extract": JsonExtract(path="price"),
        "alert_below": Decimal("80"),
        "alert_pct_drop": Decimal("10"),
        "interval_mins": 60,
    }
    defaults.update(kw)
    return PriceTrackerConfig(**defaults)


def _price(value: str) -> ProbeOutcome:
    return ProbeOutcome(target_id="laptop", success=True, status_code=200, value=Decimal(value), elapsed_ms=90)


def _error(message: str = "HTTP 502") -> ProbeOutcome:
    return ProbeOutcome(target_id="laptop", success=False, status_code=502, error=message, elapsed_ms=20)


class Harness:
    def __init__(self, tmp_path: Path, tracker: PriceTrackerConfig | None = None) -> None:
        self.clock = FakeClock()
        self.executor = MagicMock()
        self.executor.probe = AsyncMock()
        self.router = MagicMock()
        self.router.dispatch = AsyncMock(return_value=DispatchReport(delivered=["webhook"], failed=[]))
        self.store = JsonFileStateStore(tmp_path / "prices.json", PriceWatchState)
        self.events = InMemoryPriceEventStore()
        self.runner = PriceWatchRunner(
            config_source=StaticConfigSource(price_trackers=[tracker or _tracker()]),
            state_store=self.store,
            executor=self.executor,
            router=self.router,
            clock=self.clock,
            events=self.events,
        )

    async def step(self, outcome: ProbeOutcome, force: bool = False) -> list[AlertType]:
        """Run once with *outcome*, then advance past the interval."""
        before = self.router.dispatch.await_count
        self.executor.probe.return_value = outcome
        await self.runner.run(force=force)
        self.clock.advance(minutes=60)
        return [c.args[0].type for c in self.router.dispatch.await_args_list[before:]]

    async def state(self) -> PriceTrackerState:
        return (await self.store.load()).targets["laptop"]


@pytest.fixture
def harness(tmp_path: Path) -> Harness:
    return Harness(tmp_path)


# ── Baseline & crossings ────────────────────────────────────────


class TestCrossings:
    async def test_first_reading_sets_baseline(self, harness: Harness) -> None:
        assert await harness.step(_price("100")) == []
        state = await harness.state()
        assert state.baseline == Decimal("100")
        assert state.baseline_at is not None
        assert state.last_price == Decimal("100")
        assert state.status == TargetStatus.HEALTHY

    async def test_alerts_only_on_crossing(self, harness: Harness) -> None:
        await harness.step(_price("100"))
        assert await harness.step(_price("88")) == [AlertType.PCT_DROP]
        assert await harness.step(_price("87")) == []
        assert await harness.step(_price("75")) == [AlertType.DROP_BELOW]
        assert await harness.step(_price("95")) == []
        assert await harness.step(_price("85")) == [AlertType.PCT_DROP]

    async def test_both_rules_fire_together(self, harness: Harness) -> None:
        await harness.step(_price("100"))
        assert await harness.step(_price("75")) == [AlertType.DROP_BELOW, AlertType.PCT_DROP]
        assert set((await harness.state()).active_rules) == {AlertType.DROP_BELOW, AlertType.PCT_DROP}

    async def test_payload_fields(self, harness: Harness) -> None:
        await harness.step(_price("100"))
        await harness.step(_price("88"))
        payload = harness.router.dispatch.await_args.args[0]
        assert payload.type == AlertType.PCT_DROP
        assert payload.threshold == Decimal("10")
        assert payload.baseline == Decimal("100")
        assert payload.change_pct == pytest.approx(-12.0)
        assert payload.outcome.value == Decimal("88")
        assert "down 12.0%" in payload.message

    async def test_threshold_rule_without_baseline_change(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, _tracker(alert_pct_drop=None, alert_above=Decimal("120")))
        assert await h.step(_price("130")) == [AlertType.RISE_ABOVE]
        payload = h.router.dispatch.await_args.args[0]
        assert payload.threshold == Decimal("120")
        assert payload.message == "Price 130 NZD is above 120 NZD"


# ── Errors ──────────────────────────────────────────────────────


class TestErrors:
    async def test_error_and_recovery(self, harness: Harness) -> None:
        await harness.step(_price("100"))
        assert await harness.step(_error()) == [AlertType.ERROR]
        state = await harness.state()
        assert state.in_error is True
        assert state.last_error == "HTTP 502"
        assert state.last_price == Decimal("100")

        assert await harness.step(_error()) == []
        assert await harness.step(_price("100")) == [AlertType.RECOVERY]
        assert (await harness.state()).in_error is False

    async def test_error_payload_message(self, harness: Harness) -> None:
        await harness.step(_error("JSON path 'price' not found at 'price'"))
        payload = harness.router.dispatch.await_args.args[0]
        assert payload.type == AlertType.ERROR
        assert payload.message == "JSON path 'price' not found at 'price'"

    async def test_active_rules_kept_across_errors(self, harness: Harness) -> None:
        await harness.step(_price("100"))
        await harness.step(_price("88"))
        await harness.step(_error())
        # Still below the drop line after recovering: no repeat PCT_DROP.
        assert await harness.step(_price("88")) == [AlertType.RECOVERY]

    async def test_baseline_untouched_by_errors(self, harness: Harness) -> None:
        await harness.step(_error())
        assert (await harness.state()).baseline is None
        await harness.step(_price("50"))
        assert (await harness.state()).baseline == Decimal("50")


# ── Interval gating ─────────────────────────────────────────────


class TestInterval:
    async def test_not_due_is_skipped(self, harness: Harness) -> None:
        harness.executor.probe.return_value = _price("100")
        await harness.runner.run()
        harness.clock.advance(minutes=30)
        summary = await harness.runner.run()
        assert summary.skipped == 1
        assert summary.evaluated == 0
        assert harness.executor.probe.await_count == 1

    async def test_due_after_interval(self, harness: Harness) -> None:
        harness.executor.probe.return_value = _price("100")
        await harness.runner.run()
        harness.clock.advance(minutes=60)
        summary = await harness.runner.run()
        assert summary.evaluated == 1

    async def test_force_ignores_interval(self, harness: Harness) -> None:
        harness.executor.probe.return_value = _price("100")
        await harness.runner.run()
        summary = await harness.runner.run(force=True)
        assert summary.evaluated == 1

    async def test_zero_interval_always_due(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, _tracker(interval_mins=0))
        h.executor.probe.return_value = _price("100")
        await h.runner.run()
        summary = await h.runner.run()
        assert summary.evaluated == 1


# ── Baseline reset ──────────────────────────────────────────────


class TestResetBaseline:
    async def test_clear_rebaselines_on_next_reading(self, harness: Harness) -> None:
        await harness.step(_price("100"))
        await harness.step(_price("88"))
        assert await harness.runner.reset_baseline("laptop") is True

        state = await harness.state()
        assert state.baseline is None
        assert AlertType.PCT_DROP not in state.active_rules

        assert await harness.step(_price("88")) == []
        assert (await harness.state()).baseline == Decimal("88")

    async def test_explicit_price(self, harness: Harness) -> None:
        await harness.step(_price("88"))
        await harness.runner.reset_baseline("laptop", Decimal("98"))
        state = await harness.state()
        assert state.baseline == Decimal("98")
        assert state.baseline_at == harness.clock.now

        assert await harness.step(_price("88")) == [AlertType.PCT_DROP]

    async def test_threshold_rules_stay_armed(self, harness: Harness) -> None:
        await harness.step(_price("100"))
        await harness.step(_price("75"))
        await harness.runner.reset_baseline("laptop")
        assert AlertType.DROP_BELOW in (await harness.state()).active_rules

    async def test_unknown_tracker(self, harness: Harness) -> None:
        assert await harness.runner.reset_baseline("nope") is False


# ── Event ledger ────────────────────────────────────────────────


class TestEventLedger:
    async def test_triggered_alerts_recorded(self, harness: Harness) -> None:
        await harness.step(_price("100"))
        await harness.step(_price("75"))
        await harness.step(_price("74"))

        events = harness.events.list_for("laptop")
        assert [e.type for e in reversed(events)] == [AlertType.DROP_BELOW, AlertType.PCT_DROP]
        drop = events[-1]
        assert drop.price == Decimal("75")
        assert drop.threshold == Decimal("80")
        assert drop.message == "Price 75 NZD is below 80 NZD"
        assert drop.created_at == datetime(2026, 3, 1, 13, 0, tzinfo=UTC)

    async def test_error_and_recovery_recorded(self, harness: Harness) -> None:
        await harness.step(_price("100"))
        await harness.step(_error("HTTP 503"))
        await harness.step(_price("100"))

        error, recovery = reversed(harness.events.list_for("laptop"))
        assert error.type == AlertType.ERROR
        assert error.price is None
        assert error.message == "HTTP 503"
        assert recovery.type == AlertType.RECOVERY
        assert recovery.price == Decimal("100")

    async def test_quiet_readings_record_nothing(self, harness: Harness) -> None:
        await harness.step(_price("100"))
        await harness.step(_price("95"))
        assert harness.events.list_for("laptop") == []

    async def test_runner_without_ledger(self, tmp_path: Path) -> None:
        h = Harness(tmp_path)
        h.runner._events = None
        await h.step(_price("100"))
        assert await h.step(_price("75")) == [AlertType.DROP_BELOW, AlertType.PCT_DROP]
