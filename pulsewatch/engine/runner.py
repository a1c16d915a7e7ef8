"""Run orchestration — sequential per-target evaluation with one state write."""

from __future__ import annotations

import abc
import datetime
from collections.abc import Callable
from decimal import Decimal
from typing import Generic, NamedTuple, TypeVar

import structlog

from pulsewatch.alerts.router import AlertRouter
from pulsewatch.core.types import (
    AlertPayload,
    AlertRule,
    AlertType,
    CheckConfig,
    HistoryRecord,
    MonitoringState,
    PriceTrackerConfig,
    PriceWatchState,
    ProbeOutcome,
    RunSummary,
    TargetState,
)
from pulsewatch.engine.assertions import judge_check
from pulsewatch.engine.incidents import IncidentTracker
from pulsewatch.engine.maintenance import MaintenanceFilter
from pulsewatch.engine.state_machine import append_history, compute_transition, history_entry
from pulsewatch.probes.executor import ProbeExecutor
from pulsewatch.storage.config_source import ConfigSource
from pulsewatch.storage.history_sink import HistorySink, NullHistorySink
from pulsewatch.storage.state_store import StateStore

logger = structlog.stdlib.get_logger()

# Same logger the router writes routing decisions to.
decision_logger = structlog.get_logger("decision_log")

Clock = Callable[[], datetime.datetime]

TargetT = TypeVar("TargetT", CheckConfig, PriceTrackerConfig)
RunStateT = TypeVar("RunStateT", MonitoringState, PriceWatchState)


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class AlertIntent(NamedTuple):
    """An alert to raise, before it is turned into a payload."""

    type: AlertType
    threshold: Decimal | None = None
    baseline: Decimal | None = None
    change_pct: float | None = None
    message: str | None = None


class Evaluation(NamedTuple):
    """Result of judging one outcome for one target."""

    new_state: TargetState
    outcome: ProbeOutcome
    alerts: list[AlertIntent]


class BaseRunner(abc.ABC, Generic[TargetT, RunStateT]):
    """Shared run loop for uptime checks and price trackers.

    Subclasses supply the target list and the evaluation step; the base
    class handles maintenance, history, alert suppression and dispatch,
    per-target error isolation, and the single end-of-run state write.
    """

    name: str = "runner"

    def __init__(
        self,
        config_source: ConfigSource,
        state_store: StateStore[RunStateT],
        executor: ProbeExecutor,
        router: AlertRouter,
        history_sink: HistorySink | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._config_source = config_source
        self._state_store = state_store
        self._executor = executor
        self._router = router
        self._history = history_sink or NullHistorySink()
        self._clock = clock or utc_now

    def _now(self) -> datetime.datetime:
        return self._clock()

    # ── Subclass hooks ──────────────────────────────────────────

    @abc.abstractmethod
    async def _load_targets(self) -> list[TargetT]:
        """Enabled targets for this run, in order."""

    @abc.abstractmethod
    def _initial_state(self, target: TargetT) -> TargetState:
        """Empty state for a target seen for the first time."""

    @abc.abstractmethod
    def _evaluate(
        self,
        target: TargetT,
        prior: TargetState,
        outcome: ProbeOutcome,
        now: datetime.datetime,
    ) -> Evaluation:
        """Judge *outcome* and compute the new state and alerts."""

    def _is_due(self, target: TargetT, prior: TargetState, now: datetime.datetime) -> bool:
        return True

    # ── Run loop ────────────────────────────────────────────────

    async def run(self, force: bool = False) -> RunSummary:
        """Evaluate every target once, then persist state.

        Raises:
            StateStoreError: If the final state write fails.
            ConfigSourceError: If targets cannot be loaded.
        """
        state = await self._state_store.load()
        targets = await self._load_targets()
        rules = await self._config_source.list_alert_rules()
        maintenance = MaintenanceFilter(await self._config_source.list_maintenance_windows())
        summary = RunSummary()

        logger.info("run_started", runner=self.name, targets=len(targets), rules=len(rules))

        for target in targets:
            try:
                await self._run_target(target, state, rules, maintenance, summary, force)
            except Exception:
                summary.errors += 1
                logger.exception("target_evaluation_error", runner=self.name, target_id=target.id)

        state.last_run = self._now()
        await self._state_store.save(state)

        logger.info("run_finished", runner=self.name, **summary.model_dump())
        return summary

    async def _run_target(
        self,
        target: TargetT,
        state: RunStateT,
        rules: list[AlertRule],
        maintenance: MaintenanceFilter,
        summary: RunSummary,
        force: bool,
    ) -> None:
        now = self._now()
        decision = maintenance.decide(target, now)
        if decision.skip_execution:
            summary.skipped += 1
            logger.info(
                "target_skipped_maintenance",
                target_id=target.id,
                windows=[w.id for w in decision.windows],
            )
            return

        prior = state.targets.get(target.id)
        if prior is None:
            prior = self._initial_state(target)
        if not force and not self._is_due(target, prior, now):
            summary.skipped += 1
            return

        outcome = await self._executor.probe(target)
        now = self._now()
        evaluation = self._evaluate(target, prior, outcome, now)
        append_history(evaluation.new_state, history_entry(evaluation.new_state, evaluation.outcome, now))
        state.targets[target.id] = evaluation.new_state  # type: ignore[assignment]
        summary.evaluated += 1

        logger.info(
            "target_evaluated",
            target_id=target.id,
            success=evaluation.outcome.success,
            status=evaluation.new_state.status,
            elapsed_ms=evaluation.outcome.elapsed_ms,
            error=evaluation.outcome.error,
        )

        await self._record_history(target, evaluation, now)

        if not evaluation.alerts:
            return

        if decision.suppress_alerts:
            summary.alerts_suppressed += len(evaluation.alerts)
            for intent in evaluation.alerts:
                decision_logger.info(
                    "decision",
                    alert_type=intent.type.value,
                    target_id=target.id,
                    target_name=target.name,
                    status=evaluation.new_state.status.value,
                    channels=[],
                    suppressed="maintenance",
                    windows=[w.id for w in decision.windows],
                )
            return

        payloads = [
            AlertPayload(
                type=intent.type,
                target=target,
                state=evaluation.new_state.model_copy(deep=True),
                outcome=evaluation.outcome,
                timestamp=now,
                threshold=intent.threshold,
                baseline=intent.baseline,
                change_pct=intent.change_pct,
                message=intent.message,
            )
            for intent in evaluation.alerts
        ]

        for payload in payloads:
            logger.info("alert_dispatching", target_id=target.id, alert_type=payload.type.value)
            report = await self._router.dispatch(payload, rules)
            if report.delivered:
                summary.alerts_sent += 1
            elif report.failed:
                summary.alerts_failed += 1

    async def _record_history(
        self,
        target: TargetT,
        evaluation: Evaluation,
        now: datetime.datetime,
    ) -> None:
        outcome = evaluation.outcome
        value = outcome.value
        if value is None and outcome.status_code is not None:
            value = Decimal(outcome.status_code)
        record = HistoryRecord(
            target_id=target.id,
            target_name=target.name,
            kind=target.kind,
            status=evaluation.new_state.status,
            error=outcome.error,
            elapsed_ms=outcome.elapsed_ms,
            value=value,
            timestamp=now,
        )
        try:
            await self._history.append(record)
        except Exception:
            logger.exception("history_sink_error", target_id=target.id)


class MonitorRunner(BaseRunner[CheckConfig, MonitoringState]):
    """Runs uptime checks: assertions, hysteresis, incidents, alerts.

    Usage::

        runner = MonitorRunner(
            config_source=YamlConfigSource("config/targets.yaml"),
            state_store=JsonFileStateStore(path, MonitoringState),
            executor=executor,
            router=router,
            incidents=IncidentTracker(InMemoryIncidentStore()),
        )
        summary = await runner.run()
    """

    name = "monitor"

    def __init__(
        self,
        config_source: ConfigSource,
        state_store: StateStore[MonitoringState],
        executor: ProbeExecutor,
        router: AlertRouter,
        incidents: IncidentTracker,
        history_sink: HistorySink | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(config_source, state_store, executor, router, history_sink, clock)
        self._incidents = incidents

    async def _load_targets(self) -> list[CheckConfig]:
        return await self._config_source.list_checks()

    def _initial_state(self, target: CheckConfig) -> TargetState:
        return TargetState(id=target.id)

    def _evaluate(
        self,
        target: CheckConfig,
        prior: TargetState,
        outcome: ProbeOutcome,
        now: datetime.datetime,
    ) -> Evaluation:
        judged = judge_check(outcome, target)
        new_state, alert_type = compute_transition(prior, judged, target.failure_threshold, now)

        if new_state.status != prior.status:
            self._incidents.record(target.id, prior.status, new_state.status, judged.error, now)

        alerts = [AlertIntent(alert_type)] if alert_type is not None else []
        return Evaluation(new_state, judged, alerts)
