"""PriceWatchRunner — price trackers on the shared evaluation engine.

A failed probe moves the tracker to unhealthy and raises an ``error`` alert
on entry; the next success raises ``recovery``. Threshold and percentage
rules are evaluated independently against the newest reading and the
baseline (first successful reading). A rule alerts when it starts firing
and stays quiet while it keeps firing.
"""

from __future__ import annotations

import datetime
from decimal import Decimal
from typing import cast

import structlog

from pulsewatch.alerts.router import AlertRouter
from pulsewatch.core.types import (
    AlertType,
    PriceAlertEvent,
    PriceTrackerConfig,
    PriceTrackerState,
    PriceWatchState,
    ProbeOutcome,
    TargetState,
)
from pulsewatch.engine.assertions import PriceRuleHit, evaluate_price_rules, percent_change
from pulsewatch.engine.runner import AlertIntent, BaseRunner, Clock, Evaluation
from pulsewatch.engine.state_machine import compute_transition
from pulsewatch.probes.executor import ProbeExecutor
from pulsewatch.storage.config_source import ConfigSource
from pulsewatch.storage.history_sink import HistorySink
from pulsewatch.storage.price_events import PriceEventStore
from pulsewatch.storage.state_store import StateStore

logger = structlog.stdlib.get_logger()

# A single failed probe is enough to put a tracker in error.
_ERROR_THRESHOLD = 1


def _describe_hit(
    hit: PriceRuleHit,
    price: Decimal,
    baseline: Decimal | None,
    currency: str,
) -> str:
    if hit.alert_type == AlertType.DROP_BELOW:
        return f"Price {price} {currency} is below {hit.threshold} {currency}"
    if hit.alert_type == AlertType.RISE_ABOVE:
        return f"Price {price} {currency} is above {hit.threshold} {currency}"
    direction = "down" if hit.alert_type == AlertType.PCT_DROP else "up"
    return (
        f"Price {price} {currency} is {direction} {abs(hit.change_pct or 0.0):.1f}%"
        f" from baseline {baseline} {currency}"
    )


class PriceWatchRunner(BaseRunner[PriceTrackerConfig, PriceWatchState]):
    """Runs price trackers whose polling interval has elapsed."""

    name = "pricewatch"

    def __init__(
        self,
        config_source: ConfigSource,
        state_store: StateStore[PriceWatchState],
        executor: ProbeExecutor,
        router: AlertRouter,
        history_sink: HistorySink | None = None,
        clock: Clock | None = None,
        events: PriceEventStore | None = None,
    ) -> None:
        super().__init__(config_source, state_store, executor, router, history_sink, clock)
        self._events = events

    async def _load_targets(self) -> list[PriceTrackerConfig]:
        return await self._config_source.list_price_trackers()

    def _initial_state(self, target: PriceTrackerConfig) -> TargetState:
        return PriceTrackerState(id=target.id)

    def _is_due(
        self,
        target: PriceTrackerConfig,
        prior: TargetState,
        now: datetime.datetime,
    ) -> bool:
        if target.interval_mins == 0 or prior.last_check is None:
            return True
        return now - prior.last_check >= datetime.timedelta(minutes=target.interval_mins)

    def _evaluate(
        self,
        target: PriceTrackerConfig,
        prior: TargetState,
        outcome: ProbeOutcome,
        now: datetime.datetime,
    ) -> Evaluation:
        prior = cast(PriceTrackerState, prior)
        transitioned, alert_type = compute_transition(prior, outcome, _ERROR_THRESHOLD, now)
        new_state = cast(PriceTrackerState, transitioned)

        alerts: list[AlertIntent] = []
        if alert_type == AlertType.FAILURE:
            alerts.append(AlertIntent(AlertType.ERROR, message=outcome.error))
        elif alert_type == AlertType.RECOVERY:
            alerts.append(AlertIntent(AlertType.RECOVERY))

        if not outcome.success or outcome.value is None:
            new_state.in_error = True
            self._record_events(target, outcome, alerts, now)
            return Evaluation(new_state, outcome, alerts)

        price = outcome.value
        new_state.in_error = False
        new_state.last_price = price
        if new_state.baseline is None:
            new_state.baseline = price
            new_state.baseline_at = now
            logger.info("price_baseline_set", target_id=target.id, baseline=str(price))

        baseline = new_state.baseline
        hits = evaluate_price_rules(target, price, baseline)
        change = percent_change(price, baseline) if baseline else None

        for hit in hits:
            if hit.alert_type in prior.active_rules:
                continue
            alerts.append(AlertIntent(
                hit.alert_type,
                threshold=hit.threshold,
                baseline=baseline,
                change_pct=hit.change_pct if hit.change_pct is not None else change,
                message=_describe_hit(hit, price, baseline, target.currency),
            ))
        new_state.active_rules = [hit.alert_type for hit in hits]

        self._record_events(target, outcome, alerts, now)
        return Evaluation(new_state, outcome, alerts)

    def _record_events(
        self,
        target: PriceTrackerConfig,
        outcome: ProbeOutcome,
        alerts: list[AlertIntent],
        now: datetime.datetime,
    ) -> None:
        if self._events is None:
            return
        for intent in alerts:
            self._events.add(PriceAlertEvent(
                tracker_id=target.id,
                type=intent.type,
                price=outcome.value,
                threshold=intent.threshold,
                message=intent.message,
                created_at=now,
            ))

    async def reset_baseline(self, tracker_id: str, price: Decimal | None = None) -> bool:
        """Replace a tracker's baseline and persist the change.

        With *price* None the baseline is cleared and the next successful
        reading becomes the new baseline. Percentage rules are re-armed.

        Returns:
            False if the tracker has no saved state.
        """
        state = await self._state_store.load()
        tracker_state = state.targets.get(tracker_id)
        if tracker_state is None:
            return False

        tracker_state.baseline = price
        tracker_state.baseline_at = self._now() if price is not None else None
        tracker_state.active_rules = [
            r for r in tracker_state.active_rules
            if r not in (AlertType.PCT_DROP, AlertType.PCT_RISE)
        ]
        await self._state_store.save(state)
        logger.info(
            "price_baseline_reset",
            target_id=tracker_id,
            baseline=str(price) if price is not None else None,
        )
        return True
