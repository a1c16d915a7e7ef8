"""Evaluation engine — assertions, state machine, incidents, runners."""

from pulsewatch.engine.assertions import (
    AssertionResult,
    PriceRuleHit,
    check_assertion,
    evaluate_assertions,
    evaluate_price_rules,
    judge_check,
    percent_change,
)
from pulsewatch.engine.incidents import IncidentTracker
from pulsewatch.engine.maintenance import MaintenanceDecision, MaintenanceFilter
from pulsewatch.engine.pricewatch import PriceWatchRunner
from pulsewatch.engine.runner import AlertIntent, BaseRunner, Evaluation, MonitorRunner
from pulsewatch.engine.scheduler import MonitorScheduler
from pulsewatch.engine.state_machine import (
    Transition,
    append_history,
    compute_transition,
    history_entry,
)
from pulsewatch.engine.status import overall_status, status_summary, uptime_percent

__all__ = [
    "AlertIntent",
    "AssertionResult",
    "BaseRunner",
    "Evaluation",
    "IncidentTracker",
    "MaintenanceDecision",
    "MaintenanceFilter",
    "MonitorRunner",
    "MonitorScheduler",
    "PriceRuleHit",
    "PriceWatchRunner",
    "Transition",
    "append_history",
    "check_assertion",
    "compute_transition",
    "evaluate_assertions",
    "evaluate_price_rules",
    "history_entry",
    "judge_check",
    "overall_status",
    "percent_change",
    "status_summary",
    "uptime_percent",
]
