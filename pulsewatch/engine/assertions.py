"""Pure predicate functions — check assertions and price rules."""

from __future__ import annotations

import re
from decimal import Decimal
from typing import NamedTuple

from pulsewatch.core.types import (
    AlertType,
    BODY_LIMIT_BYTES,
    BodyAssertion,
    CheckConfig,
    HeaderAssertion,
    PriceTrackerConfig,
    ProbeOutcome,
    ResponseTimeAssertion,
    StatusCodeAssertion,
)

AnyAssertion = StatusCodeAssertion | ResponseTimeAssertion | HeaderAssertion | BodyAssertion

DEFAULT_ASSERTIONS: tuple[AnyAssertion, ...] = (StatusCodeAssertion(operator="is", value=200),)


class AssertionResult(NamedTuple):
    """Outcome of evaluating a check's assertions."""

    passed: bool
    reason: str | None = None


class PriceRuleHit(NamedTuple):
    """A price rule that fired for the current reading."""

    alert_type: AlertType
    threshold: Decimal
    change_pct: float | None = None


# ── Check assertions ────────────────────────────────────────────


def _compare_text(operator: str, actual: str | None, expected: str) -> bool:
    if operator == "is":
        return actual == expected
    if operator == "isNot":
        return actual != expected
    if actual is None:
        return False
    if operator == "contains":
        return expected in actual
    if operator == "matches":
        try:
            return re.search(expected, actual) is not None
        except re.error:
            return False
    return False


def _describe(assertion: AnyAssertion, actual: object) -> str:
    if isinstance(assertion, StatusCodeAssertion):
        if assertion.operator == "is":
            return f"Expected status {assertion.value}, got {actual}"
        return f"Expected status not {assertion.value}, got {actual}"
    if isinstance(assertion, ResponseTimeAssertion):
        return f"Expected response time < {assertion.value}ms, got {actual}ms"
    if isinstance(assertion, HeaderAssertion):
        return (
            f"Expected header '{assertion.name}' {assertion.operator}"
            f" '{assertion.value}', got {actual!r}"
        )
    return f"Expected body {assertion.operator} '{assertion.value}'"


def check_assertion(outcome: ProbeOutcome, assertion: AnyAssertion) -> AssertionResult:
    """Evaluate a single assertion against a transport-successful outcome."""
    if isinstance(assertion, StatusCodeAssertion):
        actual_code = outcome.status_code
        if assertion.operator == "is":
            passed = actual_code == assertion.value
        else:
            passed = actual_code != assertion.value
        return AssertionResult(passed, None if passed else _describe(assertion, actual_code))

    if isinstance(assertion, ResponseTimeAssertion):
        passed = outcome.elapsed_ms < assertion.value
        return AssertionResult(passed, None if passed else _describe(assertion, outcome.elapsed_ms))

    if isinstance(assertion, HeaderAssertion):
        actual_header = outcome.headers.get(assertion.name.lower())
        passed = _compare_text(assertion.operator, actual_header, assertion.value)
        return AssertionResult(passed, None if passed else _describe(assertion, actual_header))

    body = outcome.body.encode("utf-8")[:BODY_LIMIT_BYTES].decode("utf-8", errors="ignore")
    passed = _compare_text(assertion.operator, body, assertion.value)
    return AssertionResult(passed, None if passed else _describe(assertion, None))


def evaluate_assertions(
    outcome: ProbeOutcome,
    assertions: list[AnyAssertion] | tuple[AnyAssertion, ...],
) -> AssertionResult:
    """AND all assertions, short-circuiting on the first failure.

    An empty list means "status code is 200". A transport failure fails
    with the transport error unchanged.
    """
    if not outcome.success:
        return AssertionResult(False, outcome.error)

    for assertion in assertions or DEFAULT_ASSERTIONS:
        result = check_assertion(outcome, assertion)
        if not result.passed:
            return result
    return AssertionResult(True)


def judge_check(outcome: ProbeOutcome, check: CheckConfig) -> ProbeOutcome:
    """Return a copy of *outcome* with success/error set by the assertions."""
    result = evaluate_assertions(outcome, check.assertions)
    if result.passed or not outcome.success:
        return outcome
    return outcome.model_copy(update={"success": False, "error": result.reason})


# ── Price rules ─────────────────────────────────────────────────


def percent_change(current: Decimal, baseline: Decimal) -> float:
    """``(current - baseline) / baseline * 100``."""
    return float((current - baseline) / baseline * 100)


def evaluate_price_rules(
    tracker: PriceTrackerConfig,
    price: Decimal,
    baseline: Decimal | None,
) -> list[PriceRuleHit]:
    """Check each configured rule independently; any number may fire."""
    hits: list[PriceRuleHit] = []

    if tracker.alert_below is not None and price < tracker.alert_below:
        hits.append(PriceRuleHit(AlertType.DROP_BELOW, tracker.alert_below))

    if tracker.alert_above is not None and price > tracker.alert_above:
        hits.append(PriceRuleHit(AlertType.RISE_ABOVE, tracker.alert_above))

    if baseline is None or baseline == 0:
        return hits

    change = percent_change(price, baseline)

    if tracker.alert_pct_drop is not None and change <= -float(tracker.alert_pct_drop):
        hits.append(PriceRuleHit(AlertType.PCT_DROP, tracker.alert_pct_drop, change))

    if tracker.alert_pct_rise is not None and change >= float(tracker.alert_pct_rise):
        hits.append(PriceRuleHit(AlertType.PCT_RISE, tracker.alert_pct_rise, change))

    return hits
