"""Domain types for checks, price trackers, state, incidents, and alerts."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, field_validator

# 24h of history at a 5-minute cadence.
HISTORY_CAPACITY = 288

# Body assertions only ever see this much of the response text.
BODY_LIMIT_BYTES = 64 * 1024


class TargetStatus(StrEnum):
    """Health status of a monitored target."""

    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class CheckType(StrEnum):
    """How a check's page is fetched."""

    API = "api"
    BROWSER = "browser"


class AlertType(StrEnum):
    """Alert intent emitted by an evaluation."""

    FAILURE = "failure"
    RECOVERY = "recovery"
    ERROR = "error"
    DROP_BELOW = "drop_below"
    RISE_ABOVE = "rise_above"
    PCT_DROP = "pct_drop"
    PCT_RISE = "pct_rise"


class IncidentType(StrEnum):
    """Severity recorded on an incident."""

    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ChannelKind(StrEnum):
    """Notification transport."""

    WEBHOOK = "webhook"
    TELEGRAM = "telegram"
    EMAIL = "email"


# ── Assertions ───────────────────────────────────────────────────


class StatusCodeAssertion(BaseModel):
    """HTTP status code equality/inequality."""

    model_config = ConfigDict(frozen=True)

    type: Literal["statusCode"] = "statusCode"
    operator: Literal["is", "isNot"] = "is"
    value: int = 200


class ResponseTimeAssertion(BaseModel):
    """Elapsed time must stay under *value* milliseconds."""

    model_config = ConfigDict(frozen=True)

    type: Literal["responseTime"] = "responseTime"
    operator: Literal["lessThan"] = "lessThan"
    value: int


class HeaderAssertion(BaseModel):
    """Comparison against a named response header."""

    model_config = ConfigDict(frozen=True)

    type: Literal["header"] = "header"
    name: str
    operator: Literal["is", "isNot", "contains", "matches"] = "is"
    value: str


class BodyAssertion(BaseModel):
    """Comparison against the (truncated) response body."""

    model_config = ConfigDict(frozen=True)

    type: Literal["body"] = "body"
    operator: Literal["is", "isNot", "contains", "matches"] = "contains"
    value: str


Assertion = Annotated[
    Union[StatusCodeAssertion, ResponseTimeAssertion, HeaderAssertion, BodyAssertion],
    Field(discriminator="type"),
]


# ── Price extraction ─────────────────────────────────────────────


class JsonExtract(BaseModel):
    """Dotted path into a JSON response, e.g. ``data.offers.0.price``."""

    model_config = ConfigDict(frozen=True)

    strategy: Literal["json"] = "json"
    path: str


class RegexExtract(BaseModel):
    """Regex over the response text; *group* holds the price."""

    model_config = ConfigDict(frozen=True)

    strategy: Literal["regex"] = "regex"
    pattern: str
    group: int = 1


class BrowserExtract(BaseModel):
    """Rendered-page extraction, delegated to a host-provided extractor."""

    model_config = ConfigDict(frozen=True)

    strategy: Literal["browser"] = "browser"
    selector: str
    wait_ms: int = 0


ExtractSpec = Annotated[
    Union[JsonExtract, RegexExtract, BrowserExtract],
    Field(discriminator="strategy"),
]


# ── Target configuration ─────────────────────────────────────────


class TargetConfig(BaseModel):
    """Fields shared by uptime checks and price trackers."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    url: str
    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = None
    timeout_ms: int = Field(default=10_000, gt=0)
    retry_count: int = Field(default=0, ge=0)
    retry_delay_ms: int = Field(default=300, ge=0)
    tags: list[str] = Field(default_factory=list)
    group_id: str | None = None
    enabled: bool = True


class CheckConfig(TargetConfig):
    """Uptime check definition."""

    kind: Literal["check"] = "check"
    type: CheckType = CheckType.API
    assertions: list[Assertion] = Field(default_factory=list)
    failure_threshold: int = Field(default=2, ge=1)


class PriceTrackerConfig(TargetConfig):
    """Price tracker definition."""

    kind: Literal["price"] = "price"
    extract: ExtractSpec
    currency: str = "NZD"
    interval_mins: int = Field(default=60, ge=0)
    alert_below: Decimal | None = None
    alert_above: Decimal | None = None
    alert_pct_drop: Decimal | None = None
    alert_pct_rise: Decimal | None = None


AnyTarget = Annotated[
    Union[CheckConfig, PriceTrackerConfig],
    Field(discriminator="kind"),
]


# ── Outcomes & state ─────────────────────────────────────────────


class ProbeOutcome(BaseModel):
    """Result of one probe, as returned by the executor."""

    model_config = ConfigDict(frozen=True)

    target_id: str
    success: bool
    status_code: int | None = None
    value: Decimal | None = None
    raw_text: str | None = None
    elapsed_ms: int = 0
    error: str | None = None
    timed_out: bool = False
    headers: dict[str, str] = Field(default_factory=dict)
    body: str = ""


class HistoryEntry(BaseModel):
    """One evaluation in a target's rolling history."""

    timestamp: datetime
    status: TargetStatus
    response_time_ms: int
    error: str | None = None


class TargetState(BaseModel):
    """Mutable per-target hot state, persisted after every run."""

    id: str
    status: TargetStatus = TargetStatus.UNKNOWN
    consecutive_failures: int = Field(default=0, ge=0)
    last_check: datetime | None = None
    last_success: datetime | None = None
    last_error: str | None = None
    response_time_ms: int | None = None
    last_response_value: Decimal | None = None
    history: list[HistoryEntry] = Field(default_factory=list)


class PriceTrackerState(TargetState):
    """Hot state for a price tracker: adds baseline and crossing memory."""

    baseline: Decimal | None = None
    baseline_at: datetime | None = None
    last_price: Decimal | None = None
    in_error: bool = False
    active_rules: list[AlertType] = Field(default_factory=list)


class MonitoringState(BaseModel):
    """Persisted hot state for all uptime checks."""

    targets: dict[str, TargetState] = Field(default_factory=dict)
    last_run: datetime | None = None


class PriceWatchState(BaseModel):
    """Persisted hot state for all price trackers."""

    targets: dict[str, PriceTrackerState] = Field(default_factory=dict)
    last_run: datetime | None = None


# ── Incidents, rules, windows ────────────────────────────────────


class Incident(BaseModel):
    """A recorded span of degraded/unhealthy status."""

    id: int | None = None
    target_id: str
    type: IncidentType
    started_at: datetime
    resolved_at: datetime | None = None
    duration_s: int | None = None
    trigger_error: str | None = None

    @property
    def is_open(self) -> bool:
        return self.resolved_at is None


class PriceAlertEvent(BaseModel):
    """A price alert that fired, kept whether or not it was delivered."""

    id: int | None = None
    tracker_id: str
    type: AlertType
    price: Decimal | None = None
    threshold: Decimal | None = None
    message: str | None = None
    created_at: datetime


class AlertRule(BaseModel):
    """Routes alerts for a scope (target, group, or global) to a channel."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    target_id: str | None = None
    group_id: str | None = None
    channel: ChannelKind
    config: dict[str, str] = Field(default_factory=dict)
    on_failure: bool = True
    on_recovery: bool = True
    enabled: bool = True

    @property
    def is_global(self) -> bool:
        return self.target_id is None and self.group_id is None


class MaintenanceWindow(BaseModel):
    """Planned downtime for a target or group."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    target_id: str | None = None
    group_id: str | None = None
    starts_at: datetime
    ends_at: datetime
    reason: str | None = None
    suppress_alerts: bool = True
    skip_checks: bool = False

    @field_validator("starts_at", "ends_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        """Naive timestamps are read as UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def contains(self, now: datetime) -> bool:
        """Half-open interval test: ``starts_at <= now < ends_at``."""
        return self.starts_at <= now < self.ends_at


# ── Alerts & analytics ───────────────────────────────────────────


class AlertPayload(BaseModel):
    """Snapshot fanned out unmodified to every matched channel."""

    model_config = ConfigDict(frozen=True)

    type: AlertType
    target: AnyTarget
    state: SerializeAsAny[TargetState]
    outcome: ProbeOutcome
    timestamp: datetime
    threshold: Decimal | None = None
    baseline: Decimal | None = None
    change_pct: float | None = None
    message: str | None = None

    @property
    def is_failure(self) -> bool:
        return self.type != AlertType.RECOVERY


class HistoryRecord(BaseModel):
    """One append-only analytics row per executed probe."""

    target_id: str
    target_name: str
    kind: str
    status: TargetStatus
    error: str | None = None
    elapsed_ms: int
    value: Decimal | None = None
    timestamp: datetime
    extra: dict[str, Any] = Field(default_factory=dict)


class RunSummary(BaseModel):
    """Counters for one scheduled run."""

    evaluated: int = 0
    skipped: int = 0
    errors: int = 0
    alerts_sent: int = 0
    alerts_failed: int = 0
    alerts_suppressed: int = 0


# ── Status summary ───────────────────────────────────────────────


class TargetStatusSummary(BaseModel):
    """Read-only view of one target for status pages."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    status: TargetStatus
    last_check: datetime | None = None
    response_time_ms: int | None = None
    uptime_percent: float | None = None


class StatusSummary(BaseModel):
    """Overall health plus one entry per configured target."""

    model_config = ConfigDict(frozen=True)

    overall: TargetStatus
    targets: list[TargetStatusSummary] = Field(default_factory=list)
    last_run: datetime | None = None
