"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, SecretStr

from pulsewatch.core.types import ChannelKind

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Z0-9_]+)\s*\}\}")

# Used when {{WORKER_URL}} appears in a target URL but no value is configured.
_DEFAULT_WORKER_URL = "http://localhost:8787"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"


class ProbeConfig(BaseModel):
    """Defaults applied to every probe attempt."""

    user_agent: str = "pulsewatch-monitor/1.0"
    body_limit_bytes: int = 64 * 1024
    follow_redirects: bool = True
    placeholders: dict[str, str] = {}


class TelegramConfig(BaseModel):
    """Telegram Bot API credentials."""

    enabled: bool = False
    bot_token: SecretStr = SecretStr("")
    chat_id: str = ""
    api_base: str = "https://api.telegram.org"


class WebhookConfig(BaseModel):
    """Incoming-webhook (Slack-compatible) channel."""

    enabled: bool = False
    url: SecretStr = SecretStr("")


class EmailConfig(BaseModel):
    """Transactional email (Resend API) channel."""

    enabled: bool = False
    api_key: SecretStr = SecretStr("")
    from_email: str = ""
    to_email: str = ""
    api_url: str = "https://api.resend.com/emails"


class ChannelRoute(BaseModel):
    """Tag-based route for a channel (pre-rule routing model)."""

    kind: ChannelKind
    enabled: bool = True
    tags: list[str] = []


class AlertsConfig(BaseModel):
    """Notification channels and legacy routing."""

    telegram: TelegramConfig = TelegramConfig()
    webhook: WebhookConfig = WebhookConfig()
    email: EmailConfig = EmailConfig()
    routes: list[ChannelRoute] = []
    send_timeout_secs: float = 10.0


class StorageConfig(BaseModel):
    """File locations for the default collaborator implementations."""

    targets_path: str = "config/targets.yaml"
    state_path: str = "data/monitoring/state.json"
    price_state_path: str = "data/pricewatch/state.json"
    history_path: str = "data/history.jsonl"
    incidents_db_path: str = "data/incidents.sqlite3"


class SchedulerConfig(BaseModel):
    """Background run loop configuration."""

    interval_secs: float = 300.0
    run_checks: bool = True
    run_price_trackers: bool = True


class Settings(BaseModel):
    """Root settings container."""

    logging: LoggingConfig = LoggingConfig()
    probe: ProbeConfig = ProbeConfig()
    alerts: AlertsConfig = AlertsConfig()
    storage: StorageConfig = StorageConfig()
    scheduler: SchedulerConfig = SchedulerConfig()


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance. A missing file yields defaults.
    """
    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    return Settings(**data)


def resolve_url(url: str, placeholders: dict[str, str]) -> str:
    """Replace ``{{NAME}}`` placeholders in *url*.

    Values have trailing slashes stripped. Unknown names are left untouched,
    except ``WORKER_URL`` which falls back to the local dev server.
    """

    def _sub(match: re.Match[str]) -> str:
        name = match.group(1)
        value = placeholders.get(name)
        if value is None:
            if name == "WORKER_URL":
                return _DEFAULT_WORKER_URL
            return match.group(0)
        return value.rstrip("/")

    return _PLACEHOLDER_RE.sub(_sub, url)
