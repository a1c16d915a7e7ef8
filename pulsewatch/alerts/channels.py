"""Notification channels — webhook, Telegram, and email delivery."""

from __future__ import annotations

import abc
from html import escape as html_escape

import aiohttp
import structlog

from pulsewatch.alerts.formatters import format_alert
from pulsewatch.alerts.types import AlertMessage
from pulsewatch.core.config import EmailConfig, TelegramConfig, WebhookConfig
from pulsewatch.core.types import AlertPayload, ChannelKind

logger = structlog.get_logger(__name__)

_FAILURE_COLOR = "#ef4444"
_RECOVERY_COLOR = "#4ade80"

_FOOTER = "pulsewatch-monitor"


def _is_2xx(status: int) -> bool:
    return 200 <= status < 300


class NotificationChannel(abc.ABC):
    """Base class for alert delivery channels."""

    kind: ChannelKind

    def __init__(self, timeout_secs: float = 10.0) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout_secs)
        self._session: aiohttp.ClientSession | None = None

    @property
    def name(self) -> str:
        return self.kind.value

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def send(self, payload: AlertPayload) -> bool:
        """Send an alert. Returns True on HTTP 2xx."""
        msg = format_alert(payload)
        try:
            return await self._deliver(msg)
        except Exception:
            logger.exception("channel_send_error", channel=self.name, title=msg.title)
            return False

    @abc.abstractmethod
    async def _deliver(self, msg: AlertMessage) -> bool:
        """Put *msg* on the wire."""

    async def _post(self, url: str, payload: dict, headers: dict[str, str] | None = None) -> bool:
        session = self._get_session()
        async with session.post(url, json=payload, headers=headers) as resp:
            if _is_2xx(resp.status):
                return True
            body = await resp.text()
            logger.warning(
                "channel_send_failed",
                channel=self.name,
                status=resp.status,
                body=body[:200],
            )
            return False

    async def close(self) -> None:
        """Release the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


class WebhookChannel(NotificationChannel):
    """Incoming-webhook delivery (Slack-compatible attachment format)."""

    kind = ChannelKind.WEBHOOK

    def __init__(self, config: WebhookConfig, timeout_secs: float = 10.0) -> None:
        super().__init__(timeout_secs)
        self._url = config.url.get_secret_value()

    async def _deliver(self, msg: AlertMessage) -> bool:
        emoji = ":red_circle:" if msg.is_failure else ":large_green_circle:"
        payload = {
            "text": f"{emoji} {msg.title}",
            "attachments": [
                {
                    "color": _FAILURE_COLOR if msg.is_failure else _RECOVERY_COLOR,
                    "fields": [
                        {"title": f.label, "value": f.value, "short": f.short}
                        for f in msg.fields
                    ],
                    "footer": f"{_FOOTER} | {msg.url}",
                    "ts": int(msg.timestamp.timestamp()),
                },
            ],
        }
        return await self._post(self._url, payload)


class TelegramChannel(NotificationChannel):
    """Delivers alerts via the Telegram Bot API (HTML parse mode)."""

    kind = ChannelKind.TELEGRAM

    def __init__(self, config: TelegramConfig, timeout_secs: float = 10.0) -> None:
        super().__init__(timeout_secs)
        self._token = config.bot_token.get_secret_value()
        self._chat_id = config.chat_id
        self._api_base = config.api_base.rstrip("/")

    def render(self, msg: AlertMessage) -> str:
        emoji = "\U0001F534" if msg.is_failure else "\U0001F7E2"
        lines = [
            f"{emoji} <b>{html_escape(msg.title)}</b>",
            "",
            f"<b>URL:</b> {html_escape(msg.url)}",
        ]
        lines.extend(
            f"<b>{html_escape(f.label)}:</b> {html_escape(f.value)}"
            for f in msg.fields
        )
        lines.extend(["", f"<i>{msg.timestamp.isoformat()}</i>"])
        return "\n".join(lines)

    async def _deliver(self, msg: AlertMessage) -> bool:
        url = f"{self._api_base}/bot{self._token}/sendMessage"
        payload = {
            "chat_id": self._chat_id,
            "text": self.render(msg),
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        return await self._post(url, payload)


class EmailChannel(NotificationChannel):
    """Transactional email via a Resend-compatible HTTP API."""

    kind = ChannelKind.EMAIL

    def __init__(self, config: EmailConfig, timeout_secs: float = 10.0) -> None:
        super().__init__(timeout_secs)
        self._api_key = config.api_key.get_secret_value()
        self._api_url = config.api_url
        self._from = config.from_email
        self._to = config.to_email

    @staticmethod
    def subject(msg: AlertMessage) -> str:
        return f"[Monitor] {msg.title}"

    def render(self, msg: AlertMessage) -> str:
        color = _FAILURE_COLOR if msg.is_failure else _RECOVERY_COLOR
        rows = [_row("Target", msg.target_name), _row("URL", msg.url)]
        rows.extend(_row(f.label, f.value) for f in msg.fields)
        rows.append(_row("Timestamp", msg.timestamp.isoformat()))
        table = "\n    ".join(rows)
        return (
            '<div style="font-family: -apple-system, sans-serif; max-width: 600px;">\n'
            f'  <div style="background: {color}; color: white; padding: 12px 16px;'
            ' border-radius: 8px 8px 0 0;">\n'
            f"    <strong>{html_escape(msg.title)}</strong>\n"
            "  </div>\n"
            '  <table style="width: 100%; border-collapse: collapse; border: 1px solid #e5e7eb;">\n'
            f"    {table}\n"
            "  </table>\n"
            f'  <p style="color: #6b7280; font-size: 12px; margin-top: 8px;">Sent by {_FOOTER}</p>\n'
            "</div>"
        )

    async def _deliver(self, msg: AlertMessage) -> bool:
        payload = {
            "from": self._from,
            "to": [self._to],
            "subject": self.subject(msg),
            "html": self.render(msg),
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        return await self._post(self._api_url, payload, headers=headers)


def _row(label: str, value: str) -> str:
    cell = "padding: 8px 12px; border-bottom: 1px solid #e5e7eb;"
    return (
        f'<tr><td style="{cell} font-weight: 600; width: 140px;">{html_escape(label)}</td>'
        f'<td style="{cell}">{html_escape(value)}</td></tr>'
    )
