"""Builds channel instances from settings credentials and rule overrides."""

from __future__ import annotations

import structlog
from pydantic import SecretStr

from pulsewatch.alerts.channels import (
    EmailChannel,
    NotificationChannel,
    TelegramChannel,
    WebhookChannel,
)
from pulsewatch.alerts.exceptions import ChannelConfigError
from pulsewatch.core.config import (
    AlertsConfig,
    ChannelRoute,
    EmailConfig,
    TelegramConfig,
    WebhookConfig,
)
from pulsewatch.core.types import ChannelKind

logger = structlog.get_logger(__name__)

ChannelKey = tuple[ChannelKind, tuple[tuple[str, str], ...]]


class ChannelFactory:
    """Creates and caches one channel per distinct (kind, credentials) pair.

    Rule configs may override credentials per channel kind:

    - telegram: ``chat_id``, ``bot_token``
    - webhook: ``url``
    - email: ``to``, ``from``
    """

    def __init__(self, config: AlertsConfig | None = None) -> None:
        self._config = config or AlertsConfig()
        self._channels: dict[ChannelKey, NotificationChannel] = {}

    @property
    def config(self) -> AlertsConfig:
        return self._config

    def legacy_routes(self) -> list[ChannelRoute]:
        """Configured tag routes, or one untagged route per enabled channel."""
        if self._config.routes:
            return list(self._config.routes)
        routes: list[ChannelRoute] = []
        if self._config.webhook.enabled:
            routes.append(ChannelRoute(kind=ChannelKind.WEBHOOK))
        if self._config.telegram.enabled:
            routes.append(ChannelRoute(kind=ChannelKind.TELEGRAM))
        if self._config.email.enabled:
            routes.append(ChannelRoute(kind=ChannelKind.EMAIL))
        return routes

    def _resolve(
        self,
        kind: ChannelKind,
        overrides: dict[str, str] | None = None,
    ) -> TelegramConfig | WebhookConfig | EmailConfig:
        """Settings credentials for *kind* with rule overrides applied."""
        opts = overrides or {}
        if kind == ChannelKind.TELEGRAM:
            tg = self._config.telegram
            if "bot_token" in opts:
                tg = tg.model_copy(update={"bot_token": SecretStr(opts["bot_token"])})
            if "chat_id" in opts:
                tg = tg.model_copy(update={"chat_id": opts["chat_id"]})
            return tg

        if kind == ChannelKind.WEBHOOK:
            wh = self._config.webhook
            if "url" in opts:
                wh = wh.model_copy(update={"url": SecretStr(opts["url"])})
            return wh

        em = self._config.email
        if "to" in opts:
            em = em.model_copy(update={"to_email": opts["to"]})
        if "from" in opts:
            em = em.model_copy(update={"from_email": opts["from"]})
        return em

    def _key(self, kind: ChannelKind, overrides: dict[str, str] | None) -> ChannelKey:
        resolved = self._resolve(kind, overrides)
        fields: list[tuple[str, str]] = []
        for name, value in resolved.model_dump(exclude={"enabled"}).items():
            if isinstance(value, SecretStr):
                value = value.get_secret_value()
            fields.append((name, str(value)))
        return kind, tuple(sorted(fields))

    def build(self, kind: ChannelKind, overrides: dict[str, str] | None = None) -> NotificationChannel:
        """Construct a new channel.

        Raises:
            ChannelConfigError: If required credentials are missing.
        """
        resolved = self._resolve(kind, overrides)
        timeout = self._config.send_timeout_secs

        if isinstance(resolved, TelegramConfig):
            if not resolved.bot_token.get_secret_value() or not resolved.chat_id:
                raise ChannelConfigError("telegram requires bot_token and chat_id")
            return TelegramChannel(resolved, timeout_secs=timeout)

        if isinstance(resolved, WebhookConfig):
            if not resolved.url.get_secret_value():
                raise ChannelConfigError("webhook requires url")
            return WebhookChannel(resolved, timeout_secs=timeout)

        if not (resolved.api_key.get_secret_value() and resolved.from_email and resolved.to_email):
            raise ChannelConfigError("email requires api_key, from_email and to_email")
        return EmailChannel(resolved, timeout_secs=timeout)

    def get(
        self,
        kind: ChannelKind,
        overrides: dict[str, str] | None = None,
    ) -> NotificationChannel | None:
        """Return the cached channel for this key, building it on first use.

        The key is the resolved credential set, so an override that repeats
        the settings value reuses the settings channel.

        Returns None (and logs) when the channel is not configured.
        """
        key = self._key(kind, overrides)
        channel = self._channels.get(key)
        if channel is not None:
            return channel
        try:
            channel = self.build(kind, overrides)
        except ChannelConfigError as exc:
            logger.warning("channel_not_configured", channel=kind.value, reason=str(exc))
            return None
        self._channels[key] = channel
        return channel

    async def close(self) -> None:
        for ch in self._channels.values():
            try:
                await ch.close()
            except Exception:
                logger.exception("channel_close_error", channel=ch.name)
        self._channels.clear()
