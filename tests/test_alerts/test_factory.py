"""Tests for ChannelFactory — credentials, overrides, caching, legacy routes."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from pydantic import SecretStr

from pulsewatch.alerts.channels import EmailChannel, TelegramChannel, WebhookChannel
from pulsewatch.alerts.exceptions import ChannelConfigError
from pulsewatch.alerts.factory import ChannelFactory
from pulsewatch.core.config import AlertsConfig, ChannelRoute, EmailConfig, TelegramConfig, WebhookConfig
from pulsewatch.core.types import ChannelKind


def _config(**kw: object) -> AlertsConfig:
    defaults: dict[str, object] = {
        "telegram": TelegramConfig(enabled=True, bot_token=SecretStr("tok"), chat_id="1"),
        "webhook": WebhookConfig(enabled=True, url=SecretStr("https://hooks.example.com/x")),
        "email": EmailConfig(enabled=False),
    }
    defaults.update(kw)
    return AlertsConfig(**defaults)  # type: ignore[arg-type]


class TestBuild:
    def test_builds_each_kind(self) -> None:
        factory = ChannelFactory(_config(email=EmailConfig(
            api_key=SecretStr("k"), from_email="a@example.com", to_email="b@example.com",
        )))
        assert isinstance(factory.build(ChannelKind.TELEGRAM), TelegramChannel)
        assert isinstance(factory.build(ChannelKind.WEBHOOK), WebhookChannel)
        assert isinstance(factory.build(ChannelKind.EMAIL), EmailChannel)

    def test_missing_credentials(self) -> None:
        factory = ChannelFactory(AlertsConfig())
        for kind in ChannelKind:
            with pytest.raises(ChannelConfigError):
                factory.build(kind)

    def test_rule_override_supplies_credentials(self) -> None:
        factory = ChannelFactory(AlertsConfig())
        channel = factory.build(ChannelKind.WEBHOOK, {"url": "https://hooks.example.com/team"})
        assert isinstance(channel, WebhookChannel)
        assert channel._url == "https://hooks.example.com/team"

    def test_telegram_chat_override(self) -> None:
        channel = ChannelFactory(_config()).build(ChannelKind.TELEGRAM, {"chat_id": "-100"})
        assert isinstance(channel, TelegramChannel)
        assert channel._chat_id == "-100"
        assert channel._token == "tok"


class TestGet:
    def test_cached_per_key(self) -> None:
        factory = ChannelFactory(_config())
        a = factory.get(ChannelKind.TELEGRAM)
        assert factory.get(ChannelKind.TELEGRAM) is a
        assert factory.get(ChannelKind.TELEGRAM, {"chat_id": "2"}) is not a

    def test_override_repeating_settings_reuses_channel(self) -> None:
        factory = ChannelFactory(_config())
        a = factory.get(ChannelKind.TELEGRAM)
        assert factory.get(ChannelKind.TELEGRAM, {"chat_id": "1"}) is a
        assert factory.get(ChannelKind.TELEGRAM, {"bot_token": "tok", "chat_id": "1"}) is a
        assert factory.get(ChannelKind.WEBHOOK, {"url": "https://hooks.example.com/x"}) is factory.get(ChannelKind.WEBHOOK)

    def test_unconfigured_returns_none(self) -> None:
        assert ChannelFactory(_config()).get(ChannelKind.EMAIL) is None

    async def test_close_closes_channels(self) -> None:
        factory = ChannelFactory(_config())
        channel = factory.get(ChannelKind.WEBHOOK)
        assert channel is not None
        channel.close = AsyncMock()  # type: ignore[method-assign]
        await factory.close()
        channel.close.assert_awaited_once()
        assert factory.get(ChannelKind.WEBHOOK) is not channel


class TestLegacyRoutes:
    def test_defaults_to_enabled_channels(self) -> None:
        routes = ChannelFactory(_config()).legacy_routes()
        assert [r.kind for r in routes] == [ChannelKind.WEBHOOK, ChannelKind.TELEGRAM]
        assert all(r.tags == [] for r in routes)

    def test_configured_routes_win(self) -> None:
        route = ChannelRoute(kind=ChannelKind.TELEGRAM, tags=["production"])
        assert ChannelFactory(_config(routes=[route])).legacy_routes() == [route]
