"""Configuration source — target definitions, alert rules, maintenance windows."""

from __future__ import annotations

import abc
import asyncio
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from pulsewatch.core.types import (
    AlertRule,
    CheckConfig,
    MaintenanceWindow,
    PriceTrackerConfig,
)
from pulsewatch.storage.exceptions import ConfigSourceError

logger = structlog.stdlib.get_logger()


class ConfigSource(abc.ABC):
    """Read-only view of the configuration store, queried once per run."""

    @abc.abstractmethod
    async def list_checks(self) -> list[CheckConfig]:
        """Enabled uptime checks, in configured order."""

    @abc.abstractmethod
    async def list_price_trackers(self) -> list[PriceTrackerConfig]:
        """Enabled price trackers, in configured order."""

    @abc.abstractmethod
    async def list_alert_rules(self) -> list[AlertRule]:
        """Enabled alert rules."""

    @abc.abstractmethod
    async def list_maintenance_windows(self) -> list[MaintenanceWindow]:
        """All maintenance windows (the filter decides which are active)."""


class StaticConfigSource(ConfigSource):
    """In-memory source for embedding and tests."""

    def __init__(
        self,
        checks: list[CheckConfig] | None = None,
        price_trackers: list[PriceTrackerConfig] | None = None,
        alert_rules: list[AlertRule] | None = None,
        maintenance_windows: list[MaintenanceWindow] | None = None,
    ) -> None:
        self.checks = list(checks or [])
        self.price_trackers = list(price_trackers or [])
        self.alert_rules = list(alert_rules or [])
        self.maintenance_windows = list(maintenance_windows or [])

    async def list_checks(self) -> list[CheckConfig]:
        return [c for c in self.checks if c.enabled]

    async def list_price_trackers(self) -> list[PriceTrackerConfig]:
        return [t for t in self.price_trackers if t.enabled]

    async def list_alert_rules(self) -> list[AlertRule]:
        return [r for r in self.alert_rules if r.enabled]

    async def list_maintenance_windows(self) -> list[MaintenanceWindow]:
        return list(self.maintenance_windows)


class YamlConfigSource(ConfigSource):
    """Reads definitions from a YAML file on every call.

    Expected layout::

        checks:
          - id: website
            name: Website
            url: https://example.com
            tags: [production]
        price_trackers: [...]
        alert_rules: [...]
        maintenance_windows: [...]
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            logger.warning("config_source_missing", path=str(self._path))
            return {}
        try:
            with open(self._path) as f:
                raw = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigSourceError(f"Failed to read {self._path}: {exc}") from exc
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ConfigSourceError(f"{self._path} must contain a mapping")
        return raw

    async def _section(self, key: str) -> list[dict[str, Any]]:
        data = await asyncio.to_thread(self._read)
        items = data.get(key) or []
        if not isinstance(items, list):
            raise ConfigSourceError(f"'{key}' in {self._path} must be a list")
        return items

    async def _parse(self, key: str, model: type[Any]) -> list[Any]:
        items = await self._section(key)
        try:
            return [model.model_validate(item) for item in items]
        except ValidationError as exc:
            raise ConfigSourceError(f"Invalid '{key}' entry in {self._path}: {exc}") from exc

    async def list_checks(self) -> list[CheckConfig]:
        checks: list[CheckConfig] = await self._parse("checks", CheckConfig)
        return [c for c in checks if c.enabled]

    async def list_price_trackers(self) -> list[PriceTrackerConfig]:
        trackers: list[PriceTrackerConfig] = await self._parse("price_trackers", PriceTrackerConfig)
        return [t for t in trackers if t.enabled]

    async def list_alert_rules(self) -> list[AlertRule]:
        rules: list[AlertRule] = await self._parse("alert_rules", AlertRule)
        return [r for r in rules if r.enabled]

    async def list_maintenance_windows(self) -> list[MaintenanceWindow]:
        return await self._parse("maintenance_windows", MaintenanceWindow)
