"""Collaborator interfaces and file-backed defaults."""

from pulsewatch.storage.config_source import ConfigSource, StaticConfigSource, YamlConfigSource
from pulsewatch.storage.exceptions import ConfigSourceError, StateStoreError, StorageError
from pulsewatch.storage.history_sink import (
    HistorySink,
    JsonlHistorySink,
    MemoryHistorySink,
    NullHistorySink,
)
from pulsewatch.storage.incidents import (
    IncidentStore,
    InMemoryIncidentStore,
    SqliteIncidentStore,
)
from pulsewatch.storage.price_events import (
    InMemoryPriceEventStore,
    PriceEventStore,
    SqlitePriceEventStore,
)
from pulsewatch.storage.state_store import JsonFileStateStore, StateStore

__all__ = [
    "ConfigSource",
    "ConfigSourceError",
    "HistorySink",
    "IncidentStore",
    "InMemoryIncidentStore",
    "InMemoryPriceEventStore",
    "JsonFileStateStore",
    "JsonlHistorySink",
    "MemoryHistorySink",
    "NullHistorySink",
    "PriceEventStore",
    "SqliteIncidentStore",
    "SqlitePriceEventStore",
    "StateStore",
    "StateStoreError",
    "StaticConfigSource",
    "StorageError",
    "YamlConfigSource",
]
