"""Exceptions raised by collaborator stores."""

from __future__ import annotations


class StorageError(Exception):
    """Base exception for storage errors."""


class StateStoreError(StorageError):
    """The hot-state blob could not be written."""


class ConfigSourceError(StorageError):
    """Target definitions could not be loaded."""
