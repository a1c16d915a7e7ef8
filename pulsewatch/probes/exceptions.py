"""Exception hierarchy for probe execution."""

from __future__ import annotations


class ProbeError(Exception):
    """Base exception for all probe errors."""


class ProbeTransportError(ProbeError):
    """DNS, connection, or protocol failure while fetching a target."""


class ProbeTimeoutError(ProbeError):
    """An attempt was cancelled after the target's timeout elapsed."""


class ExtractionError(ProbeError):
    """A price could not be extracted from a successful response."""
