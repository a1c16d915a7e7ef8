"""Probe execution — HTTP fetches, retries, timeouts, price extraction."""

from pulsewatch.probes.exceptions import (
    ExtractionError,
    ProbeError,
    ProbeTimeoutError,
    ProbeTransportError,
)
from pulsewatch.probes.executor import ProbeExecutor, RenderedPageExtractor, RenderedResult
from pulsewatch.probes.extract import extract_price, parse_price

__all__ = [
    "ExtractionError",
    "ProbeError",
    "ProbeExecutor",
    "ProbeTimeoutError",
    "ProbeTransportError",
    "RenderedPageExtractor",
    "RenderedResult",
    "extract_price",
    "parse_price",
]
