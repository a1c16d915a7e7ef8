"""Pure functions that pull a price out of a response body."""

from __future__ import annotations

import json
import re
from decimal import Decimal, InvalidOperation
from typing import Any

from pulsewatch.core.types import JsonExtract, RegexExtract
from pulsewatch.probes.exceptions import ExtractionError

# Everything that is not a digit, separator, or sign is stripped before parsing.
_NON_NUMERIC_RE = re.compile(r"[^\d.,\-]")


def parse_price(raw: Any) -> Decimal:
    """Convert a raw price (number or text like ``"$1,299.00"``) to Decimal.

    Commas are treated as thousands separators.

    Raises:
        ExtractionError: If no finite number can be parsed.
    """
    if isinstance(raw, bool) or raw is None:
        raise ExtractionError(f"Not a price: {raw!r}")
    if isinstance(raw, (int, float)):
        value = Decimal(str(raw))
        if not value.is_finite():
            raise ExtractionError(f"Not a finite price: {raw!r}")
        return value

    text = _NON_NUMERIC_RE.sub("", str(raw)).replace(",", "")
    if not text:
        raise ExtractionError(f"No digits in price text: {raw!r}")
    try:
        return Decimal(text)
    except InvalidOperation as exc:
        raise ExtractionError(f"Unparseable price text: {raw!r}") from exc


def _walk_json(data: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts/lists."""
    node = data
    for part in path.split("."):
        if not part:
            continue
        if isinstance(node, dict):
            if part not in node:
                raise ExtractionError(f"JSON path '{path}' not found at '{part}'")
            node = node[part]
        elif isinstance(node, list):
            try:
                node = node[int(part)]
            except (ValueError, IndexError) as exc:
                raise ExtractionError(f"JSON path '{path}' has bad index '{part}'") from exc
        else:
            raise ExtractionError(f"JSON path '{path}' hit a scalar at '{part}'")
    return node


def extract_price(
    strategy: JsonExtract | RegexExtract,
    body: str,
) -> tuple[Decimal, str]:
    """Extract a price from *body* according to *strategy*.

    Returns:
        (price, raw_text) where raw_text is the matched source text.

    Raises:
        ExtractionError: If the body does not contain a price.
    """
    if isinstance(strategy, JsonExtract):
        try:
            data = json.loads(body)
        except ValueError as exc:
            raise ExtractionError("Response is not valid JSON") from exc
        raw = _walk_json(data, strategy.path)
        return parse_price(raw), str(raw)

    match = re.search(strategy.pattern, body)
    if match is None:
        raise ExtractionError(f"Pattern {strategy.pattern!r} did not match")
    try:
        raw_text = match.group(strategy.group)
    except IndexError as exc:
        raise ExtractionError(f"Pattern has no group {strategy.group}") from exc
    return parse_price(raw_text), raw_text
