"""ProbeExecutor — one probe per target with per-attempt timeout and retry."""

from __future__ import annotations

import abc
import asyncio
import time
from decimal import Decimal
from types import TracebackType
from typing import cast

import httpx
import structlog
from pydantic import BaseModel

from pulsewatch.core.config import ProbeConfig, resolve_url
from pulsewatch.core.types import (
    BrowserExtract,
    CheckConfig,
    CheckType,
    JsonExtract,
    PriceTrackerConfig,
    ProbeOutcome,
    RegexExtract,
)
from pulsewatch.probes.exceptions import (
    ExtractionError,
    ProbeError,
    ProbeTimeoutError,
    ProbeTransportError,
)
from pulsewatch.probes.extract import extract_price

logger = structlog.stdlib.get_logger()

Target = CheckConfig | PriceTrackerConfig


class RenderedResult(BaseModel):
    """What a rendered-page extractor hands back for one page load."""

    value: Decimal | None = None
    raw_text: str | None = None
    status_code: int | None = None
    body: str = ""
    error: str | None = None


class RenderedPageExtractor(abc.ABC):
    """Host-provided capability for targets that need a real browser."""

    @abc.abstractmethod
    async def extract(self, target: Target, url: str) -> RenderedResult:
        """Load *url* in a rendered page and return what was found."""


def timeout_message(timeout_ms: int) -> str:
    return f"Timeout after {timeout_ms}ms"


class ProbeExecutor:
    """Runs probe attempts against checks and price trackers.

    Transport errors and timeouts are retried up to ``retry_count`` times with
    ``retry_delay_ms`` between attempts; the last attempt's outcome is returned
    and its ``elapsed_ms`` covers only that attempt. Nothing raised by the
    network ever escapes ``probe()``.

    Usage::

        async with ProbeExecutor(settings.probe) as executor:
            outcome = await executor.probe(check)
    """

    def __init__(
        self,
        config: ProbeConfig | None = None,
        rendered_extractor: RenderedPageExtractor | None = None,
    ) -> None:
        self._config = config or ProbeConfig()
        self._rendered = rendered_extractor
        self._http: httpx.AsyncClient | None = None

    @property
    def connected(self) -> bool:
        """Whether the HTTP client is active."""
        return self._http is not None and not self._http.is_closed

    async def connect(self) -> None:
        """Create the httpx async client.

        Timeouts are enforced per attempt by ``probe()``, not by httpx.
        """
        if self.connected:
            return
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(None),
            follow_redirects=self._config.follow_redirects,
            headers={"User-Agent": self._config.user_agent},
        )

    async def close(self) -> None:
        """Close the httpx async client."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> ProbeExecutor:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ── Public API ──────────────────────────────────────────────

    async def probe(self, target: Target) -> ProbeOutcome:
        """Probe *target*, retrying transport failures and timeouts."""
        attempt = 1
        while True:
            outcome, retryable = await self._attempt(target)
            if outcome.success or not retryable or attempt > target.retry_count:
                return outcome
            logger.info(
                "probe_retry",
                target_id=target.id,
                attempt=attempt,
                error=outcome.error,
                delay_ms=target.retry_delay_ms,
            )
            await asyncio.sleep(target.retry_delay_ms / 1000.0)
            attempt += 1

    # ── Attempts ────────────────────────────────────────────────

    def _needs_rendering(self, target: Target) -> bool:
        if isinstance(target, CheckConfig):
            return target.type == CheckType.BROWSER
        return isinstance(target.extract, BrowserExtract)

    async def _attempt(self, target: Target) -> tuple[ProbeOutcome, bool]:
        """Run one attempt. Returns (outcome, retryable)."""
        url = resolve_url(target.url, self._config.placeholders)
        start = time.perf_counter()

        try:
            if self._needs_rendering(target):
                outcome = await asyncio.wait_for(
                    self._render(target, url, start),
                    timeout=target.timeout_ms / 1000.0,
                )
            else:
                response = await asyncio.wait_for(
                    self._fetch(target, url),
                    timeout=target.timeout_ms / 1000.0,
                )
                outcome = self._from_response(target, response, start)
            return outcome, False
        except (TimeoutError, ProbeTimeoutError):
            message = timeout_message(target.timeout_ms)
            logger.warning("probe_timeout", target_id=target.id, url=url, timeout_ms=target.timeout_ms)
            return ProbeOutcome(
                target_id=target.id,
                success=False,
                elapsed_ms=_elapsed_ms(start),
                error=message,
                timed_out=True,
            ), True
        except ProbeError as exc:
            logger.warning("probe_transport_error", target_id=target.id, url=url, error=str(exc))
            return ProbeOutcome(
                target_id=target.id,
                success=False,
                elapsed_ms=_elapsed_ms(start),
                error=str(exc),
            ), True

    async def _fetch(self, target: Target, url: str) -> httpx.Response:
        if self._http is None:
            raise ProbeTransportError("HTTP client not connected")
        try:
            return await self._http.request(
                target.method,
                url,
                headers=target.headers or None,
                content=target.body,
            )
        except httpx.TimeoutException as exc:
            raise ProbeTimeoutError(str(exc)) from exc
        except (httpx.HTTPError, OSError) as exc:
            raise ProbeTransportError(str(exc) or type(exc).__name__) from exc

    def _from_response(
        self,
        target: Target,
        response: httpx.Response,
        start: float,
    ) -> ProbeOutcome:
        elapsed = _elapsed_ms(start)
        limit = self._config.body_limit_bytes
        encoding = response.encoding or "utf-8"
        body = response.content[:limit].decode(encoding, errors="replace")
        headers = {k.lower(): v for k, v in response.headers.items()}

        if isinstance(target, CheckConfig):
            # Pass/fail is decided by the assertion engine.
            return ProbeOutcome(
                target_id=target.id,
                success=True,
                status_code=response.status_code,
                elapsed_ms=elapsed,
                headers=headers,
                body=body,
            )

        if not response.is_success:
            return ProbeOutcome(
                target_id=target.id,
                success=False,
                status_code=response.status_code,
                elapsed_ms=elapsed,
                error=f"HTTP {response.status_code}",
                headers=headers,
                body=body,
            )

        # Browser strategies never reach the plain HTTP path.
        strategy = cast(JsonExtract | RegexExtract, target.extract)
        try:
            price, raw_text = extract_price(strategy, response.text)
        except ExtractionError as exc:
            return ProbeOutcome(
                target_id=target.id,
                success=False,
                status_code=response.status_code,
                elapsed_ms=elapsed,
                error=str(exc),
                headers=headers,
                body=body,
            )

        return ProbeOutcome(
            target_id=target.id,
            success=True,
            status_code=response.status_code,
            value=price,
            raw_text=raw_text,
            elapsed_ms=elapsed,
            headers=headers,
            body=body,
        )

    async def _render(self, target: Target, url: str, start: float) -> ProbeOutcome:
        if self._rendered is None:
            return ProbeOutcome(
                target_id=target.id,
                success=False,
                elapsed_ms=_elapsed_ms(start),
                error="Rendered page extraction is not configured",
            )

        try:
            result = await self._rendered.extract(target, url)
        except ProbeError:
            raise
        except Exception as exc:
            raise ProbeTransportError(f"Rendered page failed: {exc}") from exc

        elapsed = _elapsed_ms(start)
        if result.error:
            return ProbeOutcome(
                target_id=target.id,
                success=False,
                status_code=result.status_code,
                elapsed_ms=elapsed,
                error=result.error,
                body=result.body[: self._config.body_limit_bytes],
            )

        if isinstance(target, PriceTrackerConfig) and (
            result.value is None or not result.value.is_finite()
        ):
            return ProbeOutcome(
                target_id=target.id,
                success=False,
                status_code=result.status_code,
                elapsed_ms=elapsed,
                raw_text=result.raw_text,
                error="Rendered page returned no price",
            )

        return ProbeOutcome(
            target_id=target.id,
            success=True,
            status_code=result.status_code,
            value=result.value,
            raw_text=result.raw_text,
            elapsed_ms=elapsed,
            body=result.body[: self._config.body_limit_bytes],
        )


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
