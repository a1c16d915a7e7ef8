"""Background loop that runs the runners on a fixed interval."""

from __future__ import annotations

import asyncio

import structlog

from pulsewatch.engine.runner import BaseRunner

logger = structlog.get_logger(__name__)


class MonitorScheduler:
    """Runs each runner in turn, then sleeps ``interval_secs``.

    Runs never overlap: the next cycle starts only after the previous one
    returned. A failing run is logged and the loop carries on.

    Usage::

        scheduler = MonitorScheduler([monitor_runner, price_runner], interval_secs=300)
        await scheduler.start()
        # ...
        await scheduler.stop()
    """

    def __init__(self, runners: list[BaseRunner], interval_secs: float = 300.0) -> None:
        self._runners = list(runners)
        self._interval_secs = interval_secs
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._cycles = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def cycles(self) -> int:
        return self._cycles

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("scheduler_started", interval_secs=self._interval_secs, runners=len(self._runners))

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("scheduler_stopped", cycles=self._cycles)

    async def run_once(self) -> None:
        """Run every runner sequentially; errors are logged, not raised."""
        for runner in self._runners:
            try:
                await runner.run()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("scheduled_run_error", runner=runner.name)
        self._cycles += 1

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                return
            try:
                await asyncio.sleep(self._interval_secs)
            except asyncio.CancelledError:
                return
