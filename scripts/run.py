#!/usr/bin/env python3
"""Monitor entrypoint — wires all components and runs the check loop.

Usage::

    # Run the scheduler with default config
    python scripts/run.py

    # Custom config file
    python scripts/run.py --config config/settings.yaml

    # Single pass over all checks and price trackers, then exit
    python scripts/run.py --once

    # Print uptime and health from saved state
    python scripts/run.py --status

    # Re-baseline a price tracker (next reading, or an explicit price)
    python scripts/run.py --reset-baseline laptop
    python scripts/run.py --reset-baseline laptop=1299.00
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from decimal import Decimal, InvalidOperation

import structlog

from pulsewatch.alerts.factory import ChannelFactory
from pulsewatch.alerts.router import AlertRouter
from pulsewatch.core.config import load_settings
from pulsewatch.core.logging import setup_logging
from pulsewatch.core.types import MonitoringState, PriceWatchState
from pulsewatch.engine.incidents import IncidentTracker
from pulsewatch.engine.pricewatch import PriceWatchRunner
from pulsewatch.engine.runner import BaseRunner, MonitorRunner
from pulsewatch.engine.scheduler import MonitorScheduler
from pulsewatch.engine.status import status_summary
from pulsewatch.probes.executor import ProbeExecutor
from pulsewatch.storage.config_source import YamlConfigSource
from pulsewatch.storage.history_sink import JsonlHistorySink
from pulsewatch.storage.incidents import SqliteIncidentStore
from pulsewatch.storage.price_events import SqlitePriceEventStore
from pulsewatch.storage.state_store import JsonFileStateStore

logger = structlog.get_logger(__name__)


def _parse_reset(value: str) -> tuple[str, Decimal | None]:
    tracker_id, _, price = value.partition("=")
    if not price:
        return tracker_id, None
    try:
        return tracker_id, Decimal(price)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid price: {price!r}") from None


async def run(args: argparse.Namespace) -> int:
    """Build the runners and run once or until interrupted."""
    settings = load_settings(args.config)
    setup_logging(settings.logging, level=args.log_level)

    storage = settings.storage
    config_source = YamlConfigSource(storage.targets_path)
    history = JsonlHistorySink(storage.history_path)
    incident_store = SqliteIncidentStore(storage.incidents_db_path)
    price_events = SqlitePriceEventStore(storage.incidents_db_path)

    factory = ChannelFactory(settings.alerts)
    router = AlertRouter(factory)
    executor = ProbeExecutor(settings.probe)
    await executor.connect()

    monitor_store = JsonFileStateStore(storage.state_path, MonitoringState)
    price_store = JsonFileStateStore(storage.price_state_path, PriceWatchState)

    # ── Runners ──────────────────────────────────────────────────
    monitor = MonitorRunner(
        config_source=config_source,
        state_store=monitor_store,
        executor=executor,
        router=router,
        incidents=IncidentTracker(incident_store),
        history_sink=history,
    )
    pricewatch = PriceWatchRunner(
        config_source=config_source,
        state_store=price_store,
        executor=executor,
        router=router,
        history_sink=history,
        events=price_events,
    )

    runners: list[BaseRunner] = []
    if settings.scheduler.run_checks:
        runners.append(monitor)
    if settings.scheduler.run_price_trackers:
        runners.append(pricewatch)

    try:
        if args.status:
            await _print_status(config_source, monitor_store, price_store)
            return 0

        if args.reset_baseline is not None:
            tracker_id, price = args.reset_baseline
            if not await pricewatch.reset_baseline(tracker_id, price):
                print(f"No saved state for price tracker {tracker_id!r}.", file=sys.stderr)
                return 1
            return 0

        if not runners:
            logger.error("no_runners_enabled")
            print(
                "Nothing to run. Enable scheduler.run_checks or "
                "scheduler.run_price_trackers in config/settings.yaml.",
                file=sys.stderr,
            )
            return 1

        if args.once:
            errors = 0
            for runner in runners:
                summary = await runner.run(force=True)
                errors += summary.errors
            return 1 if errors else 0

        return await _serve(runners, settings.scheduler.interval_secs)
    finally:
        await router.close()
        await executor.close()
        incident_store.close()
        price_events.close()


async def _print_status(
    config_source: YamlConfigSource,
    monitor_store: JsonFileStateStore[MonitoringState],
    price_store: JsonFileStateStore[PriceWatchState],
) -> None:
    checks = status_summary(await monitor_store.load(), await config_source.list_checks())
    trackers = status_summary(await price_store.load(), await config_source.list_price_trackers())
    report = {
        "checks": checks.model_dump(mode="json"),
        "price_trackers": trackers.model_dump(mode="json"),
    }
    print(json.dumps(report, indent=2))


async def _serve(runners: list[BaseRunner], interval_secs: float) -> int:
    scheduler = MonitorScheduler(runners, interval_secs=interval_secs)
    await scheduler.start()
    logger.info("monitor_running", runners=[r.name for r in runners])

    # ── Wait for shutdown signal ─────────────────────────────────
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows: signal handlers not supported on ProactorEventLoop
            pass

    try:
        await stop_event.wait()
    except KeyboardInterrupt:
        logger.info("keyboard_interrupt")

    logger.info("monitor_shutting_down")
    await scheduler.stop()
    logger.info("monitor_stopped", cycles=scheduler.cycles)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run uptime checks and price trackers, and send alerts.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run every target once, ignoring price tracker intervals, then exit",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Print a JSON status summary from saved state and exit",
    )
    parser.add_argument(
        "--reset-baseline",
        type=_parse_reset,
        default=None,
        metavar="ID[=PRICE]",
        help="Clear (or set) a price tracker's baseline and exit",
    )
    args = parser.parse_args()

    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
