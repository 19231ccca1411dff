"""
Dashboard daemon entry point.

Builds the fetch client and polling controller from ``DashboardSettings``,
attaches the log view (and the health writer when ``HEALTH_PATH`` is set),
and polls until SIGTERM/SIGINT. Shutdown always closes the controller so
the refresh timer and any in-flight fetch are released.

Structured JSON logging is used for all events.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-012)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from datetime import UTC, datetime

from dashboard.src.config import DashboardSettings
from dashboard.src.controller import PollingController
from dashboard.src.fetcher import FetchClient
from dashboard.src.health import HealthWriter
from dashboard.src.models import PollPhase, PollState

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """One JSON object per log line.

    Fields: ``ts``, ``level``, ``logger``, ``msg``, plus ``granularity`` when
    passed via ``extra`` and ``exception`` when a traceback is attached.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        granularity = getattr(record, "granularity", None)
        if granularity is not None:
            log_entry["granularity"] = granularity
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO") -> None:
    """Send JSON-formatted logs from the root logger to stderr."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Log view
# ---------------------------------------------------------------------------


class LogView:
    """View binding that renders each state snapshot as one log line."""

    def render(self, state: PollState) -> None:
        if state.loading:
            logger.info("Loading %s data...", state.granularity.value)
            return

        projection = state.projection
        if projection is None:
            logger.info(
                "No %s data yet (%s)", state.granularity.value, state.last_error
            )
            return

        logger.info(
            "%s data: %d rows, total %s Wh, %s chart%s",
            projection.granularity.value.capitalize(),
            len(projection.rows),
            projection.running_total_display,
            projection.chart.mode.value,
            f" (stale: {state.last_error})" if state.phase == PollPhase.ERROR else "",
        )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def log_config_summary(settings: DashboardSettings) -> None:
    """Log the effective configuration at startup."""
    logger.info(
        "Dashboard starting with config: smart_plug_base_url=%s, "
        "default_granularity=%s, poll_interval_s=%s, request_timeout_s=%s, "
        "label_timezone=%s, health_path=%s",
        settings.smart_plug_base_url,
        settings.default_granularity.value,
        settings.poll_interval_s,
        settings.request_timeout_s,
        settings.label_timezone or "local",
        settings.health_path,
    )


async def run(
    controller: PollingController,
    shutdown_event: asyncio.Event,
) -> None:
    """Start *controller*, wait for *shutdown_event*, then close it."""
    try:
        controller.start()
        await shutdown_event.wait()
    finally:
        await controller.close()
    logger.info("Shutdown complete")


async def async_main() -> None:
    """Async entrypoint: load config, build components, poll until signalled."""
    settings = DashboardSettings()
    configure_logging(settings.log_level)
    log_config_summary(settings)

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda: _handle_signal(shutdown_event))

    controller = PollingController(
        FetchClient(
            base_url=settings.smart_plug_base_url,
            timeout_s=settings.request_timeout_s,
        ),
        granularity=settings.default_granularity,
        poll_interval_s=settings.poll_interval_s,
        tz=settings.label_tz,
    )
    controller.subscribe(LogView().render)
    if settings.health_path:
        controller.subscribe(HealthWriter(settings.health_path).update)

    await run(controller, shutdown_event)


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event."""
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the dashboard daemon."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
