"""
Unit tests for the dashboard daemon entry point.

Tests verify:
- JsonFormatter emits one JSON object with ts, level, logger, msg, and
  granularity / exception when present.
- configure_logging() installs the JSON handler at the requested level.
- LogView renders loading, empty, loaded and stale states.
- run() starts the controller and closes it on shutdown.
- async_main() wires settings into the client and controller.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-012)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Callable
from datetime import UTC
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from dashboard.src.main import (
    JsonFormatter,
    LogView,
    configure_logging,
    log_config_summary,
    run,
)
from dashboard.src.models import AggregationRecord, Granularity, PollPhase, PollState
from dashboard.src.projection import project

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _record(msg: str = "hello", **attrs: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="dashboard.test",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


# ====================================================================
# Structured JSON logging
# ====================================================================


class TestJsonFormatter:
    """JsonFormatter outputs valid JSON with required fields."""

    def test_required_fields(self) -> None:
        """Output contains ts, level, logger and msg."""
        parsed = json.loads(JsonFormatter().format(_record("refreshed")))

        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "dashboard.test"
        assert parsed["msg"] == "refreshed"
        assert "T" in parsed["ts"]
        assert "granularity" not in parsed
        assert "exception" not in parsed

    def test_granularity_extra(self) -> None:
        """A granularity passed via extra is emitted as its own field."""
        parsed = json.loads(JsonFormatter().format(_record(granularity="weekly")))

        assert parsed["granularity"] == "weekly"

    def test_exception_included(self) -> None:
        """Tracebacks are emitted under 'exception'."""
        try:
            raise RuntimeError("kaput")
        except RuntimeError:
            record = _record(exc_info=sys.exc_info())

        parsed = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: kaput" in parsed["exception"]


class TestConfigureLogging:
    """configure_logging() replaces root handlers with one JSON handler."""

    def test_root_logger_has_json_handler(self) -> None:
        """After configure_logging(), root has exactly one JSON handler."""
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_logging("DEBUG")

            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JsonFormatter)
            assert root.level == logging.DEBUG
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


# ====================================================================
# Log view
# ====================================================================


class TestLogView:
    """One log line per published snapshot."""

    def test_loading(self, caplog: pytest.LogCaptureFixture) -> None:
        """Loading states say what is loading."""
        with caplog.at_level(logging.INFO, logger="dashboard.src.main"):
            LogView().render(
                PollState(
                    granularity=Granularity.DAILY,
                    phase=PollPhase.FETCHING,
                    loading=True,
                )
            )

        assert "Loading daily data" in caplog.text

    def test_loaded(
        self, caplog: pytest.LogCaptureFixture, make_item: Callable[..., dict]
    ) -> None:
        """Loaded states report rows, total and chart mode."""
        records = [
            AggregationRecord.model_validate(make_item(total_watt_hours=wh))
            for wh in (1.5, 2.0)
        ]
        state = PollState(
            granularity=Granularity.MINUTE,
            projection=project(records, Granularity.MINUTE, UTC),
        )

        with caplog.at_level(logging.INFO, logger="dashboard.src.main"):
            LogView().render(state)

        assert "Minute data: 2 rows, total 3.50 Wh, line chart" in caplog.text

    def test_stale_data_marked(
        self, caplog: pytest.LogCaptureFixture, make_item: Callable[..., dict]
    ) -> None:
        """An error state keeps showing data, marked stale."""
        records = [AggregationRecord.model_validate(make_item())]
        state = PollState(
            granularity=Granularity.HOURLY,
            phase=PollPhase.ERROR,
            last_error="HTTP 502",
            projection=project(records, Granularity.HOURLY, UTC),
        )

        with caplog.at_level(logging.INFO, logger="dashboard.src.main"):
            LogView().render(state)

        assert "bar chart (stale: HTTP 502)" in caplog.text

    def test_no_data_yet(self, caplog: pytest.LogCaptureFixture) -> None:
        """A failed first fetch is reported without a projection."""
        state = PollState(
            granularity=Granularity.ANNUAL,
            phase=PollPhase.ERROR,
            last_error="Connection refused",
        )

        with caplog.at_level(logging.INFO, logger="dashboard.src.main"):
            LogView().render(state)

        assert "No annual data yet (Connection refused)" in caplog.text


# ====================================================================
# Run loop and wiring
# ====================================================================


class TestRun:
    """run() owns the controller lifetime."""

    @pytest.mark.asyncio
    async def test_starts_and_closes_on_shutdown(self) -> None:
        """Controller is started, then closed once shutdown is signalled."""
        controller = MagicMock()
        controller.close = AsyncMock()
        shutdown_event = asyncio.Event()

        async def _trigger_shutdown() -> None:
            await asyncio.sleep(0.05)
            shutdown_event.set()

        trigger = asyncio.create_task(_trigger_shutdown())
        await asyncio.wait_for(run(controller, shutdown_event), timeout=5.0)
        await trigger

        controller.start.assert_called_once_with()
        controller.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_closes_when_start_fails(self) -> None:
        """close() runs even if start() raises."""
        controller = MagicMock()
        controller.start.side_effect = RuntimeError("PollingController is closed")
        controller.close = AsyncMock()

        with pytest.raises(RuntimeError):
            await run(controller, asyncio.Event())

        controller.close.assert_awaited_once()


class TestAsyncMain:
    """async_main() builds components from settings."""

    @pytest.mark.asyncio
    async def test_wires_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Settings flow into FetchClient, PollingController and subscribers."""
        from dashboard.src import main as main_module

        monkeypatch.setenv("SMART_PLUG_BASE_URL", "http://plug.local:5000")
        monkeypatch.setenv("DEFAULT_GRANULARITY", "weekly")
        monkeypatch.setenv("POLL_INTERVAL_S", "12")
        monkeypatch.setenv("LABEL_TIMEZONE", "UTC")
        monkeypatch.setenv("HEALTH_PATH", "health.json")

        with (
            patch.object(main_module, "configure_logging"),
            patch.object(main_module, "FetchClient") as mock_client_cls,
            patch.object(main_module, "PollingController") as mock_controller_cls,
            patch.object(main_module, "run", new=AsyncMock()) as mock_run,
            patch.object(asyncio.get_running_loop(), "add_signal_handler"),
        ):
            await main_module.async_main()

        mock_client_cls.assert_called_once_with(
            base_url="http://plug.local:5000", timeout_s=None
        )
        kwargs = mock_controller_cls.call_args.kwargs
        assert kwargs["granularity"] is Granularity.WEEKLY
        assert kwargs["poll_interval_s"] == 12.0
        assert kwargs["tz"] is not None
        controller = mock_controller_cls.return_value
        # Log view plus health writer.
        assert controller.subscribe.call_count == 2
        mock_run.assert_awaited_once()


class TestConfigSummary:
    """Startup config summary."""

    def test_logs_effective_config(self, caplog: pytest.LogCaptureFixture) -> None:
        """The summary names the endpoint and the label zone."""
        settings = MagicMock()
        settings.smart_plug_base_url = "http://localhost:5000"
        settings.default_granularity = Granularity.HOURLY
        settings.poll_interval_s = 30.0
        settings.request_timeout_s = None
        settings.label_timezone = None
        settings.health_path = None

        with caplog.at_level(logging.INFO, logger="dashboard.src.main"):
            log_config_summary(settings)

        assert "smart_plug_base_url=http://localhost:5000" in caplog.text
        assert "label_timezone=local" in caplog.text
