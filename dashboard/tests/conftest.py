"""
Shared test fixtures for dashboard tests.

Provides environment variable isolation for DashboardSettings tests and
helpers for building smart-plug aggregation payloads.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

# All DashboardSettings environment variable names, used for cleanup.
_ALL_DASHBOARD_ENV_VARS = (
    "SMART_PLUG_BASE_URL",
    "DEFAULT_GRANULARITY",
    "POLL_INTERVAL_S",
    "REQUEST_TIMEOUT_S",
    "LABEL_TIMEZONE",
    "HEALTH_PATH",
    "LOG_LEVEL",
)

# 2023-11-14T22:13:20Z
SCENARIO_TS = 1_700_000_000_000


def make_payload_item(
    period: int | float | str | None = SCENARIO_TS,
    total_watt_hours: float = 3.83,
    **overrides: Any,
) -> dict[str, Any]:
    """Return one aggregation record as the endpoint sends it (camelCase)."""
    item = {
        "period": period,
        "averageVolt": 230.0,
        "averageCurrent": 1.0,
        "averageWatts": 230.0,
        "maxWatts": 240.0,
        "minWatts": 220.0,
        "totalCount": 60,
        "totalWattHours": total_watt_hours,
    }
    item.update(overrides)
    return item


@pytest.fixture()
def make_item() -> Callable[..., dict[str, Any]]:
    """Factory for camelCase aggregation payload items."""
    return make_payload_item


@pytest.fixture(autouse=True)
def _clean_dashboard_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all dashboard env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_DASHBOARD_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_full(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set every DashboardSettings environment variable.

    Returns the dict of env var names to values for assertion convenience.
    """
    env = {
        "SMART_PLUG_BASE_URL": "https://plug.example.com/",
        "DEFAULT_GRANULARITY": "daily",
        "POLL_INTERVAL_S": "15",
        "REQUEST_TIMEOUT_S": "4.5",
        "LABEL_TIMEZONE": "Europe/Brussels",
        "HEALTH_PATH": "/tmp/dashboard-health.json",
        "LOG_LEVEL": "debug",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env
