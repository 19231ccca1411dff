"""
Dashboard configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Every value has a default so the dashboard starts against a local
smart-plug service with no configuration at all.

CHANGELOG:
- 2026-10-18: Add LABEL_TIMEZONE for explicit label zone (STORY-009)
- 2026-10-18: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings

from dashboard.src.models import Granularity


class DashboardSettings(BaseSettings):
    """Smart-plug dashboard configuration.

    Attributes:
        smart_plug_base_url: Root URL of the aggregation service; the client
            requests ``{base}/smart-plug/{granularity}``.
        default_granularity: Selection in effect at startup.
        poll_interval_s: Seconds between refreshes once a fetch settles.
        request_timeout_s: Per-request timeout. Unset means no timeout.
        label_timezone: IANA zone for period labels. Unset means the
            process-local zone.
        health_path: Where to write the health JSON file. Unset disables it.
        log_level: Root logging level name.
    """

    smart_plug_base_url: str = "http://localhost:5000"
    default_granularity: Granularity = Granularity.HOURLY
    poll_interval_s: float = 30.0
    request_timeout_s: float | None = None
    label_timezone: str | None = None
    health_path: str | None = None
    log_level: str = "INFO"

    @field_validator("smart_plug_base_url")
    @classmethod
    def base_url_must_be_http(cls, v: str) -> str:
        """Validate the base URL scheme and strip a trailing slash."""
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError(
                "SMART_PLUG_BASE_URL must use http:// or https:// "
                f"(got: '{v[:20]}...')"
            )
        return v.rstrip("/")

    @field_validator("poll_interval_s")
    @classmethod
    def poll_interval_must_be_positive(cls, v: float) -> float:
        """Validate poll interval is at least 1 second."""
        if v < 1:
            raise ValueError("POLL_INTERVAL_S must be >= 1")
        return v

    @field_validator("request_timeout_s")
    @classmethod
    def request_timeout_must_be_positive(cls, v: float | None) -> float | None:
        """Validate the timeout is positive when set."""
        if v is not None and v <= 0:
            raise ValueError("REQUEST_TIMEOUT_S must be > 0")
        return v

    @field_validator("label_timezone")
    @classmethod
    def label_timezone_must_exist(cls, v: str | None) -> str | None:
        """Validate the zone name resolves in the tz database."""
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(
                f"LABEL_TIMEZONE '{v}' is not a known time zone"
            ) from exc
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate and upper-case the logging level name."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"LOG_LEVEL '{v}' is not a logging level")
        return level

    @property
    def label_tz(self) -> ZoneInfo | None:
        """Resolved label zone, or ``None`` for the local zone."""
        if self.label_timezone is None:
            return None
        return ZoneInfo(self.label_timezone)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
