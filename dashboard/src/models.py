"""
Pydantic models for smart-plug aggregation data and dashboard state.

Defines the wire model for one aggregation bucket (``AggregationRecord``),
the projected display types (``DisplayRow``, ``ChartSeries``,
``Projection``) and the controller-owned ``PollState`` snapshot handed to
view bindings.

CHANGELOG:
- 2026-10-18: Accept malformed period values on AggregationRecord (STORY-013)
- 2026-10-18: Add chart presentation fields to ChartSeries (STORY-006)
- 2026-10-18: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Granularity(str, Enum):
    """Aggregation bucket size. The value is the endpoint path segment."""

    MINUTE = "minute"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ANNUAL = "annual"


class ChartMode(str, Enum):
    """How the chart draws the series."""

    LINE = "line"
    BAR = "bar"


class PollPhase(str, Enum):
    """Polling controller state."""

    IDLE = "idle"
    FETCHING = "fetching"
    ERROR = "error"


class AggregationRecord(BaseModel):
    """One pre-aggregated bucket as returned by the smart-plug endpoint.

    Field names follow Python conventions; the camelCase names used on the
    wire are accepted as aliases. ``min_watts <= average_watts <= max_watts``
    is assumed from the source and not checked here.

    Attributes:
        period: Bucket timestamp in epoch milliseconds. Kept as received so a
            malformed value labels as "Invalid Date" instead of failing the
            whole response.
        average_volt: Mean voltage over the bucket.
        average_current: Mean current over the bucket.
        average_watts: Mean power over the bucket.
        max_watts: Peak power over the bucket.
        min_watts: Lowest power over the bucket.
        total_count: Number of raw samples in the bucket.
        total_watt_hours: Energy consumed in the bucket.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    period: int | float | str | None
    average_volt: float = Field(alias="averageVolt")
    average_current: float = Field(alias="averageCurrent")
    average_watts: float = Field(alias="averageWatts")
    max_watts: float = Field(alias="maxWatts")
    min_watts: float = Field(alias="minWatts")
    total_count: int = Field(alias="totalCount", ge=0)
    total_watt_hours: float = Field(alias="totalWattHours", ge=0)


class DisplayRow(AggregationRecord):
    """An aggregation record placed in the table.

    Attributes:
        index: 0-based position in the fetched sequence.
        period_label: Human-readable bucket label.
    """

    index: int
    period_label: str

    def cells(self) -> dict[str, str]:
        """Return the display string of every table column, keyed by name."""
        from dashboard.src.projection import TABLE_COLUMNS

        return {column.name: column.render(self) for column in TABLE_COLUMNS}


class ChartSeries(BaseModel):
    """Chart data: categories and values in row order, plus draw hints."""

    model_config = ConfigDict(frozen=True)

    name: str = "Total Watt-Hours"
    title: str
    mode: ChartMode
    stroke_width: int
    categories: tuple[str, ...] = ()
    values: tuple[float, ...] = ()


class Projection(BaseModel):
    """Everything the view needs from one accepted fetch."""

    model_config = ConfigDict(frozen=True)

    granularity: Granularity
    rows: tuple[DisplayRow, ...] = ()
    chart: ChartSeries
    running_total: float = 0.0

    @property
    def running_total_display(self) -> str:
        """Running total fixed to two decimals, e.g. ``"12.40"``."""
        from dashboard.src.projection import format_fixed

        return format_fixed(self.running_total)


class PollState(BaseModel):
    """Snapshot of the polling controller, published to view bindings.

    Attributes:
        granularity: Currently selected granularity.
        phase: Idle, fetching or error.
        loading: True while a fetch for the current selection is in flight.
        last_error: Short message of the most recent failure, cleared on
            the next accepted fetch.
        projection: Output of the most recent accepted fetch, or ``None``
            before the first one. Kept across failures.
        last_updated: When ``projection`` was last replaced.
    """

    model_config = ConfigDict(frozen=True)

    granularity: Granularity
    phase: PollPhase = PollPhase.IDLE
    loading: bool = False
    last_error: str | None = None
    projection: Projection | None = None
    last_updated: datetime | None = None

    @property
    def rows(self) -> tuple[DisplayRow, ...]:
        """Displayed rows (empty before the first accepted fetch)."""
        if self.projection is None:
            return ()
        return self.projection.rows
