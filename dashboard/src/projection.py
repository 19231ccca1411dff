"""
Projection of fetched aggregation records into dashboard view data.

Pure functions, no I/O: ``project()`` turns the ordered record list of one
fetch into table rows, a chart series and the running watt-hour total. Rows
keep the order the endpoint returned them in; sorting is left to the table
via ``sort_rows()``.

CHANGELOG:
- 2026-10-18: Sort rows with a malformed period last (STORY-013)
- 2026-10-18: Add table column definitions and sort_rows() (STORY-008)
- 2026-10-18: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import tzinfo
from decimal import ROUND_HALF_UP, Decimal

from dashboard.src.labeler import label
from dashboard.src.models import (
    AggregationRecord,
    ChartMode,
    ChartSeries,
    DisplayRow,
    Granularity,
    Projection,
)

# Stroke width per chart mode; bars are drawn without an outline.
_STROKE_WIDTH = {ChartMode.LINE: 2, ChartMode.BAR: 0}


# ---------------------------------------------------------------------------
# Number formatting
# ---------------------------------------------------------------------------


def format_fixed(value: float, places: int = 2) -> str:
    """Format *value* with a fixed number of decimals, halves rounded up.

    Rounds the exact binary value of the float, so ``3.83`` gives
    ``"3.83"`` and ``0.125`` gives ``"0.13"``.
    """
    if not math.isfinite(value):
        return str(value)
    quantum = Decimal(1).scaleb(-places)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def _plain(value: float) -> str:
    """Shortest representation, without a trailing ``.0`` on whole numbers."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# ---------------------------------------------------------------------------
# Table columns
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Column:
    """One table column.

    Attributes:
        name: Header text.
        attribute: ``DisplayRow`` attribute the column sorts on.
        formatter: Turns the attribute value into the cell string.
    """

    name: str
    attribute: str
    formatter: Callable[[object], str] = str

    def render(self, row: DisplayRow) -> str:
        """Return the cell string for *row*."""
        if self.attribute == "period":
            return row.period_label
        return self.formatter(getattr(row, self.attribute))


TABLE_COLUMNS: tuple[Column, ...] = (
    Column("Index", "index"),
    Column("Period", "period"),
    Column("Average Volt", "average_volt", format_fixed),
    Column("Average Current", "average_current", format_fixed),
    Column("Average Watts", "average_watts", format_fixed),
    Column("Max Watts", "max_watts", _plain),
    Column("Min Watts", "min_watts", _plain),
    Column("Total Count", "total_count"),
    Column("Total Watt-Hours", "total_watt_hours", format_fixed),
)

_COLUMNS_BY_NAME = {column.name: column for column in TABLE_COLUMNS}


def sort_rows(
    rows: Iterable[DisplayRow],
    column: str,
    *,
    descending: bool = False,
) -> list[DisplayRow]:
    """Return *rows* sorted by a table column's underlying value.

    The sort is stable and returns a new list; the projection is untouched.
    The Period column sorts by timestamp, not by label text; rows whose
    period is not a number sort after all others.

    Raises:
        KeyError: If *column* is not a table column name.
    """
    attribute = _COLUMNS_BY_NAME[column].attribute
    if attribute != "period":
        return sorted(
            rows, key=lambda row: getattr(row, attribute), reverse=descending
        )

    def _period_key(row: DisplayRow) -> tuple[int, float]:
        period = row.period
        if isinstance(period, bool) or not isinstance(period, (int, float)):
            return (1, 0.0)
        return (0, -period if descending else period)

    return sorted(rows, key=_period_key)


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------


def chart_mode(granularity: Granularity) -> ChartMode:
    """Minute data is drawn as a line; every coarser bucket as bars."""
    if granularity == Granularity.MINUTE:
        return ChartMode.LINE
    return ChartMode.BAR


def chart_title(granularity: Granularity) -> str:
    """Chart heading, e.g. ``"Total Watt-Hours - Hourly"``."""
    return f"Total Watt-Hours - {granularity.value.capitalize()}"


def project(
    records: Sequence[AggregationRecord],
    granularity: Granularity,
    tz: tzinfo | None = None,
) -> Projection:
    """Project one fetch's records for display.

    Args:
        records: Records in the order the endpoint returned them.
        granularity: Granularity the records were fetched for.
        tz: Zone for period labels; ``None`` uses the local zone.

    Returns:
        A ``Projection`` whose rows are indexed by position, whose chart
        series follows the same order, and whose running total is the
        in-order float sum of ``total_watt_hours``.
    """
    rows = tuple(
        DisplayRow(
            **record.model_dump(),
            index=index,
            period_label=label(record.period, granularity, tz),
        )
        for index, record in enumerate(records)
    )

    running_total = 0.0
    for row in rows:
        running_total += row.total_watt_hours

    mode = chart_mode(granularity)
    chart = ChartSeries(
        title=chart_title(granularity),
        mode=mode,
        stroke_width=_STROKE_WIDTH[mode],
        categories=tuple(row.period_label for row in rows),
        values=tuple(float(format_fixed(row.total_watt_hours)) for row in rows),
    )

    return Projection(
        granularity=granularity,
        rows=rows,
        chart=chart,
        running_total=running_total,
    )
