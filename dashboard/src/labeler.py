"""
Period labels for aggregation buckets.

Pure function that turns a bucket timestamp (epoch milliseconds) into the
string shown on the table's Period column and the chart's category axis.
One fixed convention is used for every granularity: British day-month-year
order, 24-hour clock, English short month names. Labels are for display
only and are never parsed back.

The weekly label carries a simple week index,
``ceil((ts - start_of_year) / WEEK_MS)``, where ``start_of_year`` is local
midnight on 1 January of the timestamp's own year. It is not ISO-8601 and is
not clamped: a timestamp exactly at the start of the year is week 0 and the
last days of a year can reach week 53.

CHANGELOG:
- 2026-10-18: Use "Sept" for September as en-GB does (STORY-013)
- 2026-10-18: Accept an explicit tzinfo for labeling (STORY-009)
- 2026-10-18: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, tzinfo

from dashboard.src.models import Granularity

logger = logging.getLogger(__name__)

WEEK_MS: int = 7 * 24 * 60 * 60 * 1000
"""One week in milliseconds (604800000)."""

INVALID_LABEL = "Invalid Date"
"""Returned for timestamps that cannot be placed on the calendar."""

_MONTHS = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sept",
    "Oct",
    "Nov",
    "Dec",
)


def label(
    timestamp: int | float | str | None,
    granularity: Granularity,
    tz: tzinfo | None = None,
) -> str:
    """Format a bucket timestamp for the given granularity.

    Args:
        timestamp: Bucket start in epoch milliseconds.
        granularity: Selected aggregation granularity. Unknown values fall
            back to the daily format.
        tz: Zone to label in. ``None`` uses the process-local zone.

    Returns:
        The display label, or ``"Invalid Date"`` when the timestamp is not
        a number or lies outside the supported calendar range.
    """
    dt = _to_datetime(timestamp, tz)
    if dt is None:
        return INVALID_LABEL

    day = f"{dt.day} {_MONTHS[dt.month - 1]} {dt.year % 100:02d}"

    if granularity == Granularity.MINUTE:
        return f"{day}, {dt.hour:02d}:{dt.minute:02d}"
    if granularity == Granularity.HOURLY:
        return f"{day}, {dt.hour:02d}"
    if granularity == Granularity.WEEKLY:
        return f"{day} (Week {week_number(timestamp, tz)})"
    if granularity == Granularity.MONTHLY:
        return f"{_MONTHS[dt.month - 1]} {dt.year % 100:02d}"
    if granularity == Granularity.ANNUAL:
        return str(dt.year)
    return day


def week_number(timestamp: int, tz: tzinfo | None = None) -> int:
    """Simple week index of *timestamp* within its own year.

    ``ceil((timestamp - start_of_year) / WEEK_MS)``. Returns 0 exactly at
    the start of the year.
    """
    dt = _to_datetime(timestamp, tz)
    if dt is None:
        return 0
    try:
        start_ms = round(datetime(dt.year, 1, 1, tzinfo=tz).timestamp() * 1000)
    except (OverflowError, OSError, ValueError):
        return 0
    return math.ceil((timestamp - start_ms) / WEEK_MS)


def _to_datetime(timestamp: object, tz: tzinfo | None) -> datetime | None:
    """Convert epoch milliseconds to a datetime, or None if impossible."""
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        logger.debug("Cannot label non-numeric timestamp %r", timestamp)
        return None
    try:
        return datetime.fromtimestamp(timestamp / 1000, tz=tz)
    except (OverflowError, OSError, ValueError):
        logger.debug("Timestamp %r is out of range", timestamp)
        return None
