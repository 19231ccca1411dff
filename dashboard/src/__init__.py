"""
Smart-plug dashboard core package.

Polls the smart-plug aggregation endpoint for the selected granularity,
labels each bucket for display, and projects the series into table rows,
a chart series and a running watt-hour total.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-001)

TODO:
- None
"""
