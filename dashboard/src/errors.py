"""
Fetch error hierarchy for the smart-plug endpoint.

``FetchClient.fetch()`` raises only these. The polling controller catches
``FetchError`` and turns it into its error state, so a failed request never
ends the polling loop.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations


class FetchError(Exception):
    """Base class for a failed fetch of aggregation records."""


class NetworkError(FetchError):
    """Transport failure: connection refused, DNS, reset, timeout."""


class BadResponse(FetchError):
    """Non-2xx status or a body that is not a list of aggregation records.

    Args:
        message: Human-readable description.
        status_code: HTTP status when the failure came from the status line.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
