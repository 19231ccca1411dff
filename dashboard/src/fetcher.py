"""
HTTP client for the smart-plug aggregation endpoint.

Issues a single ``GET {base_url}/smart-plug/{granularity}`` per call and
validates the JSON array body into ``AggregationRecord`` models, preserving
the order the server sent them in. There is no retry logic here: the
polling controller's cadence is the retry mechanism.

Failures are raised as ``NetworkError`` (transport) or ``BadResponse``
(status or payload) so the controller can move into its error state.

Operations:
- fetch(granularity): One round trip, returns the ordered record list.

CHANGELOG:
- 2026-10-18: Make request timeout optional, default none (STORY-010)
- 2026-10-18: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from dashboard.src.errors import BadResponse, NetworkError
from dashboard.src.models import AggregationRecord, Granularity

logger = logging.getLogger(__name__)


class FetchClient:
    """Client for the granularity-keyed smart-plug endpoint.

    Args:
        base_url: Service root, e.g. ``http://localhost:5000``. Must use
            ``http://`` or ``https://``.
        timeout_s: Per-request timeout in seconds. ``None`` (the default)
            waits indefinitely, so a hung request stalls that polling cycle
            until it resolves.

    Raises:
        ValueError: If *base_url* is not an http(s) URL.

    Usage::

        client = FetchClient(base_url="http://localhost:5000")
        records = await client.fetch(Granularity.HOURLY)
    """

    def __init__(self, base_url: str, timeout_s: float | None = None) -> None:
        if not base_url.lower().startswith(("http://", "https://")):
            raise ValueError(
                f"Smart-plug base URL must be http(s) (got: '{base_url}')."
            )
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s

    def url_for(self, granularity: Granularity) -> str:
        """Endpoint URL for *granularity*."""
        return f"{self._base_url}/smart-plug/{Granularity(granularity).value}"

    async def fetch(self, granularity: Granularity) -> list[AggregationRecord]:
        """Fetch the aggregation records for *granularity*.

        Args:
            granularity: Bucket size to request.

        Returns:
            Records in the order the server returned them. May be empty.

        Raises:
            NetworkError: Connection failure, timeout or other transport error.
            BadResponse: Non-2xx status, non-JSON body, body that is not a
                JSON array, or an element that is not a valid record.
        """
        granularity = Granularity(granularity)
        url = self.url_for(granularity)

        try:
            async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                response = await client.get(url)
        except httpx.TransportError as exc:
            raise NetworkError(f"GET {url} failed: {exc}") from exc

        if not response.is_success:
            raise BadResponse(
                f"GET {url} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise BadResponse(f"GET {url} returned a non-JSON body") from exc

        if not isinstance(payload, list):
            raise BadResponse(
                f"GET {url} returned {type(payload).__name__}, expected a list"
            )

        try:
            records = [AggregationRecord.model_validate(item) for item in payload]
        except ValidationError as exc:
            raise BadResponse(
                f"GET {url} returned malformed records: "
                f"{exc.error_count()} validation error(s)"
            ) from exc

        logger.debug(
            "Fetched %d %s records from %s", len(records), granularity.value, url
        )
        return records
