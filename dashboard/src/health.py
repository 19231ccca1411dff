"""
Health file writer for the dashboard daemon.

Subscribes to the polling controller and rewrites a JSON file on every
published state with:
- granularity / phase: current selection and controller state.
- row_count: number of rows currently displayed.
- last_success_ts: ISO timestamp of the most recent accepted fetch.
- last_error_ts / last_error: the most recent failure, if any.

Write errors are logged and swallowed so a full disk never stops polling.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-011)

TODO:
- None
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from dashboard.src.models import PollPhase, PollState

logger = logging.getLogger(__name__)


class HealthWriter:
    """Writes dashboard health status to a JSON file.

    Pass :meth:`update` to ``PollingController.subscribe()``.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_success_ts: str | None = None
        self._last_error_ts: str | None = None
        self._last_error: str | None = None

    def update(self, state: PollState) -> None:
        """Record *state* and write the health file."""
        if state.last_updated is not None:
            self._last_success_ts = state.last_updated.isoformat()
        if state.phase == PollPhase.ERROR and state.last_error != self._last_error:
            self._last_error_ts = datetime.now(tz=UTC).isoformat()
            self._last_error = state.last_error
        elif state.last_error is None:
            self._last_error = None

        data = {
            "granularity": state.granularity.value,
            "phase": state.phase.value,
            "row_count": len(state.rows),
            "last_success_ts": self._last_success_ts,
            "last_error_ts": self._last_error_ts,
            "last_error": self._last_error,
        }
        try:
            self.path.write_text(json.dumps(data))
        except OSError:
            logger.warning("Failed to write health file %s", self.path, exc_info=True)
