"""
Polling controller: granularity selection, recurring refresh, staleness.

Owns the dashboard's ``PollState`` and the single recurring timer. All state
changes happen on the event loop thread between awaits; the only suspension
point is the fetch itself. Transitions:

- ``start()``: fetch the current granularity immediately.
- ``select_granularity(g)``: for a new ``g``, cancel the timer, bump the
  selection epoch and fetch ``g`` immediately. Same ``g`` is a no-op.
- timer tick: re-fetch the current granularity, only if the tick belongs
  to the current epoch and no fetch is running.
- fetch succeeded: replace the projection, clear the error, go idle, re-arm.
- fetch failed: keep the previous projection, record the error, re-arm.
- ``close()``: cancel the timer and any in-flight fetch, always.

Every fetch is tagged with the epoch it was issued for. A result arriving
after the epoch moved on is dropped without touching state or the timer,
so at most one timer is ever armed and an old granularity's data never
overwrites the current selection.

CHANGELOG:
- 2026-10-18: Skip re-arm when a subscriber reselects during publish (STORY-013)
- 2026-10-18: Guard subscriber callbacks so one bad view cannot stop polling
- 2026-10-18: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import UTC, datetime, tzinfo
from typing import TYPE_CHECKING

from dashboard.src.errors import FetchError
from dashboard.src.models import Granularity, PollPhase, PollState, Projection
from dashboard.src.projection import project

if TYPE_CHECKING:
    from dashboard.src.fetcher import FetchClient

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_S: float = 30.0
"""Seconds between the end of one fetch and the next timer-driven fetch."""

DEFAULT_GRANULARITY: Granularity = Granularity.HOURLY

Subscriber = Callable[[PollState], None]


class PollingController:
    """Periodic, granularity-aware fetch-and-project loop.

    Args:
        client: Fetch client for the smart-plug endpoint (anything with an
            async ``fetch(granularity)`` method).
        granularity: Initial selection.
        poll_interval_s: Refresh interval once a fetch has settled.
        tz: Zone for period labels; ``None`` uses the local zone.

    Usage::

        async with PollingController(FetchClient(url)) as controller:
            controller.subscribe(view.render)
            controller.select_granularity(Granularity.DAILY)
            ...
    """

    def __init__(
        self,
        client: FetchClient,
        *,
        granularity: Granularity = DEFAULT_GRANULARITY,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        tz: tzinfo | None = None,
    ) -> None:
        if poll_interval_s <= 0:
            raise ValueError("poll_interval_s must be > 0")
        self._client = client
        self._poll_interval_s = poll_interval_s
        self._tz = tz
        self._state = PollState(granularity=Granularity(granularity))
        self._epoch = 0
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._subscribers: list[Subscriber] = []
        self._started = False
        self._closed = False

    async def __aenter__(self) -> PollingController:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> PollState:
        """Latest immutable state snapshot."""
        return self._state

    @property
    def granularity(self) -> Granularity:
        """Currently selected granularity."""
        return self._state.granularity

    @property
    def timer_armed(self) -> bool:
        """Whether a refresh is scheduled."""
        return self._timer is not None

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback* for every published state snapshot.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._subscribers.remove(callback)

        return _unsubscribe

    def start(self) -> asyncio.Task[None] | None:
        """Issue the first fetch for the current granularity.

        Returns:
            The fetch task, or ``None`` if already started.

        Raises:
            RuntimeError: If the controller has been closed.
        """
        self._ensure_open()
        if self._started:
            return None
        self._started = True
        logger.info(
            "Polling started (granularity=%s, interval=%ss)",
            self.granularity.value,
            self._poll_interval_s,
        )
        return self._issue_fetch()

    def select_granularity(
        self, granularity: Granularity
    ) -> asyncio.Task[None] | None:
        """Switch to *granularity* and fetch it immediately.

        Args:
            granularity: The new selection.

        Returns:
            The fetch task, or ``None`` when *granularity* is already selected.

        Raises:
            RuntimeError: If the controller has been closed.
            ValueError: If *granularity* is not a known granularity name.
        """
        self._ensure_open()
        granularity = Granularity(granularity)
        if granularity == self._state.granularity:
            return None

        self._cancel_timer()
        self._epoch += 1
        self._started = True
        logger.info(
            "Granularity changed %s -> %s",
            self._state.granularity.value,
            granularity.value,
        )
        self._state = self._state.model_copy(update={"granularity": granularity})
        return self._issue_fetch()

    async def close(self) -> None:
        """Cancel the timer and any in-flight fetch. Safe to call twice."""
        self._cancel_timer()
        if self._closed:
            return
        self._closed = True
        self._epoch += 1

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Polling stopped")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _issue_fetch(self) -> asyncio.Task[None]:
        """Enter ``fetching`` and start a fetch tagged with the current epoch."""
        epoch = self._epoch
        granularity = self._state.granularity
        self._state = self._state.model_copy(
            update={"phase": PollPhase.FETCHING, "loading": True}
        )
        self._publish()

        task = asyncio.get_running_loop().create_task(
            self._fetch(epoch, granularity),
            name=f"fetch-{granularity.value}-{epoch}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _fetch(self, epoch: int, granularity: Granularity) -> None:
        """Run one fetch and apply its outcome if still current."""
        projection: Projection | None = None
        error: str | None = None
        try:
            records = await self._client.fetch(granularity)
            projection = project(records, granularity, self._tz)
        except FetchError as exc:
            error = str(exc)
        except Exception as exc:
            logger.error(
                "Unexpected error fetching %s data", granularity.value, exc_info=True
            )
            error = f"{type(exc).__name__}: {exc}"

        if epoch != self._epoch:
            logger.debug(
                "Discarding stale %s result (epoch %d, current %d)",
                granularity.value,
                epoch,
                self._epoch,
            )
            return

        if projection is not None:
            self._state = PollState(
                granularity=granularity,
                phase=PollPhase.IDLE,
                loading=False,
                last_error=None,
                projection=projection,
                last_updated=datetime.now(tz=UTC),
            )
            logger.info(
                "Refreshed %s data: %d rows, %s Wh",
                granularity.value,
                len(projection.rows),
                projection.running_total_display,
                extra={"granularity": granularity.value},
            )
        else:
            logger.warning(
                "Fetch failed, keeping previous data: %s",
                error,
                extra={"granularity": granularity.value},
            )
            self._state = self._state.model_copy(
                update={
                    "phase": PollPhase.ERROR,
                    "loading": False,
                    "last_error": error,
                }
            )

        self._publish()
        # A subscriber may have switched granularity during publish; that
        # fetch arms its own timer when it settles.
        if epoch == self._epoch:
            self._arm_timer()

    def _on_tick(self, epoch: int) -> None:
        """Timer callback: refresh the current granularity."""
        self._timer = None
        if epoch != self._epoch or self._closed:
            logger.debug("Ignoring timer tick from epoch %d", epoch)
            return
        if self._state.phase == PollPhase.FETCHING:
            logger.debug("Ignoring timer tick while a fetch is running")
            return
        self._issue_fetch()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _arm_timer(self) -> None:
        """Replace any pending timer with one for the current epoch."""
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().call_later(
            self._poll_interval_s, self._on_tick, self._epoch
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _publish(self) -> None:
        """Hand the current snapshot to every subscriber."""
        state = self._state
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception:
                logger.error("View subscriber raised", exc_info=True)

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("PollingController is closed")
