"""
Poll service - relays new source content into the forum on an interval.

Each tick runs one pass: read the cursor, fetch every feed, merge and
publish, then write the advanced cursor. A tick that arrives while a pass
is still running is skipped, and a failed pass is logged without stopping
later ticks.

Features:
- Idle/Polling guard against overlapping passes
- Crash isolation per pass
- Graceful shutdown
- Metrics collection
"""

import asyncio
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

import structlog

from forum_relay.ingestion.base_adapter import BaseAdapter
from forum_relay.ingestion.schemas import PollCursor
from forum_relay.observability.logging import pass_context
from forum_relay.observability.metrics import get_metrics
from forum_relay.services.merger import RelayStats, TopicRelay, merge_updates
from forum_relay.storage.state import RelayState

logger = structlog.get_logger(__name__)


class PollState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"


@dataclass
class PassResult:
    """Outcome of one completed pass."""

    fetched: int
    stats: RelayStats
    cursor: PollCursor
    elapsed_seconds: float = 0.0
    per_feed: dict[str, int] = field(default_factory=dict)


class PollService:
    """
    Runs poll passes over all feeds on a fixed interval.

    Usage:
        service = PollService(adapters, state, relay, interval=300)
        await service.start()  # Runs until stop()
    """

    def __init__(
        self,
        adapters: Sequence[BaseAdapter],
        state: RelayState,
        relay: TopicRelay,
        interval: float = 300.0,
    ):
        """
        Initialize poll service.

        Args:
            adapters: Feed adapters, fetched in this order every pass
            state: Persistent relay state (cursor and topic records)
            relay: Publisher of merged updates
            interval: Seconds between ticks
        """
        self._adapters = list(adapters)
        self._state_store = state
        self._relay = relay
        self._interval = interval

        self._state = PollState.IDLE
        self._running = False
        self._stop_event = asyncio.Event()
        self._passes: set[asyncio.Task] = set()
        self._metrics = get_metrics()

        logger.info(
            "Poll service initialized",
            feeds=[a.name for a in self._adapters],
            poll_interval=self._interval,
        )

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_pass(self) -> PassResult:
        """
        Run one full pass.

        Raises whatever a feed raises; in that case nothing is published and
        the cursor is left as it was.
        """
        start = time.monotonic()
        cursor = await self._state_store.get_cursor()

        results = []
        for adapter in self._adapters:
            results.append((adapter, await adapter.fetch(cursor)))

        updates = merge_updates(result.updates for _, result in results)
        stats = await self._relay.publish_all(updates)

        new_cursor = cursor.advance({
            adapter.cursor_field: result.newest_id for adapter, result in results
        })
        await self._state_store.set_cursor(new_cursor)

        return PassResult(
            fetched=len(updates),
            stats=stats,
            cursor=new_cursor,
            elapsed_seconds=time.monotonic() - start,
            per_feed={adapter.name: len(result.updates) for adapter, result in results},
        )

    async def tick(self) -> PassResult | None:
        """
        Run a pass unless one is already in progress.

        Returns:
            The pass result, or None if skipped or failed
        """
        if self._state is PollState.POLLING:
            logger.debug("Pass still in progress, skipping tick")
            self._metrics.record_pass("skipped")
            return None

        self._state = PollState.POLLING
        with pass_context():
            start = time.monotonic()
            logger.debug("Updating...")

            try:
                result = await self.run_pass()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    "Poll pass failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                self._metrics.record_pass("error", time.monotonic() - start)
                return None
            finally:
                self._state = PollState.IDLE

            self._metrics.record_pass("success", result.elapsed_seconds)
            logger.info(
                "Poll pass completed",
                fetched=result.fetched,
                per_feed=result.per_feed,
                created=result.stats.created,
                appended=result.stats.appended,
                duplicates=result.stats.duplicates,
                failed=result.stats.failed,
                elapsed_seconds=round(result.elapsed_seconds, 2),
            )
            return result

    async def start(self) -> None:
        """
        Start ticking until stop() is called.

        Ticks are scheduled on the interval regardless of how long a pass
        takes; overlapping ticks are skipped by tick().
        """
        self._running = True
        self._stop_event.clear()
        logger.info("Starting poll service")

        try:
            while self._running:
                task = asyncio.create_task(self.tick(), name="poll_pass")
                self._passes.add(task)
                task.add_done_callback(self._passes.discard)

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            await self._cleanup()

    async def stop(self) -> None:
        """Stop the service gracefully, letting an in-flight pass finish."""
        logger.info("Stopping poll service")
        self._running = False
        self._stop_event.set()

    async def _cleanup(self) -> None:
        if self._passes:
            await asyncio.gather(*self._passes, return_exceptions=True)
        self._passes.clear()
        logger.info("Poll service stopped")
