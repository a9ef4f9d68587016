"""
Merge, deduplicate and publish updates into forum threads.

Updates from all feeds are merged into one ascending-time sequence and
published one at a time. Each topic's record is persisted right after its
update is published, so an update id is posted into a thread at most once
and a crash loses at most the update in flight.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from itertools import chain

import structlog

from forum_relay.ingestion.schemas import TopicRecord, Update
from forum_relay.observability.metrics import get_metrics
from forum_relay.publishing.discord import ForumPublisher
from forum_relay.rendering.renderer import Renderer
from forum_relay.storage.state import RelayState

logger = structlog.get_logger(__name__)


def merge_updates(batches: Iterable[Iterable[Update]]) -> list[Update]:
    """
    Concatenate feed batches and order them by time.

    The sort is stable: updates with equal timestamps keep feed order.
    """
    return sorted(chain.from_iterable(batches), key=lambda u: u.time)


class Outcome(str, Enum):
    """What happened to one update."""

    CREATED = "created"
    APPENDED = "appended"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass
class RelayStats:
    """Counts of one publish run."""

    created: int = 0
    appended: int = 0
    duplicates: int = 0
    failed: int = 0

    @property
    def published(self) -> int:
        return self.created + self.appended

    def add(self, outcome: Outcome) -> None:
        if outcome is Outcome.CREATED:
            self.created += 1
        elif outcome is Outcome.APPENDED:
            self.appended += 1
        elif outcome is Outcome.DUPLICATE:
            self.duplicates += 1
        else:
            self.failed += 1


class TopicRelay:
    """
    Publishes updates into one thread per source topic.

    Usage:
        relay = TopicRelay(state, publisher)
        stats = await relay.publish_all(merge_updates(batches))
    """

    def __init__(
        self,
        state: RelayState,
        publisher: ForumPublisher,
        renderer: Renderer | None = None,
    ):
        self._state = state
        self._publisher = publisher
        self._renderer = renderer or Renderer()
        self._metrics = get_metrics()

    async def publish_all(self, updates: Iterable[Update]) -> RelayStats:
        """
        Publish updates in order.

        A failing update is logged and skipped; it never stops the rest.
        """
        stats = RelayStats()
        for update in updates:
            stats.add(await self.publish(update))
        return stats

    async def publish(self, update: Update) -> Outcome:
        """Publish one update, catching and logging any failure."""
        source = update.source.value
        try:
            outcome = await self._publish(update)
        except Exception as e:
            logger.error(
                "Failed to send update",
                url=update.url,
                update_id=update.id,
                topic_id=update.topic_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            self._metrics.record_publish_error(source, type(e).__name__)
            return Outcome.FAILED

        if outcome is Outcome.DUPLICATE:
            self._metrics.record_skipped(source)
        else:
            self._metrics.record_published(source)
        return outcome

    async def _publish(self, update: Update) -> Outcome:
        record = await self._state.get_topic(update.source, update.topic_id)

        if record is not None and record.contains(update.id):
            logger.warning(
                "Update already exists in thread",
                url=update.url,
                thread_id=record.thread_id,
            )
            return Outcome.DUPLICATE

        blocks = self._renderer.render(update)

        if record is None:
            thread_id = await self._publisher.create_thread(
                update.topic_title, blocks[0], update.source,
            )
            for block in blocks[1:]:
                await self._publisher.send(thread_id, block)

            await self._state.set_topic(
                update.source,
                update.topic_id,
                TopicRecord(thread_id=thread_id, updates=[update.id]),
            )
            logger.info("Created thread", url=update.url, thread_id=thread_id)
            return Outcome.CREATED

        for block in blocks:
            await self._publisher.send(record.thread_id, block)

        await self._state.set_topic(
            update.source, update.topic_id, record.with_update(update.id),
        )
        logger.info("Appended update", url=update.url, thread_id=record.thread_id)
        return Outcome.APPENDED
