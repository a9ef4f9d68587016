"""
Base adapter interface for content sources.

Each feed adapter fetches the items newer than its cursor and normalizes
them into Update records. The base class provides:
- The fetch/transform skeleton
- Newest-id tracking for the poll cursor
- Logging of per-feed results
"""

import asyncio
import html
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from forum_relay.ingestion.schemas import PollCursor, SourceKind, Update

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Normalized updates of one feed plus the newest raw id it saw."""

    updates: list[Update] = field(default_factory=list)
    newest_id: str | int | None = None


class BaseAdapter(ABC):
    """
    Abstract base class for feed adapters.

    Subclasses must implement:
        - source: SourceKind of the produced updates
        - cursor_field: PollCursor field this feed reads and advances
        - _fetch_raw(): Raw items newer than the cursor, newest first
        - _raw_id(): The cursor value of a raw item
        - _transform(): Convert one raw item to an Update

    Errors propagate: a feed that cannot be fetched or normalized fails the
    whole pass so its cursor is not advanced past unseen items.
    """

    cursor_field: str

    @property
    @abstractmethod
    def source(self) -> SourceKind:
        """Return the source kind this adapter produces."""
        ...

    @property
    def name(self) -> str:
        """Human-readable adapter name."""
        return f"{self.cursor_field}_adapter"

    @abstractmethod
    async def _fetch_raw(self, after: Any | None) -> list[dict[str, Any]]:
        """
        Fetch raw items strictly newer than `after`.

        Args:
            after: The current cursor value for this feed, or None

        Returns:
            Raw items ordered newest first
        """
        ...

    @abstractmethod
    def _raw_id(self, raw: dict[str, Any]) -> str | int:
        ...

    @abstractmethod
    async def _transform(self, raw: dict[str, Any]) -> Update:
        """Transform one raw item into an Update."""
        ...

    async def fetch(self, cursor: PollCursor) -> FetchResult:
        """
        Fetch and normalize everything newer than the cursor.

        This is the main entry point called by the poll service.
        """
        start = time.monotonic()
        after = getattr(cursor, self.cursor_field)

        raw_items = await self._fetch_raw(after)
        updates = list(await asyncio.gather(*(self._transform(r) for r in raw_items)))
        newest_id = self._raw_id(raw_items[0]) if raw_items else None

        logger.info(
            f"{self.name} completed: "
            f"fetched={len(updates)}, "
            f"newest={newest_id}, "
            f"elapsed={time.monotonic() - start:.2f}s"
        )
        return FetchResult(updates=updates, newest_id=newest_id)


def unescape(text: str | None) -> str | None:
    """Decode HTML entities in human-authored text pulled from markup fields."""
    return None if text is None else html.unescape(text)
