"""
Canonical records for the relay pipeline.

Update is what every source adapter outputs and what the renderer and
deduplicator consume. PollCursor and TopicRecord are the persisted state.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SourceKind(str, Enum):
    """Supported content sources."""

    REDDIT = "reddit"
    DISCOURSE = "discourse"

    @property
    def label(self) -> str:
        """Display name used in the attribution line."""
        return {
            SourceKind.REDDIT: "Reddit",
            SourceKind.DISCOURSE: "Discourse",
        }[self]


class Update(BaseModel):
    """
    One normalized item of new content.

    Immutable once constructed. `id` is unique per source and is what
    deduplication keys on; `topic_id` groups updates into one thread.
    """

    model_config = ConfigDict(frozen=True)

    source: SourceKind
    id: str = Field(..., min_length=1, description="Dedup id, e.g. t1_abc or 1234")
    topic_id: str = Field(..., min_length=1, description="Thread-grouping key")
    topic_title: str
    url: str

    time: datetime

    author: str
    author_url: str
    author_image: str | None = None

    html: str | None = None
    text: str | None = None
    link: str | None = None
    image: str | None = None


class PollCursor(BaseModel):
    """Last-seen item id per feed, the exclusive lower bound of the next fetch."""

    reddit_post_id: str | None = None
    reddit_comment_id: str | None = None
    discourse_post_id: int | None = None

    def advance(self, newest: dict[str, str | int | None]) -> "PollCursor":
        """
        Return a cursor moved forward to the newest ids seen in a pass.

        Feeds that saw nothing new (None) keep their previous value.
        """
        changes = {field: value for field, value in newest.items() if value is not None}
        return self.model_copy(update=changes)


class TopicRecord(BaseModel):
    """Destination thread for one source topic and the update ids posted into it."""

    thread_id: str
    updates: list[str] = Field(default_factory=list)

    def contains(self, update_id: str) -> bool:
        return update_id in self.updates

    def with_update(self, update_id: str) -> "TopicRecord":
        """Return a copy with update_id appended."""
        return TopicRecord(thread_id=self.thread_id, updates=[*self.updates, update_id])
