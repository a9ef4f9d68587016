"""Source ingestion - adapters, schemas, authentication."""

from forum_relay.ingestion.schemas import (
    PollCursor,
    SourceKind,
    TopicRecord,
    Update,
)

__all__ = [
    "PollCursor",
    "SourceKind",
    "TopicRecord",
    "Update",
]
