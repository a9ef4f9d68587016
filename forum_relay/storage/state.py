"""Typed access to the relay's key-value namespaces."""

from forum_relay.ingestion.schemas import PollCursor, SourceKind, TopicRecord
from forum_relay.storage.kv import KeyValueStore

POLL_KEY = "poll"


def topic_key(source: SourceKind, topic_id: str) -> str:
    return f"topic/{source.value}/{topic_id}"


def avatar_key(author: str) -> str:
    return f"redditAvatar/{author}"


def message_count_key(user_id: str) -> str:
    return f"messageCount/{user_id}"


class RelayState:
    """
    Persistent relay state on top of a KeyValueStore.

    Namespaces:
        poll                        -> PollCursor
        topic/{source}/{topic_id}   -> TopicRecord
        redditAvatar/{author}       -> avatar URL
        messageCount/{user_id}      -> integer counter
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    @property
    def store(self) -> KeyValueStore:
        return self._store

    async def get_cursor(self) -> PollCursor:
        data = await self._store.get(POLL_KEY)
        return PollCursor() if data is None else PollCursor.model_validate(data)

    async def set_cursor(self, cursor: PollCursor) -> None:
        await self._store.set(POLL_KEY, cursor.model_dump(mode="json"))

    async def get_topic(self, source: SourceKind, topic_id: str) -> TopicRecord | None:
        data = await self._store.get(topic_key(source, topic_id))
        return None if data is None else TopicRecord.model_validate(data)

    async def set_topic(
        self, source: SourceKind, topic_id: str, record: TopicRecord
    ) -> None:
        await self._store.set(topic_key(source, topic_id), record.model_dump(mode="json"))

    async def get_avatar(self, author: str) -> str | None:
        return await self._store.get(avatar_key(author))

    async def set_avatar(self, author: str, url: str) -> None:
        await self._store.set(avatar_key(author), url)

    async def increment_message_count(self, user_id: str) -> int:
        return await self._store.incr(message_count_key(user_id))

    async def get_message_count(self, user_id: str) -> int:
        value = await self._store.get(message_count_key(user_id))
        return int(value or 0)
