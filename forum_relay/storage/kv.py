"""
Durable key-value store used for cursors, topic records and caches.

RedisStore is the production backend; InMemoryStore backs tests and
throwaway development runs. Values are JSON documents.
"""

import json
import logging
from abc import ABC, abstractmethod
from types import TracebackType
from typing import Any

import redis.asyncio as redis

from forum_relay.config.settings import get_settings

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract get/set/atomic-increment store."""

    async def connect(self) -> None:
        """Open any underlying connection."""

    async def close(self) -> None:
        """Release any underlying connection."""

    async def __aenter__(self) -> "KeyValueStore":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the stored value, or None if the key is absent."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value."""

    @abstractmethod
    async def incr(self, key: str, amount: int = 1) -> int:
        """Atomically add amount to an integer counter and return the new value."""


class InMemoryStore(KeyValueStore):
    """Dict-backed store. Values are round-tripped through JSON like Redis."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    async def incr(self, key: str, amount: int = 1) -> int:
        value = int(json.loads(self._data.get(key, "0"))) + amount
        self._data[key] = json.dumps(value)
        return value

    def keys(self) -> list[str]:
        return list(self._data)


class RedisStore(KeyValueStore):
    """
    Redis-backed store.

    Usage:
        async with RedisStore() as store:
            await store.set("poll", {"reddit_post_id": "abc"})
    """

    def __init__(
        self,
        redis_url: str | None = None,
        key_prefix: str | None = None,
    ):
        settings = get_settings()

        self._redis_url = redis_url or str(settings.redis_url)
        self._key_prefix = key_prefix if key_prefix is not None else settings.redis_key_prefix
        self._redis: redis.Redis | None = None

    async def connect(self) -> None:
        """Establish the Redis connection."""
        self._redis = redis.from_url(
            self._redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        await self._redis.ping()
        logger.info("Connected to Redis")

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis connection closed")

    @property
    def redis(self) -> redis.Redis:
        """Get Redis client, raising if not connected."""
        if self._redis is None:
            raise RuntimeError("Not connected to Redis. Call connect() first.")
        return self._redis

    def _key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    async def get(self, key: str) -> Any | None:
        raw = await self.redis.get(self._key(key))
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        await self.redis.set(self._key(key), json.dumps(value))

    async def incr(self, key: str, amount: int = 1) -> int:
        return int(await self.redis.incrby(self._key(key), amount))
