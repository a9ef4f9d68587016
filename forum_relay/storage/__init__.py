"""Durable state: key-value stores and typed relay namespaces."""

from forum_relay.storage.kv import InMemoryStore, KeyValueStore, RedisStore
from forum_relay.storage.state import RelayState

__all__ = ["InMemoryStore", "KeyValueStore", "RedisStore", "RelayState"]
