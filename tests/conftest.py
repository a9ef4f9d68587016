"""Pytest fixtures for forum-relay tests."""

from datetime import datetime, timedelta, timezone

import pytest

from forum_relay.config.settings import Settings
from forum_relay.dispatch.config import DispatcherConfig
from forum_relay.ingestion.schemas import SourceKind, Update
from forum_relay.publishing.discord import ForumPublisher, PublishError
from forum_relay.storage.kv import InMemoryStore
from forum_relay.storage.state import RelayState

BASE_TIME = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing."""
    return Settings(
        environment="development",
        log_level="DEBUG",
        redis_url="redis://localhost:6379/1",
        discord_token="discord-token",
        forum_channel_id="forum-1",
        forum_reddit_tag="tag-reddit",
        forum_discourse_tag="tag-discourse",
    )


@pytest.fixture
def fast_config() -> DispatcherConfig:
    """Dispatcher config with near-zero cooldowns."""
    return DispatcherConfig(
        idle_delay=0.0,
        base_error_wait=0.001,
        error_multiplier=2.0,
        max_error_wait=0.005,
        request_timeout=1.0,
        max_attempts=5,
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def state(store: InMemoryStore) -> RelayState:
    return RelayState(store)


def make_update(
    update_id: str = "t3_abc",
    topic_id: str | None = None,
    minutes: int = 0,
    source: SourceKind = SourceKind.REDDIT,
    **overrides,
) -> Update:
    """Build an Update with sensible defaults."""
    fields = {
        "source": source,
        "id": update_id,
        "topic_id": topic_id or update_id,
        "topic_title": "Type providers in F# 9",
        "url": f"https://www.reddit.com/r/fsharp/comments/{update_id}/",
        "time": BASE_TIME + timedelta(minutes=minutes),
        "author": "dsyme",
        "author_url": "https://www.reddit.com/u/dsyme",
        "author_image": "https://styles.redditmedia.com/avatar.png",
        "text": "Has anyone tried the new type providers?",
    }
    fields.update(overrides)
    return Update(**fields)


@pytest.fixture
def sample_update() -> Update:
    return make_update()


@pytest.fixture
def update_factory():
    """Factory for Updates; keyword arguments override the defaults."""
    return make_update


class FakePublisher(ForumPublisher):
    """Records every call; fails thread creation for titles in fail_titles."""

    def __init__(self, fail_titles: set[str] | None = None):
        self.threads: list[tuple[str, str, SourceKind]] = []
        self.messages: list[tuple[str, str]] = []
        self.fail_titles = fail_titles or set()

    async def create_thread(self, title, block, source):
        if title in self.fail_titles:
            raise PublishError("forum unavailable", status_code=503)
        thread_id = f"thread-{len(self.threads) + 1}"
        self.threads.append((thread_id, title, source))
        return thread_id

    async def send(self, thread_id, block):
        self.messages.append((thread_id, block.description))


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()
