"""
Wiring of the relay pipeline from settings.

Builds routes, the dispatcher pool, the fetch executor, feed adapters and
the Discord publisher, and hands back a ready PollService.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urljoin

import structlog

from forum_relay.config.settings import Settings
from forum_relay.dispatch.config import DispatcherConfig
from forum_relay.dispatch.executor import FetchExecutor
from forum_relay.dispatch.pool import DispatcherPool
from forum_relay.dispatch.routes import load_routes
from forum_relay.ingestion.auth import AuthCache
from forum_relay.ingestion.base_adapter import BaseAdapter
from forum_relay.ingestion.discourse_adapter import DiscourseAdapter
from forum_relay.ingestion.http_client import SourceClient
from forum_relay.ingestion.reddit_adapter import (
    RedditAvatars,
    RedditCommentsAdapter,
    RedditPostsAdapter,
)
from forum_relay.ingestion.schemas import SourceKind
from forum_relay.publishing.discord import DiscordForumPublisher
from forum_relay.services.merger import TopicRelay
from forum_relay.services.poll_service import PollService
from forum_relay.storage.kv import KeyValueStore
from forum_relay.storage.state import RelayState

logger = structlog.get_logger(__name__)


def create_adapters(
    settings: Settings,
    executor: FetchExecutor,
    state: RelayState,
) -> list[BaseAdapter]:
    """Create feed adapters based on available configuration."""
    adapters: list[BaseAdapter] = []

    if settings.reddit_configured:
        auth = AuthCache(
            executor,
            token_url=urljoin(settings.reddit_url, "/api/v1/access_token"),
            username=settings.reddit_user,
            password=settings.reddit_password,
            client_id=settings.reddit_client_id,
            client_secret=settings.reddit_client_secret,
            user_agent=settings.user_agent,
        )
        client = SourceClient(executor, settings.user_agent, auth=auth)
        avatars = RedditAvatars(client, state, settings.reddit_oauth_url)
        for adapter_cls in (RedditPostsAdapter, RedditCommentsAdapter):
            adapters.append(adapter_cls(
                client,
                avatars,
                subreddit=settings.subreddit,
                reddit_url=settings.reddit_url,
                oauth_url=settings.reddit_oauth_url,
            ))
        logger.info("Reddit feeds enabled", subreddit=settings.subreddit)
    else:
        logger.warning("Reddit credentials not configured, Reddit feeds disabled")

    adapters.append(DiscourseAdapter(
        SourceClient(executor, settings.user_agent),
        forum_url=settings.discourse_url,
    ))
    logger.info("Discourse feed enabled", forum=settings.discourse_url)

    return adapters


@asynccontextmanager
async def build_poll_service(
    settings: Settings,
    store: KeyValueStore,
) -> AsyncIterator[PollService]:
    """
    Assemble the pipeline and clean it up afterwards.

    Raises:
        RuntimeError: If the Discord forum target is not configured
        ProxyConfigError: If the proxy file is malformed
    """
    if not settings.discord_configured:
        raise RuntimeError("DISCORD_TOKEN and FORUM_CHANNEL_ID must be set")

    routes = await load_routes(settings.proxies_path, settings.include_direct_route)
    pool = DispatcherPool(routes, DispatcherConfig.from_settings(settings))
    state = RelayState(store)

    publisher = DiscordForumPublisher(
        token=settings.discord_token,
        forum_channel_id=settings.forum_channel_id,
        tags={
            SourceKind.REDDIT: settings.forum_reddit_tag,
            SourceKind.DISCOURSE: settings.forum_discourse_tag,
        },
        api_url=settings.discord_api_url,
    )

    try:
        async with FetchExecutor(pool) as executor, publisher:
            yield PollService(
                create_adapters(settings, executor, state),
                state,
                TopicRelay(state, publisher),
                interval=settings.poll_interval_seconds,
            )
    finally:
        pool.close()
