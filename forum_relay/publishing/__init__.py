"""Publish targets for rendered updates."""

from forum_relay.publishing.discord import (
    DiscordForumPublisher,
    ForumPublisher,
    PublishError,
    ThreadNotFoundError,
)

__all__ = [
    "DiscordForumPublisher",
    "ForumPublisher",
    "PublishError",
    "ThreadNotFoundError",
]
