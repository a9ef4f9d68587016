"""Forum publishing targets.

Provides an ABC for forum-style publish targets plus a Discord
implementation over the REST API. Threads are created in a forum channel
with the first block of an update; follow-up blocks and later updates are
appended as messages.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from forum_relay.ingestion.schemas import SourceKind
from forum_relay.rendering.renderer import RenderedBlock, abbreviate

logger = logging.getLogger(__name__)

THREAD_NAME_LENGTH = 100
DEFAULT_RETRY_AFTER = 1.0


class PublishError(Exception):
    """Raised when the publish target rejects a request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ThreadNotFoundError(PublishError):
    """Raised when the destination thread no longer exists."""

    pass


class ForumPublisher(ABC):
    """Abstract forum-style publish target."""

    @abstractmethod
    async def create_thread(
        self, title: str, block: RenderedBlock, source: SourceKind
    ) -> str:
        """Create a thread whose first message is `block`.

        Returns:
            The new thread's id.
        """

    @abstractmethod
    async def send(self, thread_id: str, block: RenderedBlock) -> None:
        """Append `block` as a message to an existing thread."""


class DiscordForumPublisher(ForumPublisher):
    """Publishes into a Discord forum channel with a bot token.

    Usage:
        async with DiscordForumPublisher(token, channel_id, tags) as publisher:
            thread_id = await publisher.create_thread(title, block, SourceKind.REDDIT)
    """

    def __init__(
        self,
        token: str,
        forum_channel_id: str,
        tags: dict[SourceKind, str | None] | None = None,
        api_url: str = "https://discord.com/api/v10",
        timeout: float = 30.0,
        max_rate_limit_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._forum_channel_id = forum_channel_id
        self._tags = tags or {}
        self._max_rate_limit_retries = max_rate_limit_retries
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers={"Authorization": f"Bot {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "DiscordForumPublisher":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def create_thread(
        self, title: str, block: RenderedBlock, source: SourceKind
    ) -> str:
        tag = self._tags.get(source)
        payload: dict[str, Any] = {
            "name": abbreviate(title, THREAD_NAME_LENGTH),
            "message": {"embeds": [block.to_embed()]},
        }
        if tag:
            payload["applied_tags"] = [tag]

        data = await self._post(f"/channels/{self._forum_channel_id}/threads", payload)
        return str(data["id"])

    async def send(self, thread_id: str, block: RenderedBlock) -> None:
        await self._post(
            f"/channels/{thread_id}/messages",
            {"embeds": [block.to_embed()]},
            thread_message=True,
        )

    async def _post(
        self,
        path: str,
        payload: dict[str, Any],
        thread_message: bool = False,
    ) -> dict[str, Any]:
        for attempt in range(self._max_rate_limit_retries + 1):
            resp = await self._client.post(path, json=payload)

            if resp.status_code == 429 and attempt < self._max_rate_limit_retries:
                wait = _retry_after(resp)
                logger.warning("Discord rate limited on %s, retrying in %.2fs", path, wait)
                await asyncio.sleep(wait)
                continue

            if resp.status_code == 404 and thread_message:
                raise ThreadNotFoundError(
                    f"Discord returned 404 for {path}", status_code=404,
                )
            if not resp.is_success:
                raise PublishError(
                    f"Discord returned {resp.status_code} for {path}: {resp.text}",
                    status_code=resp.status_code,
                )
            return resp.json()

        raise PublishError(f"Discord kept rate limiting {path}", status_code=429)


def _retry_after(resp: httpx.Response) -> float:
    """Seconds to wait from a 429 body, then the Retry-After header, else 1s."""
    try:
        return float(resp.json()["retry_after"])
    except (ValueError, KeyError, TypeError):
        pass
    try:
        return float(resp.headers["Retry-After"])
    except (KeyError, ValueError):
        return DEFAULT_RETRY_AFTER
