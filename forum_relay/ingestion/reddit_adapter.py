"""
Reddit API adapters for one subreddit.

Two feeds share one authenticated client:
- RedditPostsAdapter: /r/{sub}/new, fullnames t3_{id}
- RedditCommentsAdapter: /r/{sub}/comments, fullnames t1_{id}

Listings are requested with an exclusive "before" fullname so only items
newer than the cursor come back, newest first. Author avatars are looked up
once per author and cached in the relay state.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urljoin

from forum_relay.ingestion.base_adapter import BaseAdapter, unescape
from forum_relay.ingestion.http_client import SourceClient
from forum_relay.ingestion.schemas import SourceKind, Update
from forum_relay.storage.state import RelayState

logger = logging.getLogger(__name__)

DELETED_AUTHOR = "[deleted]"

# Thumbnail values Reddit uses in place of an image URL
NO_THUMBNAIL = {"", "self", "default", "nsfw", "spoiler", "image"}


class RedditAvatars:
    """
    Per-author avatar lookup backed by the persistent avatar cache.

    Concurrent lookups for the same author share one request.
    """

    def __init__(
        self,
        client: SourceClient,
        state: RelayState,
        oauth_url: str,
    ):
        self._client = client
        self._state = state
        self._oauth_url = oauth_url.rstrip("/")
        self._inflight: dict[str, asyncio.Task[str | None]] = {}

    async def get(self, author: str) -> str | None:
        if author == DELETED_AUTHOR:
            return None

        cached = await self._state.get_avatar(author)
        if cached is not None:
            return cached

        task = self._inflight.get(author)
        if task is None:
            task = asyncio.create_task(self._lookup(author))
            self._inflight[author] = task
            task.add_done_callback(lambda _: self._inflight.pop(author, None))
        return await task

    async def _lookup(self, author: str) -> str | None:
        about = await self._client.get_json(
            f"{self._oauth_url}/u/{author}/about.json",
            authenticated=True,
        )
        image = unescape(about["data"].get("icon_img"))
        if image is not None:
            await self._state.set_avatar(author, image)
        return image


class RedditAdapter(BaseAdapter):
    """
    Shared Reddit listing logic.

    Content Handling:
        - Titles, bodies and HTML bodies are entity-decoded
        - Author URL points at the public profile
        - Timestamps come from created_utc
    """

    listing: str
    kind_prefix: str

    def __init__(
        self,
        client: SourceClient,
        avatars: RedditAvatars,
        subreddit: str,
        reddit_url: str = "https://www.reddit.com",
        oauth_url: str = "https://oauth.reddit.com",
    ):
        self._client = client
        self._avatars = avatars
        self._subreddit = subreddit
        self._reddit_url = reddit_url.rstrip("/")
        self._oauth_url = oauth_url.rstrip("/")

    @property
    def source(self) -> SourceKind:
        return SourceKind.REDDIT

    async def _fetch_raw(self, after: str | None) -> list[dict[str, Any]]:
        listing = await self._client.get_json(
            f"{self._oauth_url}/r/{self._subreddit}/{self.listing}.json",
            params={"before": f"{self.kind_prefix}_{after}" if after else None},
            authenticated=True,
        )
        return [child["data"] for child in listing["data"]["children"]]

    def _raw_id(self, raw: dict[str, Any]) -> str:
        return raw["id"]

    async def _common_fields(self, raw: dict[str, Any]) -> dict[str, Any]:
        author = raw["author"]
        return {
            "source": SourceKind.REDDIT,
            "url": urljoin(self._reddit_url, raw["permalink"]),
            "author_url": f"{self._reddit_url}/u/{author}",
            "time": datetime.fromtimestamp(raw["created_utc"], tz=timezone.utc),
            "author": author,
            "author_image": await self._avatars.get(author),
        }


class RedditPostsAdapter(RedditAdapter):
    """New submissions; each post opens its own topic."""

    cursor_field = "reddit_post_id"
    listing = "new"
    kind_prefix = "t3"

    async def _transform(self, raw: dict[str, Any]) -> Update:
        fullname = f"t3_{raw['id']}"
        thumbnail = raw.get("thumbnail") or ""
        selftext = raw.get("selftext") or ""

        return Update(
            **await self._common_fields(raw),
            id=fullname,
            topic_id=fullname,
            topic_title=unescape(raw["title"]),
            text=unescape(selftext) if selftext else None,
            html=unescape(raw.get("selftext_html")),
            link=raw.get("url_overridden_by_dest"),
            image=None if thumbnail in NO_THUMBNAIL or not thumbnail.startswith("http") else thumbnail,
        )


class RedditCommentsAdapter(RedditAdapter):
    """New comments; each lands in the topic of the post it belongs to."""

    cursor_field = "reddit_comment_id"
    listing = "comments"
    kind_prefix = "t1"

    async def _transform(self, raw: dict[str, Any]) -> Update:
        return Update(
            **await self._common_fields(raw),
            id=f"t1_{raw['id']}",
            topic_id=raw["link_id"],
            topic_title=unescape(raw["link_title"]),
            text=unescape(raw["body"]),
            html=unescape(raw.get("body_html")),
        )
