"""
Discourse adapter for a forum's latest posts.

The latest-posts endpoint is public and has no cursor parameter, so posts
are filtered client-side to ids greater than the last one seen.
"""

import logging
from datetime import datetime
from typing import Any
from urllib.parse import urljoin

from forum_relay.ingestion.base_adapter import BaseAdapter, unescape
from forum_relay.ingestion.http_client import SourceClient
from forum_relay.ingestion.schemas import SourceKind, Update

logger = logging.getLogger(__name__)

AVATAR_SIZE = "128"


class DiscourseAdapter(BaseAdapter):
    """
    Discourse latest posts feed.

    Content Handling:
        - raw (the post's markdown source) is rendered as the body
        - excerpt is the plain-text fallback
        - display name falls back to the username
    """

    cursor_field = "discourse_post_id"

    def __init__(self, client: SourceClient, forum_url: str):
        self._client = client
        self._forum_url = forum_url.rstrip("/") + "/"

    @property
    def source(self) -> SourceKind:
        return SourceKind.DISCOURSE

    async def _fetch_raw(self, after: int | None) -> list[dict[str, Any]]:
        data = await self._client.get_json(urljoin(self._forum_url, "posts.json"))
        posts = data["latest_posts"]
        if after is not None:
            posts = [p for p in posts if p["id"] > after]
        return sorted(posts, key=lambda p: p["id"], reverse=True)

    def _raw_id(self, raw: dict[str, Any]) -> int:
        return raw["id"]

    async def _transform(self, raw: dict[str, Any]) -> Update:
        username = raw["username"]
        return Update(
            source=SourceKind.DISCOURSE,
            id=str(raw["id"]),
            topic_id=str(raw["topic_id"]),
            topic_title=unescape(raw["topic_title"]),
            url=urljoin(self._forum_url, raw["post_url"]),
            time=datetime.fromisoformat(raw["created_at"].replace("Z", "+00:00")),
            author=raw.get("name") or username,
            author_url=urljoin(self._forum_url, f"/u/{username}"),
            author_image=urljoin(
                self._forum_url,
                raw["avatar_template"].replace("{size}", AVATAR_SIZE),
            ),
            text=unescape(raw.get("excerpt")),
            html=raw.get("raw"),
        )
