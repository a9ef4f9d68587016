"""Tests for the Reddit and Discourse feed adapters."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from forum_relay.ingestion.discourse_adapter import DiscourseAdapter
from forum_relay.ingestion.reddit_adapter import (
    RedditAvatars,
    RedditCommentsAdapter,
    RedditPostsAdapter,
)
from forum_relay.ingestion.schemas import PollCursor, SourceKind

OAUTH = "https://oauth.reddit.com"


def listing(*items: dict) -> dict:
    return {"data": {"children": [{"kind": "t3", "data": item} for item in items]}}


def reddit_post(post_id: str, **overrides) -> dict:
    post = {
        "id": post_id,
        "title": "Tom &amp; Jerry in F#",
        "selftext": "Some &lt;text&gt;",
        "selftext_html": "&lt;div class=\"md\"&gt;&lt;p&gt;Some text&lt;/p&gt;&lt;/div&gt;",
        "url": f"https://www.reddit.com/r/fsharp/comments/{post_id}/",
        "permalink": f"/r/fsharp/comments/{post_id}/tom_jerry/",
        "author": "dsyme",
        "thumbnail": "self",
        "created_utc": 1_700_000_000,
    }
    post.update(overrides)
    return post


def reddit_comment(comment_id: str, **overrides) -> dict:
    comment = {
        "id": comment_id,
        "link_title": "Computation expressions &amp; you",
        "link_id": "t3_parent",
        "body": "Use `let!` &gt; callbacks",
        "body_html": "&lt;div class=\"md\"&gt;&lt;p&gt;Use &lt;code&gt;let!&lt;/code&gt;&lt;/p&gt;&lt;/div&gt;",
        "author": "[deleted]",
        "permalink": f"/r/fsharp/comments/parent/x/{comment_id}/",
        "created_utc": 1_700_000_100,
    }
    comment.update(overrides)
    return comment


class FakeRedditClient:
    """SourceClient stand-in that routes get_json calls by URL."""

    def __init__(self, listings: dict[str, dict], icons: dict[str, str] | None = None):
        self.listings = listings
        self.icons = icons or {}
        self.calls: list[tuple[str, dict | None]] = []

    async def get_json(self, url, params=None, authenticated=False):
        assert authenticated
        self.calls.append((url, params))
        if url.endswith("/about.json"):
            author = url.split("/u/")[1].split("/")[0]
            return {"data": {"icon_img": self.icons.get(author, "")}}
        return self.listings[url]


@pytest.fixture
def reddit_client():
    return FakeRedditClient(
        listings={
            f"{OAUTH}/r/fsharp/new.json": listing(reddit_post("p2"), reddit_post("p1")),
            f"{OAUTH}/r/fsharp/comments.json": listing(reddit_comment("c1")),
        },
        icons={"dsyme": "https://styles.redditmedia.com/a.png?width=256&amp;s=abc"},
    )


def make_reddit_adapters(client, state):
    avatars = RedditAvatars(client, state, OAUTH)
    kwargs = dict(subreddit="fsharp", reddit_url="https://www.reddit.com", oauth_url=OAUTH)
    return (
        RedditPostsAdapter(client, avatars, **kwargs),
        RedditCommentsAdapter(client, avatars, **kwargs),
    )


class TestRedditPostsAdapter:
    """Tests for RedditPostsAdapter."""

    @pytest.mark.asyncio
    async def test_normalizes_posts(self, reddit_client, state):
        posts, _ = make_reddit_adapters(reddit_client, state)

        result = await posts.fetch(PollCursor())

        assert [u.id for u in result.updates] == ["t3_p2", "t3_p1"]
        update = result.updates[0]
        assert update.source is SourceKind.REDDIT
        assert update.topic_id == "t3_p2"
        assert update.topic_title == "Tom & Jerry in F#"
        assert update.text == "Some <text>"
        assert update.html == '<div class="md"><p>Some text</p></div>'
        assert update.url == "https://www.reddit.com/r/fsharp/comments/p2/tom_jerry/"
        assert update.author_url == "https://www.reddit.com/u/dsyme"
        assert update.author_image == "https://styles.redditmedia.com/a.png?width=256&s=abc"
        assert update.time == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)
        assert update.image is None
        assert update.link is None

    @pytest.mark.asyncio
    async def test_newest_id_is_first_listing_item(self, reddit_client, state):
        posts, _ = make_reddit_adapters(reddit_client, state)

        result = await posts.fetch(PollCursor())

        assert result.newest_id == "p2"

    @pytest.mark.asyncio
    async def test_before_cursor_sent(self, reddit_client, state):
        posts, _ = make_reddit_adapters(reddit_client, state)

        await posts.fetch(PollCursor(reddit_post_id="p0"))

        assert reddit_client.calls[0] == (
            f"{OAUTH}/r/fsharp/new.json", {"before": "t3_p0"},
        )

    @pytest.mark.asyncio
    async def test_no_cursor_sends_no_before(self, reddit_client, state):
        posts, _ = make_reddit_adapters(reddit_client, state)

        await posts.fetch(PollCursor())

        assert reddit_client.calls[0][1] == {"before": None}

    @pytest.mark.asyncio
    async def test_thumbnail_and_external_link(self, reddit_client, state):
        reddit_client.listings[f"{OAUTH}/r/fsharp/new.json"] = listing(
            reddit_post(
                "p3",
                thumbnail="https://b.thumbs.redditmedia.com/x.jpg",
                url_overridden_by_dest="https://fsharp.org/",
                selftext="",
                selftext_html=None,
            ),
            reddit_post("p4", thumbnail="default"),
        )
        posts, _ = make_reddit_adapters(reddit_client, state)

        result = await posts.fetch(PollCursor())

        linked, sentinel = result.updates
        assert linked.image == "https://b.thumbs.redditmedia.com/x.jpg"
        assert linked.link == "https://fsharp.org/"
        assert linked.text is None
        assert linked.html is None
        assert sentinel.image is None

    @pytest.mark.asyncio
    async def test_empty_listing(self, reddit_client, state):
        reddit_client.listings[f"{OAUTH}/r/fsharp/new.json"] = listing()
        posts, _ = make_reddit_adapters(reddit_client, state)

        result = await posts.fetch(PollCursor(reddit_post_id="p9"))

        assert result.updates == []
        assert result.newest_id is None


class TestRedditCommentsAdapter:
    """Tests for RedditCommentsAdapter."""

    @pytest.mark.asyncio
    async def test_normalizes_comments(self, reddit_client, state):
        _, comments = make_reddit_adapters(reddit_client, state)

        result = await comments.fetch(PollCursor(reddit_comment_id="c0"))

        update = result.updates[0]
        assert update.id == "t1_c1"
        assert update.topic_id == "t3_parent"
        assert update.topic_title == "Computation expressions & you"
        assert update.text == "Use `let!` > callbacks"
        assert update.html == '<div class="md"><p>Use <code>let!</code></p></div>'
        assert reddit_client.calls[0][1] == {"before": "t1_c0"}

    @pytest.mark.asyncio
    async def test_deleted_author_has_no_avatar(self, reddit_client, state):
        _, comments = make_reddit_adapters(reddit_client, state)

        result = await comments.fetch(PollCursor())

        assert result.updates[0].author_image is None
        assert not any(url.endswith("about.json") for url, _ in reddit_client.calls)


class TestRedditAvatars:
    """Tests for the persistent avatar cache."""

    @pytest.mark.asyncio
    async def test_lookup_cached_persistently(self, reddit_client, state):
        avatars = RedditAvatars(reddit_client, state, OAUTH)

        first = await avatars.get("dsyme")
        second = await RedditAvatars(reddit_client, state, OAUTH).get("dsyme")

        about_calls = [url for url, _ in reddit_client.calls if url.endswith("about.json")]
        assert first == second
        assert about_calls == [f"{OAUTH}/u/dsyme/about.json"]
        assert await state.get_avatar("dsyme") == first

    @pytest.mark.asyncio
    async def test_concurrent_posts_by_one_author_share_lookup(self, reddit_client, state):
        posts, _ = make_reddit_adapters(reddit_client, state)

        await posts.fetch(PollCursor())

        about_calls = [url for url, _ in reddit_client.calls if url.endswith("about.json")]
        assert len(about_calls) == 1


def discourse_post(post_id: int, **overrides) -> dict:
    post = {
        "id": post_id,
        "topic_id": 77,
        "topic_title": "Fable 5 released",
        "created_at": "2025-03-01T12:00:00.000Z",
        "raw": "Release notes:\n\n* faster",
        "excerpt": "Release notes: &hellip;",
        "post_url": f"/t/fable-5-released/77/{post_id}",
        "name": "Alfonso",
        "username": "alfonsogarciacaro",
        "avatar_template": "/user_avatar/forums.fsharp.org/alfonso/{size}/1.png",
    }
    post.update(overrides)
    return post


@pytest.fixture
def discourse_client():
    client = AsyncMock()
    client.get_json = AsyncMock(return_value={
        "latest_posts": [discourse_post(12), discourse_post(11), discourse_post(10, name="")],
    })
    return client


class TestDiscourseAdapter:
    """Tests for DiscourseAdapter."""

    @pytest.mark.asyncio
    async def test_normalizes_posts(self, discourse_client):
        adapter = DiscourseAdapter(discourse_client, "https://forums.fsharp.org")

        result = await adapter.fetch(PollCursor())

        update = result.updates[0]
        assert update.source is SourceKind.DISCOURSE
        assert update.id == "12"
        assert update.topic_id == "77"
        assert update.url == "https://forums.fsharp.org/t/fable-5-released/77/12"
        assert update.author == "Alfonso"
        assert update.author_url == "https://forums.fsharp.org/u/alfonsogarciacaro"
        assert update.author_image == (
            "https://forums.fsharp.org/user_avatar/forums.fsharp.org/alfonso/128/1.png"
        )
        assert update.time == datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert update.html == "Release notes:\n\n* faster"
        assert update.text == "Release notes: …"
        discourse_client.get_json.assert_awaited_once_with("https://forums.fsharp.org/posts.json")

    @pytest.mark.asyncio
    async def test_filters_by_cursor(self, discourse_client):
        adapter = DiscourseAdapter(discourse_client, "https://forums.fsharp.org")

        result = await adapter.fetch(PollCursor(discourse_post_id=11))

        assert [u.id for u in result.updates] == ["12"]
        assert result.newest_id == 12

    @pytest.mark.asyncio
    async def test_nothing_new(self, discourse_client):
        adapter = DiscourseAdapter(discourse_client, "https://forums.fsharp.org")

        result = await adapter.fetch(PollCursor(discourse_post_id=12))

        assert result.updates == []
        assert result.newest_id is None

    @pytest.mark.asyncio
    async def test_display_name_falls_back_to_username(self, discourse_client):
        adapter = DiscourseAdapter(discourse_client, "https://forums.fsharp.org")

        result = await adapter.fetch(PollCursor())

        assert result.updates[-1].author == "alfonsogarciacaro"
