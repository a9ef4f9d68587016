"""
Renders Updates into size-bounded forum blocks.

An update's text (attribution line + body) is capped at MAX_TEXT_LENGTH and
split into BLOCK_LENGTH-sized pages. Every page but the last ends in an
ellipsis; all pages of one update share its color, author and timestamp.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from forum_relay.ingestion.schemas import Update
from forum_relay.rendering.markdown import html_to_markdown

logger = logging.getLogger(__name__)

BLOCK_LENGTH = 4096
MAX_BLOCKS = 5
MAX_TEXT_LENGTH = BLOCK_LENGTH * MAX_BLOCKS
TITLE_LENGTH = 256
ELLIPSIS = "..."
CONTINUATION_PREFIX = "(Cont.) "

USER_COLORS = (
    "#b366ff", "#ff6666", "#66b3ff", "#ffcc66",
    "#66ffb3", "#ff66b3", "#b3ff66", "#66ffcc",
    "#cc66ff", "#66b3cc",
)

HASH_MODULUS = 13
HASH_SEED = 7


def abbreviate(text: str, length: int) -> str:
    """Truncate text to `length` characters, ending in an ellipsis when cut."""
    if len(text) > length:
        return text[: length - len(ELLIPSIS)] + ELLIPSIS
    return text


def author_hash(value: str) -> int:
    """
    Small positional hash of a string, in [0, 13).

    For each character: multiplier doubles, then
    acc = (ord(ch) * multiplier + acc) mod 13, starting from acc = 7.
    """
    acc, multiplier = HASH_SEED, 1
    for ch in value:
        multiplier *= 2
        acc = (ord(ch) * multiplier + acc) % HASH_MODULUS
    return acc


def author_color(author_url: str) -> str:
    """Palette color for an author, stable across runs."""
    return USER_COLORS[author_hash(author_url) % len(USER_COLORS)]


def paginate(text: str) -> list[str]:
    """
    Split text into pages of at most BLOCK_LENGTH characters.

    Non-final pages carry BLOCK_LENGTH - 3 characters of text plus "...".
    """
    step = BLOCK_LENGTH - len(ELLIPSIS)
    pages = []
    for start in range(0, len(text), step):
        if start + BLOCK_LENGTH >= len(text):
            pages.append(text[start:])
            break
        pages.append(text[start:start + step] + ELLIPSIS)
    return pages


@dataclass(frozen=True)
class RenderedBlock:
    """One page of a rendered update."""

    title: str
    description: str
    color: str
    author_name: str
    author_url: str
    author_icon_url: str | None
    timestamp: datetime
    url: str | None = None
    image_url: str | None = None

    @property
    def color_value(self) -> int:
        return int(self.color.lstrip("#"), 16)

    def to_embed(self) -> dict[str, Any]:
        """Discord embed payload for this block."""
        author: dict[str, Any] = {"name": self.author_name, "url": self.author_url}
        if self.author_icon_url:
            author["icon_url"] = self.author_icon_url

        embed: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "color": self.color_value,
            "author": author,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.url:
            embed["url"] = self.url
        if self.image_url:
            embed["image"] = {"url": self.image_url}
        return embed


class Renderer:
    """Turns Updates into RenderedBlocks."""

    def body_text(self, update: Update) -> str:
        """
        Body of an update as markdown.

        HTML wins over plain text; if HTML conversion fails the plain text
        is used instead.
        """
        body = update.text or ""
        if update.html is not None:
            try:
                body = html_to_markdown(update.html)
            except Exception as e:
                logger.warning(f"Failed to convert HTML to markdown: {update.url}: {e}")
        return body

    def full_text(self, update: Update) -> str:
        """Attribution line plus body, trimmed and capped."""
        text = (
            f"**(from [{update.source.label}]({update.url}))**\n\n"
            f"{self.body_text(update)}"
        ).strip()
        return abbreviate(text, MAX_TEXT_LENGTH)

    def render(self, update: Update) -> list[RenderedBlock]:
        """Render an update into one or more blocks."""
        color = author_color(update.author_url)
        blocks = []
        for index, page in enumerate(paginate(self.full_text(update))):
            prefix = CONTINUATION_PREFIX if index > 0 else ""
            blocks.append(RenderedBlock(
                title=abbreviate(f"{prefix}{update.topic_title}", TITLE_LENGTH),
                description=page,
                color=color,
                author_name=update.author,
                author_url=update.author_url,
                author_icon_url=update.author_image,
                timestamp=update.time,
                url=update.link,
                image_url=update.image,
            ))
        return blocks
