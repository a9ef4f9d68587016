"""Rendering of updates into paginated forum blocks."""

from forum_relay.rendering.renderer import RenderedBlock, Renderer, author_color, author_hash

__all__ = ["RenderedBlock", "Renderer", "author_color", "author_hash"]
