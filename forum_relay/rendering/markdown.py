"""
HTML to lightweight markdown conversion.

Covers the markup produced by Reddit's selftext_html/body_html and simple
forum HTML: headings (ATX style), paragraphs, emphasis, links, lists,
blockquotes and fenced code blocks. Text is never escaped, and whitespace
inside text nodes is kept as-is so markdown passed through verbatim keeps
its line structure.
"""

import re

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

BLOCK_TAGS = {"p", "div", "section", "article", "table", "tr", "figure"}
HEADING_TAGS = {"h1": 1, "h2": 2, "h3": 3, "h4": 4, "h5": 5, "h6": 6}

_EXCESS_NEWLINES = re.compile(r"\n{3,}")


def html_to_markdown(html: str) -> str:
    """
    Convert an HTML fragment to markdown.

    Args:
        html: HTML source

    Returns:
        Markdown text with surrounding whitespace trimmed
    """
    soup = BeautifulSoup(html, "html.parser")
    text = _render_children(soup)
    return _EXCESS_NEWLINES.sub("\n\n", text).strip()


def _render_children(node: Tag) -> str:
    return "".join(_render(child) for child in node.children)


def _block(content: str) -> str:
    return f"\n\n{content.strip()}\n\n" if content.strip() else ""


def _fence_language(pre: Tag) -> str:
    code = pre.find("code")
    if not isinstance(code, Tag):
        return ""
    for cls in code.get("class") or []:
        if cls.startswith("language-"):
            return cls[len("language-"):]
        if cls.startswith("lang-"):
            return cls[len("lang-"):]
    return ""


def _render(node) -> str:
    if isinstance(node, Comment):
        return ""
    if isinstance(node, NavigableString):
        return str(node)
    if not isinstance(node, Tag):
        return ""

    name = node.name

    if name in HEADING_TAGS:
        title = " ".join(_render_children(node).split())
        return _block(f"{'#' * HEADING_TAGS[name]} {title}") if title else ""

    if name == "pre":
        code = node.get_text().strip("\n")
        return f"\n\n```{_fence_language(node)}\n{code}\n```\n\n"

    if name == "code":
        return f"`{node.get_text()}`"

    if name in ("strong", "b"):
        inner = _render_children(node)
        return f"**{inner}**" if inner.strip() else inner

    if name in ("em", "i"):
        inner = _render_children(node)
        return f"_{inner}_" if inner.strip() else inner

    if name in ("del", "s", "strike"):
        return f"~~{_render_children(node)}~~"

    if name == "a":
        inner = _render_children(node)
        href = node.get("href")
        if not href:
            return inner
        return f"[{inner or href}]({href})"

    if name == "img":
        src = node.get("src")
        return f"![{node.get('alt', '')}]({src})" if src else ""

    if name == "br":
        return "\n"

    if name == "hr":
        return "\n\n---\n\n"

    if name in ("ul", "ol"):
        items = []
        for index, li in enumerate(node.find_all("li", recursive=False), start=1):
            marker = f"{index}." if name == "ol" else "-"
            body = _EXCESS_NEWLINES.sub("\n\n", _render_children(li)).strip()
            body = body.replace("\n", "\n" + " " * (len(marker) + 1))
            items.append(f"{marker} {body}")
        return _block("\n".join(items))

    if name == "blockquote":
        inner = _EXCESS_NEWLINES.sub("\n\n", _render_children(node)).strip()
        return _block("\n".join(f"> {line}" if line else ">" for line in inner.split("\n")))

    if name in BLOCK_TAGS:
        return _block(_render_children(node))

    if name in ("script", "style"):
        return ""

    return _render_children(node)
