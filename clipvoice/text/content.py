"""Structured content to narration-ready plain text.

Responsibilities:
- Render extracted content blocks into plain text with paragraph breaks.
- Drop blocks that cannot be read aloud (code, tables).
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from ..models.datatypes import ContentDocument, ContentItem

_WHITESPACE = re.compile(r"\s+")


def strip_html(markup: str) -> str:
    """Return visible text of an HTML fragment with whitespace collapsed."""

    if not markup:
        return ""
    if "<" not in markup and "&" not in markup:
        return _WHITESPACE.sub(" ", markup).strip()
    text = BeautifulSoup(markup, "html.parser").get_text(" ")
    return _WHITESPACE.sub(" ", text.replace("\xa0", " ")).strip()


def render_item(item: ContentItem) -> str | None:
    """Render one content block, or `None` when it has no spoken form."""

    if item.type == "heading":
        heading = strip_html(item.text)
        return f"\n\n{heading}\n" if heading else None
    if item.type == "paragraph":
        return strip_html(item.text) or None
    if item.type == "quote":
        quote = strip_html(item.text)
        return f"Quote: {quote}" if quote else None
    if item.type == "list":
        entries = [strip_html(entry) for entry in item.items]
        lines = [
            f"{position}. {entry}" if item.ordered else f"• {entry}"
            for position, entry in enumerate(entries, start=1)
            if entry
        ]
        return "\n".join(lines) or None
    if item.type == "image":
        caption = strip_html(item.caption or "")
        return f"Image: {caption}" if caption else None
    return None


def content_to_plain_text(document: ContentDocument, *, include_title: bool = True) -> str:
    """Render a document into plain text with blank lines between blocks."""

    parts: list[str] = []
    title = strip_html(document.title)
    if include_title and title:
        parts.append(title)
    for item in document.items:
        rendered = render_item(item)
        if rendered:
            parts.append(rendered)
    text = "\n\n".join(parts)
    return re.sub(r"\n{3,}", "\n\n", text).strip()
