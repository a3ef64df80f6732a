"""Local content extraction into structured article documents.

Responsibilities:
- Load plain text, Markdown, HTML and PDF inputs.
- Convert each input into ordered `ContentItem` blocks with a title.
- Raise `ContentExtractionError` when an input yields no readable content.
"""

from __future__ import annotations

import re
from pathlib import Path

from bs4 import BeautifulSoup, Tag
from pypdf import PdfReader

from ..models.datatypes import ContentDocument, ContentItem

_BLOCK_BREAK = re.compile(r"\n\s*\n+")
_MARKDOWN_HEADING = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")
_MARKDOWN_BULLET = re.compile(r"^\s*[-*+]\s+(.*)$")
_MARKDOWN_NUMBERED = re.compile(r"^\s*\d+[.)]\s+(.*)$")
_MARKDOWN_IMAGE = re.compile(r"^!\[([^\]]*)\]\([^)]*\)$")
_HTML_NOISE_TAGS = ["script", "style", "nav", "footer", "header", "aside", "noscript", "form"]
_HTML_BLOCK_TAGS = [
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "p",
    "blockquote",
    "ul",
    "ol",
    "pre",
    "table",
    "figure",
    "img",
]
_HTML_CONTAINER_TAGS = ["blockquote", "ul", "ol", "pre", "table", "figure"]


class ContentExtractionError(RuntimeError):
    """Raised when an input file cannot be turned into article content."""


class ContentExtractor:
    """Dispatch local files to a format-specific extractor by suffix."""

    SUPPORTED_SUFFIXES = (".txt", ".md", ".markdown", ".html", ".htm", ".pdf")

    def extract(self, path: Path) -> ContentDocument:
        """Extract a structured document from `path`."""

        if not path.exists():
            raise ContentExtractionError(f"Input file not found: {path}")

        suffix = path.suffix.lower()
        if suffix == ".pdf":
            document = self.extract_pdf(path)
        elif suffix in (".html", ".htm"):
            document = self.extract_html(path.read_text(encoding="utf-8"), source=str(path))
        elif suffix in (".md", ".markdown"):
            document = self.extract_markdown(
                path.read_text(encoding="utf-8"), source=str(path), fallback_title=path.stem
            )
        elif suffix == ".txt":
            document = self.extract_plain_text(
                path.read_text(encoding="utf-8"), source=str(path), fallback_title=path.stem
            )
        else:
            supported = ", ".join(self.SUPPORTED_SUFFIXES)
            raise ContentExtractionError(
                f"Unsupported input type `{path.suffix}`; supported: {supported}."
            )

        if not document.items:
            raise ContentExtractionError(f"No readable content found in {path}.")
        return document

    def extract_plain_text(
        self, text: str, *, source: str = "", fallback_title: str = "Untitled"
    ) -> ContentDocument:
        """Treat blank-line separated blocks as paragraphs."""

        items = tuple(
            ContentItem(type="paragraph", text=" ".join(block.split()))
            for block in _BLOCK_BREAK.split(text)
            if block.strip()
        )
        return ContentDocument(title=fallback_title, items=items, source=source)

    def extract_markdown(
        self, text: str, *, source: str = "", fallback_title: str = "Untitled"
    ) -> ContentDocument:
        """Parse the Markdown block structure used by article exports.

        The first level-one heading becomes the title and is not repeated as an item.
        """

        title: str | None = None
        items: list[ContentItem] = []
        for block in _split_markdown_blocks(text):
            first_line = block.splitlines()[0]
            if block.startswith("```") or block.startswith("~~~"):
                code = "\n".join(block.splitlines()[1:-1])
                items.append(ContentItem(type="code", text=code))
                continue

            heading = _MARKDOWN_HEADING.match(first_line)
            if heading and len(block.splitlines()) == 1:
                level = len(heading.group(1))
                if level == 1 and title is None:
                    title = heading.group(2)
                else:
                    items.append(ContentItem(type="heading", text=heading.group(2), level=level))
                continue

            lines = block.splitlines()
            if all(line.lstrip().startswith(">") for line in lines):
                quote = " ".join(line.lstrip()[1:].strip() for line in lines)
                items.append(ContentItem(type="quote", text=quote))
                continue

            if all(_MARKDOWN_BULLET.match(line) for line in lines):
                entries = tuple(_MARKDOWN_BULLET.match(line).group(1) for line in lines)  # type: ignore[union-attr]
                items.append(ContentItem(type="list", items=entries))
                continue

            if all(_MARKDOWN_NUMBERED.match(line) for line in lines):
                entries = tuple(_MARKDOWN_NUMBERED.match(line).group(1) for line in lines)  # type: ignore[union-attr]
                items.append(ContentItem(type="list", items=entries, ordered=True))
                continue

            if all(line.lstrip().startswith("|") for line in lines):
                items.append(ContentItem(type="table", text=block))
                continue

            image = _MARKDOWN_IMAGE.match(block.strip())
            if image:
                items.append(ContentItem(type="image", caption=image.group(1) or None))
                continue

            items.append(ContentItem(type="paragraph", text=" ".join(block.split())))

        return ContentDocument(title=title or fallback_title, items=tuple(items), source=source)

    def extract_html(self, markup: str, *, source: str = "") -> ContentDocument:
        """Extract article blocks from the main content region of a page."""

        soup = BeautifulSoup(markup, "html.parser")
        for element in soup.find_all(_HTML_NOISE_TAGS):
            element.decompose()

        title_tag = soup.find("title")
        h1_tag = soup.find("h1")
        title = (
            title_tag.get_text(strip=True) if title_tag else
            h1_tag.get_text(strip=True) if h1_tag else
            ""
        )
        html_tag = soup.find("html")
        language = html_tag.get("lang") if isinstance(html_tag, Tag) else None

        root = soup.find("article") or soup.find("main") or soup.find("body") or soup
        items: list[ContentItem] = []
        for element in root.find_all(_HTML_BLOCK_TAGS):
            if element.find_parent(_HTML_CONTAINER_TAGS) is not None:
                continue
            item = _html_element_to_item(element)
            if item is None:
                continue
            if item.type == "heading" and item.level == 1 and item.text == title:
                continue
            items.append(item)

        return ContentDocument(
            title=title or "Untitled",
            items=tuple(items),
            source=source,
            language=str(language) if language else None,
        )

    def extract_pdf(self, path: Path) -> ContentDocument:
        """Extract page text with `pypdf`; each page contributes paragraphs."""

        try:
            reader = PdfReader(str(path))
        except Exception as exc:
            raise ContentExtractionError(f"Failed to open PDF {path}: {exc}") from exc

        items: list[ContentItem] = []
        for page in reader.pages:
            page_text = (page.extract_text() or "").replace("\f", "\n")
            for block in _BLOCK_BREAK.split(page_text):
                paragraph = " ".join(block.split())
                if paragraph:
                    items.append(ContentItem(type="paragraph", text=paragraph))

        metadata = reader.metadata
        title = metadata.title if metadata is not None and metadata.title else path.stem
        return ContentDocument(title=str(title), items=tuple(items), source=str(path))


def _split_markdown_blocks(text: str) -> list[str]:
    """Split Markdown into blocks, keeping fenced code blocks intact."""

    blocks: list[str] = []
    current: list[str] = []
    fence: str | None = None
    for line in text.splitlines():
        stripped = line.strip()
        if fence is not None:
            current.append(line)
            if stripped.startswith(fence):
                blocks.append("\n".join(current))
                current = []
                fence = None
            continue
        if stripped.startswith("```") or stripped.startswith("~~~"):
            if current:
                blocks.append("\n".join(current))
            current = [stripped]
            fence = stripped[:3]
            continue
        if not stripped:
            if current:
                blocks.append("\n".join(current))
                current = []
            continue
        if _MARKDOWN_HEADING.match(stripped) and current:
            blocks.append("\n".join(current))
            current = []
        current.append(line.rstrip())
        if _MARKDOWN_HEADING.match(stripped):
            blocks.append("\n".join(current))
            current = []
    if current:
        blocks.append("\n".join(current))
    return blocks


def _html_element_to_item(element: Tag) -> ContentItem | None:
    """Map one HTML block element to a content item."""

    name = element.name
    if name in ("h1", "h2", "h3", "h4", "h5", "h6"):
        text = element.get_text(" ", strip=True)
        return ContentItem(type="heading", text=text, level=int(name[1])) if text else None
    if name == "p":
        text = element.get_text(" ", strip=True)
        return ContentItem(type="paragraph", text=text) if text else None
    if name == "blockquote":
        text = element.get_text(" ", strip=True)
        return ContentItem(type="quote", text=text) if text else None
    if name in ("ul", "ol"):
        entries = tuple(
            entry.get_text(" ", strip=True)
            for entry in element.find_all("li", recursive=False)
            if entry.get_text(strip=True)
        )
        return ContentItem(type="list", items=entries, ordered=name == "ol") if entries else None
    if name == "pre":
        return ContentItem(type="code", text=element.get_text())
    if name == "table":
        return ContentItem(type="table", text=element.get_text(" ", strip=True))
    if name == "figure":
        caption_tag = element.find("figcaption")
        image_tag = element.find("img")
        caption = caption_tag.get_text(" ", strip=True) if caption_tag else None
        if not caption and isinstance(image_tag, Tag):
            caption = str(image_tag.get("alt") or "").strip() or None
        return ContentItem(type="image", caption=caption)
    if name == "img":
        alt = str(element.get("alt") or "").strip()
        return ContentItem(type="image", caption=alt or None)
    return None
