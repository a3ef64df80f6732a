"""Unit tests for local content extraction and plain-text rendering."""

from __future__ import annotations

from pathlib import Path

import pytest

from clipvoice.io.extractors import ContentExtractionError, ContentExtractor
from clipvoice.models.datatypes import ContentDocument, ContentItem
from clipvoice.text.content import content_to_plain_text, render_item, strip_html
from clipvoice.text.slug import slugify_title

_MARKDOWN_ARTICLE = """# Field Notes

Intro paragraph that
wraps across lines.

## Findings

> Quoted insight.

- first point
- second point

1. step one
2. step two

```python
print("skip me")
```

| a | b |
| - | - |

![A chart of results](chart.png)
"""

_HTML_ARTICLE = """<!doctype html>
<html lang="de">
<head><title>Bericht</title><style>p { color: red; }</style></head>
<body>
<nav><p>Menu entry</p></nav>
<article>
<h1>Bericht</h1>
<p>Erster <b>Absatz</b>.</p>
<h2>Abschnitt</h2>
<ul><li>Eins</li><li><p>Zwei</p></li></ul>
<figure><img src="x.png" alt="Diagramm"><figcaption>Abbildung 1</figcaption></figure>
<script>alert("x")</script>
</article>
<footer><p>Footer text</p></footer>
</body>
</html>
"""


def test_markdown_blocks_map_to_content_items() -> None:
    """Markdown structure should become typed content items with the title lifted."""

    document = ContentExtractor().extract_markdown(_MARKDOWN_ARTICLE, source="notes.md")

    assert document.title == "Field Notes"
    assert [item.type for item in document.items] == [
        "paragraph",
        "heading",
        "quote",
        "list",
        "list",
        "code",
        "table",
        "image",
    ]
    assert document.items[0].text == "Intro paragraph that wraps across lines."
    assert document.items[1] == ContentItem(type="heading", text="Findings", level=2)
    assert document.items[3].items == ("first point", "second point")
    assert document.items[4].ordered is True
    assert document.items[5].text == 'print("skip me")'
    assert document.items[7].caption == "A chart of results"


def test_html_extraction_uses_article_region_and_drops_noise() -> None:
    """HTML extraction should skip navigation, scripts and nested block duplicates."""

    document = ContentExtractor().extract_html(_HTML_ARTICLE, source="page.html")

    assert document.title == "Bericht"
    assert document.language == "de"
    assert [item.type for item in document.items] == ["paragraph", "heading", "list", "image"]
    assert document.items[0].text == "Erster Absatz ."
    assert document.items[2].items == ("Eins", "Zwei")
    assert document.items[3].caption == "Abbildung 1"


def test_plain_text_blocks_become_paragraphs(tmp_path: Path) -> None:
    """Plain text files should use the file stem as title."""

    path = tmp_path / "my-article.txt"
    path.write_text("First block\ncontinues.\n\n\nSecond block.\n", encoding="utf-8")

    document = ContentExtractor().extract(path)

    assert document.title == "my-article"
    assert [item.text for item in document.items] == ["First block continues.", "Second block."]
    assert document.source == str(path)


def test_extract_rejects_missing_unsupported_and_empty_inputs(tmp_path: Path) -> None:
    """Unreadable inputs should raise a content extraction error."""

    extractor = ContentExtractor()
    unsupported = tmp_path / "data.csv"
    unsupported.write_text("a,b", encoding="utf-8")
    empty = tmp_path / "empty.txt"
    empty.write_text("  \n\n ", encoding="utf-8")

    with pytest.raises(ContentExtractionError, match="not found"):
        extractor.extract(tmp_path / "missing.txt")
    with pytest.raises(ContentExtractionError, match="Unsupported input type"):
        extractor.extract(unsupported)
    with pytest.raises(ContentExtractionError, match="No readable content"):
        extractor.extract(empty)


def test_plain_text_rendering_drops_unspoken_blocks() -> None:
    """Code and tables should be dropped; lists, quotes and captions spoken."""

    document = ContentDocument(
        title="Title",
        items=(
            ContentItem(type="heading", text="Intro", level=2),
            ContentItem(type="paragraph", text="Hello <em>world</em>&nbsp;!"),
            ContentItem(type="code", text="x = 1"),
            ContentItem(type="table", text="| a |"),
            ContentItem(type="quote", text="Be brief."),
            ContentItem(type="list", items=("one", "two"), ordered=True),
            ContentItem(type="list", items=("dot",)),
            ContentItem(type="image", caption="A photo"),
            ContentItem(type="image"),
        ),
    )

    text = content_to_plain_text(document)

    assert text == (
        "Title\n\nIntro\n\nHello world !\n\nQuote: Be brief.\n\n"
        "1. one\n2. two\n\n• dot\n\nImage: A photo"
    )
    assert "x = 1" not in text
    assert render_item(ContentItem(type="code", text="x")) is None


def test_strip_html_collapses_whitespace() -> None:
    """Markup should be removed and whitespace collapsed."""

    assert strip_html("<p>One\n  <b>two</b></p>") == "One two"
    assert strip_html("plain   text") == "plain text"
    assert strip_html("") == ""


@pytest.mark.parametrize(
    ("title", "expected"),
    [
        ("Hello, World!", "hello-world"),
        ("Café déjà vu", "cafe-deja-vu"),
        ("Привет", "article"),
        ("  ", "article"),
    ],
)
def test_slugify_title(title: str, expected: str) -> None:
    """Titles should produce stable ASCII slugs with a fallback."""

    assert slugify_title(title) == expected


def test_slugify_title_caps_length() -> None:
    """Slugs should stay within the portable length bound."""

    assert len(slugify_title("word " * 100)) <= 80


class _FakePdfPage:
    """Minimal pypdf page double."""

    def __init__(self, text: str) -> None:
        """Initialize page text."""

        self._text = text

    def extract_text(self) -> str:
        """Return the page text."""

        return self._text


class _FakePdfMetadata:
    """Minimal pypdf metadata double."""

    title = "Quarterly Report"


class _FakePdfReader:
    """Minimal pypdf reader double with two pages."""

    def __init__(self, path: str) -> None:
        """Initialize pages for any path."""

        _ = path
        self.pages = [
            _FakePdfPage("First page line\ncontinues.\n\nSecond block."),
            _FakePdfPage("\fLast page."),
        ]
        self.metadata = _FakePdfMetadata()


def test_pdf_pages_become_paragraphs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """PDF page blocks should become paragraphs titled from document metadata."""

    path = tmp_path / "report.pdf"
    path.write_bytes(b"%PDF-1.4 placeholder")
    monkeypatch.setattr("clipvoice.io.extractors.PdfReader", _FakePdfReader)

    document = ContentExtractor().extract(path)

    assert document.title == "Quarterly Report"
    assert [item.text for item in document.items] == [
        "First page line continues.",
        "Second block.",
        "Last page.",
    ]


def test_unreadable_pdf_raises_extraction_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reader failures should be wrapped in a content extraction error."""

    def _broken_reader(_path: str) -> None:
        """Simulate a corrupt PDF."""

        raise ValueError("EOF marker not found")

    path = tmp_path / "broken.pdf"
    path.write_bytes(b"not a pdf")
    monkeypatch.setattr("clipvoice.io.extractors.PdfReader", _broken_reader)

    with pytest.raises(ContentExtractionError, match="Failed to open PDF"):
        ContentExtractor().extract(path)
