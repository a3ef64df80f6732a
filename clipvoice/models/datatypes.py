"""Core datatypes shared across Clipvoice modules.

Responsibilities:
- Represent immutable records exchanged between pipeline stages.
- Provide explicit typing for reproducibility and serialization.

Key types:
- `ContentItem`, `ContentDocument`, `TextChunk`, `SpeechOptions`,
  `Credentials`, and `JobResult`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

ContentItemType = Literal["heading", "paragraph", "quote", "list", "code", "table", "image"]
OutputFormat = Literal["audio", "text"]


@dataclass(frozen=True, slots=True)
class ContentItem:
    """One structural block of extracted article content.

    Attributes:
        type: Block kind used to choose a plain-text rendering.
        text: Block text, possibly still carrying inline HTML markup.
        level: Heading level for `heading` items.
        items: Entries for `list` items.
        ordered: Whether a `list` item is numbered.
        caption: Caption for `image` items.
    """

    type: ContentItemType
    text: str = ""
    level: int | None = None
    items: tuple[str, ...] = ()
    ordered: bool = False
    caption: str | None = None


@dataclass(frozen=True, slots=True)
class ContentDocument:
    """Extracted article with title and ordered content blocks."""

    title: str
    items: tuple[ContentItem, ...]
    source: str = ""
    language: str | None = None


@dataclass(frozen=True, slots=True)
class TextChunk:
    """A bounded text slice queued for independent conversion.

    Attributes:
        text: Chunk text content.
        index: 0-based position produced by the segmenter.
        sub_index: 0-based position within a provider-limit split, or `None`
            when the chunk was not subdivided.
    """

    text: str
    index: int
    sub_index: int | None = None

    def sort_key(self) -> tuple[int, int]:
        """Return the strict dispatch ordering key."""

        return self.index, -1 if self.sub_index is None else self.sub_index


@dataclass(frozen=True, slots=True)
class SpeechOptions:
    """Per-job speech synthesis options.

    Attributes:
        provider: Tag selecting the speech provider variant.
        voice: Provider voice identifier.
        speed: Speaking rate multiplier, clamped by the provider variant.
        format: Requested audio container (`wav`, `mp3`, ...).
        model: Provider model identifier.
        language: Language code of the narrated text.
    """

    provider: str = "openai"
    voice: str = "nova"
    speed: float = 1.0
    format: str = "wav"
    model: str | None = None
    language: str | None = None


@dataclass(frozen=True, slots=True)
class Credentials:
    """Resolved provider secrets for one job; never persisted."""

    api_key: str | None = None
    text_api_key: str | None = None

    def for_text_generation(self) -> str | None:
        """Return the key used for text-generation calls."""

        return self.text_api_key or self.api_key


@dataclass(frozen=True, slots=True)
class JobResult:
    """Final output of a processing job.

    Attributes:
        output_format: Rendered format identifier.
        filename: Suggested output file name.
        data: Rendered payload bytes.
        title: Article title.
        text: Plain text that was rendered, reused by the summarizer.
        metadata: Non-secret run metadata.
    """

    output_format: OutputFormat
    filename: str
    data: bytes
    title: str
    text: str
    metadata: dict[str, str] = field(default_factory=dict)

    def as_snapshot_payload(self) -> dict[str, object]:
        """Return a JSON-safe description without the binary payload."""

        return {
            "output_format": self.output_format,
            "filename": self.filename,
            "title": self.title,
            "text": self.text,
            "byte_count": len(self.data),
            "metadata": dict(self.metadata),
        }
