"""Output renderers for finished article text.

Responsibilities:
- Define the `DocumentRenderer` contract for paginated and e-book collaborators.
- Provide the built-in plain-text and audio renderers.
"""

from __future__ import annotations

from typing import Protocol

from ..audio.formats import audio_extension, detect_audio_format
from ..models.datatypes import JobResult
from ..text.slug import slugify_title


class DocumentRenderer(Protocol):
    """Protocol for renderers producing a file from article title and text."""

    output_format: str

    def render(self, title: str, text: str, metadata: dict[str, str]) -> JobResult:
        """Return the rendered job result."""


class PlainTextRenderer:
    """Render UTF-8 plain text with the title as the first line."""

    output_format = "text"

    def render(self, title: str, text: str, metadata: dict[str, str]) -> JobResult:
        """Return a `.txt` result."""

        body = f"{title}\n\n{text}\n" if title and not text.startswith(title) else f"{text}\n"
        return JobResult(
            output_format="text",
            filename=f"{slugify_title(title)}.txt",
            data=body.encode("utf-8"),
            title=title,
            text=text,
            metadata=dict(metadata),
        )


def audio_result(title: str, text: str, audio: bytes, metadata: dict[str, str]) -> JobResult:
    """Wrap assembled audio bytes in a job result named after its detected format."""

    detected = detect_audio_format(audio)
    return JobResult(
        output_format="audio",
        filename=f"{slugify_title(title)}.{audio_extension(detected)}",
        data=audio,
        title=title,
        text=text,
        metadata={**metadata, "audio_format": detected or "unknown"},
    )
