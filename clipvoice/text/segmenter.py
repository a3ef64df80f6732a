"""Natural-boundary text segmentation for speech conversion.

Responsibilities:
- Split normalized text into chunks within a `[min, max]` character window,
  preferring paragraph, then sentence, then word boundaries.
- Subdivide chunks to a provider-specific hard input limit before dispatch.
- Stay a pure function of input and thresholds.
"""

from __future__ import annotations

from dataclasses import dataclass
import re

from ..models.datatypes import TextChunk

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n+")
_WHITESPACE = re.compile(r"\s+")
_SENTENCE_STARTER = re.compile(r"^[\"'«(\[]*[A-ZА-ЯЁЇІЄҐ]")
_SENTENCE_TERMINALS = (". ", "! ", "? ")


@dataclass(frozen=True, slots=True)
class SegmentLimits:
    """Character thresholds for the segmentation window.

    Attributes:
        min_chars: Size a pending chunk must reach before it may be flushed.
        max_chars: Hard upper bound for any produced chunk.
        ideal_chars: Target size for forced word-boundary splits.
    """

    min_chars: int = 4000
    max_chars: int = 6000
    ideal_chars: int = 5000

    def __post_init__(self) -> None:
        """Validate that thresholds describe a usable window."""

        if self.min_chars <= 0 or self.max_chars <= 0 or self.ideal_chars <= 0:
            raise ValueError("Segment limits must be positive integers.")
        if self.min_chars > self.max_chars:
            raise ValueError("`min_chars` must not exceed `max_chars`.")
        if self.ideal_chars > self.max_chars:
            raise ValueError("`ideal_chars` must not exceed `max_chars`.")


class TextSegmenter:
    """Split text into ordered `TextChunk` records for independent conversion."""

    _ABBREVIATIONS = frozenset(
        {
            "mr.",
            "mrs.",
            "ms.",
            "dr.",
            "prof.",
            "sr.",
            "jr.",
            "inc.",
            "ltd.",
            "corp.",
            "co.",
            "etc.",
            "e.g.",
            "i.e.",
            "vs.",
            "fig.",
            "al.",
            "no.",
            "vol.",
            "pp.",
            "p.",
            "т.е.",
            "т.д.",
            "т.п.",
            "др.",
            "пр.",
            "см.",
            "ср.",
        }
    )

    def __init__(self, limits: SegmentLimits | None = None) -> None:
        """Initialize default segmentation thresholds."""

        self.limits = limits if limits is not None else SegmentLimits()

    def segment(self, text: str, limits: SegmentLimits | None = None) -> list[TextChunk]:
        """Split text into window-bounded chunks with 0-based indices.

        Args:
            text: Normalized plain text; blank lines separate paragraphs.
            limits: Optional thresholds overriding the instance defaults.

        Returns:
            Ordered chunks; empty when the text has no visible characters.
        """

        window = limits if limits is not None else self.limits
        pieces: list[str] = []
        current = ""

        for raw_paragraph in _PARAGRAPH_BREAK.split(text or ""):
            paragraph = raw_paragraph.strip()
            if not paragraph:
                continue

            joined_length = len(paragraph) if not current else len(current) + 2 + len(paragraph)
            if joined_length <= window.max_chars:
                current = f"{current}\n\n{paragraph}" if current else paragraph
                continue

            if current and len(current) >= window.min_chars:
                pieces.append(current)
                current = ""
                if len(paragraph) <= window.max_chars:
                    current = paragraph
                    continue

            for sentence in self.split_sentences(paragraph):
                current = self._absorb_sentence(current, sentence, pieces, window)

        if current:
            if (
                pieces
                and len(current) < window.min_chars / 2
                and len(pieces[-1]) + 2 + len(current) <= window.max_chars
            ):
                pieces[-1] = f"{pieces[-1]}\n\n{current}"
            else:
                pieces.append(current)

        return [TextChunk(text=piece, index=index) for index, piece in enumerate(pieces)]

    def split_for_provider_limit(self, chunks: list[TextChunk], limit: int) -> list[TextChunk]:
        """Subdivide chunks longer than a provider's hard input limit.

        Unsplit chunks keep `sub_index=None`; split chunks carry 0-based
        `sub_index` values under their original `index`.

        Raises:
            ValueError: If `limit` is not positive.
        """

        if limit <= 0:
            raise ValueError("Provider input limit must be a positive integer.")

        expanded: list[TextChunk] = []
        for chunk in sorted(chunks, key=TextChunk.sort_key):
            parts = self.split_if_too_long(chunk.text, limit)
            if len(parts) == 1:
                expanded.append(TextChunk(text=parts[0], index=chunk.index))
                continue
            expanded.extend(
                TextChunk(text=part, index=chunk.index, sub_index=sub_index)
                for sub_index, part in enumerate(parts)
            )
        return expanded

    def split_if_too_long(self, text: str, limit: int) -> list[str]:
        """Split text so every part is at most `limit` characters.

        Split points prefer the last sentence end, then the last space, when
        either lies past half the limit; otherwise the text is cut at the limit.
        A final slicing pass caps every part unconditionally.
        """

        stripped = text.strip()
        if len(stripped) <= limit:
            return [stripped] if stripped else []

        parts: list[str] = []
        remaining = stripped
        half_limit = limit * 0.5
        while len(remaining) > limit:
            split_at = self._last_sentence_end(remaining, limit)
            if split_at is None or split_at < half_limit:
                space_index = remaining.rfind(" ", 0, limit + 1)
                split_at = space_index if space_index >= half_limit else limit
            head = remaining[:split_at].strip()
            if head:
                parts.append(head)
            remaining = remaining[split_at:].strip()
        if remaining:
            parts.append(remaining)

        capped: list[str] = []
        for part in parts:
            while len(part) > limit:
                capped.append(part[:limit])
                part = part[limit:]
            if part:
                capped.append(part)
        return capped

    def split_sentences(self, text: str) -> list[str]:
        """Split a paragraph into sentences.

        A word ending in `.`, `!` or `?` closes a sentence when the next word
        starts with an uppercase Latin or Cyrillic letter and the word is not a
        known abbreviation.
        """

        words = [word for word in _WHITESPACE.split(text) if word]
        sentences: list[str] = []
        current: list[str] = []
        for position, word in enumerate(words):
            current.append(word)
            if word[-1] not in ".!?":
                continue
            next_word = words[position + 1] if position + 1 < len(words) else None
            if next_word is not None and not _SENTENCE_STARTER.match(next_word):
                continue
            if word.lower() in self._ABBREVIATIONS:
                continue
            sentences.append(" ".join(current))
            current = []
        if current:
            sentences.append(" ".join(current))
        return sentences

    def _absorb_sentence(
        self,
        current: str,
        sentence: str,
        pieces: list[str],
        window: SegmentLimits,
    ) -> str:
        """Append one sentence to the pending chunk, flushing or force-splitting."""

        separator = " " if current else ""
        if len(current) + len(separator) + len(sentence) <= window.max_chars:
            return f"{current}{separator}{sentence}"

        if current and len(current) >= window.min_chars:
            pieces.append(current)
            if len(sentence) <= window.max_chars:
                return sentence
            current = ""
            separator = ""

        combined = f"{current}{separator}{sentence}"
        if len(combined) <= window.max_chars:
            return combined
        forced = self._force_split(combined, window.ideal_chars)
        pieces.extend(forced[:-1])
        return forced[-1]

    @staticmethod
    def _force_split(text: str, target_size: int) -> list[str]:
        """Split text at word boundaries into parts near `target_size`.

        Words longer than the target are sliced so no part exceeds it.
        """

        parts: list[str] = []
        current = ""
        for word in _WHITESPACE.split(text):
            if not word:
                continue
            while len(word) > target_size:
                if current:
                    parts.append(current)
                    current = ""
                parts.append(word[:target_size])
                word = word[target_size:]
            if not word:
                continue
            if current and len(current) + 1 + len(word) > target_size:
                parts.append(current)
                current = word
            else:
                current = f"{current} {word}" if current else word
        if current:
            parts.append(current)
        return parts

    @staticmethod
    def _last_sentence_end(text: str, limit: int) -> int | None:
        """Return the split index just after the last sentence end within `limit`."""

        best = -1
        for terminal in _SENTENCE_TERMINALS:
            best = max(best, text.rfind(terminal, 0, limit + 1))
        if best < 0:
            return None
        return best + 1
