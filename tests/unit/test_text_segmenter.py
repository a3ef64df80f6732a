"""Unit tests for natural-boundary text segmentation."""

from __future__ import annotations

import re

import pytest

from clipvoice.models.datatypes import TextChunk
from clipvoice.text.segmenter import SegmentLimits, TextSegmenter


def _words(text: str) -> list[str]:
    """Return whitespace-separated words for content-preservation checks."""

    return re.split(r"\s+", text.strip())


def _paragraphs(count: int, sentence: str, sentences_per_paragraph: int) -> str:
    """Build deterministic multi-paragraph text."""

    paragraph = " ".join([sentence] * sentences_per_paragraph)
    return "\n\n".join([paragraph] * count)


def test_short_text_yields_single_chunk() -> None:
    """Text within the window should stay as one chunk with index 0."""

    chunks = TextSegmenter().segment("Hello world. This is short.")

    assert chunks == [TextChunk(text="Hello world. This is short.", index=0)]


def test_empty_text_yields_no_chunks() -> None:
    """Blank input should produce no chunks."""

    assert TextSegmenter().segment(" \n\n  ") == []


def test_chunks_respect_max_and_preserve_words() -> None:
    """Every chunk should fit the window and joined chunks should keep all words."""

    limits = SegmentLimits(min_chars=200, max_chars=400, ideal_chars=300)
    text = _paragraphs(12, "The quick brown fox jumps over the lazy dog.", 4)

    chunks = TextSegmenter(limits).segment(text)

    assert len(chunks) > 1
    assert [chunk.index for chunk in chunks] == list(range(len(chunks)))
    assert all(len(chunk.text) <= limits.max_chars for chunk in chunks)
    assert _words(" ".join(chunk.text for chunk in chunks)) == _words(text)


def test_paragraph_boundaries_are_preferred() -> None:
    """Chunks should end on paragraph breaks when paragraphs fit the window."""

    limits = SegmentLimits(min_chars=100, max_chars=200, ideal_chars=150)
    paragraph = "A" * 60 + ". " + "B" * 60 + "."
    text = "\n\n".join([paragraph] * 4)

    chunks = TextSegmenter(limits).segment(text)

    assert all(chunk.text.endswith(".") for chunk in chunks)
    assert all(paragraph in chunk.text for chunk in chunks)


def test_oversized_sentence_is_force_split_at_word_boundaries() -> None:
    """A single sentence longer than the window should split near the ideal size."""

    limits = SegmentLimits(min_chars=50, max_chars=120, ideal_chars=100)
    text = " ".join(["word"] * 200)

    chunks = TextSegmenter(limits).segment(text)

    assert all(len(chunk.text) <= limits.max_chars for chunk in chunks)
    assert all(not chunk.text.startswith(" ") for chunk in chunks)
    assert _words(" ".join(chunk.text for chunk in chunks)) == _words(text)


def test_sentence_split_skips_abbreviations_and_lowercase_continuations() -> None:
    """Known abbreviations and lowercase continuations should not end a sentence."""

    sentences = TextSegmenter().split_sentences(
        "Dr. Smith met Mr. Jones at 5 p.m. yesterday. They talked e.g. about Fig. 3. Done!"
    )

    assert sentences == [
        "Dr. Smith met Mr. Jones at 5 p.m. yesterday.",
        "They talked e.g. about Fig. 3.",
        "Done!",
    ]


def test_sentence_split_recognizes_cyrillic_starters() -> None:
    """Sentences starting with Cyrillic capitals should be split."""

    sentences = TextSegmenter().split_sentences("Привет мир. Это тест, т.е. проверка. Всё!")

    assert sentences == ["Привет мир.", "Это тест, т.е. проверка.", "Всё!"]


def test_provider_limit_split_assigns_sub_indices() -> None:
    """Chunks above the provider ceiling should gain ordered sub-indices."""

    segmenter = TextSegmenter()
    long_text = "First sentence here. " * 30
    chunks = [TextChunk(text="Short one.", index=1), TextChunk(text=long_text, index=0)]

    expanded = segmenter.split_for_provider_limit(chunks, 100)

    long_parts = [chunk for chunk in expanded if chunk.index == 0]
    assert len(long_parts) > 1
    assert [chunk.sub_index for chunk in long_parts] == list(range(len(long_parts)))
    assert all(len(chunk.text) <= 100 for chunk in expanded)
    assert expanded[-1] == TextChunk(text="Short one.", index=1)
    assert expanded == sorted(expanded, key=TextChunk.sort_key)


def test_split_if_too_long_caps_unbreakable_text() -> None:
    """Text without spaces or sentence ends should be sliced at the hard limit."""

    parts = TextSegmenter().split_if_too_long("x" * 250, 100)

    assert [len(part) for part in parts] == [100, 100, 50]


def test_split_if_too_long_prefers_sentence_end_past_half_limit() -> None:
    """Sentence ends in the second half of the window should be used as split points."""

    text = "a" * 70 + ". " + "b" * 60
    parts = TextSegmenter().split_if_too_long(text, 100)

    assert parts == ["a" * 70 + ".", "b" * 60]


def test_sort_key_orders_unsplit_before_sub_chunks() -> None:
    """Dispatch order should be by index, then sub-index."""

    chunks = [
        TextChunk(text="c", index=1, sub_index=1),
        TextChunk(text="a", index=0),
        TextChunk(text="b", index=1, sub_index=0),
    ]

    assert [chunk.text for chunk in sorted(chunks, key=TextChunk.sort_key)] == ["a", "b", "c"]


def test_invalid_limits_are_rejected() -> None:
    """Segment limits should describe a non-empty window."""

    with pytest.raises(ValueError):
        SegmentLimits(min_chars=500, max_chars=100, ideal_chars=100)
    with pytest.raises(ValueError):
        SegmentLimits(min_chars=10, max_chars=100, ideal_chars=200)
    with pytest.raises(ValueError):
        TextSegmenter().split_for_provider_limit([], 0)
