"""Deterministic narration cleanup rules.

Responsibilities:
- Provide composable rules that strip content unsuitable for listening:
  URLs, footnote markers, code and markdown emphasis.
- Keep rule-based cleanup predictable so offline paths need no network call.
"""

from __future__ import annotations

import re
from typing import Protocol


class CleanerRule(Protocol):
    """Protocol for text cleaning rules."""

    def apply(self, text: str) -> str:
        """Apply a single cleaning transformation."""


class RemoveUrls:
    """Remove web addresses and e-mail addresses."""

    def apply(self, text: str) -> str:
        """Drop `http(s)://`, `www.` and e-mail tokens."""

        text = re.sub(r"https?://\S+", "", text)
        text = re.sub(r"www\.\S+", "", text)
        return re.sub(r"\b[\w.+-]+@[\w-]+\.[\w.-]+\b", "", text)


class RemoveFootnoteMarkers:
    """Remove bracketed and caret reference markers."""

    def apply(self, text: str) -> str:
        """Drop `[12]` and `^12` markers."""

        text = re.sub(r"\[\d+\]", "", text)
        return re.sub(r"\^\d+", "", text)


class RemoveCode:
    """Remove fenced and inline code spans."""

    def apply(self, text: str) -> str:
        """Drop fenced blocks first so their backticks do not pair as inline code."""

        text = re.sub(r"```[\s\S]*?```", "", text)
        return re.sub(r"`[^`]+`", "", text)


class UnwrapCodeSpans:
    """Keep inline code text while dropping its backticks."""

    def apply(self, text: str) -> str:
        """Replace `` `x` `` with `x`."""

        return re.sub(r"`([^`]+)`", r"\1", text)


class StripMarkdownEmphasis:
    """Remove bold/italic markers and leading heading hashes."""

    def apply(self, text: str) -> str:
        """Unwrap `**x**`, `*x*`, `__x__`, `_x_` and drop `#` heading prefixes."""

        text = re.sub(r"\*\*([^*]+)\*\*", r"\1", text)
        text = re.sub(r"\*([^*]+)\*", r"\1", text)
        text = re.sub(r"__([^_]+)__", r"\1", text)
        text = re.sub(r"(?<!\w)_([^_]+)_(?!\w)", r"\1", text)
        return re.sub(r"(?m)^\s{0,3}#{1,6}\s+", "", text)


class CollapseWhitespace:
    """Normalize whitespace while keeping paragraph breaks."""

    def apply(self, text: str) -> str:
        """Collapse runs of spaces and blank lines."""

        text = re.sub(r"[ \t\f\v]+", " ", text)
        text = re.sub(r" *\n *", "\n", text)
        text = re.sub(r"\n{3,}", "\n\n", text)
        return text.strip()


class TextCleaner:
    """Apply an ordered list of cleaning rules."""

    def __init__(self, rules: list[CleanerRule]) -> None:
        """Initialize the rule pipeline."""

        self.rules = rules

    def clean(self, text: str) -> str:
        """Run every rule in order."""

        for rule in self.rules:
            text = rule.apply(text)
        return text


def narration_cleaner() -> TextCleaner:
    """Return the rule set used when no text-generation capability is available."""

    return TextCleaner(
        [
            RemoveUrls(),
            RemoveFootnoteMarkers(),
            RemoveCode(),
            StripMarkdownEmphasis(),
            CollapseWhitespace(),
        ]
    )


def generated_text_cleaner() -> TextCleaner:
    """Return the rule set applied to model-rewritten narration text."""

    return TextCleaner(
        [
            StripMarkdownEmphasis(),
            UnwrapCodeSpans(),
            RemoveUrls(),
            CollapseWhitespace(),
        ]
    )
