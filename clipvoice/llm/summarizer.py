"""Article summaries generated from the last processed result.

Responsibilities:
- Request a structured summary (paragraph plus key points).
- Read the text preserved from the previous job when no text is given.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..errors import ErrorCode, ProviderError
from .prompts import PromptLibrary
from .text_generation import TextGeneration


@dataclass(frozen=True, slots=True)
class ArticleSummary:
    """Structured summary of one article."""

    title: str
    summary: str
    key_points: tuple[str, ...]

    def as_markdown(self) -> str:
        """Render the summary as Markdown."""

        lines = [f"# {self.title}", "", self.summary]
        if self.key_points:
            lines.append("")
            lines.extend(f"- {point}" for point in self.key_points)
        return "\n".join(lines)


class ArticleSummarizer:
    """Summarize article text with structured text-generation output."""

    def __init__(
        self,
        generator: TextGeneration,
        *,
        language: str | None = None,
        max_input_chars: int = 24000,
    ) -> None:
        """Initialize generator, output language and input cap."""

        self.generator = generator
        self.language = language
        self.max_input_chars = max_input_chars
        self.prompts = PromptLibrary()

    async def summarize(self, title: str, text: str) -> ArticleSummary:
        """Return a structured summary of the article text."""

        if not text.strip():
            raise ProviderError(
                "Nothing to summarize: article text is empty.",
                code=ErrorCode.VALIDATION_ERROR,
            )
        payload = await self.generator.generate(
            self.prompts.summary_system_prompt(self.language),
            self.prompts.summary_prompt(title, text[: self.max_input_chars]),
            structured=True,
        )
        return self._parse_summary(title, payload)

    @staticmethod
    def _parse_summary(title: str, payload: Any) -> ArticleSummary:
        """Validate the structured payload shape."""

        if not isinstance(payload, dict):
            raise ProviderError("Summary output is not a JSON object.", code=ErrorCode.PARSE_ERROR)
        summary = payload.get("summary")
        if not isinstance(summary, str) or not summary.strip():
            raise ProviderError("Summary output is missing `summary`.", code=ErrorCode.PARSE_ERROR)
        raw_points = payload.get("key_points") or []
        if not isinstance(raw_points, list):
            raise ProviderError(
                "Summary output `key_points` must be a list.",
                code=ErrorCode.PARSE_ERROR,
            )
        points = tuple(str(point).strip() for point in raw_points if str(point).strip())
        return ArticleSummary(title=title, summary=summary.strip(), key_points=points)
