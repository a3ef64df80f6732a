"""Article translation through the text-generation capability.

Responsibilities:
- Batch paragraphs into bounded requests and translate them in order.
- Preserve paragraph structure across batches.
"""

from __future__ import annotations

import re

from .prompts import PromptLibrary
from .text_generation import TextGeneration

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n+")


class TextTranslator:
    """Translate plain text paragraph batches sequentially."""

    def __init__(self, generator: TextGeneration, *, max_batch_chars: int = 4000) -> None:
        """Initialize generator and request batch size."""

        if max_batch_chars <= 0:
            raise ValueError("`max_batch_chars` must be a positive integer.")
        self.generator = generator
        self.max_batch_chars = max_batch_chars
        self.prompts = PromptLibrary()

    async def translate(self, text: str, target_language: str) -> str:
        """Return `text` translated into `target_language`."""

        translated: list[str] = []
        for batch in self.batches(text):
            result = await self.generator.generate(
                self.prompts.translation_system_prompt(),
                self.prompts.translate_prompt(batch, target_language),
            )
            translated.append(str(result).strip())
        return "\n\n".join(part for part in translated if part)

    def batches(self, text: str) -> list[str]:
        """Group paragraphs into batches no longer than `max_batch_chars` where possible.

        A single paragraph longer than the limit is sent on its own.
        """

        batches: list[str] = []
        current = ""
        for raw_paragraph in _PARAGRAPH_BREAK.split(text):
            paragraph = raw_paragraph.strip()
            if not paragraph:
                continue
            if current and len(current) + 2 + len(paragraph) > self.max_batch_chars:
                batches.append(current)
                current = paragraph
            else:
                current = f"{current}\n\n{paragraph}" if current else paragraph
        if current:
            batches.append(current)
        return batches
