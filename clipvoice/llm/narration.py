"""Narration preparation applied to each chunk before speech synthesis.

Responsibilities:
- Rewrite chunk text for natural listening with a text-generation capability.
- Provide a deterministic rule-based variant for offline execution paths.
- Fall back to rule-based cleanup when the model call fails.
"""

from __future__ import annotations

from typing import Protocol

from loguru import logger

from ..text.cleaners import TextCleaner, generated_text_cleaner, narration_cleaner
from .prompts import PromptLibrary
from .text_generation import TextGeneration


class NarrationPreparer(Protocol):
    """Protocol for chunk cleanup before synthesis."""

    async def prepare(self, text: str, chunk_number: int, chunk_total: int) -> str:
        """Return narration-ready text for one chunk."""


class RuleBasedNarrationPreparer:
    """Deterministic cleanup that never requires a network round trip."""

    provider_id = "rules"

    def __init__(self, cleaner: TextCleaner | None = None) -> None:
        """Initialize the rule pipeline."""

        self.cleaner = cleaner if cleaner is not None else narration_cleaner()

    async def prepare(self, text: str, chunk_number: int, chunk_total: int) -> str:
        """Apply regex cleanup rules to the chunk."""

        return self.cleaner.clean(text)


class AINarrationPreparer:
    """Rewrite chunks for narration with a text-generation capability."""

    provider_id = "ai"

    def __init__(
        self,
        generator: TextGeneration,
        *,
        language: str | None = None,
        fallback: NarrationPreparer | None = None,
    ) -> None:
        """Initialize generator, language hint and fallback preparer."""

        self.generator = generator
        self.language = language
        self.fallback = fallback if fallback is not None else RuleBasedNarrationPreparer()
        self.prompts = PromptLibrary()
        self._post_cleaner = generated_text_cleaner()

    async def prepare(self, text: str, chunk_number: int, chunk_total: int) -> str:
        """Return model-cleaned text, or rule-cleaned text when the call fails."""

        try:
            generated = await self.generator.generate(
                self.prompts.narration_system_prompt(self.language),
                self.prompts.narration_prompt(text, chunk_number, chunk_total),
            )
        except Exception as exc:
            logger.warning(
                "Narration cleanup for chunk {}/{} failed, using rule-based cleanup: {}",
                chunk_number,
                chunk_total,
                exc,
            )
            return await self.fallback.prepare(text, chunk_number, chunk_total)

        cleaned = self._post_cleaner.clean(str(generated))
        if not cleaned:
            return await self.fallback.prepare(text, chunk_number, chunk_total)
        return cleaned
