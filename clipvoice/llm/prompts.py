"""Prompt template library for text-generation stages.

Responsibilities:
- Centralize prompt construction for narration cleanup, translation and summary.
- Keep prompts deterministic for a given language and input.
"""

from __future__ import annotations

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "ru": "Russian",
    "uk": "Ukrainian",
    "de": "German",
    "fr": "French",
    "es": "Spanish",
    "it": "Italian",
    "pt": "Portuguese",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
}


def language_name(language: str | None) -> str | None:
    """Return the English display name for a language code, or `None` for auto."""

    if not language:
        return None
    return LANGUAGE_NAMES.get(language.strip().lower())


class PromptLibrary:
    """Build prompt strings for supported text-generation tasks."""

    def narration_system_prompt(self, language: str | None = None) -> str:
        """Return the system prompt that rewrites text for listening."""

        name = language_name(language)
        language_rule = (
            f"The text is in {name}. Keep all text in {name}."
            if name
            else "Keep the original language of the text."
        )
        return (
            "You are a text preparation assistant for text-to-speech conversion.\n\n"
            "Clean up the provided text so it can be read aloud naturally.\n"
            f"{language_rule}\n\n"
            "RULES:\n"
            "1. Remove completely: URLs and web addresses, e-mail addresses, code "
            "snippets and technical syntax, footnote markers like [1], reference "
            "markers like ^1, file paths, and markdown symbols (*, _, #).\n"
            "2. Convert abbreviations to full words (\"etc.\" becomes \"and so on\", "
            "\"e.g.\" becomes \"for example\") and dates to their spoken form.\n"
            "3. Preserve all meaningful content, paragraph structure, quotes, and "
            "names of people, places and companies.\n"
            "4. Make sure sentences are complete and make sense when read aloud.\n\n"
            "OUTPUT: Return ONLY the cleaned text. No explanations, no prefixes, no "
            "quotes around the text."
        )

    def narration_prompt(self, text: str, chunk_number: int, chunk_total: int) -> str:
        """Return the user prompt for one narration chunk."""

        return (
            f"Clean this text chunk ({chunk_number} of {chunk_total}) for audio narration:\n\n"
            f"{text}"
        )

    def translation_system_prompt(self) -> str:
        """Return deterministic system prompt for strict translation behavior."""

        return (
            "You are a precise translation assistant. "
            "Return only translated text with no commentary."
        )

    def translate_prompt(self, source_text: str, target_language: str) -> str:
        """Return translation prompt text for provider calls."""

        target = language_name(target_language) or target_language
        return (
            f"Translate the following text into {target} while preserving meaning, "
            "tone, and paragraph structure. Output only the translated text.\n\n"
            f"{source_text}"
        )

    def summary_system_prompt(self, language: str | None = None) -> str:
        """Return the system prompt for article summaries with structured output."""

        name = language_name(language)
        language_rule = f"Write the summary in {name}." if name else "Write in the article's language."
        return (
            "You summarize articles for busy readers. "
            f"{language_rule} "
            "Respond with a JSON object with keys `summary` (a short paragraph) and "
            "`key_points` (a list of at most five short strings)."
        )

    def summary_prompt(self, title: str, text: str) -> str:
        """Return the user prompt carrying the article to summarize."""

        return f"Title: {title}\n\nArticle:\n{text}"
