"""Text-generation abstractions for narration cleanup, translation and summary.

This package defines prompt libraries, the text-generation capability and the
OpenAI-backed clients that implement it.
"""

from .narration import AINarrationPreparer, NarrationPreparer, RuleBasedNarrationPreparer
from .openai_client import OpenAIChatClient, OpenAISpeechClient
from .prompts import PromptLibrary
from .summarizer import ArticleSummarizer, ArticleSummary
from .text_generation import OpenAITextGeneration, TextGeneration
from .translator import TextTranslator

__all__ = [
    "AINarrationPreparer",
    "ArticleSummarizer",
    "ArticleSummary",
    "NarrationPreparer",
    "OpenAIChatClient",
    "OpenAISpeechClient",
    "OpenAITextGeneration",
    "PromptLibrary",
    "RuleBasedNarrationPreparer",
    "TextGeneration",
    "TextTranslator",
]
