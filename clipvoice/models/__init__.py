"""Shared typed data models for Clipvoice.

This package contains dataclasses used across pipeline modules to avoid
cross-module coupling and circular imports.
"""

from .datatypes import (
    ContentDocument,
    ContentItem,
    Credentials,
    JobResult,
    SpeechOptions,
    TextChunk,
)

__all__ = [
    "ContentDocument",
    "ContentItem",
    "Credentials",
    "JobResult",
    "SpeechOptions",
    "TextChunk",
]
