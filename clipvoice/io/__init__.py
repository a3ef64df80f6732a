"""I/O components for content extraction and durable storage."""

from .extractors import ContentExtractionError, ContentExtractor
from .storage import (
    DurableKeyValueStore,
    JsonFileKeyValueStore,
    MemoryKeyValueStore,
    OverflowKeyValueStore,
)

__all__ = [
    "ContentExtractionError",
    "ContentExtractor",
    "DurableKeyValueStore",
    "JsonFileKeyValueStore",
    "MemoryKeyValueStore",
    "OverflowKeyValueStore",
]
