"""Text normalization, cleanup and segmentation components."""

from .cleaners import TextCleaner, generated_text_cleaner, narration_cleaner
from .content import content_to_plain_text, strip_html
from .segmenter import SegmentLimits, TextSegmenter
from .slug import slugify_title

__all__ = [
    "SegmentLimits",
    "TextCleaner",
    "TextSegmenter",
    "content_to_plain_text",
    "generated_text_cleaner",
    "narration_cleaner",
    "slugify_title",
    "strip_html",
]
