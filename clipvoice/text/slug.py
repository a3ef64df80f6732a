"""Deterministic slug helpers for output file names.

Responsibilities:
- Normalize article titles into stable ASCII slugs.
- Bound slug length so generated names stay portable.
"""

from __future__ import annotations

import re
import unicodedata

_MAX_SLUG_CHARS = 80


def slugify_title(value: str, fallback: str = "article") -> str:
    """Return a filesystem-safe ASCII slug for an article title."""

    normalized = unicodedata.normalize("NFKD", value)
    ascii_only = normalized.encode("ascii", "ignore").decode("ascii")
    collapsed = re.sub(r"[^a-z0-9]+", "-", ascii_only.lower().strip())
    slug = collapsed[:_MAX_SLUG_CHARS].strip("-")
    return slug or fallback
