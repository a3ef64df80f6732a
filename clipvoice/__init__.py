"""Top-level package for Clipvoice.

This package converts article content into narrated audio or plain text through
a cancellable, crash-visible processing pipeline. The main orchestration entry
point is `ClipvoicePipeline`.
"""

from .pipeline import ClipvoicePipeline

__all__ = ["ClipvoicePipeline", "__version__"]

__version__ = "0.1.0"
