"""Clipvoice pipeline package.

This package contains the job context, stage telemetry, output renderers and
the orchestration facade that runs one job through its fixed stage set.
"""

from .context import CancellationToken, JobContext
from .orchestrator import ClipvoicePipeline
from .renderers import DocumentRenderer, PlainTextRenderer

__all__ = [
    "CancellationToken",
    "ClipvoicePipeline",
    "DocumentRenderer",
    "JobContext",
    "PlainTextRenderer",
]
