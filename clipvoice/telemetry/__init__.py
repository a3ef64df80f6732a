"""Telemetry helpers.

This package emits structured run events for CLI-observable job activity.
"""

from .logger import RunLogger

__all__ = ["RunLogger"]
