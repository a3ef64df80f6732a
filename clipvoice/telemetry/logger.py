"""Structured run logging utilities.

Responsibilities:
- Emit concise, deterministic phase-level runtime logs through `loguru`.
- Keep retry, state-persistence and chunk events in one greppable line format.
"""

from __future__ import annotations

import sys
from typing import TextIO

from loguru import logger as _loguru_logger


def _sanitize_context_value(value: object) -> str:
    """Convert context values into stable, shell-safe tokens."""

    raw = str(value).strip()
    if not raw:
        return "none"
    return "".join(
        character if character.isalnum() or character in {"-", "_", ".", ":", "/"} else "_"
        for character in raw
    )


def _format_context(context: dict[str, object]) -> str:
    """Serialize context key/value pairs in deterministic key order."""

    if not context:
        return ""
    tokens = [
        f"{key}={_sanitize_context_value(context[key])}"
        for key in sorted(context.keys())
    ]
    return " " + " ".join(tokens)


class RunLogger:
    """Emit deterministic phase logs for CLI-observable pipeline activity."""

    def __init__(self, sink: TextIO | None = None, level: str = "INFO") -> None:
        """Bind a dedicated loguru sink that prints bare message lines."""

        self._sink = sink or sys.stderr
        self._handler_id = _loguru_logger.add(
            self._sink,
            format="{message}",
            level=level,
            colorize=False,
            filter=lambda record: record["extra"].get("run_logger") is True,
        )
        self._logger = _loguru_logger.bind(run_logger=True)

    def close(self) -> None:
        """Detach this logger's sink from loguru."""

        _loguru_logger.remove(self._handler_id)

    def _emit(self, level: str, event: str, stage: str, **context: object) -> None:
        """Emit one structured runtime log line."""

        line = f"[phase] level={level} stage={stage} event={event}{_format_context(context)}"
        self._logger.log(level, line)

    def log_stage_start(self, stage: str) -> None:
        """Emit a stage-start runtime event."""

        self._emit("INFO", "start", stage)

    def log_stage_complete(self, stage: str) -> None:
        """Emit a stage-complete runtime event."""

        self._emit("INFO", "complete", stage)

    def log_stage_failure(self, stage: str, error_type: str, error_code: str) -> None:
        """Emit a stage-failure runtime event without sensitive payload details."""

        self._emit("ERROR", "failure", stage, error_type=error_type, error_code=error_code)

    def log_cancelled(self, stage: str) -> None:
        """Emit a cancellation observed at a stage checkpoint."""

        self._emit("WARNING", "cancelled", stage)

    def log_retry_scheduled(self, operation: str, attempt: int, delay_seconds: float) -> None:
        """Emit one scheduled retry with its attempt number and wait."""

        self._emit(
            "WARNING",
            "retry",
            "network",
            operation=operation,
            attempt=attempt,
            delay_seconds=f"{delay_seconds:.2f}",
        )

    def log_chunk_converted(self, chunk_number: int, chunk_total: int, byte_count: int) -> None:
        """Emit a per-chunk conversion event."""

        self._emit(
            "INFO",
            "chunk",
            "generating",
            bytes=byte_count,
            chunk=f"{chunk_number}/{chunk_total}",
        )
