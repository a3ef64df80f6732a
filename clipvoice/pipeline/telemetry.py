"""Stage telemetry and checkpoint helpers for the Clipvoice pipeline.

Responsibilities:
- Check the cancellation token before each stage.
- Report the stage transition and its starting progress to the state store.
- Emit stage start/complete/failure events around stage actions.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

from ..errors import JobCancelledError, normalize_error
from ..locales import translate
from ..state.stages import ProcessingStage
from .context import JobContext

_StageResult = TypeVar("_StageResult")

_STAGE_ENTRY = {
    ProcessingStage.EXTRACTING: (5, "statusExtracting"),
    ProcessingStage.TRANSLATING: (10, "statusTranslating"),
    ProcessingStage.GENERATING: (15, "statusGenerating"),
}


class PipelineTelemetryMixin:
    """Provide stage checkpoint and telemetry helper methods."""

    def _on_stage_start(self, context: JobContext, stage: ProcessingStage) -> None:
        """Report the stage transition and emit a start event."""

        progress, status_key = _STAGE_ENTRY.get(stage, (None, None))
        context.report(
            stage=stage,
            progress=progress,
            status=translate(status_key, context.store.language) if status_key else None,
        )
        if context.run_logger is not None:
            context.run_logger.log_stage_start(stage.value)

    def _on_stage_complete(self, context: JobContext, stage: ProcessingStage) -> None:
        """Emit stage-complete event to the structured logger."""

        if context.run_logger is not None:
            context.run_logger.log_stage_complete(stage.value)

    def _on_stage_failure(
        self, context: JobContext, stage: ProcessingStage, exc: Exception
    ) -> None:
        """Emit stage-failure event with sanitized exception metadata."""

        if context.run_logger is None:
            return
        if isinstance(exc, JobCancelledError):
            context.run_logger.log_cancelled(stage.value)
            return
        context.run_logger.log_stage_failure(
            stage.value,
            type(exc).__name__,
            normalize_error(exc).code.value,
        )

    async def _run_stage(
        self,
        context: JobContext,
        stage: ProcessingStage,
        action: Callable[[], Awaitable[_StageResult]],
    ) -> _StageResult:
        """Run one stage after its cancellation checkpoint, with telemetry events."""

        try:
            context.token.raise_if_cancelled(stage.value)
        except JobCancelledError as exc:
            self._on_stage_failure(context, stage, exc)
            raise

        self._on_stage_start(context, stage)
        try:
            result = await action()
        except Exception as exc:
            self._on_stage_failure(context, stage, exc)
            raise
        self._on_stage_complete(context, stage)
        return result
