"""Per-job context passed explicitly to every pipeline stage.

Responsibilities:
- Own the job's `ProcessingStateStore` and `CancellationToken`.
- Expose a read-only snapshot accessor for observers.
- Drop stage reports once the job has been cancelled.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..errors import JobCancelledError
from ..state.stages import ProcessingStage
from ..state.store import ProcessingSnapshot, ProcessingStateStore
from ..telemetry.logger import RunLogger


class CancellationToken:
    """Cooperative cancellation flag observed at stage checkpoints."""

    def __init__(self) -> None:
        """Initialize an uncancelled token."""

        self._cancelled = False

    @property
    def is_cancelled(self) -> bool:
        """Return whether cancellation was requested."""

        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation; idempotent."""

        self._cancelled = True

    def raise_if_cancelled(self, stage: str) -> None:
        """Raise `JobCancelledError` when cancellation was requested."""

        if self._cancelled:
            raise JobCancelledError(stage)


@dataclass(slots=True)
class JobContext:
    """Explicit owner of one job's state, cancellation and logging.

    Attributes:
        store: Single writer of the job's lifecycle state.
        token: Cancellation flag checked before each stage.
        run_logger: Optional structured phase logger.
    """

    store: ProcessingStateStore
    token: CancellationToken = field(default_factory=CancellationToken)
    run_logger: RunLogger | None = None

    def snapshot(self) -> ProcessingSnapshot:
        """Return the current immutable state snapshot."""

        return self.store.get_snapshot()

    def cancel(self) -> bool:
        """Cancel the job; in-flight calls finish but their results are discarded."""

        self.token.cancel()
        return self.store.cancel()

    def report(
        self,
        *,
        stage: ProcessingStage | None = None,
        progress: int | float | None = None,
        status: str | None = None,
    ) -> None:
        """Forward a stage report to the store unless the job was cancelled."""

        if self.token.is_cancelled:
            return
        self.store.update_state(stage=stage, progress=progress, status=status)
