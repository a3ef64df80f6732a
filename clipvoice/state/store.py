"""Lifecycle state of one in-flight processing job.

Responsibilities:
- Own the authoritative in-memory `ProcessingSnapshot` for a job.
- Enforce single-flight start, monotonic progress and cascading stage completion.
- Write every active mutation through to a durable snapshot for crash visibility.
- Surface a surviving snapshot after restart as a non-resumable interrupted job.

Key types:
- `ProcessingSnapshot`: immutable, read-only view handed to observers.
- `ProcessingStateStore`: the only writer of job state.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from loguru import logger

from ..errors import ErrorCode, coerce_error_code, normalize_error
from ..io.storage import DurableKeyValueStore
from ..locales import translate
from .keepalive import KeepAlive, NullKeepAlive
from .stages import ProcessingStage, parse_stage, stages_before

SNAPSHOT_KEY = "processing_state"
LAST_RESULT_KEY = "last_processed_result"
DEFAULT_STATE_EXPIRY_SECONDS = 7 * 24 * 60 * 60


@dataclass(frozen=True, slots=True)
class ProcessingSnapshot:
    """Immutable copy of job state.

    Attributes:
        is_processing: Whether a job is currently active.
        is_cancelled: Whether the last job was cancelled by the user.
        progress: Percentage in `[0, 100]`.
        status: Localized status text.
        current_stage: Most recently reported stage.
        completed_stages: Stages reported or implied as completed, in order.
        error: Terminal error message, if any.
        error_code: Terminal error taxonomy code, if any.
        result: Opaque job result held in memory only.
        start_time: Wall-clock start time in epoch seconds.
        last_update: Wall-clock time of the last durable write.
        interrupted: Whether this state was restored after a host restart.
    """

    is_processing: bool = False
    is_cancelled: bool = False
    progress: int = 0
    status: str = ""
    current_stage: ProcessingStage | None = None
    completed_stages: tuple[ProcessingStage, ...] = ()
    error: str | None = None
    error_code: ErrorCode | None = None
    result: Any = field(default=None, compare=False)
    start_time: float | None = None
    last_update: float | None = None
    interrupted: bool = False

    def to_payload(self) -> dict[str, object]:
        """Serialize to the durable snapshot schema (result excluded)."""

        return {
            "is_processing": self.is_processing,
            "is_cancelled": self.is_cancelled,
            "progress": self.progress,
            "status": self.status,
            "current_stage": self.current_stage.value if self.current_stage else None,
            "completed_stages": [stage.value for stage in self.completed_stages],
            "error": self.error,
            "error_code": self.error_code.value if self.error_code else None,
            "start_time": self.start_time,
            "last_update": self.last_update,
            "interrupted": self.interrupted,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> ProcessingSnapshot:
        """Rebuild a snapshot from a durable payload, ignoring unknown stages."""

        completed_raw = payload.get("completed_stages")
        completed: list[ProcessingStage] = []
        if isinstance(completed_raw, list):
            for item in completed_raw:
                stage = parse_stage(item)
                if stage is not None and stage not in completed:
                    completed.append(stage)

        return cls(
            is_processing=bool(payload.get("is_processing", False)),
            is_cancelled=bool(payload.get("is_cancelled", False)),
            progress=_clamp_progress(payload.get("progress", 0)),
            status=str(payload.get("status") or ""),
            current_stage=parse_stage(payload.get("current_stage")),
            completed_stages=tuple(sorted(completed, key=lambda item: item.order)),
            error=_optional_text(payload.get("error")),
            error_code=coerce_error_code(payload.get("error_code")),
            start_time=_optional_float(payload.get("start_time")),
            last_update=_optional_float(payload.get("last_update")),
            interrupted=bool(payload.get("interrupted", False)),
        )


class ProcessingStateStore:
    """Single writer of one job's lifecycle state.

    The in-memory snapshot is authoritative while the process lives; the
    durable copy exists for visibility after a restart and is never resumed.
    Mutators other than `start` never raise on persistence failures.
    """

    def __init__(
        self,
        *,
        storage: DurableKeyValueStore,
        language: str = "en",
        expiry_seconds: float = DEFAULT_STATE_EXPIRY_SECONDS,
        keep_alive: KeepAlive | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize an idle store bound to its durable backing store."""

        self._storage = storage
        self._language = language
        self._expiry_seconds = expiry_seconds
        self._keep_alive = keep_alive if keep_alive is not None else NullKeepAlive()
        self._clock = clock
        self._state = ProcessingSnapshot(status=translate("statusReady", language))

    @property
    def language(self) -> str:
        """Return the language used for status messages."""

        return self._language

    def get_snapshot(self) -> ProcessingSnapshot:
        """Return the current read-only snapshot."""

        return self._state

    def start(self) -> bool:
        """Begin a new job unless one is already active.

        Returns:
            `False` without touching state when a job is active, else `True`.
        """

        if self._state.is_processing:
            logger.warning("Start rejected: a job is already processing.")
            return False

        self._preserve_last_result(self._state.result)
        self._state = ProcessingSnapshot(
            is_processing=True,
            progress=0,
            status=translate("statusStarting", self._language),
            current_stage=ProcessingStage.STARTING,
            start_time=self._clock(),
        )
        self._persist()
        self._keep_alive.arm(self.touch)
        return True

    def update_state(
        self,
        *,
        stage: ProcessingStage | str | None = None,
        progress: int | float | None = None,
        status: str | None = None,
        result: Any = None,
    ) -> ProcessingSnapshot:
        """Merge partial fields into the current state.

        A stage transition marks every lower-order stage as completed; stage
        identifiers given as text are parsed and unknown ones ignored. A progress
        value below the current one is ignored unless it is exactly 0 or 100;
        other fields of the same call are still applied.
        """

        state = self._state
        changes: dict[str, Any] = {}

        if stage is not None and not isinstance(stage, ProcessingStage):
            parsed = parse_stage(stage)
            if parsed is None:
                logger.debug("Ignoring unknown stage {!r}.", stage)
            stage = parsed

        if stage is not None:
            completed = list(state.completed_stages)
            for earlier in stages_before(stage):
                if earlier not in completed:
                    completed.append(earlier)
            changes["current_stage"] = stage
            changes["completed_stages"] = tuple(sorted(completed, key=lambda item: item.order))

        if progress is not None:
            new_progress = _clamp_progress(progress)
            if new_progress < state.progress and new_progress not in (0, 100):
                logger.debug(
                    "Ignoring stale progress {} below current {}.", new_progress, state.progress
                )
            else:
                changes["progress"] = new_progress

        if status is not None:
            changes["status"] = status
        if result is not None:
            changes["result"] = result

        self._state = replace(state, **changes)
        if self._state.is_processing:
            self._persist()
        return self._state

    def cancel(self) -> bool:
        """Mark the active job cancelled without interrupting in-flight work.

        Returns:
            `True` when an active job was cancelled.
        """

        if not self._state.is_processing:
            return False

        self._state = replace(
            self._state,
            is_processing=False,
            is_cancelled=True,
            status=translate("statusCancelled", self._language),
        )
        self._keep_alive.disarm()
        self._clear_snapshot()
        return True

    def complete(self, result: Any = None) -> ProcessingSnapshot:
        """Finish the job successfully and clear its durable snapshot."""

        completed = list(self._state.completed_stages)
        for earlier in stages_before(ProcessingStage.COMPLETE):
            if earlier not in completed:
                completed.append(earlier)
        self._state = replace(
            self._state,
            is_processing=False,
            progress=100,
            status=translate("statusDone", self._language),
            current_stage=ProcessingStage.COMPLETE,
            completed_stages=tuple(sorted(completed, key=lambda item: item.order)),
            result=result if result is not None else self._state.result,
        )
        self._keep_alive.disarm()
        self._clear_snapshot()
        return self._state

    def set_error(self, error: BaseException | str) -> ProcessingSnapshot:
        """Fail the job with an error normalized to the closed taxonomy.

        Errors arriving after a cancellation are dropped so cancellation is
        never reported as a failure.
        """

        if self._state.is_cancelled:
            logger.debug("Ignoring error reported after cancellation: {}", error)
            return self._state

        normalized = normalize_error(error)
        self._state = replace(
            self._state,
            is_processing=False,
            error=normalized.message,
            error_code=normalized.code,
            status=translate("statusError", self._language),
        )
        self._keep_alive.disarm()
        self._clear_snapshot()
        return self._state

    def reset(self) -> None:
        """Return to the idle state and drop the durable snapshot."""

        self._keep_alive.disarm()
        self._state = ProcessingSnapshot(
            status=translate("statusReady", self._language),
            result=self._state.result,
        )
        self._clear_snapshot()

    def touch(self) -> None:
        """Refresh the durable snapshot timestamp while processing."""

        if self._state.is_processing:
            self._persist()

    def restore_from_storage(self) -> ProcessingSnapshot | None:
        """Surface a snapshot left by a previous host process.

        Expired snapshots are discarded. A fresh one becomes a terminal,
        non-resumable interrupted error that keeps its progress and stages.

        Returns:
            The restored snapshot, or `None` when nothing was surfaced.
        """

        if self._state.is_processing:
            return None

        try:
            payload = self._storage.get(SNAPSHOT_KEY)
        except Exception as exc:
            logger.warning("Failed to read processing snapshot: {}", exc)
            return None
        if not isinstance(payload, Mapping):
            return None

        stored = ProcessingSnapshot.from_payload(payload)
        if not stored.is_processing:
            self._clear_snapshot()
            return None

        reference_time = stored.last_update or stored.start_time or 0.0
        age_seconds = self._clock() - reference_time
        if age_seconds > self._expiry_seconds:
            logger.info("Discarding expired processing snapshot (age {:.0f}s).", age_seconds)
            self._clear_snapshot()
            return None

        self._state = replace(
            stored,
            is_processing=False,
            interrupted=True,
            error=translate("statusInterrupted", self._language),
            error_code=ErrorCode.UNKNOWN_ERROR,
            status=translate("statusError", self._language),
        )
        self._clear_snapshot()
        logger.info(
            "Restored interrupted job at stage {} ({}%).",
            stored.current_stage.value if stored.current_stage else "none",
            stored.progress,
        )
        return self._state

    def preserve_result(self) -> bool:
        """Copy the current result into the durable last-result slot now.

        Returns:
            `False` when there is no result to preserve.
        """

        if self._state.result is None:
            return False
        self._preserve_last_result(self._state.result)
        return True

    def load_last_result(self) -> dict[str, object] | None:
        """Return the result preserved from the previous job, if any."""

        try:
            payload = self._storage.get(LAST_RESULT_KEY)
        except Exception as exc:
            logger.warning("Failed to read last processed result: {}", exc)
            return None
        return payload if isinstance(payload, dict) else None

    def _persist(self) -> None:
        """Write the current state through to durable storage."""

        self._state = replace(self._state, last_update=self._clock())
        try:
            self._storage.set(SNAPSHOT_KEY, self._state.to_payload())
        except Exception as exc:
            logger.warning("Failed to persist processing snapshot: {}", exc)

    def _clear_snapshot(self) -> None:
        """Remove the durable snapshot."""

        try:
            self._storage.remove(SNAPSHOT_KEY)
        except Exception as exc:
            logger.warning("Failed to remove processing snapshot: {}", exc)

    def _preserve_last_result(self, result: Any) -> None:
        """Copy the previous job's result into its own durable slot."""

        if result is None:
            return
        as_payload = getattr(result, "as_snapshot_payload", None)
        payload = as_payload() if callable(as_payload) else result
        try:
            self._storage.set(LAST_RESULT_KEY, payload)
        except Exception as exc:
            logger.warning("Failed to preserve last processed result: {}", exc)


def _clamp_progress(value: object) -> int:
    """Coerce a progress value into an integer percentage in `[0, 100]`."""

    try:
        numeric = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, int(round(numeric))))


def _optional_text(value: object) -> str | None:
    """Return stripped text or `None`."""

    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_float(value: object) -> float | None:
    """Return a float value or `None` when missing or malformed."""

    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
