"""Unit tests for job lifecycle state, write-through snapshots and restore."""

from __future__ import annotations

import asyncio

import pytest

from clipvoice.errors import ErrorCode, ProviderError
from clipvoice.io.storage import MemoryKeyValueStore
from clipvoice.models.datatypes import JobResult
from clipvoice.state.keepalive import HeartbeatKeepAlive
from clipvoice.state.stages import ProcessingStage, stages_before
from clipvoice.state.store import (
    LAST_RESULT_KEY,
    SNAPSHOT_KEY,
    ProcessingSnapshot,
    ProcessingStateStore,
)
from tests.fixture_builders import ManualClock


class _RecordingKeepAlive:
    """Keep-alive double recording arm/disarm calls."""

    def __init__(self) -> None:
        """Initialize call log."""

        self.calls: list[str] = []

    def arm(self, beat: object) -> None:
        """Record an arm call."""

        _ = beat
        self.calls.append("arm")

    def disarm(self) -> None:
        """Record a disarm call."""

        self.calls.append("disarm")


class _FailingStorage(MemoryKeyValueStore):
    """Durable store whose writes always fail."""

    def set(self, key: str, value: object) -> None:
        """Raise on every write."""

        raise OSError("disk full")


def _store(
    storage: MemoryKeyValueStore,
    clock: ManualClock | None = None,
    **kwargs: object,
) -> ProcessingStateStore:
    """Build a state store on a manual clock."""

    return ProcessingStateStore(
        storage=storage,
        clock=clock if clock is not None else ManualClock(),
        **kwargs,  # type: ignore[arg-type]
    )


def test_start_is_single_flight(memory_store: MemoryKeyValueStore) -> None:
    """A second start while processing should be rejected without touching state."""

    store = _store(memory_store)

    assert store.start() is True
    store.update_state(progress=40, status="busy")
    before = store.get_snapshot()

    assert store.start() is False
    assert store.get_snapshot() == before


def test_start_writes_snapshot_through_and_arms_keep_alive(
    memory_store: MemoryKeyValueStore,
) -> None:
    """Starting should persist the snapshot immediately and arm the keep-alive."""

    keep_alive = _RecordingKeepAlive()
    store = _store(memory_store, keep_alive=keep_alive)

    store.start()

    payload = memory_store.get(SNAPSHOT_KEY)
    assert payload is not None
    assert payload["is_processing"] is True
    assert payload["current_stage"] == "starting"
    assert keep_alive.calls == ["arm"]


def test_progress_is_monotonic_except_zero_and_hundred(memory_store: MemoryKeyValueStore) -> None:
    """Lower progress values should be ignored unless they are exactly 0 or 100."""

    store = _store(memory_store)
    store.start()

    store.update_state(progress=50)
    store.update_state(progress=30, status="still applied")
    snapshot = store.get_snapshot()
    assert snapshot.progress == 50
    assert snapshot.status == "still applied"

    store.update_state(progress=0)
    assert store.get_snapshot().progress == 0


def test_progress_is_clamped_to_percentage_range(memory_store: MemoryKeyValueStore) -> None:
    """Progress reports outside `[0, 100]` should be clamped."""

    store = _store(memory_store)
    store.start()

    store.update_state(progress=250)
    assert store.get_snapshot().progress == 100


def test_stage_transition_marks_lower_order_stages_completed(
    memory_store: MemoryKeyValueStore,
) -> None:
    """Reporting a stage should mark every lower-order stage completed, in order."""

    store = _store(memory_store)
    store.start()

    snapshot = store.update_state(stage=ProcessingStage.TRANSLATING)

    assert snapshot.current_stage is ProcessingStage.TRANSLATING
    assert snapshot.completed_stages == stages_before(ProcessingStage.TRANSLATING)
    assert ProcessingStage.EXTRACTING_SUBTITLES in snapshot.completed_stages
    assert ProcessingStage.TRANSLATING not in snapshot.completed_stages


def test_every_active_mutation_reaches_durable_snapshot(
    memory_store: MemoryKeyValueStore, manual_clock: ManualClock
) -> None:
    """Each mutation while processing should write a durable payload with a fresh timestamp."""

    store = _store(memory_store, clock=manual_clock)
    store.start()
    manual_clock.advance(3)

    store.update_state(stage=ProcessingStage.EXTRACTING, progress=5, status="Extracting")

    payload = memory_store.get(SNAPSHOT_KEY)
    assert payload["progress"] == 5
    assert payload["status"] == "Extracting"
    assert payload["completed_stages"] == ["starting", "analyzing"]
    assert payload["last_update"] == manual_clock.now
    assert "result" not in payload


def test_cancel_clears_snapshot_and_ignores_later_errors(memory_store: MemoryKeyValueStore) -> None:
    """Cancellation should be terminal and never turn into a reported failure."""

    keep_alive = _RecordingKeepAlive()
    store = _store(memory_store, keep_alive=keep_alive)
    store.start()

    assert store.cancel() is True
    snapshot = store.set_error(ProviderError("late failure", status_code=500))

    assert snapshot.is_processing is False
    assert snapshot.is_cancelled is True
    assert snapshot.error is None
    assert memory_store.get(SNAPSHOT_KEY) is None
    assert keep_alive.calls == ["arm", "disarm"]


def test_cancel_without_active_job_is_noop(memory_store: MemoryKeyValueStore) -> None:
    """Cancelling an idle store should report that nothing was cancelled."""

    store = _store(memory_store)

    assert store.cancel() is False
    assert store.get_snapshot().is_cancelled is False


def test_set_error_normalizes_to_taxonomy_code(memory_store: MemoryKeyValueStore) -> None:
    """Failures should store a message and exactly one taxonomy code."""

    store = _store(memory_store)
    store.start()

    snapshot = store.set_error(RuntimeError("429 Too Many Requests"))

    assert snapshot.is_processing is False
    assert snapshot.error == "429 Too Many Requests"
    assert snapshot.error_code is ErrorCode.RATE_LIMIT
    assert memory_store.get(SNAPSHOT_KEY) is None


def test_complete_sets_terminal_state_and_clears_snapshot(memory_store: MemoryKeyValueStore) -> None:
    """Completion should reach 100%, mark every stage done and drop the durable copy."""

    store = _store(memory_store)
    store.start()
    store.update_state(stage=ProcessingStage.GENERATING, progress=90)

    snapshot = store.complete({"title": "Done"})

    assert snapshot.progress == 100
    assert snapshot.current_stage is ProcessingStage.COMPLETE
    assert snapshot.completed_stages == stages_before(ProcessingStage.COMPLETE)
    assert snapshot.result == {"title": "Done"}
    assert memory_store.get(SNAPSHOT_KEY) is None


def test_restore_surfaces_interrupted_job_as_terminal_error(
    memory_store: MemoryKeyValueStore, manual_clock: ManualClock
) -> None:
    """A fresh durable snapshot should come back as a non-resumable interrupted error."""

    first = _store(memory_store, clock=manual_clock)
    first.start()
    first.update_state(stage=ProcessingStage.TRANSLATING, progress=42, status="Translating")

    manual_clock.advance(60)
    second = _store(memory_store, clock=manual_clock)
    restored = second.restore_from_storage()

    assert restored is not None
    assert restored.is_processing is False
    assert restored.interrupted is True
    assert restored.progress == 42
    assert restored.current_stage is ProcessingStage.TRANSLATING
    assert restored.error_code is ErrorCode.UNKNOWN_ERROR
    assert memory_store.get(SNAPSHOT_KEY) is None
    assert second.start() is True


def test_restore_discards_expired_snapshot(
    memory_store: MemoryKeyValueStore, manual_clock: ManualClock
) -> None:
    """Snapshots older than the expiry window should be discarded silently."""

    first = _store(memory_store, clock=manual_clock, expiry_seconds=100)
    first.start()

    manual_clock.advance(101)
    second = _store(memory_store, clock=manual_clock, expiry_seconds=100)

    assert second.restore_from_storage() is None
    assert memory_store.get(SNAPSHOT_KEY) is None
    assert second.get_snapshot().interrupted is False


def test_restore_ignores_missing_or_idle_snapshot(memory_store: MemoryKeyValueStore) -> None:
    """Nothing should be surfaced when no active job was persisted."""

    store = _store(memory_store)
    assert store.restore_from_storage() is None

    memory_store.set(SNAPSHOT_KEY, ProcessingSnapshot(is_processing=False).to_payload())
    assert store.restore_from_storage() is None
    assert memory_store.get(SNAPSHOT_KEY) is None


def test_persistence_failures_do_not_break_mutators() -> None:
    """Write-through failures should be logged, never raised from mutators."""

    store = ProcessingStateStore(storage=_FailingStorage())

    assert store.start() is True
    snapshot = store.update_state(progress=10)

    assert snapshot.progress == 10
    assert store.complete().progress == 100


def test_previous_result_is_preserved_when_next_job_starts(
    memory_store: MemoryKeyValueStore,
) -> None:
    """Starting a job should copy the previous job's result into its own slot."""

    store = _store(memory_store)
    store.start()
    result = JobResult(
        output_format="text",
        filename="a.txt",
        data=b"hello",
        title="A",
        text="hello",
    )
    store.complete(result)

    store.start()

    preserved = store.load_last_result()
    assert preserved is not None
    assert preserved["title"] == "A"
    assert preserved["text"] == "hello"
    assert preserved["byte_count"] == 5
    assert memory_store.get(LAST_RESULT_KEY) == preserved


def test_preserve_result_without_result_returns_false(memory_store: MemoryKeyValueStore) -> None:
    """Preserving with no result in memory should be a reported no-op."""

    store = _store(memory_store)

    assert store.preserve_result() is False
    assert store.load_last_result() is None


def test_snapshot_payload_round_trip_ignores_unknown_stages() -> None:
    """Unknown stored stage identifiers should be dropped on load."""

    snapshot = ProcessingSnapshot.from_payload(
        {
            "is_processing": True,
            "progress": "37",
            "current_stage": "mystery",
            "completed_stages": ["extracting", "mystery", "starting"],
            "error_code": "not-a-code",
        }
    )

    assert snapshot.progress == 37
    assert snapshot.current_stage is None
    assert snapshot.completed_stages == (ProcessingStage.STARTING, ProcessingStage.EXTRACTING)
    assert snapshot.error_code is None


@pytest.mark.parametrize(
    ("stage", "expected_count"),
    [
        (ProcessingStage.STARTING, 0),
        (ProcessingStage.EXTRACTING, 2),
        (ProcessingStage.PROCESSING_SUBTITLES, 4),
        (ProcessingStage.COMPLETE, 8),
    ],
)
def test_stages_before_follows_declared_order(stage: ProcessingStage, expected_count: int) -> None:
    """Implied completion should use the declared fractional stage order."""

    assert len(stages_before(stage)) == expected_count


def test_reset_returns_to_idle_and_clears_snapshot(memory_store: MemoryKeyValueStore) -> None:
    """Reset should drop the active job and its durable snapshot."""

    store = _store(memory_store)
    store.start()
    store.update_state(stage=ProcessingStage.EXTRACTING, progress=20)

    store.reset()

    snapshot = store.get_snapshot()
    assert snapshot.is_processing is False
    assert snapshot.progress == 0
    assert snapshot.current_stage is None
    assert memory_store.get(SNAPSHOT_KEY) is None
    assert store.start() is True


def test_stage_given_as_text_is_parsed_and_unknown_text_ignored(
    memory_store: MemoryKeyValueStore,
) -> None:
    """Text stage identifiers should be parsed; unknown ones leave the stage unchanged."""

    store = _store(memory_store)
    store.start()

    store.update_state(stage="generating", progress=70)  # type: ignore[arg-type]
    store.update_state(stage="rendering", status="unknown stage")  # type: ignore[arg-type]

    snapshot = store.get_snapshot()
    assert snapshot.current_stage is ProcessingStage.GENERATING
    assert ProcessingStage.TRANSLATING in snapshot.completed_stages
    assert snapshot.progress == 70
    assert snapshot.status == "unknown stage"
    assert memory_store.get(SNAPSHOT_KEY)["current_stage"] == "generating"


def test_heartbeat_refreshes_snapshot_until_completion(
    memory_store: MemoryKeyValueStore,
    manual_clock: ManualClock,
) -> None:
    """An armed heartbeat should rewrite the snapshot and stop once the job completes."""

    keep_alive = HeartbeatKeepAlive(interval_seconds=0.01)
    store = _store(memory_store, manual_clock, keep_alive=keep_alive)

    async def _run_job() -> tuple[float, float, bool]:
        """Start, let the heartbeat beat on an advanced clock, then complete."""

        assert store.start() is True
        started = memory_store.get(SNAPSHOT_KEY)["last_update"]
        manual_clock.advance(5)
        await asyncio.sleep(0.05)
        refreshed = memory_store.get(SNAPSHOT_KEY)["last_update"]
        armed = keep_alive.is_armed
        store.complete()
        return started, refreshed, armed

    started, refreshed, armed = asyncio.run(_run_job())

    assert started == 1_000.0
    assert refreshed == 1_005.0
    assert armed is True
    assert keep_alive.is_armed is False
    assert memory_store.get(SNAPSHOT_KEY) is None


def test_heartbeat_is_disarmed_by_cancel(memory_store: MemoryKeyValueStore) -> None:
    """Cancelling the job should stop the heartbeat."""

    keep_alive = HeartbeatKeepAlive(interval_seconds=0.01)
    store = _store(memory_store, keep_alive=keep_alive)

    async def _cancel_job() -> bool:
        """Start a job and cancel it inside the loop."""

        store.start()
        armed = keep_alive.is_armed
        store.cancel()
        return armed

    assert asyncio.run(_cancel_job()) is True
    assert keep_alive.is_armed is False


def test_heartbeat_without_running_loop_is_not_armed(memory_store: MemoryKeyValueStore) -> None:
    """Arming outside an event loop should be a no-op that still lets the job start."""

    keep_alive = HeartbeatKeepAlive(interval_seconds=0.01)
    store = _store(memory_store, keep_alive=keep_alive)

    assert store.start() is True
    assert keep_alive.is_armed is False
    assert memory_store.get(SNAPSHOT_KEY)["is_processing"] is True


def test_heartbeat_rejects_non_positive_interval() -> None:
    """The heartbeat interval must be positive."""

    with pytest.raises(ValueError, match="interval_seconds"):
        HeartbeatKeepAlive(interval_seconds=0)
