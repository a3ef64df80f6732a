"""Adaptive polling of job state for user-facing observers.

Responsibilities:
- Read snapshots on an interval that tightens when state changes.
- Fall back to a recent durable snapshot when the primary reader fails.
- Back off exponentially on read failures, up to a fixed ceiling.
- Describe a snapshot with a localized, error-code-derived message.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import replace
import time

from loguru import logger

from .io.storage import DurableKeyValueStore
from .locales import error_message, translate
from .state.store import SNAPSHOT_KEY, ProcessingSnapshot

SnapshotReader = Callable[[], ProcessingSnapshot]
FallbackReader = Callable[[], "ProcessingSnapshot | None"]
SnapshotObserver = Callable[[ProcessingSnapshot], None]

CHANGED_INTERVAL_SECONDS = 0.5
PROCESSING_INTERVAL_SECONDS = 1.0
IDLE_INTERVAL_SECONDS = 2.0
MAX_ERROR_INTERVAL_SECONDS = 5.0
FALLBACK_MAX_AGE_SECONDS = 120.0


def durable_snapshot_reader(storage: DurableKeyValueStore) -> FallbackReader:
    """Return a reader of the durable snapshot written by the state store."""

    def _read() -> ProcessingSnapshot | None:
        payload = storage.get(SNAPSHOT_KEY)
        if not isinstance(payload, Mapping):
            return None
        return ProcessingSnapshot.from_payload(payload)

    return _read


class ClientPoller:
    """Deliver job snapshots to an observer with an adaptive interval."""

    def __init__(
        self,
        reader: SnapshotReader,
        observer: SnapshotObserver,
        *,
        fallback_reader: FallbackReader | None = None,
        sleeper: Callable[[float], Awaitable[object]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        fallback_max_age_seconds: float = FALLBACK_MAX_AGE_SECONDS,
    ) -> None:
        """Initialize readers, observer and timing collaborators."""

        self._reader = reader
        self._observer = observer
        self._fallback_reader = fallback_reader
        self._sleeper = sleeper
        self._clock = clock
        self._fallback_max_age_seconds = fallback_max_age_seconds
        self._last_snapshot: ProcessingSnapshot | None = None
        self.interval_seconds = IDLE_INTERVAL_SECONDS

    def poll_once(self) -> ProcessingSnapshot | None:
        """Read and deliver one snapshot, updating the next interval.

        Returns:
            The delivered snapshot, or `None` when no source could be read.
        """

        try:
            snapshot = self._reader()
        except Exception as exc:
            logger.debug("Primary snapshot read failed: {}", exc)
            snapshot = self._read_fallback()
            self.interval_seconds = min(MAX_ERROR_INTERVAL_SECONDS, self.interval_seconds * 2)
            if snapshot is not None:
                self._deliver(snapshot)
            return snapshot

        previous = self._last_snapshot
        changed = previous is None or _observable(snapshot) != _observable(previous)
        self.interval_seconds = self.next_interval(snapshot, changed=changed)
        self._deliver(snapshot)
        return snapshot

    @staticmethod
    def next_interval(snapshot: ProcessingSnapshot, *, changed: bool) -> float:
        """Return the wait before the next read after a successful one."""

        if changed:
            return CHANGED_INTERVAL_SECONDS
        if snapshot.is_processing:
            return PROCESSING_INTERVAL_SECONDS
        return IDLE_INTERVAL_SECONDS

    async def run(
        self,
        until: Callable[[ProcessingSnapshot], bool] | None = None,
        *,
        max_polls: int | None = None,
    ) -> ProcessingSnapshot | None:
        """Poll until `until(snapshot)` is true or `max_polls` reads happened.

        With no stop condition, polling ends once a job is no longer processing.
        """

        stop = until if until is not None else (lambda snapshot: not snapshot.is_processing)
        polls = 0
        last: ProcessingSnapshot | None = None
        while True:
            snapshot = self.poll_once()
            polls += 1
            if snapshot is not None:
                last = snapshot
                if stop(snapshot):
                    return last
            if max_polls is not None and polls >= max_polls:
                return last
            await self._sleeper(self.interval_seconds)

    def _read_fallback(self) -> ProcessingSnapshot | None:
        """Return the durable snapshot when it was written recently enough."""

        if self._fallback_reader is None:
            return None
        try:
            snapshot = self._fallback_reader()
        except Exception as exc:
            logger.debug("Fallback snapshot read failed: {}", exc)
            return None
        if snapshot is None or snapshot.last_update is None:
            return None
        if self._clock() - snapshot.last_update > self._fallback_max_age_seconds:
            return None
        return snapshot

    def _deliver(self, snapshot: ProcessingSnapshot) -> None:
        """Pass a snapshot to the observer and remember it for change detection."""

        self._last_snapshot = snapshot
        self._observer(snapshot)

    @staticmethod
    def describe(snapshot: ProcessingSnapshot, language: str | None = None) -> str:
        """Return the user-visible line for a snapshot."""

        return describe_snapshot(snapshot, language)


def _observable(snapshot: ProcessingSnapshot) -> ProcessingSnapshot:
    """Drop the heartbeat timestamp so refreshes alone do not count as changes."""

    return replace(snapshot, last_update=None)


def describe_snapshot(snapshot: ProcessingSnapshot, language: str | None = None) -> str:
    """Return the user-visible line for a snapshot.

    Errors prefer the localized message of their code; the raw message is used
    only when the code has no translation.
    """

    if snapshot.interrupted:
        return translate("statusInterrupted", language)
    if snapshot.error or snapshot.error_code is not None:
        return error_message(snapshot.error_code, language, fallback=snapshot.error)
    if snapshot.is_processing:
        return f"{snapshot.status} ({snapshot.progress}%)"
    return snapshot.status or translate("statusReady", language)
