"""Keep-alive heartbeat armed while a job is processing.

Responsibilities:
- Periodically invoke a beat callback so the durable snapshot stays fresh.
- Arm and disarm idempotently from synchronous state-store mutators.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol

from loguru import logger


class KeepAlive(Protocol):
    """Protocol for mechanisms that keep the host active during a job."""

    def arm(self, beat: Callable[[], None]) -> None:
        """Start periodic beats."""

    def disarm(self) -> None:
        """Stop periodic beats."""


class NullKeepAlive:
    """Keep-alive that does nothing, for hosts that never suspend."""

    def arm(self, beat: Callable[[], None]) -> None:
        """Ignore arm requests."""

    def disarm(self) -> None:
        """Ignore disarm requests."""


class HeartbeatKeepAlive:
    """Asyncio task that calls the beat callback every `interval_seconds`."""

    def __init__(self, interval_seconds: float = 5.0) -> None:
        """Initialize heartbeat interval."""

        if interval_seconds <= 0:
            raise ValueError("`interval_seconds` must be positive.")
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def is_armed(self) -> bool:
        """Return whether a heartbeat task is running."""

        return self._task is not None and not self._task.done()

    def arm(self, beat: Callable[[], None]) -> None:
        """Start the heartbeat on the running event loop."""

        self.disarm()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("Keep-alive not armed: no running event loop.")
            return
        self._task = loop.create_task(self._run(beat))

    def disarm(self) -> None:
        """Cancel the heartbeat task if one is running."""

        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self, beat: Callable[[], None]) -> None:
        """Invoke `beat` periodically until cancelled."""

        while True:
            await asyncio.sleep(self.interval_seconds)
            beat()
