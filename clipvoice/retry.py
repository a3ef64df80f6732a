"""Retry/backoff wrapper for outbound provider calls.

Responsibilities:
- Classify failures as retryable via a custom predicate, an HTTP-like status in
  a configured set, or a timeout/transport signal.
- Wait on a clamped delay schedule with a non-blocking `asyncio.sleep`.
- Re-raise non-retryable and exhausted failures unchanged.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from .telemetry.logger import RunLogger

_Result = TypeVar("_Result")

DEFAULT_MAX_ATTEMPTS = 8
DEFAULT_DELAY_SCHEDULE: tuple[float, ...] = (2.0, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0, 300.0)
DEFAULT_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
MIN_JITTERED_DELAY_SECONDS = 0.1

_RETRYABLE_FAILURE_KINDS = frozenset({"timeout", "transport"})
_NETWORK_MESSAGE_PATTERNS = (
    "network",
    "connection",
    "econnreset",
    "econnrefused",
    "etimedout",
    "socket hang up",
    "failed to fetch",
    "temporarily unavailable",
)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Per-call-site retry configuration.

    Attributes:
        max_attempts: Number of retries after the first call; the operation is
            invoked at most `max_attempts + 1` times.
        delay_schedule: Waits in seconds indexed by retry number, clamped to
            the last entry.
        retryable_predicate: Optional custom classifier replacing the default.
        retryable_status_codes: Statuses treated as transient by default.
        jitter_ratio: Symmetric random spread applied to each wait.
        honor_retry_after: Whether an error's `retry_after_seconds` overrides
            the scheduled wait.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    delay_schedule: tuple[float, ...] = DEFAULT_DELAY_SCHEDULE
    retryable_predicate: Callable[[BaseException], bool] | None = None
    retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES
    jitter_ratio: float = 0.0
    honor_retry_after: bool = True

    def __post_init__(self) -> None:
        """Validate attempt budget and schedule shape."""

        if self.max_attempts < 0:
            raise ValueError("`max_attempts` must be zero or greater.")
        if not self.delay_schedule:
            raise ValueError("`delay_schedule` must contain at least one delay.")
        if any(delay < 0 for delay in self.delay_schedule):
            raise ValueError("`delay_schedule` entries must be non-negative.")
        if not 0.0 <= self.jitter_ratio < 1.0:
            raise ValueError("`jitter_ratio` must be in [0, 1).")

    def scheduled_delay(self, retry_index: int) -> float:
        """Return the scheduled wait for a 0-based retry index."""

        clamped = min(max(retry_index, 0), len(self.delay_schedule) - 1)
        return self.delay_schedule[clamped]

    def is_retryable(self, error: BaseException) -> bool:
        """Classify one failure with the custom predicate or default rules."""

        if self.retryable_predicate is not None:
            return bool(self.retryable_predicate(error))
        return is_transient_error(error, self.retryable_status_codes)


def is_transient_error(
    error: BaseException,
    retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES,
) -> bool:
    """Return whether a failure looks transient under the default rules."""

    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int) and status_code in retryable_status_codes:
        return True
    if getattr(error, "failure_kind", None) in _RETRYABLE_FAILURE_KINDS:
        return True
    if isinstance(error, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
        return True
    if isinstance(status_code, int):
        return False
    message = str(error).lower()
    return any(pattern in message for pattern in _NETWORK_MESSAGE_PATTERNS)


class RetryExecutor:
    """Stateless retry loop shared by every outbound call."""

    def __init__(
        self,
        *,
        sleeper: Callable[[float], Awaitable[object]] = asyncio.sleep,
        random_source: Callable[[], float] = random.random,
        run_logger: RunLogger | None = None,
    ) -> None:
        """Initialize wait, jitter and logging collaborators."""

        self._sleeper = sleeper
        self._random_source = random_source
        self._run_logger = run_logger

    async def execute(
        self,
        operation: Callable[[], Awaitable[_Result]],
        policy: RetryPolicy | None = None,
        *,
        on_retry: Callable[[int, float], None] | None = None,
        operation_name: str = "request",
    ) -> _Result:
        """Await `operation`, retrying transient failures per `policy`.

        Args:
            operation: Zero-argument coroutine factory, invoked once per attempt.
            policy: Retry configuration; defaults to `RetryPolicy()`.
            on_retry: Observer called with the 1-based retry number and the
                wait in seconds, before each wait.
            operation_name: Label used in retry log events.

        Raises:
            Exception: The last failure, unchanged, when it is not retryable or
                the attempt budget is exhausted.
        """

        resolved_policy = policy if policy is not None else RetryPolicy()
        retry_index = 0
        while True:
            try:
                return await operation()
            except Exception as exc:
                if retry_index >= resolved_policy.max_attempts:
                    raise
                if not resolved_policy.is_retryable(exc):
                    raise
                delay = self._resolve_delay(resolved_policy, retry_index, exc)
                retry_index += 1
                if on_retry is not None:
                    on_retry(retry_index, delay)
                if self._run_logger is not None:
                    self._run_logger.log_retry_scheduled(operation_name, retry_index, delay)
                await self._sleeper(delay)

    def _resolve_delay(self, policy: RetryPolicy, retry_index: int, error: BaseException) -> float:
        """Compute the wait before the next attempt."""

        delay = policy.scheduled_delay(retry_index)
        if policy.honor_retry_after:
            retry_after = getattr(error, "retry_after_seconds", None)
            if isinstance(retry_after, (int, float)) and retry_after >= 0:
                delay = float(retry_after)
        if policy.jitter_ratio > 0.0:
            spread = (self._random_source() * 2.0 - 1.0) * policy.jitter_ratio
            delay = max(MIN_JITTERED_DELAY_SECONDS, delay * (1.0 + spread))
        return delay
