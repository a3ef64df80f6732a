"""Domain exceptions and error-code normalization.

Responsibilities:
- Define the closed error taxonomy stored on terminal job failures.
- Provide stage-scoped and provider-scoped exception types.
- Normalize arbitrary exceptions into exactly one taxonomy code.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum


class ErrorCode(str, Enum):
    """Closed taxonomy of terminal failure codes."""

    AUTH_ERROR = "auth_error"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    PARSE_ERROR = "parse_error"
    PROVIDER_ERROR = "provider_error"
    VALIDATION_ERROR = "validation_error"
    UNKNOWN_ERROR = "unknown_error"


# Checked in declaration order; the first matching group wins.
_MESSAGE_PATTERNS: tuple[tuple[ErrorCode, tuple[str, ...]], ...] = (
    (
        ErrorCode.AUTH_ERROR,
        (
            "authentication",
            "401",
            "403",
            "unauthorized",
            "forbidden",
            "invalid api key",
            "api key",
            "api_key",
        ),
    ),
    (
        ErrorCode.RATE_LIMIT,
        ("rate limit", "429", "too many requests", "quota", "rate_limit"),
    ),
    (
        ErrorCode.TIMEOUT,
        ("timeout", "timed out", "aborted", "time limit"),
    ),
    (
        ErrorCode.NETWORK_ERROR,
        (
            "network",
            "connection",
            "econnreset",
            "econnrefused",
            "enotfound",
            "failed to fetch",
            "name resolution",
            "unreachable",
        ),
    ),
    (
        ErrorCode.PARSE_ERROR,
        ("json", "parse", "parsing", "unexpected token", "malformed", "invalid response"),
    ),
    (
        ErrorCode.VALIDATION_ERROR,
        ("validation", "invalid", "required", "missing", "too long", "exceeds"),
    ),
    (
        ErrorCode.PROVIDER_ERROR,
        ("provider", "server error", "service unavailable", "overloaded", "bad gateway"),
    ),
)


class PipelineStageError(RuntimeError):
    """Raised when a specific pipeline stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
        code: ErrorCode | None = None,
    ) -> None:
        """Initialize a stage-scoped pipeline error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint
        self.code = code


class ProviderError(RuntimeError):
    """Raised when a provider request fails or returns malformed output."""

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
        provider_code: str | None = None,
        code: ErrorCode | None = None,
        retry_after_seconds: float | None = None,
    ) -> None:
        """Initialize provider error metadata for stage-aware diagnostics."""

        super().__init__(message)
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.provider_code = provider_code
        self.code = code
        self.retry_after_seconds = retry_after_seconds


class ChunkConversionError(RuntimeError):
    """Raised when one text chunk cannot be converted to audio.

    Attributes:
        chunk_number: 1-based position of the failing chunk in dispatch order.
        code: Normalized taxonomy code of the underlying failure.
    """

    def __init__(self, *, chunk_number: int, cause: BaseException) -> None:
        """Wrap an underlying conversion failure with its chunk position."""

        normalized = normalize_error(cause)
        super().__init__(f"Failed to convert segment {chunk_number}: {normalized.message}")
        self.chunk_number = chunk_number
        self.code = normalized.code


class JobCancelledError(RuntimeError):
    """Raised at a stage checkpoint after the job has been cancelled."""

    def __init__(self, stage: str) -> None:
        """Record the stage checkpoint that observed the cancellation."""

        super().__init__(f"Job cancelled before stage `{stage}`.")
        self.stage = stage


@dataclass(frozen=True, slots=True)
class NormalizedError:
    """Error message paired with exactly one taxonomy code."""

    message: str
    code: ErrorCode


def detect_error_code(message: str, status_code: int | None = None) -> ErrorCode:
    """Classify an error from its HTTP-like status and message text."""

    if status_code in (401, 403):
        return ErrorCode.AUTH_ERROR
    if status_code == 429:
        return ErrorCode.RATE_LIMIT
    if status_code is not None and status_code >= 500:
        return ErrorCode.PROVIDER_ERROR

    lowered = message.lower()
    for code, patterns in _MESSAGE_PATTERNS:
        if any(pattern in lowered for pattern in patterns):
            return code
    return ErrorCode.UNKNOWN_ERROR


def coerce_error_code(value: object) -> ErrorCode | None:
    """Return a taxonomy member for a code-like value, or `None` when unknown."""

    if isinstance(value, ErrorCode):
        return value
    if isinstance(value, str):
        try:
            return ErrorCode(value.strip().lower())
        except ValueError:
            return None
    return None


def normalize_error(error: BaseException | str) -> NormalizedError:
    """Normalize a string or exception into a message and one taxonomy code.

    An explicit `code` attribute on the exception wins; otherwise the status
    code and message patterns decide, falling back to `unknown_error`.
    """

    if isinstance(error, str):
        message = error.strip() or "Unknown error"
        return NormalizedError(message=message, code=detect_error_code(message))

    message = str(error).strip() or type(error).__name__
    explicit = coerce_error_code(getattr(error, "code", None))
    if explicit is not None:
        return NormalizedError(message=message, code=explicit)

    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        return NormalizedError(message=message, code=ErrorCode.TIMEOUT)
    if isinstance(error, ConnectionError):
        return NormalizedError(message=message, code=ErrorCode.NETWORK_ERROR)

    status_code = getattr(error, "status_code", None)
    if not isinstance(status_code, int):
        status_code = None
    return NormalizedError(message=message, code=detect_error_code(message, status_code))
