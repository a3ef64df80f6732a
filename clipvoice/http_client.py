"""Shared `requests`-based HTTP plumbing for provider clients.

Responsibilities:
- Send JSON POST requests with a fixed per-call timeout.
- Map transport and HTTP failures to `ProviderError` with a taxonomy code,
  status code and optional `Retry-After` delay.
- Redact key-like tokens from provider error bodies.
"""

from __future__ import annotations

import json
import re
import socket
from typing import Any

import requests

from .errors import ErrorCode, ProviderError, detect_error_code

_FAILURE_KIND_CODES: dict[str, ErrorCode] = {
    "invalid_api_key": ErrorCode.AUTH_ERROR,
    "insufficient_quota": ErrorCode.RATE_LIMIT,
    "rate_limited": ErrorCode.RATE_LIMIT,
    "invalid_model": ErrorCode.VALIDATION_ERROR,
    "timeout": ErrorCode.TIMEOUT,
    "transport": ErrorCode.NETWORK_ERROR,
    "malformed_response": ErrorCode.PARSE_ERROR,
}


class ProviderHttpClient:
    """Shared provider HTTP settings and helpers used by vendor-specific clients."""

    provider_label = "Provider"
    _MAX_PROVIDER_MESSAGE_CHARS = 180

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str,
        timeout_seconds: float = 120.0,
    ) -> None:
        """Initialize HTTP client settings."""

        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def _require_api_key(self) -> None:
        """Require API key presence before issuing requests."""

        if not self.api_key:
            raise ProviderError(
                f"Missing {self.provider_label} API key.",
                failure_kind="invalid_api_key",
                code=ErrorCode.AUTH_ERROR,
            )

    def _auth_headers(self) -> dict[str, str]:
        """Return authentication headers for one request."""

        return {"Authorization": f"Bearer {self.api_key}"}

    def _post_json_bytes(
        self,
        *,
        endpoint_path: str,
        payload: dict[str, Any],
        require_non_empty_response: bool = False,
        empty_response_message: str | None = None,
    ) -> bytes:
        """POST a JSON payload and return raw response bytes, mapping failures."""

        endpoint = f"{self.base_url}{endpoint_path}"
        headers = {**self._auth_headers(), "Content-Type": "application/json"}
        try:
            response = requests.post(
                endpoint,
                headers=headers,
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            response_bytes = bytes(response.content)
        except requests.HTTPError as exc:
            raise self._http_error_to_provider_error(exc) from exc
        except requests.RequestException as exc:
            failure_kind = self._classify_transport_failure(exc)
            if failure_kind == "timeout":
                detail = f"{self.provider_label} request timed out."
            else:
                detail = (
                    f"{self.provider_label} request transport error: "
                    f"{self._short_message(str(exc))}"
                )
            raise ProviderError(
                detail,
                failure_kind=failure_kind,
                code=_FAILURE_KIND_CODES[failure_kind],
            ) from exc
        except TimeoutError as exc:
            raise ProviderError(
                f"{self.provider_label} request timed out.",
                failure_kind="timeout",
                code=ErrorCode.TIMEOUT,
            ) from exc

        if require_non_empty_response and not response_bytes:
            raise ProviderError(
                empty_response_message or f"{self.provider_label} response is empty.",
                failure_kind="malformed_response",
                code=ErrorCode.PARSE_ERROR,
            )
        return response_bytes

    @staticmethod
    def _decode_error_body(exc: requests.HTTPError) -> str:
        """Decode an HTTP error body into a best-effort UTF-8 payload string."""

        response = exc.response
        if response is None:
            return ""
        return bytes(response.content or b"").decode("utf-8", errors="replace").strip()

    @classmethod
    def _redact_sensitive_tokens(cls, text: str) -> str:
        """Redact API-key-like tokens from provider error content."""

        redacted = re.sub(r"\bsk-[A-Za-z0-9_-]{8,}\b", "[redacted-key]", text)
        redacted = re.sub(
            r"(?i)bearer\s+[A-Za-z0-9._-]{12,}",
            "Bearer [redacted-token]",
            redacted,
        )
        return redacted

    @classmethod
    def _short_message(cls, text: str) -> str:
        """Normalize and cap user-facing provider message length."""

        compact = " ".join(text.split())
        if len(compact) <= cls._MAX_PROVIDER_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_PROVIDER_MESSAGE_CHARS - 1]}..."

    @classmethod
    def _extract_provider_message(cls, body: str) -> tuple[str, str | None]:
        """Extract a concise provider message and optional provider error code.

        Accepts both `{"error": {...}}` and `{"detail": ...}` error envelopes.
        """

        if not body:
            return "", None

        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return cls._short_message(cls._redact_sensitive_tokens(body)), None

        provider_code: str | None = None
        message: str | None = None
        if isinstance(payload, dict):
            error_payload = payload.get("error")
            if not isinstance(error_payload, dict):
                error_payload = payload.get("detail")
            if isinstance(error_payload, dict):
                code_value = error_payload.get("code") or error_payload.get("status")
                if isinstance(code_value, str) and code_value.strip():
                    provider_code = code_value.strip()
                message_value = error_payload.get("message")
                if isinstance(message_value, str) and message_value.strip():
                    message = message_value.strip()
            elif isinstance(error_payload, str) and error_payload.strip():
                message = error_payload.strip()

        if message is None:
            message = body

        return cls._short_message(cls._redact_sensitive_tokens(message)), provider_code

    @staticmethod
    def _classify_http_failure(
        status_code: int,
        provider_message: str,
        provider_code: str | None,
    ) -> str:
        """Classify HTTP errors into deterministic diagnostic kinds."""

        message_lower = provider_message.lower()
        normalized_code = provider_code.lower() if provider_code is not None else ""

        if status_code in {401, 403} or "api key" in message_lower:
            return "invalid_api_key"
        if normalized_code == "insufficient_quota" or (
            status_code == 429 and "quota" in message_lower
        ):
            return "insufficient_quota"
        if status_code == 429:
            return "rate_limited"
        if normalized_code == "model_not_found" or (
            "model" in message_lower
            and any(phrase in message_lower for phrase in ("not found", "does not exist", "invalid"))
        ):
            return "invalid_model"
        if status_code in {408, 504} or "timeout" in message_lower or "timed out" in message_lower:
            return "timeout"
        return "http_error"

    @staticmethod
    def _classify_transport_failure(reason: object) -> str:
        """Classify network-layer failures into deterministic diagnostic kinds."""

        if isinstance(reason, (TimeoutError, socket.timeout, requests.Timeout)):
            return "timeout"
        return "transport"

    @staticmethod
    def _retry_after_seconds(response: requests.Response | None) -> float | None:
        """Parse a numeric `Retry-After` header into seconds."""

        if response is None:
            return None
        headers = getattr(response, "headers", None) or {}
        raw_value = headers.get("Retry-After")
        if raw_value is None:
            return None
        try:
            seconds = float(str(raw_value).strip())
        except ValueError:
            return None
        return seconds if seconds >= 0 else None

    @classmethod
    def _http_error_to_provider_error(cls, exc: requests.HTTPError) -> ProviderError:
        """Convert HTTP errors into normalized provider exceptions with metadata."""

        status_code = exc.response.status_code if exc.response is not None else 0
        body = cls._decode_error_body(exc)
        provider_message, provider_code = cls._extract_provider_message(body)
        failure_kind = cls._classify_http_failure(status_code, provider_message, provider_code)

        headline = {
            "invalid_api_key": f"{cls.provider_label} authentication failed",
            "insufficient_quota": f"{cls.provider_label} quota is insufficient for this request",
            "rate_limited": f"{cls.provider_label} rate limit reached",
            "invalid_model": f"{cls.provider_label} rejected the selected model",
            "timeout": f"{cls.provider_label} request timed out",
        }.get(failure_kind, f"{cls.provider_label} request failed")

        if provider_message:
            detail = f"{headline} (HTTP {status_code}): {provider_message}"
        else:
            detail = f"{headline} (HTTP {status_code})."

        code = _FAILURE_KIND_CODES.get(failure_kind)
        if code is None:
            code = detect_error_code(provider_message, status_code)
            if code is ErrorCode.UNKNOWN_ERROR:
                code = ErrorCode.PROVIDER_ERROR

        return ProviderError(
            detail,
            failure_kind=failure_kind,
            status_code=status_code,
            provider_code=provider_code,
            code=code,
            retry_after_seconds=cls._retry_after_seconds(exc.response),
        )
