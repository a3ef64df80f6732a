"""OpenAI HTTP clients for text generation and speech synthesis.

Responsibilities:
- Send minimal chat-completions and speech requests to OpenAI's REST API.
- Normalize response extraction, including structured JSON output.
- Raise `ProviderError` instances classified into the error taxonomy.
"""

from __future__ import annotations

import json
from typing import Any

from ..errors import ErrorCode, ProviderError
from ..http_client import ProviderHttpClient

OPENAI_BASE_URL = "https://api.openai.com/v1"


class _OpenAIBaseClient(ProviderHttpClient):
    """OpenAI endpoint defaults shared by stage-specific clients."""

    provider_label = "OpenAI"

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = OPENAI_BASE_URL,
        timeout_seconds: float = 120.0,
    ) -> None:
        """Initialize OpenAI HTTP client settings."""

        super().__init__(api_key=api_key, base_url=base_url, timeout_seconds=timeout_seconds)


class OpenAIChatClient(_OpenAIBaseClient):
    """Minimal requests-based OpenAI chat-completions HTTP client."""

    def chat_completion_text(
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
        structured: bool = False,
    ) -> str:
        """Return the first assistant text response from a chat-completions request."""

        self._require_api_key()

        payload: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
        }
        if structured:
            payload["response_format"] = {"type": "json_object"}
        raw_payload = self._post_json_bytes(
            endpoint_path="/chat/completions",
            payload=payload,
        ).decode("utf-8", errors="replace")
        return self._extract_message_text(raw_payload)

    def chat_completion_json(
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
    ) -> dict[str, Any]:
        """Return a structured JSON object produced by the model."""

        text = self.chat_completion_text(
            model=model,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            structured=True,
        )
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as exc:
            raise _malformed("OpenAI structured output is not valid JSON.") from exc
        if not isinstance(parsed, dict):
            raise _malformed("OpenAI structured output is not a JSON object.")
        return parsed

    @staticmethod
    def _extract_message_text(raw_payload: str) -> str:
        """Extract first assistant message text from a chat-completions JSON payload."""

        try:
            payload = json.loads(raw_payload)
        except json.JSONDecodeError as exc:
            raise _malformed("OpenAI returned invalid JSON payload.") from exc

        choices = payload.get("choices") if isinstance(payload, dict) else None
        if not isinstance(choices, list) or not choices:
            raise _malformed("OpenAI response missing non-empty `choices` list.")

        first_choice = choices[0]
        if not isinstance(first_choice, dict):
            raise _malformed("OpenAI response `choices[0]` is malformed.")

        message = first_choice.get("message")
        if not isinstance(message, dict):
            raise _malformed("OpenAI response missing `choices[0].message` object.")

        text = OpenAIChatClient._message_content_to_text(message.get("content"))
        normalized = text.strip()
        if not normalized:
            raise _malformed("OpenAI response message content is empty.")
        return normalized

    @staticmethod
    def _message_content_to_text(content: Any) -> str:
        """Convert OpenAI message content variants into a plain text string."""

        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts: list[str] = []
            for item in content:
                if not isinstance(item, dict):
                    continue
                if item.get("type") == "text" and isinstance(item.get("text"), str):
                    parts.append(item["text"])
            return "".join(parts)
        return ""


class OpenAISpeechClient(_OpenAIBaseClient):
    """Minimal requests-based OpenAI speech HTTP client."""

    def synthesize_speech(
        self,
        *,
        model: str,
        voice: str,
        text: str,
        response_format: str = "wav",
        speed: float = 1.0,
        instructions: str | None = None,
    ) -> bytes:
        """Return synthesized audio bytes from OpenAI `/audio/speech`."""

        self._require_api_key()

        payload: dict[str, Any] = {
            "model": model,
            "voice": voice,
            "input": text,
            "response_format": response_format,
            "speed": speed,
        }
        if instructions:
            payload["instructions"] = instructions
        return self._post_json_bytes(
            endpoint_path="/audio/speech",
            payload=payload,
            require_non_empty_response=True,
            empty_response_message="OpenAI speech response is empty.",
        )


def _malformed(message: str) -> ProviderError:
    """Build a parse-classified provider error."""

    return ProviderError(message, failure_kind="malformed_response", code=ErrorCode.PARSE_ERROR)
