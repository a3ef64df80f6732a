"""ElevenLabs HTTP client for speech synthesis."""

from __future__ import annotations

from typing import Any

from ..http_client import ProviderHttpClient

ELEVENLABS_BASE_URL = "https://api.elevenlabs.io/v1"


class ElevenLabsSpeechClient(ProviderHttpClient):
    """Minimal requests-based ElevenLabs text-to-speech client."""

    provider_label = "ElevenLabs"

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = ELEVENLABS_BASE_URL,
        timeout_seconds: float = 120.0,
    ) -> None:
        """Initialize ElevenLabs HTTP client settings."""

        super().__init__(api_key=api_key, base_url=base_url, timeout_seconds=timeout_seconds)

    def _auth_headers(self) -> dict[str, str]:
        """ElevenLabs authenticates with the `xi-api-key` header."""

        return {"xi-api-key": self.api_key}

    def synthesize_speech(
        self,
        *,
        voice_id: str,
        text: str,
        model_id: str,
        output_format: str = "mp3_44100_128",
        speed: float = 1.0,
        stability: float = 0.5,
        similarity_boost: float = 0.75,
    ) -> bytes:
        """Return audio bytes in the requested ElevenLabs output format."""

        self._require_api_key()

        payload: dict[str, Any] = {
            "text": text,
            "model_id": model_id,
            "voice_settings": {
                "stability": stability,
                "similarity_boost": similarity_boost,
                "speed": speed,
            },
        }
        return self._post_json_bytes(
            endpoint_path=f"/text-to-speech/{voice_id}?output_format={output_format}",
            payload=payload,
            require_non_empty_response=True,
            empty_response_message="ElevenLabs speech response is empty.",
        )
