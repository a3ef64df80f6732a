"""Speech synthesis capability and its provider variants.

Responsibilities:
- Define the asynchronous `SpeechSynthesis` contract.
- Provide OpenAI, ElevenLabs and offline Piper implementations, each bound to
  its `SpeechProviderSpec`.
- Select an implementation by provider tag through an explicit builder table.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
import subprocess
import tempfile
from typing import Protocol

from ..audio.assembler import PcmFormat, wrap_pcm_as_wav
from ..errors import ErrorCode, ProviderError
from ..llm.openai_client import OpenAISpeechClient
from ..models.datatypes import Credentials, SpeechOptions
from ..parsing import normalize_optional_string
from ..runtime_tools import resolve_executable
from .elevenlabs_client import ElevenLabsSpeechClient
from .providers import SpeechProviderSpec, get_provider_spec

_ELEVENLABS_PCM_FORMAT = PcmFormat(channels=1, sample_rate=24000, bits_per_sample=16)


class SpeechSynthesis(Protocol):
    """Protocol for per-provider text-to-audio capabilities."""

    spec: SpeechProviderSpec

    async def synthesize(self, text: str, options: SpeechOptions) -> bytes:
        """Return audio bytes for text no longer than `spec.max_input_chars`."""


@dataclass(frozen=True, slots=True)
class SpeechBackendSettings:
    """Non-secret settings needed to construct provider variants.

    Attributes:
        timeout_seconds: Per-call HTTP or subprocess timeout.
        piper_model: Path to the Piper `.onnx` voice model for offline runs.
        piper_executable: Optional explicit Piper binary path.
    """

    timeout_seconds: float = 120.0
    piper_model: str | None = None
    piper_executable: str | None = None


def _ensure_within_limit(spec: SpeechProviderSpec, text: str) -> None:
    """Reject input longer than the variant's ceiling."""

    if len(text) > spec.max_input_chars:
        raise ProviderError(
            f"{spec.display_name} input is too long: {len(text)} > {spec.max_input_chars} characters.",
            code=ErrorCode.VALIDATION_ERROR,
        )


class OpenAISpeechSynthesis:
    """OpenAI `/audio/speech` variant."""

    def __init__(self, spec: SpeechProviderSpec, client: OpenAISpeechClient) -> None:
        """Bind variant spec and HTTP client."""

        self.spec = spec
        self.client = client

    async def synthesize(self, text: str, options: SpeechOptions) -> bytes:
        """Synthesize one chunk in a worker thread."""

        _ensure_within_limit(self.spec, text)
        resolved = self.spec.resolve_options(options)
        return await asyncio.to_thread(
            self.client.synthesize_speech,
            model=resolved.model or "gpt-4o-mini-tts",
            voice=resolved.voice,
            text=text,
            response_format=resolved.format,
            speed=resolved.speed,
        )


class ElevenLabsSpeechSynthesis:
    """ElevenLabs text-to-speech variant.

    WAV output is requested as raw 24 kHz PCM and wrapped in a canonical header.
    """

    def __init__(self, spec: SpeechProviderSpec, client: ElevenLabsSpeechClient) -> None:
        """Bind variant spec and HTTP client."""

        self.spec = spec
        self.client = client

    async def synthesize(self, text: str, options: SpeechOptions) -> bytes:
        """Synthesize one chunk in a worker thread."""

        _ensure_within_limit(self.spec, text)
        resolved = self.spec.resolve_options(options)
        wants_wav = resolved.format == "wav"
        audio = await asyncio.to_thread(
            self.client.synthesize_speech,
            voice_id=resolved.voice,
            text=text,
            model_id=resolved.model or "eleven_multilingual_v2",
            output_format="pcm_24000" if wants_wav else "mp3_44100_128",
            speed=resolved.speed,
        )
        if wants_wav:
            return wrap_pcm_as_wav(audio, _ELEVENLABS_PCM_FORMAT)
        return audio


class PiperSpeechSynthesis:
    """Offline variant running the local Piper command-line synthesizer."""

    def __init__(
        self,
        spec: SpeechProviderSpec,
        *,
        model_path: str,
        executable: str | None = None,
        timeout_seconds: float = 120.0,
    ) -> None:
        """Bind variant spec, voice model and executable."""

        self.spec = spec
        self.model_path = model_path
        self.executable = resolve_executable("piper", executable)
        self.timeout_seconds = timeout_seconds

    async def synthesize(self, text: str, options: SpeechOptions) -> bytes:
        """Synthesize one chunk to WAV in a worker thread."""

        _ensure_within_limit(self.spec, text)
        resolved = self.spec.resolve_options(options)
        return await asyncio.to_thread(self._run_piper, text, resolved.speed)

    def _run_piper(self, text: str, speed: float) -> bytes:
        """Invoke Piper once and return the produced WAV bytes."""

        with tempfile.TemporaryDirectory(prefix="clipvoice-piper-") as temp_dir:
            output_path = Path(temp_dir) / "chunk.wav"
            command = [
                self.executable,
                "--model",
                self.model_path,
                "--output_file",
                str(output_path),
                "--length_scale",
                f"{1.0 / speed:.3f}",
            ]
            try:
                subprocess.run(
                    command,
                    input=text,
                    check=True,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout_seconds,
                )
            except FileNotFoundError as exc:
                raise ProviderError(
                    "Offline synthesizer `piper` is not available on PATH.",
                    code=ErrorCode.VALIDATION_ERROR,
                ) from exc
            except subprocess.TimeoutExpired as exc:
                raise ProviderError(
                    "Offline synthesis timed out.",
                    failure_kind="timeout",
                    code=ErrorCode.TIMEOUT,
                ) from exc
            except subprocess.CalledProcessError as exc:
                stderr = normalize_optional_string(exc.stderr) or "no stderr output"
                raise ProviderError(
                    f"Offline synthesis failed: {stderr}",
                    code=ErrorCode.PROVIDER_ERROR,
                ) from exc

            if not output_path.exists() or output_path.stat().st_size == 0:
                raise ProviderError(
                    "Offline synthesis produced no audio.",
                    code=ErrorCode.PROVIDER_ERROR,
                )
            return output_path.read_bytes()


def _build_openai(
    spec: SpeechProviderSpec, credentials: Credentials, settings: SpeechBackendSettings
) -> SpeechSynthesis:
    """Build the OpenAI variant."""

    client = OpenAISpeechClient(
        api_key=credentials.api_key,
        timeout_seconds=settings.timeout_seconds,
    )
    return OpenAISpeechSynthesis(spec, client)


def _build_elevenlabs(
    spec: SpeechProviderSpec, credentials: Credentials, settings: SpeechBackendSettings
) -> SpeechSynthesis:
    """Build the ElevenLabs variant."""

    client = ElevenLabsSpeechClient(
        api_key=credentials.api_key,
        timeout_seconds=settings.timeout_seconds,
    )
    return ElevenLabsSpeechSynthesis(spec, client)


def _build_offline(
    spec: SpeechProviderSpec, credentials: Credentials, settings: SpeechBackendSettings
) -> SpeechSynthesis:
    """Build the offline Piper variant."""

    model_path = normalize_optional_string(settings.piper_model)
    if model_path is None:
        raise ValueError("Offline speech requires `piper_model` to point at a Piper voice model.")
    return PiperSpeechSynthesis(
        spec,
        model_path=model_path,
        executable=settings.piper_executable,
        timeout_seconds=settings.timeout_seconds,
    )


_BUILDERS: dict[
    str,
    Callable[[SpeechProviderSpec, Credentials, SpeechBackendSettings], SpeechSynthesis],
] = {
    "openai": _build_openai,
    "elevenlabs": _build_elevenlabs,
    "offline": _build_offline,
}


def create_speech_synthesis(
    provider: str,
    credentials: Credentials,
    settings: SpeechBackendSettings | None = None,
) -> SpeechSynthesis:
    """Create the speech variant selected by `provider` tag.

    Raises:
        ValueError: If the tag is unknown or required settings are missing.
    """

    spec = get_provider_spec(provider)
    return _BUILDERS[spec.tag](spec, credentials, settings or SpeechBackendSettings())
