"""Speech provider variants keyed by tag.

Responsibilities:
- Declare each provider's input-length ceiling, supported options and voices.
- Resolve requested options against a variant's supported subset.

Key types:
- `SpeechProviderSpec`: immutable description of one provider variant.
- `SPEECH_PROVIDERS`: tag-to-spec registry used for dispatch.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from ..models.datatypes import SpeechOptions

OPENAI_VOICES = (
    "alloy",
    "ash",
    "ballad",
    "coral",
    "echo",
    "fable",
    "onyx",
    "nova",
    "sage",
    "shimmer",
    "verse",
)

ELEVENLABS_VOICES = (
    "21m00Tcm4TlvDq8ikWAM",
    "AZnzlk1XvdvUeBnXmlld",
    "EXAVITQu4vr4xnSDxMaL",
    "ErXwobaYiN019PkySvjV",
    "MF3mGyEYCl7XYWbV9V6O",
    "TxGEqnHWrfWFTfGW9XjX",
    "VR6AewLTigWG4xSOukaG",
    "pNInz6obpgDQGcFmaJgB",
    "yoZ06aMxZJJ28mfd3POQ",
)


@dataclass(frozen=True, slots=True)
class SpeechProviderSpec:
    """Declarative description of one speech provider variant.

    Attributes:
        tag: Registry key selecting the variant.
        display_name: Human-readable provider name.
        max_input_chars: Hard per-request input ceiling.
        supported_options: Option names the variant honors.
        voices: Known voice identifiers.
        closed_voice_catalog: Whether voices outside `voices` are rejected.
        default_voice: Voice used when none or an unsupported one is requested.
        default_model: Model used when none is requested.
        formats: Output formats the variant can produce; first is the default.
        speed_range: Inclusive speaking-rate bounds.
        requires_api_key: Whether calls need a credential.
        supports_ai_cleanup: Whether chunks may be cleaned by a network model.
    """

    tag: str
    display_name: str
    max_input_chars: int
    supported_options: frozenset[str]
    voices: tuple[str, ...] = ()
    closed_voice_catalog: bool = False
    default_voice: str = ""
    default_model: str | None = None
    formats: tuple[str, ...] = ("wav",)
    speed_range: tuple[float, float] = (0.25, 4.0)
    requires_api_key: bool = True
    supports_ai_cleanup: bool = True

    def resolve_options(self, options: SpeechOptions) -> SpeechOptions:
        """Return options restricted to this variant's supported subset."""

        voice = options.voice.strip() if options.voice else ""
        if "voice" not in self.supported_options or not voice:
            voice = self.default_voice
        elif self.closed_voice_catalog and voice not in self.voices:
            voice = self.default_voice

        speed = 1.0
        if "speed" in self.supported_options:
            low, high = self.speed_range
            speed = max(low, min(high, float(options.speed)))

        audio_format = (options.format or "").lower()
        if "format" not in self.supported_options or audio_format not in self.formats:
            audio_format = self.formats[0]

        model = options.model if "model" in self.supported_options and options.model else None
        return replace(
            options,
            provider=self.tag,
            voice=voice,
            speed=speed,
            format=audio_format,
            model=model or self.default_model,
        )


SPEECH_PROVIDERS: dict[str, SpeechProviderSpec] = {
    "openai": SpeechProviderSpec(
        tag="openai",
        display_name="OpenAI",
        max_input_chars=4096,
        supported_options=frozenset({"voice", "speed", "format", "model"}),
        voices=OPENAI_VOICES,
        closed_voice_catalog=True,
        default_voice="nova",
        default_model="gpt-4o-mini-tts",
        formats=("wav", "mp3", "opus", "aac", "flac"),
    ),
    "elevenlabs": SpeechProviderSpec(
        tag="elevenlabs",
        display_name="ElevenLabs",
        max_input_chars=5000,
        supported_options=frozenset({"voice", "speed", "format", "model"}),
        voices=ELEVENLABS_VOICES,
        default_voice="21m00Tcm4TlvDq8ikWAM",
        default_model="eleven_multilingual_v2",
        formats=("mp3", "wav"),
    ),
    "offline": SpeechProviderSpec(
        tag="offline",
        display_name="Offline (Piper)",
        max_input_chars=50000,
        supported_options=frozenset({"speed"}),
        formats=("wav",),
        speed_range=(0.5, 2.0),
        requires_api_key=False,
        supports_ai_cleanup=False,
    ),
}


def get_provider_spec(tag: str) -> SpeechProviderSpec:
    """Return the spec for a provider tag.

    Raises:
        ValueError: If the tag is not registered.
    """

    normalized = tag.strip().lower()
    spec = SPEECH_PROVIDERS.get(normalized)
    if spec is None:
        supported = ", ".join(sorted(SPEECH_PROVIDERS))
        raise ValueError(f"Unsupported speech provider `{tag}`; supported: {supported}.")
    return spec
