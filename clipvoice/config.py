"""Configuration model and loaders for Clipvoice.

Responsibilities:
- Define runtime configuration as a typed dataclass.
- Provide deterministic precedence resolution for provider/model/credential settings.
- Provide loader entry points for file- and environment-based configuration.
- Build segmenter limits, retry policy and speech backend settings from config.

Key types:
- `ClipvoiceConfig`: normalized runtime settings for a job.
- `ProviderRuntimeConfig`: resolved provider/model runtime values.
- `RuntimeConfigSources`: optional value sources for precedence resolution.
- `ConfigLoader`: static construction helpers for `ClipvoiceConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .models.datatypes import Credentials, SpeechOptions
from .parsing import (
    normalize_optional_string,
    parse_delay_schedule,
    parse_non_negative_float,
    parse_permissive_boolean,
    parse_positive_int,
    parse_required_boolean,
    parse_status_codes,
)
from .retry import (
    DEFAULT_DELAY_SCHEDULE,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRYABLE_STATUS_CODES,
    RetryPolicy,
)
from .state.store import DEFAULT_STATE_EXPIRY_SECONDS
from .text.segmenter import SegmentLimits
from .tts.providers import SPEECH_PROVIDERS, get_provider_spec
from .tts.synthesizer import SpeechBackendSettings

_DEFAULT_TEXT_MODEL = "gpt-4.1-mini"
_DEFAULT_TTS_PROVIDER = "openai"
_DEFAULT_AUDIO_FORMAT = "mp3"
_PROVIDER_API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "elevenlabs": "ELEVENLABS_API_KEY",
}


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for deterministic runtime value precedence.

    Attributes:
        cli: Values explicitly provided by CLI arguments.
        env: Values loaded from environment variables.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProviderRuntimeConfig:
    """Resolved runtime provider and model identifiers for one job.

    Attributes:
        tts_provider: Speech provider variant tag.
        tts_voice: Voice identifier, or `None` for the provider default.
        tts_model: Speech model identifier, or `None` for the provider default.
        text_model: Text-generation model for cleanup, translation and summary.
        ai_cleanup: Whether chunks are cleaned by the text-generation model.
        api_key: Speech provider API key (resolved but never persisted).
        text_api_key: Text-generation API key (resolved but never persisted).
    """

    tts_provider: str
    tts_voice: str | None
    tts_model: str | None
    text_model: str
    ai_cleanup: bool = True
    api_key: str | None = None
    text_api_key: str | None = None

    def credentials(self) -> Credentials:
        """Return the per-job credential record."""

        return Credentials(api_key=self.api_key, text_api_key=self.text_api_key)

    def as_metadata(self) -> dict[str, str]:
        """Return non-secret runtime metadata safe to store with a result."""

        return {
            "provider_tts": self.tts_provider,
            "tts_voice": self.tts_voice or "default",
            "model_tts": self.tts_model or "default",
            "model_text": self.text_model,
            "ai_cleanup": "true" if self.ai_cleanup else "false",
        }


@dataclass(slots=True)
class ClipvoiceConfig:
    """Runtime configuration for Clipvoice jobs.

    Attributes:
        state_dir: Directory holding durable job snapshots.
        output_dir: Directory receiving rendered outputs.
        ui_language: Language of status and error messages.
        target_language: Optional translation target language code.
        tts_provider: Speech provider variant tag.
        tts_voice: Voice identifier, or `None` for the provider default.
        tts_model: Speech model identifier, or `None` for the provider default.
        tts_speed: Speaking rate multiplier.
        audio_format: Requested audio container.
        text_model: Text-generation model identifier.
        ai_cleanup: Whether narration cleanup uses the text-generation model.
        api_key: Optional speech provider API key.
        text_api_key: Optional text-generation API key.
        segment_min_chars: Lower bound of the chunk window.
        segment_max_chars: Upper bound of the chunk window.
        segment_ideal_chars: Hard-split target inside the window.
        retry_max_attempts: Retries after the first call.
        retry_delays_seconds: Retry wait schedule.
        retry_status_codes: HTTP statuses treated as transient.
        retry_jitter_ratio: Symmetric random spread applied to waits.
        request_timeout_seconds: Per-call timeout for outbound calls.
        state_expiry_seconds: Age beyond which a stored snapshot is discarded.
        ticker_interval_seconds: Progress ticker period during conversion.
        keepalive_interval_seconds: Snapshot heartbeat period while processing.
        piper_model: Piper voice model path for the offline provider.
        piper_executable: Optional explicit Piper binary path.
        runtime_sources: Optional runtime source overrides injected by CLI.
        extra: Additional metadata for future extensions.
    """

    state_dir: Path = Path(".clipvoice")
    output_dir: Path = Path("out")
    ui_language: str = "en"
    target_language: str | None = None
    tts_provider: str = _DEFAULT_TTS_PROVIDER
    tts_voice: str | None = None
    tts_model: str | None = None
    tts_speed: float = 1.0
    audio_format: str = _DEFAULT_AUDIO_FORMAT
    text_model: str = _DEFAULT_TEXT_MODEL
    ai_cleanup: bool = True
    api_key: str | None = None
    text_api_key: str | None = None
    segment_min_chars: int = 4000
    segment_max_chars: int = 6000
    segment_ideal_chars: int = 5000
    retry_max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_delays_seconds: tuple[float, ...] = DEFAULT_DELAY_SCHEDULE
    retry_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES
    retry_jitter_ratio: float = 0.0
    request_timeout_seconds: float = 120.0
    state_expiry_seconds: float = float(DEFAULT_STATE_EXPIRY_SECONDS)
    ticker_interval_seconds: float = 2.0
    keepalive_interval_seconds: float = 5.0
    piper_model: str | None = None
    piper_executable: str | None = None
    runtime_sources: RuntimeConfigSources = field(default_factory=RuntimeConfigSources)
    extra: dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        """Validate runtime configuration values before a job starts."""

        get_provider_spec(self.tts_provider)
        self._require_non_empty(self.text_model, "text_model")
        self._require_non_empty(self.ui_language, "ui_language")
        if self.tts_speed <= 0:
            raise ValueError("`tts_speed` must be a positive number.")
        if self.request_timeout_seconds <= 0:
            raise ValueError("`request_timeout_seconds` must be a positive number.")
        if self.ticker_interval_seconds <= 0:
            raise ValueError("`ticker_interval_seconds` must be a positive number.")
        if self.keepalive_interval_seconds <= 0:
            raise ValueError("`keepalive_interval_seconds` must be a positive number.")
        self.segment_limits()
        self.retry_policy()

    def segment_limits(self) -> SegmentLimits:
        """Return validated segmenter thresholds."""

        return SegmentLimits(
            min_chars=self.segment_min_chars,
            max_chars=self.segment_max_chars,
            ideal_chars=self.segment_ideal_chars,
        )

    def retry_policy(self) -> RetryPolicy:
        """Return the retry policy shared by provider call sites."""

        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            delay_schedule=tuple(self.retry_delays_seconds),
            retryable_status_codes=frozenset(self.retry_status_codes),
            jitter_ratio=self.retry_jitter_ratio,
        )

    def speech_backend_settings(self) -> SpeechBackendSettings:
        """Return non-secret settings for building speech provider variants."""

        return SpeechBackendSettings(
            timeout_seconds=self.request_timeout_seconds,
            piper_model=self.piper_model,
            piper_executable=self.piper_executable,
        )

    def speech_options(self, runtime: ProviderRuntimeConfig) -> SpeechOptions:
        """Return speech options for a resolved runtime."""

        spec = get_provider_spec(runtime.tts_provider)
        return SpeechOptions(
            provider=spec.tag,
            voice=runtime.tts_voice or spec.default_voice,
            speed=self.tts_speed,
            format=self.audio_format,
            model=runtime.tts_model,
            language=self.target_language,
        )

    def resolved_provider_runtime(
        self, sources: RuntimeConfigSources | None = None
    ) -> ProviderRuntimeConfig:
        """Resolve provider and model settings with deterministic source precedence.

        Precedence for each key is:
        `cli` > `env` > config field default.
        """

        resolved_sources = sources if sources is not None else self.runtime_sources

        tts_provider = self._resolve_runtime_value(
            key="tts_provider",
            env_keys=("CLIPVOICE_TTS_PROVIDER",),
            default_value=self.tts_provider,
            sources=resolved_sources,
        ).lower()
        tts_voice = self._resolve_optional_runtime_value(
            key="tts_voice",
            env_keys=("CLIPVOICE_TTS_VOICE",),
            default_value=self.tts_voice,
            sources=resolved_sources,
        )
        tts_model = self._resolve_optional_runtime_value(
            key="tts_model",
            env_keys=("CLIPVOICE_TTS_MODEL",),
            default_value=self.tts_model,
            sources=resolved_sources,
        )
        text_model = self._resolve_runtime_value(
            key="text_model",
            env_keys=("CLIPVOICE_TEXT_MODEL",),
            default_value=self.text_model,
            sources=resolved_sources,
        )
        ai_cleanup = self._resolve_runtime_bool(
            key="ai_cleanup",
            env_keys=("CLIPVOICE_AI_CLEANUP",),
            default_value=self.ai_cleanup,
            sources=resolved_sources,
        )

        provider_env_key = _PROVIDER_API_KEY_ENV.get(tts_provider)
        api_key = self._resolve_optional_runtime_value(
            key="api_key",
            env_keys=("CLIPVOICE_API_KEY",) + ((provider_env_key,) if provider_env_key else ()),
            default_value=self.api_key,
            sources=resolved_sources,
        )
        text_api_key = self._resolve_optional_runtime_value(
            key="text_api_key",
            env_keys=("CLIPVOICE_TEXT_API_KEY", "OPENAI_API_KEY"),
            default_value=self.text_api_key,
            sources=resolved_sources,
        )

        get_provider_spec(tts_provider)
        self._require_non_empty(text_model, "text_model")
        return ProviderRuntimeConfig(
            tts_provider=tts_provider,
            tts_voice=tts_voice,
            tts_model=tts_model,
            text_model=text_model,
            ai_cleanup=ai_cleanup,
            api_key=api_key,
            text_api_key=text_api_key,
        )

    def _resolve_runtime_value(
        self,
        key: str,
        env_keys: tuple[str, ...],
        default_value: str | None,
        sources: RuntimeConfigSources,
    ) -> str:
        """Resolve a required runtime value from sources in precedence order."""

        resolved = self._resolve_optional_runtime_value(key, env_keys, default_value, sources)
        if resolved is None:
            raise ValueError(f"`{key}` could not be resolved from CLI, env, or defaults.")
        return resolved

    def _resolve_optional_runtime_value(
        self,
        key: str,
        env_keys: tuple[str, ...],
        default_value: str | None,
        sources: RuntimeConfigSources,
    ) -> str | None:
        """Resolve an optional runtime value from sources in precedence order."""

        cli_value = self._normalized_lookup(sources.cli, key)
        if cli_value is not None:
            return cli_value

        for env_key in env_keys:
            env_value = self._normalized_lookup(sources.env, env_key)
            if env_value is not None:
                return env_value

        return normalize_optional_string(default_value)

    def _resolve_runtime_bool(
        self,
        key: str,
        env_keys: tuple[str, ...],
        default_value: bool,
        sources: RuntimeConfigSources,
    ) -> bool:
        """Resolve a boolean runtime value from sources in precedence order."""

        cli_value = self._normalized_lookup(sources.cli, key)
        if cli_value is not None:
            return parse_required_boolean(cli_value, key)

        for env_key in env_keys:
            env_value = self._normalized_lookup(sources.env, env_key)
            if env_value is not None:
                return parse_required_boolean(env_value, key)

        return bool(default_value)

    @staticmethod
    def _normalized_lookup(mapping: Mapping[str, str], key: str) -> str | None:
        """Return a stripped mapping value for a key or `None` when missing/blank."""

        if key not in mapping:
            return None
        return normalize_optional_string(mapping.get(key))

    @staticmethod
    def _require_non_empty(value: str, field_name: str) -> None:
        """Validate that runtime string fields are not empty."""

        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"`{field_name}` must be a non-empty string.")


class ConfigLoader:
    """Factory methods for creating `ClipvoiceConfig` from external sources."""

    _STRING_KEYS = frozenset(
        {
            "ui_language",
            "target_language",
            "tts_provider",
            "tts_voice",
            "tts_model",
            "audio_format",
            "text_model",
            "api_key",
            "text_api_key",
            "piper_model",
            "piper_executable",
        }
    )
    _PATH_KEYS = frozenset({"state_dir", "output_dir"})
    _INT_KEYS = frozenset(
        {"segment_min_chars", "segment_max_chars", "segment_ideal_chars"}
    )
    _FLOAT_KEYS = frozenset(
        {
            "tts_speed",
            "retry_jitter_ratio",
            "request_timeout_seconds",
            "state_expiry_seconds",
            "ticker_interval_seconds",
            "keepalive_interval_seconds",
        }
    )
    _BOOL_KEYS = frozenset({"ai_cleanup"})
    _SUPPORTED_YAML_KEYS = (
        _STRING_KEYS
        | _PATH_KEYS
        | _INT_KEYS
        | _FLOAT_KEYS
        | _BOOL_KEYS
        | frozenset({"retry_max_attempts", "retry_delays_seconds", "retry_status_codes", "extra"})
    )
    _ENV_PREFIX = "CLIPVOICE_"
    _RUNTIME_ENV_KEYS = frozenset(
        {
            "CLIPVOICE_TTS_PROVIDER",
            "CLIPVOICE_TTS_VOICE",
            "CLIPVOICE_TTS_MODEL",
            "CLIPVOICE_TEXT_MODEL",
            "CLIPVOICE_AI_CLEANUP",
            "CLIPVOICE_API_KEY",
            "CLIPVOICE_TEXT_API_KEY",
            "OPENAI_API_KEY",
            "ELEVENLABS_API_KEY",
        }
    )

    @staticmethod
    def from_yaml(path: Path, env: Mapping[str, str] | None = None) -> ClipvoiceConfig:
        """Create a validated config from a YAML file.

        Runtime environment values are captured as a precedence source so that
        env still overrides file values at resolution time.
        """

        path_text = path.read_text(encoding="utf-8")
        payload = ConfigLoader._parse_yaml_payload(path_text, path)
        config = ConfigLoader._build_config_from_mapping(payload, source_label=f"YAML `{path}`")
        config.runtime_sources = RuntimeConfigSources(env=ConfigLoader._runtime_env(env))
        config.validate()
        return config

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> ClipvoiceConfig:
        """Create a validated config from `CLIPVOICE_*` environment variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        payload: dict[str, Any] = {}
        for key in ConfigLoader._SUPPORTED_YAML_KEYS - {"extra"}:
            value = normalize_optional_string(env_map.get(f"{ConfigLoader._ENV_PREFIX}{key.upper()}"))
            if value is not None:
                payload[key] = value

        config = ConfigLoader._build_config_from_mapping(payload, source_label="Environment")
        config.runtime_sources = RuntimeConfigSources(env=ConfigLoader._runtime_env(env_map))
        config.validate()
        return config

    @staticmethod
    def _runtime_env(env: Mapping[str, str] | None) -> dict[str, str]:
        """Capture non-blank runtime environment values used during resolution."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        return {
            key: value
            for key, value in env_map.items()
            if key in ConfigLoader._RUNTIME_ENV_KEYS
            and normalize_optional_string(value) is not None
        }

    @staticmethod
    def _parse_yaml_payload(raw_text: str, path: Path) -> Mapping[str, Any]:
        """Parse YAML text and enforce a mapping root payload."""

        try:
            payload = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise ValueError(f"YAML config `{path}` could not be parsed: {exc}") from exc

        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping/object.")
        return payload

    @staticmethod
    def _build_config_from_mapping(payload: Mapping[str, Any], source_label: str) -> ClipvoiceConfig:
        """Build a config from a normalized mapping payload."""

        unknown = sorted(set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS))
        if unknown:
            key_list = ", ".join(unknown)
            raise ValueError(f"{source_label} includes unsupported key(s): {key_list}.")

        config = ClipvoiceConfig()
        for key, raw_value in payload.items():
            if key == "extra":
                config.extra = ConfigLoader._optional_string_map(raw_value, source_label)
                continue
            field_label = f"{source_label} field `{key}`"
            try:
                value = ConfigLoader._parse_field(key, raw_value)
            except ValueError as exc:
                raise ValueError(f"{field_label} is invalid: {exc}") from exc
            if value is not None:
                setattr(config, key, value)

        if config.tts_provider not in SPEECH_PROVIDERS:
            supported = ", ".join(sorted(SPEECH_PROVIDERS))
            raise ValueError(
                f"{source_label} field `tts_provider` must be one of: {supported}."
            )
        return config

    @staticmethod
    def _parse_field(key: str, raw_value: Any) -> Any:
        """Parse one config value according to its declared kind."""

        if key in ConfigLoader._STRING_KEYS:
            return normalize_optional_string(raw_value)
        if key in ConfigLoader._PATH_KEYS:
            value = normalize_optional_string(raw_value)
            return Path(value) if value is not None else None
        if key in ConfigLoader._INT_KEYS:
            return parse_positive_int(raw_value, key)
        if key in ConfigLoader._FLOAT_KEYS:
            return parse_non_negative_float(raw_value, key)
        if key in ConfigLoader._BOOL_KEYS:
            parsed = parse_permissive_boolean(raw_value)
            if parsed is None:
                raise ValueError("expected a boolean value (`true`/`false`, `1`/`0`, `yes`/`no`)")
            return parsed
        if key == "retry_max_attempts":
            if isinstance(raw_value, bool):
                raise ValueError("expected a non-negative integer")
            try:
                parsed_attempts = int(str(raw_value).strip())
            except ValueError as exc:
                raise ValueError("expected a non-negative integer") from exc
            if parsed_attempts < 0:
                raise ValueError("expected a non-negative integer")
            return parsed_attempts
        if key == "retry_delays_seconds":
            return parse_delay_schedule(raw_value, key)
        if key == "retry_status_codes":
            return parse_status_codes(raw_value, key)
        raise ValueError(f"unsupported key `{key}`")

    @staticmethod
    def _optional_string_map(raw: Any, source_label: str) -> dict[str, str]:
        """Read an optional mapping with non-empty string keys and values."""

        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise ValueError(f"{source_label} field `extra` must be a mapping/object.")

        normalized: dict[str, str] = {}
        for raw_key, raw_value in raw.items():
            key_value = normalize_optional_string(raw_key)
            value_value = normalize_optional_string(raw_value)
            if key_value is None:
                raise ValueError(f"{source_label} field `extra` contains a blank key.")
            if value_value is None:
                raise ValueError(
                    f"{source_label} field `extra` contains blank value for `{key_value}`."
                )
            normalized[key_value] = value_value
        return normalized
