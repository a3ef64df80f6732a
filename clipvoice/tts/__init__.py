"""Text-to-speech provider variants and chunk conversion.

This package contains the provider variant registry, the speech synthesis
implementations and the sequential chunk-to-audio orchestrator.
"""

from .orchestrator import SpeechConversionOrchestrator
from .providers import SPEECH_PROVIDERS, SpeechProviderSpec, get_provider_spec
from .synthesizer import SpeechBackendSettings, SpeechSynthesis, create_speech_synthesis

__all__ = [
    "SPEECH_PROVIDERS",
    "SpeechBackendSettings",
    "SpeechConversionOrchestrator",
    "SpeechProviderSpec",
    "SpeechSynthesis",
    "create_speech_synthesis",
    "get_provider_spec",
]
