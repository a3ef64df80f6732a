"""Audio fragment reassembly and container detection.

This package merges per-chunk synthesis output into one deliverable file.
"""

from .assembler import AudioAssembler, PcmFormat, build_wav_header, wrap_pcm_as_wav
from .formats import audio_extension, audio_mime_type, detect_audio_format

__all__ = [
    "AudioAssembler",
    "PcmFormat",
    "audio_extension",
    "audio_mime_type",
    "build_wav_header",
    "detect_audio_format",
    "wrap_pcm_as_wav",
]
