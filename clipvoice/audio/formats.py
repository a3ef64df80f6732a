"""Audio container detection from leading bytes."""

from __future__ import annotations

_EXTENSIONS = {
    "wav": "wav",
    "mp3": "mp3",
    "ogg": "ogg",
    "flac": "flac",
    "aac": "aac",
}

_MIME_TYPES = {
    "wav": "audio/wav",
    "mp3": "audio/mpeg",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
    "aac": "audio/aac",
}


def detect_audio_format(data: bytes) -> str | None:
    """Return the container name implied by magic bytes, or `None` when unknown."""

    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WAVE":
        return "wav"
    if data[:3] == b"ID3":
        return "mp3"
    if data[:4] == b"OggS":
        return "ogg"
    if data[:4] == b"fLaC":
        return "flac"
    if len(data) >= 2 and data[0] == 0xFF and data[1] & 0xF6 == 0xF0:
        return "aac"
    if len(data) >= 2 and data[0] == 0xFF and data[1] & 0xE0 == 0xE0:
        return "mp3"
    return None


def audio_extension(audio_format: str | None, default: str = "mp3") -> str:
    """Return a file extension for a detected or requested format."""

    if audio_format is None:
        return default
    return _EXTENSIONS.get(audio_format.lower(), default)


def audio_mime_type(audio_format: str | None) -> str:
    """Return the MIME type for a format, defaulting to MPEG audio."""

    if audio_format is None:
        return _MIME_TYPES["mp3"]
    return _MIME_TYPES.get(audio_format.lower(), _MIME_TYPES["mp3"])
