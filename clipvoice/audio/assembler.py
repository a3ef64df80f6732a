"""Reassembly of per-chunk audio fragments into one file.

Responsibilities:
- Merge PCM WAV fragments structurally: locate each `data` chunk, then write one
  canonical 44-byte header sized for the summed payload.
- Join self-delimiting streams (MP3, OGG, ...) byte for byte.
- Reject PCM fragments whose format differs from the first fragment.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
import struct

RIFF_MAGIC = b"RIFF"
WAVE_MAGIC = b"WAVE"
CANONICAL_HEADER_BYTES = 44
PCM_FORMAT_TAG = 1

_CHUNK_LIST_OFFSET = 12


@dataclass(frozen=True, slots=True)
class PcmFormat:
    """Channel count, sample rate and bit depth of a PCM stream."""

    channels: int = 1
    sample_rate: int = 24000
    bits_per_sample: int = 16

    @property
    def block_align(self) -> int:
        """Return bytes per sample frame."""

        return self.channels * (self.bits_per_sample // 8)

    @property
    def byte_rate(self) -> int:
        """Return bytes per second."""

        return self.sample_rate * self.block_align


@dataclass(frozen=True, slots=True)
class DataChunkLocation:
    """Payload offset and length of a WAV `data` chunk."""

    offset: int
    length: int


def is_wav(buffer: bytes) -> bool:
    """Return whether the buffer starts with a RIFF/WAVE signature."""

    return len(buffer) >= 12 and buffer[:4] == RIFF_MAGIC and buffer[8:12] == WAVE_MAGIC


def iter_riff_chunks(buffer: bytes) -> Iterator[tuple[bytes, int, int]]:
    """Yield `(chunk_id, payload_offset, declared_size)` from offset 12.

    Each chunk occupies an even number of bytes; odd sizes carry one pad byte.
    """

    offset = _CHUNK_LIST_OFFSET
    while offset + 8 <= len(buffer):
        chunk_id = buffer[offset : offset + 4]
        (chunk_size,) = struct.unpack_from("<I", buffer, offset + 4)
        yield chunk_id, offset + 8, chunk_size
        offset += 8 + chunk_size + (chunk_size % 2)


def find_data_chunk(buffer: bytes) -> DataChunkLocation:
    """Locate the `data` payload, falling back to the canonical 44-byte header.

    The declared length is clamped to the bytes actually present.
    """

    for chunk_id, payload_offset, chunk_size in iter_riff_chunks(buffer):
        if chunk_id == b"data":
            available = max(0, len(buffer) - payload_offset)
            return DataChunkLocation(offset=payload_offset, length=min(chunk_size, available))
    return DataChunkLocation(
        offset=CANONICAL_HEADER_BYTES,
        length=max(0, len(buffer) - CANONICAL_HEADER_BYTES),
    )


def read_pcm_format(buffer: bytes) -> PcmFormat:
    """Read channel count, sample rate and bit depth from the `fmt ` chunk.

    Falls back to canonical header offsets (22, 24, 34) when no `fmt ` chunk
    is found.
    """

    for chunk_id, payload_offset, chunk_size in iter_riff_chunks(buffer):
        if chunk_id == b"fmt " and chunk_size >= 16 and payload_offset + 16 <= len(buffer):
            channels, sample_rate = struct.unpack_from("<HI", buffer, payload_offset + 2)
            (bits_per_sample,) = struct.unpack_from("<H", buffer, payload_offset + 14)
            return PcmFormat(channels, sample_rate, bits_per_sample)

    if len(buffer) < CANONICAL_HEADER_BYTES:
        raise ValueError("WAV fragment is too short to contain a format header.")
    (channels,) = struct.unpack_from("<H", buffer, 22)
    (sample_rate,) = struct.unpack_from("<I", buffer, 24)
    (bits_per_sample,) = struct.unpack_from("<H", buffer, 34)
    return PcmFormat(channels, sample_rate, bits_per_sample)


def build_wav_header(pcm_format: PcmFormat, data_length: int) -> bytes:
    """Return a canonical 44-byte PCM WAV header for `data_length` payload bytes."""

    return struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        RIFF_MAGIC,
        CANONICAL_HEADER_BYTES - 8 + data_length,
        WAVE_MAGIC,
        b"fmt ",
        16,
        PCM_FORMAT_TAG,
        pcm_format.channels,
        pcm_format.sample_rate,
        pcm_format.byte_rate,
        pcm_format.block_align,
        pcm_format.bits_per_sample,
        b"data",
        data_length,
    )


def wrap_pcm_as_wav(pcm_payload: bytes, pcm_format: PcmFormat) -> bytes:
    """Prefix raw PCM samples with a canonical header."""

    return build_wav_header(pcm_format, len(pcm_payload)) + pcm_payload


class AudioAssembler:
    """Concatenate ordered audio fragments into one binary."""

    def __init__(self, *, validate_format: bool = True) -> None:
        """Initialize whether PCM fragment formats are cross-checked."""

        self.validate_format = validate_format

    def concatenate(self, buffers: list[bytes]) -> bytes:
        """Concatenate fragments, merging PCM containers structurally.

        Zero buffers yield `b""` and one buffer is returned unchanged.

        Raises:
            ValueError: If PCM fragments disagree on channel count, sample
                rate or bit depth, or a non-WAV fragment follows a WAV one.
        """

        if not buffers:
            return b""
        if len(buffers) == 1:
            return buffers[0]
        if buffers[0][:4] != RIFF_MAGIC:
            return b"".join(buffers)
        return self._merge_pcm(buffers)

    def _merge_pcm(self, buffers: list[bytes]) -> bytes:
        """Merge WAV fragments under one synthesized canonical header."""

        pcm_format = read_pcm_format(buffers[0])
        payloads: list[bytes] = []
        for position, buffer in enumerate(buffers, start=1):
            if buffer[:4] != RIFF_MAGIC:
                raise ValueError(f"Audio fragment {position} is not a WAV container.")
            if self.validate_format and position > 1:
                fragment_format = read_pcm_format(buffer)
                if fragment_format != pcm_format:
                    raise ValueError(
                        f"Incompatible WAV parameters for fragment {position}: "
                        f"{fragment_format} differs from {pcm_format}."
                    )
            location = find_data_chunk(buffer)
            payloads.append(buffer[location.offset : location.offset + location.length])

        total_length = sum(len(payload) for payload in payloads)
        return build_wav_header(pcm_format, total_length) + b"".join(payloads)
