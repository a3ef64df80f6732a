"""Unit tests for structural WAV merging and opaque audio concatenation."""

from __future__ import annotations

import io
import struct
import wave

import pytest

from clipvoice.audio.assembler import (
    AudioAssembler,
    PcmFormat,
    build_wav_header,
    find_data_chunk,
    read_pcm_format,
    wrap_pcm_as_wav,
)
from clipvoice.audio.formats import audio_extension, audio_mime_type, detect_audio_format
from tests.fixture_builders import build_wav_bytes


def _wav_with_extra_chunk(payload: bytes, *, extra: bytes) -> bytes:
    """Build a WAV with a `LIST` chunk between `fmt ` and `data`."""

    pcm_format = PcmFormat()
    fmt_body = struct.pack(
        "<HHIIHH",
        1,
        pcm_format.channels,
        pcm_format.sample_rate,
        pcm_format.byte_rate,
        pcm_format.block_align,
        pcm_format.bits_per_sample,
    )
    padded_extra = extra + (b"\x00" if len(extra) % 2 else b"")
    chunks = (
        b"fmt " + struct.pack("<I", len(fmt_body)) + fmt_body
        + b"LIST" + struct.pack("<I", len(extra)) + padded_extra
        + b"data" + struct.pack("<I", len(payload)) + payload
    )
    return b"RIFF" + struct.pack("<I", 4 + len(chunks)) + b"WAVE" + chunks


def test_merge_sums_data_lengths_under_one_canonical_header() -> None:
    """Three PCM fragments should merge into one header sized for the summed payload."""

    fragments = [
        wrap_pcm_as_wav(b"\x01" * 100, PcmFormat()),
        wrap_pcm_as_wav(b"\x02" * 250, PcmFormat()),
        wrap_pcm_as_wav(b"\x03" * 10, PcmFormat()),
    ]

    merged = AudioAssembler().concatenate(fragments)

    assert len(merged) == 44 + 360
    assert merged[:4] == b"RIFF"
    assert struct.unpack_from("<I", merged, 4)[0] == 36 + 360
    assert struct.unpack_from("<I", merged, 40)[0] == 360
    assert merged[44:] == b"\x01" * 100 + b"\x02" * 250 + b"\x03" * 10


def test_merged_output_is_readable_by_wave_module() -> None:
    """The synthesized header should describe a valid PCM stream."""

    fragments = [build_wav_bytes(frame_count=120), build_wav_bytes(frame_count=80)]

    merged = AudioAssembler().concatenate(fragments)

    with wave.open(io.BytesIO(merged), "rb") as wav_file:
        assert wav_file.getnframes() == 200
        assert wav_file.getframerate() == 24000
        assert wav_file.getnchannels() == 1


def test_data_chunk_is_found_after_extra_chunks_with_odd_padding() -> None:
    """Chunk walking should honor declared sizes and odd-size pad bytes."""

    buffer = _wav_with_extra_chunk(b"\x05" * 8, extra=b"abc")

    location = find_data_chunk(buffer)

    assert buffer[location.offset : location.offset + location.length] == b"\x05" * 8
    merged = AudioAssembler().concatenate([buffer, wrap_pcm_as_wav(b"\x06" * 4, PcmFormat())])
    assert merged[44:] == b"\x05" * 8 + b"\x06" * 4


def test_truncated_data_chunk_is_clamped_to_available_bytes() -> None:
    """A declared data size beyond the buffer end should be clamped."""

    header = build_wav_header(PcmFormat(), 1000)

    location = find_data_chunk(header + b"\x00" * 10)

    assert location.offset == 44
    assert location.length == 10


def test_mismatched_pcm_format_is_rejected() -> None:
    """Fragments with a different sample rate should fail assembly."""

    fragments = [
        build_wav_bytes(sample_rate=24000),
        build_wav_bytes(sample_rate=22050),
    ]

    with pytest.raises(ValueError, match="fragment 2"):
        AudioAssembler().concatenate(fragments)


def test_non_pcm_fragments_are_joined_byte_for_byte() -> None:
    """Self-delimiting streams should be concatenated unchanged."""

    fragments = [b"ID3\x03first", b"\xff\xfbsecond"]

    assert AudioAssembler().concatenate(fragments) == b"ID3\x03first\xff\xfbsecond"


def test_zero_and_single_buffers() -> None:
    """No buffers should yield empty output and one buffer should pass through."""

    single = build_wav_bytes()

    assert AudioAssembler().concatenate([]) == b""
    assert AudioAssembler().concatenate([single]) is single


def test_pcm_format_is_read_from_fmt_chunk() -> None:
    """Channel count, rate and depth should come from the `fmt ` chunk."""

    buffer = build_wav_bytes(channels=2, sample_rate=16000)

    assert read_pcm_format(buffer) == PcmFormat(channels=2, sample_rate=16000, bits_per_sample=16)


@pytest.mark.parametrize(
    ("payload", "expected_format", "expected_extension", "expected_mime"),
    [
        (build_wav_bytes(), "wav", "wav", "audio/wav"),
        (b"ID3\x04rest", "mp3", "mp3", "audio/mpeg"),
        (b"\xff\xfb\x90\x00", "mp3", "mp3", "audio/mpeg"),
        (b"OggS\x00\x02", "ogg", "ogg", "audio/ogg"),
    ],
)
def test_audio_format_detection(
    payload: bytes,
    expected_format: str,
    expected_extension: str,
    expected_mime: str,
) -> None:
    """Magic bytes should select format, extension and MIME type."""

    detected = detect_audio_format(payload)

    assert detected == expected_format
    assert audio_extension(detected) == expected_extension
    assert audio_mime_type(detected) == expected_mime


def test_unknown_audio_defaults_to_mp3_extension() -> None:
    """Unrecognized payloads should fall back to the default extension."""

    assert detect_audio_format(b"????") is None
    assert audio_extension(None) == "mp3"
