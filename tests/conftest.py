"""Shared pytest fixtures for the full Clipvoice test suite."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from clipvoice.io.storage import MemoryKeyValueStore
from tests.fixture_builders import ManualClock, build_wav_bytes


@pytest.fixture
def wav_bytes() -> Callable[..., bytes]:
    """Provide the WAV builder to tests that need real PCM fragments."""

    return build_wav_bytes


@pytest.fixture
def memory_store() -> MemoryKeyValueStore:
    """Provide an empty in-memory durable store."""

    return MemoryKeyValueStore()


@pytest.fixture
def manual_clock() -> ManualClock:
    """Provide a manually advanced clock."""

    return ManualClock()
