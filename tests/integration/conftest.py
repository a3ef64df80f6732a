"""Integration-test fixtures for deterministic provider behavior."""

from __future__ import annotations

from pathlib import Path

import pytest

from clipvoice.llm.openai_client import OpenAIChatClient, OpenAISpeechClient
from tests.fixture_builders import build_wav_bytes


@pytest.fixture(autouse=True)
def _mock_openai_calls(monkeypatch: pytest.MonkeyPatch) -> None:
    """Mock OpenAI calls in integration tests to avoid network/key requirements."""

    def _mock_chat_completion_text(self, **kwargs: object) -> str:
        """Return deterministic placeholder text for cleanup and translation stages."""

        _ = self
        _ = kwargs
        return "Integration mocked narration text."

    def _mock_chat_completion_json(self, **kwargs: object) -> dict[str, object]:
        """Return a deterministic structured summary payload."""

        _ = self
        _ = kwargs
        return {"summary": "Integration summary.", "key_points": ["First point"]}

    def _mock_synthesize_speech(self, **kwargs: object) -> bytes:
        """Return deterministic placeholder WAV payload for the speech stage."""

        _ = self
        _ = kwargs
        return build_wav_bytes(frame_count=2400)

    monkeypatch.setattr(OpenAIChatClient, "chat_completion_text", _mock_chat_completion_text)
    monkeypatch.setattr(OpenAIChatClient, "chat_completion_json", _mock_chat_completion_json)
    monkeypatch.setattr(OpenAISpeechClient, "synthesize_speech", _mock_synthesize_speech)


@pytest.fixture
def article_path(tmp_path: Path) -> Path:
    """Write a small plain-text article and return its path."""

    path = tmp_path / "field-notes.txt"
    path.write_text(
        "Field Notes\n\n"
        "The first paragraph describes the morning walk.\n\n"
        "The second paragraph lists what was seen along the river.\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def cli_env(tmp_path: Path) -> dict[str, str]:
    """Return an isolated CLI environment with state and output under `tmp_path`."""

    return {
        "CLIPVOICE_STATE_DIR": str(tmp_path / "state"),
        "CLIPVOICE_OUTPUT_DIR": str(tmp_path / "out"),
        "OPENAI_API_KEY": "sk-integration",
        "CLIPVOICE_API_KEY": "",
        "CLIPVOICE_TEXT_API_KEY": "",
        "ELEVENLABS_API_KEY": "",
    }
