"""Pipeline lifecycle tests covering text output, audio output, cancellation and failures."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from clipvoice.config import ClipvoiceConfig, RuntimeConfigSources
from clipvoice.errors import ErrorCode, PipelineStageError
from clipvoice.io.extractors import ContentExtractionError
from clipvoice.io.storage import MemoryKeyValueStore
from clipvoice.models.datatypes import ContentDocument, ContentItem, Credentials, SpeechOptions, TextChunk
from clipvoice.pipeline import ClipvoicePipeline, JobContext
from clipvoice.state.stages import ProcessingStage
from clipvoice.state.store import LAST_RESULT_KEY, SNAPSHOT_KEY
from tests.fixture_builders import build_wav_bytes


class _RecordingSpeechOrchestrator:
    """Speech orchestrator double that records chunks and reports progress."""

    def __init__(self) -> None:
        """Initialize recorded call state."""

        self.chunks: list[TextChunk] = []
        self.options: SpeechOptions | None = None

    async def convert_chunks_to_audio(
        self,
        chunks: list[TextChunk],
        credentials: Credentials,
        options: SpeechOptions,
        *,
        on_progress=None,
    ) -> bytes:
        """Return one WAV buffer and report the assembly mark."""

        _ = credentials
        self.chunks = list(chunks)
        self.options = options
        if on_progress is not None:
            on_progress(60, "Converting segment 1/1 to speech...")
            on_progress(95, "Assembling audio file...")
        return build_wav_bytes(frame_count=480)


class _CancellingExtractor:
    """Extractor double that cancels its job while extracting."""

    def __init__(self) -> None:
        """Initialize without a bound context."""

        self.context: JobContext | None = None

    def extract(self, path: Path) -> ContentDocument:
        """Cancel the bound job and return a document anyway."""

        assert self.context is not None
        self.context.cancel()
        return ContentDocument(
            title="Cancelled",
            items=(ContentItem(type="paragraph", text="Late text."),),
            source=str(path),
        )


class _FailingExtractor:
    """Extractor double raising a content extraction failure."""

    def extract(self, path: Path) -> ContentDocument:
        """Raise an extraction failure for any path."""

        raise ContentExtractionError(f"No readable content in `{path.name}`.")


class _StructuredGenerator:
    """Text-generation double for summaries and translations."""

    def __init__(self, text: str = "Translated article.") -> None:
        """Initialize canned translation text."""

        self.text = text
        self.calls = 0

    async def generate(self, system_prompt: str, user_prompt: str, *, structured: bool = False):
        """Return a summary payload for structured calls and text otherwise."""

        _ = (system_prompt, user_prompt)
        self.calls += 1
        if structured:
            return {"summary": "A walk by the river.", "key_points": ["Morning", "River"]}
        return self.text


def _pipeline(**kwargs: object) -> ClipvoicePipeline:
    """Return a pipeline with an isolated runtime source."""

    config = ClipvoiceConfig(runtime_sources=RuntimeConfigSources())
    return ClipvoicePipeline(config, **kwargs)  # type: ignore[arg-type]


def test_text_job_completes_and_persists_lifecycle(article_path: Path) -> None:
    """A text job should walk the stages, complete and clear its durable snapshot."""

    storage = MemoryKeyValueStore()
    pipeline = _pipeline()
    context = pipeline.create_context(storage)

    result = asyncio.run(pipeline.run(context, article_path, output_format="text"))

    assert result is not None
    assert result.filename == "field-notes.txt"
    assert "The first paragraph describes the morning walk." in result.data.decode("utf-8")
    assert result.metadata["source"] == str(article_path)
    snapshot = context.snapshot()
    assert snapshot.is_processing is False
    assert snapshot.progress == 100
    assert snapshot.result == result
    assert ProcessingStage.EXTRACTING in snapshot.completed_stages
    assert storage.get(SNAPSHOT_KEY) is None

    assert context.store.preserve_result() is True
    preserved = storage.get(LAST_RESULT_KEY)
    assert preserved["title"] == "field-notes"
    assert "morning walk" in preserved["text"]


def test_audio_job_uses_speech_orchestrator(article_path: Path) -> None:
    """Audio jobs should segment text and wrap the assembled audio."""

    speech = _RecordingSpeechOrchestrator()
    pipeline = _pipeline(speech_orchestrator=speech)
    context = pipeline.create_context(MemoryKeyValueStore())

    result = asyncio.run(pipeline.run(context, article_path))

    assert result is not None
    assert result.output_format == "audio"
    assert result.filename == "field-notes.wav"
    assert result.metadata["audio_format"] == "wav"
    assert len(speech.chunks) == 1
    assert "river" in speech.chunks[0].text
    assert speech.options is not None
    assert speech.options.provider == "openai"
    assert context.snapshot().progress == 100


def test_cancellation_during_stage_returns_none(article_path: Path) -> None:
    """Cancelling mid-stage should stop at the next checkpoint without an error."""

    extractor = _CancellingExtractor()
    speech = _RecordingSpeechOrchestrator()
    pipeline = _pipeline(extractor=extractor, speech_orchestrator=speech)
    context = pipeline.create_context(MemoryKeyValueStore())
    extractor.context = context

    result = asyncio.run(pipeline.run(context, article_path))

    snapshot = context.snapshot()
    assert result is None
    assert speech.chunks == []
    assert snapshot.is_cancelled is True
    assert snapshot.is_processing is False
    assert snapshot.error is None


def test_cancellation_before_start_leaves_no_active_job(article_path: Path) -> None:
    """A token cancelled before the run should end in a cancelled, idle state."""

    pipeline = _pipeline()
    context = pipeline.create_context(MemoryKeyValueStore())
    context.token.cancel()

    result = asyncio.run(pipeline.run(context, article_path, output_format="text"))

    assert result is None
    assert context.snapshot().is_processing is False
    assert context.snapshot().is_cancelled is True


def test_stage_failure_is_recorded_and_reraised(article_path: Path) -> None:
    """Failures should be normalized onto the store and then propagated."""

    storage = MemoryKeyValueStore()
    pipeline = _pipeline(extractor=_FailingExtractor())
    context = pipeline.create_context(storage)

    with pytest.raises(PipelineStageError) as exc_info:
        asyncio.run(pipeline.run(context, article_path))

    snapshot = context.snapshot()
    assert exc_info.value.stage == "extracting"
    assert snapshot.is_processing is False
    assert snapshot.error_code is ErrorCode.VALIDATION_ERROR
    assert storage.get(SNAPSHOT_KEY) is None


def test_second_job_is_rejected_while_one_is_processing(article_path: Path) -> None:
    """Only one job may be processing per context."""

    pipeline = _pipeline()
    context = pipeline.create_context(MemoryKeyValueStore())

    async def _run_while_active() -> None:
        """Start the store inside a loop, then attempt another run."""

        assert context.store.start() is True
        await pipeline.run(context, article_path, output_format="text")

    with pytest.raises(PipelineStageError, match="already processing"):
        asyncio.run(_run_while_active())


def test_translation_stage_runs_when_target_differs(article_path: Path) -> None:
    """A target language should route text through the translator first."""

    generator = _StructuredGenerator(text="Übersetzter Artikel.")
    config = ClipvoiceConfig(target_language="de", runtime_sources=RuntimeConfigSources())
    pipeline = ClipvoicePipeline(config, text_generation_builder=lambda _credentials, _model: generator)
    context = pipeline.create_context(MemoryKeyValueStore())

    result = asyncio.run(pipeline.run(context, article_path, output_format="text"))

    assert result is not None
    assert result.text == "Übersetzter Artikel."
    assert result.metadata["target_language"] == "de"
    assert ProcessingStage.TRANSLATING in context.snapshot().completed_stages


def test_translation_without_key_fails_with_auth_code(article_path: Path) -> None:
    """Translation without any text-generation key should fail as an auth error."""

    config = ClipvoiceConfig(target_language="de", runtime_sources=RuntimeConfigSources())
    pipeline = ClipvoicePipeline(config)
    context = pipeline.create_context(MemoryKeyValueStore())

    with pytest.raises(PipelineStageError) as exc_info:
        asyncio.run(pipeline.run(context, article_path, output_format="text"))

    assert exc_info.value.code is ErrorCode.AUTH_ERROR
    assert context.snapshot().error_code is ErrorCode.AUTH_ERROR


def test_summarize_uses_preserved_last_result(article_path: Path) -> None:
    """Summaries should read the result preserved by a previous job."""

    storage = MemoryKeyValueStore()
    generator = _StructuredGenerator()
    first = _pipeline()
    first_context = first.create_context(storage)
    asyncio.run(first.run(first_context, article_path, output_format="text"))
    first_context.store.preserve_result()

    second = _pipeline(text_generation_builder=lambda _credentials, _model: generator)
    summary = asyncio.run(second.summarize(second.create_context(storage)))

    assert summary.title == "field-notes"
    assert summary.summary == "A walk by the river."
    assert summary.key_points == ("Morning", "River")


def test_summarize_without_result_raises_validation_error() -> None:
    """Summaries need a processed article."""

    pipeline = _pipeline(text_generation_builder=lambda _credentials, _model: _StructuredGenerator())

    with pytest.raises(PipelineStageError) as exc_info:
        asyncio.run(pipeline.summarize(pipeline.create_context(MemoryKeyValueStore())))

    assert exc_info.value.stage == "summarize"
    assert exc_info.value.code is ErrorCode.VALIDATION_ERROR
