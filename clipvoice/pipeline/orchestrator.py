"""Pipeline orchestration for Clipvoice.

Responsibilities:
- Define the fixed stage order for one content-to-document job.
- Check cancellation before each stage and keep cancellation out of errors.
- Record terminal success or a normalized failure on the job's state store.

Key types:
- `ClipvoicePipeline`: orchestration facade.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

from loguru import logger

from ..config import ClipvoiceConfig, ProviderRuntimeConfig
from ..errors import ErrorCode, JobCancelledError, PipelineStageError
from ..io.extractors import ContentExtractionError, ContentExtractor
from ..io.storage import DurableKeyValueStore
from ..llm.openai_client import OpenAIChatClient
from ..llm.summarizer import ArticleSummarizer, ArticleSummary
from ..llm.text_generation import OpenAITextGeneration, TextGeneration
from ..llm.translator import TextTranslator
from ..models.datatypes import ContentDocument, Credentials, JobResult, OutputFormat
from ..retry import RetryExecutor
from ..state.keepalive import KeepAlive
from ..state.stages import ProcessingStage
from ..state.store import ProcessingStateStore
from ..telemetry.logger import RunLogger
from ..text.content import content_to_plain_text
from ..text.segmenter import TextSegmenter
from ..tts.orchestrator import SpeechConversionOrchestrator
from .context import JobContext
from .renderers import PlainTextRenderer, audio_result
from .telemetry import PipelineTelemetryMixin

TextGenerationBuilder = Callable[[Credentials, str], "TextGeneration | None"]


class ClipvoicePipeline(PipelineTelemetryMixin):
    """Coordinate all stages for a single Clipvoice job."""

    def __init__(
        self,
        config: ClipvoiceConfig | None = None,
        *,
        run_logger: RunLogger | None = None,
        extractor: ContentExtractor | None = None,
        speech_orchestrator: SpeechConversionOrchestrator | None = None,
        text_generation_builder: TextGenerationBuilder | None = None,
        retry_executor: RetryExecutor | None = None,
    ) -> None:
        """Initialize configuration and optional collaborator overrides."""

        self.config = config if config is not None else ClipvoiceConfig()
        self._run_logger = run_logger
        self._extractor = extractor if extractor is not None else ContentExtractor()
        self._speech_orchestrator = speech_orchestrator
        self._text_generation_builder = text_generation_builder
        self._retry_executor = (
            retry_executor if retry_executor is not None else RetryExecutor(run_logger=run_logger)
        )
        self._text_renderer = PlainTextRenderer()

    def create_context(
        self,
        storage: DurableKeyValueStore,
        *,
        keep_alive: KeepAlive | None = None,
    ) -> JobContext:
        """Create a job context whose store persists snapshots to `storage`."""

        store = ProcessingStateStore(
            storage=storage,
            language=self.config.ui_language,
            expiry_seconds=self.config.state_expiry_seconds,
            keep_alive=keep_alive,
        )
        return JobContext(store=store, run_logger=self._run_logger)

    def runtime(self) -> ProviderRuntimeConfig:
        """Resolve runtime provider settings and map failures to a stage error."""

        try:
            self.config.validate()
            return self.config.resolved_provider_runtime()
        except ValueError as exc:
            raise PipelineStageError(
                stage="config",
                detail=str(exc),
                hint="Update provider/model options and rerun the command.",
                code=ErrorCode.VALIDATION_ERROR,
            ) from exc

    def build_text_generation(self, credentials: Credentials, model: str) -> TextGeneration | None:
        """Return a text-generation capability, or `None` when no key is available."""

        if self._text_generation_builder is not None:
            return self._text_generation_builder(credentials, model)
        api_key = credentials.for_text_generation()
        if not api_key:
            return None
        return OpenAITextGeneration(
            client=OpenAIChatClient(
                api_key=api_key,
                timeout_seconds=self.config.request_timeout_seconds,
            ),
            model=model,
            retry_executor=self._retry_executor,
            retry_policy=self.config.retry_policy(),
        )

    async def run(
        self,
        context: JobContext,
        input_path: Path,
        *,
        output_format: OutputFormat = "audio",
    ) -> JobResult | None:
        """Run one job to a terminal state.

        Returns:
            The job result, or `None` when the job was cancelled.

        Raises:
            PipelineStageError: When a job is already active or config is invalid.
            Exception: The stage failure, after it was recorded on the store.
        """

        runtime = self.runtime()
        if not context.store.start():
            raise PipelineStageError(
                stage="starting",
                detail="Another job is already processing.",
                hint="Wait for it to finish or cancel it, then rerun the command.",
            )

        try:
            result = await self._execute(context, runtime, input_path, output_format)
            context.token.raise_if_cancelled(ProcessingStage.COMPLETE.value)
        except JobCancelledError as exc:
            logger.info("Job cancelled at stage `{}`.", exc.stage)
            context.store.cancel()
            return None
        except Exception as exc:
            if context.token.is_cancelled:
                logger.info("Discarding failure after cancellation: {}", exc)
                return None
            context.store.set_error(exc)
            raise

        context.store.complete(result)
        return result

    async def _execute(
        self,
        context: JobContext,
        runtime: ProviderRuntimeConfig,
        input_path: Path,
        output_format: OutputFormat,
    ) -> JobResult:
        """Run the stage sequence and return the rendered result."""

        credentials = runtime.credentials()
        document = await self._run_stage(
            context,
            ProcessingStage.EXTRACTING,
            lambda: self._extract(input_path),
        )
        text = content_to_plain_text(document)

        target_language = self.config.target_language
        if target_language and not _same_language(document.language, target_language):
            text = await self._run_stage(
                context,
                ProcessingStage.TRANSLATING,
                lambda: self._translate(text, target_language, credentials, runtime.text_model),
            )

        metadata = {
            **runtime.as_metadata(),
            "source": document.source,
            "ui_language": self.config.ui_language,
        }
        if target_language:
            metadata["target_language"] = target_language

        if output_format == "text":
            return await self._run_stage(
                context,
                ProcessingStage.GENERATING,
                lambda: self._render_text(document.title, text, metadata),
            )
        return await self._run_stage(
            context,
            ProcessingStage.GENERATING,
            lambda: self._generate_audio(context, runtime, document.title, text, metadata),
        )

    async def _extract(self, input_path: Path) -> ContentDocument:
        """Extract the input document in a worker thread."""

        try:
            return await asyncio.to_thread(self._extractor.extract, input_path)
        except ContentExtractionError as exc:
            raise PipelineStageError(
                stage=ProcessingStage.EXTRACTING.value,
                detail=str(exc),
                hint="Provide a readable .txt, .md, .html or text-based .pdf file.",
                code=ErrorCode.VALIDATION_ERROR,
            ) from exc

    async def _translate(
        self,
        text: str,
        target_language: str,
        credentials: Credentials,
        model: str,
    ) -> str:
        """Translate article text through the text-generation capability."""

        generator = self.build_text_generation(credentials, model)
        if generator is None:
            raise PipelineStageError(
                stage=ProcessingStage.TRANSLATING.value,
                detail="Translation requires a text-generation API key.",
                hint="Set `OPENAI_API_KEY` or `CLIPVOICE_TEXT_API_KEY`, or drop `target_language`.",
                code=ErrorCode.AUTH_ERROR,
            )
        return await TextTranslator(generator).translate(text, target_language)

    async def _render_text(self, title: str, text: str, metadata: dict[str, str]) -> JobResult:
        """Render the plain-text output."""

        return self._text_renderer.render(title, text, metadata)

    async def _generate_audio(
        self,
        context: JobContext,
        runtime: ProviderRuntimeConfig,
        title: str,
        text: str,
        metadata: dict[str, str],
    ) -> JobResult:
        """Segment, convert and assemble narrated audio."""

        chunks = TextSegmenter(self.config.segment_limits()).segment(text)
        if not chunks:
            raise PipelineStageError(
                stage=ProcessingStage.GENERATING.value,
                detail="No text available for audio conversion.",
                code=ErrorCode.VALIDATION_ERROR,
            )

        orchestrator = self._speech_orchestrator or self._build_speech_orchestrator(runtime)
        audio = await orchestrator.convert_chunks_to_audio(
            chunks,
            runtime.credentials(),
            self.config.speech_options(runtime),
            on_progress=lambda progress, status: context.report(progress=progress, status=status),
        )
        return audio_result(title, text, audio, metadata)

    def _build_speech_orchestrator(self, runtime: ProviderRuntimeConfig) -> SpeechConversionOrchestrator:
        """Build the speech orchestrator for one run's resolved runtime."""

        def _text_generation(credentials: Credentials) -> TextGeneration | None:
            return self.build_text_generation(credentials, runtime.text_model)

        return SpeechConversionOrchestrator(
            segmenter=TextSegmenter(self.config.segment_limits()),
            retry_executor=self._retry_executor,
            retry_policy=self.config.retry_policy(),
            backend_settings=self.config.speech_backend_settings(),
            text_generation_factory=_text_generation if runtime.ai_cleanup else None,
            call_timeout_seconds=self.config.request_timeout_seconds,
            ticker_interval_seconds=self.config.ticker_interval_seconds,
            ui_language=self.config.ui_language,
            run_logger=self._run_logger,
        )

    async def summarize(self, context: JobContext) -> ArticleSummary:
        """Summarize the current result, or the one preserved from the last job."""

        title, text = _summary_source(context)
        if not text:
            raise PipelineStageError(
                stage="summarize",
                detail="No processed article is available to summarize.",
                hint="Run `clipvoice convert <input>` first.",
                code=ErrorCode.VALIDATION_ERROR,
            )

        runtime = self.runtime()
        generator = self.build_text_generation(runtime.credentials(), runtime.text_model)
        if generator is None:
            raise PipelineStageError(
                stage="summarize",
                detail="Summaries require a text-generation API key.",
                hint="Set `OPENAI_API_KEY` or `CLIPVOICE_TEXT_API_KEY` and rerun the command.",
                code=ErrorCode.AUTH_ERROR,
            )
        summarizer = ArticleSummarizer(
            generator,
            language=self.config.target_language or self.config.ui_language,
        )
        return await summarizer.summarize(title, text)


def _summary_source(context: JobContext) -> tuple[str, str]:
    """Return title and text of the in-memory or preserved result."""

    current = context.snapshot().result
    if isinstance(current, JobResult):
        return current.title, current.text

    preserved = context.store.load_last_result() or {}
    return str(preserved.get("title") or ""), str(preserved.get("text") or "")


def _same_language(source_language: str | None, target_language: str) -> bool:
    """Return whether two language tags share a primary subtag."""

    if not source_language:
        return False
    return source_language.split("-")[0].lower() == target_language.split("-")[0].lower()
