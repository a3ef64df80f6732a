"""Sequential chunk-to-speech conversion with ticker-driven progress.

Responsibilities:
- Clean each chunk for narration, then subdivide it to the provider's ceiling.
- Convert chunks strictly one at a time in index order, each call wrapped by
  the retry executor and bounded by a per-call timeout.
- Report progress through a time-based ticker between 60% and 95%.
- Abort the whole conversion on the first failing chunk.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import contextlib
import math
import time

from loguru import logger

from ..audio.assembler import AudioAssembler
from ..errors import ChunkConversionError, ErrorCode, ProviderError, normalize_error
from ..llm.narration import AINarrationPreparer, NarrationPreparer, RuleBasedNarrationPreparer
from ..llm.text_generation import TextGeneration
from ..locales import translate
from ..models.datatypes import Credentials, SpeechOptions, TextChunk
from ..retry import RetryExecutor, RetryPolicy
from ..telemetry.logger import RunLogger
from ..text.segmenter import TextSegmenter
from .providers import SpeechProviderSpec
from .synthesizer import SpeechBackendSettings, SpeechSynthesis, create_speech_synthesis

ProgressCallback = Callable[[int, str], None]
SynthesisFactory = Callable[[str, Credentials], SpeechSynthesis]
TextGenerationFactory = Callable[[Credentials], "TextGeneration | None"]

PREPARATION_PROGRESS_START = 15
PREPARATION_PROGRESS_END = 55
CONVERSION_PROGRESS_START = 60
CONVERSION_PROGRESS_END = 95
_IN_FLIGHT_FRACTION_CAP = 0.9


class _ConversionProgress:
    """Track conversion position and estimate progress for the ticker."""

    def __init__(self, total: int, clock: Callable[[], float]) -> None:
        """Initialize counters for `total` dispatched chunks."""

        self.total = total
        self.completed = 0
        self.current = 1
        self._clock = clock
        self._started_at = clock()
        self._chunk_started_at = self._started_at

    def begin(self, position: int) -> None:
        """Record that the chunk at 1-based `position` is in flight."""

        self.current = position
        self._chunk_started_at = self._clock()

    def finish(self, position: int) -> None:
        """Record that the chunk at 1-based `position` completed."""

        self.completed = position

    def percent(self) -> int:
        """Return progress within the conversion band, never reaching its end."""

        fraction = float(self.completed)
        if self.completed > 0 and self.completed < self.total:
            average = (self._chunk_started_at - self._started_at) / self.completed
            if average > 0:
                elapsed = self._clock() - self._chunk_started_at
                fraction += min(_IN_FLIGHT_FRACTION_CAP, elapsed / average)
        span = CONVERSION_PROGRESS_END - CONVERSION_PROGRESS_START
        progress = CONVERSION_PROGRESS_START + math.floor(fraction / self.total * span)
        return min(CONVERSION_PROGRESS_END - 1, progress)


class SpeechConversionOrchestrator:
    """Convert text chunks to one audio binary through a speech provider variant."""

    def __init__(
        self,
        *,
        segmenter: TextSegmenter | None = None,
        assembler: AudioAssembler | None = None,
        retry_executor: RetryExecutor | None = None,
        retry_policy: RetryPolicy | None = None,
        synthesis_factory: SynthesisFactory | None = None,
        backend_settings: SpeechBackendSettings | None = None,
        text_generation_factory: TextGenerationFactory | None = None,
        call_timeout_seconds: float | None = 120.0,
        ticker_interval_seconds: float = 2.0,
        ui_language: str = "en",
        run_logger: RunLogger | None = None,
        clock: Callable[[], float] = time.monotonic,
        ticker_sleeper: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        """Initialize collaborators; defaults build real provider variants."""

        self.segmenter = segmenter if segmenter is not None else TextSegmenter()
        self.assembler = assembler if assembler is not None else AudioAssembler()
        self.retry_executor = (
            retry_executor if retry_executor is not None else RetryExecutor(run_logger=run_logger)
        )
        self.retry_policy = retry_policy
        settings = backend_settings if backend_settings is not None else SpeechBackendSettings()
        self._synthesis_factory = synthesis_factory or (
            lambda provider, credentials: create_speech_synthesis(provider, credentials, settings)
        )
        self._text_generation_factory = text_generation_factory
        self.call_timeout_seconds = call_timeout_seconds
        self.ticker_interval_seconds = ticker_interval_seconds
        self.ui_language = ui_language
        self._run_logger = run_logger
        self._clock = clock
        self._ticker_sleeper = ticker_sleeper

    def select_preparer(
        self,
        spec: SpeechProviderSpec,
        credentials: Credentials,
        language: str | None,
    ) -> NarrationPreparer:
        """Return AI cleanup when the variant allows it and a generator exists."""

        if spec.supports_ai_cleanup and self._text_generation_factory is not None:
            generator = self._text_generation_factory(credentials)
            if generator is not None:
                return AINarrationPreparer(generator, language=language)
        return RuleBasedNarrationPreparer()

    async def convert_chunks_to_audio(
        self,
        chunks: list[TextChunk],
        credentials: Credentials,
        options: SpeechOptions,
        on_progress: ProgressCallback | None = None,
    ) -> bytes:
        """Convert ordered chunks to audio and assemble a single binary.

        Raises:
            ChunkConversionError: When any chunk fails after retries; carries
                the 1-based failing chunk number.
            ProviderError: When no narratable text remains after cleanup.
        """

        report = on_progress if on_progress is not None else (lambda _progress, _status: None)
        synthesis = self._synthesis_factory(options.provider, credentials)
        spec = synthesis.spec
        resolved_options = spec.resolve_options(options)

        prepared = await self._prepare_chunks(
            sorted(chunks, key=TextChunk.sort_key),
            self.select_preparer(spec, credentials, resolved_options.language),
            report,
        )
        dispatch = self.segmenter.split_for_provider_limit(prepared, spec.max_input_chars)
        if not dispatch:
            raise ProviderError(
                "No narratable text remained after cleanup.",
                code=ErrorCode.VALIDATION_ERROR,
            )

        fragments = await self._convert_sequentially(dispatch, synthesis, resolved_options, report)

        report(CONVERSION_PROGRESS_END, translate("statusAssemblingAudio", self.ui_language))
        return self.assembler.concatenate(fragments)

    async def _prepare_chunks(
        self,
        chunks: list[TextChunk],
        preparer: NarrationPreparer,
        report: ProgressCallback,
    ) -> list[TextChunk]:
        """Run narration cleanup over every chunk, dropping empty results."""

        prepared: list[TextChunk] = []
        total = len(chunks)
        span = PREPARATION_PROGRESS_END - PREPARATION_PROGRESS_START
        for position, chunk in enumerate(chunks, start=1):
            report(
                PREPARATION_PROGRESS_START + math.floor((position - 1) / total * span),
                translate("statusPreparingAudio", self.ui_language),
            )
            text = await preparer.prepare(chunk.text, position, total)
            if text.strip():
                prepared.append(TextChunk(text=text.strip(), index=chunk.index, sub_index=chunk.sub_index))
        return prepared

    async def _convert_sequentially(
        self,
        dispatch: list[TextChunk],
        synthesis: SpeechSynthesis,
        options: SpeechOptions,
        report: ProgressCallback,
    ) -> list[bytes]:
        """Convert chunks one at a time while the ticker reports progress."""

        total = len(dispatch)
        tracker = _ConversionProgress(total, self._clock)
        report(CONVERSION_PROGRESS_START, self._converting_status(1, total))

        ticker: asyncio.Task[None] | None = None
        if total > 1:
            ticker = asyncio.create_task(self._run_ticker(tracker, report))

        fragments: list[bytes] = []
        try:
            for position, chunk in enumerate(dispatch, start=1):
                tracker.begin(position)
                try:
                    audio = await self.retry_executor.execute(
                        lambda text=chunk.text: self._bounded_call(synthesis, text, options),
                        self.retry_policy,
                        operation_name=f"tts:{synthesis.spec.tag}",
                    )
                except Exception as exc:
                    logger.error(
                        "Failed to convert chunk {}/{}: {}", position, total, normalize_error(exc).message
                    )
                    raise ChunkConversionError(chunk_number=position, cause=exc) from exc
                fragments.append(audio)
                tracker.finish(position)
                if self._run_logger is not None:
                    self._run_logger.log_chunk_converted(position, total, len(audio))
        finally:
            if ticker is not None:
                ticker.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await ticker
        return fragments

    async def _bounded_call(
        self,
        synthesis: SpeechSynthesis,
        text: str,
        options: SpeechOptions,
    ) -> bytes:
        """Run one synthesis call under the per-call timeout."""

        if self.call_timeout_seconds is None:
            return await synthesis.synthesize(text, options)
        return await asyncio.wait_for(
            synthesis.synthesize(text, options),
            timeout=self.call_timeout_seconds,
        )

    async def _run_ticker(self, tracker: _ConversionProgress, report: ProgressCallback) -> None:
        """Report estimated progress every `ticker_interval_seconds`."""

        while True:
            await self._ticker_sleeper(self.ticker_interval_seconds)
            report(tracker.percent(), self._converting_status(tracker.current, tracker.total))

    def _converting_status(self, current: int, total: int) -> str:
        """Return the localized per-segment status line."""

        return translate("statusConvertingSegment", self.ui_language, current=current, total=total)
