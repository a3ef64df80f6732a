"""Command-line interface for Clipvoice.

Responsibilities:
- Expose user-facing commands for conversion, state inspection and summaries.
- Convert CLI arguments into `ClipvoiceConfig` with cli > env > default precedence.
- Wire the job context, durable snapshot store and progress poller for a run.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

import asyncio
import contextlib
from pathlib import Path
from typing import Annotated

import typer

from .cli_rendering import (
    ProgressPrinter,
    echo_job_result,
    echo_snapshot,
    echo_summary,
    echo_voice_catalog,
    exit_with_command_error,
)
from .config import ClipvoiceConfig, ConfigLoader, RuntimeConfigSources
from .errors import PipelineStageError
from .io.storage import JsonFileKeyValueStore, OverflowKeyValueStore
from .models.datatypes import JobResult
from .parsing import normalize_optional_string
from .pipeline import ClipvoicePipeline, JobContext
from .poller import ClientPoller, durable_snapshot_reader
from .state.keepalive import HeartbeatKeepAlive
from .telemetry.logger import RunLogger
from .tts.providers import SPEECH_PROVIDERS, get_provider_spec

app = typer.Typer(
    name="clipvoice",
    no_args_is_help=True,
    help="Clipvoice CLI.",
)

_OUTPUT_FORMATS = ("audio", "text")


def _load_config(config_path: Path | None) -> ClipvoiceConfig:
    """Load YAML config when requested, else env config, mapping failures to stage errors."""

    if config_path is None:
        try:
            return ConfigLoader.from_env()
        except ValueError as exc:
            raise PipelineStageError(
                stage="config",
                detail=f"Invalid environment configuration: {exc}",
                hint="Fix the `CLIPVOICE_*` environment variables and rerun.",
            ) from exc

    try:
        return ConfigLoader.from_yaml(config_path)
    except FileNotFoundError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Invalid config file `{config_path}`: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc


def _state_storage(config: ClipvoiceConfig) -> OverflowKeyValueStore:
    """Return the durable snapshot store under the configured state directory."""

    return OverflowKeyValueStore(
        primary=JsonFileKeyValueStore(config.state_dir),
        overflow=JsonFileKeyValueStore(config.state_dir / "overflow"),
    )


def _runtime_cli_values(**values: object) -> dict[str, str]:
    """Keep explicitly provided runtime values as normalized strings."""

    resolved: dict[str, str] = {}
    for key, value in values.items():
        if isinstance(value, bool):
            resolved[key] = "true" if value else "false"
            continue
        normalized = normalize_optional_string(value)
        if normalized is not None:
            resolved[key] = normalized
    return resolved


async def _run_with_progress(
    pipeline: ClipvoicePipeline,
    context: JobContext,
    input_path: Path,
    output_format: str,
) -> JobResult | None:
    """Run the pipeline while a poller prints progress lines."""

    poller = ClientPoller(
        context.snapshot,
        ProgressPrinter(command_name="convert", language=pipeline.config.ui_language),
    )
    poll_task = asyncio.create_task(poller.run(until=lambda _snapshot: False))
    try:
        return await pipeline.run(context, input_path, output_format=output_format)  # type: ignore[arg-type]
    finally:
        poll_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await poll_task


@app.command("convert")
def convert_command(
    input_path: Annotated[
        Path,
        typer.Argument(help="Article file to convert (.txt, .md, .html or .pdf)."),
    ],
    output_format: Annotated[
        str,
        typer.Option("--format", help="Output format: `audio` or `text`."),
    ] = "audio",
    out: Annotated[
        Path | None,
        typer.Option("--out", help="Output directory (overrides config value)."),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to YAML config file with command defaults."),
    ] = None,
    provider: Annotated[
        str | None,
        typer.Option("--provider", help="Speech provider: `openai`, `elevenlabs` or `offline`."),
    ] = None,
    voice: Annotated[
        str | None, typer.Option("--voice", help="Speech voice id override.")
    ] = None,
    model: Annotated[
        str | None, typer.Option("--model", help="Speech model id override.")
    ] = None,
    text_model: Annotated[
        str | None,
        typer.Option("--text-model", help="Text-generation model for cleanup and translation."),
    ] = None,
    speed: Annotated[
        float | None, typer.Option("--speed", help="Speaking rate multiplier.")
    ] = None,
    audio_format: Annotated[
        str | None,
        typer.Option("--audio-format", help="Requested audio container, e.g. `mp3` or `wav`."),
    ] = None,
    target_language: Annotated[
        str | None,
        typer.Option("--translate-to", help="Translate the article into this language first."),
    ] = None,
    ui_language: Annotated[
        str | None,
        typer.Option("--ui-language", help="Language of status and error messages."),
    ] = None,
    api_key: Annotated[
        str | None,
        typer.Option("--api-key", help="Speech provider API key override."),
    ] = None,
    ai_cleanup: Annotated[
        bool | None,
        typer.Option(
            "--ai-cleanup/--no-ai-cleanup",
            help="Clean chunks for narration with the text-generation model.",
        ),
    ] = None,
    piper_model: Annotated[
        str | None,
        typer.Option("--piper-model", help="Piper voice model path for the offline provider."),
    ] = None,
) -> None:
    """Convert an article into narrated audio or plain text."""

    context: JobContext | None = None
    try:
        if output_format not in _OUTPUT_FORMATS:
            raise PipelineStageError(
                stage="config",
                detail=f"Unsupported output format `{output_format}`.",
                hint="Use `--format audio` or `--format text`.",
            )
        config = _load_config(config_file)
        if out is not None:
            config.output_dir = out
        if speed is not None:
            config.tts_speed = speed
        if audio_format is not None:
            config.audio_format = audio_format
        if target_language is not None:
            config.target_language = target_language
        if ui_language is not None:
            config.ui_language = ui_language
        if piper_model is not None:
            config.piper_model = piper_model
        config.runtime_sources = RuntimeConfigSources(
            cli=_runtime_cli_values(
                tts_provider=provider,
                tts_voice=voice,
                tts_model=model,
                text_model=text_model,
                api_key=api_key,
                ai_cleanup=ai_cleanup,
            ),
            env=config.runtime_sources.env,
        )

        pipeline = ClipvoicePipeline(config, run_logger=RunLogger())
        context = pipeline.create_context(
            _state_storage(config),
            keep_alive=HeartbeatKeepAlive(config.keepalive_interval_seconds),
        )
        restored = context.store.restore_from_storage()
        if restored is not None:
            typer.secho(
                "A previous job was interrupted and cannot be resumed; starting a new job.",
                fg=typer.colors.YELLOW,
                err=True,
            )
        result = asyncio.run(_run_with_progress(pipeline, context, input_path, output_format))
    except KeyboardInterrupt:
        if context is not None:
            context.cancel()
        typer.secho("convert cancelled.", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=130)
    except Exception as exc:
        exit_with_command_error("convert", exc)

    if result is None:
        typer.secho("convert cancelled.", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=130)

    try:
        config.output_dir.mkdir(parents=True, exist_ok=True)
        output_path = config.output_dir / result.filename
        output_path.write_bytes(result.data)
        context.store.preserve_result()
    except Exception as exc:
        exit_with_command_error("convert", exc)

    echo_job_result(result, output_path)


@app.command("status")
def status_command(
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to YAML config file with command defaults."),
    ] = None,
) -> None:
    """Show the durable snapshot of the job currently processing, if any."""

    try:
        config = _load_config(config_file)
        snapshot = durable_snapshot_reader(_state_storage(config))()
    except Exception as exc:
        exit_with_command_error("status", exc)

    if snapshot is None:
        typer.echo("No job is processing.")
        return
    echo_snapshot(snapshot, config.ui_language)


@app.command("recover")
def recover_command(
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to YAML config file with command defaults."),
    ] = None,
) -> None:
    """Surface a job interrupted by a crash as a terminal error and clear it."""

    try:
        config = _load_config(config_file)
        pipeline = ClipvoicePipeline(config)
        context = pipeline.create_context(_state_storage(config))
        restored = context.store.restore_from_storage()
    except Exception as exc:
        exit_with_command_error("recover", exc)

    if restored is None:
        typer.echo("Nothing to recover.")
        return
    echo_snapshot(restored, config.ui_language)


@app.command("summarize")
def summarize_command(
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to YAML config file with command defaults."),
    ] = None,
    out: Annotated[
        Path | None,
        typer.Option("--out", help="Write the Markdown summary to this file."),
    ] = None,
) -> None:
    """Summarize the article processed by the last `convert` run."""

    try:
        config = _load_config(config_file)
        pipeline = ClipvoicePipeline(config, run_logger=RunLogger())
        context = pipeline.create_context(_state_storage(config))
        summary = asyncio.run(pipeline.summarize(context))
        if out is not None:
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_text(summary.as_markdown() + "\n", encoding="utf-8")
    except Exception as exc:
        exit_with_command_error("summarize", exc)

    echo_summary(summary)


@app.command("voices")
def voices_command(
    provider: Annotated[
        str | None,
        typer.Option("--provider", help="Limit output to one speech provider."),
    ] = None,
) -> None:
    """List speech providers with their limits, formats and voices."""

    try:
        specs = [get_provider_spec(provider)] if provider else list(SPEECH_PROVIDERS.values())
    except Exception as exc:
        exit_with_command_error("voices", exc)

    for spec in specs:
        echo_voice_catalog(spec)


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
