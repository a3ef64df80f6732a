"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
job progress lines, snapshot descriptions, results and voice catalogs.
"""

from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import typer

from .errors import PipelineStageError
from .llm.summarizer import ArticleSummary
from .models.datatypes import JobResult
from .poller import describe_snapshot
from .state.store import ProcessingSnapshot
from .tts.providers import SpeechProviderSpec


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, PipelineStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


class ProgressPrinter:
    """Print one progress line per observed change of stage, progress or status."""

    def __init__(self, command_name: str, language: str) -> None:
        """Initialize command label and message language."""

        self._command_name = command_name
        self._language = language
        self._last_line: str | None = None

    def __call__(self, snapshot: ProcessingSnapshot) -> None:
        """Print the snapshot when it differs from the previously printed one."""

        stage = snapshot.current_stage.value if snapshot.current_stage else "none"
        line = (
            f"[progress] command={self._command_name} stage={stage} "
            f"{snapshot.progress}% {snapshot.status}"
        )
        if line == self._last_line:
            return
        self._last_line = line
        typer.echo(line)


def echo_snapshot(snapshot: ProcessingSnapshot, language: str) -> None:
    """Print a snapshot description with its stage and progress."""

    stage = snapshot.current_stage.value if snapshot.current_stage else "none"
    typer.echo(f"State: {describe_snapshot(snapshot, language)}")
    typer.echo(f"Stage: {stage}")
    typer.echo(f"Progress: {snapshot.progress}%")
    completed = ", ".join(item.value for item in snapshot.completed_stages) or "none"
    typer.echo(f"Completed stages: {completed}")
    if snapshot.error_code is not None:
        typer.echo(f"Error code: {snapshot.error_code.value}")


def echo_job_result(result: JobResult, output_path: Path) -> None:
    """Print the written output file and its metadata."""

    typer.echo(f"Title: {result.title}")
    typer.echo(f"Output ({result.output_format}): {output_path}")
    typer.echo(f"Size: {len(result.data)} bytes")
    provider = result.metadata.get("provider_tts")
    if result.output_format == "audio" and provider:
        typer.echo(f"Speech provider: {provider} (voice {result.metadata.get('tts_voice', 'default')})")


def echo_summary(summary: ArticleSummary) -> None:
    """Print a structured article summary."""

    typer.echo(summary.as_markdown())


def echo_voice_catalog(spec: SpeechProviderSpec) -> None:
    """Print one provider's limits, formats and voices."""

    typer.echo(f"{spec.tag}: {spec.display_name}")
    typer.echo(f"  Max input chars: {spec.max_input_chars}")
    typer.echo(f"  Formats: {', '.join(spec.formats)}")
    typer.echo(f"  Speed range: {spec.speed_range[0]}-{spec.speed_range[1]}")
    typer.echo(f"  Requires API key: {'yes' if spec.requires_api_key else 'no'}")
    if spec.voices:
        voices = ", ".join(
            f"{voice} (default)" if voice == spec.default_voice else voice
            for voice in spec.voices
        )
        typer.echo(f"  Voices: {voices}")
    else:
        typer.echo("  Voices: determined by the configured voice model")
