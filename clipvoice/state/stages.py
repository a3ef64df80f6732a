"""Fixed processing stage set with declared relative order."""

from __future__ import annotations

from enum import Enum


class ProcessingStage(str, Enum):
    """Named pipeline phase used to compute implied completion."""

    STARTING = "starting"
    ANALYZING = "analyzing"
    EXTRACTING = "extracting"
    EXTRACTING_SUBTITLES = "extracting_subtitles"
    PROCESSING_SUBTITLES = "processing_subtitles"
    TRANSLATING = "translating"
    LOADING_IMAGES = "loading_images"
    GENERATING = "generating"
    COMPLETE = "complete"

    @property
    def order(self) -> float:
        """Return the declared relative order of this stage."""

        return _STAGE_ORDER[self]


_STAGE_ORDER: dict[ProcessingStage, float] = {
    ProcessingStage.STARTING: 0,
    ProcessingStage.ANALYZING: 1,
    ProcessingStage.EXTRACTING: 2,
    ProcessingStage.EXTRACTING_SUBTITLES: 2.5,
    ProcessingStage.PROCESSING_SUBTITLES: 2.6,
    ProcessingStage.TRANSLATING: 3,
    ProcessingStage.LOADING_IMAGES: 4,
    ProcessingStage.GENERATING: 5,
    ProcessingStage.COMPLETE: 6,
}


def stages_before(stage: ProcessingStage) -> tuple[ProcessingStage, ...]:
    """Return every stage with strictly lower order, in ascending order."""

    return tuple(
        candidate
        for candidate in sorted(ProcessingStage, key=lambda item: item.order)
        if candidate.order < stage.order
    )


def parse_stage(value: object) -> ProcessingStage | None:
    """Parse a stored stage identifier, returning `None` for unknown values."""

    if isinstance(value, ProcessingStage):
        return value
    if not isinstance(value, str):
        return None
    try:
        return ProcessingStage(value.strip().lower())
    except ValueError:
        return None
