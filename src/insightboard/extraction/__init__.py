"""Transcript-to-task-list extraction backends."""

from insightboard.config import ExtractionSettings
from insightboard.extraction.base import ExtractionResult, Extractor, GenerationFailure
from insightboard.extraction.cli_extractor import CliExtractor
from insightboard.extraction.heuristic import HEURISTIC_SOURCE_MODEL, HeuristicExtractor


def build_extractor(settings: ExtractionSettings) -> Extractor:
    """CLI agent extractor when a command is configured, heuristic otherwise."""

    if settings.command_template:
        return CliExtractor(
            command_template=settings.command_template,
            model=settings.model,
            timeout_seconds=settings.timeout_seconds,
        )
    return HeuristicExtractor()


__all__ = [
    "HEURISTIC_SOURCE_MODEL",
    "CliExtractor",
    "ExtractionResult",
    "Extractor",
    "GenerationFailure",
    "HeuristicExtractor",
    "build_extractor",
]
