"""Extraction collaborator interface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from insightboard.graph.models import Task


class GenerationFailure(RuntimeError):
    """Extraction call failed or produced structurally invalid output."""


@dataclass(slots=True)
class ExtractionResult:
    """Raw task list plus the identifier of whatever produced it."""

    tasks: list[Task]
    source_model: str


class Extractor(Protocol):
    """Protocol implemented by transcript-to-task-list extractors."""

    def extract(self, transcript: str) -> ExtractionResult:
        """Return raw tasks for a transcript or raise :class:`GenerationFailure`."""
