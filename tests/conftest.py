"""Shared test fixtures."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

from insightboard.extraction.base import ExtractionResult, GenerationFailure
from insightboard.graph.models import Task, TaskPriority
from insightboard.jobs.repository import JobRepository

_SRC_DIR = Path(__file__).resolve().parents[1] / "src"


def echo_agent_command(mode: str = "plain") -> str:
    """Command template that runs the bundled echo agent in the given mode."""

    return (
        f"{sys.executable} -m insightboard.extraction.echo_agent "
        f"--prompt-file {{prompt_file}} --mode {mode}"
    )


class StaticExtractor:
    """Returns the same task list for every transcript and records calls."""

    def __init__(self, tasks: list[Task], *, source_model: str = "static-model") -> None:
        self.tasks = tasks
        self.source_model = source_model
        self.calls: list[str] = []

    def extract(self, transcript: str) -> ExtractionResult:
        self.calls.append(transcript)
        return ExtractionResult(tasks=list(self.tasks), source_model=self.source_model)


class FailingExtractor:
    """Raises for transcripts containing ``marker`` and succeeds otherwise."""

    def __init__(self, marker: str, *, error: Exception | None = None) -> None:
        self.marker = marker
        self.error = error or GenerationFailure("agent exploded")
        self.calls: list[str] = []

    def extract(self, transcript: str) -> ExtractionResult:
        self.calls.append(transcript)
        if self.marker in transcript:
            raise self.error
        return ExtractionResult(
            tasks=[Task(id="T1", description=transcript, priority=TaskPriority.P2)],
            source_model="fake-model",
        )


@pytest.fixture()
def repository(tmp_path: Path) -> Iterator[JobRepository]:
    repo = JobRepository(tmp_path / "insightboard.db")
    repo.init_schema()
    yield repo
    repo.close()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "INSIGHTBOARD_DB_PATH",
        "INSIGHTBOARD_SQLITE_BUSY_TIMEOUT_MS",
        "INSIGHTBOARD_EXTRACTOR_COMMAND",
        "INSIGHTBOARD_EXTRACTOR_MODEL",
        "INSIGHTBOARD_EXTRACTOR_TIMEOUT_SECONDS",
        "INSIGHTBOARD_MAX_TRANSCRIPT_CHARS",
        "INSIGHTBOARD_STALE_PROCESSING_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    # Agent subprocesses import the package from the source tree.
    existing = os.environ.get("PYTHONPATH")
    monkeypatch.setenv("PYTHONPATH", os.pathsep.join(filter(None, [str(_SRC_DIR), existing])))
