"""Runtime configuration for the job pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True)
class ExtractionSettings:
    """Task extraction collaborator settings."""

    command_template: str | None = None
    model: str = "gpt-4.1-mini"
    timeout_seconds: int = 120


@dataclass(slots=True)
class JobSettings:
    """Submission and executor settings."""

    max_transcript_chars: int = 100_000
    stale_processing_seconds: int = 1_800


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".insightboard.db")
    sqlite_busy_timeout_ms: int = 5_000
    extraction: ExtractionSettings = field(default_factory=ExtractionSettings)
    jobs: JobSettings = field(default_factory=JobSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path or Path(os.getenv("INSIGHTBOARD_DB_PATH", ".insightboard.db")),
            sqlite_busy_timeout_ms=int(os.getenv("INSIGHTBOARD_SQLITE_BUSY_TIMEOUT_MS", "5000")),
            extraction=ExtractionSettings(
                command_template=os.getenv("INSIGHTBOARD_EXTRACTOR_COMMAND", "").strip() or None,
                model=os.getenv("INSIGHTBOARD_EXTRACTOR_MODEL", "gpt-4.1-mini"),
                timeout_seconds=int(os.getenv("INSIGHTBOARD_EXTRACTOR_TIMEOUT_SECONDS", "120")),
            ),
            jobs=JobSettings(
                max_transcript_chars=int(
                    os.getenv("INSIGHTBOARD_MAX_TRANSCRIPT_CHARS", "100000"),
                ),
                stale_processing_seconds=int(
                    os.getenv("INSIGHTBOARD_STALE_PROCESSING_SECONDS", "1800"),
                ),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for non-positive limits."""

        if self.sqlite_busy_timeout_ms <= 0:
            raise ValueError("INSIGHTBOARD_SQLITE_BUSY_TIMEOUT_MS must be > 0.")
        if self.extraction.timeout_seconds <= 0:
            raise ValueError("INSIGHTBOARD_EXTRACTOR_TIMEOUT_SECONDS must be > 0.")
        if not self.extraction.model.strip():
            raise ValueError("INSIGHTBOARD_EXTRACTOR_MODEL must not be empty.")
        if self.jobs.max_transcript_chars <= 0:
            raise ValueError("INSIGHTBOARD_MAX_TRANSCRIPT_CHARS must be > 0.")
        if self.jobs.stale_processing_seconds <= 0:
            raise ValueError("INSIGHTBOARD_STALE_PROCESSING_SECONDS must be > 0.")
