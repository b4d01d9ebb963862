"""Fingerprint-keyed submission registry."""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from insightboard.graph.hashing import fingerprint
from insightboard.jobs.models import (
    DuplicateRace,
    JobStatus,
    PersistenceFailure,
    SubmitResult,
    ValidationError,
)
from insightboard.jobs.repository import JobRepository

logger = logging.getLogger(__name__)


class SubmissionRegistry:
    """Guarantees at most one submission, and so one job, per fingerprint."""

    def __init__(self, *, repository: JobRepository, max_transcript_chars: int = 100_000) -> None:
        self.repository = repository
        self.max_transcript_chars = max_transcript_chars

    def submit(self, transcript: object) -> SubmitResult:
        """Register a transcript, returning the existing job for known content.

        A uniqueness violation while creating the pair means a concurrent
        submission with the same fingerprint won the race; the lookup is
        repeated and its result returned.
        """

        text = self.validate(transcript)
        normalized_hash = fingerprint(text)

        try:
            existing = self.repository.find_submission_by_hash(normalized_hash)
            if existing is not None:
                logger.info(
                    "Deduplicated submission %s -> job %s",
                    normalized_hash[:12],
                    existing.job_id,
                )
                return SubmitResult(
                    submission_id=existing.submission_id,
                    job_id=existing.job_id,
                    status=existing.status,
                    is_new=False,
                )

            try:
                created = self.repository.create_submission_with_job(
                    transcript=text,
                    normalized_hash=normalized_hash,
                )
            except DuplicateRace as race:
                logger.warning(
                    "Concurrent duplicate submission for %s; re-querying",
                    normalized_hash[:12],
                )
                winner = self.repository.find_submission_by_hash(normalized_hash)
                if winner is None:
                    raise PersistenceFailure(
                        f"Failed to create job for submission {normalized_hash[:12]}: {race}",
                    ) from race
                return SubmitResult(
                    submission_id=winner.submission_id,
                    job_id=winner.job_id,
                    status=winner.status,
                    is_new=False,
                )
        except SQLAlchemyError as error:
            raise PersistenceFailure(f"Submission store unavailable: {error}") from error

        logger.info("Accepted submission %s as job %s", created.submission_id, created.job_id)
        return SubmitResult(
            submission_id=created.submission_id,
            job_id=created.job_id,
            status=JobStatus.PENDING,
            is_new=True,
        )

    def validate(self, transcript: object) -> str:
        """Return the trimmed transcript or raise :class:`ValidationError`."""

        if not isinstance(transcript, str):
            raise ValidationError("Transcript must be a string.")
        text = transcript.strip()
        if not text:
            raise ValidationError("Transcript must not be empty.")
        if len(text) > self.max_transcript_chars:
            raise ValidationError(
                f"Transcript is too long: {len(text)} chars (max {self.max_transcript_chars}).",
            )
        return text
