"""Job creation and lookup boundary."""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError

from insightboard.graph.codec import load_graph
from insightboard.jobs.executor import SerialExecutor
from insightboard.jobs.models import (
    CreateJobResult,
    JobDetails,
    JobEventView,
    PersistenceFailure,
    RecoveryReport,
)
from insightboard.jobs.registry import SubmissionRegistry
from insightboard.jobs.repository import JobRepository
from insightboard.storage.common import utc_now

logger = logging.getLogger(__name__)

INTERRUPTED_JOB_ERROR = (
    "Job interrupted before completion; resubmit is not possible for identical content."
)


class JobService:
    """Composes the submission registry and the serial executor."""

    def __init__(
        self,
        *,
        repository: JobRepository,
        executor: SerialExecutor,
        max_transcript_chars: int = 100_000,
    ) -> None:
        self.repository = repository
        self.executor = executor
        self.registry = SubmissionRegistry(
            repository=repository,
            max_transcript_chars=max_transcript_chars,
        )

    def create_job(self, transcript: object) -> CreateJobResult:
        """Register a transcript and hand new jobs to the executor."""

        submitted = self.registry.submit(transcript)
        if submitted.is_new:
            self.executor.enqueue(submitted.job_id)
        return CreateJobResult(
            job_id=submitted.job_id,
            status=submitted.status,
            deduplicated=not submitted.is_new,
        )

    def get_job(self, job_id: str) -> JobDetails | None:
        """Return job state with its parsed graph, or ``None`` for unknown ids."""

        return read_job_details(self.repository, job_id)

    def list_job_events(self, job_id: str) -> list[JobEventView]:
        return self.repository.list_job_events(job_id)

    def recover(self, stale_after_seconds: int) -> RecoveryReport:
        """Fail jobs stuck in processing and re-enqueue never-started ones."""

        older_than = utc_now() - timedelta(seconds=stale_after_seconds)
        failed = self.repository.fail_stale_processing(
            older_than=older_than,
            error=INTERRUPTED_JOB_ERROR,
        )
        for job_id in failed:
            logger.warning("Job %s was interrupted while processing; marked failed", job_id)

        pending = self.repository.list_pending_job_ids()
        for job_id in pending:
            self.executor.enqueue(job_id)
        if pending:
            logger.info("Re-enqueued %d pending jobs", len(pending))
        return RecoveryReport(failed_job_ids=failed, requeued_job_ids=pending)


def read_job_details(repository: JobRepository, job_id: str) -> JobDetails | None:
    """Read-only job lookup; needs the store but not an executor."""

    try:
        job = repository.find_job(job_id)
    except SQLAlchemyError as error:
        raise PersistenceFailure(f"Job store unavailable: {error}") from error
    if job is None:
        return None
    return JobDetails(
        job_id=job.job_id,
        status=job.status,
        error=job.error,
        source_model=job.source_model,
        created_at=job.created_at,
        updated_at=job.updated_at,
        submission_id=job.submission_id,
        graph=load_graph(job.graph_json),
    )
