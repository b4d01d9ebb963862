"""Persistent store for submissions and jobs."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from uuid import uuid4

from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from insightboard.jobs.models import (
    CreatedSubmission,
    DuplicateRace,
    InvalidJobTransition,
    JobEventView,
    JobNotFoundError,
    JobStatus,
    JobView,
    SubmissionJobView,
    ensure_transition,
)
from insightboard.storage.alembic_runner import upgrade_head
from insightboard.storage.common import (
    build_sqlite_engine,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
)
from insightboard.storage.sqlmodel_models import Job, JobEvent, Submission


class JobRepository:
    """Submission/job persistence facade backed by SQLModel + SQLite.

    Every state transition is a conditional update on the expected current
    status, committed together with its audit event.
    """

    def __init__(self, db_path: Path, *, sqlite_busy_timeout_ms: int = 5_000) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=sqlite_busy_timeout_ms)

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations."""

        upgrade_head(self.db_path)

    def create_submission_with_job(
        self,
        *,
        transcript: str,
        normalized_hash: str,
    ) -> CreatedSubmission:
        """Insert a submission and its pending job in one transaction."""

        now = to_db_datetime(utc_now())
        submission_id = str(uuid4())
        job_id = str(uuid4())
        with Session(self.engine) as session:
            try:
                session.add(
                    Submission(
                        id=submission_id,
                        transcript=transcript,
                        normalized_hash=normalized_hash,
                        created_at=now,
                        updated_at=now,
                    ),
                )
                session.flush()
                session.add(
                    Job(
                        id=job_id,
                        submission_id=submission_id,
                        status=JobStatus.PENDING.value,
                        created_at=now,
                        updated_at=now,
                    ),
                )
                session.flush()
                self._add_event(
                    session=session,
                    job_id=job_id,
                    event_type="created",
                    status_from=None,
                    status_to=JobStatus.PENDING,
                    details={"submission_id": submission_id},
                )
                session.commit()
            except IntegrityError as error:
                session.rollback()
                raise DuplicateRace(normalized_hash) from error
        return CreatedSubmission(submission_id=submission_id, job_id=job_id)

    def find_submission_by_hash(self, normalized_hash: str) -> SubmissionJobView | None:
        """Return the submission and its job for a fingerprint, if any."""

        with Session(self.engine) as session:
            row = session.exec(
                select(Submission, Job)
                .join(Job, col(Job.submission_id) == col(Submission.id))
                .where(Submission.normalized_hash == normalized_hash),
            ).one_or_none()
        if row is None:
            return None
        submission, job = row
        return SubmissionJobView(
            submission_id=submission.id,
            transcript=submission.transcript,
            normalized_hash=submission.normalized_hash,
            job_id=job.id,
            status=JobStatus(job.status),
            error=job.error,
            graph_json=job.graph_json,
            source_model=job.source_model,
            job_created_at=to_utc_aware_datetime(job.created_at),
            job_updated_at=to_utc_aware_datetime(job.updated_at),
        )

    def find_job(self, job_id: str) -> JobView | None:
        """Return one job joined with its submission transcript."""

        with Session(self.engine) as session:
            row = session.exec(
                select(Job, Submission)
                .join(Submission, col(Submission.id) == col(Job.submission_id))
                .where(Job.id == job_id),
            ).one_or_none()
        if row is None:
            return None
        job, submission = row
        return _to_job_view(job, submission)

    def list_jobs(self, *, status: JobStatus | None = None, limit: int = 50) -> list[JobView]:
        """List recent jobs, optionally filtered by status."""

        with Session(self.engine) as session:
            statement = (
                select(Job, Submission)
                .join(Submission, col(Submission.id) == col(Job.submission_id))
                .order_by(col(Job.created_at).desc(), col(Job.id).desc())
                .limit(limit)
            )
            if status is not None:
                statement = statement.where(Job.status == status.value)
            rows = session.exec(statement).all()
        return [_to_job_view(job, submission) for job, submission in rows]

    def list_pending_job_ids(self) -> list[str]:
        """Ids of jobs that were accepted but never started, oldest first."""

        with Session(self.engine) as session:
            rows = session.exec(
                select(Job.id)
                .where(Job.status == JobStatus.PENDING.value)
                .order_by(col(Job.created_at).asc(), col(Job.id).asc()),
            ).all()
        return list(rows)

    def list_job_events(self, job_id: str) -> list[JobEventView]:
        """Return the audit trail of one job in commit order."""

        with Session(self.engine) as session:
            rows = session.exec(
                select(JobEvent)
                .where(JobEvent.job_id == job_id)
                .order_by(col(JobEvent.created_at).asc(), col(JobEvent.id).asc()),
            ).all()

        events: list[JobEventView] = []
        for row in rows:
            details = {}
            if row.details_json:
                parsed = json.loads(row.details_json)
                if isinstance(parsed, dict):
                    details = parsed
            events.append(
                JobEventView(
                    event_id=row.id or 0,
                    job_id=row.job_id,
                    event_type=row.event_type,
                    status_from=JobStatus(row.status_from) if row.status_from else None,
                    status_to=JobStatus(row.status_to) if row.status_to else None,
                    created_at=to_utc_aware_datetime(row.created_at),
                    details=details,
                ),
            )
        return events

    def mark_processing(self, job_id: str) -> None:
        """Move a pending job to processing and clear any prior error."""

        now = to_db_datetime(utc_now())
        self._transition(
            job_id=job_id,
            status_to=JobStatus.PROCESSING,
            values={"error": None, "started_at": now, "updated_at": now},
            event_type="processing",
            details={},
        )

    def mark_completed(self, job_id: str, *, graph_json: str, source_model: str) -> None:
        """Attach the serialized graph and finish the job."""

        now = to_db_datetime(utc_now())
        self._transition(
            job_id=job_id,
            status_to=JobStatus.COMPLETED,
            values={
                "graph_json": graph_json,
                "source_model": source_model,
                "error": None,
                "finished_at": now,
                "updated_at": now,
            },
            event_type="completed",
            details={"source_model": source_model},
        )

    def mark_failed(self, job_id: str, *, error: str) -> None:
        """Record a failure message and finish the job."""

        now = to_db_datetime(utc_now())
        self._transition(
            job_id=job_id,
            status_to=JobStatus.FAILED,
            values={"error": error, "finished_at": now, "updated_at": now},
            event_type="failed",
            details={"error": error},
        )

    def abort_pending(self, job_id: str, *, error: str) -> None:
        """Fail a job that could not be moved to processing.

        Only the executor's failure branch uses this path; the regular state
        machine never allows ``pending -> failed``.
        """

        now = to_db_datetime(utc_now())
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(Job)
                .where(
                    col(Job.id) == job_id,
                    col(Job.status) == JobStatus.PENDING.value,
                )
                .values(
                    status=JobStatus.FAILED.value,
                    error=error,
                    finished_at=now,
                    updated_at=now,
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                row = session.get(Job, job_id)
                if row is None:
                    raise JobNotFoundError(job_id)
                raise InvalidJobTransition(job_id, JobStatus(row.status), JobStatus.FAILED)

            self._add_event(
                session=session,
                job_id=job_id,
                event_type="aborted",
                status_from=JobStatus.PENDING,
                status_to=JobStatus.FAILED,
                details={"error": error},
            )
            session.commit()

    def fail_stale_processing(self, *, older_than: datetime, error: str) -> list[str]:
        """Fail jobs left in processing whose last update predates ``older_than``."""

        cutoff = to_db_datetime(older_than)
        now = to_db_datetime(utc_now())
        failed: list[str] = []
        with Session(self.engine) as session:
            stale_ids = session.exec(
                select(Job.id)
                .where(
                    Job.status == JobStatus.PROCESSING.value,
                    col(Job.updated_at) < cutoff,
                )
                .order_by(col(Job.created_at).asc()),
            ).all()
            for job_id in stale_ids:
                result = session.exec(
                    sa_update(Job)
                    .where(
                        col(Job.id) == job_id,
                        col(Job.status) == JobStatus.PROCESSING.value,
                    )
                    .values(
                        status=JobStatus.FAILED.value,
                        error=error,
                        finished_at=now,
                        updated_at=now,
                    ),
                )
                if result.rowcount != 1:
                    continue
                self._add_event(
                    session=session,
                    job_id=job_id,
                    event_type="recovered",
                    status_from=JobStatus.PROCESSING,
                    status_to=JobStatus.FAILED,
                    details={"error": error, "stale_before": cutoff.isoformat()},
                )
                failed.append(job_id)
            session.commit()
        return failed

    def _transition(  # noqa: PLR0913
        self,
        *,
        job_id: str,
        status_to: JobStatus,
        values: dict[str, object],
        event_type: str,
        details: dict[str, object],
    ) -> None:
        with Session(self.engine) as session:
            row = session.get(Job, job_id)
            if row is None:
                raise JobNotFoundError(job_id)
            status_from = JobStatus(row.status)
            ensure_transition(job_id, status_from, status_to)

            result = session.exec(
                sa_update(Job)
                .where(
                    col(Job.id) == job_id,
                    col(Job.status) == status_from.value,
                )
                .values(status=status_to.value, **values),
            )
            if result.rowcount != 1:
                session.rollback()
                raise InvalidJobTransition(job_id, status_from, status_to)

            self._add_event(
                session=session,
                job_id=job_id,
                event_type=event_type,
                status_from=status_from,
                status_to=status_to,
                details=details,
            )
            session.commit()

    def _add_event(  # noqa: PLR0913
        self,
        *,
        session: Session,
        job_id: str,
        event_type: str,
        status_from: JobStatus | None,
        status_to: JobStatus | None,
        details: dict[str, object],
    ) -> None:
        session.add(
            JobEvent(
                job_id=job_id,
                event_type=event_type,
                status_from=status_from.value if status_from is not None else None,
                status_to=status_to.value if status_to is not None else None,
                details_json=json.dumps(details, ensure_ascii=False, sort_keys=True)
                if details
                else None,
                created_at=to_db_datetime(utc_now()),
            ),
        )


def _to_job_view(job: Job, submission: Submission) -> JobView:
    return JobView(
        job_id=job.id,
        submission_id=job.submission_id,
        status=JobStatus(job.status),
        error=job.error,
        graph_json=job.graph_json,
        source_model=job.source_model,
        transcript=submission.transcript,
        started_at=to_utc_aware_datetime(job.started_at) if job.started_at is not None else None,
        finished_at=(
            to_utc_aware_datetime(job.finished_at) if job.finished_at is not None else None
        ),
        created_at=to_utc_aware_datetime(job.created_at),
        updated_at=to_utc_aware_datetime(job.updated_at),
    )
