"""Domain models for submissions, jobs and their lifecycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from insightboard.graph.models import DependencyGraph


class JobStatus(str, Enum):
    """Job lifecycle states."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class ValidationError(ValueError):
    """Submission input rejected before any state is created."""


class PersistenceFailure(RuntimeError):
    """Reading from or writing to the job store failed."""


class DuplicateRace(RuntimeError):
    """Another submission with the same fingerprint was committed first."""

    def __init__(self, normalized_hash: str) -> None:
        super().__init__(f"Submission already exists for hash {normalized_hash}")
        self.normalized_hash = normalized_hash


class JobNotFoundError(LookupError):
    """No job exists with the requested id."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class InvalidJobTransition(RuntimeError):
    """A lifecycle transition that the state machine does not permit."""

    def __init__(self, job_id: str, status_from: JobStatus, status_to: JobStatus) -> None:
        super().__init__(
            f"Job {job_id} cannot move from {status_from.value} to {status_to.value}.",
        )
        self.job_id = job_id
        self.status_from = status_from
        self.status_to = status_to


def ensure_transition(job_id: str, status_from: JobStatus, status_to: JobStatus) -> None:
    """Raise :class:`InvalidJobTransition` unless the move is allowed."""

    if status_to not in ALLOWED_TRANSITIONS[status_from]:
        raise InvalidJobTransition(job_id, status_from, status_to)


@dataclass(slots=True)
class SubmissionJobView:
    """Submission joined with its job, as returned by a fingerprint lookup."""

    submission_id: str
    transcript: str
    normalized_hash: str
    job_id: str
    status: JobStatus
    error: str | None
    graph_json: str | None
    source_model: str | None
    job_created_at: datetime
    job_updated_at: datetime


@dataclass(slots=True)
class JobView:
    """Job row joined with its submission transcript."""

    job_id: str
    submission_id: str
    status: JobStatus
    error: str | None
    graph_json: str | None
    source_model: str | None
    transcript: str
    started_at: datetime | None
    finished_at: datetime | None
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class JobEventView:
    """Audit trail entry for one job transition."""

    event_id: int
    job_id: str
    event_type: str
    status_from: JobStatus | None
    status_to: JobStatus | None
    created_at: datetime
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class CreatedSubmission:
    """Identifiers of a freshly created submission/job pair."""

    submission_id: str
    job_id: str


@dataclass(slots=True)
class SubmitResult:
    """Outcome of registering a transcript."""

    submission_id: str
    job_id: str
    status: JobStatus
    is_new: bool


@dataclass(slots=True)
class CreateJobResult:
    """Response of the job creation boundary."""

    job_id: str
    status: JobStatus
    deduplicated: bool


@dataclass(slots=True)
class JobDetails:
    """Response of the job lookup boundary."""

    job_id: str
    status: JobStatus
    error: str | None
    source_model: str | None
    created_at: datetime
    updated_at: datetime
    submission_id: str
    graph: DependencyGraph | None


@dataclass(slots=True)
class RecoveryReport:
    """Outcome of applying the stale-job policy at start-up."""

    failed_job_ids: list[str] = field(default_factory=list)
    requeued_job_ids: list[str] = field(default_factory=list)
