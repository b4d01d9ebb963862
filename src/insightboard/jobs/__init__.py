"""Submission registry, job lifecycle and serial execution."""

from insightboard.jobs.executor import ExecutorSummary, SerialExecutor
from insightboard.jobs.models import (
    CreateJobResult,
    InvalidJobTransition,
    JobDetails,
    JobNotFoundError,
    JobStatus,
    PersistenceFailure,
    ValidationError,
)
from insightboard.jobs.repository import JobRepository
from insightboard.jobs.service import JobService

__all__ = [
    "CreateJobResult",
    "ExecutorSummary",
    "InvalidJobTransition",
    "JobDetails",
    "JobNotFoundError",
    "JobRepository",
    "JobService",
    "JobStatus",
    "PersistenceFailure",
    "SerialExecutor",
    "ValidationError",
]
