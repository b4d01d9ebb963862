"""Controllers for job and graph CLI commands."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from insightboard.config import Settings
from insightboard.extraction import build_extractor
from insightboard.graph.assembler import build_dependency_graph
from insightboard.graph.codec import decode_task_list, dump_graph, graph_to_payload
from insightboard.graph.models import DependencyGraph
from insightboard.jobs.executor import SerialExecutor
from insightboard.jobs.models import JobDetails, JobStatus, RecoveryReport, ValidationError
from insightboard.jobs.registry import SubmissionRegistry
from insightboard.jobs.repository import JobRepository
from insightboard.jobs.service import JobService, read_job_details


@dataclass(slots=True)
class JobSubmitCommand:
    """CLI input for transcript submission."""

    db_path: Path | None
    transcript: str | None
    transcript_file: Path | None
    wait: bool


@dataclass(slots=True)
class JobShowCommand:
    """CLI input for job inspection."""

    db_path: Path | None
    job_id: str
    as_json: bool = False


@dataclass(slots=True)
class JobListCommand:
    """CLI input for job listing."""

    db_path: Path | None
    status: str | None
    limit: int


@dataclass(slots=True)
class JobEventsCommand:
    db_path: Path | None
    job_id: str


@dataclass(slots=True)
class JobDrainCommand:
    """CLI input for recovery and pending-job draining."""

    db_path: Path | None


@dataclass(slots=True)
class GraphBuildCommand:
    """CLI input for offline graph assembly from a task-list file."""

    path: Path
    source_model: str


class JobsCliController:
    """Coordinates submission, execution and inspection CLI operations."""

    def submit(self, command: JobSubmitCommand) -> list[str]:
        settings = _settings(command.db_path)
        transcript = _read_transcript(command)
        with _repository(settings) as repository:
            if not command.wait:
                registry = SubmissionRegistry(
                    repository=repository,
                    max_transcript_chars=settings.jobs.max_transcript_chars,
                )
                submitted = registry.submit(transcript)
                return [
                    "Job submitted: "
                    f"job_id={submitted.job_id} status={submitted.status.value} "
                    f"deduplicated={not submitted.is_new}",
                ]

            with _service(settings, repository) as service:
                created = service.create_job(transcript)
                service.executor.wait_until_idle()
                details = service.get_job(created.job_id)

        lines = [
            "Job submitted: "
            f"job_id={created.job_id} status={created.status.value} "
            f"deduplicated={created.deduplicated}",
        ]
        if details is not None:
            lines.extend(_render_details(details))
            if details.status == JobStatus.PENDING:
                lines.append("Job is still pending; run `insightboard jobs run` to process it.")
        return lines

    def show(self, command: JobShowCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            details = read_job_details(repository, command.job_id)
        if details is None:
            return [f"Job not found: {command.job_id}"]
        if command.as_json:
            return [json.dumps(_details_payload(details), ensure_ascii=False, indent=2)]
        return _render_details(details)

    def list_jobs(self, command: JobListCommand) -> list[str]:
        settings = _settings(command.db_path)
        status_filter = _parse_status(command.status)
        with _repository(settings) as repository:
            jobs = repository.list_jobs(status=status_filter, limit=command.limit)

        lines = [f"Jobs: {len(jobs)}"]
        for job in jobs:
            lines.append(
                f"  {job.job_id} status={job.status.value} "
                f"source_model={job.source_model or '-'} "
                f"created_at={job.created_at.isoformat()}",
            )
        return lines

    def events(self, command: JobEventsCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            if repository.find_job(command.job_id) is None:
                return [f"Job not found: {command.job_id}"]
            events = repository.list_job_events(command.job_id)

        lines = [f"Events: {len(events)}"]
        for event in events:
            lines.append(
                f"  {event.created_at.isoformat()} {event.event_type} "
                f"{event.status_from.value if event.status_from else '-'} -> "
                f"{event.status_to.value if event.status_to else '-'}",
            )
        return lines

    def recover(self, command: JobDrainCommand) -> list[str]:
        """Apply the stale-job policy and drain re-enqueued jobs."""

        settings = _settings(command.db_path)
        with _repository(settings) as repository, _service(settings, repository) as service:
            report = service.recover(settings.jobs.stale_processing_seconds)
            service.executor.wait_until_idle()

        lines = _render_recovery(report)
        lines.extend(f"  failed {job_id}" for job_id in report.failed_job_ids)
        lines.extend(f"  requeued {job_id}" for job_id in report.requeued_job_ids)
        return lines

    def run(self, command: JobDrainCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository, _service(settings, repository) as service:
            report = service.recover(settings.jobs.stale_processing_seconds)
            service.executor.wait_until_idle()
            summary = service.executor.summary

        return [
            *_render_recovery(report),
            "Executor summary: "
            f"processed={summary.processed} succeeded={summary.succeeded} "
            f"failed={summary.failed}",
        ]

    def build_graph(self, command: GraphBuildCommand) -> list[str]:
        """Assemble a graph from a task-list JSON file without touching the store."""

        try:
            payload = json.loads(command.path.read_text("utf-8"))
        except (OSError, json.JSONDecodeError) as error:
            raise ValidationError(f"Cannot read task list {command.path}: {error}") from error
        decoded = decode_task_list(payload)
        if not decoded.ok or decoded.value is None:
            raise ValidationError(f"Invalid task list: {decoded.error}")
        graph = build_dependency_graph(decoded.value, command.source_model)
        return [dump_graph(graph, indent=2)]


def _settings(db_path: Path | None) -> Settings:
    settings = Settings.from_env(db_path=db_path)
    settings.validate()
    return settings


@contextmanager
def _repository(settings: Settings) -> Iterator[JobRepository]:
    repository = JobRepository(
        db_path=settings.db_path,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    repository.init_schema()
    try:
        yield repository
    finally:
        repository.close()


@contextmanager
def _service(settings: Settings, repository: JobRepository) -> Iterator[JobService]:
    executor = SerialExecutor(
        repository=repository,
        extractor=build_extractor(settings.extraction),
    )
    try:
        yield JobService(
            repository=repository,
            executor=executor,
            max_transcript_chars=settings.jobs.max_transcript_chars,
        )
    finally:
        executor.stop()


def _read_transcript(command: JobSubmitCommand) -> str:
    if command.transcript_file is not None:
        if command.transcript is not None:
            raise ValidationError("Pass either a transcript or --file, not both.")
        try:
            return command.transcript_file.read_text("utf-8")
        except OSError as error:
            raise ValidationError(f"Cannot read transcript file: {error}") from error
    if command.transcript is None:
        raise ValidationError("Transcript text or --file is required.")
    return command.transcript


def _parse_status(value: str | None) -> JobStatus | None:
    if value is None:
        return None
    return JobStatus(value.strip().lower())


def _render_recovery(report: RecoveryReport) -> list[str]:
    return [
        "Recovery: "
        f"failed_stale={len(report.failed_job_ids)} "
        f"requeued_pending={len(report.requeued_job_ids)}",
    ]


def _render_details(details: JobDetails) -> list[str]:
    lines = [
        f"Job: {details.job_id}",
        f"Submission: {details.submission_id}",
        f"Status: {details.status.value}",
        f"Error: {details.error or '-'}",
        f"Source model: {details.source_model or '-'}",
        f"Created: {details.created_at.isoformat()}",
        f"Updated: {details.updated_at.isoformat()}",
    ]
    if details.graph is not None:
        lines.extend(_render_graph(details.graph))
    return lines


def _render_graph(graph: DependencyGraph) -> list[str]:
    cycle_ids = ", ".join(graph.metadata.cycle_task_ids) or "-"
    lines = [
        f"Tasks: {len(graph.tasks)} cycle_detected={graph.metadata.cycle_detected} "
        f"cycle_task_ids={cycle_ids}",
    ]
    for task in graph.tasks:
        dependencies = ",".join(task.dependencies) or "-"
        lines.append(
            f"  {task.id} [{task.priority.value}] {task.status.value} "
            f"deps={dependencies} {task.description}",
        )
        if task.blocked_reason:
            lines.append(f"    reason: {task.blocked_reason}")
        if task.invalid_dependencies_removed:
            lines.append(f"    removed: {', '.join(task.invalid_dependencies_removed)}")
    return lines


def _details_payload(details: JobDetails) -> dict[str, Any]:
    return {
        "jobId": details.job_id,
        "status": details.status.value,
        "error": details.error,
        "sourceModel": details.source_model,
        "createdAt": details.created_at.isoformat(),
        "updatedAt": details.updated_at.isoformat(),
        "submissionId": details.submission_id,
        "graph": graph_to_payload(details.graph) if details.graph is not None else None,
    }
