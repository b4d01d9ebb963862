"""CLI entrypoint for insightboard."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import rich_click as click

from insightboard import __version__
from insightboard.jobs.controllers import (
    GraphBuildCommand,
    JobDrainCommand,
    JobEventsCommand,
    JobListCommand,
    JobsCliController,
    JobShowCommand,
    JobSubmitCommand,
)
from insightboard.jobs.models import JobStatus, PersistenceFailure

click.rich_click.USE_MARKDOWN = True
JOBS_CONTROLLER = JobsCliController()
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@click.group()
@click.version_option(version=__version__, prog_name="insightboard")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity.",
)
def insightboard(log_level: str) -> None:
    """Transcript to task dependency graph CLI."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@insightboard.group()
def jobs() -> None:
    """Submission and job commands."""


@jobs.command("submit")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.argument("transcript", required=False)
@click.option(
    "--file",
    "transcript_file",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    default=None,
    help="Read the transcript from a file.",
)
@click.option(
    "--wait/--no-wait",
    default=True,
    show_default=True,
    help="Process the job in-process and print its final state.",
)
def jobs_submit(
    db_path: Path | None,
    transcript: str | None,
    transcript_file: Path | None,
    wait: bool,
) -> None:
    """Submit a meeting transcript for task extraction."""

    with _cli_errors():
        _emit_lines(
            JOBS_CONTROLLER.submit(
                JobSubmitCommand(
                    db_path=db_path,
                    transcript=transcript,
                    transcript_file=transcript_file,
                    wait=wait,
                ),
            ),
        )


@jobs.command("show")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.argument("job_id")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON.")
def jobs_show(db_path: Path | None, job_id: str, as_json: bool) -> None:
    """Show job state and its dependency graph."""

    with _cli_errors():
        _emit_lines(
            JOBS_CONTROLLER.show(
                JobShowCommand(db_path=db_path, job_id=job_id, as_json=as_json),
            ),
        )


@jobs.command("list")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--status",
    type=click.Choice([status.value for status in JobStatus], case_sensitive=False),
    default=None,
    help="Optional status filter.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=500),
    default=50,
    show_default=True,
    help="Max jobs to show.",
)
def jobs_list(db_path: Path | None, status: str | None, limit: int) -> None:
    """List recent jobs."""

    with _cli_errors():
        _emit_lines(
            JOBS_CONTROLLER.list_jobs(
                JobListCommand(db_path=db_path, status=status, limit=limit),
            ),
        )


@jobs.command("events")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.argument("job_id")
def jobs_events(db_path: Path | None, job_id: str) -> None:
    """Show the audit trail of one job."""

    with _cli_errors():
        _emit_lines(JOBS_CONTROLLER.events(JobEventsCommand(db_path=db_path, job_id=job_id)))


@jobs.command("recover")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def jobs_recover(db_path: Path | None) -> None:
    """Fail interrupted jobs and process jobs that never started."""

    with _cli_errors():
        _emit_lines(JOBS_CONTROLLER.recover(JobDrainCommand(db_path=db_path)))


@jobs.command("run")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def jobs_run(db_path: Path | None) -> None:
    """Recover, then drain every pending job."""

    with _cli_errors():
        _emit_lines(JOBS_CONTROLLER.run(JobDrainCommand(db_path=db_path)))


@insightboard.group()
def graph() -> None:
    """Offline graph commands."""


@graph.command("build")
@click.argument("path", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option(
    "--source-model",
    default="manual",
    show_default=True,
    help="Value recorded in graph metadata.",
)
def graph_build(path: Path, source_model: str) -> None:
    """Build a dependency graph from a `{"tasks": [...]}` JSON file."""

    with _cli_errors():
        _emit_lines(
            JOBS_CONTROLLER.build_graph(GraphBuildCommand(path=path, source_model=source_model)),
        )


@contextmanager
def _cli_errors() -> Iterator[None]:
    try:
        yield
    except (ValueError, PersistenceFailure) as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    insightboard()
