from __future__ import annotations

import json
import re
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner
from conftest import echo_agent_command

from insightboard.main import insightboard

pytestmark = [
    allure.epic("Job Pipeline"),
    allure.feature("CLI Ops"),
]

_TRANSCRIPT = (
    "Alice: We need to fix the critical login bug. "
    "Bob: Then we must deploy the hotfix. "
    "Carol: Review the release notes later."
)


def _job_id(output: str) -> str:
    match = re.search(r"job_id=(\S+)", output)
    assert match is not None, output
    return match.group(1)


def _invoke(args: list[str]):
    result = CliRunner().invoke(insightboard, args)
    assert result.exit_code == 0, result.output
    return result


def test_submit_waits_and_prints_completed_graph(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"

    result = _invoke(["jobs", "submit", "--db-path", str(db_path), _TRANSCRIPT])

    assert "status=pending deduplicated=False" in result.output
    assert "Status: completed" in result.output
    assert "Source model: heuristic-fallback" in result.output
    assert "TASK-1 [P0] Ready" in result.output


def test_resubmission_reports_deduplicated_job(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"
    first = _invoke(["jobs", "submit", "--db-path", str(db_path), _TRANSCRIPT])

    second = _invoke(
        ["jobs", "submit", "--db-path", str(db_path), "  " + _TRANSCRIPT.upper() + "  "],
    )

    assert _job_id(second.output) == _job_id(first.output)
    assert "status=completed deduplicated=True" in second.output


def test_no_wait_leaves_job_pending_until_run(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"
    submitted = _invoke(["jobs", "submit", "--db-path", str(db_path), "--no-wait", _TRANSCRIPT])
    job_id = _job_id(submitted.output)
    assert "status=pending" in submitted.output

    pending = _invoke(["jobs", "list", "--db-path", str(db_path), "--status", "pending"])
    assert job_id in pending.output

    run = _invoke(["jobs", "run", "--db-path", str(db_path)])
    assert "Recovery: failed_stale=0 requeued_pending=1" in run.output
    assert "Executor summary: processed=1 succeeded=1 failed=0" in run.output

    shown = _invoke(["jobs", "show", "--db-path", str(db_path), job_id])
    assert "Status: completed" in shown.output


def test_submit_from_file(tmp_path: Path) -> None:
    transcript_file = tmp_path / "meeting.txt"
    transcript_file.write_text(_TRANSCRIPT, "utf-8")

    result = _invoke(
        ["jobs", "submit", "--db-path", str(tmp_path / "cli.db"), "--file", str(transcript_file)],
    )

    assert "Status: completed" in result.output


def test_show_json_uses_camel_case(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"
    job_id = _job_id(_invoke(["jobs", "submit", "--db-path", str(db_path), _TRANSCRIPT]).output)

    result = _invoke(["jobs", "show", "--db-path", str(db_path), "--json", job_id])

    payload = json.loads(result.output)
    assert payload["jobId"] == job_id
    assert payload["status"] == "completed"
    assert payload["sourceModel"] == "heuristic-fallback"
    assert payload["graph"]["metadata"]["cycleDetected"] is False
    assert len(payload["graph"]["tasks"]) == 3


def test_show_reads_the_store_without_building_an_extractor(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    db_path = tmp_path / "cli.db"
    job_id = _job_id(_invoke(["jobs", "submit", "--db-path", str(db_path), _TRANSCRIPT]).output)

    def _unexpected(*_args: object, **_kwargs: object) -> None:
        raise AssertionError("jobs show must not construct an extractor")

    monkeypatch.setattr("insightboard.jobs.controllers.build_extractor", _unexpected)
    result = _invoke(["jobs", "show", "--db-path", str(db_path), job_id])

    assert f"Job: {job_id}" in result.output
    assert "Status: completed" in result.output


def test_cycle_from_cli_agent_is_reported(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INSIGHTBOARD_EXTRACTOR_COMMAND", echo_agent_command("cycle"))
    monkeypatch.setenv("INSIGHTBOARD_EXTRACTOR_MODEL", "echo-model")
    db_path = tmp_path / "cli.db"

    result = _invoke(["jobs", "submit", "--db-path", str(db_path), _TRANSCRIPT])

    assert "Source model: echo-model" in result.output
    assert "cycle_detected=True cycle_task_ids=TASK-1, TASK-2, TASK-3" in result.output
    assert "reason: Circular dependency detected." in result.output


def test_failing_agent_marks_job_failed(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INSIGHTBOARD_EXTRACTOR_COMMAND", echo_agent_command("fail"))
    db_path = tmp_path / "cli.db"

    result = _invoke(["jobs", "submit", "--db-path", str(db_path), _TRANSCRIPT])

    assert "Status: failed" in result.output
    assert "Error: Extractor exited with code 3" in result.output

    events = _invoke(["jobs", "events", "--db-path", str(db_path), _job_id(result.output)])
    assert "Events: 3" in events.output
    assert "failed processing -> failed" in events.output


def test_empty_transcript_is_rejected(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        insightboard,
        ["jobs", "submit", "--db-path", str(tmp_path / "cli.db"), "   "],
    )

    assert result.exit_code != 0
    assert "Transcript must not be empty" in result.output


def test_submit_requires_text_or_file(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        insightboard,
        ["jobs", "submit", "--db-path", str(tmp_path / "cli.db")],
    )

    assert result.exit_code != 0
    assert "Transcript text or --file is required" in result.output


def test_unknown_job_lookups(tmp_path: Path) -> None:
    db_path = str(tmp_path / "cli.db")

    assert "Job not found: nope" in _invoke(["jobs", "show", "--db-path", db_path, "nope"]).output
    assert "Job not found: nope" in _invoke(["jobs", "events", "--db-path", db_path, "nope"]).output


def test_recover_on_empty_store(tmp_path: Path) -> None:
    result = _invoke(["jobs", "recover", "--db-path", str(tmp_path / "cli.db")])

    assert "Recovery: failed_stale=0 requeued_pending=0" in result.output


def test_graph_build_prints_annotated_graph(tmp_path: Path) -> None:
    task_file = tmp_path / "tasks.json"
    task_file.write_text(
        json.dumps(
            {
                "tasks": [
                    {"id": "A", "description": "One", "priority": "P1", "dependencies": ["B"]},
                    {"id": "B", "description": "Two", "priority": "P2", "dependencies": ["A"]},
                    {"id": "C", "description": "Three", "priority": "P3", "dependencies": ["X"]},
                ],
            },
        ),
        "utf-8",
    )

    result = _invoke(["graph", "build", str(task_file), "--source-model", "hand-written"])

    payload = json.loads(result.output)
    assert payload["metadata"]["cycleTaskIds"] == ["A", "B"]
    assert payload["metadata"]["sourceModel"] == "hand-written"
    assert payload["tasks"][2]["status"] == "Ready"
    assert payload["tasks"][2]["invalidDependenciesRemoved"] == ["X"]


def test_graph_build_rejects_invalid_task_list(tmp_path: Path) -> None:
    task_file = tmp_path / "tasks.json"
    task_file.write_text(json.dumps({"tasks": [{"id": "A"}]}), "utf-8")

    result = CliRunner().invoke(insightboard, ["graph", "build", str(task_file)])

    assert result.exit_code != 0
    assert "Invalid task list" in result.output
