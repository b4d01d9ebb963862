from __future__ import annotations

import json
from datetime import UTC, datetime

import allure

from insightboard.graph.assembler import build_dependency_graph
from insightboard.graph.codec import (
    coerce_graph,
    decode_graph,
    decode_task_list,
    dump_graph,
    graph_to_payload,
    load_graph,
)
from insightboard.graph.models import Task, TaskPriority, TaskStatus

pytestmark = [
    allure.epic("Task Graph"),
    allure.feature("Wire Format"),
]

_NOW = datetime(2026, 10, 19, 9, 30, tzinfo=UTC)


def _stored_graph() -> dict:
    graph = build_dependency_graph(
        [
            Task(id="A", description="Design schema", priority=TaskPriority.P1),
            Task(
                id="B",
                description="Write migration",
                priority=TaskPriority.P2,
                dependencies=["A", "GHOST"],
            ),
        ],
        "gpt-test",
        now=_NOW,
    )
    return graph_to_payload(graph)


def test_decode_task_list_accepts_valid_payload() -> None:
    result = decode_task_list(
        {
            "tasks": [
                {"id": "T1", "description": "Fix login", "priority": "P0"},
                {
                    "id": "T2",
                    "description": "Ship",
                    "priority": "P2",
                    "dependencies": ["T1"],
                },
            ],
        },
    )

    assert result.ok
    assert result.value is not None
    assert result.value[0].dependencies == []
    assert result.value[1].priority == TaskPriority.P2


def test_decode_task_list_reports_path_of_first_error() -> None:
    result = decode_task_list(
        {"tasks": [{"id": "T1", "description": "x", "priority": "urgent"}]},
    )

    assert not result.ok
    assert result.value is None
    assert "tasks[0].priority" in (result.error or "")


def test_decode_task_list_rejects_non_object_and_missing_tasks() -> None:
    assert not decode_task_list([]).ok
    assert not decode_task_list({"items": []}).ok
    assert not decode_task_list(
        {"tasks": [{"id": "T1", "description": "x", "priority": "P1", "dependencies": [1]}]},
    ).ok


def test_serialized_graph_uses_camel_case_wire_names() -> None:
    payload = _stored_graph()

    assert payload["metadata"] == {
        "cycleDetected": False,
        "cycleTaskIds": [],
        "generatedAt": _NOW.isoformat(),
        "sourceModel": "gpt-test",
    }
    task_b = payload["tasks"][1]
    assert task_b["status"] == "Blocked"
    assert task_b["blockedReason"] == "Waiting on: A"
    assert task_b["invalidDependenciesRemoved"] == ["GHOST"]
    assert task_b["isInCycle"] is False
    assert "blockedReason" not in payload["tasks"][0]


def test_strict_decode_reads_back_dumped_graph() -> None:
    graph = load_graph(json.dumps(_stored_graph()))

    assert graph is not None
    assert [task.id for task in graph.tasks] == ["A", "B"]
    assert graph.metadata.generated_at == _NOW
    assert graph.tasks[1].invalid_dependencies_removed == ["GHOST"]


def test_decode_graph_rejects_unknown_status() -> None:
    payload = _stored_graph()
    payload["tasks"][0]["status"] = "Paused"

    result = decode_graph(payload)

    assert not result.ok
    assert "tasks[0].status" in (result.error or "")


def test_decode_graph_rejects_cycle_member_that_is_not_error() -> None:
    payload = _stored_graph()
    payload["tasks"][0]["isInCycle"] = True
    payload["metadata"]["cycleDetected"] = True
    payload["metadata"]["cycleTaskIds"] = ["A"]

    result = decode_graph(payload)

    assert not result.ok
    assert "tasks[0]" in (result.error or "")


def test_decode_graph_rejects_metadata_that_disagrees_with_tasks() -> None:
    detected_without_ids = _stored_graph()
    detected_without_ids["metadata"]["cycleDetected"] = True

    ids_without_flags = _stored_graph()
    ids_without_flags["metadata"]["cycleDetected"] = True
    ids_without_flags["metadata"]["cycleTaskIds"] = ["B"]

    assert "cycleDetected" in (decode_graph(detected_without_ids).error or "")
    assert "cycleTaskIds" in (decode_graph(ids_without_flags).error or "")


def test_load_graph_rebuilds_inconsistent_cycle_metadata() -> None:
    payload = _stored_graph()
    payload["tasks"][0]["isInCycle"] = True
    payload["metadata"]["cycleTaskIds"] = ["B"]

    graph = load_graph(json.dumps(payload))

    assert graph is not None
    assert graph.tasks[0].status == TaskStatus.ERROR
    assert graph.tasks[1].is_in_cycle is False
    assert graph.metadata.cycle_detected is True
    assert graph.metadata.cycle_task_ids == ["A"]


def test_coerce_drops_invalid_tasks_and_non_string_dependencies() -> None:
    payload = _stored_graph()
    payload["tasks"].append({"id": 7, "description": "bad id", "priority": "P1"})
    payload["tasks"].append({"id": "C", "description": "bad priority", "priority": "P9"})
    payload["tasks"].append("not a task")
    payload["tasks"][1]["dependencies"] = ["A", 3, None, ""]

    graph = coerce_graph(payload)

    assert graph is not None
    assert [task.id for task in graph.tasks] == ["A", "B"]
    assert graph.tasks[1].dependencies == ["A"]


def test_coerce_falls_back_on_unknown_status() -> None:
    payload = _stored_graph()
    payload["tasks"][0]["status"] = "Paused"
    payload["tasks"][1]["status"] = 42

    graph = coerce_graph(payload)

    assert graph is not None
    assert graph.tasks[0].status == TaskStatus.READY
    assert graph.tasks[1].status == TaskStatus.BLOCKED


def test_coerce_recomputes_metadata_from_surviving_tasks() -> None:
    payload = _stored_graph()
    payload["tasks"][0]["isInCycle"] = 1
    payload["metadata"] = {"cycleDetected": "nope", "generatedAt": "yesterday"}

    graph = coerce_graph(payload)

    assert graph is not None
    assert graph.tasks[0].status == TaskStatus.ERROR
    assert graph.tasks[0].is_in_cycle is True
    assert graph.metadata.cycle_detected is True
    assert graph.metadata.cycle_task_ids == ["A"]
    assert graph.metadata.source_model == "unknown"
    assert graph.metadata.generated_at.tzinfo is not None


def test_coerce_keeps_valid_generated_at_and_source_model() -> None:
    payload = _stored_graph()
    del payload["tasks"][0]["invalidDependenciesRemoved"]
    payload["metadata"]["cycleTaskIds"] = "broken"

    graph = coerce_graph(payload)

    assert graph is not None
    assert graph.tasks[0].invalid_dependencies_removed == []
    assert graph.metadata.generated_at == _NOW
    assert graph.metadata.source_model == "gpt-test"


def test_coerce_returns_none_without_task_array() -> None:
    assert coerce_graph({"metadata": {}}) is None
    assert coerce_graph(["tasks"]) is None


def test_load_graph_falls_back_to_lenient_coercion() -> None:
    payload = _stored_graph()
    payload["tasks"][1]["isInCycle"] = "yes"

    graph = load_graph(json.dumps(payload))

    assert graph is not None
    assert graph.tasks[1].status == TaskStatus.ERROR


def test_load_graph_returns_none_for_absent_or_unparsable_blob() -> None:
    assert load_graph(None) is None
    assert load_graph("") is None
    assert load_graph("{not json") is None
    assert load_graph(json.dumps({"tasks": "nope"})) is None


def test_dump_graph_is_valid_json() -> None:
    graph = build_dependency_graph([], "gpt-test", now=_NOW)
    assert json.loads(dump_graph(graph, indent=2))["tasks"] == []
