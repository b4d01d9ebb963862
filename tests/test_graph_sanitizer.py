from __future__ import annotations

import allure

from insightboard.graph.models import Task, TaskPriority, TaskStatus
from insightboard.graph.sanitizer import sanitize_tasks

pytestmark = [
    allure.epic("Task Graph"),
    allure.feature("Sanitization"),
]


def _task(task_id: str, *dependencies: str, description: str | None = None) -> Task:
    return Task(
        id=task_id,
        description=description or f"Do {task_id}",
        priority=TaskPriority.P2,
        dependencies=list(dependencies),
    )


def test_dangling_dependency_is_removed_and_task_becomes_ready() -> None:
    [task] = sanitize_tasks([_task("A", "MISSING")])

    assert task.dependencies == []
    assert task.invalid_dependencies_removed == ["MISSING"]
    assert task.status == TaskStatus.READY
    assert task.blocked_reason is None


def test_blocked_task_lists_its_dependencies_in_reason() -> None:
    tasks = sanitize_tasks([_task("A"), _task("B"), _task("C", "A", "B")])

    assert tasks[2].status == TaskStatus.BLOCKED
    assert tasks[2].blocked_reason == "Waiting on: A, B"
    assert tasks[0].status == TaskStatus.READY


def test_duplicate_ids_keep_first_occurrence() -> None:
    tasks = sanitize_tasks(
        [
            _task("A", description="first"),
            _task("B", "A"),
            _task("A", description="second"),
        ],
    )

    assert [task.id for task in tasks] == ["A", "B"]
    assert tasks[0].description == "first"


def test_repeated_dependencies_are_deduplicated_in_order() -> None:
    tasks = sanitize_tasks([_task("A"), _task("B"), _task("C", "B", "A", "B", "X", "X")])

    assert tasks[2].dependencies == ["B", "A"]
    assert tasks[2].invalid_dependencies_removed == ["X"]


def test_dependencies_are_subset_of_surviving_ids_and_disjoint_from_removed() -> None:
    raw = [
        _task("A", "B", "Z"),
        _task("B", "C", "A"),
        _task("C", "Q", "C"),
        _task("B", "Y"),
        _task("D", "A", "B", "C", "D", "E"),
    ]
    tasks = sanitize_tasks(raw)
    surviving = {task.id for task in tasks}

    for task in tasks:
        assert set(task.dependencies) <= surviving
        assert not set(task.dependencies) & set(task.invalid_dependencies_removed)
        assert not task.is_in_cycle


def test_empty_input_yields_empty_output() -> None:
    assert sanitize_tasks([]) == []
