"""Structural sanitization of untrusted task lists."""

from __future__ import annotations

from collections.abc import Iterable

from insightboard.graph.models import EnrichedTask, Task, TaskStatus


def sanitize_tasks(tasks: Iterable[Task]) -> list[EnrichedTask]:
    """Deduplicate ids, strip dangling dependencies and compute Ready/Blocked.

    Later tasks reusing an already seen id are dropped outright. Dependency
    lists are deduplicated in first-seen order and split into ids that resolve
    to a surviving task and ids that were removed. Cycle annotations are left
    to the assembler.
    """

    deduped: list[Task] = []
    seen_ids: set[str] = set()
    for task in tasks:
        if task.id in seen_ids:
            continue
        seen_ids.add(task.id)
        deduped.append(task)

    valid_ids = {task.id for task in deduped}

    sanitized: list[EnrichedTask] = []
    for task in deduped:
        unique_dependencies = list(dict.fromkeys(task.dependencies))
        dependencies = [dep for dep in unique_dependencies if dep in valid_ids]
        removed = [dep for dep in unique_dependencies if dep not in valid_ids]
        sanitized.append(
            EnrichedTask(
                id=task.id,
                description=task.description,
                priority=task.priority,
                dependencies=dependencies,
                status=TaskStatus.BLOCKED if dependencies else TaskStatus.READY,
                blocked_reason=_blocked_reason(dependencies),
                invalid_dependencies_removed=removed,
                is_in_cycle=False,
            ),
        )
    return sanitized


def _blocked_reason(dependencies: list[str]) -> str | None:
    if not dependencies:
        return None
    return f"Waiting on: {', '.join(dependencies)}"
