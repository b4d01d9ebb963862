"""Combine sanitizer and cycle detector output into the final graph."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from insightboard.graph.cycles import find_cycle_task_ids
from insightboard.graph.models import DependencyGraph, GraphMetadata, Task, TaskStatus
from insightboard.graph.sanitizer import sanitize_tasks
from insightboard.storage.common import utc_now

CYCLE_BLOCKED_REASON = "Circular dependency detected."


def build_dependency_graph(
    tasks: Iterable[Task],
    source_model: str,
    *,
    now: datetime | None = None,
) -> DependencyGraph:
    """Sanitize raw tasks, flag cycle members and attach generation metadata."""

    sanitized = sanitize_tasks(tasks)
    cycle_ids = find_cycle_task_ids({task.id: task.dependencies for task in sanitized})

    for task in sanitized:
        if task.id in cycle_ids:
            task.status = TaskStatus.ERROR
            task.blocked_reason = CYCLE_BLOCKED_REASON
            task.is_in_cycle = True

    return DependencyGraph(
        tasks=sanitized,
        metadata=GraphMetadata(
            cycle_detected=bool(cycle_ids),
            cycle_task_ids=[task.id for task in sanitized if task.is_in_cycle],
            generated_at=now or utc_now(),
            source_model=source_model,
        ),
    )
