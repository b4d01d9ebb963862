"""Task graph sanitization, cycle detection and assembly."""

from insightboard.graph.assembler import CYCLE_BLOCKED_REASON, build_dependency_graph
from insightboard.graph.cycles import find_cycle_task_ids
from insightboard.graph.hashing import fingerprint, normalize_transcript
from insightboard.graph.models import (
    DependencyGraph,
    EnrichedTask,
    GraphMetadata,
    Task,
    TaskPriority,
    TaskStatus,
)
from insightboard.graph.sanitizer import sanitize_tasks

__all__ = [
    "CYCLE_BLOCKED_REASON",
    "DependencyGraph",
    "EnrichedTask",
    "GraphMetadata",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "build_dependency_graph",
    "find_cycle_task_ids",
    "fingerprint",
    "normalize_transcript",
    "sanitize_tasks",
]
