"""Domain models for extracted tasks and the annotated dependency graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class TaskPriority(str, Enum):
    """Priority buckets assigned by the extractor."""

    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


class TaskStatus(str, Enum):
    """Per-task unlock state shown on the board.

    ``COMPLETED`` is only ever set by the consuming UI layer.
    """

    READY = "Ready"
    BLOCKED = "Blocked"
    COMPLETED = "Completed"
    ERROR = "Error"


@dataclass(slots=True)
class Task:
    """One raw task as returned by the extraction collaborator."""

    id: str
    description: str
    priority: TaskPriority
    dependencies: list[str] = field(default_factory=list)


@dataclass(slots=True)
class EnrichedTask:
    """Sanitized task with unlock status and integrity annotations."""

    id: str
    description: str
    priority: TaskPriority
    dependencies: list[str]
    status: TaskStatus
    blocked_reason: str | None = None
    invalid_dependencies_removed: list[str] = field(default_factory=list)
    is_in_cycle: bool = False


@dataclass(slots=True)
class GraphMetadata:
    """Generation metadata attached to a dependency graph."""

    cycle_detected: bool
    cycle_task_ids: list[str]
    generated_at: datetime
    source_model: str


@dataclass(slots=True)
class DependencyGraph:
    """Ordered enriched tasks plus metadata."""

    tasks: list[EnrichedTask]
    metadata: GraphMetadata
