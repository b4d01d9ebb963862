"""JSON wire format for task lists and dependency graphs.

Decoders never raise on malformed input: they return a :class:`DecodeResult`
carrying either the typed value or a human-readable error. Stored graphs that
fail strict decoding can be rebuilt with :func:`coerce_graph`, which keeps
every well-formed task and drops the rest.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, TypeVar

from insightboard.graph.models import (
    DependencyGraph,
    EnrichedTask,
    GraphMetadata,
    Task,
    TaskPriority,
    TaskStatus,
)
from insightboard.storage.common import from_iso, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

_PRIORITIES = {priority.value: priority for priority in TaskPriority}
_STATUSES = {status.value: status for status in TaskStatus}


@dataclass(slots=True)
class DecodeResult(Generic[T]):
    """Tagged outcome of decoding untrusted JSON."""

    ok: bool
    value: T | None = None
    error: str | None = None

    @classmethod
    def success(cls, value: T) -> DecodeResult[T]:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> DecodeResult[T]:
        return cls(ok=False, error=error)


class _DecodeError(ValueError):
    pass


def decode_task_list(payload: object) -> DecodeResult[list[Task]]:
    """Strictly decode an extractor payload of shape ``{"tasks": [...]}``."""

    if not isinstance(payload, dict):
        return DecodeResult.failure("Task list must be a JSON object.")
    raw_tasks = payload.get("tasks")
    if not isinstance(raw_tasks, list):
        return DecodeResult.failure("Task list must contain a tasks array.")
    try:
        tasks = [_decode_task(raw, path=f"tasks[{index}]") for index, raw in enumerate(raw_tasks)]
    except _DecodeError as error:
        return DecodeResult.failure(str(error))
    return DecodeResult.success(tasks)


def decode_graph(payload: object) -> DecodeResult[DependencyGraph]:
    """Strictly decode a serialized dependency graph."""

    if not isinstance(payload, dict):
        return DecodeResult.failure("Graph must be a JSON object.")
    raw_tasks = payload.get("tasks")
    if not isinstance(raw_tasks, list):
        return DecodeResult.failure("Graph must contain a tasks array.")
    try:
        tasks = [
            _decode_enriched_task(raw, path=f"tasks[{index}]")
            for index, raw in enumerate(raw_tasks)
        ]
        metadata = _decode_metadata(payload.get("metadata"))
        _check_cycle_consistency(tasks, metadata)
    except _DecodeError as error:
        return DecodeResult.failure(str(error))
    return DecodeResult.success(DependencyGraph(tasks=tasks, metadata=metadata))


def coerce_graph(payload: object) -> DependencyGraph | None:
    """Rebuild a graph field by field from partially invalid data.

    Tasks without a string id, a string description or a known priority are
    dropped, as are non-string dependency entries. Missing fields take their
    defaults and metadata is recomputed from the surviving tasks. Returns
    ``None`` when nothing graph-shaped can be recovered.
    """

    if not isinstance(payload, dict):
        return None
    raw_tasks = payload.get("tasks")
    if not isinstance(raw_tasks, list):
        return None

    tasks: list[dict[str, Any]] = []
    for raw in raw_tasks:
        coerced = _coerce_task(raw)
        if coerced is not None:
            tasks.append(coerced)

    raw_metadata = payload.get("metadata")
    metadata = raw_metadata if isinstance(raw_metadata, dict) else {}
    generated_at = metadata.get("generatedAt")
    if not isinstance(generated_at, str) or _parse_timestamp(generated_at) is None:
        generated_at = utc_now().isoformat()
    source_model = metadata.get("sourceModel")
    if not isinstance(source_model, str):
        source_model = "unknown"

    cycle_ids = [task["id"] for task in tasks if task["isInCycle"]]
    normalized = {
        "tasks": tasks,
        "metadata": {
            "cycleDetected": bool(cycle_ids),
            "cycleTaskIds": cycle_ids,
            "generatedAt": generated_at,
            "sourceModel": source_model,
        },
    }
    result = decode_graph(normalized)
    return result.value if result.ok else None


def load_graph(graph_json: str | None) -> DependencyGraph | None:
    """Parse a stored graph blob, degrading to lenient coercion or ``None``."""

    if not graph_json:
        return None
    try:
        payload = json.loads(graph_json)
    except json.JSONDecodeError as error:
        logger.warning("Stored graph is not valid JSON: %s", error)
        return None

    strict = decode_graph(payload)
    if strict.ok:
        return strict.value
    logger.warning("Stored graph failed strict decoding (%s); coercing leniently", strict.error)
    return coerce_graph(payload)


def task_to_payload(task: EnrichedTask) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": task.id,
        "description": task.description,
        "priority": task.priority.value,
        "dependencies": list(task.dependencies),
        "status": task.status.value,
    }
    if task.blocked_reason is not None:
        payload["blockedReason"] = task.blocked_reason
    payload["invalidDependenciesRemoved"] = list(task.invalid_dependencies_removed)
    payload["isInCycle"] = task.is_in_cycle
    return payload


def graph_to_payload(graph: DependencyGraph) -> dict[str, Any]:
    """Serialize a graph to its camelCase wire representation."""

    return {
        "tasks": [task_to_payload(task) for task in graph.tasks],
        "metadata": {
            "cycleDetected": graph.metadata.cycle_detected,
            "cycleTaskIds": list(graph.metadata.cycle_task_ids),
            "generatedAt": graph.metadata.generated_at.isoformat(),
            "sourceModel": graph.metadata.source_model,
        },
    }


def dump_graph(graph: DependencyGraph, *, indent: int | None = None) -> str:
    """Serialize a graph to JSON text."""

    return json.dumps(graph_to_payload(graph), ensure_ascii=False, indent=indent)


def _decode_task(raw: object, *, path: str) -> Task:
    if not isinstance(raw, dict):
        raise _DecodeError(f"{path} must be an object.")
    return Task(
        id=_require_non_empty_str(raw.get("id"), path=f"{path}.id"),
        description=_require_non_empty_str(raw.get("description"), path=f"{path}.description"),
        priority=_require_priority(raw.get("priority"), path=f"{path}.priority"),
        dependencies=_require_id_list(
            raw.get("dependencies", []),
            path=f"{path}.dependencies",
            non_empty=True,
        ),
    )


def _decode_enriched_task(raw: object, *, path: str) -> EnrichedTask:
    if not isinstance(raw, dict):
        raise _DecodeError(f"{path} must be an object.")
    task = _decode_task(raw, path=path)

    status_raw = raw.get("status")
    status = _STATUSES.get(status_raw) if isinstance(status_raw, str) else None
    if status is None:
        raise _DecodeError(f"{path}.status must be one of {', '.join(_STATUSES)}.")

    blocked_reason = raw.get("blockedReason")
    if blocked_reason is not None and not isinstance(blocked_reason, str):
        raise _DecodeError(f"{path}.blockedReason must be a string.")

    is_in_cycle = raw.get("isInCycle", False)
    if not isinstance(is_in_cycle, bool):
        raise _DecodeError(f"{path}.isInCycle must be a boolean.")

    return EnrichedTask(
        id=task.id,
        description=task.description,
        priority=task.priority,
        dependencies=task.dependencies,
        status=status,
        blocked_reason=blocked_reason,
        invalid_dependencies_removed=_require_id_list(
            raw.get("invalidDependenciesRemoved", []),
            path=f"{path}.invalidDependenciesRemoved",
            non_empty=False,
        ),
        is_in_cycle=is_in_cycle,
    )


def _decode_metadata(raw: object) -> GraphMetadata:
    if not isinstance(raw, dict):
        raise _DecodeError("metadata must be an object.")

    cycle_detected = raw.get("cycleDetected")
    if not isinstance(cycle_detected, bool):
        raise _DecodeError("metadata.cycleDetected must be a boolean.")

    generated_at_raw = raw.get("generatedAt")
    if not isinstance(generated_at_raw, str):
        raise _DecodeError("metadata.generatedAt must be a string.")
    generated_at = _parse_timestamp(generated_at_raw)
    if generated_at is None:
        raise _DecodeError("metadata.generatedAt must be an ISO-8601 timestamp.")

    source_model = raw.get("sourceModel")
    if not isinstance(source_model, str):
        raise _DecodeError("metadata.sourceModel must be a string.")

    return GraphMetadata(
        cycle_detected=cycle_detected,
        cycle_task_ids=_require_id_list(
            raw.get("cycleTaskIds", []),
            path="metadata.cycleTaskIds",
            non_empty=False,
        ),
        generated_at=generated_at,
        source_model=source_model,
    )


def _check_cycle_consistency(tasks: list[EnrichedTask], metadata: GraphMetadata) -> None:
    flagged: list[str] = []
    for index, task in enumerate(tasks):
        if not task.is_in_cycle:
            continue
        if task.status != TaskStatus.ERROR:
            raise _DecodeError(f"tasks[{index}] is in a cycle but its status is not Error.")
        flagged.append(task.id)

    if metadata.cycle_detected != bool(metadata.cycle_task_ids):
        raise _DecodeError("metadata.cycleDetected disagrees with metadata.cycleTaskIds.")
    if set(metadata.cycle_task_ids) != set(flagged):
        raise _DecodeError("metadata.cycleTaskIds disagrees with the tasks flagged isInCycle.")


def _coerce_task(raw: object) -> dict[str, Any] | None:
    if not isinstance(raw, dict):
        return None
    task_id = raw.get("id")
    description = raw.get("description")
    priority = raw.get("priority")
    if not isinstance(task_id, str) or not task_id:
        return None
    if not isinstance(description, str) or not description:
        return None
    if not isinstance(priority, str) or priority not in _PRIORITIES:
        return None

    dependencies = _string_items(raw.get("dependencies"))
    is_in_cycle = bool(raw.get("isInCycle"))
    status = raw.get("status")
    if is_in_cycle:
        status = TaskStatus.ERROR.value
    elif not isinstance(status, str) or status not in _STATUSES:
        status = TaskStatus.BLOCKED.value if dependencies else TaskStatus.READY.value

    coerced: dict[str, Any] = {
        "id": task_id,
        "description": description,
        "priority": priority,
        "dependencies": dependencies,
        "status": status,
        "invalidDependenciesRemoved": _string_items(raw.get("invalidDependenciesRemoved")),
        "isInCycle": is_in_cycle,
    }
    blocked_reason = raw.get("blockedReason")
    if isinstance(blocked_reason, str):
        coerced["blockedReason"] = blocked_reason
    return coerced


def _string_items(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item]


def _require_non_empty_str(value: object, *, path: str) -> str:
    if not isinstance(value, str) or not value:
        raise _DecodeError(f"{path} must be a non-empty string.")
    return value


def _require_priority(value: object, *, path: str) -> TaskPriority:
    priority = _PRIORITIES.get(value) if isinstance(value, str) else None
    if priority is None:
        raise _DecodeError(f"{path} must be one of {', '.join(_PRIORITIES)}.")
    return priority


def _require_id_list(value: object, *, path: str, non_empty: bool) -> list[str]:
    if not isinstance(value, list):
        raise _DecodeError(f"{path} must be an array.")
    items: list[str] = []
    for index, item in enumerate(value):
        if not isinstance(item, str) or (non_empty and not item):
            raise _DecodeError(f"{path}[{index}] must be a non-empty string.")
        items.append(item)
    return items


def _parse_timestamp(value: str) -> datetime | None:
    try:
        return from_iso(value)
    except ValueError:
        return None
