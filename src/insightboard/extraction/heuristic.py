"""Deterministic keyword-based extractor used when no LLM agent is configured."""

from __future__ import annotations

import re

from insightboard.extraction.base import ExtractionResult
from insightboard.graph.models import Task, TaskPriority

HEURISTIC_SOURCE_MODEL = "heuristic-fallback"
MAX_HEURISTIC_TASKS = 8

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_ACTION_RE = re.compile(
    r"(need to|must|by\s|review|investigate|fix|create|run|prepare|deploy|blocked|priority)",
    re.IGNORECASE,
)
_P0_RE = re.compile(r"p0|showstopper|critical|blocker", re.IGNORECASE)
_P1_RE = re.compile(r"high|blocked|urgent|hard dependency", re.IGNORECASE)
_P3_RE = re.compile(r"backlog|not urgent|later", re.IGNORECASE)


class HeuristicExtractor:
    """Turns actionable-looking sentences into independent tasks."""

    def __init__(self, *, max_tasks: int = MAX_HEURISTIC_TASKS) -> None:
        self.max_tasks = max_tasks

    def extract(self, transcript: str) -> ExtractionResult:
        sentences = [part.strip() for part in _SENTENCE_SPLIT_RE.split(transcript)]
        sentences = [sentence for sentence in sentences if sentence]
        actionable = [sentence for sentence in sentences if _ACTION_RE.search(sentence)]
        candidates = (actionable or sentences)[: self.max_tasks]

        tasks = [
            Task(
                id=f"TASK-{index}",
                description=description,
                priority=infer_priority(description),
                dependencies=[],
            )
            for index, description in enumerate(candidates, start=1)
        ]
        return ExtractionResult(tasks=tasks, source_model=HEURISTIC_SOURCE_MODEL)


def infer_priority(description: str) -> TaskPriority:
    """Map urgency keywords in a sentence to a priority bucket."""

    if _P0_RE.search(description):
        return TaskPriority.P0
    if _P1_RE.search(description):
        return TaskPriority.P1
    if _P3_RE.search(description):
        return TaskPriority.P3
    return TaskPriority.P2
