"""Local demo agent for CLI extractor integration tests."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from insightboard.extraction.heuristic import HeuristicExtractor

_TRANSCRIPT_MARKER = "Transcript:\n"


def main(argv: list[str] | None = None) -> int:
    """Print a deterministic task list for the transcript in the prompt file."""

    parser = argparse.ArgumentParser()
    parser.add_argument("--prompt-file", required=True)
    parser.add_argument(
        "--mode",
        choices=("plain", "fenced", "chain", "cycle", "invalid", "fail"),
        default="plain",
    )
    args = parser.parse_args(argv)

    if args.mode == "fail":
        print("echo agent: simulated failure", file=sys.stderr)
        return 3

    prompt = Path(args.prompt_file).read_text("utf-8")
    _, _, transcript = prompt.partition(_TRANSCRIPT_MARKER)
    tasks = [
        {
            "id": task.id,
            "description": task.description,
            "priority": task.priority.value,
            "dependencies": [],
        }
        for task in HeuristicExtractor().extract(transcript or prompt).tasks
    ]

    if args.mode in {"chain", "cycle"}:
        for previous, task in zip(tasks, tasks[1:], strict=False):
            task["dependencies"] = [previous["id"]]
        if args.mode == "cycle" and tasks:
            tasks[0]["dependencies"] = [tasks[-1]["id"]]
    if args.mode == "invalid":
        for task in tasks:
            task["priority"] = "urgent"

    body = json.dumps({"tasks": tasks}, ensure_ascii=False)
    if args.mode == "fenced":
        print(f"Here are the tasks:\n```json\n{body}\n```")
    else:
        print(body)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
