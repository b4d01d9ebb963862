"""Subprocess-based extractor driving a CLI LLM agent."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import tempfile
from pathlib import Path

from insightboard.extraction.base import ExtractionResult, GenerationFailure
from insightboard.extraction.stdout_recovery import recover_json_payload
from insightboard.graph.codec import decode_task_list

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = """\
You extract actionable project tasks from meeting transcripts.
Return only valid JSON with this shape:
{
  "tasks": [
    {"id": "TASK-1", "description": "...", "priority": "P0|P1|P2|P3", "dependencies": ["TASK-2"]}
  ]
}
Rules:
- IDs must be unique and stable within the response.
- Dependency IDs must reference task IDs from the same response.
- Include 5-12 meaningful tasks.
- P0 is a critical blocker, P1 high priority, P2 medium, P3 backlog.
- No markdown, no prose, no code fences.

Transcript:
"""

_STDERR_PREVIEW_CHARS = 500


class CliExtractor:
    """Render a command template, run the agent and decode its stdout.

    The template must contain ``{prompt}`` or ``{prompt_file}`` and may use
    ``{model}``; values are shell-quoted before the command is split.
    """

    def __init__(self, *, command_template: str, model: str, timeout_seconds: int = 120) -> None:
        self.command_template = command_template
        self.model = model
        self.timeout_seconds = timeout_seconds

    def extract(self, transcript: str) -> ExtractionResult:
        prompt = f"{EXTRACTION_PROMPT}{transcript}\n"
        with tempfile.TemporaryDirectory(prefix="insightboard-extract-") as workdir:
            prompt_file = Path(workdir) / "prompt.txt"
            prompt_file.write_text(prompt, "utf-8")
            run_args = build_run_args(
                command_template=self.command_template,
                model=self.model,
                prompt=prompt,
                prompt_file=prompt_file,
            )
            stdout = self._run(run_args)

        payload = recover_json_payload(stdout)
        if payload is None:
            raise GenerationFailure("Extractor returned no JSON object.")
        decoded = decode_task_list(payload)
        if not decoded.ok or decoded.value is None:
            raise GenerationFailure(f"Extractor output failed schema validation: {decoded.error}")
        return ExtractionResult(tasks=decoded.value, source_model=self.model)

    def _run(self, run_args: list[str]) -> str:
        env = os.environ.copy()
        env["INSIGHTBOARD_EXTRACTOR_MODEL"] = self.model
        logger.debug("Running extractor command: %s", run_args[0])
        try:
            completed = subprocess.run(  # noqa: S603
                run_args,
                env=env,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except FileNotFoundError as error:
            raise GenerationFailure(f"Extractor command not found: {run_args[0]}") from error
        except subprocess.TimeoutExpired as error:
            raise GenerationFailure(
                f"Extractor timed out after {self.timeout_seconds} seconds.",
            ) from error
        except OSError as error:
            raise GenerationFailure(f"Extractor failed to start: {error}") from error

        if completed.returncode != 0:
            stderr = completed.stderr.strip()[:_STDERR_PREVIEW_CHARS]
            raise GenerationFailure(
                f"Extractor exited with code {completed.returncode}: {stderr or 'no stderr'}",
            )
        if not completed.stdout.strip():
            raise GenerationFailure("Extractor returned empty output.")
        return completed.stdout


def build_run_args(
    *,
    command_template: str,
    model: str,
    prompt: str,
    prompt_file: Path,
) -> list[str]:
    """Render the command template into an argv list."""

    stripped = command_template.strip()
    if not stripped:
        raise GenerationFailure("Extractor command template is empty.")
    if "{prompt}" not in stripped and "{prompt_file}" not in stripped:
        raise GenerationFailure(
            "Extractor command template must include {prompt} or {prompt_file}.",
        )

    try:
        rendered = stripped.format(
            model=shlex.quote(model),
            prompt=shlex.quote(prompt),
            prompt_file=shlex.quote(str(prompt_file)),
        )
    except (KeyError, IndexError) as error:
        raise GenerationFailure(f"Unsupported command template placeholder: {error}") from error

    argv = shlex.split(rendered)
    if not argv:
        raise GenerationFailure("Extractor command template rendered empty command.")
    return argv
