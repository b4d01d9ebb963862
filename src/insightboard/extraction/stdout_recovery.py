"""Best-effort recovery of the task-list JSON object from agent stdout."""

from __future__ import annotations

import json
import re
from collections.abc import Iterator

_FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)


def recover_json_payload(stdout_text: str) -> dict[str, object] | None:
    """Return the first JSON object found in agent output.

    Candidates are tried in order: the whole text, each fenced code block,
    then the span between the first ``{`` and the last ``}``.
    """

    for candidate in _candidates(stdout_text.strip()):
        payload = _load_object(candidate)
        if payload is not None:
            return payload
    return None


def _candidates(text: str) -> Iterator[str]:
    if not text:
        return
    yield text
    for block in _FENCED_BLOCK_RE.finditer(text):
        yield block.group(1)
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        yield text[start : end + 1]


def _load_object(raw: str) -> dict[str, object] | None:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None
