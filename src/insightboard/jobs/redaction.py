"""Redaction of failure messages before they are stored on a job."""

from __future__ import annotations

import re

MAX_ERROR_CHARS = 2_000
_TRUNCATION_MARKER = " [truncated]"
_UNKNOWN_FAILURE = "Unknown processing failure"

_BEARER_RE = re.compile(r"(?i)\b(bearer)\s+[a-z0-9._\-]{8,}\b")
_API_KEY_RE = re.compile(r"(?i)\b(?:sk|sk-ant|sk-proj)-[a-z0-9_\-]{8,}\b")
_ENV_SECRET_RE = re.compile(
    r"(?i)\b((?:insightboard|openai|anthropic|gemini)[a-z0-9_]*?(?:api_)?(?:key|token))"
    r"\s*[:=]\s*['\"]?[^'\"\s]+['\"]?",
)
_QUERY_SECRET_RE = re.compile(r"(?i)([?&](?:token|key|signature|auth))=[^&\s]+")
_PROMPT_DIR_RE = re.compile(r"\S*insightboard-extract-[^/\s]+/?")


def sanitize_error(text: str, *, max_chars: int = MAX_ERROR_CHARS) -> str:
    """Mask credentials and temporary paths, then clamp the message."""

    message = text.strip()
    if not message:
        return _UNKNOWN_FAILURE

    message = _BEARER_RE.sub(r"\1 [redacted-token]", message)
    message = _API_KEY_RE.sub("[redacted-token]", message)
    message = _ENV_SECRET_RE.sub(r"\1=[redacted-secret]", message)
    message = _QUERY_SECRET_RE.sub(r"\1=[redacted]", message)
    message = _PROMPT_DIR_RE.sub("<workdir>/", message)

    if len(message) <= max_chars:
        return message
    keep = max(0, max_chars - len(_TRUNCATION_MARKER))
    return (message[:keep] + _TRUNCATION_MARKER)[:max_chars]
