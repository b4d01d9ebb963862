"""Transcript normalization and content fingerprinting."""

from __future__ import annotations

import hashlib
import re

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_transcript(text: str) -> str:
    """Collapse whitespace runs, trim and lower-case transcript text."""

    return _WHITESPACE_RE.sub(" ", text).strip().lower()


def fingerprint(text: str) -> str:
    """Stable SHA-256 hex digest of the normalized transcript."""

    normalized = normalize_transcript(text)
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()
