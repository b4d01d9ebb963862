from __future__ import annotations

import allure

from insightboard.jobs.redaction import MAX_ERROR_CHARS, sanitize_error

pytestmark = [
    allure.epic("Job Pipeline"),
    allure.feature("Failure Messages"),
]


def test_sanitize_error_redacts_tokens_and_secrets() -> None:
    text = (
        "Authorization: Bearer abcdef1234567890 "
        "OPENAI_API_KEY=sk-secretsecret123 "
        "url=https://example.com/a?token=abc123&x=1"
    )

    sanitized = sanitize_error(text)

    assert "abcdef1234567890" not in sanitized
    assert "sk-secretsecret123" not in sanitized
    assert "abc123" not in sanitized
    assert "OPENAI_API_KEY=[redacted-secret]" in sanitized
    assert "?token=[redacted]&x=1" in sanitized


def test_sanitize_error_masks_prompt_workdir() -> None:
    sanitized = sanitize_error(
        "agent: cannot open /tmp/insightboard-extract-k2j4h1/prompt.txt: permission denied",
    )

    assert sanitized == "agent: cannot open <workdir>/prompt.txt: permission denied"


def test_sanitize_error_clamps_length_with_marker() -> None:
    sanitized = sanitize_error("x" * 5000)

    assert len(sanitized) == MAX_ERROR_CHARS
    assert sanitized.endswith("[truncated]")
    assert sanitize_error("short message", max_chars=100) == "short message"


def test_sanitize_error_blank_message() -> None:
    assert sanitize_error("   ") == "Unknown processing failure"
