from __future__ import annotations

import re
from typing import Final

_CONTROL_CHARS: Final[frozenset[str]] = frozenset(
    chr(code) for code in range(0x00, 0x20) if chr(code) not in {"\t", "\n"}
)

_BEARER_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(Bearer\s+)[A-Za-z0-9\-_.~+/]+=*",
    flags=re.IGNORECASE,
)


def sanitize_log_message(value: str) -> str:
    """Normalise log messages by stripping control characters and CR sequences."""

    normalised = value.replace("\r\n", "\n").replace("\r", "\n")
    return "".join(ch for ch in normalised if ch not in _CONTROL_CHARS)


def redact_bearer(value: str) -> str:
    """Mask bearer credentials echoed back in server payloads."""

    return _BEARER_PATTERN.sub(r"\1<redacted>", value)


def truncate(value: str, limit: int = 500) -> str:
    compact = value.strip()
    if len(compact) <= limit:
        return compact
    return f"{compact[: limit - 3]}..."


def sanitize_response_body(value: str, limit: int = 500) -> str:
    """Prepare an error response body for structured logging."""

    return truncate(redact_bearer(sanitize_log_message(value)), limit)


__all__ = [
    "redact_bearer",
    "sanitize_log_message",
    "sanitize_response_body",
    "truncate",
]
