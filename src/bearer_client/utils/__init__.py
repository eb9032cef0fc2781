"""Shared utility helpers for the API transport."""

from .cancellation import (
    CancellationError,
    CancellationToken,
    CancellationTokenSource,
    await_with_cancellation,
)
from .logging import LoggingOptions, configure_logging, get_logger, log_file_path
from .sanitize import redact_bearer, sanitize_log_message, sanitize_response_body, truncate

__all__ = [
    "LoggingOptions",
    "configure_logging",
    "get_logger",
    "log_file_path",
    "CancellationToken",
    "CancellationTokenSource",
    "CancellationError",
    "await_with_cancellation",
    "sanitize_log_message",
    "sanitize_response_body",
    "redact_bearer",
    "truncate",
]
