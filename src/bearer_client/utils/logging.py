from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Optional, cast

import structlog
from loguru import logger as loguru_logger
from structlog.exceptions import DropEvent
from structlog.stdlib import BoundLogger
from structlog.typing import EventDict, WrappedLogger

from bearer_client.config.settings import ENV_PREFIX, log_dir

from .sanitize import redact_bearer


LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {message} | {extra}"
DEFAULT_LOG_FILENAME = "bearer-client.log"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
_LEVELS: frozenset[str] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR"})

# Event keys whose values are never written to a sink.
_SECRET_KEYS: frozenset[str] = frozenset(
    {"authorization", "cookie", "set-cookie", "password", "access_token", "refresh_token"}
)


@dataclass(slots=True)
class LoggingOptions:
    level: LogLevel = "INFO"
    debug: bool = False
    log_to_file: bool = True
    rotation: str = "10 MB"
    retention: str = "14 days"
    log_path: Optional[Path] = None


_configured_log_path: Optional[Path] = None
_is_configured = False


def _level_from_env() -> LogLevel | None:
    raw = (os.getenv(f"{ENV_PREFIX}LOG_LEVEL") or "").strip().upper()
    return cast(LogLevel, raw) if raw in _LEVELS else None


def _add_console_sink(level: str, verbose: bool) -> None:
    loguru_logger.add(
        sys.stderr,
        level=level,
        colorize=True,
        backtrace=verbose,
        diagnose=verbose,
        format=LOG_FORMAT,
    )


def _add_file_sink(opts: LoggingOptions) -> Path:
    path = opts.log_path or (log_dir() / DEFAULT_LOG_FILENAME)
    loguru_logger.add(
        path,
        level="DEBUG",
        rotation=opts.rotation,
        retention=opts.retention,
        enqueue=True,
        encoding="utf-8",
        format=LOG_FORMAT,
    )
    return path


def configure_logging(options: LoggingOptions | None = None) -> Path | None:
    """Send structlog events to loguru.

    Console output honours ``level`` (or DEBUG when ``debug`` is set); the
    rotating file sink always records DEBUG. Returns the file path, or
    ``None`` when file logging is off. ``BEARER_CLIENT_LOG_LEVEL`` supplies the
    level when no options are passed.
    """
    global _configured_log_path, _is_configured

    opts = options or LoggingOptions(level=_level_from_env() or "INFO")
    console_level = "DEBUG" if opts.debug else opts.level

    loguru_logger.remove()
    _add_console_sink(console_level, opts.debug)
    file_path = _add_file_sink(opts) if opts.log_to_file else None

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _mask_secrets,
            _forward_to_loguru,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, console_level, logging.INFO)
        ),
        cache_logger_on_first_use=True,
    )

    _configured_log_path = file_path
    _is_configured = True
    return file_path


def _mask_value(key: str, value: Any) -> Any:
    if key.lower() in _SECRET_KEYS:
        return "<redacted>"
    if isinstance(value, str):
        return redact_bearer(value)
    return value


def _mask_secrets(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    for key, value in list(event_dict.items()):
        if key in {"event", "level", "timestamp"}:
            continue
        event_dict[key] = _mask_value(key, value)
    return event_dict


def _forward_to_loguru(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    level = str(event_dict.pop("level", "INFO")).upper()
    message = str(event_dict.pop("event", ""))
    exception = event_dict.pop("exception", None)
    event_dict.pop("stack", None)
    if exception:
        message = f"{message}\n{exception}"
    loguru_logger.bind(**event_dict).opt(depth=6).log(level, message)
    raise DropEvent


def get_logger(*initial_values: object, **initial_kw: object) -> BoundLogger:
    if not _is_configured:
        configure_logging()
    return cast(BoundLogger, structlog.get_logger(*initial_values, **initial_kw))


def log_file_path() -> Path | None:
    if not _is_configured:
        return configure_logging()
    return _configured_log_path


__all__ = ["LoggingOptions", "configure_logging", "get_logger", "log_file_path"]
