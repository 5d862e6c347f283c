"""Logging utilities for agy-top.

Structured logging with JSON or log4j-style line output. Logs go to stderr, or
to a file when one is configured, and never to stdout where frames are drawn.
"""

import json
import logging
import os
import sys
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

import structlog

CORRELATION_KEY = "correlation_id"

_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "uvicorn", "uvicorn.access", "uvicorn.error")


def _log4j_formatter(logger: Any, name: str, event_dict: Dict[str, Any]) -> str:
    """timestamp [level] logger: message {json_context}"""
    timestamp = event_dict.pop("timestamp", "")
    level = event_dict.pop("level", "info")
    event = event_dict.pop("event", "")
    logger_name = event_dict.pop("logger", None)

    prefix = f"{timestamp} [{level}]"
    if logger_name:
        prefix = f"{prefix} {logger_name}"

    if not event_dict:
        return f"{prefix}: {event}"
    context_json = json.dumps(event_dict, sort_keys=True, separators=(",", ":"), default=str)
    return f"{prefix}: {event} {context_json}"


def _add_process_context(logger: Any, name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict["pid"] = os.getpid()
    return event_dict


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Bind a correlation ID to the current context, generating one if omitted.

    The ID is attached to every log line emitted from this context and sent
    to the leaderboard as X-Correlation-ID.
    """
    correlation_id = correlation_id or uuid.uuid4().hex[:12]
    structlog.contextvars.bind_contextvars(**{CORRELATION_KEY: correlation_id})
    return correlation_id


def get_correlation_id() -> Optional[str]:
    return structlog.contextvars.get_contextvars().get(CORRELATION_KEY)


def clear_correlation_id() -> None:
    structlog.contextvars.unbind_contextvars(CORRELATION_KEY)


def _build_handler(stream: Optional[TextIO], log_file: Optional[Path]) -> logging.Handler:
    if log_file is None:
        return logging.StreamHandler(stream or sys.stderr)
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, encoding="utf-8")


def configure_logging(
    log_level: str = "WARNING",
    json_output: bool = False,
    stream: Optional[TextIO] = None,
    log_file: Optional[Path] = None,
) -> None:
    """Configure structlog on top of the stdlib logging module.

    Args:
        log_level: Minimum level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: Render JSON lines instead of the log4j-style format.
        stream: Destination stream, stderr when omitted.
        log_file: Append to this file instead of writing to a stream.
    """
    logging.basicConfig(
        format="%(message)s",
        handlers=[_build_handler(stream, log_file)],
        level=getattr(logging, log_level.upper()),
        force=True,
    )

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_process_context,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(sort_keys=True) if json_output else _log4j_formatter,
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **initial_context: Any) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger(name)
    return logger.bind(**initial_context) if initial_context else logger


def create_contextual_logger(name: str, **context: Any) -> structlog.stdlib.BoundLogger:
    """Logger bound to static context such as the owning service name.

    The correlation ID is not bound here; it is merged per log call from the
    context, so long-lived service loggers pick up each refresh cycle's ID.
    """
    return get_logger(name, **context)


def log_exception(
    logger: structlog.stdlib.BoundLogger,
    exception: BaseException,
    message: str = "An error occurred",
    level: str = "error",
    **additional_context: Any
) -> None:
    """Log an exception with its type, message and stack trace."""
    log = getattr(logger, level)
    log(
        message,
        exc_info=exception,
        exception_type=type(exception).__name__,
        exception_message=str(exception),
        **additional_context
    )
