"""
Structured JSON logging configuration.

Sets up application-wide logging with one JSON object per line so feed
sessions can be traced across page loads:
- timestamp, level, message, logger
- feed context: session_id, epoch, page, page_size
- HTTP context: endpoint, method, status_code, latency_ms
- exception details when present

configure_logging() applies GREAD_LOG_LEVEL and GREAD_LOG_JSON; local runs
can set GREAD_LOG_JSON=false for ContextTextFormatter output.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

from gread_feed.core.config import Settings, get_settings


# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName",
})

CONTEXT_FIELDS = (
    "session_id",
    "epoch",
    "page",
    "page_size",
    "endpoint",
    "method",
    "status_code",
    "latency_ms",
)


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Example output:
        {"timestamp": "2026-10-19T10:30:00.123456+00:00", "level": "INFO",
         "message": "Loaded feed page", "logger": "gread_feed.services.feed_session",
         "session_id": "3f2a...", "page": 2, "epoch": 1}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_data["stack_info"] = self.formatStack(record.stack_info)

        # Known context fields first so they keep a stable position
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ContextTextFormatter(logging.Formatter):
    """
    Human-readable formatter for local runs.

    Appends whichever feed context fields a record carries, e.g.
        2026-10-19 10:30:00 INFO gread_feed.services.feed_session: Loaded feed page 2 [session_id=3f2a page=2]
    """

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = " ".join(
            f"{field}={getattr(record, field)}"
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        )
        return f"{line} [{context}]" if context else line


# Chatty third-party loggers kept at WARNING or above
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    stream: Optional[TextIO] = None
) -> logging.Handler:
    """
    Route all logging through one handler on the root logger.

    Any handlers already on the root logger are removed, so calling this
    twice does not duplicate output.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: JSONFormatter (True) or ContextTextFormatter (False)
        stream: Destination (default: stderr, leaving stdout for command output)

    Returns:
        The installed handler
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if json_format else ContextTextFormatter())

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, log_level))

    return handler


def configure_logging(
    settings: Optional[Settings] = None,
    stream: Optional[TextIO] = None
) -> logging.Handler:
    """Apply GREAD_LOG_LEVEL / GREAD_LOG_JSON from settings (default: get_settings())."""
    settings = settings or get_settings()
    return setup_logging(settings.log_level, settings.log_json, stream=stream)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    session_id: Optional[str] = None,
    epoch: Optional[int] = None,
    page: Optional[int] = None,
    endpoint: Optional[str] = None,
    status_code: Optional[int] = None,
    latency_ms: Optional[float] = None,
    **extra_fields: Any
) -> None:
    """
    Log a message with feed context fields.

    Fields left as None are omitted from the record.

    Example:
        log_with_context(
            logger,
            "info",
            "Loaded feed page",
            session_id=session.session_id,
            page=2,
            epoch=1,
        )
    """
    extra: Dict[str, Any] = {}

    if session_id is not None:
        extra["session_id"] = session_id
    if epoch is not None:
        extra["epoch"] = epoch
    if page is not None:
        extra["page"] = page
    if endpoint is not None:
        extra["endpoint"] = endpoint
    if status_code is not None:
        extra["status_code"] = status_code
    if latency_ms is not None:
        extra["latency_ms"] = latency_ms

    extra.update(extra_fields)

    log_method = getattr(logger, level.lower())
    log_method(message, extra=extra)
