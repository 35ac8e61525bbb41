"""Logging setup for discussion runs.

Output is JSON lines when ``LOG_FORMAT=json`` and plain text otherwise.
Either way every line emitted while a discussion is being driven carries
that discussion's id, taken from a context variable so concurrent runs in
one event loop keep their ids apart.

Environment Variables:
    LOG_FORMAT: "json" for JSON lines, anything else for plain text.
    LOG_LEVEL: DEBUG, INFO, WARNING or ERROR. Defaults to INFO.
"""

import copy
import logging
import os
import sys
from contextvars import ContextVar
from typing import Any

from pythonjsonlogger import jsonlogger

_discussion_id: ContextVar[str | None] = ContextVar("discussion_id", default=None)

# Third-party loggers that log every request at INFO
_CHATTY_LOGGERS = ("httpx", "httpcore")


def get_discussion_id() -> str | None:
    return _discussion_id.get()


def set_discussion_id(discussion_id: str | None) -> None:
    _discussion_id.set(discussion_id)


class ContextAwareJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that adds level, logger name and the discussion id."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["message"] = record.getMessage()

        discussion_id = get_discussion_id()
        if discussion_id:
            log_record["discussion_id"] = discussion_id


class ContextAwareFormatter(logging.Formatter):
    """Plain-text formatter that prefixes the first 8 chars of the discussion id."""

    def format(self, record: logging.LogRecord) -> str:
        discussion_id = get_discussion_id()
        if not discussion_id:
            return super().format(record)

        # Rewrite a copy so other handlers see the original message
        record = copy.copy(record)
        record.msg = f"[{discussion_id[:8]}] {record.getMessage()}"
        record.args = ()
        return super().format(record)


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """
    Replace the root logger's handlers with one stdout handler.

    Args:
        level: Log level name (defaults to LOG_LEVEL, then INFO)
        log_format: "json" or anything else for text (defaults to LOG_FORMAT)
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    use_json = (log_format if log_format is not None else os.getenv("LOG_FORMAT", "")).lower() == "json"
    numeric_level = getattr(logging, level_name, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    if use_json:
        handler.setFormatter(ContextAwareJsonFormatter(
            fmt="%(timestamp)s %(level)s %(logger)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        ))
    else:
        handler.setFormatter(ContextAwareFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    root_logger.addHandler(handler)

    if numeric_level > logging.DEBUG:
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured. Format: %s, Level: %s",
        "json" if use_json else "text", level_name,
    )
