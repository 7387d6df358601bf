"""
Structured Logging Configuration Module for Tubely

JSON-formatted log output, context enrichment via LoggerAdapter, and
integration with Uvicorn's loggers so the API and the server write one
consistent stream.

Features:
- JSONFormatter: one JSON object per record, including ``extra=`` fields
- StandardFormatter: human-readable lines for local development
- setup_logging: root, Uvicorn and third-party logger configuration
- add_log_context: LoggerAdapter that stamps fields on every record

Usage:
    from tubely.utils.logger import add_log_context, setup_logging

    setup_logging(log_level="info", json_logs=True)

    logger = logging.getLogger(__name__)
    ctx_logger = add_log_context(logger, request_id="abc123")
    ctx_logger.info("Processing request")
"""

import json
import logging
import sys
import traceback

from datetime import UTC, datetime
from typing import Any


# =============================================================================
# Constants
# =============================================================================

LOG_LEVEL_MAP: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

UVICORN_LOGGERS: tuple[str, ...] = ("uvicorn", "uvicorn.access", "uvicorn.error")

# Libraries whose INFO/DEBUG output drowns the application's own logs
THIRD_PARTY_LOGGERS: tuple[str, ...] = (
    "motor",
    "pymongo",
    "boto3",
    "botocore",
    "s3transfer",
    "urllib3",
    "multipart",
    "python_multipart",
    "asyncio",
)


# =============================================================================
# JSON Encoding
# =============================================================================


class LogJSONEncoder(json.JSONEncoder):
    """Serializes values commonly passed in ``extra=`` (datetimes, UUIDs, paths)."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, bytes):
            return obj.decode("utf-8", errors="replace")
        if isinstance(obj, set | frozenset):
            return sorted(obj, key=str)
        return str(obj)


class JSONFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Example output:
        {"timestamp":"2025-01-15T10:30:45.123456+00:00","level":"INFO",
         "logger":"tubely.services.video_ingest","message":"Video ingested",
         "extra":{"video_id":"0f8f...","layout":"landscape"}}
    """

    # Standard LogRecord attributes, never reported as extra fields
    RESERVED_ATTRS: frozenset[str] = frozenset(
        {
            "args",
            "asctime",
            "created",
            "exc_info",
            "exc_text",
            "filename",
            "funcName",
            "levelname",
            "levelno",
            "lineno",
            "message",
            "module",
            "msecs",
            "msg",
            "name",
            "pathname",
            "process",
            "processName",
            "relativeCreated",
            "stack_info",
            "taskName",
            "thread",
            "threadName",
            "color_message",
        }
    )

    def __init__(self, include_source_location: bool = False) -> None:
        super().__init__()
        self.include_source_location = include_source_location

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self._format_timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_source_location:
            log_entry["source"] = {
                "filename": record.filename,
                "lineno": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_entry["exception"] = {
                "type": exc_type.__name__ if exc_type else "Unknown",
                "message": str(exc_value) if exc_value else "",
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }

        if record.stack_info:
            log_entry["stack_info"] = record.stack_info

        extra_fields = self._extract_extra_fields(record)
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(
            log_entry, cls=LogJSONEncoder, ensure_ascii=False, separators=(",", ":")
        )

    def _format_timestamp(self, record: logging.LogRecord) -> str:
        return datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="microseconds")

    def _extract_extra_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        return {
            key: value
            for key, value in record.__dict__.items()
            if not key.startswith("_") and key not in self.RESERVED_ATTRS
        }


class StandardFormatter(logging.Formatter):
    """Plain text formatter: ``[TIMESTAMP] LEVEL logger_name: message``."""

    DEFAULT_FORMAT: str = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
    DEFAULT_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    def __init__(self) -> None:
        super().__init__(fmt=self.DEFAULT_FORMAT, datefmt=self.DEFAULT_DATE_FORMAT)


# =============================================================================
# Setup
# =============================================================================


def setup_logging(
    log_level: str = "info",
    json_logs: bool = True,
    third_party_level: str = "warning",
) -> None:
    """
    Configure application-wide logging.

    Called once from the FastAPI lifespan. Installs a stdout handler on the
    root logger, routes Uvicorn's loggers through the same formatter, and
    raises the level of chatty third-party loggers.

    Args:
        log_level: Application log level (debug, info, warning, error, critical)
        json_logs: Emit JSON if True, plain text otherwise
        third_party_level: Level applied to THIRD_PARTY_LOGGERS
    """
    level = LOG_LEVEL_MAP.get(log_level.upper(), logging.INFO)

    if json_logs:
        formatter: logging.Formatter = JSONFormatter(
            include_source_location=level <= logging.DEBUG
        )
    else:
        formatter = StandardFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for name in UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.setLevel(level)
        uvicorn_logger.propagate = False
        uvicorn_logger.handlers.clear()
        handler = logging.StreamHandler(sys.stderr if name == "uvicorn.error" else sys.stdout)
        handler.setFormatter(formatter)
        uvicorn_logger.addHandler(handler)

    third_party = LOG_LEVEL_MAP.get(third_party_level.upper(), logging.WARNING)
    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party)

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, json=%s", log_level.upper(), json_logs
    )


def get_logger(name: str, level: str = "info", json_logs: bool = False) -> logging.Logger:
    """
    Create a logger with its own stdout handler.

    Intended for scripts that run outside the FastAPI lifespan. Calling it
    twice for the same name does not add a second handler.
    """
    named_logger = logging.getLogger(name)
    named_logger.setLevel(LOG_LEVEL_MAP.get(level.upper(), logging.INFO))

    if not named_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter() if json_logs else StandardFormatter())
        named_logger.addHandler(handler)
        named_logger.propagate = False

    return named_logger


# =============================================================================
# Context Enrichment
# =============================================================================


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    LoggerAdapter that merges its context into each call's ``extra`` dict.

    Fields passed explicitly in ``extra=`` win over the adapter's context.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        for key, value in self.extra.items():
            extra.setdefault(key, value)
        kwargs["extra"] = extra
        return msg, kwargs


def add_log_context(logger: logging.Logger, **kwargs: Any) -> ContextLoggerAdapter:
    """
    Wrap ``logger`` so every record carries the given fields.

    Example:
        ctx_logger = add_log_context(logger, request_id="abc-123")
        ctx_logger.info("Request completed", extra={"status_code": 200})
        # extra: {"status_code": 200, "request_id": "abc-123"}
    """
    return ContextLoggerAdapter(logger, kwargs)
