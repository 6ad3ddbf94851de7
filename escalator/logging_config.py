"""Structured logging configuration.

JSON or plain-text output with a correlation id for HTTP requests and a job
id for scheduled rotation/availability jobs, so a page cascade can be traced
from the request that opened the ticket through every timer that touched
the group afterwards.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

# Set by CorrelationIdMiddleware for the lifetime of a request
correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Set by the timer service while a scheduled job runs
job_id_ctx: ContextVar[str | None] = ContextVar("job_id", default=None)


def _context_fields() -> dict[str, str]:
    fields = {}
    correlation_id = correlation_id_ctx.get()
    if correlation_id:
        fields["correlation_id"] = correlation_id
    job_id = job_id_ctx.get()
    if job_id:
        fields["job_id"] = job_id
    return fields


class JsonFormatter(logging.Formatter):
    """Formats records as one JSON object per line.

    Keys: timestamp, level, service, message, logger, plus correlation_id /
    job_id when set and any structured extra fields.
    """

    def __init__(self, service_name: str = "escalator-api"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "message": record.getMessage(),
            "logger": record.name,
        }
        log_data.update(_context_fields())

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.levelno >= logging.ERROR:
            log_data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for development.

    Format: timestamp - service - level - [context] - message key=value...
    """

    def __init__(self, service_name: str = "escalator-api"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
        context = correlation_id_ctx.get() or job_id_ctx.get() or "-"

        base_msg = (
            f"{timestamp} - {self.service_name} - {record.levelname} - "
            f"[{context}] - {record.getMessage()}"
        )

        extra = getattr(record, "extra_fields", None)
        if extra:
            base_msg += " " + " ".join(f"{k}={v}" for k, v in extra.items())

        if record.exc_info:
            base_msg += f"\n{self.formatException(record.exc_info)}"

        return base_msg


def setup_logging(
    log_format: str = "json",
    log_level: str = "INFO",
    service_name: str = "escalator-api",
) -> None:
    """Configure the root logger.

    Args:
        log_format: 'json' for structured logging, 'text' for human-readable
        log_level: Logging level name
        service_name: Service name to include in logs
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if log_format.lower() == "json":
        handler.setFormatter(JsonFormatter(service_name=service_name))
    else:
        handler.setFormatter(TextFormatter(service_name=service_name))

    root_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    # APScheduler logs every job execution at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


class StructuredLogger:
    """Logger wrapper that takes structured fields as keyword arguments.

    ``exc_info`` is passed through to the underlying logger rather than
    being recorded as a field.
    """

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, msg: str, fields: dict[str, Any]) -> None:
        exc_info = fields.pop("exc_info", None)
        extra = {"extra_fields": fields} if fields else {}
        self._logger.log(level, msg, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._log(logging.INFO, msg, fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self._log(logging.WARNING, msg, fields)

    def error(self, msg: str, **fields: Any) -> None:
        self._log(logging.ERROR, msg, fields)

    def exception(self, msg: str, **fields: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        fields.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, fields)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance (typically ``get_logger(__name__)``)."""
    return StructuredLogger(name)
