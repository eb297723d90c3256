"""
Structured logging utilities with JSON formatting and context injection.

This module provides structured logging for faultline's own diagnostics:
- JSON formatted log output for machine-readable logs
- Context injection (error_id, error_type, report_state) via LoggerAdapter
- Helpers for the registry and reporting pipeline log lines
"""

import logging
import json
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional, MutableMapping
from logging import LogRecord

# Fields promoted to the top level of a JSON log line
PROMOTED_FIELDS = ("error_id", "error_type", "report_state", "label")

_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName",
}


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON with standard fields:
    - timestamp: ISO 8601 formatted timestamp
    - level: Log level (INFO, WARNING, ERROR, etc.)
    - logger: Logger name
    - message: Log message
    - error_id / error_type / report_state / label when present
    - context: Any other extra fields
    - error: Exception details, when exc_info is set
    """

    def format(self, record: LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON formatted log string
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in PROMOTED_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and key not in PROMOTED_FIELDS
        }
        if extra_fields:
            log_data["context"] = extra_fields

        if record.exc_info:
            log_data["error"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stack_trace": "".join(traceback.format_exception(*record.exc_info))
            }

        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName
        }

        # Extras may hold arbitrary values; never fail while logging
        return json.dumps(log_data, default=repr)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that injects context fields into all log records.
    """

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        """
        Process log message and inject context.

        Args:
            msg: Log message
            kwargs: Log kwargs

        Returns:
            Tuple of (message, kwargs) with context injected
        """
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(self, **context: Any) -> "ContextLoggerAdapter":
        """
        Create a new logger adapter with additional context.

        Args:
            **context: Additional context fields

        Returns:
            New logger adapter with merged context
        """
        new_extra = self.extra.copy()
        new_extra.update(context)
        return ContextLoggerAdapter(self.logger, new_extra)


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for faultline.

    Attaches a JSON console handler to the ``faultline`` logger only, so the
    host application's own logging setup is left alone.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(JSONFormatter())
    console_handler.setLevel(log_level)

    package_logger = logging.getLogger("faultline")
    package_logger.setLevel(log_level)
    package_logger.handlers.clear()
    package_logger.addHandler(console_handler)


def get_logger(name: str, **context: Any) -> ContextLoggerAdapter:
    """
    Get a context-aware logger for a module.

    Args:
        name: Logger name (typically __name__)
        **context: Initial context fields (error_id, error_type, etc.)

    Returns:
        Context logger adapter

    Example:
        logger = get_logger(__name__, error_type="networkError")
        logger.info("Factory created")
    """
    base_logger = logging.getLogger(name)
    return ContextLoggerAdapter(base_logger, context)


def log_error_registered(
    logger: logging.LoggerAdapter,
    error_id: int,
    error_type: str,
    report_immediately: bool
) -> None:
    """
    Log registration of a new error record.

    Args:
        logger: Logger to use
        error_id: Registry position of the record
        error_type: Error type tag
        report_immediately: Whether the record was forwarded for reporting
    """
    logger.debug(
        f"Error registered: {error_type} #{error_id}",
        extra={
            "error_id": error_id,
            "error_type": error_type,
            "report_immediately": report_immediately,
        }
    )


def log_report_transition(
    logger: logging.LoggerAdapter,
    error_id: int,
    error_type: str,
    report_state: str,
    reason: Optional[str] = None
) -> None:
    """
    Log a reporting pipeline state transition.

    Args:
        logger: Logger to use
        error_id: Registry position of the record
        error_type: Error type tag
        report_state: State entered ('gated', 'reported', 'cancelled', ...)
        reason: Why the report stopped, if it did
    """
    extra = {
        "error_id": error_id,
        "error_type": error_type,
        "report_state": report_state,
    }
    if reason is not None:
        extra["reason"] = reason

    logger.debug(f"Report {report_state}: {error_type} #{error_id}", extra=extra)


def log_error_with_context(
    logger: logging.LoggerAdapter,
    message: str,
    error: Exception,
    **context: Any
) -> None:
    """
    Log error with full stack trace and context.

    Args:
        logger: Logger to use
        message: Error message
        error: Exception object
        **context: Additional context fields
    """
    logger.error(
        message,
        extra=context,
        exc_info=(type(error), error, error.__traceback__)
    )
