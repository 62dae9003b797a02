"""JSON logging for the API and the import command line."""

import logging
import sys
from typing import Any

import structlog
from pythonjsonlogger import jsonlogger

from exambank.core.config import settings
from exambank.observability.logging import redact_sensitive_data

# Libraries whose INFO output drowns out per-row import logs
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "uvicorn": logging.INFO,
    "openpyxl": logging.WARNING,
    "multipart": logging.WARNING,
}


class ImportJsonFormatter(jsonlogger.JsonFormatter):
    """One JSON object per record.

    Fields passed through ``extra=`` are redacted with the same rules as the
    audit log, and the bound request id is added when a request is active.
    """

    def add_fields(self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.pop("message", None)
        log_record.pop("asctime", None)

        context = structlog.contextvars.get_contextvars()
        if "request_id" in context:
            log_record.setdefault("request_id", context["request_id"])

        cleaned = redact_sensitive_data(log_record)
        log_record.clear()
        log_record.update(cleaned)
        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["event"] = record.getMessage()


def setup_logging(level: str | None = None) -> None:
    """Send every record to stdout as JSON.

    Args:
        level: Overrides ``settings.LOG_LEVEL`` (the CLI passes DEBUG for --verbose)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ImportJsonFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
    root_logger.addHandler(handler)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
