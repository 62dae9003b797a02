"""Structured audit logging with OpenTelemetry correlation."""

import logging
import os
import sys
from typing import Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import format_span_id, format_trace_id

from exambank.core.config import settings

# Question content, raw upload bytes and the database DSN are never logged
REDACTED_KEYS = {
    "correct_option",
    "languages",
    "question_text",
    "options",
    "explanation",
    "content",
    "database_url",
}


def redact_sensitive_data(data: dict[str, Any]) -> dict[str, Any]:
    """
    Redact sensitive keys from log data.

    Args:
        data: Dictionary to redact

    Returns:
        Dictionary with sensitive values redacted
    """
    redacted = {}
    for key, value in data.items():
        key_lower = key.lower()
        if any(redacted_key in key_lower for redacted_key in REDACTED_KEYS):
            redacted[key] = "[REDACTED]"
        elif isinstance(value, dict):
            redacted[key] = redact_sensitive_data(value)
        elif isinstance(value, list):
            redacted[key] = [
                redact_sensitive_data(item) if isinstance(item, dict) else item for item in value
            ]
        else:
            redacted[key] = value
    return redacted


def add_trace_context(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Add OpenTelemetry trace context to log events."""
    span = trace.get_current_span()
    span_context = span.get_span_context()
    if span_context.is_valid:
        event_dict["trace_id"] = format_trace_id(span_context.trace_id)
        event_dict["span_id"] = format_span_id(span_context.span_id)
    return event_dict


def setup_structured_logging() -> None:
    """Configure structlog JSON output for audit events."""
    log_level = os.getenv("LOG_LEVEL", settings.LOG_LEVEL).upper()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_trace_context,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level, logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        service_name=settings.PROJECT_NAME,
        environment=settings.ENV,
    )


def get_audit_logger() -> structlog.BoundLogger:
    """Get audit logger for sensitive actions."""
    return structlog.get_logger("audit")


def audit_log(
    event: str,
    action: str | None = None,
    target_id: str | None = None,
    **fields: Any,
) -> None:
    """
    Log an audit event (writes to the question bank).

    Args:
        event: Event name/type
        action: Action performed
        target_id: Target resource ID (UUID only, no content)
        **fields: Additional fields (will be redacted)
    """
    logger = get_audit_logger()

    audit_data: dict[str, Any] = {"audit": True}
    if action:
        audit_data["action"] = action
    if target_id:
        audit_data["target_id"] = target_id

    audit_data.update(redact_sensitive_data(fields))

    logger.warning(event, **audit_data)
