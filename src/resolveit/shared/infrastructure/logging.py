"""
Structured Logging
==================

JSON-structured logging with correlation tracking.

Provides:
- Structured JSON logs (parseable by log aggregators)
- Correlation IDs for HTTP requests and sweep IDs for scheduled jobs
- Contextual loggers for modules
- Latency timing utility

Usage:
    from resolveit.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Complaint escalated", extra={"complaint_id": "..."})
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger import jsonlogger

_CONTEXT_FIELDS = ("correlation_id", "sweep_id", "job_id")
_SENSITIVE_MARKERS = ("password", "api_key", "secret")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter adding timestamp, tracing ids and environment.

    Values of keys that look like credentials are redacted.
    """

    def __init__(self, *args: Any, environment: str = "unknown", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.environment = environment

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        for name in _CONTEXT_FIELDS:
            if hasattr(record, name):
                log_record[name] = getattr(record, name)

        log_record["environment"] = self.environment

        for key, value in list(log_record.items()):
            if not isinstance(value, str):
                continue
            lowered = key.lower()
            if any(marker in lowered for marker in _SENSITIVE_MARKERS):
                log_record[key] = "***REDACTED***"
            elif "token" in lowered:
                log_record[key] = "***REDACTED***"


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
) -> None:
    """
    Configure structured JSON logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        environment: Environment name for log context
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))
    handler.setFormatter(
        CustomJsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            environment=environment,
        )
    )
    root_logger.addHandler(handler)

    # Silence noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges its context into each call's ``extra``."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_context_logger(name: str, **context: Any) -> ContextLoggerAdapter:
    """
    Get a logger that stamps every record with the given context.

    Typical context is ``correlation_id`` for requests or ``sweep_id`` for
    one escalation sweep.
    """
    return ContextLoggerAdapter(get_logger(name), context)


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any):
    """
    Context manager for measuring and logging operation latency.

    Usage:
        with log_latency(logger, "escalation_sweep", sweep_id=sweep_id):
            await service.check_auto_escalation()
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        latency_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{operation} completed",
            extra={
                "operation": operation,
                "latency_ms": round(latency_ms, 2),
                **extra_context,
            },
        )
