"""
JSON logging for the SLA worker.

Every record goes to stdout as one JSON object: the message, logger name and
level, plus whatever the caller put in ``extra``. The formatter adds a UTC
timestamp, the deployment environment and, inside a sweep, its correlation id.
Values under secret-looking keys are masked.

    from supportdesk.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Ticket escalated", extra={"ticket_id": "TKT-001", "escalation_level": 2})
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, MutableMapping

from pythonjsonlogger import jsonlogger


REDACTED = "***REDACTED***"
SECRET_MARKERS = ("password", "api_key", "webhook", "token")
NOISY_LOGGERS = ("apscheduler", "httpx", "watchdog")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """python-json-logger formatter with environment, correlation id and masking."""

    def __init__(self, *args: Any, environment: str = "unknown", **kwargs: Any):
        self.environment = environment
        super().__init__(*args, **kwargs)

    def add_fields(
        self,
        log_data: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_data, record, message_dict)

        log_data.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        log_data["environment"] = getattr(record, "environment", self.environment)
        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id is not None:
            log_data["correlation_id"] = correlation_id

        # Webhook URLs carry their secret in the path
        for key, value in log_data.items():
            if isinstance(value, str) and any(m in key.lower() for m in SECRET_MARKERS):
                log_data[key] = REDACTED


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """Send all logging to stdout as JSON; replaces existing root handlers."""
    numeric_level = logging.getLevelName(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        environment=environment,
    ))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(numeric_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class ContextLogger(logging.LoggerAdapter):
    """LoggerAdapter that keeps per-call ``extra`` next to its own context."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_context_logger(name: str, correlation_id: str | None = None) -> logging.Logger:
    """
    Logger whose records all carry ``correlation_id``.

    Used per escalation sweep so that every line a sweep writes can be
    grouped together. Without a correlation id this is a plain logger.
    """
    logger = get_logger(name)
    if correlation_id:
        return ContextLogger(logger, {"correlation_id": correlation_id})
    return logger


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any) -> Iterator[None]:
    """
    Log how long the enclosed block took, in milliseconds.

        with log_latency(logger, "escalation_sweep", tickets=42):
            await sweep()

    The record is written even when the block raises.
    """
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            f"{operation} completed",
            extra={"operation": operation, "latency_ms": elapsed_ms, **extra_context},
        )
