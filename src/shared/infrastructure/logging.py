"""
Structured Logging
==================

JSON logs for the console, one object per line on stdout.

Every record carries a UTC timestamp, the deployment environment and, inside
a request, the correlation id. Values under credential-like keys are masked
before they are written.

Workflow telemetry uses dotted event names (`inbox.<action>.<phase>`) so the
click / success / fail funnel can be rebuilt from the log stream:

    from src.shared.infrastructure.logging import get_logger, log_event

    logger = get_logger(__name__)
    log_event(logger, "inbox.promote.fail", ref_id="inbox-001", reason="conflict")
"""

import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, MutableMapping, Optional, Tuple
from contextlib import contextmanager

from pythonjsonlogger import jsonlogger


REDACTED = "***REDACTED***"
SENSITIVE_KEYS = ("password", "api_key", "authorization", "cookie", "token")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding timestamp, environment and correlation id, with masking."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        correlation_id = getattr(record, "correlation_id", None) or message_dict.get("correlation_id")
        if correlation_id:
            log_record["correlation_id"] = correlation_id

        log_record["environment"] = getattr(record, "environment", "unknown")

        for key, value in list(log_record.items()):
            if isinstance(value, str) and _is_sensitive(key):
                log_record[key] = REDACTED


class EnvironmentFilter(logging.Filter):
    """Stamps the deployment environment on every record."""

    def __init__(self, environment: str):
        super().__init__()
        self.environment = environment

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "environment"):
            record.environment = self.environment
        return True


class ContextLoggerAdapter(logging.LoggerAdapter):
    """Adapter whose bound context is merged with per-call `extra`."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in SENSITIVE_KEYS)


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
) -> None:
    """
    Route all logging through one JSON handler on stdout.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        environment: Written into every record
    """
    numeric_level = getattr(logging, level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.addFilter(EnvironmentFilter(environment))
    handler.setFormatter(CustomJsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    ))
    root_logger.addHandler(handler)

    # Silence noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.ERROR)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Module logger; call with `__name__`."""
    return logging.getLogger(name)


def get_context_logger(name: str, correlation_id: Optional[str] = None):
    """
    Logger bound to a request's correlation id.

    Returns the plain module logger when no id is known.
    """
    logger = get_logger(name)
    if correlation_id:
        return ContextLoggerAdapter(logger, {"correlation_id": correlation_id})
    return logger


def log_event(logger, event: str, level: int = logging.INFO, **fields: Any) -> None:
    """
    Emit a telemetry event.

    Fields whose value is None are left out so absent context does not show
    up as nulls in the event stream.
    """
    logger.log(level, event, extra={key: value for key, value in fields.items() if value is not None})


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any):
    """
    Log how long the wrapped block took, even when it raises.

    Usage:
        with log_latency(logger, "inbox_api", method="GET", path="/admin/inbox"):
            response = await client.get("/admin/inbox")
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            f"{operation} completed",
            extra={"operation": operation, "latency_ms": elapsed_ms, **extra_context},
        )
