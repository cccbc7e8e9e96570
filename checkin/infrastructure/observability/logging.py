"""
Structured logging setup for the check-in scheduler.
Provides JSON-formatted logs with consistent fields for production monitoring.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output for production.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_trace_context,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def _add_trace_context(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Add trace context to log entries if available."""
    # Bound contextvars (user_id, request id) are merged by the caller for now
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_scheduling_outcome(operation: str, contact_id: str | None, outcome: str, **fields: Any):
    """Log a public scheduling decision with consistent fields."""
    logger = get_logger("scheduling")

    log_data = {
        "operation": operation,
        "contact_id": contact_id,
        "outcome": outcome,
        "event_type": "scheduling_decision",
        **fields,
    }

    if outcome == "failed":
        logger.error("Scheduling failed", **log_data)
    elif outcome in ("slots_filled", "fallback"):
        logger.warning("Scheduling degraded", **log_data)
    else:
        logger.info("Scheduling completed", **log_data)
