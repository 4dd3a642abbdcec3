"""
Structured logging setup for the relationship graph service.
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
            _add_sync_context,
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
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _add_sync_context(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Tag sync outcome entries so they can be filtered as one stream."""
    if event_dict.get("event_type") == "calendar_sync":
        event_dict["component"] = "network_sync"
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


def log_sync_outcome(
    user_id: str,
    outcome: str,
    duration_ms: float,
    contacts_found: int | None = None,
    companies_found: int | None = None,
    error: str | None = None,
):
    """Log the end of a sync pass with consistent fields."""
    logger = get_logger("calendar_sync")

    log_data = {
        "user_id": user_id,
        "outcome": outcome,
        "duration_ms": duration_ms,
        "event_type": "calendar_sync",
    }

    if contacts_found is not None:
        log_data["contacts_found"] = contacts_found
    if companies_found is not None:
        log_data["companies_found"] = companies_found
    if error:
        log_data["error"] = error

    if outcome == "success":
        logger.info("Calendar sync finished", **log_data)
    else:
        logger.warning("Calendar sync did not complete", **log_data)
