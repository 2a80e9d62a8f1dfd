"""
Structured Logging Configuration with structlog
"""

import logging
import sys
from typing import Any, Optional

import structlog


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """
    Configure structlog for JSON structured logging

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format ("json" or "console")
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors = shared_processors + [
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_context(**kwargs: Any) -> None:
    """
    Bind context variables to all log messages in current context

    Args:
        **kwargs: Key-value pairs to add to log context
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**kwargs)


def log_delivery(
    logger: structlog.stdlib.BoundLogger,
    webhook_id: str,
    endpoint_id: str,
    target_url: str,
    attempts: int,
    duration_ms: float,
    success: bool,
    error: Optional[str] = None,
) -> None:
    """
    Log a delivery outcome (success or terminal failure)

    Args:
        logger: Structlog logger
        webhook_id: Webhook id assigned at ingestion
        endpoint_id: Endpoint the webhook was received on
        target_url: Destination URL
        attempts: Number of HTTP attempts made
        duration_ms: Total delivery time including backoff sleeps
        success: Whether delivery succeeded
        error: Failure description if it did not
    """
    log_data = {
        "event": "webhook_forwarded" if success else "webhook_delivery_failed",
        "webhook_id": webhook_id,
        "endpoint_id": endpoint_id,
        "target_url": target_url,
        "attempts": attempts,
        "duration_ms": round(duration_ms, 2),
        "success": success,
    }

    if error:
        log_data["error"] = error

    if success:
        logger.info(**log_data)
    else:
        logger.error(**log_data)
