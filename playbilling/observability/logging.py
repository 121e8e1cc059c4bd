"""
Structured Logging with Structlog.

Provides JSON-formatted (or console) logs with purchase context.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from playbilling.config import Settings, settings as default_settings

_app_context: dict[str, str] = {
    "service": default_settings.service_name,
    "version": default_settings.version,
}


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add client-level context to all log entries."""
    event_dict.update(_app_context)
    return event_dict


def setup_logging(config: Settings | None = None) -> None:
    """
    Configure structured logging with structlog.

    Logs are formatted as JSON for machine parsing with the following structure:
    {
        "event": "purchase_completed",
        "level": "info",
        "timestamp": "2025-01-08T12:00:00.123456Z",
        "logger": "playbilling.services.purchase_session",
        "service": "playbilling",
        "version": "0.1.0",
        "product_id": "coins_100",
        ...additional context
    }
    """
    config = config or default_settings
    _app_context["service"] = config.service_name
    _app_context["version"] = config.version

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, config.log_level.upper()),
    )

    # Processors for structlog
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    # Add exception info
    if config.log_level.upper() == "DEBUG":
        processors.append(structlog.processors.ExceptionRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)

    # Choose renderer based on format
    if config.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("purchase_requested", product_id=product_id)
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]


# Context manager for adding purchase context
class log_context:
    """
    Context manager for adding structured logging context.

    Usage:
        with log_context(product_id="coins_100", product_type="inapp"):
            logger.info("purchase_requested")
            # All logs within this context will include product_id and product_type
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs

    def __enter__(self) -> None:
        """Enter context - bind context variables."""
        structlog.contextvars.bind_contextvars(**self.context)

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit context - clear context variables."""
        structlog.contextvars.unbind_contextvars(*self.context.keys())
