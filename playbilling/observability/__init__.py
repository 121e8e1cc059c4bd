"""
Observability module - Logging and Metrics.
"""

from playbilling.observability.logging import get_logger, log_context, setup_logging
from playbilling.observability.metrics import metrics

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
]
