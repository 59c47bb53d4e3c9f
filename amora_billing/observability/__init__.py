"""
Observability module - Logging, Metrics, and Tracing.
"""

from amora_billing.observability.logging import get_logger, log_context, setup_logging
from amora_billing.observability.metrics import metrics
from amora_billing.observability.tracing import setup_tracing

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "setup_tracing",
]
