"""
Structured logging for the billing API.

Every webhook delivery is logged as a sequence of events that share the Stripe
event id, so one delivery can be followed from signature check to the
entitlement write.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from amora_billing.config import settings

# Third-party loggers that would otherwise repeat every Stripe request line.
QUIET_LOGGERS = ("stripe",)


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp each entry with the service name and API version."""
    event_dict["service"] = settings.service_name
    event_dict["version"] = settings.api_version
    return event_dict


def setup_logging() -> None:
    """
    Route stdlib and structlog output through one renderer.

    ``LOG_FORMAT=json`` gives one object per line, for example a reconciled
    renewal:
    {
        "event": "stripe_webhook_processed",
        "level": "info",
        "timestamp": "2025-01-08T12:00:00.123456Z",
        "logger": "amora_billing.services.webhook_router",
        "service": "amora-billing-api",
        "version": "0.1.0",
        "event_id": "evt_1Nx...",
        "event_type": "invoice.paid",
        "outcome": "applied"
    }

    ``LOG_FORMAT=console`` renders the same entries in colour for local runs.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.log_format == "json":
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
    """Logger for the application shell; services call structlog directly."""
    return structlog.get_logger(name)  # type: ignore[no-any-return]


class log_context:
    """
    Bind fields to every entry logged while a webhook event is handled.

    The router wraps each dispatch in
    ``log_context(event_id=event.event_id, event_type=event.event_type)`` so
    resolution and store warnings carry the Stripe event they belong to.
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs

    def __enter__(self) -> None:
        structlog.contextvars.bind_contextvars(**self.context)

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())
