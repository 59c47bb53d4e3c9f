"""
OpenTelemetry tracing for the billing API.

A webhook delivery shows up as the FastAPI request span with a
``reconcile_billing_event`` child, under which sit the user lookups and the
entitlement ``UPDATE``. Nothing is installed unless ``TRACING_ENABLED`` is set.
"""

from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, Status, StatusCode, Tracer

from amora_billing.config import settings


def setup_tracing() -> None:
    """Export spans for ``SERVICE_NAME`` to the collector at ``OTLP_ENDPOINT``."""
    if not settings.tracing_enabled:
        return

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "service.version": settings.api_version,
        }
    )

    provider = TracerProvider(resource=resource)
    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(endpoint=settings.otlp_endpoint, insecure=settings.otlp_insecure)
        )
    )

    trace.set_tracer_provider(provider)


def instrument_fastapi(app: Any) -> None:
    """Open a server span per request, webhook and checkout routes alike."""
    if not settings.tracing_enabled:
        return

    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine: Any) -> None:
    """
    Trace queries issued through the lifespan's ``Database``.

    ``engine`` is the async engine; the instrumentor hooks its sync core.
    """
    if not settings.tracing_enabled:
        return

    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


def get_tracer(name: str) -> Tracer:
    return trace.get_tracer(name)


def add_span_attributes(span: Span, **attributes: Any) -> None:
    """
    Copy event fields onto a span.

    ``None`` is dropped, so an unresolved event carries no ``user_id``.
    UUIDs and other non-primitive values are stored as strings.
    """
    for key, value in attributes.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            span.set_attribute(key, value)
        else:
            span.set_attribute(key, str(value))


def set_span_error(span: Span, error: Exception) -> None:
    """Mark a failed reconciliation on its span; the event will be redelivered."""
    span.set_status(Status(StatusCode.ERROR, str(error)))
    span.record_exception(error)
