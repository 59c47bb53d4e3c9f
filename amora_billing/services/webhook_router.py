"""
Event Router - Dispatches verified billing events to their handler.

Exactly one handler runs per recognised event kind; unknown kinds run none.
Handler failures stop here and come back as a failed result.
"""

import time
from collections.abc import Awaitable, Callable
from typing import Any

from opentelemetry import trace
from structlog import get_logger

from amora_billing.exceptions import ProviderApiError, StoreError
from amora_billing.models.events import BillingEvent, BillingEventKind
from amora_billing.observability.logging import log_context
from amora_billing.observability.metrics import metrics
from amora_billing.observability.tracing import add_span_attributes, get_tracer, set_span_error
from amora_billing.services.event_ledger import WebhookEventLedger
from amora_billing.services.reconciler import (
    EntitlementReconciler,
    ReconciliationOutcome,
    ReconciliationResult,
)

logger = get_logger(__name__)
tracer = get_tracer(__name__)

Handler = Callable[[Any], Awaitable[ReconciliationResult]]


class EventRouter:
    """Routes billing events by kind, guarded by an optional event ledger."""

    def __init__(
        self,
        reconciler: EntitlementReconciler,
        ledger: WebhookEventLedger | None = None,
    ) -> None:
        self.reconciler = reconciler
        self.ledger = ledger
        self.handlers: dict[BillingEventKind, Handler] = {
            BillingEventKind.CHECKOUT_COMPLETED: reconciler.handle_checkout_completed,
            BillingEventKind.SUBSCRIPTION_CREATED_OR_UPDATED: reconciler.handle_subscription_changed,
            BillingEventKind.SUBSCRIPTION_DELETED: reconciler.handle_subscription_deleted,
            BillingEventKind.INVOICE_PAID: reconciler.handle_invoice_paid,
            BillingEventKind.INVOICE_PAYMENT_FAILED: reconciler.handle_invoice_payment_failed,
        }

    async def dispatch(self, event: BillingEvent) -> ReconciliationResult:
        """
        Process one verified event.

        Never raises for StoreError or ProviderApiError; those become a
        FAILED result so the HTTP layer can ask the provider to redeliver.
        """
        started = time.perf_counter()

        with log_context(event_id=event.event_id, event_type=event.event_type):
            with tracer.start_as_current_span("reconcile_billing_event") as span:
                add_span_attributes(
                    span,
                    event_id=event.event_id,
                    event_type=event.event_type,
                    event_kind=event.kind.value,
                )
                result = await self._dispatch(event)
                add_span_attributes(span, outcome=result.outcome.value, user_id=result.user_id)

            metrics.record_webhook_event(
                event.event_type, result.outcome.value, time.perf_counter() - started
            )
            logger.info(
                "stripe_webhook_processed",
                outcome=result.outcome.value,
                user_id=result.user_id,
            )

        return result

    async def _dispatch(self, event: BillingEvent) -> ReconciliationResult:
        handler = self.handlers.get(event.kind)
        if handler is None:
            logger.info("stripe_webhook_ignored", reason="unhandled event type")
            return ReconciliationResult(
                event_id=event.event_id,
                event_type=event.event_type,
                outcome=ReconciliationOutcome.IGNORED,
            )

        if await self._seen_before(event):
            logger.info("stripe_webhook_duplicate")
            return ReconciliationResult(
                event_id=event.event_id,
                event_type=event.event_type,
                outcome=ReconciliationOutcome.DUPLICATE,
            )

        try:
            result = await handler(event)
        except (StoreError, ProviderApiError) as exc:
            set_span_error(trace.get_current_span(), exc)
            metrics.record_error(type(exc).__name__, event.event_type)
            logger.error(
                "stripe_webhook_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return ReconciliationResult(
                event_id=event.event_id,
                event_type=event.event_type,
                outcome=ReconciliationOutcome.FAILED,
                error=str(exc),
            )

        await self._remember(event, result)
        return result

    async def _seen_before(self, event: BillingEvent) -> bool:
        if self.ledger is None:
            return False
        try:
            return await self.ledger.already_processed(event.event_id)
        except StoreError as exc:
            logger.warning("webhook_ledger_read_failed", error=str(exc))
            return False

    async def _remember(self, event: BillingEvent, result: ReconciliationResult) -> None:
        if self.ledger is None:
            return
        try:
            await self.ledger.record(event.event_id, event.event_type, result.outcome.value)
        except StoreError as exc:
            logger.warning("webhook_ledger_write_failed", error=str(exc))
