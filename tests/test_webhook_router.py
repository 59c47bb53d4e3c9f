"""
Tests for EventRouter.

Dispatch by kind, unknown-kind safety, failure containment and the
processed-event ledger.
"""

from unittest.mock import AsyncMock
from uuid import uuid4

from conftest import FakeBillingProvider, InMemoryUserStore, make_user

from amora_billing.exceptions import StoreError
from amora_billing.models.events import InvoicePaid, SubscriptionCreatedOrUpdated, UnknownEvent
from amora_billing.services.reconciler import EntitlementReconciler, ReconciliationOutcome
from amora_billing.services.webhook_router import EventRouter


def paid_event(email: str = "payer@example.com") -> InvoicePaid:
    return InvoicePaid(
        event_id="evt_paid_1",
        event_type="invoice.paid",
        customer_id="cus_1",
        customer_email=email,
        subscription_id="sub_1",
    )


def make_ledger(already_processed: bool = False) -> AsyncMock:
    ledger = AsyncMock()
    ledger.already_processed = AsyncMock(return_value=already_processed)
    ledger.record = AsyncMock()
    return ledger


class TestDispatch:
    """Tests for routing events to handlers."""

    async def test_recognised_kind_runs_its_handler(
        self, event_router: EventRouter, user_store: InMemoryUserStore
    ):
        user = user_store.add(make_user(email="payer@example.com"))

        result = await event_router.dispatch(paid_event())

        assert result.outcome == ReconciliationOutcome.APPLIED
        assert result.event_id == "evt_paid_1"
        assert user_store.get(user.user_id).is_premium is True
        assert len(user_store.writes) == 1

    async def test_unknown_kind_is_ignored_without_mutation(
        self,
        event_router: EventRouter,
        user_store: InMemoryUserStore,
        provider: FakeBillingProvider,
    ):
        user = user_store.add(make_user(is_premium=True))

        result = await event_router.dispatch(
            UnknownEvent(event_id="evt_x", event_type="customer.created", customer_id="cus_1")
        )

        assert result.outcome == ReconciliationOutcome.IGNORED
        assert result.outcome.acknowledged
        assert user_store.writes == []
        assert user_store.get(user.user_id).is_premium is True
        assert provider.calls == []

    async def test_store_failure_becomes_failed_outcome(
        self, event_router: EventRouter, user_store: InMemoryUserStore
    ):
        user = user_store.add(make_user(email="payer@example.com"))
        user_store.failing_writes.add(user.user_id)

        result = await event_router.dispatch(paid_event())

        assert result.outcome == ReconciliationOutcome.FAILED
        assert not result.outcome.acknowledged
        assert "failed" in result.error

    async def test_provider_failure_becomes_failed_outcome(
        self, event_router: EventRouter, provider: FakeBillingProvider
    ):
        provider.failing_operations.add("get_customer")

        result = await event_router.dispatch(
            SubscriptionCreatedOrUpdated(
                event_id="evt_sub",
                event_type="customer.subscription.updated",
                customer_id="cus_1",
                subscription_id="sub_1",
                status="active",
            )
        )

        assert result.outcome == ReconciliationOutcome.FAILED

    async def test_unresolved_user_is_acknowledged(self, event_router: EventRouter):
        result = await event_router.dispatch(paid_event(email="nobody@example.com"))

        assert result.outcome == ReconciliationOutcome.UNRESOLVED
        assert result.outcome.acknowledged

    async def test_failed_id_lookup_then_email_miss_is_unresolved(
        self, event_router: EventRouter, user_store: InMemoryUserStore
    ):
        user_store.fail_id_lookups = True

        result = await event_router.dispatch(
            InvoicePaid(
                event_id="evt_paid_2",
                event_type="invoice.paid",
                customer_id="cus_1",
                customer_email="nobody@example.com",
                user_id=str(uuid4()),
                subscription_id="sub_1",
            )
        )

        assert result.outcome == ReconciliationOutcome.UNRESOLVED
        assert result.outcome.acknowledged
        assert result.error is None
        assert user_store.writes == []


class TestLedger:
    """Tests for the processed-event ledger."""

    async def test_processed_event_is_recorded(
        self, reconciler: EntitlementReconciler, user_store: InMemoryUserStore
    ):
        user_store.add(make_user(email="payer@example.com"))
        ledger = make_ledger()
        router = EventRouter(reconciler, ledger)

        await router.dispatch(paid_event())

        ledger.record.assert_awaited_once_with("evt_paid_1", "invoice.paid", "applied")

    async def test_seen_event_is_duplicate(
        self, reconciler: EntitlementReconciler, user_store: InMemoryUserStore
    ):
        user_store.add(make_user(email="payer@example.com"))
        router = EventRouter(reconciler, make_ledger(already_processed=True))

        result = await router.dispatch(paid_event())

        assert result.outcome == ReconciliationOutcome.DUPLICATE
        assert user_store.writes == []

    async def test_failed_event_is_not_recorded(
        self, reconciler: EntitlementReconciler, user_store: InMemoryUserStore
    ):
        """Stripe must be able to redeliver a failed event."""
        user = user_store.add(make_user(email="payer@example.com"))
        user_store.failing_writes.add(user.user_id)
        ledger = make_ledger()
        router = EventRouter(reconciler, ledger)

        result = await router.dispatch(paid_event())

        assert result.outcome == ReconciliationOutcome.FAILED
        ledger.record.assert_not_awaited()

    async def test_ledger_read_failure_still_processes(
        self, reconciler: EntitlementReconciler, user_store: InMemoryUserStore
    ):
        user = user_store.add(make_user(email="payer@example.com"))
        ledger = make_ledger()
        ledger.already_processed.side_effect = StoreError("ledger down")
        router = EventRouter(reconciler, ledger)

        result = await router.dispatch(paid_event())

        assert result.outcome == ReconciliationOutcome.APPLIED
        assert user_store.get(user.user_id).is_premium is True

    async def test_ledger_write_failure_keeps_result(
        self, reconciler: EntitlementReconciler, user_store: InMemoryUserStore
    ):
        user_store.add(make_user(email="payer@example.com"))
        ledger = make_ledger()
        ledger.record.side_effect = StoreError("ledger down")
        router = EventRouter(reconciler, ledger)

        result = await router.dispatch(paid_event())

        assert result.outcome == ReconciliationOutcome.APPLIED

    async def test_unknown_kind_skips_ledger(self, reconciler: EntitlementReconciler):
        ledger = make_ledger()
        router = EventRouter(reconciler, ledger)

        await router.dispatch(UnknownEvent(event_id="evt_x", event_type="charge.refunded"))

        ledger.already_processed.assert_not_awaited()
        ledger.record.assert_not_awaited()
