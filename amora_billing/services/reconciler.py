"""
Entitlement Reconciler - Turns billing events into entitlement writes.

NO DICTIONARIES - All results are strongly typed.

Each handler derives the target entitlement from its own event payload (plus
at most one fresh subscription lookup) so the outcome never depends on the
order in which deliveries arrive.
"""

from dataclasses import dataclass
from enum import Enum

from structlog import get_logger

from amora_billing.exceptions import ResolutionError
from amora_billing.models.domain import (
    EntitlementTarget,
    SubscriptionInfo,
    UserAccount,
    is_entitled,
)
from amora_billing.models.events import (
    BillingEvent,
    CheckoutCompleted,
    InvoicePaid,
    InvoicePaymentFailed,
    SubscriptionCreatedOrUpdated,
    SubscriptionDeleted,
)
from amora_billing.observability.metrics import metrics
from amora_billing.services.billing_provider import BillingProvider
from amora_billing.services.resolution import ResolutionStrategy, resolve_and_apply
from amora_billing.services.user_store import UserStore

logger = get_logger(__name__)

STRATEGY_USER_ID = "user_id"
STRATEGY_EMAIL = "email"


class ReconciliationOutcome(str, Enum):
    """How a single delivery ended."""

    APPLIED = "applied"
    UNRESOLVED = "unresolved"
    SKIPPED = "skipped"
    IGNORED = "ignored"
    DUPLICATE = "duplicate"
    FAILED = "failed"

    @property
    def acknowledged(self) -> bool:
        """Whether the provider should consider the delivery handled."""
        return self is not ReconciliationOutcome.FAILED


@dataclass(frozen=True)
class ReconciliationResult:
    """Result of processing one billing event."""

    event_id: str
    event_type: str
    outcome: ReconciliationOutcome
    user_id: str | None = None
    is_premium: bool | None = None
    resolution: str | None = None
    reason: str | None = None
    error: str | None = None


def subscription_target(customer_id: str | None, subscription: SubscriptionInfo) -> EntitlementTarget:
    """Target state for a subscription whose status was just read from the provider."""
    return EntitlementTarget(
        is_premium=subscription.is_active,
        stripe_customer_id=customer_id or subscription.customer_id,
        stripe_subscription_id=subscription.subscription_id,
    )


class EntitlementReconciler:
    """
    Applies per-kind entitlement rules to verified billing events.

    Raises StoreError / ProviderApiError for failures the provider should
    redeliver; the router converts those into a failed outcome.
    """

    def __init__(self, store: UserStore, provider: BillingProvider) -> None:
        self.store = store
        self.provider = provider

    # ========================================================================
    # Resolution
    # ========================================================================

    def resolution_strategies(self, event: BillingEvent) -> list[ResolutionStrategy]:
        """Internal id first (when the event carries one), then customer email."""
        strategies: list[ResolutionStrategy] = []

        if event.user_id:
            user_id = event.user_id

            async def by_user_id() -> UserAccount | None:
                return await self.store.find_by_id(user_id)

            strategies.append(ResolutionStrategy(STRATEGY_USER_ID, by_user_id))

        async def by_email() -> UserAccount | None:
            email = await self._event_email(event)
            if email is None:
                return None
            return await self.store.find_by_email(email)

        strategies.append(ResolutionStrategy(STRATEGY_EMAIL, by_email))
        return strategies

    async def _event_email(self, event: BillingEvent) -> str | None:
        if event.customer_email:
            return event.customer_email
        if not event.customer_id:
            return None

        customer = await self.provider.get_customer(event.customer_id)
        if customer.deleted:
            logger.info("stripe_customer_deleted", customer_id=event.customer_id)
            return None
        return customer.email

    async def _apply(self, event: BillingEvent, target: EntitlementTarget) -> ReconciliationResult:
        try:
            applied = await resolve_and_apply(self.resolution_strategies(event), target, self.store)
        except ResolutionError as exc:
            logger.warning(
                "entitlement_unresolved",
                customer_id=event.customer_id,
                attempted=exc.attempted,
            )
            return ReconciliationResult(
                event_id=event.event_id,
                event_type=event.event_type,
                outcome=ReconciliationOutcome.UNRESOLVED,
                is_premium=target.is_premium,
                reason=str(exc),
            )

        metrics.record_entitlement_update(target.is_premium, applied.strategy)
        logger.info(
            "entitlement_applied",
            user_id=str(applied.account.user_id),
            is_premium=applied.account.is_premium,
            resolution=applied.strategy,
            changed=applied.changed,
        )
        return ReconciliationResult(
            event_id=event.event_id,
            event_type=event.event_type,
            outcome=ReconciliationOutcome.APPLIED,
            user_id=str(applied.account.user_id),
            is_premium=applied.account.is_premium,
            resolution=applied.strategy,
        )

    @staticmethod
    def _skip(event: BillingEvent, reason: str) -> ReconciliationResult:
        logger.info("stripe_webhook_skipped", reason=reason)
        return ReconciliationResult(
            event_id=event.event_id,
            event_type=event.event_type,
            outcome=ReconciliationOutcome.SKIPPED,
            reason=reason,
        )

    # ========================================================================
    # Handlers
    # ========================================================================

    async def handle_checkout_completed(self, event: CheckoutCompleted) -> ReconciliationResult:
        if event.mode != "subscription":
            return self._skip(event, f"checkout mode is {event.mode}")
        if not event.subscription_id or not event.customer_id:
            return self._skip(event, "checkout has no subscription or customer")

        subscription = await self.provider.get_subscription(event.subscription_id)
        if not subscription.is_active:
            return self._skip(event, f"subscription status is {subscription.status}")

        return await self._apply(
            event,
            EntitlementTarget(
                is_premium=True,
                stripe_customer_id=event.customer_id,
                stripe_subscription_id=event.subscription_id,
            ),
        )

    async def handle_subscription_changed(
        self, event: SubscriptionCreatedOrUpdated
    ) -> ReconciliationResult:
        if not event.customer_id:
            return self._skip(event, "subscription has no customer")

        return await self._apply(
            event,
            EntitlementTarget(
                is_premium=is_entitled(event.status),
                stripe_customer_id=event.customer_id,
                stripe_subscription_id=event.subscription_id,
            ),
        )

    async def handle_subscription_deleted(self, event: SubscriptionDeleted) -> ReconciliationResult:
        if not event.customer_id:
            return self._skip(event, "subscription has no customer")

        return await self._apply(
            event,
            EntitlementTarget(
                is_premium=False,
                stripe_customer_id=event.customer_id,
                clear_subscription=True,
            ),
        )

    async def handle_invoice_paid(self, event: InvoicePaid) -> ReconciliationResult:
        if not event.customer_id:
            return self._skip(event, "invoice has no customer")

        return await self._apply(
            event,
            EntitlementTarget(
                is_premium=True,
                stripe_customer_id=event.customer_id,
                stripe_subscription_id=event.subscription_id,
            ),
        )

    async def handle_invoice_payment_failed(
        self, event: InvoicePaymentFailed
    ) -> ReconciliationResult:
        if not event.customer_id or not event.subscription_id:
            return self._skip(event, "invoice has no subscription or customer")

        # A failed invoice alone does not end the subscription; re-read its status.
        subscription = await self.provider.get_subscription(event.subscription_id)
        return await self._apply(event, subscription_target(event.customer_id, subscription))
