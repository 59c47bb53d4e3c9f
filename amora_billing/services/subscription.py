"""
Subscription Service - Synchronous billing operations for the client app.

NO DICTIONARIES - All inputs and outputs are strongly typed.

get_status re-derives entitlement from Stripe on every call and writes it
back when storage disagrees, using the same status rule as the webhooks.
"""

from structlog import get_logger

from amora_billing.exceptions import (
    CustomerNotFoundError,
    InvalidRequestError,
    ProviderApiError,
    ResolutionError,
    StoreError,
    UserNotFoundError,
)
from amora_billing.models.domain import (
    CheckoutRequest,
    CheckoutSessionInfo,
    CustomerInfo,
    SessionVerification,
    SubscriptionInfo,
    SubscriptionStatus,
    UserAccount,
)
from amora_billing.services.billing_provider import BillingProvider
from amora_billing.services.reconciler import (
    STRATEGY_EMAIL,
    STRATEGY_USER_ID,
    subscription_target,
)
from amora_billing.services.resolution import ResolutionStrategy, resolve_and_apply
from amora_billing.services.user_store import UserStore

logger = get_logger(__name__)


def _live_status(customer_id: str, subscription: SubscriptionInfo) -> SubscriptionStatus:
    return SubscriptionStatus(
        is_active=subscription.is_active,
        subscription_id=subscription.subscription_id,
        customer_id=customer_id,
        status=subscription.status,
        current_period_end=subscription.current_period_end,
        cancel_at_period_end=subscription.cancel_at_period_end,
    )


def _stored_status(user: UserAccount) -> SubscriptionStatus:
    return SubscriptionStatus(
        is_active=user.is_premium,
        subscription_id=user.stripe_subscription_id,
        customer_id=user.stripe_customer_id,
    )


class SubscriptionService:
    """Subscription status, checkout and portal operations."""

    def __init__(self, store: UserStore, provider: BillingProvider) -> None:
        self.store = store
        self.provider = provider

    async def get_status(self, user_id: str) -> SubscriptionStatus:
        """
        Get a user's subscription status, reconciling with Stripe.

        Falls back to the stored state when Stripe or the write-back fails.

        Raises:
            UserNotFoundError: If the user doesn't exist
            StoreError: If the user cannot be read
        """
        user = await self.store.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        if user.stripe_customer_id is None:
            return _stored_status(user)

        try:
            live = await self._sync_with_provider(user, user.stripe_customer_id)
        except (ProviderApiError, StoreError) as exc:
            logger.warning(
                "subscription_status_sync_failed",
                user_id=user_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return _stored_status(user)

        return live if live is not None else _stored_status(user)

    async def _sync_with_provider(
        self, user: UserAccount, customer_id: str
    ) -> SubscriptionStatus | None:
        if user.stripe_subscription_id:
            subscription = await self.provider.get_subscription(user.stripe_subscription_id)
        else:
            # Customer exists but no subscription id yet: adopt the most recent one
            recent = await self.provider.list_subscriptions_for_customer(customer_id, limit=1)
            if not recent:
                return None
            subscription = recent[0]

        target = subscription_target(customer_id, subscription)
        if not target.matches(user):
            await self.store.apply_entitlement_update(target.for_user(user.user_id))
            logger.info(
                "subscription_status_synced",
                user_id=str(user.user_id),
                is_premium=target.is_premium,
                subscription_id=subscription.subscription_id,
            )

        return _live_status(customer_id, subscription)

    async def verify_checkout_session(
        self, session_id: str, user_id: str | None = None
    ) -> SessionVerification:
        """
        Confirm a completed checkout and store its entitlement.

        The entitlement goes to user_id when given, otherwise to the user
        registered under the session's email. A session nobody can be found
        for still verifies; the webhook for it will be unresolved too.

        Raises:
            InvalidRequestError: Not a subscription checkout, or missing ids
            ProviderApiError: If Stripe cannot be reached
            StoreError: If every resolved write fails
        """
        if not session_id:
            raise InvalidRequestError("Session ID is required")

        session = await self.provider.get_checkout_session(session_id)
        if session.mode != "subscription":
            raise InvalidRequestError("Session is not a subscription checkout")
        if not session.customer_id or not session.subscription_id:
            raise InvalidRequestError("Invalid checkout session")

        subscription = await self.provider.get_subscription(session.subscription_id)
        target = subscription_target(session.customer_id, subscription)

        applied_user_id = None
        try:
            applied = await resolve_and_apply(
                self._session_strategies(session, user_id), target, self.store
            )
            applied_user_id = applied.account.user_id
        except ResolutionError as exc:
            logger.warning("checkout_session_user_unresolved", session_id=session_id, error=str(exc))

        logger.info(
            "checkout_session_verified",
            session_id=session_id,
            is_active=subscription.is_active,
            user_id=str(applied_user_id) if applied_user_id else None,
        )
        return SessionVerification(
            is_active=subscription.is_active,
            subscription_id=subscription.subscription_id,
            customer_id=session.customer_id,
            status=subscription.status,
            user_id=applied_user_id,
        )

    def _session_strategies(
        self, session: CheckoutSessionInfo, user_id: str | None
    ) -> list[ResolutionStrategy]:
        requested = user_id or session.user_id
        if requested:

            async def by_user_id() -> UserAccount | None:
                return await self.store.find_by_id(requested)

            return [ResolutionStrategy(STRATEGY_USER_ID, by_user_id)]

        email = session.customer_email

        async def by_email() -> UserAccount | None:
            return await self.store.find_by_email(email) if email else None

        return [ResolutionStrategy(STRATEGY_EMAIL, by_email)]

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSessionInfo:
        """Create a subscription checkout session."""
        return await self.provider.create_checkout_session(request)

    async def create_portal_session(
        self,
        return_url: str,
        user_id: str | None = None,
        customer_id: str | None = None,
        customer_email: str | None = None,
    ) -> str:
        """
        Create a customer portal session and return its URL.

        Customer lookup order: the user's stored customer id, then the
        explicit customer id, then the first customer with the email.

        Raises:
            InvalidRequestError: Missing return URL, or customer has no subscription
            CustomerNotFoundError: If no customer could be found
        """
        if not return_url:
            raise InvalidRequestError("Missing required field: returnUrl")

        customer = await self._portal_customer(user_id, customer_id, customer_email)
        if customer is None:
            logger.warning(
                "portal_customer_not_found",
                user_id=user_id,
                customer_id=customer_id,
            )
            raise CustomerNotFoundError(
                "Customer not found. Please ensure you have an active subscription."
            )

        subscriptions = await self.provider.list_subscriptions_for_customer(
            customer.customer_id, limit=1
        )
        if not subscriptions:
            logger.warning("portal_customer_has_no_subscription", customer_id=customer.customer_id)
            raise InvalidRequestError(
                "No active subscription found. Please subscribe to Amora Premium first."
            )

        return await self.provider.create_portal_session(customer.customer_id, return_url)

    async def _portal_customer(
        self,
        user_id: str | None,
        customer_id: str | None,
        customer_email: str | None,
    ) -> CustomerInfo | None:
        stored_customer_id = None
        if user_id:
            try:
                user = await self.store.find_by_id(user_id)
            except StoreError as exc:
                logger.warning("portal_user_lookup_failed", user_id=user_id, error=str(exc))
                user = None
            if user is not None:
                stored_customer_id = user.stripe_customer_id

        if stored_customer_id or customer_id:
            customer = await self.provider.get_customer(stored_customer_id or customer_id)
            return None if customer.deleted else customer
        if customer_email:
            return await self.provider.find_customer_by_email(customer_email)
        return None
