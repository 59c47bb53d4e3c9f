"""
Stripe Billing Provider Implementation.

NO DICTIONARIES - All data uses strongly typed models.

The stripe SDK is synchronous; every API call runs in a worker thread so the
event loop is never blocked. The API key is passed per call rather than set
on the stripe module.
"""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import stripe
from pydantic import ValidationError
from structlog import get_logger

from amora_billing.exceptions import AuthenticationError, ProviderApiError
from amora_billing.models.domain import (
    CheckoutRequest,
    CheckoutSessionInfo,
    CustomerInfo,
    SubscriptionInfo,
)
from amora_billing.models.events import BillingEvent
from amora_billing.models.stripe import (
    CUSTOMER_EMAIL_METADATA_KEY,
    USER_ID_METADATA_KEY,
    parse_stripe_event,
)
from amora_billing.observability.metrics import metrics

logger = get_logger(__name__)


def _object_id(value: Any) -> str | None:
    """Id of a Stripe reference that may be a string or an expanded object."""
    if value is None or isinstance(value, str):
        return value
    return getattr(value, "id", None)


def _metadata_value(obj: Any, key: str) -> str | None:
    """Read a metadata entry from a Stripe object."""
    metadata = getattr(obj, "metadata", None)
    if not metadata:
        return None
    try:
        return metadata[key] or None
    except (KeyError, TypeError):
        return None


def _timestamp(value: int | None) -> datetime | None:
    """Convert a Stripe epoch timestamp."""
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=UTC)


def _to_subscription_info(subscription: Any) -> SubscriptionInfo:
    return SubscriptionInfo(
        subscription_id=subscription.id,
        customer_id=_object_id(getattr(subscription, "customer", None)),
        status=subscription.status,
        current_period_end=_timestamp(getattr(subscription, "current_period_end", None)),
        cancel_at_period_end=bool(getattr(subscription, "cancel_at_period_end", False)),
    )


def _to_customer_info(customer: Any) -> CustomerInfo:
    return CustomerInfo(
        customer_id=customer.id,
        email=getattr(customer, "email", None),
        deleted=bool(getattr(customer, "deleted", False)),
    )


def _checkout_email(session: Any) -> str | None:
    if getattr(session, "customer_email", None):
        return session.customer_email
    details = getattr(session, "customer_details", None)
    if details is not None and getattr(details, "email", None):
        return details.email
    return _metadata_value(session, CUSTOMER_EMAIL_METADATA_KEY)


class StripeProvider:
    """
    Stripe billing provider implementation.

    Implements the BillingProvider protocol for Stripe.
    """

    def __init__(self, api_key: str, webhook_secret: str, tolerance_seconds: int = 300) -> None:
        """
        Initialize Stripe provider.

        Args:
            api_key: Stripe secret API key
            webhook_secret: Stripe webhook signing secret (empty = reject all webhooks)
            tolerance_seconds: Maximum age of a signed webhook timestamp
        """
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.tolerance_seconds = tolerance_seconds

    async def _call(self, operation: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a blocking stripe SDK call off the event loop."""
        try:
            result = await asyncio.to_thread(func, *args, api_key=self.api_key, **kwargs)
        except stripe.StripeError as exc:
            metrics.record_provider_call(operation, success=False)
            logger.error(
                "stripe_api_call_failed",
                operation=operation,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise ProviderApiError(operation, str(exc)) from exc

        metrics.record_provider_call(operation, success=True)
        return result

    async def verify_webhook(self, payload: bytes, signature: str | None) -> BillingEvent:
        """
        Verify and parse a Stripe webhook delivery.

        Fails closed: nothing is parsed unless the signature checks out.

        Raises:
            AuthenticationError: If the delivery cannot be authenticated
        """
        if not signature:
            logger.warning("stripe_webhook_missing_signature")
            raise AuthenticationError("Missing stripe-signature header")

        if not self.webhook_secret:
            logger.error("stripe_webhook_secret_not_configured")
            raise AuthenticationError("Webhook secret not configured")

        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body, signature, self.webhook_secret, self.tolerance_seconds
            )
        except UnicodeDecodeError as exc:
            logger.error("stripe_webhook_payload_not_utf8")
            raise AuthenticationError("Payload is not valid UTF-8") from exc
        except stripe.SignatureVerificationError as exc:
            logger.error("stripe_webhook_verification_failed", error=str(exc))
            raise AuthenticationError("Invalid Stripe webhook signature") from exc

        try:
            event = parse_stripe_event(body)
        except ValidationError as exc:
            logger.error("stripe_webhook_parsing_failed", error=str(exc))
            raise AuthenticationError("Malformed Stripe event payload") from exc

        logger.info(
            "stripe_webhook_verified",
            event_id=event.event_id,
            event_type=event.event_type,
        )
        return event

    async def get_customer(self, customer_id: str) -> CustomerInfo:
        customer = await self._call("get_customer", stripe.Customer.retrieve, customer_id)
        return _to_customer_info(customer)

    async def get_subscription(self, subscription_id: str) -> SubscriptionInfo:
        subscription = await self._call(
            "get_subscription", stripe.Subscription.retrieve, subscription_id
        )
        return _to_subscription_info(subscription)

    async def list_subscriptions_for_customer(
        self, customer_id: str, limit: int = 1
    ) -> list[SubscriptionInfo]:
        subscriptions = await self._call(
            "list_subscriptions",
            stripe.Subscription.list,
            customer=customer_id,
            status="all",
            limit=limit,
        )
        return [_to_subscription_info(subscription) for subscription in subscriptions.data]

    async def get_checkout_session(self, session_id: str) -> CheckoutSessionInfo:
        session = await self._call(
            "get_checkout_session",
            stripe.checkout.Session.retrieve,
            session_id,
            expand=["subscription", "customer"],
        )
        return CheckoutSessionInfo(
            session_id=session.id,
            mode=getattr(session, "mode", None),
            customer_id=_object_id(getattr(session, "customer", None)),
            subscription_id=_object_id(getattr(session, "subscription", None)),
            customer_email=_checkout_email(session),
            user_id=_metadata_value(session, USER_ID_METADATA_KEY)
            or getattr(session, "client_reference_id", None),
            url=getattr(session, "url", None),
        )

    async def find_customer_by_email(self, email: str) -> CustomerInfo | None:
        customers = await self._call("find_customer", stripe.Customer.list, email=email, limit=1)
        if not customers.data:
            return None
        return _to_customer_info(customers.data[0])

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSessionInfo:
        """
        Create a subscription checkout.

        The user id and email ride along in session and subscription metadata
        so every later webhook for this subscription resolves by internal id.
        """
        metadata: dict[str, str] = {CUSTOMER_EMAIL_METADATA_KEY: request.customer_email or ""}
        if request.user_id:
            metadata[USER_ID_METADATA_KEY] = request.user_id

        params: dict[str, Any] = {
            "payment_method_types": ["card"],
            "line_items": [{"price": request.price_id, "quantity": 1}],
            "mode": "subscription",
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
            "metadata": metadata,
            "subscription_data": {"metadata": metadata},
        }
        if request.customer_email:
            params["customer_email"] = request.customer_email
        if request.user_id:
            params["client_reference_id"] = request.user_id

        logger.info(
            "creating_stripe_checkout_session",
            price_id=request.price_id,
            user_id=request.user_id,
        )
        session = await self._call(
            "create_checkout_session", stripe.checkout.Session.create, **params
        )
        logger.info("stripe_checkout_session_created", session_id=session.id)

        return CheckoutSessionInfo(
            session_id=session.id,
            mode="subscription",
            customer_id=_object_id(getattr(session, "customer", None)),
            subscription_id=_object_id(getattr(session, "subscription", None)),
            customer_email=request.customer_email,
            user_id=request.user_id,
            url=getattr(session, "url", None),
        )

    async def create_portal_session(self, customer_id: str, return_url: str) -> str:
        session = await self._call(
            "create_portal_session",
            stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=return_url,
        )
        logger.info("stripe_portal_session_created", customer_id=customer_id)
        url: str = session.url
        return url
