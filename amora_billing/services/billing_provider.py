"""
Billing Provider Protocol - Provider-agnostic interface.

NO DICTIONARIES - All data uses strongly typed models.
"""

from typing import Protocol

from amora_billing.models.domain import (
    CheckoutRequest,
    CheckoutSessionInfo,
    CustomerInfo,
    SubscriptionInfo,
)
from amora_billing.models.events import BillingEvent


class BillingProvider(Protocol):
    """
    Billing provider protocol.

    Every call is remote and may fail transiently; implementations raise
    ProviderApiError for any such failure.
    """

    async def verify_webhook(self, payload: bytes, signature: str | None) -> BillingEvent:
        """
        Authenticate and parse a webhook delivery.

        Args:
            payload: Raw request body
            signature: Signature header value (None if absent)

        Returns:
            Parsed billing event

        Raises:
            AuthenticationError: Missing header, missing secret, bad signature
                or malformed payload
        """
        ...

    async def get_customer(self, customer_id: str) -> CustomerInfo:
        """Fetch a customer."""
        ...

    async def get_subscription(self, subscription_id: str) -> SubscriptionInfo:
        """Fetch a subscription with its current status."""
        ...

    async def list_subscriptions_for_customer(
        self, customer_id: str, limit: int = 1
    ) -> list[SubscriptionInfo]:
        """List a customer's subscriptions of any status, newest first."""
        ...

    async def get_checkout_session(self, session_id: str) -> CheckoutSessionInfo:
        """Fetch a checkout session."""
        ...

    async def find_customer_by_email(self, email: str) -> CustomerInfo | None:
        """Find the first customer registered with an email."""
        ...

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSessionInfo:
        """Create a subscription-mode checkout session."""
        ...

    async def create_portal_session(self, customer_id: str, return_url: str) -> str:
        """Create a customer portal session and return its URL."""
        ...
