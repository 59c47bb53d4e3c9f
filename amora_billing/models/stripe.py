"""
Stripe Wire Models - Pydantic models for Stripe webhook payloads.

Only the fields the reconciler reads are modelled; everything else Stripe
sends is ignored. Object references (customer, subscription) arrive either as
an id string or as an expanded object and are normalised to the id.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from amora_billing.models.events import (
    BillingEvent,
    CheckoutCompleted,
    InvoicePaid,
    InvoicePaymentFailed,
    SubscriptionCreatedOrUpdated,
    SubscriptionDeleted,
    UnknownEvent,
)

# Metadata keys written at checkout so later events resolve without an email lookup
USER_ID_METADATA_KEY = "user_id"
CUSTOMER_EMAIL_METADATA_KEY = "customer_email"


def _reference_id(value: Any) -> Any:
    """Collapse an expanded Stripe object to its id."""
    if isinstance(value, dict):
        return value.get("id")
    return value


class StripeModel(BaseModel):
    """Base for Stripe payload fragments."""

    model_config = ConfigDict(extra="ignore")

    @field_validator("metadata", mode="before", check_fields=False)
    @classmethod
    def metadata_or_empty(cls, value: Any) -> Any:
        return value or {}


class StripeCustomerDetails(StripeModel):
    """checkout.session customer_details."""

    email: str | None = None


class StripeCheckoutSession(StripeModel):
    """checkout.session object."""

    id: str
    mode: str | None = None
    customer: str | None = None
    subscription: str | None = None
    customer_email: str | None = None
    customer_details: StripeCustomerDetails | None = None
    client_reference_id: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("customer", "subscription", mode="before")
    @classmethod
    def collapse_references(cls, value: Any) -> Any:
        return _reference_id(value)

    @property
    def email(self) -> str | None:
        """Best email Stripe reported for this session."""
        if self.customer_email:
            return self.customer_email
        if self.customer_details and self.customer_details.email:
            return self.customer_details.email
        return self.metadata.get(CUSTOMER_EMAIL_METADATA_KEY) or None

    @property
    def user_id(self) -> str | None:
        """Internal user id from metadata or client reference."""
        return self.metadata.get(USER_ID_METADATA_KEY) or self.client_reference_id


class StripeSubscription(StripeModel):
    """customer.subscription object."""

    id: str
    customer: str | None = None
    status: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("customer", mode="before")
    @classmethod
    def collapse_references(cls, value: Any) -> Any:
        return _reference_id(value)


class StripeSubscriptionDetails(StripeModel):
    """invoice.parent.subscription_details (newer API versions)."""

    subscription: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("subscription", mode="before")
    @classmethod
    def collapse_references(cls, value: Any) -> Any:
        return _reference_id(value)


class StripeInvoiceParent(StripeModel):
    """invoice.parent (newer API versions)."""

    subscription_details: StripeSubscriptionDetails | None = None


class StripeInvoice(StripeModel):
    """invoice object."""

    id: str | None = None
    customer: str | None = None
    subscription: str | None = None
    customer_email: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    subscription_details: StripeSubscriptionDetails | None = None
    parent: StripeInvoiceParent | None = None

    @field_validator("customer", "subscription", mode="before")
    @classmethod
    def collapse_references(cls, value: Any) -> Any:
        return _reference_id(value)

    @property
    def active_subscription_details(self) -> StripeSubscriptionDetails | None:
        if self.parent and self.parent.subscription_details:
            return self.parent.subscription_details
        return self.subscription_details

    @property
    def subscription_id(self) -> str | None:
        """Subscription id, wherever the API version placed it."""
        if self.subscription:
            return self.subscription
        details = self.active_subscription_details
        return details.subscription if details else None

    @property
    def user_id(self) -> str | None:
        """Internal user id from invoice or subscription metadata."""
        if self.metadata.get(USER_ID_METADATA_KEY):
            return self.metadata[USER_ID_METADATA_KEY]
        details = self.active_subscription_details
        if details:
            return details.metadata.get(USER_ID_METADATA_KEY) or None
        return None


class StripeEventData(StripeModel):
    """event.data."""

    object: dict[str, Any]


class StripeEventEnvelope(StripeModel):
    """Top-level Stripe event."""

    id: str
    type: str
    data: StripeEventData
    created: int | None = None
    livemode: bool = False


def _checkout_completed(envelope: StripeEventEnvelope) -> BillingEvent:
    session = StripeCheckoutSession.model_validate(envelope.data.object)
    return CheckoutCompleted(
        event_id=envelope.id,
        event_type=envelope.type,
        customer_id=session.customer,
        user_id=session.user_id,
        customer_email=session.email,
        mode=session.mode,
        subscription_id=session.subscription,
    )


def _subscription_changed(envelope: StripeEventEnvelope) -> BillingEvent:
    subscription = StripeSubscription.model_validate(envelope.data.object)
    return SubscriptionCreatedOrUpdated(
        event_id=envelope.id,
        event_type=envelope.type,
        customer_id=subscription.customer,
        user_id=subscription.metadata.get(USER_ID_METADATA_KEY) or None,
        subscription_id=subscription.id,
        status=subscription.status,
    )


def _subscription_deleted(envelope: StripeEventEnvelope) -> BillingEvent:
    subscription = StripeSubscription.model_validate(envelope.data.object)
    return SubscriptionDeleted(
        event_id=envelope.id,
        event_type=envelope.type,
        customer_id=subscription.customer,
        user_id=subscription.metadata.get(USER_ID_METADATA_KEY) or None,
        subscription_id=subscription.id,
    )


def _invoice_paid(envelope: StripeEventEnvelope) -> BillingEvent:
    invoice = StripeInvoice.model_validate(envelope.data.object)
    return InvoicePaid(
        event_id=envelope.id,
        event_type=envelope.type,
        customer_id=invoice.customer,
        user_id=invoice.user_id,
        customer_email=invoice.customer_email,
        subscription_id=invoice.subscription_id,
    )


def _invoice_payment_failed(envelope: StripeEventEnvelope) -> BillingEvent:
    invoice = StripeInvoice.model_validate(envelope.data.object)
    return InvoicePaymentFailed(
        event_id=envelope.id,
        event_type=envelope.type,
        customer_id=invoice.customer,
        user_id=invoice.user_id,
        customer_email=invoice.customer_email,
        subscription_id=invoice.subscription_id,
    )


_EVENT_PARSERS = {
    "checkout.session.completed": _checkout_completed,
    "customer.subscription.created": _subscription_changed,
    "customer.subscription.updated": _subscription_changed,
    "customer.subscription.deleted": _subscription_deleted,
    "invoice.paid": _invoice_paid,
    "invoice.payment_failed": _invoice_payment_failed,
}


def parse_stripe_event(payload: bytes | str) -> BillingEvent:
    """
    Parse a raw Stripe event body into a BillingEvent.

    Unhandled event types become UnknownEvent.

    Raises:
        pydantic.ValidationError: If the body is not a Stripe event
    """
    envelope = StripeEventEnvelope.model_validate_json(payload)
    parser = _EVENT_PARSERS.get(envelope.type)
    if parser is None:
        return UnknownEvent(event_id=envelope.id, event_type=envelope.type)
    return parser(envelope)
