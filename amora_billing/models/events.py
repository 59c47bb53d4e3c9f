"""
Billing Events - Provider-agnostic subscription lifecycle events.

Each delivery from the billing provider is parsed into exactly one of the
event classes below. Deliveries are at-least-once: the same event may be
seen more than once and in any order.
"""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar


class BillingEventKind(str, Enum):
    """Kinds of billing event the reconciler understands."""

    CHECKOUT_COMPLETED = "checkout_completed"
    SUBSCRIPTION_CREATED_OR_UPDATED = "subscription_created_or_updated"
    SUBSCRIPTION_DELETED = "subscription_deleted"
    INVOICE_PAID = "invoice_paid"
    INVOICE_PAYMENT_FAILED = "invoice_payment_failed"
    UNKNOWN = "unknown"


@dataclass(frozen=True, kw_only=True)
class BillingEvent:
    """
    Common fields of every billing event.

    event_type keeps the provider's own type string (e.g. "invoice.paid").
    user_id is the internal user id carried in event metadata, when any.
    """

    kind: ClassVar[BillingEventKind]

    event_id: str
    event_type: str
    customer_id: str | None = None
    user_id: str | None = None
    customer_email: str | None = None


@dataclass(frozen=True, kw_only=True)
class CheckoutCompleted(BillingEvent):
    """A checkout session finished."""

    kind: ClassVar[BillingEventKind] = BillingEventKind.CHECKOUT_COMPLETED

    mode: str | None = None
    subscription_id: str | None = None


@dataclass(frozen=True, kw_only=True)
class SubscriptionCreatedOrUpdated(BillingEvent):
    """A subscription was created or changed status."""

    kind: ClassVar[BillingEventKind] = BillingEventKind.SUBSCRIPTION_CREATED_OR_UPDATED

    subscription_id: str | None = None
    status: str | None = None


@dataclass(frozen=True, kw_only=True)
class SubscriptionDeleted(BillingEvent):
    """A subscription ended."""

    kind: ClassVar[BillingEventKind] = BillingEventKind.SUBSCRIPTION_DELETED

    subscription_id: str | None = None


@dataclass(frozen=True, kw_only=True)
class InvoicePaid(BillingEvent):
    """An invoice was paid."""

    kind: ClassVar[BillingEventKind] = BillingEventKind.INVOICE_PAID

    subscription_id: str | None = None


@dataclass(frozen=True, kw_only=True)
class InvoicePaymentFailed(BillingEvent):
    """An invoice payment attempt failed."""

    kind: ClassVar[BillingEventKind] = BillingEventKind.INVOICE_PAYMENT_FAILED

    subscription_id: str | None = None


@dataclass(frozen=True, kw_only=True)
class UnknownEvent(BillingEvent):
    """An event type this service does not handle."""

    kind: ClassVar[BillingEventKind] = BillingEventKind.UNKNOWN
