"""
Domain Models - Internal business logic models using dataclasses.

NO DICTIONARIES - All data structures are strongly typed immutable dataclasses.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from uuid import UUID

# Subscription statuses that grant premium access
ENTITLED_STATUSES = frozenset({"active", "trialing"})


def is_entitled(status: str | None) -> bool:
    """Return True if a provider subscription status grants premium."""
    return status in ENTITLED_STATUSES


def normalize_email(email: str | None) -> str | None:
    """Trim and lowercase an email address; blank becomes None."""
    if email is None:
        return None
    normalized = email.strip().lower()
    return normalized or None


@dataclass(frozen=True)
class UserAccount:
    """Immutable snapshot of an application user's billing state."""

    user_id: UUID
    email: str
    name: str
    is_premium: bool
    stripe_customer_id: str | None
    stripe_subscription_id: str | None


@dataclass(frozen=True)
class EntitlementTarget:
    """
    Entitlement state an event calls for, before it is tied to a user.

    is_premium is always overwritten. Provider ids are only written when not
    None, so an event that lacks one never erases a stored value. The stored
    subscription id is erased only when clear_subscription is set.
    """

    is_premium: bool
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    clear_subscription: bool = False

    def __post_init__(self) -> None:
        """Validate target constraints."""
        if self.clear_subscription and self.stripe_subscription_id is not None:
            raise ValueError("Cannot both set and clear the subscription id")
        if self.clear_subscription and self.is_premium:
            raise ValueError("Clearing the subscription must revoke premium")

    def for_user(self, user_id: UUID) -> "EntitlementUpdate":
        """Address this target to a resolved user."""
        return EntitlementUpdate(
            user_id=user_id,
            is_premium=self.is_premium,
            stripe_customer_id=self.stripe_customer_id,
            stripe_subscription_id=self.stripe_subscription_id,
            clear_subscription=self.clear_subscription,
        )

    def matches(self, account: UserAccount) -> bool:
        """True if account already holds this state."""
        if account.is_premium != self.is_premium:
            return False
        if (
            self.stripe_customer_id is not None
            and account.stripe_customer_id != self.stripe_customer_id
        ):
            return False
        if self.clear_subscription:
            return account.stripe_subscription_id is None
        if self.stripe_subscription_id is not None:
            return account.stripe_subscription_id == self.stripe_subscription_id
        return True

    def written_fields(self) -> dict[str, object]:
        """Account fields this target overwrites; absent ids are left alone."""
        fields: dict[str, object] = {"is_premium": self.is_premium}
        if self.stripe_customer_id is not None:
            fields["stripe_customer_id"] = self.stripe_customer_id
        if self.clear_subscription:
            fields["stripe_subscription_id"] = None
        elif self.stripe_subscription_id is not None:
            fields["stripe_subscription_id"] = self.stripe_subscription_id
        return fields

    def applied_to(self, account: UserAccount) -> UserAccount:
        """The account as it looks after this target is written."""
        return replace(account, **self.written_fields())


@dataclass(frozen=True)
class EntitlementUpdate:
    """Atomic entitlement write unit: an EntitlementTarget bound to one user."""

    user_id: UUID
    is_premium: bool
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    clear_subscription: bool = False

    @property
    def target(self) -> EntitlementTarget:
        """The user-independent part of this update."""
        return EntitlementTarget(
            is_premium=self.is_premium,
            stripe_customer_id=self.stripe_customer_id,
            stripe_subscription_id=self.stripe_subscription_id,
            clear_subscription=self.clear_subscription,
        )


@dataclass(frozen=True)
class CustomerInfo:
    """Billing provider customer."""

    customer_id: str
    email: str | None
    deleted: bool = False


@dataclass(frozen=True)
class SubscriptionInfo:
    """Billing provider subscription as currently reported."""

    subscription_id: str
    customer_id: str | None
    status: str
    current_period_end: datetime | None = None
    cancel_at_period_end: bool = False

    @property
    def is_active(self) -> bool:
        """Whether this subscription grants premium."""
        return is_entitled(self.status)


@dataclass(frozen=True)
class CheckoutSessionInfo:
    """Billing provider checkout session."""

    session_id: str
    mode: str | None
    customer_id: str | None
    subscription_id: str | None
    customer_email: str | None
    user_id: str | None
    url: str | None = None


@dataclass(frozen=True)
class CheckoutRequest:
    """Parameters for a new subscription checkout."""

    price_id: str
    success_url: str
    cancel_url: str
    customer_email: str | None = None
    user_id: str | None = None

    def __post_init__(self) -> None:
        """Validate checkout parameters."""
        if not self.price_id:
            raise ValueError("price_id cannot be empty")
        if not self.success_url or not self.cancel_url:
            raise ValueError("success_url and cancel_url are required")


@dataclass(frozen=True)
class SubscriptionStatus:
    """A user's subscription state as reported to the client."""

    is_active: bool
    subscription_id: str | None
    customer_id: str | None
    status: str | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool | None = None


@dataclass(frozen=True)
class SessionVerification:
    """Outcome of confirming a completed checkout session."""

    is_active: bool
    subscription_id: str
    customer_id: str
    status: str
    user_id: UUID | None = None
