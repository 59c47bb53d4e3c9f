"""
FastAPI Dependencies - Collaborators built at startup.

The lifespan stores one instance of each collaborator on app.state; routes
receive them through these getters, which tests replace via
app.dependency_overrides.
"""

from fastapi import Request

from amora_billing.services.billing_provider import BillingProvider
from amora_billing.services.subscription import SubscriptionService
from amora_billing.services.webhook_router import EventRouter


def get_billing_provider(request: Request) -> BillingProvider:
    """Billing provider used to verify webhooks."""
    provider: BillingProvider = request.app.state.billing_provider
    return provider


def get_event_router(request: Request) -> EventRouter:
    """Router that reconciles verified events."""
    event_router: EventRouter = request.app.state.event_router
    return event_router


def get_subscription_service(request: Request) -> SubscriptionService:
    """Service behind the synchronous subscription endpoints."""
    service: SubscriptionService = request.app.state.subscription_service
    return service
