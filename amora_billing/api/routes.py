"""
API Routes - Stripe webhook and subscription endpoints.

NO DICTIONARIES - All request/response models are strongly typed.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from structlog import get_logger

from amora_billing.api.dependencies import (
    get_billing_provider,
    get_event_router,
    get_subscription_service,
)
from amora_billing.exceptions import (
    AuthenticationError,
    CustomerNotFoundError,
    InvalidRequestError,
    ProviderApiError,
    StoreError,
    UserNotFoundError,
)
from amora_billing.models.api import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    ErrorResponse,
    HealthResponse,
    PortalSessionRequest,
    PortalSessionResponse,
    SubscriptionStatusResponse,
    VerifySessionRequest,
    VerifySessionResponse,
    WebhookAckResponse,
)
from amora_billing.models.domain import CheckoutRequest
from amora_billing.observability.metrics import metrics
from amora_billing.services.billing_provider import BillingProvider
from amora_billing.services.subscription import SubscriptionService
from amora_billing.services.webhook_router import EventRouter

logger = get_logger(__name__)

router = APIRouter()

SIGNATURE_HEADER = "stripe-signature"


# =============================================================================
# Stripe Webhook
# =============================================================================


@router.post(
    "/api/webhooks/stripe",
    response_model=WebhookAckResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def stripe_webhook(
    request: Request,
    provider: BillingProvider = Depends(get_billing_provider),
    event_router: EventRouter = Depends(get_event_router),
) -> WebhookAckResponse | JSONResponse:
    """
    Handle Stripe subscription lifecycle webhooks.

    200 acknowledges the delivery (including unresolved users and unhandled
    event types); 500 asks Stripe to redeliver.
    """
    payload = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    try:
        event = await provider.verify_webhook(payload, signature)
    except AuthenticationError as exc:
        metrics.webhook_verification_failures_total.inc()
        logger.warning("stripe_webhook_rejected", error=exc.message)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponse(error=f"Webhook Error: {exc.message}").model_dump(),
        )

    logger.info(
        "stripe_webhook_received",
        event_id=event.event_id,
        event_type=event.event_type,
    )

    result = await event_router.dispatch(event)
    if not result.outcome.acknowledged:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="Webhook processing failed").model_dump(),
        )

    return WebhookAckResponse()


# =============================================================================
# Subscription Endpoints
# =============================================================================


@router.get("/api/subscription/status/{user_id}", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    user_id: str,
    service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionStatusResponse:
    """
    Get a user's subscription status.

    Re-reads the subscription from Stripe and corrects the stored
    entitlement if it has drifted.
    """
    try:
        result = await service.get_status(user_id)
    except UserNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        ) from exc
    except StoreError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get subscription status",
        ) from exc

    return SubscriptionStatusResponse(
        is_active=result.is_active,
        subscription_id=result.subscription_id,
        customer_id=result.customer_id,
        status=result.status,
        current_period_end=(
            result.current_period_end.isoformat() if result.current_period_end else None
        ),
        cancel_at_period_end=result.cancel_at_period_end,
    )


@router.post("/api/subscription/verify-session", response_model=VerifySessionResponse)
async def verify_session(
    request: VerifySessionRequest,
    service: SubscriptionService = Depends(get_subscription_service),
) -> VerifySessionResponse:
    """Verify a completed checkout session and store the user's entitlement."""
    try:
        result = await service.verify_checkout_session(request.session_id, request.user_id)
    except InvalidRequestError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc
    except (ProviderApiError, StoreError) as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to verify session",
        ) from exc

    return VerifySessionResponse(
        success=True,
        is_active=result.is_active,
        subscription_id=result.subscription_id,
        customer_id=result.customer_id,
        status=result.status,
    )


@router.post("/api/create-checkout-session", response_model=CheckoutSessionResponse)
async def create_checkout_session(
    request: CheckoutSessionRequest,
    service: SubscriptionService = Depends(get_subscription_service),
) -> CheckoutSessionResponse:
    """Create a subscription checkout session."""
    try:
        checkout = CheckoutRequest(
            price_id=request.price_id,
            success_url=request.success_url,
            cancel_url=request.cancel_url,
            customer_email=request.customer_email,
            user_id=request.user_id,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        session = await service.create_checkout_session(checkout)
    except ProviderApiError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create checkout session",
        ) from exc

    return CheckoutSessionResponse(session_id=session.session_id, url=session.url)


@router.post("/api/create-portal-session", response_model=PortalSessionResponse)
async def create_portal_session(
    request: PortalSessionRequest,
    service: SubscriptionService = Depends(get_subscription_service),
) -> PortalSessionResponse:
    """Create a Stripe customer portal session for subscription management."""
    try:
        url = await service.create_portal_session(
            return_url=request.return_url,
            user_id=request.user_id,
            customer_id=request.customer_id,
            customer_email=request.customer_email,
        )
    except CustomerNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message) from exc
    except InvalidRequestError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc
    except ProviderApiError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create portal session",
        ) from exc

    return PortalSessionResponse(url=url)


# =============================================================================
# Health
# =============================================================================


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness check."""
    return HealthResponse(status="ok", timestamp=datetime.now(UTC).isoformat())
