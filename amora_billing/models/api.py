"""
API Models - Pydantic models for request/response validation.

NO DICTIONARIES - All data structures are strongly typed.
The browser client speaks camelCase; fields are snake_case in Python and
accepted or rendered under their camelCase alias on the wire.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exposing camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Webhook Models
# ============================================================================


class WebhookAckResponse(BaseModel):
    """POST /api/webhooks/stripe success response."""

    received: bool = True


class ErrorResponse(BaseModel):
    """Error body returned by billing endpoints."""

    error: str


# ============================================================================
# Subscription Models
# ============================================================================


class SubscriptionStatusResponse(CamelModel):
    """GET /api/subscription/status/{user_id} response."""

    is_active: bool
    subscription_id: str | None = None
    customer_id: str | None = None
    status: str | None = None
    current_period_end: str | None = Field(None, description="ISO 8601 timestamp")
    cancel_at_period_end: bool | None = None


class VerifySessionRequest(CamelModel):
    """POST /api/subscription/verify-session request body."""

    session_id: str = Field(..., min_length=1, max_length=255)
    user_id: str | None = Field(None, max_length=64)


class VerifySessionResponse(CamelModel):
    """POST /api/subscription/verify-session response."""

    success: bool
    is_active: bool
    subscription_id: str
    customer_id: str
    status: str


# ============================================================================
# Checkout / Portal Models
# ============================================================================


class CheckoutSessionRequest(CamelModel):
    """POST /api/create-checkout-session request body."""

    price_id: str = Field(..., min_length=1, max_length=255)
    success_url: str = Field(..., min_length=1, max_length=2048)
    cancel_url: str = Field(..., min_length=1, max_length=2048)
    customer_email: str | None = Field(None, max_length=255)
    user_id: str | None = Field(None, max_length=64)


class CheckoutSessionResponse(CamelModel):
    """POST /api/create-checkout-session response."""

    session_id: str
    url: str | None


class PortalSessionRequest(CamelModel):
    """POST /api/create-portal-session request body."""

    return_url: str = Field(..., min_length=1, max_length=2048)
    user_id: str | None = Field(None, max_length=64)
    customer_id: str | None = Field(None, max_length=255)
    customer_email: str | None = Field(None, max_length=255)


class PortalSessionResponse(BaseModel):
    """POST /api/create-portal-session response."""

    url: str


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    timestamp: str = Field(..., description="ISO 8601 timestamp")
