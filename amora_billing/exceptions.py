"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
"""


class BillingError(Exception):
    """Base exception for all billing errors."""

    pass


class AuthenticationError(BillingError):
    """Raised when a webhook delivery cannot be authenticated."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Webhook authentication failed: {message}")


class ResolutionError(BillingError):
    """Raised when no user matches an event by internal id or by email."""

    def __init__(self, attempted: list[str]) -> None:
        self.attempted = attempted
        tried = ", ".join(attempted) or "none"
        super().__init__(f"No user resolved (tried: {tried})")


class StoreError(BillingError):
    """Raised when a user store read or write fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"User store error: {message}")


class ProviderApiError(BillingError):
    """Raised when a call back into the billing provider fails."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        self.message = message
        super().__init__(f"Billing provider error during {operation}: {message}")


class UserNotFoundError(BillingError):
    """Raised when a user referenced by a request doesn't exist."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class InvalidRequestError(BillingError):
    """Raised when a billing request cannot be acted on."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class CustomerNotFoundError(BillingError):
    """Raised when no billing provider customer matches a request."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)
