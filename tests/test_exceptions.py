"""
Tests for exception classes.

Covers all exception types and their string representations.
"""

import pytest

from amora_billing.exceptions import (
    AuthenticationError,
    BillingError,
    CustomerNotFoundError,
    InvalidRequestError,
    ProviderApiError,
    ResolutionError,
    StoreError,
    UserNotFoundError,
)


class TestBillingError:
    """Tests for base BillingError."""

    def test_billing_error_is_exception(self):
        """BillingError is a subclass of Exception."""
        assert issubclass(BillingError, Exception)

    @pytest.mark.parametrize(
        "exc",
        [
            AuthenticationError("bad"),
            ResolutionError(["user_id"]),
            StoreError("down"),
            ProviderApiError("get_customer", "timeout"),
            UserNotFoundError("u1"),
            InvalidRequestError("nope"),
            CustomerNotFoundError("missing"),
        ],
    )
    def test_all_errors_are_billing_errors(self, exc):
        """Every error can be caught as BillingError."""
        assert isinstance(exc, BillingError)


class TestAuthenticationError:
    """Tests for AuthenticationError."""

    def test_keeps_bare_message(self):
        exc = AuthenticationError("Missing stripe-signature header")
        assert exc.message == "Missing stripe-signature header"
        assert "Webhook authentication failed" in str(exc)


class TestResolutionError:
    """Tests for ResolutionError."""

    def test_lists_attempted_strategies(self):
        exc = ResolutionError(["user_id", "email"])
        assert exc.attempted == ["user_id", "email"]
        assert str(exc) == "No user resolved (tried: user_id, email)"

    def test_no_strategies(self):
        """An event with neither id nor email still produces a readable message."""
        assert "tried: none" in str(ResolutionError([]))


class TestProviderApiError:
    """Tests for ProviderApiError."""

    def test_attributes(self):
        exc = ProviderApiError("get_subscription", "No such subscription")
        assert exc.operation == "get_subscription"
        assert exc.message == "No such subscription"
        assert "get_subscription" in str(exc)


class TestStoreError:
    """Tests for StoreError."""

    def test_message(self):
        exc = StoreError("connection refused")
        assert exc.message == "connection refused"
        assert "User store error" in str(exc)


class TestRequestErrors:
    """Tests for errors surfaced to API clients."""

    def test_user_not_found(self):
        exc = UserNotFoundError("u1")
        assert exc.user_id == "u1"
        assert "u1" in str(exc)

    def test_invalid_request_message_is_str(self):
        exc = InvalidRequestError("Invalid checkout session")
        assert str(exc) == exc.message == "Invalid checkout session"

    def test_customer_not_found_message_is_str(self):
        exc = CustomerNotFoundError("Customer not found")
        assert str(exc) == "Customer not found"
