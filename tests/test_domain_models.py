"""
Tests for domain models.

Covers entitlement targets, the status rule and checkout validation.
"""

from uuid import uuid4

import pytest
from conftest import make_user

from amora_billing.models.domain import (
    ENTITLED_STATUSES,
    CheckoutRequest,
    EntitlementTarget,
    SubscriptionInfo,
    is_entitled,
    normalize_email,
)


class TestEntitlementRule:
    """Tests for the subscription status rule."""

    @pytest.mark.parametrize("status", ["active", "trialing"])
    def test_entitled_statuses(self, status: str):
        assert is_entitled(status) is True

    @pytest.mark.parametrize(
        "status",
        ["past_due", "canceled", "unpaid", "incomplete", "incomplete_expired", "paused", None, ""],
    )
    def test_other_statuses_are_not_entitled(self, status):
        assert is_entitled(status) is False

    def test_entitled_set_is_exactly_active_and_trialing(self):
        assert ENTITLED_STATUSES == {"active", "trialing"}

    def test_subscription_info_is_active(self):
        assert SubscriptionInfo("sub_1", "cus_1", "trialing").is_active is True
        assert SubscriptionInfo("sub_1", "cus_1", "past_due").is_active is False


class TestNormalizeEmail:
    """Tests for email normalisation."""

    def test_trims_and_lowercases(self):
        assert normalize_email("  A@B.Com ") == "a@b.com"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_is_none(self, value):
        assert normalize_email(value) is None


class TestEntitlementTarget:
    """Tests for EntitlementTarget."""

    def test_clear_with_subscription_id_rejected(self):
        with pytest.raises(ValueError, match="both set and clear"):
            EntitlementTarget(is_premium=False, stripe_subscription_id="sub_1", clear_subscription=True)

    def test_clear_with_premium_rejected(self):
        with pytest.raises(ValueError, match="revoke premium"):
            EntitlementTarget(is_premium=True, clear_subscription=True)

    def test_for_user_carries_every_field(self):
        user_id = uuid4()
        target = EntitlementTarget(is_premium=True, stripe_customer_id="cus_1", stripe_subscription_id="sub_1")

        update = target.for_user(user_id)

        assert update.user_id == user_id
        assert update.target == target

    def test_absent_ids_preserve_stored_values(self):
        account = make_user(stripe_customer_id="cus_1", stripe_subscription_id="sub_1")

        updated = EntitlementTarget(is_premium=True).applied_to(account)

        assert updated.is_premium is True
        assert updated.stripe_customer_id == "cus_1"
        assert updated.stripe_subscription_id == "sub_1"

    def test_clear_subscription_erases_id(self):
        account = make_user(is_premium=True, stripe_customer_id="cus_1", stripe_subscription_id="sub_1")

        updated = EntitlementTarget(
            is_premium=False, stripe_customer_id="cus_1", clear_subscription=True
        ).applied_to(account)

        assert updated.is_premium is False
        assert updated.stripe_customer_id == "cus_1"
        assert updated.stripe_subscription_id is None

    def test_written_fields_skip_absent_ids(self):
        assert EntitlementTarget(is_premium=True).written_fields() == {"is_premium": True}
        assert EntitlementTarget(
            is_premium=False, stripe_customer_id="cus_1", clear_subscription=True
        ).written_fields() == {
            "is_premium": False,
            "stripe_customer_id": "cus_1",
            "stripe_subscription_id": None,
        }

    def test_matches_after_apply(self):
        account = make_user()
        target = EntitlementTarget(is_premium=True, stripe_customer_id="cus_1", stripe_subscription_id="sub_1")

        assert not target.matches(account)
        assert target.matches(target.applied_to(account))

    def test_matches_ignores_absent_ids(self):
        account = make_user(is_premium=True, stripe_customer_id="cus_1", stripe_subscription_id="sub_1")

        assert EntitlementTarget(is_premium=True).matches(account)
        assert not EntitlementTarget(is_premium=False).matches(account)


class TestCheckoutRequest:
    """Tests for CheckoutRequest validation."""

    def test_valid_request(self):
        request = CheckoutRequest(price_id="price_1", success_url="https://a", cancel_url="https://b")
        assert request.customer_email is None
        assert request.user_id is None

    def test_empty_price_rejected(self):
        with pytest.raises(ValueError, match="price_id"):
            CheckoutRequest(price_id="", success_url="https://a", cancel_url="https://b")

    @pytest.mark.parametrize(("success_url", "cancel_url"), [("", "https://b"), ("https://a", "")])
    def test_missing_urls_rejected(self, success_url: str, cancel_url: str):
        with pytest.raises(ValueError, match="required"):
            CheckoutRequest(price_id="price_1", success_url=success_url, cancel_url=cancel_url)
