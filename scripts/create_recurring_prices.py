#!/usr/bin/env python3
"""
Create Recurring Prices

Creates the monthly and yearly recurring Stripe prices for Amora Premium and
prints the environment lines that point the web client at them. The
client sends the chosen price id with each checkout request.

Requires STRIPE_API_KEY (or --api-key).
"""

import argparse
import os
import sys
from dataclasses import dataclass

import stripe
import structlog

logger = structlog.get_logger()

CURRENCY = "usd"


@dataclass(frozen=True)
class PricePlan:
    """A recurring price to create."""

    billing_period: str
    interval: str
    unit_amount: int
    env_var: str


PLANS = (
    PricePlan("monthly", "month", 999, "VITE_STRIPE_PRICE_ID_MONTHLY"),
    PricePlan("yearly", "year", 9999, "VITE_STRIPE_PRICE_ID_YEARLY"),
)


def create_price(api_key: str, product_id: str, plan: PricePlan) -> str:
    """Create one recurring price and return its id."""
    price = stripe.Price.create(
        api_key=api_key,
        product=product_id,
        unit_amount=plan.unit_amount,
        currency=CURRENCY,
        recurring={"interval": plan.interval},
        metadata={"type": "subscription", "billing_period": plan.billing_period},
    )
    logger.info(
        "stripe_price_created",
        price_id=price.id,
        billing_period=plan.billing_period,
        unit_amount=plan.unit_amount,
    )
    return price.id


def main():
    parser = argparse.ArgumentParser(
        description="Create recurring Amora Premium prices in Stripe",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  STRIPE_API_KEY=sk_test_... python3 create_recurring_prices.py --product-id prod_123
        """,
    )
    parser.add_argument("--product-id", required=True, help="Stripe product to attach prices to")
    parser.add_argument(
        "--api-key",
        default=os.getenv("STRIPE_API_KEY", ""),
        help="Stripe secret key (default: $STRIPE_API_KEY)",
    )
    args = parser.parse_args()

    if not args.api_key:
        logger.error("stripe_api_key_missing")
        sys.exit(1)

    created: list[tuple[PricePlan, str]] = []
    try:
        for plan in PLANS:
            created.append((plan, create_price(args.api_key, args.product_id, plan)))
    except stripe.AuthenticationError as e:
        logger.error("stripe_authentication_failed", error=str(e))
        sys.exit(1)
    except stripe.StripeError as e:
        logger.error("stripe_price_creation_failed", error=str(e))
        sys.exit(1)

    print("\nAdd these to the web client environment:\n")
    for plan, price_id in created:
        print(f"{plan.env_var}={price_id}")


if __name__ == "__main__":
    main()
