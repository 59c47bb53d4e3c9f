"""
User Resolution - Ordered fallback from one way of finding a user to the next.

A strategy is a named lookup. Strategies are tried in order; the first one
that finds a user AND whose entitlement write succeeds wins.
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from structlog import get_logger

from amora_billing.exceptions import BillingError, ProviderApiError, ResolutionError, StoreError
from amora_billing.models.domain import EntitlementTarget, UserAccount
from amora_billing.observability.metrics import metrics
from amora_billing.services.user_store import UserStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResolutionStrategy:
    """One way of locating the user an event belongs to."""

    name: str
    lookup: Callable[[], Awaitable[UserAccount | None]]


@dataclass(frozen=True)
class AppliedEntitlement:
    """Result of a successful resolve-and-write."""

    account: UserAccount
    strategy: str
    changed: bool


async def resolve_and_apply(
    strategies: Sequence[ResolutionStrategy],
    target: EntitlementTarget,
    store: UserStore,
) -> AppliedEntitlement:
    """
    Write target to the first user a strategy resolves.

    A strategy gives way to the next one when its lookup finds nothing, when
    its lookup fails, or when the write against the user it found fails.
    A store lookup that fails counts as a miss. A failed write, or a failed
    provider call made while looking up, is kept for the final outcome.

    Raises:
        StoreError | ProviderApiError: No strategy succeeded and a write or a
            provider call failed (the event must be redelivered)
        ResolutionError: No strategy found a user it could write to
    """
    failures: list[BillingError] = []

    for strategy in strategies:
        try:
            account = await strategy.lookup()
        except StoreError as exc:
            logger.warning("user_resolution_lookup_failed", strategy=strategy.name, error=str(exc))
            metrics.record_resolution_fallback(strategy.name, "lookup_failed")
            continue
        except ProviderApiError as exc:
            logger.warning(
                "user_resolution_provider_failed", strategy=strategy.name, error=str(exc)
            )
            metrics.record_resolution_fallback(strategy.name, "provider_failed")
            failures.append(exc)
            continue

        if account is None:
            logger.info("user_resolution_miss", strategy=strategy.name)
            metrics.record_resolution_fallback(strategy.name, "not_found")
            continue

        try:
            stored = await store.apply_entitlement_update(target.for_user(account.user_id))
        except StoreError as exc:
            logger.warning(
                "user_resolution_write_failed",
                strategy=strategy.name,
                user_id=str(account.user_id),
                error=str(exc),
            )
            metrics.record_resolution_fallback(strategy.name, "write_failed")
            failures.append(exc)
            continue

        return AppliedEntitlement(
            account=stored,
            strategy=strategy.name,
            changed=not target.matches(account),
        )

    if failures:
        raise failures[-1]
    raise ResolutionError([strategy.name for strategy in strategies])
