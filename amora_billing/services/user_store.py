"""
User Store - Lookup and entitlement writes for application users.

NO DICTIONARIES - All reads return UserAccount snapshots.
Each call opens its own session: a lookup and a later write are two
independent operations and the last write to commit wins.
"""

from typing import Protocol
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from structlog import get_logger

from amora_billing.db.models import User, utc_now
from amora_billing.db.session import Database
from amora_billing.exceptions import StoreError
from amora_billing.models.domain import EntitlementUpdate, UserAccount, normalize_email

logger = get_logger(__name__)


def parse_user_id(value: str | UUID | None) -> UUID | None:
    """Parse an internal user id; anything that is not a UUID yields None."""
    if value is None:
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(value.strip())
    except ValueError:
        return None


def to_user_account(user: User) -> UserAccount:
    """Convert ORM row to domain snapshot."""
    return UserAccount(
        user_id=user.id,
        email=user.email,
        name=user.name,
        is_premium=user.is_premium,
        stripe_customer_id=user.stripe_customer_id,
        stripe_subscription_id=user.stripe_subscription_id,
    )


class UserStore(Protocol):
    """
    User store protocol.

    The reconciler depends only on this interface.
    """

    async def find_by_id(self, user_id: str | UUID) -> UserAccount | None:
        """
        Find a user by internal id.

        Returns:
            The user, or None if the id is unknown or malformed

        Raises:
            StoreError: If the lookup fails
        """
        ...

    async def find_by_email(self, email: str) -> UserAccount | None:
        """
        Find a user by email (case-insensitive).

        Raises:
            StoreError: If the lookup fails
        """
        ...

    async def apply_entitlement_update(self, entitlement: EntitlementUpdate) -> UserAccount:
        """
        Overwrite a user's entitlement and provider ids.

        Returns:
            The user as stored after the write

        Raises:
            StoreError: If the write fails or the user no longer exists
        """
        ...


class SqlUserStore:
    """PostgreSQL-backed user store."""

    def __init__(self, database: Database) -> None:
        self.database = database

    async def find_by_id(self, user_id: str | UUID) -> UserAccount | None:
        parsed = parse_user_id(user_id)
        if parsed is None:
            return None

        try:
            async with self.database.session() as session:
                user = await session.get(User, parsed)
        except SQLAlchemyError as exc:
            logger.error("user_lookup_by_id_failed", user_id=str(parsed), error=str(exc))
            raise StoreError(f"Lookup by id failed: {exc}") from exc

        return to_user_account(user) if user is not None else None

    async def find_by_email(self, email: str) -> UserAccount | None:
        normalized = normalize_email(email)
        if normalized is None:
            return None

        try:
            async with self.database.session() as session:
                result = await session.execute(select(User).where(User.email == normalized))
                user = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.error("user_lookup_by_email_failed", error=str(exc))
            raise StoreError(f"Lookup by email failed: {exc}") from exc

        return to_user_account(user) if user is not None else None

    async def apply_entitlement_update(self, entitlement: EntitlementUpdate) -> UserAccount:
        values = {**entitlement.target.written_fields(), "updated_at": utc_now()}

        statement = (
            update(User)
            .where(User.id == entitlement.user_id)
            .values(**values)
            .returning(User)
        )

        try:
            async with self.database.session() as session:
                result = await session.execute(statement)
                user = result.scalar_one_or_none()
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error(
                "entitlement_write_failed",
                user_id=str(entitlement.user_id),
                error=str(exc),
            )
            raise StoreError(f"Entitlement write failed: {exc}") from exc

        if user is None:
            raise StoreError(f"User {entitlement.user_id} disappeared before entitlement write")

        logger.info(
            "entitlement_written",
            user_id=str(user.id),
            is_premium=user.is_premium,
            stripe_customer_id=user.stripe_customer_id,
            stripe_subscription_id=user.stripe_subscription_id,
        )
        return to_user_account(user)
