"""
Webhook Event Ledger - Records ids of webhook events already handled.

The entitlement write is idempotent on its own; the ledger only spares the
provider lookups and writes of a redelivered event.
"""

from typing import Protocol

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from structlog import get_logger

from amora_billing.db.models import ProcessedWebhookEvent
from amora_billing.db.session import Database
from amora_billing.exceptions import StoreError

logger = get_logger(__name__)


class WebhookEventLedger(Protocol):
    """Processed-event ledger protocol."""

    async def already_processed(self, event_id: str) -> bool:
        """Raises StoreError if the ledger cannot be read."""
        ...

    async def record(self, event_id: str, event_type: str, outcome: str) -> None:
        """Raises StoreError if the ledger cannot be written."""
        ...


class SqlWebhookEventLedger:
    """PostgreSQL-backed ledger on the processed_webhook_events table."""

    def __init__(self, database: Database) -> None:
        self.database = database

    async def already_processed(self, event_id: str) -> bool:
        try:
            async with self.database.session() as session:
                row = await session.get(ProcessedWebhookEvent, event_id)
        except SQLAlchemyError as exc:
            raise StoreError(f"Ledger read failed: {exc}") from exc
        return row is not None

    async def record(self, event_id: str, event_type: str, outcome: str) -> None:
        # Concurrent deliveries of the same event both reach here; first insert wins.
        statement = (
            insert(ProcessedWebhookEvent)
            .values(event_id=event_id, event_type=event_type, outcome=outcome)
            .on_conflict_do_nothing(index_elements=[ProcessedWebhookEvent.event_id])
        )
        try:
            async with self.database.session() as session:
                await session.execute(statement)
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Ledger write failed: {exc}") from exc

        logger.debug("webhook_event_recorded", event_id=event_id, outcome=outcome)
