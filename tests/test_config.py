"""
Tests for application settings and the migration runner helpers.
"""

import pytest

from amora_billing.config import ConfigurationError, Settings
from amora_billing.db.migration_runner import MigrationStatus, sync_database_url

VALID_URL = "postgresql+asyncpg://u:p@localhost:5432/amora"


class TestSettings:
    """Tests for FAIL FAST configuration validation."""

    def test_valid_settings(self):
        settings = Settings(database_url=VALID_URL, log_format="json")

        assert settings.stripe_webhook_tolerance_seconds == 300
        assert settings.webhook_event_ledger_enabled is True
        assert settings.run_migrations_on_startup is False

    def test_missing_database_url_fails(self):
        with pytest.raises(ConfigurationError, match="DATABASE_URL is required"):
            Settings(database_url="")

    def test_non_postgres_url_fails(self):
        with pytest.raises(ConfigurationError, match="PostgreSQL"):
            Settings(database_url="sqlite:///amora.db")

    def test_bad_log_format_fails(self):
        with pytest.raises(ConfigurationError, match="LOG_FORMAT"):
            Settings(database_url=VALID_URL, log_format="xml")

    def test_missing_webhook_secret_is_not_fatal(self):
        settings = Settings(database_url=VALID_URL, stripe_webhook_secret="")

        assert settings.stripe_webhook_secret == ""

    def test_price_ids_come_from_checkout_requests(self):
        """Checkout takes its price from the request body, never from settings."""
        assert not [name for name in Settings.model_fields if "price" in name]

    @pytest.mark.parametrize(
        ("client_url", "origins"),
        [
            ("*", ["*"]),
            ("https://amora.app", ["https://amora.app"]),
            ("https://amora.app, https://www.amora.app", ["https://amora.app", "https://www.amora.app"]),
        ],
    )
    def test_cors_origins(self, client_url: str, origins: list[str]):
        settings = Settings(database_url=VALID_URL, client_url=client_url)

        assert settings.cors_origins == origins


class TestMigrationHelpers:
    """Tests for migration runner helpers that need no database."""

    def test_sync_url_uses_psycopg2(self):
        assert sync_database_url(VALID_URL) == "postgresql+psycopg2://u:p@localhost:5432/amora"

    def test_sync_url_leaves_plain_url(self):
        assert sync_database_url("postgresql://u:p@db/amora") == "postgresql://u:p@db/amora"

    def test_pending_when_behind_head(self):
        assert MigrationStatus(current_revision="0001", head_revision="0002").pending is True
        assert MigrationStatus(current_revision=None, head_revision="0002").pending is True

    def test_not_pending_at_head(self):
        assert MigrationStatus(current_revision="0002", head_revision="0002").pending is False
