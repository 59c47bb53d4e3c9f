"""
Migration Runner - Applies pending Alembic migrations at startup.

Alembic's command API is synchronous, so migrations run over a psycopg2
connection derived from the asyncpg DATABASE_URL.
"""

from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import Engine, create_engine
from structlog import get_logger

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

logger = get_logger(__name__)

# Path to alembic.ini relative to project root
ALEMBIC_INI_PATH = Path(__file__).parent.parent.parent / "alembic.ini"


@dataclass(frozen=True)
class MigrationStatus:
    """Current vs head schema revision."""

    current_revision: str | None
    head_revision: str | None

    @property
    def pending(self) -> bool:
        return self.current_revision != self.head_revision


def sync_database_url(database_url: str) -> str:
    """Convert an asyncpg URL into the psycopg2 URL Alembic connects with."""
    return database_url.replace("+asyncpg", "+psycopg2")


def _alembic_config(database_url: str) -> Config:
    alembic_cfg = Config(str(ALEMBIC_INI_PATH))
    alembic_cfg.set_main_option("sqlalchemy.url", sync_database_url(database_url).replace("%", "%%"))
    return alembic_cfg


def _current_revision(engine: Engine) -> str | None:
    with engine.connect() as conn:
        return MigrationContext.configure(conn).get_current_revision()


def check_migration_status(database_url: str) -> MigrationStatus:
    """Compare the database revision with the newest migration script."""
    alembic_cfg = _alembic_config(database_url)
    engine = create_engine(sync_database_url(database_url))
    try:
        return MigrationStatus(
            current_revision=_current_revision(engine),
            head_revision=ScriptDirectory.from_config(alembic_cfg).get_current_head(),
        )
    finally:
        engine.dispose()


def run_migrations(database_url: str) -> None:
    """
    Upgrade the schema to head if it is behind.

    Raises:
        RuntimeError: If the upgrade fails
    """
    if not ALEMBIC_INI_PATH.exists():
        logger.warning("alembic_config_missing", path=str(ALEMBIC_INI_PATH))
        return

    try:
        status = check_migration_status(database_url)
        if not status.pending:
            logger.info("database_schema_up_to_date", revision=status.current_revision)
            return

        logger.info(
            "database_migration_started",
            from_revision=status.current_revision,
            to_revision=status.head_revision,
        )
        command.upgrade(_alembic_config(database_url), "head")
        logger.info("database_migration_completed", revision=status.head_revision)
    except Exception as e:
        logger.error("database_migration_failed", error=str(e))
        raise RuntimeError(f"Database migration failed: {e}") from e
