"""
Schema migrations at startup (RUN_MIGRATIONS=1).

Postgres deployments serialize concurrent instances on an advisory lock
held for the duration of `alembic upgrade head`.
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
MIGRATION_LOCK_KEY = 482915377


def build_alembic_config(database_url: str) -> Config:
    """
    Alembic config for an in-process upgrade.

    env.py skips fileConfig() when configure_logger is False, so the app's
    logging setup survives the migration run.
    """
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    cfg.attributes["configure_logger"] = False
    return cfg


@contextmanager
def migration_lock(engine: Engine):
    """Hold a Postgres advisory lock; no-op on other backends."""
    if engine.dialect.name != "postgresql":
        yield
        return

    with engine.connect() as conn:
        conn.execute(text("SELECT pg_advisory_lock(:key)"), {"key": MIGRATION_LOCK_KEY})
        conn.commit()
        logger.info("Migration lock acquired")
        try:
            yield
        finally:
            conn.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": MIGRATION_LOCK_KEY})
            conn.commit()
            logger.info("Migration lock released")


def run_migrations(database_url: Optional[str] = None) -> None:
    """
    Upgrade the database to the head revision.

    Raises:
        RuntimeError: If no database URL is configured
        Exception: Any Alembic or database error, after logging it
    """
    if database_url is None:
        from covercraft.core import config as app_config
        database_url = app_config.DATABASE_URL
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set")

    engine = create_engine(database_url, pool_pre_ping=True)
    try:
        with migration_lock(engine):
            logger.info("Running alembic upgrade head")
            command.upgrade(build_alembic_config(database_url), "head")
        logger.info("Migrations complete")
    except Exception:
        logger.exception("Migration failed")
        raise
    finally:
        engine.dispose()
