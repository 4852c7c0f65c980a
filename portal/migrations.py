"""Versioned schema migrations, run once at startup."""

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config

logger = logging.getLogger("ivory_portal")

ALEMBIC_DIR = Path(__file__).resolve().parent.parent / "alembic"


def alembic_config(database_url: str) -> Config:
    config = Config()
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    config.set_main_option("sqlalchemy.url", database_url)
    return config


def run_migrations(database_url: str, revision: str = "head") -> None:
    """Upgrade the database to ``revision``."""
    logger.info("Running database migrations to %s", revision)
    command.upgrade(alembic_config(database_url), revision)
