"""Alembic migration runner."""
from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config

from scheme_migration.core.config import settings

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def build_alembic_config(database_url: str | None = None) -> Config:
    config = Config(str(PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    # Alembic stores options in a ConfigParser, so URL-encoded passwords need escaping.
    url = database_url or settings.database_url
    config.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
    return config


def run_migrations(database_url: str | None = None) -> None:
    """Bring the lock and data cache tables up to the latest revision."""

    command.upgrade(build_alembic_config(database_url), "head")
    logger.info("Database schema is up to date")
