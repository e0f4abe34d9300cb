"""Database connection and session management utilities."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from scheme_migration.core.config import settings

logger = logging.getLogger(__name__)

POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600
POOL_PRE_PING = True


def _create_engine():
    if settings.is_sqlite:
        options = {}
        if ":memory:" in settings.database_url or settings.database_url.rstrip("/") == "sqlite:":
            options["poolclass"] = StaticPool
        engine = create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False},
            echo=settings.debug,
            future=True,
            **options,
        )
    else:
        engine = create_engine(
            settings.database_url,
            pool_pre_ping=POOL_PRE_PING,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
            echo=settings.debug,
            future=True,
            connect_args={
                "connect_timeout": 10,
                "options": "-c statement_timeout=30000",
            },
        )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, connection_record):  # pragma: no cover - instrumentation
        logger.debug("Database connection established")

    return engine


def check_database_health() -> tuple[bool, str]:
    """Run a trivial query to confirm the store is reachable."""

    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True, "Database reachable"
    except SQLAlchemyError as exc:
        logger.warning("Database health check failed", extra={"error": str(exc)})
        return False, f"Database unreachable: {exc.__class__.__name__}"


def _log_rollback(exc: Exception) -> None:
    logger.error("Database transaction rolled back", extra={"error": str(exc)})


def _session_factory():
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        future=True,
        expire_on_commit=False,
    )


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    except Exception as exc:
        db.rollback()
        _log_rollback(exc)
        raise
    finally:
        if db.in_transaction():
            db.rollback()
        db.close()


@contextmanager
def get_db_context(*, commit_on_exit: bool = False) -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
        if commit_on_exit:
            db.commit()
    except Exception as exc:
        db.rollback()
        _log_rollback(exc)
        raise
    finally:
        if db.in_transaction():
            db.rollback()
        db.close()


engine = _create_engine()
SessionLocal = _session_factory()
