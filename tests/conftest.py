import os
import sys
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("JWT_SECRET", "test-jwt-secret-key-please-change-1234567890")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("LOGS_DIR", tempfile.mkdtemp(prefix="scheme_migration_logs_"))
os.environ.setdefault("EXPIRY_SWEEP_INTERVAL_SECONDS", "0")
os.environ.setdefault("RATE_LIMIT_REQUESTS", "100000")

from scheme_migration.db.base import Base  # noqa: E402
import scheme_migration.models  # noqa: F401,E402
from tests.fakes import PSA_ID, PSTR, bearer  # noqa: E402


@pytest.fixture()
def db_engine():
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def in_memory_db(db_engine) -> Generator[Session, None, None]:
    """Provide an isolated in-memory database session for tests."""

    TestingSession = sessionmaker(
        bind=db_engine, autoflush=False, autocommit=False, future=True, expire_on_commit=False
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def anyio_backend():
    """Restrict AnyIO-based tests to asyncio only."""

    return "asyncio"


@pytest.fixture()
def auth_headers() -> dict[str, str]:
    return {**bearer(), "pstr": PSTR, "psaId": PSA_ID}
