from contextlib import contextmanager
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from scheme_migration.models import DataCache, LockCache
from scheme_migration.repositories import DataCacheRepository, LockCacheRepository
from scheme_migration.repositories.lock_cache import utcnow
from scheme_migration.schemas import MigrationLock
from scheme_migration.services import ExpirySweeper


@pytest.fixture()
def session_factory(db_engine):
    Session = sessionmaker(bind=db_engine, autoflush=False, future=True, expire_on_commit=False)

    @contextmanager
    def factory():
        with Session() as session:
            yield session

    return factory


def _count(session_factory, model) -> int:
    with session_factory() as db:
        return db.scalar(select(func.count()).select_from(model))


def test_sweep_removes_only_expired_rows(session_factory) -> None:
    past = lambda: utcnow() - timedelta(days=60)  # noqa: E731
    with session_factory() as db:
        LockCacheRepository(db, clock=past).set_lock(MigrationLock(pstr="old", cred_id="U1"))
        LockCacheRepository(db).set_lock(MigrationLock(pstr="new", cred_id="U2"))
        DataCacheRepository(db, clock=past).save("old", "U1", {"step": 1})
        DataCacheRepository(db).save("new", "U2", {"step": 2})

    stats = ExpirySweeper(60, session_factory=session_factory).sweep()

    assert stats == {"locks_removed": 1, "data_removed": 1}
    assert _count(session_factory, LockCache) == 1
    assert _count(session_factory, DataCache) == 1


def test_sweep_with_nothing_expired(session_factory) -> None:
    assert ExpirySweeper(60, session_factory=session_factory).sweep() == {"locks_removed": 0, "data_removed": 0}


@pytest.mark.anyio
async def test_disabled_sweeper_never_starts(session_factory) -> None:
    sweeper = ExpirySweeper(0, session_factory=session_factory)

    await sweeper.start()

    assert sweeper._task is None
    await sweeper.stop()


@pytest.mark.anyio
async def test_sweeper_start_and_stop(session_factory) -> None:
    sweeper = ExpirySweeper(3600, session_factory=session_factory)

    await sweeper.start()
    assert sweeper._task is not None

    await sweeper.stop()
    assert sweeper._task is None
