"""Persistence for migration locks.

The table holds at most one row per scheme (``pstr`` primary key) and at most
one row per holder (unique ``cred_id``). :meth:`LockCacheRepository.set_lock`
swaps rows inside a single transaction so no reader can observe two live locks
for one scheme or one holder.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, Optional, Protocol

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from scheme_migration.core.config import settings
from scheme_migration.core.exceptions import StoreUnavailable
from scheme_migration.models import LockCache
from scheme_migration.schemas import MigrationLock

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LockStore(Protocol):
    """Lookup, upsert and release operations over migration locks."""

    def get_lock_by_pstr(self, pstr: str) -> Optional[MigrationLock]: ...

    def get_lock_by_cred_id(self, cred_id: str) -> Optional[MigrationLock]: ...

    def get_lock(self, lock: MigrationLock) -> Optional[MigrationLock]: ...

    def set_lock(self, lock: MigrationLock, *, before_commit: Optional[Callable[[], None]] = None) -> bool: ...

    def release_lock_by_pstr(self, pstr: str) -> bool: ...

    def release_lock_by_cred_id(self, cred_id: str) -> bool: ...

    def release_lock(self, lock: MigrationLock) -> bool: ...


@contextmanager
def store_errors(db: Session, operation: str) -> Iterator[None]:
    """Roll back and re-raise database faults as :class:`StoreUnavailable`."""

    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "Cache store operation failed",
            extra={"operation": operation, "error": str(exc)},
        )
        raise StoreUnavailable(f"{operation} failed: {exc.__class__.__name__}") from exc


class LockCacheRepository:
    """SQLAlchemy-backed :class:`LockStore`."""

    def __init__(
        self,
        db: Session,
        *,
        ttl_seconds: int | None = None,
        max_retries: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._db = db
        self._ttl = timedelta(seconds=ttl_seconds if ttl_seconds is not None else settings.lock_ttl_seconds)
        self._max_retries = max_retries if max_retries is not None else settings.lock_set_max_retries
        self._clock = clock

    def _find_one(self, *criteria) -> Optional[MigrationLock]:
        stmt = (
            select(LockCache)
            .where(LockCache.expire_at > self._clock(), *criteria)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        record = self._db.execute(stmt).scalars().first()
        return _to_lock(record) if record else None

    def get_lock_by_pstr(self, pstr: str) -> Optional[MigrationLock]:
        with store_errors(self._db, "get_lock_by_pstr"):
            return self._find_one(LockCache.pstr == pstr)

    def get_lock_by_cred_id(self, cred_id: str) -> Optional[MigrationLock]:
        with store_errors(self._db, "get_lock_by_cred_id"):
            return self._find_one(LockCache.cred_id == cred_id)

    def get_lock(self, lock: MigrationLock) -> Optional[MigrationLock]:
        with store_errors(self._db, "get_lock"):
            return self._find_one(LockCache.pstr == lock.pstr, LockCache.cred_id == lock.cred_id)

    def set_lock(self, lock: MigrationLock, *, before_commit: Optional[Callable[[], None]] = None) -> bool:
        """Replace the scheme's lock and the holder's prior lock with ``lock``.

        ``before_commit`` stages further writes on the same session so they land in
        the lock's commit; it runs again on every replay.
        """

        for attempt in range(1, self._max_retries + 1):
            try:
                self._replace_locks(lock, before_commit)
                logger.info(
                    "Migration lock set",
                    extra={"pstr": lock.pstr, "cred_id": lock.cred_id, "psa_id": lock.psa_id},
                )
                return True
            except IntegrityError as exc:
                # Another writer inserted for the same scheme or holder between our
                # delete and insert; replay so the latest writer's row survives.
                self._db.rollback()
                logger.warning(
                    "Detected concurrent lock write, retrying",
                    extra={"attempt": attempt, "pstr": lock.pstr, "error": str(exc)},
                )
            except SQLAlchemyError as exc:
                self._db.rollback()
                logger.error("Failed to set migration lock", extra={"pstr": lock.pstr, "error": str(exc)})
                raise StoreUnavailable(f"set_lock failed: {exc.__class__.__name__}") from exc

        raise StoreUnavailable(f"Unable to set lock on {lock.pstr} after {self._max_retries} attempts")

    def _replace_locks(self, lock: MigrationLock, before_commit: Optional[Callable[[], None]]) -> None:
        """Delete the scheme's lock and the holder's prior lock, then insert, in one commit."""

        removed = self._db.execute(
            delete(LockCache)
            .where(or_(LockCache.pstr == lock.pstr, LockCache.cred_id == lock.cred_id))
            .execution_options(synchronize_session="evaluate")
        ).rowcount
        if removed:
            logger.debug("Replacing existing locks", extra={"pstr": lock.pstr, "removed": removed})

        now = self._clock()
        self._db.add(
            LockCache(
                pstr=lock.pstr,
                cred_id=lock.cred_id,
                psa_id=lock.psa_id,
                last_updated=now,
                expire_at=now + self._ttl,
            )
        )
        if before_commit is not None:
            before_commit()
        self._db.flush()
        self._db.commit()

    def release_lock_by_pstr(self, pstr: str) -> bool:
        return self._delete_where("release_lock_by_pstr", LockCache.pstr == pstr)

    def release_lock_by_cred_id(self, cred_id: str) -> bool:
        return self._delete_where("release_lock_by_cred_id", LockCache.cred_id == cred_id)

    def release_lock(self, lock: MigrationLock) -> bool:
        return self._delete_where(
            "release_lock",
            and_(LockCache.pstr == lock.pstr, LockCache.cred_id == lock.cred_id),
        )

    def purge_expired(self) -> int:
        """Delete lock rows whose expiry has passed; returns the number removed."""

        with store_errors(self._db, "purge_expired"):
            result = self._db.execute(
                delete(LockCache)
                .where(LockCache.expire_at <= self._clock())
                .execution_options(synchronize_session=False)
            )
            self._db.commit()
        return result.rowcount or 0

    def _delete_where(self, operation: str, criterion) -> bool:
        with store_errors(self._db, operation):
            result = self._db.execute(
                delete(LockCache).where(criterion).execution_options(synchronize_session="evaluate")
            )
            self._db.commit()
        logger.info("Migration lock released", extra={"operation": operation, "removed": result.rowcount})
        return True


def _to_lock(record: LockCache) -> MigrationLock:
    return MigrationLock(pstr=record.pstr, cred_id=record.cred_id, psa_id=record.psa_id)
