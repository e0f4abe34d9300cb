"""Persistence for in-progress migration data."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Protocol

from sqlalchemy import and_, delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from scheme_migration.core.config import settings
from scheme_migration.core.exceptions import StoreUnavailable
from scheme_migration.models import DataCache
from scheme_migration.repositories.lock_cache import store_errors, utcnow

logger = logging.getLogger(__name__)


class DataStore(Protocol):
    def get(self, pstr: str, cred_id: str) -> Optional[dict[str, Any]]: ...

    def save(self, pstr: str, cred_id: str, data: dict[str, Any]) -> bool: ...

    def stage(self, pstr: str, cred_id: str, data: dict[str, Any]) -> None: ...

    def remove(self, pstr: str, cred_id: str) -> bool: ...


class DataCacheRepository:
    """SQLAlchemy-backed :class:`DataStore` keyed by scheme and holder."""

    def __init__(
        self,
        db: Session,
        *,
        ttl_days: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._db = db
        self._ttl = timedelta(days=ttl_days if ttl_days is not None else settings.data_cache_ttl_days)
        self._clock = clock

    def _key(self, pstr: str, cred_id: str):
        return and_(DataCache.pstr == pstr, DataCache.cred_id == cred_id)

    def get(self, pstr: str, cred_id: str) -> Optional[dict[str, Any]]:
        with store_errors(self._db, "get_data"):
            stmt = (
                select(DataCache)
                .where(self._key(pstr, cred_id), DataCache.expire_at > self._clock())
                .execution_options(populate_existing=True)
            )
            record = self._db.execute(stmt).scalars().first()
        return dict(record.data) if record else None

    def stage(self, pstr: str, cred_id: str, data: dict[str, Any]) -> None:
        """Upsert the payload on the session without committing."""

        now = self._clock()
        record = self._db.get(DataCache, (pstr, cred_id), populate_existing=True)
        if record is None:
            record = DataCache(pstr=pstr, cred_id=cred_id)
            self._db.add(record)
        record.data = dict(data)
        record.last_updated = now
        record.expire_at = now + self._ttl

    def save(self, pstr: str, cred_id: str, data: dict[str, Any]) -> bool:
        try:
            self.stage(pstr, cred_id, data)
            self._db.flush()
            self._db.commit()
        except IntegrityError:
            # A concurrent first save won; overwrite its row.
            self._db.rollback()
            logger.warning("Concurrent migration data save, overwriting", extra={"pstr": pstr})
            with store_errors(self._db, "save_data"):
                self.stage(pstr, cred_id, data)
                self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.error("Failed to save migration data", extra={"pstr": pstr, "error": str(exc)})
            raise StoreUnavailable(f"save_data failed: {exc.__class__.__name__}") from exc

        logger.info("Migration data saved", extra={"pstr": pstr, "cred_id": cred_id})
        return True

    def remove(self, pstr: str, cred_id: str) -> bool:
        with store_errors(self._db, "remove_data"):
            self._db.execute(
                delete(DataCache)
                .where(self._key(pstr, cred_id))
                .execution_options(synchronize_session="evaluate")
            )
            self._db.commit()
        return True

    def purge_expired(self) -> int:
        with store_errors(self._db, "purge_expired_data"):
            result = self._db.execute(
                delete(DataCache)
                .where(DataCache.expire_at <= self._clock())
                .execution_options(synchronize_session=False)
            )
            self._db.commit()
        return result.rowcount or 0
