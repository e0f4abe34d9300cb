"""Save and restore the user's in-progress migration answers."""
from __future__ import annotations

import logging
from typing import Any, Optional

from scheme_migration.core.exceptions import LockHeldByOtherUser
from scheme_migration.core.types import RequestContext
from scheme_migration.repositories.data_cache import DataStore
from scheme_migration.repositories.lock_cache import LockStore
from scheme_migration.schemas import MigrationLock
from scheme_migration.services.lock_service import LockService

logger = logging.getLogger(__name__)


class DataCacheService:
    """Migration data guarded by the caller's lock on the scheme.

    ``store`` and ``lock_store`` must share a session so a save commits the
    payload and the lock renewal together.
    """

    def __init__(self, locks: LockService, store: DataStore, lock_store: LockStore) -> None:
        self._locks = locks
        self._store = store
        self._lock_store = lock_store

    def get(self, context: RequestContext, pstr: str) -> Optional[dict[str, Any]]:
        cred_id = self._locks.resolve_cred_id(context)
        return self._store.get(pstr, cred_id)

    def save(self, context: RequestContext, pstr: str, psa_id: str, data: dict[str, Any]) -> bool:
        """Store the payload and renew the caller's lock in one commit.

        Takes the lock when the scheme is free; raises :class:`LockHeldByOtherUser`
        without writing anything when another user holds it.
        """

        cred_id = self._locks.resolve_cred_id(context)
        holder = self._lock_store.get_lock_by_pstr(pstr)
        if holder is not None and holder.cred_id != cred_id:
            logger.warning(
                "Migration data save refused, scheme locked by another user",
                extra=context.log_extra(pstr=pstr),
            )
            raise LockHeldByOtherUser(pstr)

        lock = MigrationLock(pstr=pstr, cred_id=cred_id, psa_id=psa_id)
        return self._lock_store.set_lock(lock, before_commit=lambda: self._store.stage(pstr, cred_id, data))

    def remove(self, context: RequestContext, pstr: str) -> bool:
        """Discard the caller's payload and release the caller's own lock on the scheme."""

        cred_id = self._locks.resolve_cred_id(context)
        self._store.remove(pstr, cred_id)
        self._lock_store.release_lock(MigrationLock(pstr=pstr, cred_id=cred_id, psa_id=context.psa_id or ""))
        logger.info("Migration data and lock removed", extra=context.log_extra(pstr=pstr))
        return True
