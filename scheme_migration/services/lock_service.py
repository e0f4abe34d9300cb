"""Business rules for migration locks.

Each call performs at most one store operation. Identity-dependent calls
resolve the caller's credential id first and fail with
:class:`CredIdNotFoundFromAuth` when the auth service has none, which is
reported differently from an unauthenticated request and from a missing lock.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from scheme_migration.core.auth import AuthConnector
from scheme_migration.core.exceptions import CredIdNotFoundFromAuth
from scheme_migration.core.types import RequestContext
from scheme_migration.repositories.lock_cache import LockStore
from scheme_migration.schemas import MigrationLock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockOutcome:
    """Result of a lock lookup: the lock when found, otherwise ``None``."""

    lock: Optional[MigrationLock] = None

    @property
    def found(self) -> bool:
        return self.lock is not None

    @classmethod
    def of(cls, lock: Optional[MigrationLock]) -> "LockOutcome":
        return cls(lock=lock)


NOT_FOUND = LockOutcome()


class LockService:
    def __init__(self, auth: AuthConnector, store: LockStore) -> None:
        self._auth = auth
        self._store = store

    def resolve_cred_id(self, context: RequestContext) -> str:
        cred_id = self._auth.retrieve_cred_id(context)
        if cred_id is None:
            logger.warning("Authenticated caller has no credential id", extra=context.log_extra())
            raise CredIdNotFoundFromAuth()
        return cred_id

    def get_lock_on_scheme(self, context: RequestContext, pstr: str) -> LockOutcome:
        self._auth.authorise(context)
        return LockOutcome.of(self._store.get_lock_by_pstr(pstr))

    def get_lock(self, context: RequestContext, pstr: str, psa_id: str) -> LockOutcome:
        """Return the caller's lock on ``pstr``; ``psa_id`` does not take part in the match."""

        cred_id = self.resolve_cred_id(context)
        expected = MigrationLock(pstr=pstr, cred_id=cred_id, psa_id=psa_id)
        return LockOutcome.of(self._store.get_lock(expected))

    def get_lock_by_user(self, context: RequestContext) -> LockOutcome:
        cred_id = self.resolve_cred_id(context)
        return LockOutcome.of(self._store.get_lock_by_cred_id(cred_id))

    def lock(self, context: RequestContext, pstr: str, psa_id: str) -> bool:
        cred_id = self.resolve_cred_id(context)
        lock = MigrationLock(pstr=pstr, cred_id=cred_id, psa_id=psa_id)
        acquired = self._store.set_lock(lock)
        logger.info("Lock requested", extra=context.log_extra(pstr=pstr, acquired=acquired))
        return acquired

    def remove_lock_on_scheme(self, context: RequestContext, pstr: str) -> bool:
        self._auth.authorise(context)
        return self._store.release_lock_by_pstr(pstr)

    def remove_lock_by_user(self, context: RequestContext) -> bool:
        cred_id = self.resolve_cred_id(context)
        return self._store.release_lock_by_cred_id(cred_id)

    def remove_lock(self, context: RequestContext, pstr: str, psa_id: str) -> bool:
        cred_id = self.resolve_cred_id(context)
        return self._store.release_lock(MigrationLock(pstr=pstr, cred_id=cred_id, psa_id=psa_id))
