"""FastAPI dependency providers wiring collaborators per request."""
from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from scheme_migration.core.auth import AuthConnector, get_auth_connector
from scheme_migration.core.database import get_db
from scheme_migration.core.exceptions import BadRequestError
from scheme_migration.core.types import PSA_ID_HEADER, PSTR_HEADER, RequestContext, context_from_request
from scheme_migration.repositories import DataCacheRepository, DataStore, LockCacheRepository, LockStore
from scheme_migration.services import DataCacheService, LockService


def get_request_context(request: Request) -> RequestContext:
    return context_from_request(request)


def get_lock_store(db: Annotated[Session, Depends(get_db)]) -> LockStore:
    return LockCacheRepository(db)


def get_data_store(db: Annotated[Session, Depends(get_db)]) -> DataStore:
    return DataCacheRepository(db)


def get_lock_service(
    auth: Annotated[AuthConnector, Depends(get_auth_connector)],
    store: Annotated[LockStore, Depends(get_lock_store)],
) -> LockService:
    return LockService(auth, store)


def get_data_cache_service(
    locks: Annotated[LockService, Depends(get_lock_service)],
    store: Annotated[DataStore, Depends(get_data_store)],
    lock_store: Annotated[LockStore, Depends(get_lock_store)],
) -> DataCacheService:
    return DataCacheService(locks, store, lock_store)


def _require(value: Optional[str], header: str) -> str:
    if not value:
        raise BadRequestError(f"Bad Request with missing {header}")
    return value


def require_pstr(context: RequestContext) -> str:
    return _require(context.pstr, PSTR_HEADER)


def require_psa_id(context: RequestContext) -> str:
    return _require(context.psa_id, PSA_ID_HEADER)


Context = Annotated[RequestContext, Depends(get_request_context)]
Locks = Annotated[LockService, Depends(get_lock_service)]
DataCache = Annotated[DataCacheService, Depends(get_data_cache_service)]
