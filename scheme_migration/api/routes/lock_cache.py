"""Migration lock endpoints.

The scheme and practitioner are read from the ``pstr`` and ``psaId`` request
headers. A missing lock is a 404 with an empty body rather than an error.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse

from scheme_migration.api.deps import Context, Locks, require_psa_id, require_pstr
from scheme_migration.core.security import enforce_rate_limit
from scheme_migration.schemas import DEFAULT_ERROR_RESPONSES, MigrationLock
from scheme_migration.services import LockOutcome

router = APIRouter(dependencies=[Depends(enforce_rate_limit)])

LOCK_RESPONSES = {
    **DEFAULT_ERROR_RESPONSES,
    status.HTTP_200_OK: {"model": MigrationLock},
    status.HTTP_404_NOT_FOUND: {"description": "No lock held"},
}


def _outcome_response(outcome: LockOutcome) -> Response:
    if not outcome.found:
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return JSONResponse(outcome.lock.to_json())


@router.get("/lock-on-scheme", responses=LOCK_RESPONSES)
def get_lock_on_scheme(context: Context, locks: Locks) -> Response:
    """Return whoever currently holds the lock on the scheme."""

    return _outcome_response(locks.get_lock_on_scheme(context, require_pstr(context)))


@router.get("/lock", responses=LOCK_RESPONSES)
def get_lock(context: Context, locks: Locks) -> Response:
    """Return the lock only if the caller holds it on the given scheme."""

    pstr = require_pstr(context)
    psa_id = require_psa_id(context)
    return _outcome_response(locks.get_lock(context, pstr, psa_id))


@router.get("/lock-by-user", responses=LOCK_RESPONSES)
def get_lock_by_user(context: Context, locks: Locks) -> Response:
    """Return the lock held by the caller, whichever scheme it is on."""

    return _outcome_response(locks.get_lock_by_user(context))


@router.post("/lock", responses=DEFAULT_ERROR_RESPONSES)
def lock(context: Context, locks: Locks) -> Response:
    """Take the lock on the scheme, replacing any lock the caller holds elsewhere."""

    pstr = require_pstr(context)
    psa_id = require_psa_id(context)
    locks.lock(context, pstr, psa_id)
    return Response(status_code=status.HTTP_200_OK)


@router.delete("/lock-on-scheme", responses=DEFAULT_ERROR_RESPONSES)
def remove_lock_on_scheme(context: Context, locks: Locks) -> Response:
    locks.remove_lock_on_scheme(context, require_pstr(context))
    return Response(status_code=status.HTTP_200_OK)


@router.delete("/lock-by-user", responses=DEFAULT_ERROR_RESPONSES)
def remove_lock_by_user(context: Context, locks: Locks) -> Response:
    locks.remove_lock_by_user(context)
    return Response(status_code=status.HTTP_200_OK)


@router.delete("/lock", responses=DEFAULT_ERROR_RESPONSES)
def remove_lock(context: Context, locks: Locks) -> Response:
    pstr = require_pstr(context)
    psa_id = require_psa_id(context)
    locks.remove_lock(context, pstr, psa_id)
    return Response(status_code=status.HTTP_200_OK)
