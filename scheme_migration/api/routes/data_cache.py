"""Endpoints for the in-progress migration data of a scheme."""
from __future__ import annotations

from typing import Any, Annotated

from fastapi import APIRouter, Body, Depends, Response, status
from fastapi.responses import JSONResponse

from scheme_migration.api.deps import Context, DataCache, require_psa_id, require_pstr
from scheme_migration.core.security import enforce_rate_limit
from scheme_migration.schemas import DEFAULT_ERROR_RESPONSES, ErrorResponse

router = APIRouter(dependencies=[Depends(enforce_rate_limit)])

SAVE_RESPONSES = {
    **DEFAULT_ERROR_RESPONSES,
    status.HTTP_409_CONFLICT: {"model": ErrorResponse, "description": "Scheme locked by another user"},
}


@router.get("", responses={**DEFAULT_ERROR_RESPONSES, status.HTTP_404_NOT_FOUND: {"description": "Nothing saved"}})
def get_migration_data(context: Context, cache: DataCache) -> Response:
    data = cache.get(context, require_pstr(context))
    if data is None:
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return JSONResponse(data)


@router.post("", responses=SAVE_RESPONSES)
def save_migration_data(
    context: Context,
    cache: DataCache,
    payload: Annotated[dict[str, Any], Body()],
) -> Response:
    """Store the payload and renew the caller's lock; 409 when another user holds the scheme."""

    pstr = require_pstr(context)
    psa_id = require_psa_id(context)
    cache.save(context, pstr, psa_id, payload)
    return Response(status_code=status.HTTP_200_OK)


@router.delete("", responses=DEFAULT_ERROR_RESPONSES)
def remove_migration_data(context: Context, cache: DataCache) -> Response:
    """Discard the caller's data and release the caller's own lock on the scheme."""

    cache.remove(context, require_pstr(context))
    return Response(status_code=status.HTTP_200_OK)
