"""Operational endpoints."""
from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from scheme_migration.core.database import check_database_health
from scheme_migration.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health() -> JSONResponse:
    """Report whether the backing store is reachable."""

    healthy, message = check_database_health()
    body = HealthResponse(
        status="healthy" if healthy else "unhealthy",
        database=message,
        timestamp=datetime.now(timezone.utc),
    )
    return JSONResponse(body.model_dump(mode="json"), status_code=200 if healthy else 503)
