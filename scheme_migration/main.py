"""FastAPI application entrypoint for the scheme migration service."""
from __future__ import annotations

import asyncio
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from scheme_migration.api import router as api_router
from scheme_migration.core.config import settings
from scheme_migration.core.exceptions import (
    BadRequestError,
    CredIdNotFoundFromAuth,
    LockHeldByOtherUser,
    StoreUnavailable,
)
from scheme_migration.core.logging_config import configure_logging
from scheme_migration.core.middleware import RequestIdMiddleware, RequestTimeoutMiddleware
from scheme_migration.db.migrate import run_migrations
from scheme_migration.services.cleanup import expiry_sweeper

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "-")


def register_exception_handlers(app: FastAPI) -> None:
    """Translate domain failures into HTTP responses."""

    @app.exception_handler(CredIdNotFoundFromAuth)
    async def cred_id_not_found(request: Request, exc: CredIdNotFoundFromAuth) -> JSONResponse:
        return JSONResponse({"detail": exc.message}, status_code=status.HTTP_403_FORBIDDEN)

    @app.exception_handler(BadRequestError)
    async def bad_request(request: Request, exc: BadRequestError) -> JSONResponse:
        return JSONResponse({"detail": str(exc)}, status_code=status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(LockHeldByOtherUser)
    async def lock_held_by_other_user(request: Request, exc: LockHeldByOtherUser) -> JSONResponse:
        return JSONResponse({"detail": str(exc)}, status_code=status.HTTP_409_CONFLICT)

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable(request: Request, exc: StoreUnavailable) -> JSONResponse:
        logger.error(
            "Cache store unavailable",
            exc_info=exc,
            extra={"request_id": _request_id(request), "path": request.url.path},
        )
        return JSONResponse(
            {"detail": "Internal server error"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


def create_app() -> FastAPI:
    """Build and configure the FastAPI application instance."""

    configure_logging()

    app = FastAPI(title=settings.app_name, version="0.1.0", debug=settings.debug)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )
    app.add_middleware(RequestTimeoutMiddleware, timeout=settings.request_timeout_seconds)
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.on_event("startup")
    async def startup() -> None:
        """Apply migrations, retrying while the database comes up."""

        attempts = settings.db_migration_max_retries
        base_delay = settings.db_migration_retry_delay_seconds
        for attempt in range(1, attempts + 1):
            try:
                await asyncio.to_thread(run_migrations)
                break
            except Exception as exc:  # pragma: no cover - exercised against a real database
                if attempt == attempts:
                    logger.exception("Database migrations failed after %s attempts", attempts)
                    raise

                delay = base_delay * (2 ** (attempt - 1))
                logger.warning(
                    "Database migration attempt %s/%s failed; retrying in %.1fs",
                    attempt,
                    attempts,
                    delay,
                    exc_info=exc if settings.debug else None,
                )
                await asyncio.sleep(delay)

        await expiry_sweeper.start()

    @app.on_event("shutdown")
    async def shutdown() -> None:
        await expiry_sweeper.stop()

    logger.info("Scheme migration service initialised", extra={"env": settings.app_env})
    return app


app = create_app()
