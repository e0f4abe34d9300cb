"""Custom middleware for the scheme migration service."""
from __future__ import annotations

import asyncio
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from scheme_migration.core.types import REQUEST_ID_HEADER

logger = logging.getLogger("scheme_migration.request")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request id to the request state, the response and the access log."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.monotonic()

        response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "%s %s -> %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={
                "request_id": request_id,
                "duration_ms": round((time.monotonic() - started) * 1000, 1),
            },
        )
        return response


class RequestTimeoutMiddleware(BaseHTTPMiddleware):
    """Abort requests that exceed the configured execution timeout."""

    def __init__(self, app, timeout: float) -> None:  # type: ignore[override]
        super().__init__(app)
        self._timeout = max(0.0, timeout)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self._timeout <= 0:
            return await call_next(request)

        try:
            return await asyncio.wait_for(call_next(request), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Request timed out", extra={"path": str(request.url.path), "timeout": self._timeout})
            return JSONResponse({"detail": "Request timeout exceeded"}, status_code=504)
