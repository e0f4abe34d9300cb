"""Shared type definitions for the scheme migration service."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from starlette.requests import Request

PSTR_HEADER = "pstr"
PSA_ID_HEADER = "psaId"
REQUEST_ID_HEADER = "X-Request-ID"


@dataclass(frozen=True)
class RequestContext:
    """Per-request values threaded explicitly through every service call."""

    request_id: str = "-"
    authorization: Optional[str] = None
    pstr: Optional[str] = None
    psa_id: Optional[str] = None
    client_host: str = "anonymous"

    @property
    def bearer_token(self) -> Optional[str]:
        if not self.authorization:
            return None
        scheme, _, token = self.authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return token.strip()

    def log_extra(self, **values: object) -> dict[str, object]:
        """Return ``extra`` for logging calls, tagged with the request id."""

        return {"request_id": self.request_id, **values}


def _clean_header(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def context_from_request(request: Request) -> RequestContext:
    """Build the explicit request context from incoming headers."""

    headers = request.headers
    request_id = getattr(request.state, "request_id", None) or headers.get(REQUEST_ID_HEADER) or "-"
    return RequestContext(
        request_id=request_id,
        authorization=headers.get("Authorization"),
        pstr=_clean_header(headers.get(PSTR_HEADER)),
        psa_id=_clean_header(headers.get(PSA_ID_HEADER)),
        client_host=request.client.host if request.client else "anonymous",
    )
