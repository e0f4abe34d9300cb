"""Authentication helpers for bearer JWTs issued by the platform auth service."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol

from fastapi import HTTPException, status
from jose import JWTError, jwt

from scheme_migration.core.config import settings
from scheme_migration.core.types import RequestContext


class AuthConnector(Protocol):
    """Capability that authenticates a request and exposes the caller's credential id."""

    def authorise(self, context: RequestContext) -> None:
        """Raise when the request carries no valid credentials."""

    def retrieve_cred_id(self, context: RequestContext) -> Optional[str]:
        """Authorise, then return the caller's credential id if the token carries one."""


def _credentials_exception(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class JwtAuthConnector:
    """Validate HMAC-signed bearer tokens and read the credential id claim."""

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        cred_id_claim: str = "credId",
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._cred_id_claim = cred_id_claim

    def _decode(self, context: RequestContext) -> dict[str, Any]:
        token = context.bearer_token
        if token is None:
            raise _credentials_exception("Not authenticated")
        try:
            return jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError as exc:
            raise _credentials_exception() from exc

    def authorise(self, context: RequestContext) -> None:
        self._decode(context)

    def retrieve_cred_id(self, context: RequestContext) -> Optional[str]:
        claims = self._decode(context)
        cred_id = claims.get(self._cred_id_claim)
        if not isinstance(cred_id, str) or not cred_id.strip():
            return None
        return cred_id


def create_access_token(
    subject: str,
    *,
    cred_id: Optional[str] = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT access token, as the upstream auth service would."""

    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.jwt_expiry_minutes))
    to_encode: dict[str, Any] = {"sub": subject, "exp": expire}
    if cred_id is not None:
        to_encode[settings.auth_cred_id_claim] = cred_id
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def get_auth_connector() -> AuthConnector:
    """FastAPI dependency returning the configured auth connector."""

    return JwtAuthConnector(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        cred_id_claim=settings.auth_cred_id_claim,
    )
