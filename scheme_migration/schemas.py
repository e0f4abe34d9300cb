"""Pydantic models shared between the API and the service layer."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from starlette import status


class MigrationLock(BaseModel):
    """A user's claim on a pension scheme migration.

    Serialised with the camelCase keys used by the frontend, e.g.
    ``{"pstr": "24000040IN", "credId": "Ext-123", "psaId": "A2100005"}``.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    pstr: str = Field(min_length=1)
    cred_id: str = Field(min_length=1, alias="credId")
    psa_id: str = Field("", alias="psaId")

    @field_validator("pstr", "cred_id")
    @classmethod
    def reject_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    def to_json(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


class ErrorResponse(BaseModel):
    detail: str


class HealthResponse(BaseModel):
    status: Literal["healthy", "unhealthy"]
    database: str
    timestamp: datetime


DEFAULT_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
    status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
    status.HTTP_429_TOO_MANY_REQUESTS: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}
