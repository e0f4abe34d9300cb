"""SQLAlchemy models for the scheme migration cache."""
from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from scheme_migration.db.base import Base, ExpiringRecordMixin, TableNameMixin


class LockCache(TableNameMixin, ExpiringRecordMixin, Base):
    """Active migration lock; one row per scheme and one row per holder."""

    pstr: Mapped[str] = mapped_column(String(64), primary_key=True)
    cred_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    psa_id: Mapped[str] = mapped_column(String(64), nullable=False, default="")


class DataCache(TableNameMixin, ExpiringRecordMixin, Base):
    """Migration data captured so far for a scheme by a given user."""

    pstr: Mapped[str] = mapped_column(String(64), primary_key=True)
    cred_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)


__all__ = ["DataCache", "LockCache"]
