"""SQLAlchemy declarative base and mixins."""
from __future__ import annotations

from datetime import datetime

import re

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, declared_attr, Mapped, mapped_column


class Base(DeclarativeBase):
    """Root declarative base class."""


class ExpiringRecordMixin:
    """Write timestamp and store-managed expiry for cache records."""

    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expire_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


class TableNameMixin:
    """Automatically derive table names from class names."""

    @declared_attr.directive
    def __tablename__(cls) -> str:  # type: ignore[misc]
        name = cls.__name__
        return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()
