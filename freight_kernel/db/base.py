"""
Module: freight_kernel.db.base
Responsibility: Declarative base for the kernel's ORM models, the column
    types they share and the TrackedBase audit mixin.
Architecture position: Kernel > DB.  Every model file imports from here;
    this module imports nothing from the kernel.

Invariants enforced:
    - Every row has a uuid4 primary key stored as String(36).
    - Timestamps come back timezone-aware UTC, including on SQLite, which
      drops the offset on the way in.  Lock expiry compares them against
      ``Clock.now()``, which is always aware.
"""

from datetime import datetime, timezone
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UUIDString(TypeDecorator):
    """UUID stored as String(36)."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class UTCDateTime(TypeDecorator):
    """Aware datetime normalized to UTC both ways; naive input is taken as UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return _as_utc(value)

    def process_result_value(self, value, dialect):
        return _as_utc(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Rows that record who last changed them.

    ``updated_at`` comes from the service's injected clock, never from a
    database default, so tests can assert on it.
    """

    __abstract__ = True

    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_by: Mapped[str] = mapped_column(String(255), nullable=False)
