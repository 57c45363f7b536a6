"""
Module: freight_kernel.models.edit_lock
Responsibility: ORM persistence for advisory edit locks.  One row per locked
    resource; the row's existence IS the lock.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one holder per resource (uq_edit_lock_resource).  Two
      concurrent INSERTs for the same resource cannot both commit, which
      is what makes the lock safe across sessions and processes.

Failure modes:
    - IntegrityError on a second INSERT for a held resource.  The lock
      store treats this as "refused", never as an error.
"""

from datetime import datetime

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from freight_kernel.db.base import Base, UTCDateTime
from freight_kernel.domain.edit_lock import EditLock


class EditLockModel(Base):
    """
    A held edit lock.

    Guarantees:
        - resource_id is unique across the table.
        - acquired_at is timezone-aware UTC; expiry is evaluated against it.
    """

    __tablename__ = "edit_locks"

    __table_args__ = (
        UniqueConstraint("resource_id", name="uq_edit_lock_resource"),
        Index("idx_edit_lock_acquired_at", "acquired_at"),
    )

    resource_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    holder_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    acquired_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    def to_dto(self) -> EditLock:
        return EditLock(
            resource_id=self.resource_id,
            holder_id=self.holder_id,
            acquired_at=self.acquired_at,
        )

    def __repr__(self) -> str:
        return f"<EditLock {self.resource_id} held by {self.holder_id}>"
