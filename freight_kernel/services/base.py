"""
BaseService -- abstract base for session-bound kernel services.

Responsibility:
    Common constructor and session-handling contract for services that
    write through a caller-owned SQLAlchemy ``Session``.  Such services
    use ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or roll back themselves.

Non-goals:
    The SQL edit-lock store is NOT a BaseService: lock operations must be
    visible to other sessions immediately, so it owns short transactions
    of its own through a session factory.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from freight_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Abstract base class for session-bound kernel services."""

    def __init__(self, session: Session):
        self.session = session
