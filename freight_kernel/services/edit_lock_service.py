"""
EditLockManager -- advisory per-record edit locks.

Responsibility:
    Serialize concurrent edits of the same record.  An editor acquires the
    lock when an edit session opens and releases it when the session
    closes, on every exit path.  A second editor is refused immediately;
    there is no queueing and no automatic retry.

Architecture position:
    Kernel > Services -- the one stateful component of the decision layer.
    State lives in an ``EditLockStore``:

      - ``InMemoryEditLockStore``: a dict guarded by a ``threading.Lock``.
        Coordinates callers within one process only.
      - ``SqlEditLockStore``: one ``edit_locks`` row per held resource with
        a unique ``resource_id``.  Each operation is its own short
        transaction, so separate sessions and processes exclude each other.

Invariants enforced:
    - At most one holder per resource.
    - Re-entrant: acquiring a lock you already hold succeeds and refreshes
      its timestamp.
    - A release naming a holder that does not hold the lock is ignored
      (and logged), so a late cleanup can never drop someone else's lock.
    - With ``timeout_seconds`` set, a lock whose age reaches the timeout is
      treated as absent and is reclaimed on the next acquisition.  Age is
      measured with the injected clock.

Failure modes:
    - ``hold()`` raises RecordLockedError when acquisition is refused.
    - ``acquire()`` itself never raises on contention; it returns False.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from freight_kernel.domain.clock import Clock, SystemClock
from freight_kernel.domain.edit_lock import EditLock, EditLockStore
from freight_kernel.exceptions import ConcurrencyError, RecordLockedError
from freight_kernel.logging_config import get_logger
from freight_kernel.models.edit_lock import EditLockModel

logger = get_logger("services.edit_lock")


# =============================================================================
# Stores
# =============================================================================


class InMemoryEditLockStore:
    """Process-local lock table."""

    def __init__(self) -> None:
        self._locks: dict[str, EditLock] = {}
        self._mutex = threading.Lock()

    def get(self, resource_id: str) -> EditLock | None:
        with self._mutex:
            return self._locks.get(resource_id)

    def try_acquire(self, resource_id: str, holder_id: str, now: datetime) -> EditLock:
        with self._mutex:
            current = self._locks.get(resource_id)
            if current is not None and current.holder_id != holder_id:
                return current
            lock = EditLock(resource_id=resource_id, holder_id=holder_id, acquired_at=now)
            self._locks[resource_id] = lock
            return lock

    def release(self, resource_id: str) -> None:
        with self._mutex:
            self._locks.pop(resource_id, None)

    def purge_expired(self, acquired_before: datetime) -> int:
        with self._mutex:
            stale = [
                rid for rid, lock in self._locks.items()
                if lock.acquired_at <= acquired_before
            ]
            for rid in stale:
                del self._locks[rid]
            return len(stale)


class SqlEditLockStore:
    """Lock table shared through the database.

    Takes a session factory, not a session: every call commits on its own
    so a granted lock is visible to other editors at once.
    """

    # Insert attempts before giving up on a lock that keeps changing hands
    MAX_ATTEMPTS = 3

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def get(self, resource_id: str) -> EditLock | None:
        with self._session_factory() as session:
            row = self._find(session, resource_id)
            return None if row is None else row.to_dto()

    def try_acquire(self, resource_id: str, holder_id: str, now: datetime) -> EditLock:
        for attempt in range(self.MAX_ATTEMPTS):
            try:
                with self._session_factory.begin() as session:
                    row = self._find(session, resource_id)
                    if row is None:
                        row = EditLockModel(
                            resource_id=resource_id,
                            holder_id=holder_id,
                            acquired_at=now,
                        )
                        session.add(row)
                    elif row.holder_id == holder_id:
                        row.acquired_at = now
                    lock = EditLock(
                        resource_id=row.resource_id,
                        holder_id=row.holder_id,
                        acquired_at=row.acquired_at,
                    )
                return lock
            except IntegrityError:
                # Another session inserted first
                logger.info(
                    "edit_lock_insert_conflict",
                    extra={"resource_id": resource_id, "attempt": attempt + 1},
                )
                existing = self.get(resource_id)
                if existing is not None:
                    return existing
        raise ConcurrencyError(
            f"Could not settle the edit lock on {resource_id} after "
            f"{self.MAX_ATTEMPTS} attempts"
        )

    def release(self, resource_id: str) -> None:
        with self._session_factory.begin() as session:
            session.execute(
                delete(EditLockModel).where(EditLockModel.resource_id == resource_id)
            )

    def purge_expired(self, acquired_before: datetime) -> int:
        with self._session_factory.begin() as session:
            result = session.execute(
                delete(EditLockModel).where(EditLockModel.acquired_at <= acquired_before)
            )
            return result.rowcount or 0

    @staticmethod
    def _find(session: Session, resource_id: str) -> EditLockModel | None:
        stmt = select(EditLockModel).where(EditLockModel.resource_id == resource_id)
        return session.execute(stmt).scalar_one_or_none()


# =============================================================================
# Manager
# =============================================================================


class EditLockManager:
    """
    Acquire/release facade over an ``EditLockStore``.

    Contract:
        ``acquire`` returns True when the caller holds the lock afterwards.
        ``release`` is unconditional unless a ``holder_id`` is given.
        ``hold`` is the scoped form every edit session should use.
    """

    def __init__(
        self,
        store: EditLockStore | None = None,
        clock: Clock | None = None,
        timeout_seconds: int | None = None,
    ):
        self._store: EditLockStore = store if store is not None else InMemoryEditLockStore()
        self._clock = clock or SystemClock()
        self._timeout = (
            None if timeout_seconds is None else timedelta(seconds=timeout_seconds)
        )

    @property
    def timeout_seconds(self) -> int | None:
        return None if self._timeout is None else int(self._timeout.total_seconds())

    def acquire(self, resource_id: str, holder_id: str) -> bool:
        now = self._clock.now()
        if self._timeout is not None:
            purged = self._store.purge_expired(now - self._timeout)
            if purged:
                logger.info("edit_locks_expired", extra={"count": purged})

        lock = self._store.try_acquire(resource_id, holder_id, now)
        granted = lock.holder_id == holder_id
        if granted:
            logger.debug(
                "edit_lock_acquired",
                extra={"resource_id": resource_id, "holder_id": holder_id},
            )
        else:
            logger.info(
                "edit_lock_refused",
                extra={
                    "resource_id": resource_id,
                    "holder_id": lock.holder_id,
                    "requested_by": holder_id,
                },
            )
        return granted

    def release(self, resource_id: str, holder_id: str | None = None) -> None:
        if holder_id is not None:
            current = self._store.get(resource_id)
            if current is not None and current.holder_id != holder_id:
                logger.warning(
                    "edit_lock_release_ignored",
                    extra={
                        "resource_id": resource_id,
                        "holder_id": current.holder_id,
                        "requested_by": holder_id,
                    },
                )
                return
        self._store.release(resource_id)
        logger.debug("edit_lock_released", extra={"resource_id": resource_id})

    def current_lock(self, resource_id: str) -> EditLock | None:
        """The lock in force, ignoring one that has expired."""
        lock = self._store.get(resource_id)
        if lock is None or self._is_expired(lock):
            return None
        return lock

    def is_held(self, resource_id: str) -> bool:
        return self.current_lock(resource_id) is not None

    def holder_of(self, resource_id: str) -> str | None:
        lock = self.current_lock(resource_id)
        return None if lock is None else lock.holder_id

    @contextmanager
    def hold(self, resource_id: str, holder_id: str) -> Iterator[EditLock]:
        """Hold the lock for the duration of the block.

        Raises RecordLockedError when someone else holds it.  Released on
        every exit path, exceptions included.
        """
        if not self.acquire(resource_id, holder_id):
            raise RecordLockedError(resource_id, self.holder_of(resource_id), holder_id)
        try:
            yield self.current_lock(resource_id) or EditLock(
                resource_id=resource_id,
                holder_id=holder_id,
                acquired_at=self._clock.now(),
            )
        finally:
            self.release(resource_id, holder_id)

    def _is_expired(self, lock: EditLock) -> bool:
        if self._timeout is None:
            return False
        return self._clock.now() - lock.acquired_at >= self._timeout
