"""
Edit lock domain types (``freight_kernel.domain.edit_lock``).

Responsibility
--------------
The advisory per-record lock held for the duration of an editing
session, and the ``EditLockStore`` protocol the lock manager is backed
by.  A store may be an in-memory map (single process) or a row per
resource in a shared database (cross-session exclusion); callers of the
manager never see the difference.

Invariants enforced
-------------------
* At most one holder per resource at any time.
* ``try_acquire`` is atomic with respect to other callers of the same
  store: it either records the caller as holder or returns the lock that
  is already there.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class EditLock:
    """An editing session's claim on a record. Never persisted beyond the session."""

    resource_id: str
    holder_id: str
    acquired_at: datetime


class EditLockStore(Protocol):
    """Backing storage for edit locks."""

    def get(self, resource_id: str) -> EditLock | None:
        """Return the current lock on ``resource_id``, if any."""
        ...

    def try_acquire(
        self, resource_id: str, holder_id: str, now: datetime
    ) -> EditLock:
        """Record ``holder_id`` as holder unless someone already holds it.

        Returns the lock in force after the call: the caller's own lock
        when granted (new or re-entrant), the existing foreign lock
        otherwise.
        """
        ...

    def release(self, resource_id: str) -> None:
        """Drop the lock on ``resource_id``. No-op when not locked."""
        ...

    def purge_expired(self, acquired_before: datetime) -> int:
        """Drop locks acquired at or before the cutoff. Returns the count removed."""
        ...
