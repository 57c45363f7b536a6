"""
Tests for EditLockManager over both lock stores.

Every behavioral test runs against the in-memory store and the SQL
store (in-memory SQLite), since callers must not see a difference.
"""

import pytest

from freight_kernel.exceptions import RecordLockedError
from freight_kernel.services.edit_lock_service import (
    EditLockManager,
    InMemoryEditLockStore,
    SqlEditLockStore,
)

ALICE = "alice"
BOB = "bob"
RESOURCE = "shp-0001"


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        return InMemoryEditLockStore()
    return SqlEditLockStore(request.getfixturevalue("session_factory"))


@pytest.fixture
def manager(store, clock):
    return EditLockManager(store=store, clock=clock)


class TestAcquireRelease:
    """Mutual exclusion and re-entrancy."""

    def test_first_editor_wins(self, manager):
        assert manager.acquire(RESOURCE, ALICE)
        assert not manager.acquire(RESOURCE, BOB)
        assert manager.holder_of(RESOURCE) == ALICE
        assert manager.is_held(RESOURCE)

    def test_locks_are_per_resource(self, manager):
        assert manager.acquire(RESOURCE, ALICE)
        assert manager.acquire("shp-0002", BOB)

    def test_reentrant_acquire_refreshes_timestamp(self, manager, clock):
        assert manager.acquire(RESOURCE, ALICE)
        clock.advance(30)
        assert manager.acquire(RESOURCE, ALICE)
        assert manager.current_lock(RESOURCE).acquired_at == clock.now()

    def test_release_frees_the_record(self, manager):
        manager.acquire(RESOURCE, ALICE)
        manager.release(RESOURCE, ALICE)
        assert not manager.is_held(RESOURCE)
        assert manager.acquire(RESOURCE, BOB)

    def test_foreign_release_ignored(self, manager, captured_logs):
        manager.acquire(RESOURCE, ALICE)
        manager.release(RESOURCE, BOB)
        assert manager.holder_of(RESOURCE) == ALICE
        ignored = [r for r in captured_logs() if r["message"] == "edit_lock_release_ignored"]
        assert ignored[-1]["requested_by"] == BOB

    def test_unconditional_release(self, manager):
        manager.acquire(RESOURCE, ALICE)
        manager.release(RESOURCE)
        assert manager.holder_of(RESOURCE) is None

    def test_release_unlocked_is_noop(self, manager):
        manager.release(RESOURCE, ALICE)
        assert not manager.is_held(RESOURCE)

    def test_refusal_logged(self, manager, captured_logs):
        manager.acquire(RESOURCE, ALICE)
        manager.acquire(RESOURCE, BOB)
        refused = [r for r in captured_logs() if r["message"] == "edit_lock_refused"]
        assert refused[-1]["holder_id"] == ALICE
        assert refused[-1]["requested_by"] == BOB


class TestExpiry:
    """Locks older than the timeout are treated as absent."""

    def test_no_timeout_never_expires(self, manager, clock):
        manager.acquire(RESOURCE, ALICE)
        clock.advance(10 * 24 * 3600)
        assert manager.timeout_seconds is None
        assert not manager.acquire(RESOURCE, BOB)

    def test_expired_lock_reclaimed(self, store, clock):
        manager = EditLockManager(store=store, clock=clock, timeout_seconds=300)
        assert manager.acquire(RESOURCE, ALICE)
        clock.advance(299)
        assert not manager.acquire(RESOURCE, BOB)
        clock.advance(1)
        assert manager.holder_of(RESOURCE) is None
        assert manager.acquire(RESOURCE, BOB)
        assert manager.holder_of(RESOURCE) == BOB

    def test_refresh_postpones_expiry(self, store, clock):
        manager = EditLockManager(store=store, clock=clock, timeout_seconds=300)
        manager.acquire(RESOURCE, ALICE)
        clock.advance(200)
        manager.acquire(RESOURCE, ALICE)
        clock.advance(200)
        assert not manager.acquire(RESOURCE, BOB)


class TestHold:
    """Scoped edit sessions."""

    def test_hold_releases_on_exit(self, manager):
        with manager.hold(RESOURCE, ALICE) as lock:
            assert lock.holder_id == ALICE
            assert manager.holder_of(RESOURCE) == ALICE
        assert not manager.is_held(RESOURCE)

    def test_hold_releases_on_error(self, manager):
        with pytest.raises(ValueError):
            with manager.hold(RESOURCE, ALICE):
                raise ValueError("form crashed")
        assert not manager.is_held(RESOURCE)

    def test_hold_refused(self, manager):
        manager.acquire(RESOURCE, ALICE)
        with pytest.raises(RecordLockedError) as exc_info:
            with manager.hold(RESOURCE, BOB):
                pass
        assert exc_info.value.holder_id == ALICE
        assert exc_info.value.requested_by == BOB
        assert manager.holder_of(RESOURCE) == ALICE


class TestSharedDatabase:
    """Managers over the same database exclude each other."""

    def test_two_managers_one_table(self, session_factory, clock):
        first = EditLockManager(store=SqlEditLockStore(session_factory), clock=clock)
        second = EditLockManager(store=SqlEditLockStore(session_factory), clock=clock)
        assert first.acquire(RESOURCE, ALICE)
        assert not second.acquire(RESOURCE, BOB)
        assert second.holder_of(RESOURCE) == ALICE
        first.release(RESOURCE, ALICE)
        assert second.acquire(RESOURCE, BOB)

    def test_purge_counts_rows(self, session_factory, clock):
        store = SqlEditLockStore(session_factory)
        store.try_acquire("a", ALICE, clock.now())
        store.try_acquire("b", BOB, clock.tick())
        assert store.purge_expired(clock.now()) == 2
        assert store.get("a") is None
