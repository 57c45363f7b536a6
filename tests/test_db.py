"""
Tests for the database layer: engine lifecycle, session scope and the
shared column types.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest
from sqlalchemy import select

from freight_kernel.db.engine import (
    get_engine,
    get_session,
    reset_engine,
    session_scope,
)
from freight_kernel.models import CommissionRuleModel

STAMP = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def _rule_row(salesperson: str = "Jane Sales") -> CommissionRuleModel:
    return CommissionRuleModel(
        salesperson=salesperson,
        formula_type="flat_percentage",
        config={"percentage": "4"},
        updated_at=STAMP,
        updated_by="admin",
    )


class TestEngineLifecycle:
    def test_accessors_require_init(self):
        reset_engine()
        with pytest.raises(RuntimeError, match="not initialized"):
            get_engine()
        with pytest.raises(RuntimeError, match="not initialized"):
            get_session()


class TestSessionScope:
    def test_commit_on_success(self, session_factory):
        with session_scope() as session:
            session.add(_rule_row())

        with session_factory() as check:
            rows = check.scalars(select(CommissionRuleModel)).all()
        assert [r.salesperson for r in rows] == ["Jane Sales"]

    def test_rollback_on_error(self, session_factory):
        with pytest.raises(ValueError):
            with session_scope() as session:
                session.add(_rule_row())
                session.flush()
                raise ValueError("boom")

        with session_factory() as check:
            assert check.scalars(select(CommissionRuleModel)).all() == []


class TestColumnTypes:
    def test_uuid_primary_key_round_trip(self, session):
        row = _rule_row()
        session.add(row)
        session.commit()
        session.expire_all()

        loaded = session.scalars(select(CommissionRuleModel)).one()
        assert isinstance(loaded.id, UUID)

    def test_timestamps_come_back_utc(self, session):
        row = _rule_row()
        row.updated_at = STAMP.astimezone(timezone(timedelta(hours=3)))
        session.add(row)
        session.commit()
        session.expire_all()

        loaded = session.scalars(select(CommissionRuleModel)).one()
        assert loaded.updated_at.tzinfo is not None
        assert loaded.updated_at == STAMP
        assert loaded.updated_at.utcoffset() == timedelta(0)
