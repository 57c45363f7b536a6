"""
Tests for commission rule administration and the rule selector.

Uses an in-memory SQLite session; the service flushes, the test
session is rolled back afterwards.
"""

from decimal import Decimal

import pytest

from freight_kernel.domain.commission import FormulaType, TieredConfig
from freight_kernel.domain.roles import Role
from freight_kernel.exceptions import (
    CommissionRuleNotFoundError,
    InvalidCommissionRuleError,
    UnauthorizedRuleChangeError,
)
from freight_kernel.models.commission_rule import CommissionRuleModel
from freight_kernel.selectors.commission_rule_selector import CommissionRuleSelector
from freight_kernel.services.commission_rule_service import CommissionRuleService
from freight_services import WorkflowPolicy
from tests.conftest import SALES_USER

ADMIN_ID = "admin-1"
TIERS = {
    "tiers": [
        {"min": 0, "max": 10000, "percentage": 3},
        {"min": 10000, "max": None, "percentage": 5},
    ]
}


@pytest.fixture
def service(session, clock):
    return CommissionRuleService(session, clock=clock)


@pytest.fixture
def selector(session):
    return CommissionRuleSelector(session)


class TestUpsert:
    """Admin-only creation and replacement."""

    def test_create_flat_rule(self, service, selector, clock):
        rule = service.upsert_rule(
            [Role.ADMIN], ADMIN_ID, SALES_USER, "flat_percentage", {"percentage": 3}
        )
        assert rule.formula_type == FormulaType.FLAT_PERCENTAGE
        assert selector.get_rule(SALES_USER) == rule

        row = selector._get_model(SALES_USER)
        assert row.config == {"percentage": "3"}
        assert row.updated_by == ADMIN_ID
        assert row.updated_at == clock.now()

    def test_replace_existing_rule(self, service, selector):
        service.upsert_rule([Role.ADMIN], ADMIN_ID, SALES_USER, "flat_percentage", {"percentage": 3})
        service.upsert_rule([Role.ADMIN], ADMIN_ID, SALES_USER, FormulaType.TIERED, TIERS)

        rules = selector.list_rules()
        assert len(rules) == 1
        assert isinstance(rules[0].config, TieredConfig)
        assert selector.list_records()[0]["formula_type"] == "tiered"

    def test_save_logged(self, service, captured_logs):
        service.upsert_rule(["admin"], ADMIN_ID, SALES_USER, "flat_percentage", {"percentage": 3})
        saved = [r for r in captured_logs() if r["message"] == "commission_rule_saved"]
        assert saved[-1]["is_new"] is True
        assert saved[-1]["salesperson"] == SALES_USER

    def test_non_admin_refused(self, service, selector):
        with pytest.raises(UnauthorizedRuleChangeError) as exc_info:
            service.upsert_rule(
                [Role.FINANCE, Role.SALES], "fin-1", SALES_USER, "flat_percentage", {"percentage": 3}
            )
        assert exc_info.value.actor_roles == ("finance", "sales")
        assert selector.get_rule(SALES_USER) is None

    def test_invalid_rule_reports_every_problem(self, service):
        with pytest.raises(InvalidCommissionRuleError) as exc_info:
            service.upsert_rule(
                [Role.ADMIN],
                ADMIN_ID,
                " ",
                "tiered",
                {"tiers": [{"min": 5, "max": 100, "percentage": 3}]},
            )
        problems = exc_info.value.problems
        assert "Salesperson is required" in problems
        assert "First tier must start at 0" in problems
        assert "Last tier must be open-ended (max = null)" in problems

    def test_unknown_formula_type_rejected(self, service):
        with pytest.raises(InvalidCommissionRuleError) as exc_info:
            service.upsert_rule([Role.ADMIN], ADMIN_ID, SALES_USER, "bonus", {})
        assert exc_info.value.code == "INVALID_COMMISSION_RULE"


class TestDelete:

    def test_delete_falls_back_to_default(self, service, selector, session):
        service.upsert_rule([Role.ADMIN], ADMIN_ID, SALES_USER, "flat_percentage", {"percentage": 3})
        service.delete_rule([Role.ADMIN], SALES_USER)
        assert selector.get_rule(SALES_USER) is None

        policy = WorkflowPolicy()
        policy.load_commission_rules(session)
        assert policy.get_rule_for_salesperson(SALES_USER).is_default

    def test_delete_missing(self, service):
        with pytest.raises(CommissionRuleNotFoundError):
            service.delete_rule([Role.ADMIN], "Nobody")

    def test_delete_requires_admin(self, service):
        with pytest.raises(UnauthorizedRuleChangeError):
            service.delete_rule([Role.SALES], SALES_USER)


class TestSelectorTolerance:
    """Stored rows the editor could no longer produce still read back."""

    def test_legacy_row_reads_as_fallback(self, session, selector, clock):
        session.add(
            CommissionRuleModel(
                salesperson="Legacy Larry",
                formula_type="quarterly_bonus",
                config={"bonus": 100},
                updated_by="import",
                updated_at=clock.now(),
            )
        )
        session.flush()

        rule = selector.get_rule("Legacy Larry")
        assert rule.formula_type == FormulaType.FLAT_PERCENTAGE
        assert rule.config.percentage == Decimal("5")
        assert selector.get_rule("Legacy Larry", Decimal("2")).config.percentage == Decimal("2")
        assert selector.list_records()[0]["config"] == {"bonus": 100}


class TestLoadIntoPolicy:
    """Stored rules drive the commission engine."""

    def test_stored_rules_used(self, service, session):
        service.upsert_rule(
            [Role.ADMIN],
            ADMIN_ID,
            SALES_USER,
            "gp_minus_salary",
            {"percentage": "10", "salary_multiplier": "3"},
        )
        policy = WorkflowPolicy()
        rules = policy.load_commission_rules(session, salary_inputs={SALES_USER: 1000})
        assert len(rules) == 1

        result = policy.calculate_for_salesperson(SALES_USER, Decimal("5000"))
        assert result.commission == Decimal("200.00")
        assert policy.commissions.salespeople_needing_salary() == (SALES_USER,)
