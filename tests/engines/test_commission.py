"""
Tests for the commission engine.

Covers rule resolution, the three formulas with their rendered formula
strings, per-salesperson aggregation and the tier-editing helpers.
"""

from decimal import Decimal

import pytest

from freight_engines.commission import (
    CommissionEngine,
    append_tier,
    propagate_tier_max,
    remove_tier,
    tiered_portions,
    validate_tiers,
)
from freight_kernel.domain.commission import (
    CommissionRule,
    CommissionTier,
    FormulaType,
    SalaryConfig,
    TieredConfig,
)
from freight_kernel.domain.policy import CommissionPolicy
from freight_kernel.domain.shipment import ShipmentStage
from tests.conftest import SALES_USER, build_shipment

BROKER = "Bob Broker"

THREE_TIERS = (
    CommissionTier(min=Decimal("0"), max=Decimal("10000"), percentage=Decimal("3")),
    CommissionTier(min=Decimal("10000"), max=Decimal("25000"), percentage=Decimal("5")),
    CommissionTier(min=Decimal("25000"), max=None, percentage=Decimal("7")),
)


def tiered_rule(name: str = SALES_USER) -> CommissionRule:
    return CommissionRule(
        salesperson=name,
        formula_type=FormulaType.TIERED,
        config=TieredConfig(tiers=THREE_TIERS),
    )


def salary_rule(name: str = SALES_USER) -> CommissionRule:
    return CommissionRule(
        salesperson=name,
        formula_type=FormulaType.GP_MINUS_SALARY,
        config=SalaryConfig(percentage=Decimal("10"), salary_multiplier=Decimal("3")),
    )


class TestRuleResolution:
    """Explicit rule, otherwise the default flat rate."""

    def test_default_rule_for_unknown_salesperson(self):
        engine = CommissionEngine()
        rule = engine.get_rule_for_salesperson("Nobody")
        assert rule.is_default
        assert rule.formula_type == FormulaType.FLAT_PERCENTAGE
        assert rule.config.percentage == Decimal("4")

    def test_explicit_rule_wins(self):
        engine = CommissionEngine(rules=[tiered_rule()])
        assert engine.get_rule_for_salesperson(SALES_USER) == tiered_rule()

    def test_default_matches_explicit_flat_rule(self):
        explicit = CommissionEngine(rules=[CommissionRule.flat(SALES_USER, Decimal("4"))])
        implicit = CommissionEngine()
        a = explicit.calculate_for_salesperson(SALES_USER, Decimal("12345.67"))
        b = implicit.calculate_for_salesperson(SALES_USER, Decimal("12345.67"))
        assert a.commission == b.commission == Decimal("493.83")
        assert not a.is_default_rule
        assert b.is_default_rule

    def test_policy_default_rate(self):
        engine = CommissionEngine(policy=CommissionPolicy(default_percentage=Decimal("2.5")))
        result = engine.calculate_for_salesperson(SALES_USER, 1000)
        assert result.commission == Decimal("25.00")
        assert result.formula == "1,000.00 x 2.5% = 25.00"

    def test_unknown_formula_type_falls_back(self):
        engine = CommissionEngine(
            rules=[{"salesperson": SALES_USER, "formula_type": "mystery", "config": {}}]
        )
        result = engine.calculate_for_salesperson(SALES_USER, Decimal("10000"))
        assert result.percentage == Decimal("5")
        assert result.commission == Decimal("500.00")
        assert not result.is_default_rule

    def test_raw_records_parsed(self):
        engine = CommissionEngine(
            rules=[
                {
                    "salesperson": SALES_USER,
                    "formula_type": "tiered",
                    "config": {"tiers": [t.to_dict() for t in THREE_TIERS]},
                }
            ]
        )
        assert engine.get_rule_for_salesperson(SALES_USER).formula_type == FormulaType.TIERED

    def test_rules_listing_and_salary_needs(self):
        engine = CommissionEngine(rules=[tiered_rule(), salary_rule(BROKER)])
        assert [r.salesperson for r in engine.rules()] == [BROKER, SALES_USER]
        assert engine.salespeople_needing_salary() == (BROKER,)


class TestFlatPercentage:
    """Flat percentage of gross profit."""

    def test_flat_formula(self):
        engine = CommissionEngine(rules=[CommissionRule.flat(SALES_USER, Decimal("3"))])
        result = engine.calculate_for_salesperson(SALES_USER, Decimal("10000"))
        assert result.commission == Decimal("300.00")
        assert result.formula == "10,000.00 x 3% = 300.00"

    def test_string_and_int_inputs(self):
        engine = CommissionEngine()
        assert engine.calculate_for_salesperson(SALES_USER, "2500").commission == Decimal("100.00")
        assert engine.calculate_for_salesperson(SALES_USER, 2500).commission == Decimal("100.00")

    def test_unparseable_profit_is_zero(self):
        result = CommissionEngine().calculate_for_salesperson(SALES_USER, "n/a")
        assert result.gross_profit == Decimal("0")
        assert result.commission == Decimal("0.00")

    def test_rounds_half_up_to_cents(self):
        engine = CommissionEngine(rules=[CommissionRule.flat(SALES_USER, Decimal("5"))])
        assert engine.calculate_for_salesperson(SALES_USER, "0.10").commission == Decimal("0.01")


class TestGpMinusSalary:
    """Percentage of profit above a multiple of the salary."""

    def test_salary_deducted(self):
        engine = CommissionEngine(rules=[salary_rule()], salary_inputs={SALES_USER: 1000})
        result = engine.calculate_for_salesperson(SALES_USER, Decimal("5000"))
        assert result.salary == Decimal("1000")
        assert result.salary_deduction == Decimal("3000")
        assert result.base == Decimal("2000")
        assert result.commission == Decimal("200.00")
        assert result.formula == "(5,000.00 - 3 x 1,000.00) x 10% = 200.00"

    def test_negative_commission_not_clamped(self):
        engine = CommissionEngine(rules=[salary_rule()], salary_inputs={SALES_USER: "1000"})
        result = engine.calculate_for_salesperson(SALES_USER, Decimal("1000"))
        assert result.commission == Decimal("-200.00")

    def test_missing_salary_is_zero(self):
        engine = CommissionEngine(rules=[salary_rule()])
        result = engine.calculate_for_salesperson(SALES_USER, Decimal("5000"))
        assert result.commission == Decimal("500.00")


class TestTiered:
    """Marginal brackets."""

    def setup_method(self):
        self.engine = CommissionEngine(rules=[tiered_rule()])

    @pytest.mark.parametrize(
        "gp, expected",
        [
            ("0", "0.00"),
            ("5000", "150.00"),
            ("10000", "300.00"),
            ("20000", "800.00"),
            ("30000", "1400.00"),
        ],
    )
    def test_marginal_amounts(self, gp, expected):
        result = self.engine.calculate_for_salesperson(SALES_USER, Decimal(gp))
        assert result.commission == Decimal(expected)

    def test_formula_and_effective_rate(self):
        result = self.engine.calculate_for_salesperson(SALES_USER, Decimal("20000"))
        assert result.formula == "10,000.00 x 3% + 10,000.00 x 5% = 800.00"
        assert result.percentage == Decimal("4.00")
        assert len(result.tier_portions) == 2

    def test_zero_profit_formula(self):
        result = self.engine.calculate_for_salesperson(SALES_USER, 0)
        assert result.formula == "0.00 = 0.00"
        assert result.tier_portions == ()

    def test_portions_only_for_reached_brackets(self):
        portions = tiered_portions(THREE_TIERS, Decimal("10000"))
        assert [p.portion for p in portions] == [Decimal("10000")]

    def test_calculation_is_traced(self, captured_logs):
        self.engine.calculate_for_salesperson(SALES_USER, Decimal("20000"))
        traces = [r for r in captured_logs() if r["message"] == "FREIGHT_ENGINE_TRACE"]
        assert traces
        assert traces[-1]["engine_name"] == "commission"
        assert len(traces[-1]["input_fingerprint"]) == 16


class TestSummaries:
    """Realized and pending totals per salesperson."""

    def test_realized_and_pending_split(self):
        shipments = [
            build_shipment(
                id="a", reference_id="JS-1", stage=ShipmentStage.COMPLETED,
                total_profit=Decimal("6000"), payment_collected=True,
            ),
            build_shipment(
                id="b", reference_id="JS-2", stage=ShipmentStage.COMPLETED,
                total_profit=Decimal("6000"),
            ),
            build_shipment(id="c", reference_id="JS-3", total_profit=Decimal("1000")),
            build_shipment(
                id="d", reference_id="JS-4", stage=ShipmentStage.COMPLETED,
                total_profit=Decimal("9000"), is_lost=True,
            ),
            build_shipment(
                id="e", reference_id="BB-1", salesperson=BROKER,
                stage=ShipmentStage.COMPLETED, total_profit=Decimal("2000"),
            ),
        ]
        engine = CommissionEngine(rules=[tiered_rule()])
        broker, jane = engine.summarize_commissions(shipments)

        assert jane.salesperson == SALES_USER
        assert jane.realized_gross_profit == Decimal("6000")
        assert jane.pending_gross_profit == Decimal("6000")
        assert jane.realized_commission == Decimal("180.00")
        assert jane.pending_commission == Decimal("220.00")
        assert jane.total_commission == Decimal("400.00")
        assert jane.realized_shipments == ("JS-1",)
        assert jane.pending_shipments == ("JS-2",)

        assert broker.salesperson == BROKER
        assert broker.realized_commission == Decimal("0.00")
        assert broker.pending_commission == Decimal("80.00")

    def test_salary_rule_with_nothing_collected(self):
        engine = CommissionEngine(rules=[salary_rule()], salary_inputs={SALES_USER: 1000})
        shipments = [
            build_shipment(
                stage=ShipmentStage.COMPLETED, total_profit=Decimal("5000"),
            ),
        ]
        (jane,) = engine.summarize_commissions(shipments)
        assert jane.realized_shipments == ()
        assert jane.realized_commission == Decimal("0.00")
        assert jane.pending_commission == Decimal("200.00")
        assert jane.total_commission == Decimal("200.00")

    def test_salary_deducted_once_across_split(self):
        engine = CommissionEngine(rules=[salary_rule()], salary_inputs={SALES_USER: 1000})
        shipments = [
            build_shipment(
                id="a", reference_id="JS-1", stage=ShipmentStage.COMPLETED,
                total_profit=Decimal("5000"), payment_collected=True,
            ),
            build_shipment(
                id="b", reference_id="JS-2", stage=ShipmentStage.COMPLETED,
                total_profit=Decimal("5000"),
            ),
        ]
        (jane,) = engine.summarize_commissions(shipments)
        assert jane.realized_commission == Decimal("200.00")
        assert jane.pending_commission == Decimal("500.00")

    def test_zero_profit_shipments_skipped(self):
        shipments = [
            build_shipment(stage=ShipmentStage.COMPLETED, total_profit=Decimal("0")),
        ]
        assert CommissionEngine().summarize_commissions(shipments) == ()

    def test_nothing_completed(self):
        assert CommissionEngine().summarize_commissions([build_shipment()]) == ()


class TestTierHelpers:
    """Pure editing operations used by the rule editor."""

    def test_append_to_empty(self):
        assert append_tier([]) == (
            CommissionTier(min=Decimal("0"), max=None, percentage=Decimal("3")),
        )

    def test_append_closes_last_tier(self):
        tiers = append_tier(append_tier([]))
        assert tiers[0].max == Decimal("10000")
        assert tiers[1] == CommissionTier(min=Decimal("10000"), max=None, percentage=Decimal("5"))
        tiers = append_tier(tiers)
        assert tiers[1].max == Decimal("20000")
        assert tiers[2].min == Decimal("20000")
        assert tiers[2].percentage == Decimal("7")
        assert validate_tiers(tiers) == []

    def test_remove_reopens_last(self):
        tiers = remove_tier(THREE_TIERS, 2)
        assert len(tiers) == 2
        assert tiers[-1].max is None
        assert validate_tiers(tiers) == []

    def test_removing_middle_tier_leaves_gap(self):
        tiers = remove_tier(THREE_TIERS, 1)
        assert validate_tiers(tiers) == ["Tier 1: gap before tier 2"]

    def test_only_tier_kept(self):
        single = THREE_TIERS[-1:]
        assert remove_tier(single, 0) == single

    def test_propagate_max_moves_next_min(self):
        tiers = propagate_tier_max(THREE_TIERS, 0, Decimal("15000"))
        assert tiers[0].max == Decimal("15000")
        assert tiers[1].min == Decimal("15000")
        assert tiers[2] == THREE_TIERS[2]
        assert validate_tiers(tiers) == []

    def test_validation_reports_every_problem(self):
        tiers = (
            CommissionTier(min=Decimal("100"), max=Decimal("1000"), percentage=Decimal("-1")),
            CommissionTier(min=Decimal("2000"), max=Decimal("5000"), percentage=Decimal("2")),
        )
        problems = validate_tiers(tiers)
        assert "First tier must start at 0" in problems
        assert "Last tier must be open-ended (max = null)" in problems
        assert "Tier 1: percentage cannot be negative" in problems
        assert "Tier 1: gap before tier 2" in problems
