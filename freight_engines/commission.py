"""
Module: freight_engines.commission
Responsibility:
    Compute salesperson commissions from configurable formulas
    (flat percentage, GP minus salary, marginal tiers), aggregate them
    per salesperson into realized and pending totals, and provide the
    pure tier-editing helpers used by the rule editor.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import freight_kernel/domain.

Invariants enforced:
    - Resolution order: explicit rule for the salesperson, otherwise an
      implicit flat rule at the system default rate.
    - Tiered commission is marginal: each ``[min, max)`` bracket taxes only
      the slice of profit that falls inside it.
    - GP minus salary is not clamped; a negative commission is surfaced.
    - Decimal-only arithmetic; amounts quantized to cents (ROUND_HALF_UP).

Failure modes:
    - None from calculation.  An unrecognized formula type falls back to a
      flat rule at the fallback rate.  ``validate_tiers`` reports problems
      as a list instead of raising.

Audit relevance:
    Each ``calculate_for_salesperson`` call is traced via ``@traced_engine``.

Usage:
    from freight_engines.commission import CommissionEngine

    engine = CommissionEngine(rules=[rule], salary_inputs={"Jane": Decimal("1000")})
    breakdown = engine.calculate_for_salesperson("Jane", Decimal("20000"))
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from decimal import ROUND_HALF_UP, Decimal

from freight_engines.tracer import traced_engine
from freight_kernel.domain.commission import (
    CommissionBreakdown,
    CommissionRule,
    CommissionTier,
    FormulaType,
    SalaryConfig,
    SalespersonCommission,
    TieredConfig,
    TierPortion,
    to_decimal,
    validate_tiers,
)
from freight_kernel.domain.policy import DEFAULT_COMMISSION_POLICY, CommissionPolicy
from freight_kernel.domain.shipment import Shipment, ShipmentStage
from freight_kernel.logging_config import get_logger

logger = get_logger("engines.commission")

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")
ZERO_AMOUNT = Decimal("0.00")

# Editor defaults for new tiers
TIER_RATE_STEP = Decimal("2")
DEFAULT_TIER_RATE = Decimal("3")
DEFAULT_TIER_WIDTH = Decimal("10000")


def _earns_commission(shipment: Shipment) -> bool:
    return (
        shipment.stage == ShipmentStage.COMPLETED
        and not shipment.is_lost
        and bool(shipment.total_profit)
    )


def quantize_amount(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _fmt(value: Decimal) -> str:
    return f"{value:,.2f}"


def _fmt_pct(value: Decimal) -> str:
    normalized = value.normalize()
    # normalize() turns 10 into 1E+1
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal("1")))
    return str(normalized)


class CommissionEngine:
    """Commission calculator over a fixed set of rules.

    Contract:
        ``rules`` may contain ``CommissionRule`` objects or raw records
        (``{salesperson, formula_type, config}`` mappings).  Raw records are
        parsed with ``CommissionRule.from_record`` and never fail.
        ``salary_inputs`` maps salesperson to salary; missing means zero.
    """

    def __init__(
        self,
        rules: Iterable[CommissionRule | Mapping] = (),
        policy: CommissionPolicy = DEFAULT_COMMISSION_POLICY,
        salary_inputs: Mapping[str, Decimal | int | str] | None = None,
    ):
        self._policy = policy
        self._rules: dict[str, CommissionRule] = {}
        for item in rules:
            rule = (
                item
                if isinstance(item, CommissionRule)
                else CommissionRule.from_record(item, policy.fallback_percentage)
            )
            self._rules[rule.salesperson] = rule
        self._salaries: dict[str, Decimal] = {}
        for name, value in (salary_inputs or {}).items():
            self._salaries[name] = to_decimal(value) or ZERO

    @property
    def policy(self) -> CommissionPolicy:
        return self._policy

    def rules(self) -> tuple[CommissionRule, ...]:
        return tuple(self._rules[name] for name in sorted(self._rules))

    def salary_for(self, salesperson: str) -> Decimal:
        return self._salaries.get(salesperson, ZERO)

    def get_rule_for_salesperson(self, salesperson: str) -> CommissionRule:
        """Explicit rule if one exists, otherwise the default flat rule."""
        rule = self._rules.get(salesperson)
        if rule is not None:
            return rule
        return CommissionRule.flat(
            salesperson, self._policy.default_percentage, is_default=True
        )

    def salespeople_needing_salary(self) -> tuple[str, ...]:
        return tuple(
            sorted(
                name
                for name, rule in self._rules.items()
                if rule.formula_type == FormulaType.GP_MINUS_SALARY
            )
        )

    @traced_engine(
        "commission", "1.0", fingerprint_fields=("salesperson", "gross_profit")
    )
    def calculate_for_salesperson(
        self, salesperson: str, gross_profit: Decimal | int | str
    ) -> CommissionBreakdown:
        """Commission on ``gross_profit`` under the salesperson's rule."""
        gp = to_decimal(gross_profit) or ZERO
        rule = self.get_rule_for_salesperson(salesperson)
        config = rule.config

        if isinstance(config, SalaryConfig):
            return self._gp_minus_salary(rule, config, gp)
        if isinstance(config, TieredConfig):
            return self._tiered(rule, config, gp)
        return self._flat(rule, config.percentage, gp)

    # ------------------------------------------------------------------
    # Formula evaluators
    # ------------------------------------------------------------------

    @staticmethod
    def _flat(rule: CommissionRule, percentage: Decimal, gp: Decimal) -> CommissionBreakdown:
        commission = quantize_amount(gp * percentage / HUNDRED)
        return CommissionBreakdown(
            salesperson=rule.salesperson,
            gross_profit=gp,
            formula_type=FormulaType.FLAT_PERCENTAGE,
            percentage=percentage,
            commission=commission,
            formula=f"{_fmt(gp)} x {_fmt_pct(percentage)}% = {_fmt(commission)}",
            is_default_rule=rule.is_default,
            base=gp,
        )

    def _gp_minus_salary(
        self, rule: CommissionRule, config: SalaryConfig, gp: Decimal
    ) -> CommissionBreakdown:
        salary = self.salary_for(rule.salesperson)
        deduction = config.salary_multiplier * salary
        base = gp - deduction
        commission = quantize_amount(base * config.percentage / HUNDRED)
        formula = (
            f"({_fmt(gp)} - {_fmt_pct(config.salary_multiplier)} x {_fmt(salary)})"
            f" x {_fmt_pct(config.percentage)}% = {_fmt(commission)}"
        )
        return CommissionBreakdown(
            salesperson=rule.salesperson,
            gross_profit=gp,
            formula_type=FormulaType.GP_MINUS_SALARY,
            percentage=config.percentage,
            commission=commission,
            formula=formula,
            is_default_rule=rule.is_default,
            salary=salary,
            salary_multiplier=config.salary_multiplier,
            salary_deduction=deduction,
            base=base,
        )

    @staticmethod
    def _tiered(rule: CommissionRule, config: TieredConfig, gp: Decimal) -> CommissionBreakdown:
        portions = tiered_portions(config.tiers, gp)
        commission = quantize_amount(sum((p.amount for p in portions), ZERO))
        effective = (commission / gp * HUNDRED) if gp > 0 else ZERO
        terms = " + ".join(
            f"{_fmt(p.portion)} x {_fmt_pct(p.tier.percentage)}%" for p in portions
        )
        return CommissionBreakdown(
            salesperson=rule.salesperson,
            gross_profit=gp,
            formula_type=FormulaType.TIERED,
            percentage=effective.quantize(CENT, rounding=ROUND_HALF_UP),
            commission=commission,
            formula=f"{terms or _fmt(ZERO)} = {_fmt(commission)}",
            is_default_rule=rule.is_default,
            base=gp,
            tier_portions=portions,
        )

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def summarize_commissions(
        self, shipments: Iterable[Shipment]
    ) -> tuple[SalespersonCommission, ...]:
        """Per-salesperson realized/pending totals over completed shipments.

        Commission is computed on the aggregated profit so tiers and the
        salary deduction apply once per period.  Realized commission is
        zero until a shipment is collected; pending is the rest of the
        commission on the combined profit.
        """
        realized: dict[str, Decimal] = {}
        pending: dict[str, Decimal] = {}
        realized_refs: dict[str, list[str]] = {}
        pending_refs: dict[str, list[str]] = {}

        for shipment in shipments:
            if not _earns_commission(shipment):
                continue
            name = shipment.salesperson
            realized.setdefault(name, ZERO)
            pending.setdefault(name, ZERO)
            if shipment.payment_collected:
                realized[name] += shipment.total_profit
                realized_refs.setdefault(name, []).append(shipment.reference_id)
            else:
                pending[name] += shipment.total_profit
                pending_refs.setdefault(name, []).append(shipment.reference_id)

        summaries = []
        for name in sorted(realized):
            realized_gp = realized[name]
            pending_gp = pending[name]
            realized_commission = ZERO_AMOUNT
            if name in realized_refs:
                realized_commission = self.calculate_for_salesperson(name, realized_gp).commission
            total_commission = self.calculate_for_salesperson(
                name, realized_gp + pending_gp
            ).commission
            summaries.append(
                SalespersonCommission(
                    salesperson=name,
                    realized_gross_profit=realized_gp,
                    pending_gross_profit=pending_gp,
                    realized_commission=realized_commission,
                    pending_commission=total_commission - realized_commission,
                    realized_shipments=tuple(realized_refs.get(name, ())),
                    pending_shipments=tuple(pending_refs.get(name, ())),
                )
            )
        logger.debug("commission_summary_built", extra={"salespeople": len(summaries)})
        return tuple(summaries)


def tiered_portions(
    tiers: Sequence[CommissionTier], gross_profit: Decimal
) -> tuple[TierPortion, ...]:
    """Split ``gross_profit`` across marginal brackets.

    Only brackets the profit reaches produce a portion.  Non-positive
    profit produces none.
    """
    portions: list[TierPortion] = []
    for tier in sorted(tiers, key=lambda t: t.min):
        if gross_profit <= tier.min:
            break
        upper = gross_profit if tier.max is None else min(gross_profit, tier.max)
        portion = upper - tier.min
        if portion <= 0:
            continue
        portions.append(
            TierPortion(
                tier=tier,
                portion=portion,
                amount=portion * tier.percentage / HUNDRED,
            )
        )
    return tuple(portions)


# =========================================================================
# Tier editing helpers
# =========================================================================


def propagate_tier_max(
    tiers: Sequence[CommissionTier], index: int, new_max: Decimal | None
) -> tuple[CommissionTier, ...]:
    """Set ``tiers[index].max`` and carry it into the next tier's ``min``."""
    updated = list(tiers)
    current = updated[index]
    updated[index] = CommissionTier(min=current.min, max=new_max, percentage=current.percentage)
    if new_max is not None and index + 1 < len(updated):
        following = updated[index + 1]
        updated[index + 1] = CommissionTier(
            min=new_max, max=following.max, percentage=following.percentage
        )
    return tuple(updated)


def append_tier(tiers: Sequence[CommissionTier]) -> tuple[CommissionTier, ...]:
    """Close the open last tier and append a new open tier.

    The closed tier spans the same width as its own ``min`` (or 10,000
    when it starts at zero); the new tier's rate is two points higher.
    """
    if not tiers:
        return (CommissionTier(min=ZERO, max=None, percentage=DEFAULT_TIER_RATE),)
    last = tiers[-1]
    width = last.min if last.min > 0 else DEFAULT_TIER_WIDTH
    closed_max = last.max if last.max is not None else last.min + width
    closed = CommissionTier(min=last.min, max=closed_max, percentage=last.percentage)
    opened = CommissionTier(
        min=closed_max, max=None, percentage=last.percentage + TIER_RATE_STEP
    )
    return (*tiers[:-1], closed, opened)


def remove_tier(
    tiers: Sequence[CommissionTier], index: int
) -> tuple[CommissionTier, ...]:
    """Drop ``tiers[index]``; the new last tier becomes open-ended.

    The only tier cannot be removed.
    """
    if len(tiers) <= 1:
        return tuple(tiers)
    remaining = [t for i, t in enumerate(tiers) if i != index]
    last = remaining[-1]
    remaining[-1] = CommissionTier(min=last.min, max=None, percentage=last.percentage)
    return tuple(remaining)


