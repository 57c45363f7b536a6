"""
Commission domain types (``freight_kernel.domain.commission``).

Responsibility
--------------
Pure value objects for salesperson commission rules and the results of
computing them: the formula type, its tagged config payload, tier
brackets, per-computation breakdowns and per-salesperson summaries.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Rule parsing is total: ``CommissionRule.from_record`` never raises.
  An unrecognized ``formula_type`` or a malformed config yields a flat
  rule at ``FALLBACK_PERCENTAGE``.
* Percentages and amounts are ``Decimal``.
* Tier brackets are ``[min, max)``; ``max=None`` marks the open last tier.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Union

FALLBACK_PERCENTAGE = Decimal("5")


class FormulaType(str, Enum):
    """Supported commission formulas."""

    FLAT_PERCENTAGE = "flat_percentage"
    GP_MINUS_SALARY = "gp_minus_salary"
    TIERED = "tiered"


FORMULA_TYPE_LABELS: dict[FormulaType, str] = {
    FormulaType.FLAT_PERCENTAGE: "Flat Percentage",
    FormulaType.GP_MINUS_SALARY: "GP Minus Salary",
    FormulaType.TIERED: "Tiered Thresholds",
}


def to_decimal(value: Any) -> Decimal | None:
    """Best-effort Decimal conversion; ``None`` when not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
    if not result.is_finite():
        return None
    return result


# =========================================================================
# Config payloads
# =========================================================================


@dataclass(frozen=True)
class CommissionTier:
    """One ``[min, max)`` bracket of cumulative profit and its rate."""

    min: Decimal
    max: Decimal | None
    percentage: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "min": str(self.min),
            "max": None if self.max is None else str(self.max),
            "percentage": str(self.percentage),
        }


@dataclass(frozen=True)
class FlatPercentageConfig:
    percentage: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {"percentage": str(self.percentage)}


@dataclass(frozen=True)
class SalaryConfig:
    percentage: Decimal
    salary_multiplier: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "percentage": str(self.percentage),
            "salary_multiplier": str(self.salary_multiplier),
        }


@dataclass(frozen=True)
class TieredConfig:
    tiers: tuple[CommissionTier, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"tiers": [t.to_dict() for t in self.tiers]}


CommissionConfig = Union[FlatPercentageConfig, SalaryConfig, TieredConfig]


def parse_tier(data: Any) -> CommissionTier | None:
    """Parse a tier mapping; ``None`` if min or percentage is unusable."""
    if not isinstance(data, Mapping):
        return None
    tier_min = to_decimal(data.get("min"))
    percentage = to_decimal(data.get("percentage"))
    raw_max = data.get("max")
    tier_max = None if raw_max is None else to_decimal(raw_max)
    if tier_min is None or percentage is None:
        return None
    if raw_max is not None and tier_max is None:
        return None
    return CommissionTier(min=tier_min, max=tier_max, percentage=percentage)


def parse_config(
    formula_type: FormulaType, data: Mapping[str, Any] | None
) -> CommissionConfig | None:
    """Parse the tagged config payload for ``formula_type``.

    Returns ``None`` when the payload does not match the type.
    """
    if not isinstance(data, Mapping):
        return None
    if formula_type == FormulaType.FLAT_PERCENTAGE:
        percentage = to_decimal(data.get("percentage"))
        return None if percentage is None else FlatPercentageConfig(percentage)
    if formula_type == FormulaType.GP_MINUS_SALARY:
        percentage = to_decimal(data.get("percentage"))
        multiplier = to_decimal(data.get("salary_multiplier"))
        if percentage is None or multiplier is None:
            return None
        return SalaryConfig(percentage=percentage, salary_multiplier=multiplier)
    if formula_type == FormulaType.TIERED:
        raw_tiers = data.get("tiers")
        if not isinstance(raw_tiers, (list, tuple)) or not raw_tiers:
            return None
        tiers = tuple(parse_tier(t) for t in raw_tiers)
        if any(t is None for t in tiers):
            return None
        return TieredConfig(tiers=tiers)  # type: ignore[arg-type]
    return None


# =========================================================================
# Rule
# =========================================================================


@dataclass(frozen=True)
class CommissionRule:
    """A salesperson's commission formula.

    ``is_default`` marks a rule synthesized from the system default rate
    because no explicit rule exists for the salesperson.
    """

    salesperson: str
    formula_type: FormulaType
    config: CommissionConfig
    is_default: bool = False

    @classmethod
    def flat(
        cls, salesperson: str, percentage: Decimal, *, is_default: bool = False
    ) -> CommissionRule:
        return cls(
            salesperson=salesperson,
            formula_type=FormulaType.FLAT_PERCENTAGE,
            config=FlatPercentageConfig(percentage),
            is_default=is_default,
        )

    @classmethod
    def from_record(
        cls,
        record: Mapping[str, Any],
        fallback_percentage: Decimal = FALLBACK_PERCENTAGE,
    ) -> CommissionRule:
        """Build a rule from a stored record ``{salesperson, formula_type, config}``.

        Never raises: unknown types and malformed configs fall back to a
        flat rule at ``fallback_percentage``.
        """
        salesperson = str(record.get("salesperson") or "")
        try:
            formula_type = FormulaType(record.get("formula_type"))
        except ValueError:
            return cls.flat(salesperson, fallback_percentage)

        config = parse_config(formula_type, record.get("config"))
        if config is None:
            return cls.flat(salesperson, fallback_percentage)
        return cls(salesperson=salesperson, formula_type=formula_type, config=config)

    def config_dict(self) -> dict[str, Any]:
        return self.config.to_dict()


# =========================================================================
# Results
# =========================================================================


@dataclass(frozen=True)
class TierPortion:
    """The slice of profit that fell into one bracket."""

    tier: CommissionTier
    portion: Decimal
    amount: Decimal


@dataclass(frozen=True)
class CommissionBreakdown:
    """Result of one commission computation.

    ``percentage`` is the configured rate for flat and salary formulas,
    and the effective (blended) rate for tiered formulas.
    """

    salesperson: str
    gross_profit: Decimal
    formula_type: FormulaType
    percentage: Decimal
    commission: Decimal
    formula: str
    is_default_rule: bool = False
    salary: Decimal | None = None
    salary_multiplier: Decimal | None = None
    salary_deduction: Decimal | None = None
    base: Decimal | None = None
    tier_portions: tuple[TierPortion, ...] = ()


@dataclass(frozen=True)
class SalespersonCommission:
    """Commission totals for one salesperson, split by collection status."""

    salesperson: str
    realized_gross_profit: Decimal
    pending_gross_profit: Decimal
    realized_commission: Decimal
    pending_commission: Decimal
    realized_shipments: tuple[str, ...] = ()
    pending_shipments: tuple[str, ...] = ()

    @property
    def total_commission(self) -> Decimal:
        return self.realized_commission + self.pending_commission

    @property
    def total_gross_profit(self) -> Decimal:
        return self.realized_gross_profit + self.pending_gross_profit


# =========================================================================
# Validation
# =========================================================================


def validate_tiers(tiers: Sequence[CommissionTier]) -> list[str]:
    """Problems with a tier set; empty when valid."""
    if not tiers:
        return ["At least one tier is required"]
    problems: list[str] = []
    if tiers[0].min != 0:
        problems.append("First tier must start at 0")
    if tiers[-1].max is not None:
        problems.append("Last tier must be open-ended (max = null)")
    for i, tier in enumerate(tiers):
        label = f"Tier {i + 1}"
        if tier.percentage < 0:
            problems.append(f"{label}: percentage cannot be negative")
        if tier.max is not None and tier.max <= tier.min:
            problems.append(f"{label}: max must be greater than min")
        if i + 1 < len(tiers):
            if tier.max is None:
                problems.append(f"{label}: only the last tier may be open-ended")
                continue
            next_min = tiers[i + 1].min
            if next_min > tier.max:
                problems.append(f"{label}: gap before tier {i + 2}")
            elif next_min < tier.max:
                problems.append(f"{label}: overlaps tier {i + 2}")
    return problems


def validate_rule_config(formula_type: Any, data: Any) -> list[str]:
    """Every problem with a rule as submitted by the rule editor.

    Stricter than ``CommissionRule.from_record``: this is the write-side
    check, so nothing is silently replaced by the fallback rate.
    """
    try:
        kind = FormulaType(formula_type)
    except ValueError:
        return [f"Unknown formula type: {formula_type!r}"]

    config = parse_config(kind, data)
    if config is None:
        return [f"Config does not match formula type {kind.value}"]

    if isinstance(config, TieredConfig):
        return validate_tiers(config.tiers)

    problems: list[str] = []
    if config.percentage < 0:
        problems.append("Percentage cannot be negative")
    if isinstance(config, SalaryConfig) and config.salary_multiplier < 0:
        problems.append("Salary multiplier cannot be negative")
    return problems
