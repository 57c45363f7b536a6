"""
Module: freight_kernel.models.commission_rule
Responsibility: ORM persistence for per-salesperson commission rules.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value objects only.

Invariants enforced:
    - One rule per salesperson (uq_commission_rule_salesperson).
    - ``config`` holds the tagged payload exactly as the rule editor saved
      it; parsing into a typed config happens in the domain layer and
      never fails (see CommissionRule.from_record).

Audit relevance:
    updated_by / updated_at record the admin who last changed the rule.
"""

from typing import Any

from sqlalchemy import JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from freight_kernel.db.base import TrackedBase
from freight_kernel.domain.commission import FALLBACK_PERCENTAGE, CommissionRule


class CommissionRuleModel(TrackedBase):
    """
    Stored commission rule for one salesperson.

    Non-goals:
        - Does not validate the config payload; CommissionRuleService does
          that before writing.
    """

    __tablename__ = "commission_rules"

    __table_args__ = (
        UniqueConstraint("salesperson", name="uq_commission_rule_salesperson"),
    )

    salesperson: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # flat_percentage | gp_minus_salary | tiered (unknown values tolerated)
    formula_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    config: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    def to_record(self) -> dict[str, Any]:
        return {
            "salesperson": self.salesperson,
            "formula_type": self.formula_type,
            "config": dict(self.config or {}),
        }

    def to_rule(self, fallback_percentage=FALLBACK_PERCENTAGE) -> CommissionRule:
        return CommissionRule.from_record(self.to_record(), fallback_percentage)

    def __repr__(self) -> str:
        return f"<CommissionRule {self.salesperson}: {self.formula_type}>"
