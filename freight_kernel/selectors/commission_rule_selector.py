"""
Module: freight_kernel.selectors.commission_rule_selector
Responsibility: Read commission rules as domain ``CommissionRule`` objects.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Parsing never fails: a stored row with an unknown formula type or a
      malformed config comes back as a flat rule at the fallback rate.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select

from freight_kernel.domain.commission import FALLBACK_PERCENTAGE, CommissionRule
from freight_kernel.models.commission_rule import CommissionRuleModel
from freight_kernel.selectors.base import BaseSelector


class CommissionRuleSelector(BaseSelector[CommissionRuleModel]):
    """Read-side access to stored commission rules."""

    def list_rules(
        self, fallback_percentage: Decimal = FALLBACK_PERCENTAGE
    ) -> tuple[CommissionRule, ...]:
        """All stored rules ordered by salesperson."""
        stmt = select(CommissionRuleModel).order_by(CommissionRuleModel.salesperson)
        rows = self.session.execute(stmt).scalars().all()
        return tuple(row.to_rule(fallback_percentage) for row in rows)

    def get_rule(
        self, salesperson: str, fallback_percentage: Decimal = FALLBACK_PERCENTAGE
    ) -> CommissionRule | None:
        """The stored rule for ``salesperson``, or None when there is none."""
        row = self._get_model(salesperson)
        return None if row is None else row.to_rule(fallback_percentage)

    def list_records(self) -> list[dict]:
        """Stored rows as raw records, exactly as saved."""
        stmt = select(CommissionRuleModel).order_by(CommissionRuleModel.salesperson)
        return [row.to_record() for row in self.session.execute(stmt).scalars()]

    def _get_model(self, salesperson: str) -> CommissionRuleModel | None:
        stmt = select(CommissionRuleModel).where(
            CommissionRuleModel.salesperson == salesperson
        )
        return self.session.execute(stmt).scalar_one_or_none()
