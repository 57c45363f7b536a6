"""Selectors for the freight kernel (read side)."""

from freight_kernel.selectors.commission_rule_selector import CommissionRuleSelector

__all__ = [
    "CommissionRuleSelector",
]
