"""ORM models for the freight kernel."""

from freight_kernel.models.commission_rule import CommissionRuleModel
from freight_kernel.models.edit_lock import EditLockModel

__all__ = [
    "CommissionRuleModel",
    "EditLockModel",
]
