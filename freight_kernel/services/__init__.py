"""Kernel services: edit-lock management and commission-rule administration."""

from freight_kernel.services.commission_rule_service import CommissionRuleService
from freight_kernel.services.edit_lock_service import (
    EditLockManager,
    InMemoryEditLockStore,
    SqlEditLockStore,
)

__all__ = [
    "CommissionRuleService",
    "EditLockManager",
    "InMemoryEditLockStore",
    "SqlEditLockStore",
]
