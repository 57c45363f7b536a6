"""
Service layer for commission rule administration.

Rules are created, updated and deleted by admins only.  The write side is
strict (every problem is reported); the read side (selector, engine) is
total and falls back to a flat rate for anything it cannot parse.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from freight_kernel.domain.clock import Clock, SystemClock
from freight_kernel.domain.commission import (
    CommissionRule,
    FormulaType,
    parse_config,
    validate_rule_config,
)
from freight_kernel.domain.roles import Role, normalize_roles
from freight_kernel.exceptions import (
    CommissionRuleNotFoundError,
    InvalidCommissionRuleError,
    UnauthorizedRuleChangeError,
)
from freight_kernel.logging_config import get_logger
from freight_kernel.models.commission_rule import CommissionRuleModel
from freight_kernel.services.base import BaseService

logger = get_logger("services.commission_rule")


class CommissionRuleService(BaseService[CommissionRuleModel]):
    """
    Admin-only writes of per-salesperson commission rules.

    Contract:
        Flushes within the caller's transaction; never commits.
        The stored config is the normalized payload of the parsed rule,
        so what is read back is exactly what was validated.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def upsert_rule(
        self,
        actor_roles: Iterable[Role | str],
        actor_id: str,
        salesperson: str,
        formula_type: FormulaType | str,
        config: Mapping[str, Any],
    ) -> CommissionRule:
        """
        Create or replace the rule for ``salesperson``.

        Raises:
            UnauthorizedRuleChangeError: actor is not an admin.
            InvalidCommissionRuleError: formula type or config is unusable.
        """
        self._require_admin(actor_roles, salesperson)

        type_value = formula_type.value if isinstance(formula_type, FormulaType) else str(formula_type)
        problems = []
        if not salesperson or not salesperson.strip():
            problems.append("Salesperson is required")
        problems.extend(validate_rule_config(type_value, config))
        if problems:
            raise InvalidCommissionRuleError(salesperson, type_value, problems)

        kind = FormulaType(type_value)
        rule = CommissionRule(
            salesperson=salesperson,
            formula_type=kind,
            config=parse_config(kind, config),
        )

        row = self._find(salesperson)
        now = self._clock.now()
        created = row is None
        if row is None:
            row = CommissionRuleModel(salesperson=salesperson)
            self.session.add(row)
        row.formula_type = kind.value
        row.config = rule.config_dict()
        row.updated_by = actor_id
        row.updated_at = now
        self.session.flush()

        logger.info(
            "commission_rule_saved",
            extra={
                "salesperson": salesperson,
                "formula_type": kind.value,
                "is_new": created,
                "actor_id": actor_id,
            },
        )
        return rule

    def delete_rule(self, actor_roles: Iterable[Role | str], salesperson: str) -> None:
        """
        Remove the rule; the salesperson falls back to the default rate.

        Raises:
            UnauthorizedRuleChangeError: actor is not an admin.
            CommissionRuleNotFoundError: no rule is stored.
        """
        self._require_admin(actor_roles, salesperson)
        row = self._find(salesperson)
        if row is None:
            raise CommissionRuleNotFoundError(salesperson)
        self.session.delete(row)
        self.session.flush()
        logger.info("commission_rule_deleted", extra={"salesperson": salesperson})

    def _require_admin(self, actor_roles: Iterable[Role | str], salesperson: str) -> None:
        roles = normalize_roles(actor_roles)
        if Role.ADMIN not in roles:
            logger.warning(
                "commission_rule_change_refused",
                extra={"salesperson": salesperson, "roles": roles},
            )
            raise UnauthorizedRuleChangeError(
                salesperson, tuple(sorted(r.value for r in roles))
            )

    def _find(self, salesperson: str) -> CommissionRuleModel | None:
        stmt = select(CommissionRuleModel).where(
            CommissionRuleModel.salesperson == salesperson
        )
        return self.session.execute(stmt).scalar_one_or_none()
